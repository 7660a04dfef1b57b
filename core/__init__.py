"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- State Transitions：純函式的狀態轉換（AppState -> AppState）
- State Store：唯一的 atomic updater，每次變更都寫入持久化
- SlotManager：座位、候位名單的所有操作入口
- SessionGuard：閒置逾時後強制重置
"""
