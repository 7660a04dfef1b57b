"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- SnapshotService：AppState 的 JSON 編碼／解碼、備份檔名
- ReportService：CSV 報表
- NotificationService：簡訊 deep link
- StatsService：統計數字
- DisplayService：經過時間、日期格式、座位卡片動作
"""
