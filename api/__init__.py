"""
API 層

每個 router 只負責：解析請求 -> 呼叫 SlotManager / SessionGuard -> 把異常轉成 HTTP 狀態碼
"""
