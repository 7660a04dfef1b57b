"""
時間來源

所有「現在時間」都從 Clock 取得，測試時換成可手動推進的假時鐘
"""
import time
from datetime import datetime, timezone


def truncate_to_millis(value: datetime) -> datetime:
    """備份 JSON 以毫秒精度來回轉換，入庫前先截掉微秒"""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


class SystemClock:
    """真實時鐘"""

    def now(self) -> datetime:
        return truncate_to_millis(datetime.now(timezone.utc))

    def monotonic(self) -> float:
        return time.monotonic()
