"""
Change Feed：把 StateStore 的變更廣播給等待中的前端

StateStore 每次變更都會呼叫 publish()（以 listener 身分註冊），
GET /api/state/changes 用 wait_for_change() 長輪詢，
version 一變就立刻回應，不必等下一次短輪詢
"""
import logging
import threading

from schemas import AppState

logger = logging.getLogger(__name__)


class ChangeFeed:
    """可等待的最新 version"""

    def __init__(self, version: int = 0):
        self._condition = threading.Condition()
        self.version = version
        self.last_reason = None

    def publish(self, state: AppState, version: int, reason: str) -> None:
        """StateStore listener：記下新 version 並喚醒所有等待者"""
        with self._condition:
            self.version = version
            self.last_reason = reason
            self._condition.notify_all()
        logger.debug(f"Published state v{version} ({reason})")

    def wait_for_change(self, since: int, timeout: float) -> bool:
        """
        等到 version > since 或逾時

        參數：
            since: 前端目前持有的 version
            timeout: 最多等待秒數

        返回：
            True 如果已經有更新的 version，False 如果逾時
        """
        with self._condition:
            return self._condition.wait_for(lambda: self.version > since, timeout=timeout)
