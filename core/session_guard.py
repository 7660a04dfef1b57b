"""
Session Guard：閒置逾時後強制重置

狀態：
    ACTIVE --(閒置 inactivity_timeout - warning_window)--> WARNING
    WARNING --(continue_session)--> ACTIVE（重新計時）
    WARNING --(倒數 warning_window 結束)--> 呼叫 on_expire()（重置系統）--> ACTIVE（重新計時）

規則：
- ACTIVE 時任何活動訊號（滑鼠移動、按鍵、點擊、捲動）都會重新計時
- WARNING 時忽略一般活動訊號，只有 continue_session() 能解除
  （警告視窗顯示給另一位工作人員時，不能被隨手的滑鼠移動取消倒數）

時間：
- 使用 clock.monotonic()，測試時換成假時鐘
- 本身不開 timer，由外部定期呼叫 tick()（見 run_session_guard）
"""
from typing import Any, Callable, Dict, Optional
import asyncio
import logging
import threading

from models import ActivitySignal, SessionPhase
from core.clock import SystemClock
from core.exceptions import UnknownActivitySignal

logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_TIMEOUT = 30 * 60
DEFAULT_WARNING_WINDOW = 2 * 60


class SessionGuard:
    """閒置計時器"""

    def __init__(
        self,
        on_expire: Callable[[], Any],
        *,
        inactivity_timeout: float = DEFAULT_INACTIVITY_TIMEOUT,
        warning_window: float = DEFAULT_WARNING_WINDOW,
        clock=None,
    ):
        if warning_window <= 0 or inactivity_timeout <= warning_window:
            raise ValueError(
                f"warning_window ({warning_window}) must be positive and shorter than "
                f"inactivity_timeout ({inactivity_timeout})"
            )

        self._on_expire = on_expire
        self.inactivity_timeout = inactivity_timeout
        self.warning_window = warning_window
        self.clock = clock or SystemClock()

        self._lock = threading.RLock()
        self.phase = SessionPhase.ACTIVE
        self._last_activity = self.clock.monotonic()
        self._warning_started_at: Optional[float] = None

    @property
    def warning_after(self) -> float:
        """最後一次活動後多久進入 WARNING"""
        return self.inactivity_timeout - self.warning_window

    def _restart(self) -> None:
        self.phase = SessionPhase.ACTIVE
        self._last_activity = self.clock.monotonic()
        self._warning_started_at = None

    def record_activity(self, signal) -> bool:
        """
        收到使用者活動訊號

        參數：
            signal: ActivitySignal 或其字串值

        返回：
            True 如果計時器被重新開始，False 如果在 WARNING 中被忽略

        異常：
            UnknownActivitySignal: 無法辨識的訊號
        """
        try:
            signal = ActivitySignal(signal)
        except ValueError:
            raise UnknownActivitySignal(signal) from None

        with self._lock:
            if self.phase == SessionPhase.WARNING:
                logger.debug(f"Ignoring {signal.value} while session warning is shown")
                return False
            self._restart()
            return True

    def continue_session(self) -> None:
        """使用者按下「延長」：回到 ACTIVE 並重新計時"""
        with self._lock:
            if self.phase == SessionPhase.WARNING:
                logger.info("Session continued by user")
            self._restart()

    def tick(self) -> SessionPhase:
        """
        檢查計時器，必要時轉換狀態

        一次 tick 最多做一次轉換：
        - ACTIVE 超過 warning_after -> WARNING（開始倒數）
        - WARNING 倒數結束 -> on_expire() -> ACTIVE

        返回：
            tick 之後的狀態
        """
        with self._lock:
            now = self.clock.monotonic()
            if self.phase == SessionPhase.ACTIVE:
                if now - self._last_activity >= self.warning_after:
                    self.phase = SessionPhase.WARNING
                    self._warning_started_at = now
                    logger.warning(
                        f"No activity for {self.warning_after:.0f}s, "
                        f"session expires in {self.warning_window:.0f}s"
                    )
                return self.phase

            if now - self._warning_started_at < self.warning_window:
                return self.phase

        self._expire()
        return self.phase

    def _expire(self) -> None:
        logger.warning("Session expired, forcing system reset")
        try:
            self._on_expire()
        except Exception as e:
            logger.error(f"Session expiry reset failed: {e}", exc_info=True)
        finally:
            with self._lock:
                self._restart()

    def status(self) -> Dict[str, Any]:
        """目前狀態（給前端顯示倒數）"""
        with self._lock:
            now = self.clock.monotonic()
            if self.phase == SessionPhase.WARNING:
                remaining = self.warning_window - (now - self._warning_started_at)
                return {
                    "phase": self.phase,
                    "seconds_until_warning": 0.0,
                    "countdown_remaining": max(0.0, remaining),
                    "inactivity_timeout": self.inactivity_timeout,
                    "warning_window": self.warning_window,
                }
            return {
                "phase": self.phase,
                "seconds_until_warning": max(0.0, self.warning_after - (now - self._last_activity)),
                "countdown_remaining": None,
                "inactivity_timeout": self.inactivity_timeout,
                "warning_window": self.warning_window,
            }


async def run_session_guard(guard: SessionGuard, interval: float) -> None:
    """
    背景 ticker：每 interval 秒呼叫一次 guard.tick()

    tick 可能觸發重置（寫入 DB），所以丟到 thread 執行，不阻塞 event loop
    """
    logger.info(
        f"Session guard started (timeout={guard.inactivity_timeout:.0f}s, "
        f"warning={guard.warning_window:.0f}s)"
    )
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(guard.tick)
        except Exception as e:
            logger.error(f"Session guard tick failed: {e}", exc_info=True)
