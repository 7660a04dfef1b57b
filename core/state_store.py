"""
State Store：整個 AppState 的唯一持有者

職責：
1. 啟動時從持久化 blob 載入狀態（格式錯誤 -> 全部重置）
2. update()：唯一的 atomic updater
   - transform 拋出異常 -> 狀態完全不變，也不寫入
   - transform 回傳同一個物件 -> no-op，不寫入、版本不變
   - 否則替換狀態、version + 1、整筆寫入、通知 listener
3. 寫入失敗只記錄 warning，記憶體中的狀態仍為準，下一次變更會再寫一次

前端以 version 做短輪詢，version 變了才需要重新拉整個狀態
"""
from typing import Callable, List, Optional
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from schemas import AppState
from core.exceptions import InvalidSnapshotFormat, PersistenceError
from core.state_repository import StateRepository
from core.state_transitions import DEFAULT_SLOT_COUNT, initial_state
from services.snapshot_service import decode_state, encode_state

logger = logging.getLogger(__name__)

Transform = Callable[[AppState], AppState]
Listener = Callable[[AppState, int, str], None]


class StateStore:
    """AppState 容器 + 持久化"""

    def __init__(
        self,
        session_factory,
        *,
        key: str,
        default_slot_count: int = DEFAULT_SLOT_COUNT,
    ):
        self._session_factory = session_factory
        self.key = key
        self.default_slot_count = default_slot_count

        self._state = initial_state(default_slot_count)
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

        self.version = 0
        self.last_persist_error: Optional[str] = None
        self.load_warning: Optional[str] = None

    @property
    def state(self) -> AppState:
        return self._state

    def initial_state(self) -> AppState:
        return initial_state(self.default_slot_count)

    # ============ 載入 ============

    def load(self) -> AppState:
        """
        從持久化 blob 載入狀態

        流程：
        1. 沒有 blob -> 初始狀態
        2. 讀取失敗 -> 初始狀態 + load_warning（不刪除 blob，下次啟動再試）
        3. 格式錯誤 -> 初始狀態 + load_warning + 刪除壞掉的 blob

        返回：
            載入後的 AppState
        """
        with self._lock:
            self.load_warning = None
            try:
                blob = self._read()
            except PersistenceError as e:
                logger.warning(f"{e}; starting with initial state")
                self.load_warning = str(e)
                self._state = self.initial_state()
                return self._state

            if blob is None:
                logger.info(f"No stored state under '{self.key}', starting with initial state")
                self._state = self.initial_state()
                return self._state

            try:
                self._state = decode_state(blob)
            except InvalidSnapshotFormat as e:
                logger.error(f"Stored state is invalid, resetting system: {e}")
                self.load_warning = f"Stored state was invalid and the system has been reset: {e}"
                self._state = self.initial_state()
                try:
                    self._delete()
                except PersistenceError as delete_error:
                    logger.warning(f"Could not remove invalid stored state: {delete_error}")
                return self._state

            logger.info(
                f"Loaded state '{self.key}': {len(self._state.slots)} slots, "
                f"{len(self._state.history)} history records, "
                f"{len(self._state.waiting_list)} waiting"
            )
            return self._state

    # ============ 變更 ============

    def update(self, transform: Transform, *, reason: str) -> AppState:
        """
        套用一個狀態轉換並寫入

        參數：
            transform: AppState -> AppState 的純函式
            reason: 變更原因（記錄在 log，傳給 listener）

        返回：
            更新後的 AppState

        異常：
            transform 拋出的任何異常都會原封不動往上拋，狀態不變
        """
        with self._lock:
            previous = self._state
            new_state = transform(previous)
            if new_state is previous:
                logger.debug(f"No-op update ({reason})")
                return previous

            self._state = new_state
            self.version += 1
            version = self.version
            self._persist(reason)

        self._broadcast(new_state, version, reason)
        return new_state

    def replace(self, state: AppState, *, reason: str) -> AppState:
        """整份替換（重置、還原備份）"""
        return self.update(lambda _: state, reason=reason)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        註冊狀態變更通知

        返回：
            取消註冊的函式
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ============ 內部 ============

    def _persist(self, reason: str) -> None:
        try:
            self._write(encode_state(self._state))
        except PersistenceError as e:
            self.last_persist_error = str(e)
            logger.warning(
                f"{e}; in-memory state v{self.version} remains authoritative, "
                f"will retry on next change"
            )
            return

        self.last_persist_error = None
        logger.info(f"State v{self.version} persisted ({reason})")

    def _broadcast(self, state: AppState, version: int, reason: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(state, version, reason)
            except Exception as e:
                logger.error(f"State listener {listener!r} failed: {e}", exc_info=True)

    def _read(self) -> Optional[str]:
        db = self._session_factory()
        try:
            return StateRepository.read(db, self.key)
        except SQLAlchemyError as e:
            raise PersistenceError("read", self.key, e) from e
        finally:
            db.close()

    def _write(self, blob: str) -> None:
        db = self._session_factory()
        try:
            StateRepository.write(db, self.key, blob)
        except SQLAlchemyError as e:
            raise PersistenceError("write", self.key, e) from e
        finally:
            db.close()

    def _delete(self) -> None:
        db = self._session_factory()
        try:
            StateRepository.delete(db, self.key)
        except SQLAlchemyError as e:
            raise PersistenceError("delete", self.key, e) from e
        finally:
            db.close()
