"""
State Repository：持久化 blob 的讀寫

整個 AppState 存成 stored_states 表中的一筆（key -> JSON 字串），
寫入一律整筆覆寫，沒有部分更新。
"""
from typing import Optional
import logging

from sqlalchemy.orm import Session

from models import StoredState
from database import transactional

logger = logging.getLogger(__name__)


class StateRepository:
    """Key-value blob 存取"""

    @staticmethod
    def read(db: Session, key: str) -> Optional[str]:
        """
        讀取 blob

        參數：
            db: SQLAlchemy Session
            key: blob 的 key

        返回：
            JSON 字串；不存在時回傳 None
        """
        row = db.query(StoredState).filter(StoredState.key == key).first()
        if row is None:
            logger.debug(f"No stored state for key {key}")
            return None
        return row.value

    @staticmethod
    @transactional
    def write(db: Session, key: str, value: str) -> StoredState:
        """
        寫入 blob（不存在就新增，存在就覆寫）

        注意：
            - 使用 @transactional，自動處理 commit/rollback
        """
        row = db.query(StoredState).filter(StoredState.key == key).first()
        if row is None:
            row = StoredState(key=key, value=value)
            db.add(row)
        else:
            row.value = value
        return row

    @staticmethod
    @transactional
    def delete(db: Session, key: str) -> bool:
        """
        刪除 blob

        返回：
            True 如果真的刪掉了一筆，False 如果本來就不存在
        """
        deleted = db.query(StoredState).filter(StoredState.key == key).delete()
        return deleted > 0
