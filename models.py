"""
SQLAlchemy 模型與共用 Enum

整個 AppState 以一個 JSON blob 存在 stored_states 表中（key-value），
每次狀態變更都整筆覆寫。
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredState(Base):
    """持久化的狀態 blob（一個 key 對應一份完整 AppState JSON）"""
    __tablename__ = "stored_states"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class SessionPhase(str, enum.Enum):
    """Session guard 狀態"""
    ACTIVE = "ACTIVE"
    WARNING = "WARNING"


class ActivitySignal(str, enum.Enum):
    """會重置閒置計時器的使用者活動"""
    POINTER_MOVE = "pointer_move"
    KEY_PRESS = "key_press"
    CLICK = "click"
    SCROLL = "scroll"


class SlotAction(str, enum.Enum):
    """座位卡片上主要按鈕的意圖"""
    START_EXPERIENCE = "start_experience"
    ADMIT_WAITER = "admit_waiter"
    END_EXPERIENCE = "end_experience"


class ReportStatus(str, enum.Enum):
    """CSV 報表的「상태」欄位"""
    IN_PROGRESS = "체험 중"
    WAITING = "대기 중"
    COMPLETED = "체험 완료"
