"""
Pydantic schemas

兩類模型：
1. Domain model（Slot / HistoryRecord / Waiter / AppState）
   - 這就是持久化 blob 與備份檔的 JSON 格式（camelCase 欄位名稱）
   - frozen：所有變更都透過 model_copy 產生新物件
2. API request / response 模型
"""
from datetime import datetime, timezone
from typing import Annotated, List, Optional
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from models import SessionPhase, SlotAction


def new_id() -> str:
    return str(uuid4())


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """沒有時區的時間一律視為 UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class DomainModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ============ Domain model ============

class Slot(DomainModel):
    """體驗座位（id 從 0 開始，連續）"""
    id: int = Field(ge=0)
    participant_name: Optional[str] = None
    memo: Optional[str] = None
    entry_time: Optional[UtcDatetime] = None

    @model_validator(mode="after")
    def check_occupancy(self):
        # 有體驗者 <=> 有入場時間
        if (self.participant_name is None) != (self.entry_time is None):
            raise ValueError(
                f"Slot {self.id}: participantName and entryTime must be set together"
            )
        return self

    @property
    def is_occupied(self) -> bool:
        return self.participant_name is not None

    @property
    def number(self) -> int:
        """畫面與紀錄上使用的座位號碼（1-based）"""
        return self.id + 1


class HistoryRecord(DomainModel):
    """體驗紀錄；exit_time 為 None 表示仍在體驗中"""
    id: str = Field(default_factory=new_id)
    slot_number: int
    participant_name: str
    memo: Optional[str] = None
    entry_time: UtcDatetime
    exit_time: Optional[UtcDatetime] = None

    @property
    def is_open(self) -> bool:
        return self.exit_time is None


class Waiter(DomainModel):
    """候位名單中的一位"""
    id: str = Field(default_factory=new_id)
    name: str
    phone_number: str
    notified: bool = False
    notified_at: Optional[UtcDatetime] = None


class AppState(DomainModel):
    """
    整個應用程式的狀態（aggregate root）

    - slots: 依 id 排序
    - history: 最新的在最前面
    - waiting_list: FIFO，index 0 是下一位
    """
    slots: List[Slot]
    history: List[HistoryRecord]
    waiting_list: List[Waiter]

    @model_validator(mode="after")
    def check_slot_ids(self):
        # 座位 id 必須依序為 0..N-1，至少一個座位
        if not self.slots:
            raise ValueError("AppState must contain at least one slot")
        ids = [slot.id for slot in self.slots]
        if ids != list(range(len(ids))):
            raise ValueError(f"Slot ids must be 0..{len(ids) - 1} in order, got {ids}")
        return self

    def find_slot(self, slot_id: int) -> Optional[Slot]:
        for slot in self.slots:
            if slot.id == slot_id:
                return slot
        return None

    def find_waiter(self, waiter_id: str) -> Optional[Waiter]:
        for waiter in self.waiting_list:
            if waiter.id == waiter_id:
                return waiter
        return None

    def has_empty_slot(self) -> bool:
        return any(not slot.is_occupied for slot in self.slots)


# ============ API requests ============

class AdmitRequest(BaseModel):
    name: str = ""
    memo: Optional[str] = None
    from_waitlist: bool = False


class SlotCountUpdate(BaseModel):
    count: int


class WaiterCreate(BaseModel):
    name: str
    phone_number: str


class DirectAdmitRequest(BaseModel):
    name: str
    phone_number: str
    slot_id: int


class ActivityReport(BaseModel):
    signal: str  # pointer_move / key_press / click / scroll


# ============ API responses ============

class StatsResponse(BaseModel):
    total_participants: int
    currently_in: int
    completed_today: int


class NotificationIntentResponse(BaseModel):
    phone_number: str
    body: str
    uri: str


class StateResponse(BaseModel):
    version: int
    state: AppState
    stats: StatsResponse
    reportable: bool
    persistence_warning: Optional[str] = None
    load_warning: Optional[str] = None


class WaiterActionResponse(StateResponse):
    notification: Optional[NotificationIntentResponse] = None


class SlotView(BaseModel):
    slot_id: int
    slot_number: int
    participant_name: Optional[str] = None
    elapsed: str
    action: SlotAction


class SessionStatusResponse(BaseModel):
    phase: SessionPhase
    seconds_until_warning: float
    countdown_remaining: Optional[float] = None
    inactivity_timeout: float
    warning_window: float


class WaiterView(BaseModel):
    waiter_id: str
    position: int
    name: str
    phone_number: str
    notified: bool
    elapsed_since_call: str
    recall_overdue: bool
