"""
狀態轉換：所有 AppState -> AppState 的純函式

原則：
- 不修改傳入的 state，永遠回傳新的 AppState
- 前置條件不符就拋出異常，呼叫端（StateStore.update）不會寫入任何東西
- 回傳同一個 state 物件代表 no-op
- 「現在時間」由呼叫端傳入，方便測試
"""
from datetime import datetime
from typing import List, Optional
import logging

from schemas import AppState, HistoryRecord, Slot, Waiter
from core.exceptions import (
    EmptyWaitingList,
    InvalidSlotCount,
    MissingParticipantName,
    MissingPhoneNumber,
    NoEmptySlots,
    OpenRecordMissing,
    SlotNotFound,
    SlotNotOccupied,
    SlotOccupied,
    SlotsStillOccupied,
    WaiterNotFound,
)

logger = logging.getLogger(__name__)

DEFAULT_SLOT_COUNT = 3
MIN_SLOT_COUNT = 1
MAX_SLOT_COUNT = 50


def _empty_slot(slot_id: int) -> Slot:
    return Slot(id=slot_id)


def _clean(value: Optional[str]) -> Optional[str]:
    """去掉前後空白，空字串視為沒有值"""
    if value is None:
        return None
    value = value.strip()
    return value or None


def initial_state(slot_count: int = DEFAULT_SLOT_COUNT) -> AppState:
    """
    系統初始狀態：slot_count 個空座位、沒有紀錄、沒有候位

    用途：
        第一次啟動、手動重置、閒置逾時重置、載入失敗時的回復
    """
    return AppState(
        slots=[_empty_slot(i) for i in range(slot_count)],
        history=[],
        waiting_list=[],
    )


def _require_slot(state: AppState, slot_id: int) -> Slot:
    slot = state.find_slot(slot_id)
    if slot is None:
        raise SlotNotFound(slot_id)
    return slot


def ensure_empty_slot(state: AppState) -> None:
    """直接入場前確認至少還有一個空位"""
    if not state.has_empty_slot():
        raise NoEmptySlots("No empty slot available; add the participant to the waiting list")


def admit_participant(
    state: AppState,
    slot_id: int,
    name: Optional[str],
    memo: Optional[str],
    *,
    now: datetime,
    from_waitlist: bool = False,
) -> AppState:
    """
    讓一位體驗者進入指定座位

    參數：
        state: 目前狀態
        slot_id: 座位 id（0-based）
        name: 體驗者姓名（from_waitlist=True 時忽略，改用候位名單第一位）
        memo: 備註
        now: 入場時間
        from_waitlist: 是否從候位名單第一位入場

    返回：
        新的 AppState：座位被佔用、history 最前面多一筆進行中的紀錄、
        （from_waitlist 時）候位名單第一位被移除

    異常：
        SlotNotFound: 座位不存在
        SlotOccupied: 座位已有人
        EmptyWaitingList: from_waitlist=True 但候位名單是空的
        MissingParticipantName: 姓名為空
    """
    slot = _require_slot(state, slot_id)
    if slot.is_occupied:
        raise SlotOccupied(slot_id)

    waiting_list = list(state.waiting_list)
    if from_waitlist:
        if not waiting_list:
            raise EmptyWaitingList(
                f"Cannot admit into slot {slot.number}: waiting list is empty"
            )
        participant_name = _clean(waiting_list[0].name)
        waiting_list = waiting_list[1:]
    else:
        participant_name = _clean(name)

    if not participant_name:
        raise MissingParticipantName("Participant name is required")

    memo = _clean(memo)
    slots = [
        s.model_copy(update={
            "participant_name": participant_name,
            "memo": memo,
            "entry_time": now,
        }) if s.id == slot_id else s
        for s in state.slots
    ]
    record = HistoryRecord(
        slot_number=slot.number,
        participant_name=participant_name,
        memo=memo,
        entry_time=now,
        exit_time=None,
    )

    return state.model_copy(update={
        "slots": slots,
        "history": [record] + list(state.history),
        "waiting_list": waiting_list,
    })


def open_record_ids(history: List[HistoryRecord], slot_number: int) -> List[str]:
    """
    找出某座位號碼所有進行中的紀錄

    異常：
        OpenRecordMissing: 沒有任何進行中的紀錄
    """
    ids = [r.id for r in history if r.slot_number == slot_number and r.is_open]
    if not ids:
        raise OpenRecordMissing(slot_number)
    return ids


def release_slot(state: AppState, slot_id: int, *, now: datetime) -> AppState:
    """
    結束體驗：清空座位並關閉對應的紀錄

    找不到進行中的紀錄時（資料不一致），座位仍然會被清空，紀錄不動，只記 warning

    異常：
        SlotNotFound: 座位不存在
        SlotNotOccupied: 座位本來就是空的
    """
    slot = _require_slot(state, slot_id)
    if not slot.is_occupied:
        raise SlotNotOccupied(slot_id)

    history = list(state.history)
    try:
        to_close = set(open_record_ids(history, slot.number))
    except OpenRecordMissing as e:
        logger.warning(f"{e}; clearing slot {slot.number} without closing history")
        to_close = set()

    history = [
        r.model_copy(update={"exit_time": now}) if r.id in to_close else r
        for r in history
    ]
    slots = [_empty_slot(s.id) if s.id == slot_id else s for s in state.slots]

    return state.model_copy(update={"slots": slots, "history": history})


def resize_slots(
    state: AppState,
    new_count: int,
    *,
    max_count: int = MAX_SLOT_COUNT,
) -> AppState:
    """
    調整座位數量

    規則：
    - new_count 必須在 1..max_count
    - 增加：在尾端補上空座位，id 接續現有數量
    - 減少：從尾端刪除；只檢查 index >= new_count 的座位，
      只要其中有人就整個拒絕（不會只刪一部分）

    異常：
        InvalidSlotCount: 數量超出範圍
        SlotsStillOccupied: 要刪除的座位仍有人
    """
    if isinstance(new_count, bool) or not isinstance(new_count, int):
        raise InvalidSlotCount(new_count, MIN_SLOT_COUNT, max_count)
    if new_count < MIN_SLOT_COUNT or new_count > max_count:
        raise InvalidSlotCount(new_count, MIN_SLOT_COUNT, max_count)

    current_count = len(state.slots)
    if new_count == current_count:
        return state

    if new_count < current_count:
        occupied = [s.number for s in state.slots[new_count:] if s.is_occupied]
        if occupied:
            raise SlotsStillOccupied(new_count, occupied)
        slots = list(state.slots[:new_count])
    else:
        slots = list(state.slots) + [
            _empty_slot(current_count + i) for i in range(new_count - current_count)
        ]

    return state.model_copy(update={"slots": slots})


def build_waiter(name: Optional[str], phone_number: Optional[str]) -> Waiter:
    """
    建立新的候位者（尚未加入名單）

    異常：
        MissingParticipantName: 姓名為空
        MissingPhoneNumber: 電話為空
    """
    name = _clean(name)
    phone_number = _clean(phone_number)
    if not name:
        raise MissingParticipantName("Waiter name is required")
    if not phone_number:
        raise MissingPhoneNumber("Waiter phone number is required")
    return Waiter(name=name, phone_number=phone_number, notified=False, notified_at=None)


def append_waiter(state: AppState, waiter: Waiter) -> AppState:
    """加到候位名單最後面"""
    return state.model_copy(update={"waiting_list": list(state.waiting_list) + [waiter]})


def remove_waiter(state: AppState, waiter_id: str) -> AppState:
    """
    依 id 移除候位者（不限第一位）

    異常：
        WaiterNotFound: 名單中沒有這個 id
    """
    if state.find_waiter(waiter_id) is None:
        raise WaiterNotFound(waiter_id)
    return state.model_copy(update={
        "waiting_list": [w for w in state.waiting_list if w.id != waiter_id],
    })


def mark_notified(state: AppState, waiter_id: str, *, now: datetime) -> AppState:
    """
    標記已呼叫

    每次呼叫都覆寫 notified_at，重新呼叫（재호출）時計時器重新開始

    異常：
        WaiterNotFound: 名單中沒有這個 id
    """
    if state.find_waiter(waiter_id) is None:
        raise WaiterNotFound(waiter_id)
    return state.model_copy(update={
        "waiting_list": [
            w.model_copy(update={"notified": True, "notified_at": now}) if w.id == waiter_id else w
            for w in state.waiting_list
        ],
    })


def waiting_position(state: AppState, waiter_id: str) -> int:
    """候位順位（1-based），每次都依當下名單計算"""
    for index, waiter in enumerate(state.waiting_list):
        if waiter.id == waiter_id:
            return index + 1
    raise WaiterNotFound(waiter_id)
