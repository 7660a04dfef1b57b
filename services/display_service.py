"""
顯示用的計算

純計算邏輯，不涉及狀態轉換：
- 經過時間字串（HH:MM:SS、MM:SS）
- 韓國地區格式的日期時間
- 座位卡片的主要動作
- 呼叫後是否已超過等待時間
"""
from datetime import datetime, timedelta
from functools import lru_cache
from typing import List, Optional
from zoneinfo import ZoneInfo

from models import SlotAction
from schemas import AppState, SlotView, Waiter, WaiterView

_ONE_SECOND = timedelta(seconds=1)


@lru_cache()
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def _whole_seconds(start: datetime, end: datetime) -> Optional[int]:
    """end - start 無條件捨去到秒；負值（時鐘偏差）回傳 None"""
    diff = end - start
    if diff < timedelta(0):
        return None
    return diff // _ONE_SECOND


def format_duration(start: Optional[datetime], end: datetime) -> str:
    """
    經過時間 HH:MM:SS

    範例：
        format_duration(t, t + timedelta(seconds=3661)) -> "01:01:01"
        end 早於 start -> ""
    """
    if start is None:
        return ""
    total = _whole_seconds(start, end)
    if total is None:
        return ""
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_elapsed_mmss(since: Optional[datetime], now: datetime) -> str:
    """呼叫後經過時間 MM:SS（分鐘不進位成小時）"""
    if since is None:
        return ""
    total = _whole_seconds(since, now)
    if total is None:
        return ""
    minutes, seconds = divmod(total, 60)
    return f"{minutes:02d}:{seconds:02d}"


def format_korean_datetime(value: Optional[datetime], timezone_name: str) -> str:
    """
    ko-KR 地區格式：2024. 1. 5. 오후 3:04:05

    注意：
        - 先轉成設定的時區
        - 12 小時制，午夜是 오전 12 點
    """
    if value is None:
        return ""
    local = value.astimezone(_zone(timezone_name))
    period = "오전" if local.hour < 12 else "오후"
    hour = local.hour % 12 or 12
    return (
        f"{local.year}. {local.month}. {local.day}. "
        f"{period} {hour}:{local.minute:02d}:{local.second:02d}"
    )


def slot_action(occupied: bool, has_waiters: bool) -> SlotAction:
    """
    座位卡片的主要按鈕

    - 有人 -> 結束體驗
    - 空位且有人候位 -> 讓候位第一位入場
    - 空位且沒人候位 -> 開始新的體驗
    """
    if occupied:
        return SlotAction.END_EXPERIENCE
    if has_waiters:
        return SlotAction.ADMIT_WAITER
    return SlotAction.START_EXPERIENCE


def slot_views(state: AppState, now: datetime) -> List[SlotView]:
    has_waiters = bool(state.waiting_list)
    return [
        SlotView(
            slot_id=slot.id,
            slot_number=slot.number,
            participant_name=slot.participant_name,
            elapsed=format_duration(slot.entry_time, now) if slot.is_occupied else "",
            action=slot_action(slot.is_occupied, has_waiters),
        )
        for slot in state.slots
    ]


def is_recall_overdue(waiter: Waiter, now: datetime, window_seconds: float) -> bool:
    """呼叫後超過 window_seconds 還沒入場"""
    if not waiter.notified or waiter.notified_at is None:
        return False
    return now - waiter.notified_at > timedelta(seconds=window_seconds)


def waiter_views(state: AppState, now: datetime, recall_window_seconds: float) -> List[WaiterView]:
    return [
        WaiterView(
            waiter_id=waiter.id,
            position=index + 1,
            name=waiter.name,
            phone_number=waiter.phone_number,
            notified=waiter.notified,
            elapsed_since_call=format_elapsed_mmss(waiter.notified_at, now),
            recall_overdue=is_recall_overdue(waiter, now, recall_window_seconds),
        )
        for index, waiter in enumerate(state.waiting_list)
    ]
