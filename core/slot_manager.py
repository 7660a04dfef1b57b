"""
Slot Manager：座位與候位名單的所有操作入口

職責：
1. 入場／結束體驗／調整座位數
2. 候位名單：登記、刪除、呼叫、順位通知、直接入場
3. 系統重置、備份匯出／還原、CSV 報表

原則：
- 單一入口：所有變更都經過 StateStore.update（atomic + 持久化）
- 消除特殊情況：狀態轉換都寫成 core.state_transitions 的純函式
- 資料結構優先：先檢查前置條件，再產生新狀態
"""
from typing import List, Optional, Tuple
import logging

from schemas import AppState, Slot
from core.clock import SystemClock
from core.exceptions import EmptyWaitingList
from core.state_store import StateStore
from core.state_transitions import (
    MAX_SLOT_COUNT,
    admit_participant,
    append_waiter,
    build_waiter,
    ensure_empty_slot,
    mark_notified,
    release_slot,
    remove_waiter,
    resize_slots,
    waiting_position,
)
from services.notification_service import (
    NotificationIntent,
    build_sms_intent,
    call_forward_message,
    waiting_position_message,
)
from services.report_service import export_report
from services.snapshot_service import decode_state, export_backup

logger = logging.getLogger(__name__)


class SlotManager:
    """座位／候位名單管理器"""

    def __init__(
        self,
        store: StateStore,
        *,
        clock=None,
        max_slot_count: int = MAX_SLOT_COUNT,
        organization_name: str = "",
        recall_window_seconds: float = 5 * 60,
        timezone_name: str = "Asia/Seoul",
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.max_slot_count = max_slot_count
        self.organization_name = organization_name
        self.recall_window_seconds = recall_window_seconds
        self.timezone_name = timezone_name

    @property
    def state(self) -> AppState:
        return self.store.state

    # ============ 座位 ============

    def admit(
        self,
        slot_id: int,
        name: Optional[str] = "",
        memo: Optional[str] = None,
        from_waitlist: bool = False,
    ) -> AppState:
        """
        讓體驗者入場

        參數：
            slot_id: 座位 id（0-based）
            name: 體驗者姓名（from_waitlist=True 時忽略）
            memo: 備註
            from_waitlist: True 表示讓候位名單第一位入場，並從名單移除

        返回：
            更新後的 AppState

        異常：
            SlotNotFound / SlotOccupied / MissingParticipantName

        注意：
            - from_waitlist=True 但名單是空的 -> 記錄 error，狀態不變（不拋出）
        """
        now = self.clock.now()
        try:
            state = self.store.update(
                lambda s: admit_participant(
                    s, slot_id, name, memo, now=now, from_waitlist=from_waitlist
                ),
                reason="participant_admitted",
            )
        except EmptyWaitingList as e:
            logger.error(f"{e}; admission skipped")
            return self.store.state

        slot = state.find_slot(slot_id)
        logger.info(
            f"Admitted {slot.participant_name} into slot {slot.number}"
            f"{' from waiting list' if from_waitlist else ''}"
        )
        return state

    def release(self, slot_id: int) -> AppState:
        """
        結束體驗

        異常：
            SlotNotFound / SlotNotOccupied
        """
        now = self.clock.now()
        state = self.store.update(
            lambda s: release_slot(s, slot_id, now=now),
            reason="participant_released",
        )
        logger.info(f"Released slot {slot_id + 1}")
        return state

    def resize(self, new_count: int) -> AppState:
        """
        調整座位數量（1..max_slot_count）

        異常：
            InvalidSlotCount: 超出範圍
            SlotsStillOccupied: 要刪掉的座位仍有人（整個拒絕）
        """
        previous_count = len(self.state.slots)
        state = self.store.update(
            lambda s: resize_slots(s, new_count, max_count=self.max_slot_count),
            reason="slots_resized",
        )
        if len(state.slots) != previous_count:
            logger.info(f"Slot count changed {previous_count} -> {len(state.slots)}")
        return state

    def available_slots(self) -> List[Slot]:
        """目前的空位（直接入場時讓使用者選）"""
        return [slot for slot in self.state.slots if not slot.is_occupied]

    # ============ 候位名單 ============

    def enqueue_waiter(
        self,
        name: str,
        phone_number: str,
        ios: bool = False,
    ) -> Tuple[AppState, NotificationIntent]:
        """
        登記候位（加到名單最後面）

        返回：
            (更新後的 AppState, 順位通知的簡訊 intent)

        異常：
            MissingParticipantName / MissingPhoneNumber
        """
        waiter = build_waiter(name, phone_number)
        state = self.store.update(
            lambda s: append_waiter(s, waiter),
            reason="waiter_enqueued",
        )
        position = waiting_position(state, waiter.id)
        logger.info(f"Waiter {waiter.id} ({waiter.name}) enqueued at position {position}")

        intent = build_sms_intent(
            waiter.phone_number,
            waiting_position_message(self.organization_name, waiter.name, position),
            ios=ios,
        )
        return state, intent

    def dequeue_waiter(self, waiter_id: str) -> AppState:
        """
        從候位名單刪除（不限第一位）

        異常：
            WaiterNotFound
        """
        state = self.store.update(
            lambda s: remove_waiter(s, waiter_id),
            reason="waiter_removed",
        )
        logger.info(f"Waiter {waiter_id} removed from waiting list")
        return state

    def notify(self, waiter_id: str, ios: bool = False) -> Tuple[AppState, NotificationIntent]:
        """
        呼叫候位者（輪到了）

        每次呼叫都會更新 notified_at，重新呼叫時計時重新開始

        異常：
            WaiterNotFound
        """
        now = self.clock.now()
        state = self.store.update(
            lambda s: mark_notified(s, waiter_id, now=now),
            reason="waiter_notified",
        )
        waiter = state.find_waiter(waiter_id)
        logger.info(f"Waiter {waiter_id} ({waiter.name}) notified")

        intent = build_sms_intent(
            waiter.phone_number,
            call_forward_message(
                self.organization_name,
                waiter.name,
                recall_minutes=int(self.recall_window_seconds // 60),
            ),
            ios=ios,
        )
        return state, intent

    def send_waiting_notice(self, waiter_id: str, ios: bool = False) -> NotificationIntent:
        """
        重新發送順位通知（不改變狀態）

        異常：
            WaiterNotFound
        """
        state = self.state
        position = waiting_position(state, waiter_id)
        waiter = state.find_waiter(waiter_id)
        return build_sms_intent(
            waiter.phone_number,
            waiting_position_message(self.organization_name, waiter.name, position),
            ios=ios,
        )

    def direct_admit(self, name: str, phone_number: str, slot_id: int) -> AppState:
        """
        不經過候位名單，直接讓現場的人入場

        電話號碼記在備註欄

        異常：
            NoEmptySlots: 沒有空位（優先檢查）
            SlotNotFound / SlotOccupied / MissingParticipantName
        """
        now = self.clock.now()

        def transform(s: AppState) -> AppState:
            ensure_empty_slot(s)
            return admit_participant(s, slot_id, name, phone_number, now=now)

        state = self.store.update(transform, reason="participant_direct_admitted")
        logger.info(f"Directly admitted {name} into slot {slot_id + 1}")
        return state

    # ============ 系統 ============

    def force_reset(self, reason: str = "system_reset") -> AppState:
        """
        全部重置為初始狀態（3 個空座位、沒有紀錄、沒有候位）並寫入

        用途：
            - 手動系統重置（由呼叫端先確認）
            - Session 閒置逾時（不確認）
        """
        state = self.store.replace(self.store.initial_state(), reason=reason)
        logger.warning(f"System reset ({reason})")
        return state

    def export_backup(self) -> str:
        return export_backup(self.state)

    def import_backup(self, blob) -> AppState:
        """
        從備份還原（整份替換）

        異常：
            InvalidSnapshotFormat: 格式錯誤，目前狀態完全不變
        """
        restored = decode_state(blob)
        state = self.store.replace(restored, reason="backup_restored")
        logger.info(
            f"Backup restored: {len(state.slots)} slots, {len(state.history)} records, "
            f"{len(state.waiting_list)} waiting"
        )
        return state

    def export_report(self) -> str:
        return export_report(self.state, self.clock.now(), self.timezone_name)
