"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

分類：
- ValidationError：使用者輸入不合法，操作被拒絕，狀態不變
- ConsistencyError：內部資料不一致，操作 no-op 或降級處理
- PersistenceError：持久化讀寫失敗，記憶體中的狀態仍為準
- FormatError：持久化 blob 或備份檔格式錯誤，整份拒絕
"""


class ExperienceException(Exception):
    """所有體驗系統異常的基類"""
    pass


# ============ ValidationError ============

class ValidationError(ExperienceException):
    """使用者輸入不合法（狀態不會被修改）"""
    pass


class InvalidSlotCount(ValidationError):
    """座位數量不在允許範圍內"""
    def __init__(self, requested, minimum: int, maximum: int):
        self.requested = requested
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Slot count must be between {minimum} and {maximum}, got {requested}"
        )


class SlotsStillOccupied(ValidationError):
    """縮減座位時，要被移除的座位仍有人在體驗"""
    def __init__(self, requested: int, occupied_numbers):
        self.requested = requested
        self.occupied_numbers = list(occupied_numbers)
        super().__init__(
            f"Cannot shrink to {requested} slots: slot(s) "
            f"{', '.join(str(n) for n in self.occupied_numbers)} still in use"
        )


class SlotNotFound(ValidationError):
    """座位不存在"""
    def __init__(self, slot_id):
        self.slot_id = slot_id
        super().__init__(f"Slot {slot_id} not found")


class SlotOccupied(ValidationError):
    """座位已經有人在使用"""
    def __init__(self, slot_id):
        self.slot_id = slot_id
        super().__init__(f"Slot {slot_id} is already occupied")


class SlotNotOccupied(ValidationError):
    """座位是空的，無法結束體驗"""
    def __init__(self, slot_id):
        self.slot_id = slot_id
        super().__init__(f"Slot {slot_id} is not occupied")


class MissingParticipantName(ValidationError):
    """體驗者姓名為空"""
    pass


class MissingPhoneNumber(ValidationError):
    """候位者電話為空"""
    pass


class NoEmptySlots(ValidationError):
    """沒有空位可以直接入場"""
    pass


class WaiterNotFound(ValidationError):
    """候位者不存在"""
    def __init__(self, waiter_id):
        self.waiter_id = waiter_id
        super().__init__(f"Waiter {waiter_id} not found")


class UnknownActivitySignal(ValidationError):
    """無法辨識的活動訊號"""
    def __init__(self, signal):
        self.signal = signal
        super().__init__(f"Unknown activity signal: {signal!r}")


# ============ ConsistencyError ============

class ConsistencyError(ExperienceException):
    """內部資料不一致（不會讓整個系統中止）"""
    pass


class EmptyWaitingList(ConsistencyError):
    """要從候位名單入場，但名單是空的"""
    pass


class OpenRecordMissing(ConsistencyError):
    """結束體驗時找不到對應的進行中紀錄"""
    def __init__(self, slot_number: int):
        self.slot_number = slot_number
        super().__init__(f"No open history record for slot number {slot_number}")


# ============ PersistenceError ============

class PersistenceError(ExperienceException):
    """持久化讀寫失敗"""
    def __init__(self, operation: str, key: str, cause: Exception):
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(f"Failed to {operation} state '{key}': {cause}")


# ============ FormatError ============

class FormatError(ExperienceException):
    """資料格式錯誤"""
    pass


class InvalidSnapshotFormat(FormatError):
    """狀態 blob 或備份檔無法解析，或缺少必要欄位"""
    pass
