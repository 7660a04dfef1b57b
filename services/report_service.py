"""
CSV 報表服務

純讀取，不修改狀態。報表由三種列組成（依序）：
1. 目前體驗中的座位（체험 중）：經過時間以「現在」計算
2. 候位名單（대기 중）：包含是否已呼叫、呼叫時間
3. 已結束的紀錄（체험 완료）：依離場時間新到舊排序

格式：
- UTF-8 + BOM（Excel 才能正確顯示韓文）
- 標題列不加引號；文字欄位加引號，座位號碼是數字不加引號
"""
from datetime import datetime
from typing import List, Union
import csv
import io

from models import ReportStatus
from schemas import AppState
from services.display_service import format_duration, format_korean_datetime

REPORT_HEADER = [
    "상태", "자리 번호", "체험자 이름", "전화번호", "메모",
    "입장 시간", "퇴장 시간", "소요 시간", "호출 여부", "호출 시간",
]

NOTIFIED_YES = "예"
NOTIFIED_NO = "아니오"

BOM = "\ufeff"

Cell = Union[str, int]


def report_rows(state: AppState, now: datetime, timezone_name: str) -> List[List[Cell]]:
    """
    產生報表的資料列（不含標題）

    參數：
        state: 目前狀態
        now: 計算體驗中經過時間用的「現在」
        timezone_name: 日期時間顯示用的時區

    返回：
        每一列 10 個欄位，順序同 REPORT_HEADER
    """
    def fmt(value):
        return format_korean_datetime(value, timezone_name)

    rows: List[List[Cell]] = []

    for slot in state.slots:
        if not (slot.participant_name and slot.entry_time):
            continue
        rows.append([
            ReportStatus.IN_PROGRESS.value,
            slot.number,
            slot.participant_name,
            "",
            slot.memo or "",
            fmt(slot.entry_time),
            "",
            format_duration(slot.entry_time, now),
            "",
            "",
        ])

    for waiter in state.waiting_list:
        rows.append([
            ReportStatus.WAITING.value,
            "",
            waiter.name,
            waiter.phone_number,
            "",
            "",
            "",
            "",
            NOTIFIED_YES if waiter.notified else NOTIFIED_NO,
            fmt(waiter.notified_at),
        ])

    completed = sorted(
        (r for r in state.history if r.exit_time is not None),
        key=lambda r: r.exit_time,
        reverse=True,
    )
    for record in completed:
        rows.append([
            ReportStatus.COMPLETED.value,
            record.slot_number,
            record.participant_name,
            "",
            record.memo or "",
            fmt(record.entry_time),
            fmt(record.exit_time),
            format_duration(record.entry_time, record.exit_time),
            "",
            "",
        ])

    return rows


def export_report(state: AppState, now: datetime, timezone_name: str) -> str:
    """
    完整的 CSV 內容（含 BOM 與標題列）

    寫入檔案時用 encoding="utf-8"，BOM 已經在字串開頭
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerows(report_rows(state, now, timezone_name))
    body = buffer.getvalue()
    if body.endswith("\n"):
        body = body[:-1]
    return BOM + ",".join(REPORT_HEADER) + "\n" + body


def report_filename(now: datetime) -> str:
    return f"전체_체험기록_{now.date().isoformat()}.csv"


def has_reportable_data(state: AppState) -> bool:
    """沒有任何紀錄、候位、體驗中的人時，報表下載按鈕應停用"""
    return bool(
        state.history
        or state.waiting_list
        or any(slot.is_occupied for slot in state.slots)
    )
