"""
Snapshot API Endpoints

職責：
1. CSV 報表下載（唯讀）
2. JSON 備份下載
3. 從 JSON 備份還原（整份替換）
4. 系統重置
"""
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request, Response
import logging

from schemas import StateResponse
from core.slot_manager import SlotManager
from core.exceptions import InvalidSnapshotFormat
from services.report_service import report_filename
from services.snapshot_service import backup_filename
from api.dependencies import build_state_response, get_slot_manager

router = APIRouter(prefix="/api", tags=["snapshots"])
logger = logging.getLogger(__name__)


def _attachment(filename: str) -> dict:
    # 檔名含韓文，依 RFC 5987 用 filename* 傳 UTF-8 檔名
    return {
        "Content-Disposition": (
            f"attachment; filename=\"{quote(filename)}\"; "
            f"filename*=UTF-8''{quote(filename)}"
        )
    }


@router.get("/exports/report")
def download_report(manager: SlotManager = Depends(get_slot_manager)):
    """
    下載 CSV 報表

    返回：
        UTF-8（含 BOM）CSV，檔名：전체_체험기록_<日期>.csv
    """
    try:
        content = manager.export_report()
        return Response(
            content=content.encode("utf-8"),
            media_type="text/csv; charset=utf-8",
            headers=_attachment(report_filename(manager.clock.now()))
        )

    except Exception as e:
        logger.error(f"Failed to export report: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/exports/backup")
def download_backup(manager: SlotManager = Depends(get_slot_manager)):
    """
    下載 JSON 備份

    返回：
        完整 AppState（slots / history / waitingList），檔名：backup_<日期>.json
    """
    try:
        content = manager.export_backup()
        return Response(
            content=content.encode("utf-8"),
            media_type="application/json",
            headers=_attachment(backup_filename(manager.clock.now()))
        )

    except Exception as e:
        logger.error(f"Failed to export backup: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/imports/backup", response_model=StateResponse)
async def restore_backup(request: Request, manager: SlotManager = Depends(get_slot_manager)):
    """
    從備份還原

    Request body 就是備份檔的原始內容（JSON）

    注意：
        - 呼叫前由前端先向使用者確認（會覆蓋目前所有資料）
        - 格式錯誤 -> 400，目前狀態完全不變
    """
    body = await request.body()
    try:
        state = manager.import_backup(body)
        return build_state_response(manager, state)

    except InvalidSnapshotFormat as e:
        logger.warning(f"Rejected backup restore: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to restore backup: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/system/reset", response_model=StateResponse)
def reset_system(manager: SlotManager = Depends(get_slot_manager)):
    """
    系統重置（Host endpoint）

    效果：
    - 座位數回到預設（3）、清空紀錄與候位名單

    注意：
        呼叫前由前端先向使用者確認，無法復原
    """
    try:
        state = manager.force_reset(reason="manual_reset")
        return build_state_response(manager, state)

    except Exception as e:
        logger.error(f"Failed to reset system: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
