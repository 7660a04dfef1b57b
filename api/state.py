"""
State API Endpoints

前端取得最新狀態的兩種方式：
1. 短輪詢 GET /api/state：version 沒變就不需要重繪
2. 長輪詢 GET /api/state/changes?since=N：有新 version 才回應
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Response
import logging

from schemas import StateResponse
from core.change_feed import ChangeFeed
from core.slot_manager import SlotManager
from api.dependencies import build_state_response, get_change_feed, get_slot_manager

router = APIRouter(prefix="/api", tags=["state"])
logger = logging.getLogger(__name__)

MAX_WAIT_SECONDS = 30.0


@router.get("/state", response_model=StateResponse)
def get_state(manager: SlotManager = Depends(get_slot_manager)):
    """
    取得完整狀態

    返回：
        - version: 每次變更 +1
        - state: slots / history / waitingList
        - stats: 總人數、目前體驗中、今日完成
        - reportable: 是否有資料可以匯出 CSV（否則下載按鈕停用）
        - persistence_warning: 最後一次寫入失敗的訊息（成功後清除）
        - load_warning: 啟動時載入失敗、系統被重置的訊息
    """
    try:
        return build_state_response(manager)
    except Exception as e:
        logger.error(f"Failed to get state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get(
    "/state/changes",
    response_model=StateResponse,
    responses={204: {"description": "No change before timeout"}}
)
def wait_for_state_change(
    since: int = Query(..., ge=0),
    timeout: float = Query(25.0, ge=0, le=MAX_WAIT_SECONDS),
    manager: SlotManager = Depends(get_slot_manager),
    feed: ChangeFeed = Depends(get_change_feed)
):
    """
    長輪詢：等到 version 大於 since 才回傳完整狀態

    參數：
        since: 前端目前持有的 version
        timeout: 最多等待秒數（0..30）

    返回：
        - 200 + StateResponse：已有新 version
        - 204：逾時前沒有變更，前端用同一個 since 再發一次
    """
    if not feed.wait_for_change(since, timeout):
        return Response(status_code=204)

    try:
        return build_state_response(manager)
    except Exception as e:
        logger.error(f"Failed to get state after change: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
