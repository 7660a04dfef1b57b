"""
Waiting List API Endpoints

職責：
1. 登記候位（回傳順位通知的簡訊 intent）
2. 刪除候位
3. 呼叫／重新呼叫（回傳呼叫簡訊 intent）
4. 重新發送順位通知
5. 現場直接入場（不經過候位名單）

簡訊不會由後端送出，前端拿到 uri 後交給裝置開啟
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from schemas import (
    DirectAdmitRequest,
    NotificationIntentResponse,
    StateResponse,
    WaiterActionResponse,
    WaiterCreate,
    WaiterView,
)
from core.slot_manager import SlotManager
from core.exceptions import SlotNotFound, ValidationError, WaiterNotFound
from services.display_service import waiter_views
from services.notification_service import NotificationIntent
from api.dependencies import build_state_response, get_slot_manager, state_payload

router = APIRouter(prefix="/api/waiting-list", tags=["waiting-list"])
logger = logging.getLogger(__name__)


def _intent_response(intent: NotificationIntent) -> NotificationIntentResponse:
    return NotificationIntentResponse(
        phone_number=intent.phone_number,
        body=intent.body,
        uri=intent.uri
    )


@router.get("/view", response_model=List[WaiterView])
def list_waiter_views(manager: SlotManager = Depends(get_slot_manager)):
    """
    候位名單顯示資訊

    返回：
        順位、呼叫後經過時間（MM:SS）、是否已超過等待時間
    """
    return waiter_views(manager.state, manager.clock.now(), manager.recall_window_seconds)


@router.post("", response_model=WaiterActionResponse)
def add_waiter(
    payload: WaiterCreate,
    ios: bool = Query(False),
    manager: SlotManager = Depends(get_slot_manager)
):
    """
    登記候位

    流程：
    1. 加到名單最後面
    2. 產生「目前第 N 位」的簡訊 intent
    """
    try:
        state, intent = manager.enqueue_waiter(payload.name, payload.phone_number, ios=ios)
        return WaiterActionResponse(
            **state_payload(manager, state),
            notification=_intent_response(intent)
        )

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to add waiter: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/direct-admit", response_model=StateResponse)
def direct_admit(payload: DirectAdmitRequest, manager: SlotManager = Depends(get_slot_manager)):
    """
    現場直接入場（不加入候位名單）

    前置條件：
    - 至少有一個空位
    - 指定的座位存在且是空的
    """
    try:
        state = manager.direct_admit(payload.name, payload.phone_number, payload.slot_id)
        return build_state_response(manager, state)

    except SlotNotFound:
        raise HTTPException(status_code=404, detail="Slot not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to admit directly: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{waiter_id}", response_model=StateResponse)
def delete_waiter(waiter_id: str, manager: SlotManager = Depends(get_slot_manager)):
    """從候位名單刪除（不限第一位）"""
    try:
        state = manager.dequeue_waiter(waiter_id)
        return build_state_response(manager, state)

    except WaiterNotFound:
        raise HTTPException(status_code=404, detail="Waiter not found")
    except Exception as e:
        logger.error(f"Failed to delete waiter: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{waiter_id}/notify", response_model=WaiterActionResponse)
def notify_waiter(
    waiter_id: str,
    ios: bool = Query(False),
    manager: SlotManager = Depends(get_slot_manager)
):
    """
    呼叫候位者（輪到了）

    重新呼叫也走這裡：notified_at 會被更新，等待計時重新開始
    """
    try:
        state, intent = manager.notify(waiter_id, ios=ios)
        return WaiterActionResponse(
            **state_payload(manager, state),
            notification=_intent_response(intent)
        )

    except WaiterNotFound:
        raise HTTPException(status_code=404, detail="Waiter not found")
    except Exception as e:
        logger.error(f"Failed to notify waiter: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{waiter_id}/waiting-notice", response_model=NotificationIntentResponse)
def send_waiting_notice(
    waiter_id: str,
    ios: bool = Query(False),
    manager: SlotManager = Depends(get_slot_manager)
):
    """重新發送「目前第 N 位」通知（不改變狀態）"""
    try:
        return _intent_response(manager.send_waiting_notice(waiter_id, ios=ios))

    except WaiterNotFound:
        raise HTTPException(status_code=404, detail="Waiter not found")
    except Exception as e:
        logger.error(f"Failed to build waiting notice: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
