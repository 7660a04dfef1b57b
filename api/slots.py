"""
Slot API Endpoints

職責：
1. 入場（一般／候位第一位）
2. 結束體驗
3. 調整座位數量
4. 查詢空位與座位卡片資訊
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
import logging

from schemas import AdmitRequest, Slot, SlotCountUpdate, SlotView, StateResponse
from core.slot_manager import SlotManager
from core.exceptions import SlotNotFound, ValidationError
from services.display_service import slot_views
from api.dependencies import build_state_response, get_slot_manager

router = APIRouter(prefix="/api/slots", tags=["slots"])
logger = logging.getLogger(__name__)


@router.get("/available", response_model=List[Slot])
def list_available_slots(manager: SlotManager = Depends(get_slot_manager)):
    """目前的空位（直接入場時選座位用）"""
    return manager.available_slots()


@router.get("/view", response_model=List[SlotView])
def list_slot_views(manager: SlotManager = Depends(get_slot_manager)):
    """
    座位卡片資訊

    返回：
        每個座位的號碼、體驗者、經過時間（HH:MM:SS）、主要按鈕動作
    """
    return slot_views(manager.state, manager.clock.now())


@router.put("/count", response_model=StateResponse)
def update_slot_count(
    payload: SlotCountUpdate,
    manager: SlotManager = Depends(get_slot_manager)
):
    """
    調整座位數量

    前置條件：
    - 1 <= count <= 50
    - 縮減時，被刪掉的座位不能有人（否則整個拒絕）
    """
    try:
        state = manager.resize(payload.count)
        return build_state_response(manager, state)

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to resize slots: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{slot_id}/admit", response_model=StateResponse)
def admit_participant(
    slot_id: int,
    payload: AdmitRequest,
    manager: SlotManager = Depends(get_slot_manager)
):
    """
    入場

    參數：
        slot_id: 座位 id（0-based）
        payload.name: 體驗者姓名（from_waitlist=True 時忽略）
        payload.memo: 備註
        payload.from_waitlist: 讓候位名單第一位入場

    注意：
        from_waitlist=True 但名單是空的 -> 狀態不變，version 不變
    """
    try:
        state = manager.admit(
            slot_id,
            payload.name,
            payload.memo,
            from_waitlist=payload.from_waitlist
        )
        return build_state_response(manager, state)

    except SlotNotFound:
        raise HTTPException(status_code=404, detail="Slot not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to admit participant: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{slot_id}/release", response_model=StateResponse)
def release_slot(slot_id: int, manager: SlotManager = Depends(get_slot_manager)):
    """
    結束體驗

    效果：
    - 座位清空
    - 對應的進行中紀錄填上離場時間
    """
    try:
        state = manager.release(slot_id)
        return build_state_response(manager, state)

    except SlotNotFound:
        raise HTTPException(status_code=404, detail="Slot not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to release slot: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
