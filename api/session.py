"""
Session API Endpoints

前端把使用者活動（滑鼠移動、按鍵、點擊、捲動）轉送過來，
並定期查詢狀態決定是否顯示逾時警告與倒數
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from schemas import ActivityReport, SessionStatusResponse
from core.session_guard import SessionGuard
from core.exceptions import UnknownActivitySignal
from api.dependencies import get_session_guard

router = APIRouter(prefix="/api/session", tags=["session"])
logger = logging.getLogger(__name__)


@router.get("", response_model=SessionStatusResponse)
def get_session_status(guard: SessionGuard = Depends(get_session_guard)):
    """
    取得 session 狀態

    返回：
        - phase: ACTIVE / WARNING
        - seconds_until_warning: 距離顯示警告還有幾秒
        - countdown_remaining: WARNING 時剩餘秒數
    """
    return SessionStatusResponse(**guard.status())


@router.post("/activity", response_model=SessionStatusResponse)
def report_activity(payload: ActivityReport, guard: SessionGuard = Depends(get_session_guard)):
    """
    回報使用者活動

    注意：
        WARNING 狀態下會被忽略，只有 /continue 能解除警告
    """
    try:
        guard.record_activity(payload.signal)
        return SessionStatusResponse(**guard.status())

    except UnknownActivitySignal as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to record activity: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/continue", response_model=SessionStatusResponse)
def continue_session(guard: SessionGuard = Depends(get_session_guard)):
    """使用者按下「延長」，回到 ACTIVE 並重新計時"""
    guard.continue_session()
    return SessionStatusResponse(**guard.status())
