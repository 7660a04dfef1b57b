"""
API 共用 dependency 與回應組裝

SlotManager / SessionGuard / ChangeFeed 在 lifespan 建立後放在 app.state，
測試時可用 app.dependency_overrides 換掉
"""
from typing import Optional

from fastapi import Request

from schemas import AppState, StateResponse
from core.change_feed import ChangeFeed
from core.slot_manager import SlotManager
from core.session_guard import SessionGuard
from services.report_service import has_reportable_data
from services.stats_service import compute_stats


def get_slot_manager(request: Request) -> SlotManager:
    return request.app.state.slot_manager


def get_session_guard(request: Request) -> SessionGuard:
    return request.app.state.session_guard


def get_change_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


def state_payload(manager: SlotManager, state: Optional[AppState] = None) -> dict:
    """StateResponse 的共用欄位（version、統計、報表可否下載、持久化警告）"""
    store = manager.store
    state = state if state is not None else store.state
    return {
        "version": store.version,
        "state": state,
        "stats": compute_stats(state, manager.clock.now(), manager.timezone_name),
        "reportable": has_reportable_data(state),
        "persistence_warning": store.last_persist_error,
        "load_warning": store.load_warning,
    }


def build_state_response(manager: SlotManager, state: Optional[AppState] = None) -> StateResponse:
    return StateResponse(**state_payload(manager, state))
