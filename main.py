from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager, suppress
import asyncio
import logging

from database import Base, engine, SessionLocal, settings
from models import StoredState  # noqa: F401  註冊 stored_states table
from core.change_feed import ChangeFeed
from core.slot_manager import SlotManager
from core.session_guard import SessionGuard, run_session_guard
from core.state_store import StateStore
from api import state, slots, waiting_list, snapshots, session

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def build_services(session_factory, config=settings):
    """
    建立並串起核心元件

    流程：
    1. StateStore 從 DB 載入狀態（格式錯誤會自動重置）
    2. ChangeFeed 註冊為 StateStore 的 listener（長輪詢用）
    3. SlotManager 包住 StateStore
    4. SessionGuard 逾時時呼叫 SlotManager.force_reset

    返回：
        (SlotManager, SessionGuard, ChangeFeed)
    """
    store = StateStore(
        session_factory,
        key=config.state_key,
        default_slot_count=config.default_slot_count
    )
    store.load()
    if store.load_warning:
        logger.warning(store.load_warning)

    feed = ChangeFeed(store.version)
    store.subscribe(feed.publish)

    manager = SlotManager(
        store,
        max_slot_count=config.max_slot_count,
        organization_name=config.organization_name,
        recall_window_seconds=config.recall_window_seconds,
        timezone_name=config.timezone
    )
    guard = SessionGuard(
        lambda: manager.force_reset(reason="session_expired"),
        inactivity_timeout=config.inactivity_timeout_seconds,
        warning_window=config.warning_window_seconds
    )
    return manager, guard, feed


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表、載入狀態、啟動 session guard ticker
    Base.metadata.create_all(bind=engine)
    manager, guard, feed = build_services(SessionLocal)
    app.state.slot_manager = manager
    app.state.session_guard = guard
    app.state.change_feed = feed
    ticker = asyncio.create_task(
        run_session_guard(guard, settings.session_check_interval_seconds)
    )
    yield
    # Shutdown: 停止 ticker
    ticker.cancel()
    with suppress(asyncio.CancelledError):
        await ticker


app = FastAPI(
    title="Experience Slot API",
    description="Backend API for slot admission, waiting list and session safety of a staffed experience program",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(state.router)
app.include_router(slots.router)
app.include_router(waiting_list.router)
app.include_router(snapshots.router)
app.include_router(session.router)


@app.get("/")
def root():
    return {"message": "Experience Slot API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
