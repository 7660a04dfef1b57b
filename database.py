from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./experience_slots.db"

    # 持久化 blob 的 key（整個 AppState 存成一筆）
    state_key: str = "experience-app-state"

    # 體驗座位（slot）數量
    default_slot_count: int = 3
    max_slot_count: int = 50

    # Session guard：30 分鐘無活動，最後 2 分鐘顯示警告
    inactivity_timeout_seconds: float = 30 * 60
    warning_window_seconds: float = 2 * 60
    session_check_interval_seconds: float = 1.0

    # 呼叫後 5 分鐘內未到場視為逾時
    recall_window_seconds: float = 5 * 60

    timezone: str = "Asia/Seoul"
    organization_name: str = "경상북도평생교육사협회 체험 프로그램"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# FastAPI 的同步 endpoint 跑在 threadpool，session guard ticker 跑在 event loop
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def write(db: Session, key: str, value: str):
            # 所有 DB 操作都在一個 transaction 內
            db.merge(StoredState(key=key, value=value))
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
