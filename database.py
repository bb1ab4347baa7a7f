from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache, wraps
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./absurd_room.db"
    max_name_length: int = 20
    options_per_round: int = 3
    room_code_attempts: int = 20
    allow_resubmission: bool = True
    identity_dir: str = ".absurd_room"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("database_url")
    @classmethod
    def database_url_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("database_url must be set (env DATABASE_URL or .env)")
        return value.strip()


@lru_cache()
def get_settings():
    return Settings()


Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """
    依照 database_url 建立 Engine

    SQLite 需要 check_same_thread=False（FastAPI 會在 threadpool 裡跑同步 endpoint）。
    In-memory SQLite 額外用 StaticPool，讓所有連線共用同一個資料庫。
    """
    connect_args = {}
    engine_kwargs = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            engine_kwargs["poolclass"] = StaticPool

    return create_engine(database_url, connect_args=connect_args, **engine_kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def _write(db: Session, ...):
            db.add(...)
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


def get_store(request: Request):
    """
    FastAPI dependency：提供 lifespan 裡建立的 Room Store

    Store 每個 process 只建立一次，這裡只是取出來
    """
    return request.app.state.store
