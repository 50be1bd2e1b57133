from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings, SettingsConfigDict
from fastapi import Request
from functools import lru_cache, wraps
from typing import Optional
import logging

from core.exceptions import TransientStorageError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./ensemble.db"
    db_pool_timeout: int = 30
    scheduler_enabled: bool = True
    scheduler_interval_seconds: float = 60.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")


@lru_cache()
def get_settings():
    return Settings()


Base = declarative_base()


class Database:
    """
    資料庫連線資源（engine + session factory）

    明確建立後注入各元件（API、Scheduler），不使用 module-level 的全域 engine，
    測試可以為每個案例建立獨立的 Database。

    範例：
        database = Database(Settings(database_url="sqlite:///./test.db"))
        database.create_all()
        db = database.session()
    """

    def __init__(self, settings: Optional[Settings] = None, engine: Optional[Engine] = None):
        self.settings = settings or get_settings()
        self.engine = engine or self._create_engine(self.settings)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @staticmethod
    def _create_engine(settings: Settings) -> Engine:
        url = settings.database_url
        if url.startswith("sqlite"):
            # SQLite 需要 check_same_thread=False：Scheduler thread 和 request thread 共用同一個 DB
            # timeout 是等待寫入鎖的秒數，超過會變成 OperationalError
            return create_engine(
                url,
                connect_args={"check_same_thread": False, "timeout": settings.db_pool_timeout},
                pool_pre_ping=True
            )
        return create_engine(url, pool_pre_ping=True, pool_timeout=settings.db_pool_timeout)

    def session(self) -> Session:
        return self.SessionLocal()

    def transaction(self):
        """
        開一個 session 並開始 transaction（context manager）

        with database.transaction() as db:
            db.execute(...)
        # 正常離開 commit，異常時 rollback，最後關閉 session
        """
        return self.SessionLocal.begin()

    def create_all(self) -> None:
        # 確保所有 model 都已註冊到 Base.metadata
        import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request):
    """
    FastAPI dependency：提供 Database Session

    Database 由 main.create_app() 放在 app.state.database，
    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            team = Team(...)
            db.add(team)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 連線中斷、鎖等待逾時（OperationalError / DBAPIError）轉成 TransientStorageError
        - 其他異常會被重新拋出（讓上層處理）

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
        except IntegrityError:
            db.rollback()
            raise
        except (OperationalError, DBAPIError) as e:
            logger.error(f"Storage unavailable in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise TransientStorageError(str(e)) from e
        except Exception as e:
            logger.warning(f"Transaction rolled back in {func.__name__}: {e}")
            db.rollback()
            raise

    return wrapper
