# storefront/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.utils.settings import (
    DATABASE_URL,
    DB_POOL_TIMEOUT_SECONDS,
    DB_STATEMENT_TIMEOUT_MS,
)

Base = declarative_base()


def engine_options(url: str) -> dict:
    #kazde zapytanie ma limit czasu, nic nie wisi w nieskonczonosc
    if url.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": DB_STATEMENT_TIMEOUT_MS / 1000,
            },
        }

    timeout = DB_STATEMENT_TIMEOUT_MS
    return {
        "pool_pre_ping": True,
        "pool_timeout": DB_POOL_TIMEOUT_SECONDS,
        "connect_args": {
            "options": f"-c statement_timeout={timeout} -c lock_timeout={timeout}",
        },
    }


engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
