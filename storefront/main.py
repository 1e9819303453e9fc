# storefront/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from storefront.api import register_routers
from storefront.data.database import Base, engine
from storefront.utils.logging import get_logger

# IMPORT WSZYSTKICH MODELI PRZED CREATE_ALL
import storefront.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db(bind=engine):
    logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=bind)
        logger.info("Database tables ready")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront Fulfillment Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    return register_routers(app)


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
