import logging

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from chorebank.db import GetEngine

router = APIRouter(prefix="/api", tags=["health"])
logger = logging.getLogger("core.health")


@router.get("/health")
async def api_health() -> dict:
    logger.debug("health check ok")
    return {"status": "ok"}


@router.get("/health/db")
def api_health_db() -> dict:
    try:
        engine = GetEngine()
    except RuntimeError:
        logger.exception("db check failed: missing database configuration")
        return {"status": "error", "detail": "database unavailable"}

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.debug("db check ok")
        return {"status": "ok"}
    except SQLAlchemyError:
        logger.exception("db check failed")
        return {"status": "error", "detail": "database unavailable"}
