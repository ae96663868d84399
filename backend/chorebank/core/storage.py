import logging
from threading import Lock

from fastapi import Depends, HTTPException, status
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from chorebank.core.migrations import RunMigrations
from chorebank.db import GetDb

logger = logging.getLogger("app.storage")


def _MissingTables(db: Session, tables: list) -> list[str]:
    inspector = inspect(db.get_bind())
    return [
        f"{table.__table__.schema}.{table.__tablename__}"
        for table in tables
        if not inspector.has_table(table.__tablename__, schema=table.__table__.schema)
    ]


def BuildStorageReadyCheck(area: str, tables: list):
    """Router dependency that runs migrations once when an area's tables are missing."""
    lock = Lock()
    state = {"ready": False}

    def _EnsureStorageReady(db: Session = Depends(GetDb)) -> None:
        if state["ready"]:
            return

        with lock:
            if state["ready"]:
                return
            missing = _MissingTables(db, tables)
            if not missing:
                state["ready"] = True
                return

            logger.info("%s storage missing tables=%s", area, ",".join(missing))
            try:
                RunMigrations()
            except Exception:  # noqa: BLE001
                logger.exception("%s storage migration failed", area)

            missing = _MissingTables(db, tables)
            if missing:
                logger.error("%s storage still missing tables=%s", area, ",".join(missing))
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail=f"{area.capitalize()} storage not initialized. Run alembic upgrade head.",
                )
            state["ready"] = True

    return _EnsureStorageReady
