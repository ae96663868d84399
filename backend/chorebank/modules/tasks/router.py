import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from chorebank.core.errors import HttpStatusForError, LedgerError
from chorebank.core.storage import BuildStorageReadyCheck
from chorebank.db import GetDb
from chorebank.modules.ledger.services.store import GetLedgerStore, LedgerStore
from chorebank.modules.tasks.models import Task
from chorebank.modules.tasks.schemas import TaskBoost, TaskCreate, TaskOut, TaskStatusUpdate
from chorebank.modules.tasks.services import BoostTask, CreateTask, GetTask, TaskRecord, UpdateTaskStatus

logger = logging.getLogger("tasks")

EnsureTasksStorageReady = BuildStorageReadyCheck("tasks", [Task])

router = APIRouter(
    prefix="/api/households/{household_id}/tasks",
    tags=["tasks"],
    dependencies=[Depends(EnsureTasksStorageReady)],
)


def _handle_db_error(exc: Exception) -> None:
    logger.exception("tasks database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Tasks storage not initialized. Run alembic upgrade head.",
    ) from exc


def _handle_task_error(exc: LedgerError) -> None:
    raise HTTPException(status_code=HttpStatusForError(exc), detail=str(exc)) from exc


def _BuildTaskOut(record: TaskRecord) -> TaskOut:
    return TaskOut(
        TaskId=record.TaskId,
        HouseholdId=record.HouseholdId,
        Name=record.Name,
        AssigneeId=record.AssigneeId,
        Status=record.Status,
        ValueCents=record.ValueCents,
        BonusCents=record.BonusCents,
        RejectionComment=record.RejectionComment,
    )


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def AddTask(
    household_id: str,
    payload: TaskCreate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> TaskOut:
    try:
        record = CreateTask(
            store,
            household_id=household_id,
            name=payload.Name,
            value_cents=payload.ValueCents,
            assignee_id=payload.AssigneeId,
            task_id=payload.TaskId,
        )
    except LedgerError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildTaskOut(record)


@router.get("/{task_id}", response_model=TaskOut)
def ReadTask(
    household_id: str,
    task_id: str,
    profile_id: str | None = None,
    db: Session = Depends(GetDb),
) -> TaskOut:
    try:
        return _BuildTaskOut(GetTask(db, household_id, task_id, profile_id=profile_id))
    except LedgerError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/{task_id}/status", response_model=TaskOut)
def ChangeTaskStatus(
    household_id: str,
    task_id: str,
    payload: TaskStatusUpdate,
    store: LedgerStore = Depends(GetLedgerStore),
) -> TaskOut:
    try:
        record = UpdateTaskStatus(
            store,
            household_id=household_id,
            task_id=task_id,
            status=payload.Status,
            profile_id=payload.ProfileId,
            rejection_comment=payload.RejectionComment,
        )
    except LedgerError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildTaskOut(record)


@router.post("/{task_id}/boost", response_model=TaskOut)
def AddTaskBonus(
    household_id: str,
    task_id: str,
    payload: TaskBoost,
    store: LedgerStore = Depends(GetLedgerStore),
) -> TaskOut:
    try:
        record = BoostTask(
            store,
            household_id=household_id,
            task_id=task_id,
            bonus_cents_delta=payload.BonusCentsDelta,
            assignee_id=payload.AssigneeId,
        )
    except LedgerError as exc:
        _handle_task_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
    return _BuildTaskOut(record)
