from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from chorebank.core.errors import ConflictError, NotFoundError, ValidationError
from chorebank.modules.ledger.services.planning import (
    TASK_STATUS_PAID,
    AssertIntegerCents,
    AssertNonEmptyString,
)
from chorebank.modules.ledger.services.store import FindTaskRow, LedgerStore, NewDocumentId
from chorebank.modules.tasks.models import Task

logger = logging.getLogger("tasks")

TASK_STATUS_DRAFT = "DRAFT"
TASK_STATUS_OPEN = "OPEN"
TASK_STATUS_ASSIGNED = "ASSIGNED"
TASK_STATUS_PENDING_APPROVAL = "PENDING_APPROVAL"
TASK_STATUS_PENDING_PAYMENT = "PENDING_PAYMENT"
TASK_STATUS_REJECTED = "REJECTED"
TASK_STATUS_DELETED = "DELETED"
TASK_STATUSES = frozenset(
    {
        TASK_STATUS_DRAFT,
        TASK_STATUS_OPEN,
        TASK_STATUS_ASSIGNED,
        TASK_STATUS_PENDING_APPROVAL,
        TASK_STATUS_PENDING_PAYMENT,
        TASK_STATUS_PAID,
        TASK_STATUS_REJECTED,
        TASK_STATUS_DELETED,
    }
)


@dataclass(frozen=True)
class TaskRecord:
    TaskId: str
    HouseholdId: str
    Name: str
    AssigneeId: str | None
    Status: str
    ValueCents: int
    BonusCents: int = 0
    RejectionComment: str | None = None
    StorageProfileId: str | None = None


def _BuildRecord(task: Task) -> TaskRecord:
    return TaskRecord(
        TaskId=task.TaskId,
        HouseholdId=task.HouseholdId,
        Name=task.Name,
        AssigneeId=task.AssigneeId,
        Status=task.Status,
        ValueCents=int(task.ValueCents or 0),
        BonusCents=int(task.BonusCents or 0),
        RejectionComment=task.RejectionComment,
        StorageProfileId=task.StorageProfileId,
    )


def CreateTask(
    store: LedgerStore,
    *,
    household_id: str,
    name: str,
    value_cents: int = 0,
    assignee_id: str | None = None,
    task_id: str | None = None,
) -> TaskRecord:
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_name = AssertNonEmptyString(name, "name")
    safe_value_cents = AssertIntegerCents(value_cents, "valueCents")
    if safe_value_cents < 0:
        raise ValidationError("valueCents cannot be negative.")
    safe_assignee_id = None if assignee_id is None else AssertNonEmptyString(assignee_id, "assigneeId")
    safe_task_id = NewDocumentId() if task_id is None else AssertNonEmptyString(task_id, "taskId")

    def _Work(session: Session) -> TaskRecord:
        existing, _ = FindTaskRow(session, safe_household_id, None, safe_task_id)
        if existing is not None:
            raise ConflictError("Task already exists.")
        task = Task(
            HouseholdId=safe_household_id,
            TaskId=safe_task_id,
            StorageProfileId=None,
            Name=safe_name,
            AssigneeId=safe_assignee_id,
            Status=TASK_STATUS_ASSIGNED if safe_assignee_id else TASK_STATUS_OPEN,
            ValueCents=safe_value_cents,
            BonusCents=0,
        )
        session.add(task)
        return _BuildRecord(task)

    record = store.RunTransaction(_Work)
    logger.info("task created household=%s task=%s assignee=%s", safe_household_id, safe_task_id, safe_assignee_id)
    return record


def GetTask(db: Session, household_id: str, task_id: str, profile_id: str | None = None) -> TaskRecord:
    task, _ = FindTaskRow(db, household_id, profile_id, task_id)
    if task is None:
        raise NotFoundError("Task not found.")
    return _BuildRecord(task)


def UpdateTaskStatus(
    store: LedgerStore,
    *,
    household_id: str,
    task_id: str,
    status: str,
    profile_id: str | None = None,
    rejection_comment: str | None = None,
) -> TaskRecord:
    """Move a task through its workflow. PAID is reserved for the ledger."""
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_task_id = AssertNonEmptyString(task_id, "taskId")
    if status not in TASK_STATUSES:
        raise ValidationError(f"Unsupported task status: {status}")
    if status == TASK_STATUS_PAID:
        raise ConflictError("Tasks are marked paid by recording a task payment.")

    def _Work(session: Session) -> TaskRecord:
        task, _ = FindTaskRow(session, safe_household_id, profile_id, safe_task_id)
        if task is None:
            raise NotFoundError("Task not found.")
        if task.Status == TASK_STATUS_PAID:
            raise ConflictError("Task is already paid.")
        task.Status = status
        if rejection_comment is not None:
            task.RejectionComment = rejection_comment
        task.UpdatedAt = func.now()
        return _BuildRecord(task)

    record = store.RunTransaction(_Work)
    logger.info("task status updated household=%s task=%s status=%s", safe_household_id, safe_task_id, status)
    return record


def BoostTask(
    store: LedgerStore,
    *,
    household_id: str,
    task_id: str,
    bonus_cents_delta: int,
    assignee_id: str,
) -> TaskRecord:
    """Add (or with a negative delta, take back) bonus cents on a task."""
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_task_id = AssertNonEmptyString(task_id, "taskId")
    safe_assignee_id = AssertNonEmptyString(assignee_id, "assigneeId")
    safe_delta = AssertIntegerCents(bonus_cents_delta, "bonusCentsDelta")
    if safe_delta == 0:
        raise ValidationError("bonusCentsDelta cannot be zero.")

    def _Work(session: Session) -> TaskRecord:
        task, _ = FindTaskRow(session, safe_household_id, safe_assignee_id, safe_task_id)
        if task is None:
            raise NotFoundError("Task not found.")
        if task.Status == TASK_STATUS_PAID:
            raise ConflictError("Task is already paid.")
        task.BonusCents = int(task.BonusCents or 0) + safe_delta
        task.UpdatedAt = func.now()
        return _BuildRecord(task)

    record = store.RunTransaction(_Work)
    logger.info(
        "task boosted household=%s task=%s delta=%s bonus=%s",
        safe_household_id,
        safe_task_id,
        safe_delta,
        record.BonusCents,
    )
    return record
