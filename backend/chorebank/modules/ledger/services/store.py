from __future__ import annotations

import logging
import uuid
from typing import Callable, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from chorebank.core.errors import NotFoundError, StoreConflictError
from chorebank.db import GetSessionFactory
from chorebank.modules.ledger.models import LedgerTransaction, Profile, SavingsGoal
from chorebank.modules.ledger.services.planning import (
    STATUS_PAID,
    STATUS_PENDING,
    STATUS_REJECTED,
    TASK_LOCATION_PROFILE,
    TASK_LOCATION_ROOT,
    TASK_STATUS_PAID,
    GoalView,
    LedgerReadSet,
    LedgerWriteSet,
    ProfileView,
    TaskView,
    TransactionView,
)
from chorebank.modules.ledger.utils.config import Settings
from chorebank.modules.ledger.utils.money import CentsToDollars
from chorebank.modules.tasks.models import Task

logger = logging.getLogger("ledger.store")

T = TypeVar("T")


def NewDocumentId() -> str:
    return uuid.uuid4().hex


class LedgerStore:
    """Transactional executor over a SQLAlchemy session factory.

    Each attempt runs in a fresh session and a single database transaction.
    Profiles and tasks carry a version column. The write phase compares it
    with the version the plan was built from and the flushed UPDATE checks it
    again, so a concurrent writer surfaces as StaleDataError and the whole
    attempt is replayed from fresh reads.
    Domain errors are never retried.
    """

    def __init__(self, session_factory: sessionmaker, max_attempts: int = 5):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.SessionFactory = session_factory
        self.MaxAttempts = max_attempts

    def RunTransaction(self, work: Callable[[Session], T]) -> T:
        for attempt in range(1, self.MaxAttempts + 1):
            session = self.SessionFactory()
            try:
                with session.begin():
                    result = work(session)
                return result
            except StaleDataError:
                logger.warning(
                    "ledger transaction conflict, retrying attempt=%s max_attempts=%s",
                    attempt,
                    self.MaxAttempts,
                )
            finally:
                session.close()

        logger.error("ledger transaction gave up after %s conflicting attempts", self.MaxAttempts)
        raise StoreConflictError(
            f"Ledger transaction aborted after {self.MaxAttempts} conflicting attempts."
        )

    def ApplyMutation(
        self,
        read: Callable[[Session], LedgerReadSet],
        plan: Callable[[LedgerReadSet], LedgerWriteSet],
    ) -> LedgerWriteSet:
        def _Work(session: Session) -> LedgerWriteSet:
            read_set = read(session)
            write_set = plan(read_set)
            ApplyWriteSet(session, write_set)
            return write_set

        return self.RunTransaction(_Work)


def GetLedgerStore() -> LedgerStore:
    return LedgerStore(GetSessionFactory(), max_attempts=Settings.MaxAttempts)


def LoadProfileRow(session: Session, household_id: str, profile_id: str, refresh: bool = False) -> Profile:
    profile = session.get(Profile, (household_id, profile_id), populate_existing=refresh)
    if profile is None:
        raise NotFoundError("Profile not found.")
    return profile


def LoadGoalRows(session: Session, household_id: str, profile_id: str) -> list[SavingsGoal]:
    return (
        session.query(SavingsGoal)
        .filter(SavingsGoal.HouseholdId == household_id, SavingsGoal.ProfileId == profile_id)
        .order_by(SavingsGoal.SortOrder, SavingsGoal.CreatedAt)
        .all()
    )


def BuildGoalView(goal: SavingsGoal) -> GoalView:
    return GoalView(
        GoalId=goal.GoalId,
        Name=goal.Name,
        TargetAmountCents=int(goal.TargetAmountCents),
        CurrentAmountCents=int(goal.CurrentAmountCents or 0),
        Status=goal.Status,
        SortOrder=goal.SortOrder or 0,
    )


def ReadProfile(
    session: Session,
    household_id: str,
    profile_id: str,
    include_goals: bool = False,
) -> ProfileView:
    profile = LoadProfileRow(session, household_id, profile_id)
    goals: tuple[GoalView, ...] = ()
    if include_goals:
        goals = tuple(BuildGoalView(goal) for goal in LoadGoalRows(session, household_id, profile_id))
    return ProfileView(
        HouseholdId=profile.HouseholdId,
        ProfileId=profile.ProfileId,
        Name=profile.Name,
        BalanceCents=profile.BalanceCents,
        Balance=profile.Balance,
        Goals=goals,
        Version=profile.Version,
    )


def _FirstTask(session: Session, household_id: str, task_id: str, location_filter) -> Task | None:
    return (
        session.query(Task)
        .filter(Task.HouseholdId == household_id, Task.TaskId == task_id, location_filter)
        .order_by(Task.Id)
        .first()
    )


def FindTaskRow(
    session: Session,
    household_id: str,
    profile_id: str | None,
    task_id: str,
) -> tuple[Task | None, str]:
    # Legacy per-profile rows shadow the root row with the same id.
    # TODO: drop the profile-scoped branch once imported rows are rewritten to the root location.
    if profile_id:
        task = _FirstTask(session, household_id, task_id, Task.StorageProfileId == profile_id)
        if task is not None:
            return task, TASK_LOCATION_PROFILE
    task = _FirstTask(session, household_id, task_id, Task.StorageProfileId.is_(None))
    return task, TASK_LOCATION_ROOT


def ReadTaskForPayment(
    session: Session,
    household_id: str,
    profile_id: str,
    task_id: str,
) -> TaskView | None:
    task, location = FindTaskRow(session, household_id, profile_id, task_id)
    if task is None:
        return None
    return TaskView(
        RowId=task.Id,
        TaskId=task.TaskId,
        Location=location,
        AssigneeId=task.AssigneeId,
        Status=task.Status,
        Version=task.Version,
    )


def ReadTransaction(session: Session, household_id: str, transaction_id: str) -> TransactionView | None:
    entry = session.get(LedgerTransaction, transaction_id)
    if entry is None or entry.HouseholdId != household_id:
        return None
    return TransactionView(
        TransactionId=entry.Id,
        HouseholdId=entry.HouseholdId,
        ProfileId=entry.ProfileId,
        Type=entry.Type,
        Status=entry.Status,
        AmountCents=int(entry.AmountCents),
    )


def _CheckVersion(row, expected_version: int | None) -> None:
    # Rows are reloaded from the database here, so this sees writes committed since the read phase.
    if expected_version is not None and row.Version != expected_version:
        raise StaleDataError(
            f"{type(row).__name__} changed since it was read (expected version {expected_version}, found {row.Version})"
        )


def ApplyWriteSet(session: Session, write_set: LedgerWriteSet) -> None:
    balance = write_set.Balance
    # Always rewritten, so the version check covers every ledger write.
    profile = LoadProfileRow(session, balance.HouseholdId, balance.ProfileId, refresh=True)
    _CheckVersion(profile, balance.ExpectedVersion)
    profile.BalanceCents = balance.BalanceCents
    profile.Balance = CentsToDollars(balance.BalanceCents)
    profile.UpdatedAt = func.now()

    if write_set.Goal is not None:
        goal = session.get(SavingsGoal, write_set.Goal.GoalId)
        if goal is None:
            raise NotFoundError("Goal not found.")
        if write_set.Goal.Remove:
            session.delete(goal)
        else:
            goal.CurrentAmountCents = write_set.Goal.CurrentAmountCents

    insert = write_set.NewTransaction
    if insert is not None:
        session.add(
            LedgerTransaction(
                Id=insert.TransactionId,
                HouseholdId=insert.HouseholdId,
                ProfileId=insert.ProfileId,
                AmountCents=insert.AmountCents,
                Amount=CentsToDollars(insert.AmountCents),
                Memo=insert.Memo,
                Type=insert.Type,
                Status=insert.Status,
                Category=insert.Category,
                TaskId=insert.TaskId,
                GoalId=insert.GoalId,
                BalanceAfterCents=insert.BalanceAfterCents,
                BalanceAfter=CentsToDollars(insert.BalanceAfterCents),
            )
        )

    settle = write_set.SettledTransaction
    if settle is not None:
        entry = session.get(LedgerTransaction, settle.TransactionId, populate_existing=True)
        if entry is None:
            raise NotFoundError("Transaction not found.")
        if entry.Status != STATUS_PENDING:
            raise StaleDataError(f"transaction {entry.Id} was settled concurrently")
        entry.Status = settle.Status
        entry.BalanceAfterCents = settle.BalanceAfterCents
        entry.BalanceAfter = CentsToDollars(settle.BalanceAfterCents)
        entry.UpdatedAt = func.now()
        if settle.Status == STATUS_PAID:
            entry.PaidAt = func.now()
        elif settle.Status == STATUS_REJECTED:
            entry.RejectedAt = func.now()

    if write_set.PaidTask is not None:
        task = session.get(Task, write_set.PaidTask.RowId, populate_existing=True)
        if task is None:
            raise NotFoundError("Task not found.")
        _CheckVersion(task, write_set.PaidTask.ExpectedVersion)
        task.Status = TASK_STATUS_PAID
        task.PaidAt = func.now()
        task.UpdatedAt = func.now()
