"""Pure planning half of the ledger engine.

Every balance-affecting operation is split in two. The store gathers an
immutable read set (profile, goals, task, pending transaction) and the
functions here turn it into a write set without touching the database.
All precondition failures are raised here, so nothing has been written
when they surface.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from chorebank.core.errors import ConflictError, NotFoundError, ValidationError
from chorebank.modules.ledger.utils.money import DollarsToCents, IsCentsInRange, IsFiniteNumber, RoundCents

TYPE_EARNING = "EARNING"
TYPE_ADVANCE = "ADVANCE"
TYPE_ADJUSTMENT = "ADJUSTMENT"
TYPE_WITHDRAWAL_REQUEST = "WITHDRAWAL_REQUEST"
TYPE_GOAL_ALLOCATION = "GOAL_ALLOCATION"
TRANSACTION_TYPES = frozenset(
    {
        TYPE_EARNING,
        TYPE_ADVANCE,
        TYPE_ADJUSTMENT,
        TYPE_WITHDRAWAL_REQUEST,
        TYPE_GOAL_ALLOCATION,
    }
)

STATUS_PENDING = "PENDING"
STATUS_PAID = "PAID"
STATUS_REJECTED = "REJECTED"
TRANSACTION_STATUSES = frozenset({STATUS_PENDING, STATUS_PAID, STATUS_REJECTED})

TASK_STATUS_PAID = "PAID"
TASK_LOCATION_PROFILE = "profile"
TASK_LOCATION_ROOT = "root"


@dataclass(frozen=True)
class LedgerMutation:
    HouseholdId: str
    ProfileId: str
    Memo: str
    AmountCentsDelta: int
    Type: str
    TransactionAmountCents: int | None = None
    Status: str | None = None
    Category: str | None = None
    TaskId: str | None = None
    GoalId: str | None = None
    LockTaskAsPaid: bool = False

    @property
    def LoggedAmountCents(self) -> int:
        if self.TransactionAmountCents is None:
            return self.AmountCentsDelta
        return self.TransactionAmountCents


@dataclass(frozen=True)
class GoalView:
    GoalId: str
    Name: str
    TargetAmountCents: int
    CurrentAmountCents: int
    Status: str
    SortOrder: int = 0


@dataclass(frozen=True)
class ProfileView:
    HouseholdId: str
    ProfileId: str
    Name: str
    BalanceCents: int | None
    Balance: Decimal | float | None
    Goals: tuple[GoalView, ...] = ()
    Version: int | None = None

    @property
    def CurrentBalanceCents(self) -> int:
        return ReadBalanceCents(self.BalanceCents, self.Balance)


@dataclass(frozen=True)
class TaskView:
    RowId: int
    TaskId: str
    Location: str
    AssigneeId: str | None
    Status: str | None
    Version: int | None = None


@dataclass(frozen=True)
class TransactionView:
    TransactionId: str
    HouseholdId: str
    ProfileId: str
    Type: str
    Status: str
    AmountCents: int


@dataclass(frozen=True)
class LedgerReadSet:
    Profile: ProfileView
    Task: TaskView | None = None
    Transaction: TransactionView | None = None


@dataclass(frozen=True)
class BalanceWrite:
    HouseholdId: str
    ProfileId: str
    BalanceCents: int
    ExpectedVersion: int | None = None


@dataclass(frozen=True)
class GoalWrite:
    GoalId: str
    CurrentAmountCents: int
    Remove: bool = False


@dataclass(frozen=True)
class TransactionInsert:
    TransactionId: str
    HouseholdId: str
    ProfileId: str
    AmountCents: int
    Memo: str
    Type: str
    Status: str
    BalanceAfterCents: int
    Category: str | None = None
    TaskId: str | None = None
    GoalId: str | None = None


@dataclass(frozen=True)
class TransactionSettle:
    TransactionId: str
    Status: str
    BalanceAfterCents: int


@dataclass(frozen=True)
class TaskPaidWrite:
    RowId: int
    ExpectedVersion: int | None = None


@dataclass(frozen=True)
class LedgerWriteSet:
    Balance: BalanceWrite
    TransactionId: str
    Goal: GoalWrite | None = None
    NewTransaction: TransactionInsert | None = None
    SettledTransaction: TransactionSettle | None = None
    PaidTask: TaskPaidWrite | None = None

    @property
    def NextBalanceCents(self) -> int:
        return self.Balance.BalanceCents


def AssertNonEmptyString(value: object, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string.")
    return value.strip()


def AssertIntegerCents(value: object, field: str) -> int:
    if not IsFiniteNumber(value):
        raise ValidationError(f"{field} must be a finite number.")
    try:
        cents = RoundCents(value)
    except InvalidOperation as exc:
        raise ValidationError(f"{field} is out of range.") from exc
    if not IsCentsInRange(cents):
        raise ValidationError(f"{field} is out of range.")
    return cents


def AssertPositiveCents(value: object, field: str) -> int:
    cents = AssertIntegerCents(value, field)
    if cents <= 0:
        raise ValidationError(f"{field} must be a positive integer.")
    return cents


def ReadBalanceCents(balance_cents: object, balance: object) -> int:
    if IsFiniteNumber(balance_cents):
        return RoundCents(balance_cents)
    if IsFiniteNumber(balance):
        return DollarsToCents(balance)
    return 0


def DefaultStatus(transaction_type: str) -> str:
    return STATUS_PENDING if transaction_type == TYPE_WITHDRAWAL_REQUEST else STATUS_PAID


def LedgerImpactCents(transaction_type: str, status: str, amount_cents: int) -> int:
    """Signed effect a committed entry has had on the balance so far."""
    if transaction_type == TYPE_WITHDRAWAL_REQUEST:
        return -amount_cents if status == STATUS_PAID else 0
    return amount_cents


def _CheckBalanceInRange(balance_cents: int) -> int:
    if not IsCentsInRange(balance_cents):
        raise ConflictError("Resulting balance is out of range.")
    return balance_cents


def _FindGoal(goals: tuple[GoalView, ...], goal_id: str | None) -> GoalView:
    for goal in goals:
        if goal.GoalId == goal_id:
            return goal
    raise NotFoundError("Goal not found.")


def _CheckTaskPayable(task: TaskView | None, profile_id: str) -> TaskPaidWrite:
    if task is None:
        raise NotFoundError("Task not found.")
    if task.AssigneeId != profile_id:
        raise ConflictError("Task is not assigned to this child profile.")
    if task.Status == TASK_STATUS_PAID:
        raise ConflictError("Task is already paid.")
    return TaskPaidWrite(RowId=task.RowId, ExpectedVersion=task.Version)


def PlanLedgerMutation(
    mutation: LedgerMutation,
    read_set: LedgerReadSet,
    transaction_id: str,
) -> LedgerWriteSet:
    profile = read_set.Profile
    paid_task = None
    if mutation.LockTaskAsPaid:
        paid_task = _CheckTaskPayable(read_set.Task, mutation.ProfileId)

    next_balance_cents = _CheckBalanceInRange(profile.CurrentBalanceCents + mutation.AmountCentsDelta)

    goal_write = None
    if mutation.Type == TYPE_GOAL_ALLOCATION:
        goal = _FindGoal(profile.Goals, mutation.GoalId)
        goal_write = GoalWrite(
            GoalId=goal.GoalId,
            CurrentAmountCents=goal.CurrentAmountCents + abs(mutation.AmountCentsDelta),
        )

    return LedgerWriteSet(
        Balance=BalanceWrite(
            HouseholdId=mutation.HouseholdId,
            ProfileId=mutation.ProfileId,
            BalanceCents=next_balance_cents,
            ExpectedVersion=profile.Version,
        ),
        TransactionId=transaction_id,
        Goal=goal_write,
        NewTransaction=TransactionInsert(
            TransactionId=transaction_id,
            HouseholdId=mutation.HouseholdId,
            ProfileId=mutation.ProfileId,
            AmountCents=mutation.LoggedAmountCents,
            Memo=mutation.Memo,
            Type=mutation.Type,
            Status=mutation.Status or DefaultStatus(mutation.Type),
            BalanceAfterCents=next_balance_cents,
            Category=mutation.Category,
            TaskId=mutation.TaskId,
            GoalId=mutation.GoalId,
        ),
        PaidTask=paid_task,
    )


def PlanWithdrawalSettlement(
    read_set: LedgerReadSet,
    target_status: str,
    amount_cents: int | None = None,
) -> LedgerWriteSet:
    profile = read_set.Profile
    pending = read_set.Transaction
    if pending is None:
        raise NotFoundError("Transaction not found.")
    if pending.HouseholdId != profile.HouseholdId or pending.ProfileId != profile.ProfileId:
        raise ConflictError("Transaction does not belong to this profile.")
    if pending.Type != TYPE_WITHDRAWAL_REQUEST:
        raise ConflictError("Transaction is not a withdrawal request.")
    if pending.Status != STATUS_PENDING:
        raise ConflictError("Withdrawal request is not pending.")

    next_balance_cents = profile.CurrentBalanceCents
    if target_status == STATUS_PAID:
        settled_amount = pending.AmountCents if amount_cents is None else amount_cents
        if settled_amount != pending.AmountCents:
            raise ConflictError("Finalized amount does not match the requested amount.")
        next_balance_cents = _CheckBalanceInRange(next_balance_cents - settled_amount)
    elif target_status != STATUS_REJECTED:
        raise ValidationError(f"Unsupported withdrawal status: {target_status}")

    return LedgerWriteSet(
        Balance=BalanceWrite(
            HouseholdId=profile.HouseholdId,
            ProfileId=profile.ProfileId,
            BalanceCents=next_balance_cents,
            ExpectedVersion=profile.Version,
        ),
        TransactionId=pending.TransactionId,
        SettledTransaction=TransactionSettle(
            TransactionId=pending.TransactionId,
            Status=target_status,
            BalanceAfterCents=next_balance_cents,
        ),
    )


def PlanGoalRelease(read_set: LedgerReadSet, goal_id: str, transaction_id: str) -> LedgerWriteSet:
    profile = read_set.Profile
    goal = _FindGoal(profile.Goals, goal_id)
    refund_cents = max(goal.CurrentAmountCents, 0)
    next_balance_cents = _CheckBalanceInRange(profile.CurrentBalanceCents + refund_cents)

    refund = None
    if refund_cents > 0:
        refund = TransactionInsert(
            TransactionId=transaction_id,
            HouseholdId=profile.HouseholdId,
            ProfileId=profile.ProfileId,
            AmountCents=refund_cents,
            Memo=f"Refund from deleted goal: {goal.Name}",
            Type=TYPE_ADJUSTMENT,
            Status=STATUS_PAID,
            BalanceAfterCents=next_balance_cents,
        )

    return LedgerWriteSet(
        Balance=BalanceWrite(
            HouseholdId=profile.HouseholdId,
            ProfileId=profile.ProfileId,
            BalanceCents=next_balance_cents,
            ExpectedVersion=profile.Version,
        ),
        TransactionId=transaction_id if refund else "",
        Goal=GoalWrite(GoalId=goal.GoalId, CurrentAmountCents=0, Remove=True),
        NewTransaction=refund,
    )
