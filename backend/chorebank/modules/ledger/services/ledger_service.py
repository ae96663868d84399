from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from chorebank.core.errors import ValidationError
from chorebank.modules.ledger.services.planning import (
    STATUS_PAID,
    STATUS_REJECTED,
    TRANSACTION_STATUSES,
    TRANSACTION_TYPES,
    TYPE_ADJUSTMENT,
    TYPE_ADVANCE,
    TYPE_EARNING,
    TYPE_GOAL_ALLOCATION,
    TYPE_WITHDRAWAL_REQUEST,
    AssertIntegerCents,
    AssertNonEmptyString,
    AssertPositiveCents,
    LedgerMutation,
    LedgerReadSet,
    PlanGoalRelease,
    PlanLedgerMutation,
    PlanWithdrawalSettlement,
)
from chorebank.modules.ledger.services.store import (
    LedgerStore,
    NewDocumentId,
    ReadProfile,
    ReadTaskForPayment,
    ReadTransaction,
)

logger = logging.getLogger("ledger")


@dataclass(frozen=True)
class LedgerMutationResult:
    TransactionId: str
    NextBalanceCents: int


def ApplyLedgerMutation(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    memo: str,
    amount_cents_delta: int,
    transaction_type: str,
    transaction_amount_cents: int | None = None,
    status: str | None = None,
    category: str | None = None,
    task_id: str | None = None,
    goal_id: str | None = None,
    lock_task_as_paid: bool = False,
) -> LedgerMutationResult:
    """Apply one balance change and append its ledger entry atomically.

    Every balance-affecting operation funnels through here. Input is
    validated before the store is touched; the profile (and task, when
    ``lock_task_as_paid`` is set) is read before anything is written.
    """
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_profile_id = AssertNonEmptyString(profile_id, "profileId")
    safe_memo = AssertNonEmptyString(memo, "memo")
    safe_delta = AssertIntegerCents(amount_cents_delta, "amountCentsDelta")

    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Unsupported transaction type: {transaction_type}")
    if safe_delta == 0 and transaction_type != TYPE_WITHDRAWAL_REQUEST:
        raise ValidationError("amountCentsDelta cannot be zero.")
    if status is not None and status not in TRANSACTION_STATUSES:
        raise ValidationError(f"Unsupported transaction status: {status}")
    if lock_task_as_paid and not task_id:
        raise ValidationError("taskId is required to lock a task as paid.")

    mutation = LedgerMutation(
        HouseholdId=safe_household_id,
        ProfileId=safe_profile_id,
        Memo=safe_memo,
        AmountCentsDelta=safe_delta,
        Type=transaction_type,
        TransactionAmountCents=(
            None
            if transaction_amount_cents is None
            else AssertIntegerCents(transaction_amount_cents, "transactionAmountCents")
        ),
        Status=status,
        Category=category,
        TaskId=task_id,
        GoalId=goal_id,
        LockTaskAsPaid=lock_task_as_paid,
    )
    transaction_id = NewDocumentId()

    def _Read(session: Session) -> LedgerReadSet:
        profile = ReadProfile(
            session,
            mutation.HouseholdId,
            mutation.ProfileId,
            include_goals=mutation.Type == TYPE_GOAL_ALLOCATION,
        )
        task = None
        if mutation.LockTaskAsPaid:
            task = ReadTaskForPayment(session, mutation.HouseholdId, mutation.ProfileId, mutation.TaskId)
        return LedgerReadSet(Profile=profile, Task=task)

    write_set = store.ApplyMutation(
        _Read,
        lambda read_set: PlanLedgerMutation(mutation, read_set, transaction_id),
    )
    logger.info(
        "ledger entry type=%s household=%s profile=%s delta=%s logged=%s balance=%s id=%s",
        mutation.Type,
        mutation.HouseholdId,
        mutation.ProfileId,
        mutation.AmountCentsDelta,
        mutation.LoggedAmountCents,
        write_set.NextBalanceCents,
        write_set.TransactionId,
    )
    return LedgerMutationResult(
        TransactionId=write_set.TransactionId,
        NextBalanceCents=write_set.NextBalanceCents,
    )


def RecordTaskPayment(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    task_id: str,
    amount_cents: int,
    memo: str,
) -> LedgerMutationResult:
    safe_task_id = AssertNonEmptyString(task_id, "taskId")
    safe_amount_cents = AssertPositiveCents(amount_cents, "amountCents")
    return ApplyLedgerMutation(
        store,
        household_id=household_id,
        profile_id=profile_id,
        memo=memo,
        amount_cents_delta=safe_amount_cents,
        transaction_type=TYPE_EARNING,
        task_id=safe_task_id,
        lock_task_as_paid=True,
    )


def RecordAdvance(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    amount_cents: int,
    memo: str,
    category: str,
) -> LedgerMutationResult:
    safe_amount_cents = AssertPositiveCents(amount_cents, "amountCents")
    safe_category = AssertNonEmptyString(category, "category")
    return ApplyLedgerMutation(
        store,
        household_id=household_id,
        profile_id=profile_id,
        memo=memo,
        amount_cents_delta=-safe_amount_cents,
        transaction_type=TYPE_ADVANCE,
        category=safe_category,
    )


def RecordManualAdjustment(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    amount_cents: int,
    memo: str,
) -> LedgerMutationResult:
    return ApplyLedgerMutation(
        store,
        household_id=household_id,
        profile_id=profile_id,
        memo=memo,
        amount_cents_delta=amount_cents,
        transaction_type=TYPE_ADJUSTMENT,
    )


def RecordWithdrawalRequest(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    amount_cents: int,
    memo: str,
) -> LedgerMutationResult:
    safe_amount_cents = AssertPositiveCents(amount_cents, "amountCents")
    # The balance is only debited when the request is finalized.
    return ApplyLedgerMutation(
        store,
        household_id=household_id,
        profile_id=profile_id,
        memo=memo,
        amount_cents_delta=0,
        transaction_amount_cents=safe_amount_cents,
        transaction_type=TYPE_WITHDRAWAL_REQUEST,
    )


def RecordGoalAllocation(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    goal_id: str,
    amount_cents: int,
    memo: str = "Transfer to Goal",
) -> LedgerMutationResult:
    safe_amount_cents = AssertPositiveCents(amount_cents, "amountCents")
    safe_goal_id = AssertNonEmptyString(goal_id, "goalId")
    return ApplyLedgerMutation(
        store,
        household_id=household_id,
        profile_id=profile_id,
        memo=memo,
        amount_cents_delta=-safe_amount_cents,
        transaction_type=TYPE_GOAL_ALLOCATION,
        goal_id=safe_goal_id,
    )


def _SettleWithdrawal(
    store: LedgerStore,
    household_id: str,
    profile_id: str,
    transaction_id: str,
    target_status: str,
    amount_cents: int | None,
) -> LedgerMutationResult:
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_profile_id = AssertNonEmptyString(profile_id, "profileId")
    safe_transaction_id = AssertNonEmptyString(transaction_id, "transactionId")
    safe_amount_cents = None if amount_cents is None else AssertPositiveCents(amount_cents, "amountCents")

    def _Read(session: Session) -> LedgerReadSet:
        profile = ReadProfile(session, safe_household_id, safe_profile_id)
        pending = ReadTransaction(session, safe_household_id, safe_transaction_id)
        return LedgerReadSet(Profile=profile, Transaction=pending)

    write_set = store.ApplyMutation(
        _Read,
        lambda read_set: PlanWithdrawalSettlement(read_set, target_status, safe_amount_cents),
    )
    logger.info(
        "withdrawal settled status=%s household=%s profile=%s id=%s balance=%s",
        target_status,
        safe_household_id,
        safe_profile_id,
        safe_transaction_id,
        write_set.NextBalanceCents,
    )
    return LedgerMutationResult(
        TransactionId=write_set.TransactionId,
        NextBalanceCents=write_set.NextBalanceCents,
    )


def FinalizeWithdrawal(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    transaction_id: str,
    amount_cents: int | None = None,
) -> LedgerMutationResult:
    return _SettleWithdrawal(store, household_id, profile_id, transaction_id, STATUS_PAID, amount_cents)


def RejectWithdrawal(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    transaction_id: str,
) -> LedgerMutationResult:
    return _SettleWithdrawal(store, household_id, profile_id, transaction_id, STATUS_REJECTED, None)


def ReleaseSavingsGoal(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    goal_id: str,
) -> LedgerMutationResult:
    """Delete a goal, returning anything saved in it to the balance."""
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_profile_id = AssertNonEmptyString(profile_id, "profileId")
    safe_goal_id = AssertNonEmptyString(goal_id, "goalId")
    transaction_id = NewDocumentId()

    def _Read(session: Session) -> LedgerReadSet:
        return LedgerReadSet(Profile=ReadProfile(session, safe_household_id, safe_profile_id, include_goals=True))

    write_set = store.ApplyMutation(
        _Read,
        lambda read_set: PlanGoalRelease(read_set, safe_goal_id, transaction_id),
    )
    logger.info(
        "savings goal released household=%s profile=%s goal=%s refund_id=%s balance=%s",
        safe_household_id,
        safe_profile_id,
        safe_goal_id,
        write_set.TransactionId or "-",
        write_set.NextBalanceCents,
    )
    return LedgerMutationResult(
        TransactionId=write_set.TransactionId,
        NextBalanceCents=write_set.NextBalanceCents,
    )
