from decimal import Decimal

import pytest

from chorebank.core.errors import ConflictError, NotFoundError, ValidationError
from chorebank.modules.ledger.models import LedgerTransaction, Profile, SavingsGoal
from chorebank.modules.ledger.services import ledger_service
from chorebank.modules.ledger.services.planning import LedgerImpactCents
from chorebank.modules.tasks.models import Task


class _CountingStore:
    def __init__(self):
        self.calls = 0

    def ApplyMutation(self, read, plan):
        self.calls += 1
        raise AssertionError("store should not be touched")

    def RunTransaction(self, work):
        self.calls += 1
        raise AssertionError("store should not be touched")


def _Balance(session_factory, household_id="hh-1", profile_id="kid-1") -> int:
    with session_factory() as session:
        return session.get(Profile, (household_id, profile_id)).BalanceCents


def _Entries(session_factory, profile_id="kid-1") -> list[LedgerTransaction]:
    with session_factory() as session:
        entries = session.query(LedgerTransaction).filter(LedgerTransaction.ProfileId == profile_id).all()
        session.expunge_all()
        return entries


def _TaskStatus(session_factory, row_id: int) -> str:
    with session_factory() as session:
        return session.get(Task, row_id).Status


def test_task_payment_credits_balance_and_marks_task_paid(store, session_factory, seed_profile, seed_task):
    seed_profile(balance_cents=1000)
    row_id = seed_task()

    result = ledger_service.RecordTaskPayment(
        store,
        household_id="hh-1",
        profile_id="kid-1",
        task_id="task-1",
        amount_cents=250,
        memo="Feed the cat",
    )

    assert result.NextBalanceCents == 1250
    assert _Balance(session_factory) == 1250
    assert _TaskStatus(session_factory, row_id) == "PAID"
    [entry] = _Entries(session_factory)
    assert entry.Id == result.TransactionId
    assert (entry.Type, entry.Status, entry.AmountCents, entry.TaskId) == ("EARNING", "PAID", 250, "task-1")
    assert entry.BalanceAfterCents == 1250
    assert entry.Amount == Decimal("2.50")


def test_paying_same_task_twice_conflicts(store, session_factory, seed_profile, seed_task):
    seed_profile(balance_cents=0)
    seed_task()
    kwargs = dict(household_id="hh-1", profile_id="kid-1", task_id="task-1", amount_cents=250, memo="Chore")
    ledger_service.RecordTaskPayment(store, **kwargs)

    with pytest.raises(ConflictError, match="already paid"):
        ledger_service.RecordTaskPayment(store, **kwargs)

    assert _Balance(session_factory) == 250
    assert len(_Entries(session_factory)) == 1


def test_paying_task_assigned_elsewhere_writes_nothing(store, session_factory, seed_profile, seed_task):
    seed_profile(balance_cents=500)
    row_id = seed_task(assignee_id="kid-2")

    with pytest.raises(ConflictError, match="not assigned"):
        ledger_service.RecordTaskPayment(
            store, household_id="hh-1", profile_id="kid-1", task_id="task-1", amount_cents=100, memo="Chore"
        )

    assert _Balance(session_factory) == 500
    assert _Entries(session_factory) == []
    assert _TaskStatus(session_factory, row_id) == "PENDING_PAYMENT"


def test_task_payment_prefers_profile_scoped_task(store, session_factory, seed_profile, seed_task):
    seed_profile()
    root_row = seed_task(assignee_id="kid-1")
    legacy_row = seed_task(assignee_id="kid-1", storage_profile_id="kid-1")

    ledger_service.RecordTaskPayment(
        store, household_id="hh-1", profile_id="kid-1", task_id="task-1", amount_cents=100, memo="Chore"
    )

    assert _TaskStatus(session_factory, legacy_row) == "PAID"
    assert _TaskStatus(session_factory, root_row) == "PENDING_PAYMENT"


def test_task_payment_for_missing_task(store, seed_profile):
    seed_profile()
    with pytest.raises(NotFoundError, match="Task not found."):
        ledger_service.RecordTaskPayment(
            store, household_id="hh-1", profile_id="kid-1", task_id="nope", amount_cents=100, memo="Chore"
        )


def test_missing_profile_is_not_found(store):
    with pytest.raises(NotFoundError, match="Profile not found."):
        ledger_service.RecordManualAdjustment(
            store, household_id="hh-1", profile_id="ghost", amount_cents=100, memo="Bonus"
        )


def test_advance_debits_and_logs_negative_amount(store, session_factory, seed_profile):
    seed_profile(balance_cents=1000)

    result = ledger_service.RecordAdvance(
        store, household_id="hh-1", profile_id="kid-1", amount_cents=300, memo="Snacks", category="Food/Drinks"
    )

    assert result.NextBalanceCents == 700
    [entry] = _Entries(session_factory)
    assert (entry.Type, entry.AmountCents, entry.Category) == ("ADVANCE", -300, "Food/Drinks")


def test_advance_may_overdraw(store, seed_profile):
    seed_profile(balance_cents=100)
    result = ledger_service.RecordAdvance(
        store, household_id="hh-1", profile_id="kid-1", amount_cents=300, memo="Movie", category="Entertainment"
    )
    assert result.NextBalanceCents == -200


def test_legacy_dollar_balance_is_upgraded_to_cents(store, session_factory, seed_profile):
    seed_profile(balance_cents=None, balance=Decimal("12.34"))

    result = ledger_service.RecordManualAdjustment(
        store, household_id="hh-1", profile_id="kid-1", amount_cents=-34, memo="Correction"
    )

    assert result.NextBalanceCents == 1200
    with session_factory() as session:
        profile = session.get(Profile, ("hh-1", "kid-1"))
        assert profile.BalanceCents == 1200
        assert profile.Balance == Decimal("12.00")


def test_withdrawal_request_then_finalize(store, session_factory, seed_profile):
    seed_profile(balance_cents=1000)

    request = ledger_service.RecordWithdrawalRequest(
        store, household_id="hh-1", profile_id="kid-1", amount_cents=500, memo="Toy"
    )
    assert request.NextBalanceCents == 1000
    assert _Balance(session_factory) == 1000
    [pending] = _Entries(session_factory)
    assert (pending.Type, pending.Status, pending.AmountCents) == ("WITHDRAWAL_REQUEST", "PENDING", 500)

    final = ledger_service.FinalizeWithdrawal(
        store, household_id="hh-1", profile_id="kid-1", transaction_id=request.TransactionId, amount_cents=500
    )

    assert final.TransactionId == request.TransactionId
    assert final.NextBalanceCents == 500
    assert _Balance(session_factory) == 500
    [paid] = _Entries(session_factory)
    assert paid.Status == "PAID"
    assert paid.PaidAt is not None
    assert paid.BalanceAfterCents == 500


def test_withdrawal_cannot_be_finalized_twice(store, session_factory, seed_profile):
    seed_profile(balance_cents=1000)
    request = ledger_service.RecordWithdrawalRequest(
        store, household_id="hh-1", profile_id="kid-1", amount_cents=500, memo="Toy"
    )
    ledger_service.FinalizeWithdrawal(
        store, household_id="hh-1", profile_id="kid-1", transaction_id=request.TransactionId
    )

    with pytest.raises(ConflictError, match="not pending"):
        ledger_service.FinalizeWithdrawal(
            store, household_id="hh-1", profile_id="kid-1", transaction_id=request.TransactionId
        )
    assert _Balance(session_factory) == 500


def test_rejected_withdrawal_keeps_balance_and_cannot_be_finalized(store, session_factory, seed_profile):
    seed_profile(balance_cents=1000)
    request = ledger_service.RecordWithdrawalRequest(
        store, household_id="hh-1", profile_id="kid-1", amount_cents=500, memo="Toy"
    )

    result = ledger_service.RejectWithdrawal(
        store, household_id="hh-1", profile_id="kid-1", transaction_id=request.TransactionId
    )

    assert result.NextBalanceCents == 1000
    [entry] = _Entries(session_factory)
    assert entry.Status == "REJECTED"
    assert entry.RejectedAt is not None
    with pytest.raises(ConflictError):
        ledger_service.FinalizeWithdrawal(
            store, household_id="hh-1", profile_id="kid-1", transaction_id=request.TransactionId
        )


def test_finalize_checks_profile_ownership(store, session_factory, seed_profile):
    seed_profile(profile_id="kid-1", balance_cents=1000)
    seed_profile(profile_id="kid-2", balance_cents=1000, name="Alex")
    request = ledger_service.RecordWithdrawalRequest(
        store, household_id="hh-1", profile_id="kid-1", amount_cents=500, memo="Toy"
    )

    with pytest.raises(ConflictError, match="does not belong"):
        ledger_service.FinalizeWithdrawal(
            store, household_id="hh-1", profile_id="kid-2", transaction_id=request.TransactionId
        )
    assert _Balance(session_factory, profile_id="kid-2") == 1000


def test_finalize_unknown_transaction(store, seed_profile):
    seed_profile()
    with pytest.raises(NotFoundError, match="Transaction not found."):
        ledger_service.FinalizeWithdrawal(store, household_id="hh-1", profile_id="kid-1", transaction_id="nope")


def test_goal_allocation_moves_balance_into_goal(store, session_factory, seed_profile, seed_goal):
    seed_profile(balance_cents=1000)
    seed_goal(current_amount_cents=100)

    result = ledger_service.RecordGoalAllocation(
        store, household_id="hh-1", profile_id="kid-1", goal_id="goal-1", amount_cents=400
    )

    assert result.NextBalanceCents == 600
    with session_factory() as session:
        assert session.get(SavingsGoal, "goal-1").CurrentAmountCents == 500
    [entry] = _Entries(session_factory)
    assert (entry.Type, entry.AmountCents, entry.GoalId, entry.Memo) == (
        "GOAL_ALLOCATION",
        -400,
        "goal-1",
        "Transfer to Goal",
    )


def test_goal_allocation_to_missing_goal_changes_nothing(store, session_factory, seed_profile, seed_goal):
    seed_profile(balance_cents=1000)
    seed_goal(current_amount_cents=100)

    with pytest.raises(NotFoundError, match="Goal not found."):
        ledger_service.RecordGoalAllocation(
            store, household_id="hh-1", profile_id="kid-1", goal_id="goal-404", amount_cents=400
        )

    assert _Balance(session_factory) == 1000
    assert _Entries(session_factory) == []
    with session_factory() as session:
        goals = session.query(SavingsGoal).all()
        assert [(goal.GoalId, goal.CurrentAmountCents) for goal in goals] == [("goal-1", 100)]


def test_release_goal_refunds_and_removes_it(store, session_factory, seed_profile, seed_goal):
    seed_profile(balance_cents=200)
    seed_goal(current_amount_cents=700)

    result = ledger_service.ReleaseSavingsGoal(store, household_id="hh-1", profile_id="kid-1", goal_id="goal-1")

    assert result.NextBalanceCents == 900
    with session_factory() as session:
        assert session.get(SavingsGoal, "goal-1") is None
    [entry] = _Entries(session_factory)
    assert (entry.Type, entry.AmountCents, entry.GoalId) == ("ADJUSTMENT", 700, None)


@pytest.mark.parametrize(
    "call",
    [
        lambda store: ledger_service.RecordTaskPayment(
            store, household_id="hh-1", profile_id="kid-1", task_id="task-1", amount_cents=0, memo="Chore"
        ),
        lambda store: ledger_service.RecordAdvance(
            store, household_id="hh-1", profile_id="kid-1", amount_cents=0, memo="Snack", category="Other"
        ),
        lambda store: ledger_service.RecordManualAdjustment(
            store, household_id="hh-1", profile_id="kid-1", amount_cents=0, memo="Fix"
        ),
        lambda store: ledger_service.RecordWithdrawalRequest(
            store, household_id="hh-1", profile_id="kid-1", amount_cents=0, memo="Toy"
        ),
        lambda store: ledger_service.RecordGoalAllocation(
            store, household_id="hh-1", profile_id="kid-1", goal_id="goal-1", amount_cents=0
        ),
        lambda store: ledger_service.FinalizeWithdrawal(
            store, household_id="hh-1", profile_id="kid-1", transaction_id="txn-1", amount_cents=0
        ),
    ],
)
def test_zero_amounts_fail_before_store_access(call):
    store = _CountingStore()
    with pytest.raises(ValidationError):
        call(store)
    assert store.calls == 0


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"household_id": ""}, "householdId"),
        ({"profile_id": "  "}, "profileId"),
        ({"memo": ""}, "memo"),
        ({"amount_cents_delta": float("nan")}, "finite number"),
        ({"amount_cents_delta": True}, "finite number"),
        ({"transaction_type": "BONUS"}, "Unsupported transaction type"),
        ({"status": "LOST"}, "Unsupported transaction status"),
        ({"lock_task_as_paid": True}, "taskId is required"),
    ],
)
def test_apply_mutation_validates_before_store_access(overrides, message):
    store = _CountingStore()
    kwargs = dict(
        household_id="hh-1",
        profile_id="kid-1",
        memo="Bonus",
        amount_cents_delta=100,
        transaction_type="ADJUSTMENT",
    )
    kwargs.update(overrides)

    with pytest.raises(ValidationError, match=message):
        ledger_service.ApplyLedgerMutation(store, **kwargs)
    assert store.calls == 0


def test_fractional_cents_are_rounded(store, seed_profile):
    seed_profile(balance_cents=0)
    result = ledger_service.RecordManualAdjustment(
        store, household_id="hh-1", profile_id="kid-1", amount_cents=99.5, memo="Rounding"
    )
    assert result.NextBalanceCents == 100


def test_signed_entries_sum_to_balance_change(store, session_factory, seed_profile, seed_task, seed_goal):
    seed_profile(balance_cents=1500)
    seed_task()
    seed_goal()
    args = dict(household_id="hh-1", profile_id="kid-1")

    ledger_service.RecordTaskPayment(store, task_id="task-1", amount_cents=400, memo="Chore", **args)
    ledger_service.RecordAdvance(store, amount_cents=250, memo="Snacks", category="Food/Drinks", **args)
    ledger_service.RecordManualAdjustment(store, amount_cents=-75, memo="Lost book", **args)
    paid = ledger_service.RecordWithdrawalRequest(store, amount_cents=300, memo="Toy", **args)
    rejected = ledger_service.RecordWithdrawalRequest(store, amount_cents=200, memo="Game", **args)
    ledger_service.RecordWithdrawalRequest(store, amount_cents=100, memo="Later", **args)
    ledger_service.FinalizeWithdrawal(store, transaction_id=paid.TransactionId, **args)
    ledger_service.RejectWithdrawal(store, transaction_id=rejected.TransactionId, **args)
    ledger_service.RecordGoalAllocation(store, goal_id="goal-1", amount_cents=500, **args)
    final = ledger_service.ReleaseSavingsGoal(store, goal_id="goal-1", **args)

    entries = _Entries(session_factory)
    impact = sum(LedgerImpactCents(entry.Type, entry.Status, entry.AmountCents) for entry in entries)
    assert final.NextBalanceCents == 1500 + 400 - 250 - 75 - 300
    assert impact == final.NextBalanceCents - 1500
    assert _Balance(session_factory) == final.NextBalanceCents


def test_huge_amounts_fail_validation_before_store_access():
    store = _CountingStore()
    with pytest.raises(ValidationError, match="out of range"):
        ledger_service.RecordManualAdjustment(
            store, household_id="hh-1", profile_id="kid-1", amount_cents=1e30, memo="Lottery"
        )
    with pytest.raises(ValidationError, match="out of range"):
        ledger_service.RecordAdvance(
            store, household_id="hh-1", profile_id="kid-1", amount_cents=10**40, memo="Lottery", category="Other"
        )
    assert store.calls == 0


def test_balance_overflow_is_a_conflict(store, session_factory, seed_profile):
    seed_profile(balance_cents=10**12 - 100)

    with pytest.raises(ConflictError, match="Resulting balance is out of range."):
        ledger_service.RecordManualAdjustment(
            store, household_id="hh-1", profile_id="kid-1", amount_cents=500, memo="Bonus"
        )
    assert _Balance(session_factory) == 10**12 - 100
