from decimal import Decimal

import pytest

from chorebank.core.errors import ConflictError, NotFoundError, ValidationError
from chorebank.modules.ledger.services.planning import (
    AssertIntegerCents,
    AssertNonEmptyString,
    AssertPositiveCents,
    GoalView,
    LedgerImpactCents,
    LedgerMutation,
    LedgerReadSet,
    PlanGoalRelease,
    PlanLedgerMutation,
    PlanWithdrawalSettlement,
    ProfileView,
    ReadBalanceCents,
    TaskView,
    TransactionView,
)


def _BuildProfile(balance_cents=1000, balance=None, goals=()) -> ProfileView:
    return ProfileView(
        HouseholdId="hh-1",
        ProfileId="kid-1",
        Name="Sam",
        BalanceCents=balance_cents,
        Balance=balance,
        Goals=tuple(goals),
        Version=4,
    )


def _BuildMutation(**overrides) -> LedgerMutation:
    data = {
        "HouseholdId": "hh-1",
        "ProfileId": "kid-1",
        "Memo": "Chores",
        "AmountCentsDelta": 300,
        "Type": "EARNING",
    }
    data.update(overrides)
    return LedgerMutation(**data)


def _BuildPending(**overrides) -> TransactionView:
    data = {
        "TransactionId": "txn-1",
        "HouseholdId": "hh-1",
        "ProfileId": "kid-1",
        "Type": "WITHDRAWAL_REQUEST",
        "Status": "PENDING",
        "AmountCents": 500,
    }
    data.update(overrides)
    return TransactionView(**data)


def test_read_balance_prefers_cents_then_legacy_dollars():
    assert ReadBalanceCents(1234, Decimal("99.99")) == 1234
    assert ReadBalanceCents(None, Decimal("12.34")) == 1234
    assert ReadBalanceCents(None, 0.29) == 29
    assert ReadBalanceCents(None, None) == 0
    assert ReadBalanceCents(float("nan"), None) == 0


def test_input_assertions():
    assert AssertNonEmptyString("  kid-1 ", "profileId") == "kid-1"
    assert AssertIntegerCents(199.5, "amountCents") == 200
    with pytest.raises(ValidationError, match="profileId must be a non-empty string."):
        AssertNonEmptyString("   ", "profileId")
    with pytest.raises(ValidationError, match="must be a finite number"):
        AssertIntegerCents(True, "amountCents")
    with pytest.raises(ValidationError, match="must be a positive integer"):
        AssertPositiveCents(0, "amountCents")


def test_impact_counts_withdrawals_only_once_paid():
    assert LedgerImpactCents("EARNING", "PAID", 300) == 300
    assert LedgerImpactCents("ADVANCE", "PAID", -200) == -200
    assert LedgerImpactCents("WITHDRAWAL_REQUEST", "PENDING", 500) == 0
    assert LedgerImpactCents("WITHDRAWAL_REQUEST", "REJECTED", 500) == 0
    assert LedgerImpactCents("WITHDRAWAL_REQUEST", "PAID", 500) == -500


def test_plan_earning_with_task_lock():
    task = TaskView(
        RowId=7,
        TaskId="task-1",
        Location="root",
        AssigneeId="kid-1",
        Status="PENDING_PAYMENT",
        Version=2,
    )
    mutation = _BuildMutation(TaskId="task-1", LockTaskAsPaid=True)
    write_set = PlanLedgerMutation(mutation, LedgerReadSet(Profile=_BuildProfile(), Task=task), "txn-9")

    assert write_set.NextBalanceCents == 1300
    assert write_set.TransactionId == "txn-9"
    assert write_set.PaidTask.RowId == 7
    assert write_set.PaidTask.ExpectedVersion == 2
    assert write_set.Balance.ExpectedVersion == 4
    entry = write_set.NewTransaction
    assert (entry.Type, entry.Status, entry.AmountCents, entry.BalanceAfterCents) == ("EARNING", "PAID", 300, 1300)
    assert entry.TaskId == "task-1"


def test_plan_task_lock_preconditions():
    profile = _BuildProfile()
    mutation = _BuildMutation(TaskId="task-1", LockTaskAsPaid=True)

    with pytest.raises(NotFoundError, match="Task not found."):
        PlanLedgerMutation(mutation, LedgerReadSet(Profile=profile), "txn-1")

    other = TaskView(RowId=1, TaskId="task-1", Location="root", AssigneeId="kid-2", Status="OPEN")
    with pytest.raises(ConflictError, match="not assigned"):
        PlanLedgerMutation(mutation, LedgerReadSet(Profile=profile, Task=other), "txn-1")

    paid = TaskView(RowId=1, TaskId="task-1", Location="profile", AssigneeId="kid-1", Status="PAID")
    with pytest.raises(ConflictError, match="already paid"):
        PlanLedgerMutation(mutation, LedgerReadSet(Profile=profile, Task=paid), "txn-1")


def test_plan_withdrawal_request_keeps_balance_and_stays_pending():
    mutation = _BuildMutation(AmountCentsDelta=0, TransactionAmountCents=500, Type="WITHDRAWAL_REQUEST")
    write_set = PlanLedgerMutation(mutation, LedgerReadSet(Profile=_BuildProfile()), "txn-1")

    assert write_set.NextBalanceCents == 1000
    assert write_set.NewTransaction.Status == "PENDING"
    assert write_set.NewTransaction.AmountCents == 500


def test_plan_goal_allocation_moves_money_into_goal():
    goal = GoalView(GoalId="goal-1", Name="Bike", TargetAmountCents=5000, CurrentAmountCents=100, Status="ACTIVE")
    mutation = _BuildMutation(AmountCentsDelta=-400, Type="GOAL_ALLOCATION", GoalId="goal-1")
    write_set = PlanLedgerMutation(mutation, LedgerReadSet(Profile=_BuildProfile(goals=[goal])), "txn-1")

    assert write_set.NextBalanceCents == 600
    assert write_set.Goal.CurrentAmountCents == 500
    assert write_set.NewTransaction.AmountCents == -400

    with pytest.raises(NotFoundError, match="Goal not found."):
        PlanLedgerMutation(
            _BuildMutation(AmountCentsDelta=-400, Type="GOAL_ALLOCATION", GoalId="missing"),
            LedgerReadSet(Profile=_BuildProfile(goals=[goal])),
            "txn-1",
        )


def test_plan_withdrawal_finalize_debits_requested_amount():
    read_set = LedgerReadSet(Profile=_BuildProfile(), Transaction=_BuildPending())
    write_set = PlanWithdrawalSettlement(read_set, "PAID")

    assert write_set.NextBalanceCents == 500
    assert write_set.NewTransaction is None
    assert write_set.SettledTransaction.Status == "PAID"
    assert write_set.SettledTransaction.BalanceAfterCents == 500


def test_plan_withdrawal_reject_leaves_balance():
    read_set = LedgerReadSet(Profile=_BuildProfile(), Transaction=_BuildPending())
    write_set = PlanWithdrawalSettlement(read_set, "REJECTED")

    assert write_set.NextBalanceCents == 1000
    assert write_set.SettledTransaction.Status == "REJECTED"


@pytest.mark.parametrize(
    "pending, amount_cents, error, message",
    [
        (None, None, NotFoundError, "Transaction not found."),
        (_BuildPending(ProfileId="kid-2"), None, ConflictError, "does not belong"),
        (_BuildPending(Type="ADVANCE"), None, ConflictError, "not a withdrawal request"),
        (_BuildPending(Status="PAID"), None, ConflictError, "not pending"),
        (_BuildPending(), 400, ConflictError, "does not match"),
    ],
)
def test_plan_withdrawal_settlement_preconditions(pending, amount_cents, error, message):
    read_set = LedgerReadSet(Profile=_BuildProfile(), Transaction=pending)
    with pytest.raises(error, match=message):
        PlanWithdrawalSettlement(read_set, "PAID", amount_cents)


def test_plan_goal_release_refunds_saved_amount():
    goal = GoalView(GoalId="goal-1", Name="Bike", TargetAmountCents=5000, CurrentAmountCents=700, Status="ACTIVE")
    write_set = PlanGoalRelease(LedgerReadSet(Profile=_BuildProfile(goals=[goal])), "goal-1", "txn-3")

    assert write_set.NextBalanceCents == 1700
    assert write_set.Goal.Remove
    assert write_set.NewTransaction.Type == "ADJUSTMENT"
    assert write_set.NewTransaction.Memo == "Refund from deleted goal: Bike"
    assert write_set.NewTransaction.GoalId is None
    assert write_set.TransactionId == "txn-3"


def test_plan_goal_release_without_savings_writes_no_entry():
    goal = GoalView(GoalId="goal-1", Name="Bike", TargetAmountCents=5000, CurrentAmountCents=0, Status="ACTIVE")
    write_set = PlanGoalRelease(LedgerReadSet(Profile=_BuildProfile(goals=[goal])), "goal-1", "txn-3")

    assert write_set.NextBalanceCents == 1000
    assert write_set.NewTransaction is None
    assert write_set.TransactionId == ""


def test_amounts_beyond_column_range_are_rejected():
    with pytest.raises(ValidationError, match="amountCents is out of range."):
        AssertIntegerCents(1e30, "amountCents")
    with pytest.raises(ValidationError, match="out of range"):
        AssertIntegerCents(10**12, "amountCents")
    assert AssertIntegerCents(10**12 - 1, "amountCents") == 10**12 - 1


def test_plan_rejects_balance_beyond_column_range():
    mutation = _BuildMutation(AmountCentsDelta=10**12 - 1)
    with pytest.raises(ConflictError, match="Resulting balance is out of range."):
        PlanLedgerMutation(mutation, LedgerReadSet(Profile=_BuildProfile(balance_cents=5)), "txn-1")


def test_settlement_and_release_carry_read_version():
    settle = PlanWithdrawalSettlement(LedgerReadSet(Profile=_BuildProfile(), Transaction=_BuildPending()), "PAID")
    goal = GoalView(GoalId="goal-1", Name="Bike", TargetAmountCents=5000, CurrentAmountCents=0, Status="ACTIVE")
    release = PlanGoalRelease(LedgerReadSet(Profile=_BuildProfile(goals=[goal])), "goal-1", "txn-3")

    assert settle.Balance.ExpectedVersion == 4
    assert release.Balance.ExpectedVersion == 4
