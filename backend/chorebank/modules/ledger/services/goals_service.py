from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from chorebank.core.errors import ConflictError, NotFoundError
from chorebank.modules.ledger.models import SavingsGoal
from chorebank.modules.ledger.services.planning import (
    AssertNonEmptyString,
    AssertPositiveCents,
    GoalView,
)
from chorebank.modules.ledger.services.store import (
    BuildGoalView,
    LedgerStore,
    LoadGoalRows,
    LoadProfileRow,
    NewDocumentId,
)

logger = logging.getLogger("ledger.goals")

GOAL_STATUS_ACTIVE = "ACTIVE"
GOAL_STATUS_CLAIMED = "CLAIMED"


def _LoadGoalRow(session: Session, household_id: str, profile_id: str, goal_id: str) -> SavingsGoal:
    goal = session.get(SavingsGoal, goal_id)
    if goal is None or goal.HouseholdId != household_id or goal.ProfileId != profile_id:
        raise NotFoundError("Goal not found.")
    return goal


def _TouchProfile(session: Session, household_id: str, profile_id: str) -> None:
    # Bumps the profile version so goal edits serialize with ledger writes.
    profile = LoadProfileRow(session, household_id, profile_id)
    profile.UpdatedAt = func.now()


def ListSavingsGoals(db: Session, household_id: str, profile_id: str) -> list[GoalView]:
    return [BuildGoalView(goal) for goal in LoadGoalRows(db, household_id, profile_id)]


def AddSavingsGoal(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    name: str,
    target_amount_cents: int,
) -> GoalView:
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_profile_id = AssertNonEmptyString(profile_id, "profileId")
    safe_name = AssertNonEmptyString(name, "name")
    safe_target_cents = AssertPositiveCents(target_amount_cents, "targetAmountCents")

    def _Work(session: Session) -> GoalView:
        _TouchProfile(session, safe_household_id, safe_profile_id)
        existing = LoadGoalRows(session, safe_household_id, safe_profile_id)
        goal = SavingsGoal(
            GoalId=NewDocumentId(),
            HouseholdId=safe_household_id,
            ProfileId=safe_profile_id,
            Name=safe_name,
            TargetAmountCents=safe_target_cents,
            CurrentAmountCents=0,
            Status=GOAL_STATUS_ACTIVE,
            SortOrder=max((row.SortOrder or 0 for row in existing), default=-1) + 1,
        )
        session.add(goal)
        return BuildGoalView(goal)

    view = store.RunTransaction(_Work)
    logger.info("savings goal added household=%s profile=%s goal=%s", safe_household_id, safe_profile_id, view.GoalId)
    return view


def UpdateSavingsGoal(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    goal_id: str,
    name: str,
    target_amount_cents: int,
) -> GoalView:
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_profile_id = AssertNonEmptyString(profile_id, "profileId")
    safe_goal_id = AssertNonEmptyString(goal_id, "goalId")
    safe_name = AssertNonEmptyString(name, "name")
    safe_target_cents = AssertPositiveCents(target_amount_cents, "targetAmountCents")

    def _Work(session: Session) -> GoalView:
        _TouchProfile(session, safe_household_id, safe_profile_id)
        goal = _LoadGoalRow(session, safe_household_id, safe_profile_id, safe_goal_id)
        if safe_target_cents < (goal.CurrentAmountCents or 0):
            raise ConflictError("Target amount cannot be less than the currently saved amount.")
        goal.Name = safe_name
        goal.TargetAmountCents = safe_target_cents
        return BuildGoalView(goal)

    return store.RunTransaction(_Work)


def ClaimSavingsGoal(
    store: LedgerStore,
    *,
    household_id: str,
    profile_id: str,
    goal_id: str,
) -> GoalView:
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_profile_id = AssertNonEmptyString(profile_id, "profileId")
    safe_goal_id = AssertNonEmptyString(goal_id, "goalId")

    def _Work(session: Session) -> GoalView:
        _TouchProfile(session, safe_household_id, safe_profile_id)
        goal = _LoadGoalRow(session, safe_household_id, safe_profile_id, safe_goal_id)
        if goal.Status == GOAL_STATUS_CLAIMED:
            raise ConflictError("Goal is already claimed.")
        goal.Status = GOAL_STATUS_CLAIMED
        goal.ClaimedAt = func.now()
        return BuildGoalView(goal)

    view = store.RunTransaction(_Work)
    logger.info("savings goal claimed household=%s profile=%s goal=%s", safe_household_id, safe_profile_id, safe_goal_id)
    return view
