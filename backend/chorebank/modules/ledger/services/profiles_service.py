from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chorebank.core.errors import ConflictError
from chorebank.modules.ledger.models import LedgerTransaction, Profile
from chorebank.modules.ledger.services.planning import AssertNonEmptyString, ProfileView
from chorebank.modules.ledger.services.store import LedgerStore, NewDocumentId, ReadProfile

logger = logging.getLogger("ledger.profiles")


def CreateProfile(
    store: LedgerStore,
    *,
    household_id: str,
    name: str,
    profile_id: str | None = None,
) -> ProfileView:
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_name = AssertNonEmptyString(name, "name")
    safe_profile_id = NewDocumentId() if profile_id is None else AssertNonEmptyString(profile_id, "profileId")

    def _Work(session: Session) -> ProfileView:
        if session.get(Profile, (safe_household_id, safe_profile_id)) is not None:
            raise ConflictError("Profile already exists.")
        # New profiles start at zero; only the ledger moves the balance.
        session.add(
            Profile(
                HouseholdId=safe_household_id,
                ProfileId=safe_profile_id,
                Name=safe_name,
                BalanceCents=0,
                Balance=0,
            )
        )
        return ProfileView(
            HouseholdId=safe_household_id,
            ProfileId=safe_profile_id,
            Name=safe_name,
            BalanceCents=0,
            Balance=0,
        )

    try:
        view = store.RunTransaction(_Work)
    except IntegrityError as exc:
        raise ConflictError("Profile already exists.") from exc
    logger.info("profile created household=%s profile=%s", safe_household_id, safe_profile_id)
    return view


def GetProfile(db: Session, household_id: str, profile_id: str) -> ProfileView:
    return ReadProfile(db, household_id, profile_id, include_goals=True)


def ListTransactions(
    db: Session,
    household_id: str,
    profile_id: str,
    limit: int = 100,
) -> list[LedgerTransaction]:
    return (
        db.query(LedgerTransaction)
        .filter(
            LedgerTransaction.HouseholdId == household_id,
            LedgerTransaction.ProfileId == profile_id,
        )
        .order_by(LedgerTransaction.Date.desc(), LedgerTransaction.CreatedAt.desc())
        .limit(limit)
        .all()
    )


@dataclass(frozen=True)
class ActivityEntry:
    Transaction: LedgerTransaction
    ProfileName: str


def ListHouseholdActivity(db: Session, household_id: str, limit: int = 10) -> list[ActivityEntry]:
    """Newest ledger entries across every profile in the household."""
    safe_household_id = AssertNonEmptyString(household_id, "householdId")
    safe_limit = limit if limit > 0 else 10
    rows = (
        db.query(LedgerTransaction, Profile.Name)
        .outerjoin(
            Profile,
            and_(
                Profile.HouseholdId == LedgerTransaction.HouseholdId,
                Profile.ProfileId == LedgerTransaction.ProfileId,
            ),
        )
        .filter(LedgerTransaction.HouseholdId == safe_household_id)
        .order_by(LedgerTransaction.Date.desc(), LedgerTransaction.CreatedAt.desc())
        .limit(safe_limit)
        .all()
    )
    # Entries can outlive the profile they were written for.
    return [ActivityEntry(Transaction=entry, ProfileName=name or "Unknown") for entry, name in rows]
