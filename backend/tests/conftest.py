import os
import tempfile
from decimal import Decimal
from pathlib import Path

os.environ.setdefault("LOG_FILE_PATH", str(Path(tempfile.gettempdir()) / "chorebank-tests" / "backend.log"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chorebank.db import Base
from chorebank.modules.ledger.models import Profile, SavingsGoal
from chorebank.modules.ledger.services.store import LedgerStore
from chorebank.modules.notifications import models as notifications_models  # noqa: F401
from chorebank.modules.tasks.models import Task

SCHEMA_MAP = {"ledger": None, "tasks": None, "notifications": None}


def _BuildEngine(url: str, **kwargs):
    base_engine = create_engine(url, connect_args={"check_same_thread": False}, **kwargs)
    engine = base_engine.execution_options(schema_translate_map=SCHEMA_MAP)
    Base.metadata.create_all(engine)
    return base_engine, engine


@pytest.fixture
def session_factory():
    base_engine, engine = _BuildEngine("sqlite://", poolclass=StaticPool)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    base_engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    # Separate connections per session, so a second writer can race the first.
    base_engine, engine = _BuildEngine(f"sqlite:///{tmp_path / 'ledger.db'}")
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    base_engine.dispose()


@pytest.fixture
def store(session_factory):
    return LedgerStore(session_factory, max_attempts=3)


@pytest.fixture
def seed_profile(session_factory):
    def _Seed(
        household_id: str = "hh-1",
        profile_id: str = "kid-1",
        balance_cents: int | None = 0,
        balance: Decimal | None = None,
        name: str = "Sam",
    ) -> None:
        with session_factory() as session:
            session.add(
                Profile(
                    HouseholdId=household_id,
                    ProfileId=profile_id,
                    Name=name,
                    BalanceCents=balance_cents,
                    Balance=balance,
                )
            )
            session.commit()

    return _Seed


@pytest.fixture
def seed_task(session_factory):
    def _Seed(
        task_id: str = "task-1",
        assignee_id: str | None = "kid-1",
        status: str = "PENDING_PAYMENT",
        household_id: str = "hh-1",
        storage_profile_id: str | None = None,
        name: str = "Feed the cat",
    ) -> int:
        with session_factory() as session:
            task = Task(
                HouseholdId=household_id,
                TaskId=task_id,
                StorageProfileId=storage_profile_id,
                Name=name,
                AssigneeId=assignee_id,
                Status=status,
                ValueCents=250,
            )
            session.add(task)
            session.commit()
            return task.Id

    return _Seed


@pytest.fixture
def seed_goal(session_factory):
    def _Seed(
        goal_id: str = "goal-1",
        current_amount_cents: int = 0,
        target_amount_cents: int = 5000,
        household_id: str = "hh-1",
        profile_id: str = "kid-1",
        name: str = "Bike",
    ) -> None:
        with session_factory() as session:
            session.add(
                SavingsGoal(
                    GoalId=goal_id,
                    HouseholdId=household_id,
                    ProfileId=profile_id,
                    Name=name,
                    TargetAmountCents=target_amount_cents,
                    CurrentAmountCents=current_amount_cents,
                    Status="ACTIVE",
                    SortOrder=0,
                )
            )
            session.commit()

    return _Seed
