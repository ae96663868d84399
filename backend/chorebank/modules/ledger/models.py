from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    func,
)

from chorebank.db import Base


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = ({"schema": "ledger"},)

    HouseholdId = Column(String(64), primary_key=True)
    ProfileId = Column(String(64), primary_key=True)
    Name = Column(String(120), nullable=False)
    # Canonical balance. Legacy rows may only carry Balance (dollars).
    BalanceCents = Column(BigInteger)
    Balance = Column(Numeric(12, 2))
    Version = Column(Integer, nullable=False)
    CreatedAt = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": Version}


class SavingsGoal(Base):
    __tablename__ = "savings_goals"
    __table_args__ = (
        Index("ix_ledger_savings_goals_profile", "HouseholdId", "ProfileId", "SortOrder"),
        {"schema": "ledger"},
    )

    GoalId = Column(String(64), primary_key=True)
    HouseholdId = Column(String(64), nullable=False)
    ProfileId = Column(String(64), nullable=False)
    Name = Column(String(120), nullable=False)
    TargetAmountCents = Column(BigInteger, nullable=False)
    CurrentAmountCents = Column(BigInteger, nullable=False, default=0)
    Status = Column(String(20), nullable=False, default="ACTIVE")
    SortOrder = Column(Integer, nullable=False, default=0)
    ClaimedAt = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class LedgerTransaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_ledger_transactions_profile_date", "HouseholdId", "ProfileId", "Date"),
        {"schema": "ledger"},
    )

    Id = Column(String(64), primary_key=True)
    HouseholdId = Column(String(64), nullable=False)
    ProfileId = Column(String(64), nullable=False)
    AmountCents = Column(BigInteger, nullable=False)
    Amount = Column(Numeric(12, 2), nullable=False)
    Memo = Column(String(300), nullable=False)
    Type = Column(String(30), nullable=False)
    Status = Column(String(20), nullable=False)
    Category = Column(String(40))
    TaskId = Column(String(64))
    GoalId = Column(String(64))
    BalanceAfterCents = Column(BigInteger, nullable=False)
    BalanceAfter = Column(Numeric(12, 2), nullable=False)
    Date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    PaidAt = Column(DateTime(timezone=True))
    RejectedAt = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
