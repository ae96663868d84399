from datetime import datetime

from pydantic import BaseModel, Field

ADVANCE_CATEGORIES = (
    "Food/Drinks",
    "Entertainment",
    "Clothes",
    "School Supplies",
    "Toys/Games",
    "Other",
)


def ParseAdvanceCategory(value: str | None) -> str:
    if value and value.strip() in ADVANCE_CATEGORIES:
        return value.strip()
    return "Other"


class ProfileCreate(BaseModel):
    Name: str = Field(min_length=1, max_length=120)
    ProfileId: str | None = Field(default=None, min_length=1, max_length=64)


class SavingsGoalOut(BaseModel):
    GoalId: str
    Name: str
    TargetAmountCents: int
    CurrentAmountCents: int
    Status: str
    SortOrder: int


class ProfileOut(BaseModel):
    HouseholdId: str
    ProfileId: str
    Name: str
    BalanceCents: int
    Balance: float
    Goals: list[SavingsGoalOut] = []


class TaskPaymentCreate(BaseModel):
    TaskId: str = Field(min_length=1, max_length=64)
    AmountCents: int = Field(gt=0)
    Memo: str = Field(min_length=1, max_length=300)


class AdvanceCreate(BaseModel):
    AmountCents: int = Field(gt=0)
    Memo: str = Field(min_length=1, max_length=300)
    Category: str | None = Field(default=None, max_length=40)


class AdjustmentCreate(BaseModel):
    AmountCents: int
    Memo: str = Field(min_length=1, max_length=300)


class WithdrawalRequestCreate(BaseModel):
    AmountCents: int = Field(gt=0)
    Memo: str = Field(min_length=1, max_length=300)


class WithdrawalFinalize(BaseModel):
    AmountCents: int | None = Field(default=None, gt=0)


class GoalAllocationCreate(BaseModel):
    GoalId: str = Field(min_length=1, max_length=64)
    AmountCents: int = Field(gt=0)
    Memo: str = Field(default="Transfer to Goal", min_length=1, max_length=300)


class SavingsGoalCreate(BaseModel):
    Name: str = Field(min_length=1, max_length=120)
    TargetAmountCents: int = Field(gt=0)


class SavingsGoalUpdate(BaseModel):
    Name: str = Field(min_length=1, max_length=120)
    TargetAmountCents: int = Field(gt=0)


class LedgerMutationOut(BaseModel):
    TransactionId: str
    NextBalanceCents: int
    NextBalance: float


class TransactionOut(BaseModel):
    Id: str
    HouseholdId: str
    ProfileId: str
    AmountCents: int
    Amount: float
    Memo: str
    Type: str
    Status: str
    Category: str | None = None
    TaskId: str | None = None
    GoalId: str | None = None
    BalanceAfterCents: int
    BalanceAfter: float
    ImpactCents: int
    Date: datetime
    PaidAt: datetime | None = None
    RejectedAt: datetime | None = None


class LedgerHistoryResponse(BaseModel):
    BalanceCents: int
    Balance: float
    Entries: list[TransactionOut]


class ActivityEntryOut(TransactionOut):
    ProfileName: str


class HouseholdActivityResponse(BaseModel):
    Entries: list[ActivityEntryOut]
