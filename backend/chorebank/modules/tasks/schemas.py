from pydantic import BaseModel, Field


class TaskCreate(BaseModel):
    Name: str = Field(min_length=1, max_length=200)
    ValueCents: int = Field(default=0, ge=0)
    AssigneeId: str | None = Field(default=None, min_length=1, max_length=64)
    TaskId: str | None = Field(default=None, min_length=1, max_length=64)


class TaskStatusUpdate(BaseModel):
    Status: str = Field(min_length=1, max_length=30)
    ProfileId: str | None = Field(default=None, min_length=1, max_length=64)
    RejectionComment: str | None = Field(default=None, max_length=500)


class TaskBoost(BaseModel):
    BonusCentsDelta: int
    AssigneeId: str = Field(min_length=1, max_length=64)


class TaskOut(BaseModel):
    TaskId: str
    HouseholdId: str
    Name: str
    AssigneeId: str | None = None
    Status: str
    ValueCents: int
    BonusCents: int = 0
    RejectionComment: str | None = None
