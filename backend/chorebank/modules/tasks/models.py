from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, func

from chorebank.db import Base


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_tasks_household_task", "HouseholdId", "TaskId"),
        {"schema": "tasks"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    HouseholdId = Column(String(64), nullable=False)
    TaskId = Column(String(64), nullable=False)
    # Set only on rows imported from the per-profile task lists. New tasks
    # leave it empty and live at the household root.
    StorageProfileId = Column(String(64))
    Name = Column(String(200), nullable=False)
    AssigneeId = Column(String(64), index=True)
    Status = Column(String(30), nullable=False, default="OPEN")
    ValueCents = Column(BigInteger, nullable=False, default=0)
    BonusCents = Column(BigInteger, nullable=False, default=0)
    RejectionComment = Column(String(500))
    PaidAt = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    Version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": Version}
