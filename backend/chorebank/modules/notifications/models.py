from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, Unicode

from chorebank.db import Base


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index(
            "ix_notifications_target_status_created",
            "HouseholdId",
            "TargetProfileId",
            "IsRead",
            "CreatedAt",
        ),
        {"schema": "notifications"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    HouseholdId = Column(String(64), nullable=False)
    TargetProfileId = Column(String(64), nullable=False)
    Type = Column(String(50), nullable=False, default="General")
    Title = Column(Unicode(160), nullable=False)
    Body = Column(Unicode(400))
    SourceModule = Column(String(80))
    SourceId = Column(String(120))
    MetaJson = Column(Text)
    IsRead = Column(Boolean, nullable=False, default=False)
    ReadAt = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
