import json
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from chorebank.modules.ledger.utils.money import CentsToDollars
from chorebank.modules.notifications.models import Notification

logger = logging.getLogger("notifications")

TASK_PAID_TYPE = "TaskPaid"


def _SerializeJson(value: dict | None) -> str | None:
    if value is None:
        return None
    return json.dumps(value, separators=(",", ":"))


def CreateNotification(
    db: Session,
    *,
    household_id: str,
    target_profile_id: str,
    title: str,
    body: str | None = None,
    notification_type: str = "General",
    source_module: str | None = None,
    source_id: str | None = None,
    meta: dict | None = None,
) -> Notification:
    record = Notification(
        HouseholdId=household_id,
        TargetProfileId=target_profile_id,
        Type=notification_type or "General",
        Title=title,
        Body=body,
        SourceModule=source_module,
        SourceId=source_id,
        MetaJson=_SerializeJson(meta),
        IsRead=False,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def ListNotifications(db: Session, household_id: str, target_profile_id: str, limit: int = 50) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(
            Notification.HouseholdId == household_id,
            Notification.TargetProfileId == target_profile_id,
        )
        .order_by(Notification.CreatedAt.desc())
        .limit(limit)
        .all()
    )


def EmitTaskPaidNotification(
    session_factory: sessionmaker,
    *,
    household_id: str,
    task_id: str,
    target_profile_id: str,
    amount_cents: int,
) -> None:
    """Fire-and-forget. Runs after the payment has committed and never raises."""
    db = session_factory()
    try:
        CreateNotification(
            db,
            household_id=household_id,
            target_profile_id=target_profile_id,
            title="Task paid",
            body=f"You earned ${CentsToDollars(amount_cents)}",
            notification_type=TASK_PAID_TYPE,
            source_module="ledger",
            source_id=task_id,
            meta={"householdId": household_id, "taskId": task_id, "targetProfileId": target_profile_id},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "task paid notification failed household=%s task=%s profile=%s",
            household_id,
            task_id,
            target_profile_id,
        )
    finally:
        db.close()
