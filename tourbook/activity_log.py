import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("tourbook.activity")


def _status_value(status) -> str | None:
    if status is None:
        return None
    return getattr(status, "value", status)


def record(
        db: Session,
        actor_id: int,
        actor_role: models.UserRole | str,
        action: str,
        request_id: int | None = None,
        from_status: models.RequestStatus | str | None = None,
        to_status: models.RequestStatus | str | None = None,
        note: str | None = None,
) -> models.ActivityLog | None:
    """
    Appends one row to the activity ledger in its own transaction.

    Call this only after the business change has been committed. A failure
    here is logged and swallowed; it never undoes or fails the caller's work.
    """
    entry = models.ActivityLog(
        actor_id=actor_id,
        actor_role=_status_value(actor_role),
        action=action,
        request_id=request_id,
        from_status=_status_value(from_status),
        to_status=_status_value(to_status),
        note=note,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Activity log error for action '{action}' by actor {actor_id}: {e}")
        db.rollback()
        return None
    return entry


def get_request_activity(db: Session, request_id: int) -> list[models.ActivityLog]:
    return (
        db.query(models.ActivityLog)
        .filter(models.ActivityLog.request_id == request_id)
        .order_by(models.ActivityLog.created_at.desc(), models.ActivityLog.id.desc())
        .all()
    )
