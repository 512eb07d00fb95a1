"""
Status lifecycle of travel requests.

    pending --assign--> assigned --advance--> in_progress --advance--> completed
    pending | assigned --cancel--> cancelled
    assigned | in_progress --reassign--> same status, different guide

Every mutation is a conditional UPDATE that re-asserts the status it was
validated against, so a concurrent writer makes it match zero rows instead of
applying on top of a state it never saw. The audit row is written after the
commit and never affects the outcome.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased

from . import activity_log, models, schemas
from .config import settings
from .database import transaction
from .exceptions import (
    ForbiddenError,
    InvalidInputError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
    WorkloadExceededError,
)
from .permissions import ensure_role

logger = logging.getLogger("tourbook.requests")

Status = models.RequestStatus

# Transitions a tour guide may drive on a request they own
GUIDE_TRANSITIONS: dict[Status, tuple[Status, ...]] = {
    Status.ASSIGNED: (Status.IN_PROGRESS,),
    Status.IN_PROGRESS: (Status.COMPLETED,),
}

CANCELLABLE_STATUSES = (Status.PENDING, Status.ASSIGNED)
REASSIGNABLE_STATUSES = models.ACTIVE_REQUEST_STATUSES

DESTINATION_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 1000
NOTE_MAX_LENGTH = 500


def allowed_next(status: Status) -> tuple[Status, ...]:
    return GUIDE_TRANSITIONS.get(status, ())


def parse_status(value: str | Status) -> Status:
    """Case-insensitive lookup against the closed status set; never coerces."""
    if isinstance(value, Status):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError("Status is required")
    try:
        return Status(value.strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in Status)
        raise InvalidInputError(f"Invalid status '{value}'. Allowed: {allowed}")


def _clean_text(value, label: str, max_length: int, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise InvalidInputError(f"{label} is required")
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{label} must be a string")
    value = value.strip()
    if not value:
        if required:
            raise InvalidInputError(f"{label} cannot be empty")
        return None
    if len(value) > max_length:
        raise InvalidInputError(f"{label} too long (max {max_length} characters)")
    return value


def get_request(db: Session, request_id: int):
    return db.query(models.TravelRequest).filter(models.TravelRequest.id == request_id).first()


def _current_status(db: Session, request_id: int) -> Status | None:
    # Column query, so the value comes from the database and not the identity map
    return db.query(models.TravelRequest.status).filter(models.TravelRequest.id == request_id).scalar()


def count_active_requests(db: Session, guide_id: int) -> int:
    return db.query(func.count(models.TravelRequest.id)).filter(
        models.TravelRequest.tour_guide_id == guide_id,
        models.TravelRequest.status.in_(models.ACTIVE_REQUEST_STATUSES),
    ).scalar()


def _workload_below(guide_id: int, limit: int):
    """SQL condition: the guide holds fewer than ``limit`` active requests."""
    held = aliased(models.TravelRequest, name="held_requests")
    active_count = (
        select(func.count(held.id))
        .where(held.tour_guide_id == guide_id, held.status.in_(models.ACTIVE_REQUEST_STATUSES))
        .scalar_subquery()
    )
    return active_count < limit


def _lock_eligible_guide(db: Session, guide_id: int) -> models.User:
    # Row lock serialises concurrent assignments to the same guide where supported
    guide = db.query(models.User).filter(
        models.User.id == guide_id,
        models.User.role == models.UserRole.TOUR_GUIDE,
    ).with_for_update().first()
    if guide is None:
        raise NotFoundError("Tour guide not found")
    if not guide.active:
        raise InvalidOperationError("Tour guide is not active")
    return guide


def create_request(
        db: Session,
        actor: schemas.Actor,
        destination: str,
        message: str | None = None,
) -> models.TravelRequest:
    ensure_role(actor, models.UserRole.USER)
    destination = _clean_text(destination, "Destination", DESTINATION_MAX_LENGTH, required=True)
    message = _clean_text(message, "Message", MESSAGE_MAX_LENGTH)

    with transaction(db):
        db_request = models.TravelRequest(
            user_id=actor.id,
            destination=destination,
            message=message,
            status=Status.PENDING,
            tour_guide_id=None,
        )
        db.add(db_request)
        db.flush()
        request_id = db_request.id

    logger.info(f"User {actor.id} created request {request_id} for {destination}")
    activity_log.record(
        db, actor.id, actor.role, "create_request", request_id,
        to_status=Status.PENDING,
        note=f"Created request for {destination}",
    )
    return db_request


def assign_request(
        db: Session,
        actor: schemas.Actor,
        request_id: int,
        guide_id: int,
) -> models.TravelRequest:
    """
    Assigns a pending request to an active tour guide below the workload cap.

    The UPDATE filters on ``status = 'pending'`` and on the guide's live
    workload, so of two concurrent assignments only one can match.
    """
    ensure_role(actor, models.UserRole.ADMIN)
    limit = settings.MAX_GUIDE_WORKLOAD

    with transaction(db):
        guide = _lock_eligible_guide(db, guide_id)
        guide_name = guide.name

        db_request = get_request(db, request_id)
        if db_request is None:
            raise NotFoundError("Request not found")
        if db_request.status != Status.PENDING:
            raise InvalidOperationError(f"Cannot assign request with status '{db_request.status.value}'")

        active_count = count_active_requests(db, guide_id)
        if active_count >= limit:
            raise WorkloadExceededError(guide_id, active_count, limit)

        updated = db.query(models.TravelRequest).filter(
            models.TravelRequest.id == request_id,
            models.TravelRequest.status == Status.PENDING,
            _workload_below(guide_id, limit),
        ).update(
            {
                models.TravelRequest.status: Status.ASSIGNED,
                models.TravelRequest.tour_guide_id: guide_id,
                models.TravelRequest.updated_at: models.utcnow(),
            },
            synchronize_session=False,
        )

        if updated == 0:
            current = _current_status(db, request_id)
            if current is None:
                raise NotFoundError("Request not found")
            if current != Status.PENDING:
                raise InvalidOperationError(f"Cannot assign request with status '{current.value}'")
            raise WorkloadExceededError(guide_id, count_active_requests(db, guide_id), limit)

    logger.info(f"Admin {actor.id} assigned request {request_id} to tour guide {guide_id}")
    activity_log.record(
        db, actor.id, actor.role, "assign_request", request_id,
        from_status=Status.PENDING,
        to_status=Status.ASSIGNED,
        note=f"Assigned request to tour guide {guide_name} (ID: {guide_id})",
    )
    return db_request


def reassign_request(
        db: Session,
        actor: schemas.Actor,
        request_id: int,
        guide_id: int,
) -> models.TravelRequest:
    """Moves an assigned or in-progress request to another guide; status is untouched."""
    ensure_role(actor, models.UserRole.ADMIN)

    with transaction(db):
        guide = _lock_eligible_guide(db, guide_id)
        guide_name = guide.name

        db_request = get_request(db, request_id)
        if db_request is None:
            raise NotFoundError("Request not found")

        current = db_request.status
        if current not in REASSIGNABLE_STATUSES:
            raise InvalidOperationError(f"Cannot reassign {current.value} request")
        if db_request.tour_guide_id == guide_id:
            raise InvalidOperationError("Request is already assigned to this tour guide")
        old_guide_name = db_request.tour_guide.name if db_request.tour_guide else None

        updated = db.query(models.TravelRequest).filter(
            models.TravelRequest.id == request_id,
            models.TravelRequest.status == current,
        ).update(
            {
                models.TravelRequest.tour_guide_id: guide_id,
                models.TravelRequest.updated_at: models.utcnow(),
            },
            synchronize_session=False,
        )

        if updated == 0:
            fresh = _current_status(db, request_id)
            if fresh is None:
                raise NotFoundError("Request not found")
            raise InvalidOperationError(f"Cannot reassign {fresh.value} request")

    logger.info(f"Admin {actor.id} reassigned request {request_id} to tour guide {guide_id}")
    activity_log.record(
        db, actor.id, actor.role, "reassign_request", request_id,
        note=f"Reassigned from {old_guide_name or 'unassigned'} to {guide_name}",
    )
    return db_request


def advance_status(
        db: Session,
        actor: schemas.Actor,
        request_id: int,
        new_status: str | Status,
        note: str | None = None,
) -> tuple[models.TravelRequest, Status]:
    """
    Moves a request one step along GUIDE_TRANSITIONS on behalf of its guide.

    Returns the request and the status it was in before the change.
    """
    ensure_role(actor, models.UserRole.TOUR_GUIDE)
    target = parse_status(new_status)
    note = _clean_text(note, "Note", NOTE_MAX_LENGTH)

    with transaction(db):
        db_request = get_request(db, request_id)
        if db_request is None:
            raise NotFoundError("Request not found")
        if db_request.tour_guide_id != actor.id:
            raise ForbiddenError("Request is not assigned to you")

        current = db_request.status
        allowed = allowed_next(current)
        if target not in allowed:
            raise InvalidTransitionError(current.value, target.value, [s.value for s in allowed])

        updated = db.query(models.TravelRequest).filter(
            models.TravelRequest.id == request_id,
            models.TravelRequest.tour_guide_id == actor.id,
            models.TravelRequest.status == current,
        ).update(
            {
                models.TravelRequest.status: target,
                models.TravelRequest.updated_at: models.utcnow(),
            },
            synchronize_session=False,
        )

        if updated == 0:
            row = db.query(
                models.TravelRequest.status, models.TravelRequest.tour_guide_id
            ).filter(models.TravelRequest.id == request_id).first()
            if row is None:
                raise NotFoundError("Request not found")
            if row.tour_guide_id != actor.id:
                raise ForbiddenError("Request is not assigned to you")
            raise InvalidTransitionError(
                row.status.value, target.value, [s.value for s in allowed_next(row.status)]
            )

    logger.info(f"Tour guide {actor.id} moved request {request_id} from {current.value} to {target.value}")
    activity_log.record(
        db, actor.id, actor.role, "update_status", request_id,
        from_status=current,
        to_status=target,
        note=note or f"Updated from {current.value} to {target.value}",
    )
    return db_request, current


def cancel_request(db: Session, actor: schemas.Actor, request_id: int) -> models.TravelRequest:
    """
    Cancels the caller's own pending or assigned request.

    The guide reference is cleared so only assigned, in-progress and completed
    requests ever point at a guide; the released guide is named in the audit note.
    """
    ensure_role(actor, models.UserRole.USER)

    with transaction(db):
        db_request = get_request(db, request_id)
        if db_request is None:
            raise NotFoundError("Request not found")
        if db_request.user_id != actor.id:
            raise ForbiddenError("You can only cancel your own requests")

        prior = db_request.status
        if prior not in CANCELLABLE_STATUSES:
            raise InvalidOperationError(f"Cannot cancel {prior.value} request")
        released_guide = db_request.tour_guide.name if db_request.tour_guide else None

        updated = db.query(models.TravelRequest).filter(
            models.TravelRequest.id == request_id,
            models.TravelRequest.user_id == actor.id,
            models.TravelRequest.status == prior,
        ).update(
            {
                models.TravelRequest.status: Status.CANCELLED,
                models.TravelRequest.tour_guide_id: None,
                models.TravelRequest.updated_at: models.utcnow(),
            },
            synchronize_session=False,
        )

        if updated == 0:
            fresh = _current_status(db, request_id)
            raise InvalidOperationError(f"Cannot cancel {fresh.value if fresh else 'missing'} request")

    note = f"Cancelled request from {prior.value}"
    if released_guide:
        note += f" (released tour guide {released_guide})"
    logger.info(f"User {actor.id} cancelled request {request_id} from {prior.value}")
    activity_log.record(
        db, actor.id, actor.role, "cancel_request", request_id,
        from_status=prior,
        to_status=Status.CANCELLED,
        note=note,
    )
    return db_request
