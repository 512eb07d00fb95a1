"""
Package bookings and the seat inventory they consume.

Seats are taken from ``tour_packages.seats_available`` in the same
transaction that inserts the booking, and handed back in the same transaction
that moves a booking to ``cancelled``. Both seat updates re-assert their bound
in the WHERE clause, and the cancel re-asserts the prior booking status, so a
booking's seats are released at most once no matter how often cancel is retried.

Cancellation policy: users may cancel bookings that still hold seats
(``pending`` or ``confirmed``); completed bookings keep their seats.
"""
import logging
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import activity_log, crud, models, schemas
from .database import transaction
from .exceptions import (
    ForbiddenError,
    InsufficientSeatsError,
    InvalidInputError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
)
from .permissions import ensure_role

logger = logging.getLogger("tourbook.bookings")

Status = models.BookingStatus

# Transitions an admin may apply
BOOKING_TRANSITIONS: dict[Status, tuple[Status, ...]] = {
    Status.PENDING: (Status.CONFIRMED, Status.CANCELLED),
    Status.CONFIRMED: (Status.COMPLETED, Status.CANCELLED),
}

USER_CANCELLABLE_STATUSES = models.ACTIVE_BOOKING_STATUSES


def parse_booking_status(value: str | Status) -> Status:
    if isinstance(value, Status):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError("Status is required")
    try:
        return Status(value.strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in Status)
        raise InvalidInputError(f"Invalid booking status '{value}'. Allowed: {allowed}")


def get_booking(db: Session, booking_id: int):
    return db.query(models.Booking).filter(models.Booking.id == booking_id).first()


def get_user_booking(db: Session, actor: schemas.Actor, booking_id: int) -> models.Booking:
    booking = db.query(models.Booking).filter(
        models.Booking.id == booking_id,
        models.Booking.user_id == actor.id,
    ).first()
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def reserved_seats(db: Session, package_id: int) -> int:
    """Seats held by the package's pending and confirmed bookings."""
    return db.query(func.coalesce(func.sum(models.Booking.num_travelers), 0)).filter(
        models.Booking.package_id == package_id,
        models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
    ).scalar()


def _take_seats(db: Session, package_id: int, seats: int) -> bool:
    updated = db.query(models.Package).filter(
        models.Package.id == package_id,
        models.Package.active.is_(True),
        models.Package.seats_available >= seats,
    ).update(
        {models.Package.seats_available: models.Package.seats_available - seats},
        synchronize_session=False,
    )
    return updated == 1


def _release_seats(db: Session, package_id: int, seats: int) -> None:
    updated = db.query(models.Package).filter(
        models.Package.id == package_id,
        models.Package.seats_available + seats <= models.Package.seats_total,
    ).update(
        {models.Package.seats_available: models.Package.seats_available + seats},
        synchronize_session=False,
    )
    if updated != 1:
        logger.error(f"Refusing to release {seats} seats on package {package_id}: capacity would be exceeded")
        raise InvalidOperationError(
            f"Cannot release {seats} seats: package {package_id} would exceed its capacity"
        )


def create_booking(db: Session, actor: schemas.Actor, booking: schemas.BookingCreate) -> models.Booking:
    """
    Reserves ``num_travelers`` seats and records a pending booking, atomically.

    ``total_price`` is frozen from the package price at this moment.
    """
    ensure_role(actor, models.UserRole.USER)
    seats = booking.num_travelers
    if seats is None or seats < 1:
        raise InvalidInputError("Number of travelers must be at least 1")

    with transaction(db):
        package = crud.get_package(db, booking.package_id)
        if package is None:
            raise NotFoundError("Package not found")
        if not package.active:
            raise InvalidOperationError("Package is not active")
        if package.seats_available < seats:
            raise InsufficientSeatsError(package.seats_available, seats)

        total_price = Decimal(package.price) * seats

        if not _take_seats(db, package.id, seats):
            row = db.query(models.Package.seats_available, models.Package.active).filter(
                models.Package.id == package.id
            ).first()
            if row is None:
                raise NotFoundError("Package not found")
            if not row.active:
                raise InvalidOperationError("Package is not active")
            raise InsufficientSeatsError(row.seats_available, seats)

        db_booking = models.Booking(
            package_id=package.id,
            user_id=actor.id,
            departure_date=booking.departure_date,
            num_travelers=seats,
            total_price=total_price,
            status=Status.PENDING,
            notes=booking.notes,
            contact_info=booking.contact_info.model_dump(exclude_none=True) if booking.contact_info else None,
        )
        db.add(db_booking)
        db.flush()
        booking_id = db_booking.id
        package_title = package.title

    logger.info(f"User {actor.id} booked {seats} seats on package {booking.package_id} (booking {booking_id})")
    activity_log.record(
        db, actor.id, actor.role, "create_booking",
        to_status=Status.PENDING,
        note=f"Booked {seats} seat(s) on {package_title} (booking ID: {booking_id})",
    )
    return db_booking


def _cancel(db: Session, booking: models.Booking, allowed_from: tuple[Status, ...]) -> Status:
    """Flips the booking to cancelled and returns its seats. Caller owns the transaction."""
    prior = booking.status
    if prior == Status.CANCELLED:
        raise InvalidOperationError("Booking already cancelled")
    if prior not in allowed_from:
        raise InvalidOperationError(f"Cannot cancel {prior.value} booking")

    updated = db.query(models.Booking).filter(
        models.Booking.id == booking.id,
        models.Booking.status == prior,
    ).update(
        {
            models.Booking.status: Status.CANCELLED,
            models.Booking.updated_at: models.utcnow(),
        },
        synchronize_session=False,
    )
    if updated == 0:
        fresh = db.query(models.Booking.status).filter(models.Booking.id == booking.id).scalar()
        if fresh == Status.CANCELLED:
            raise InvalidOperationError("Booking already cancelled")
        raise InvalidOperationError(f"Cannot cancel {fresh.value if fresh else 'missing'} booking")

    _release_seats(db, booking.package_id, booking.num_travelers)
    return prior


def cancel_booking(db: Session, actor: schemas.Actor, booking_id: int) -> models.Booking:
    ensure_role(actor, models.UserRole.USER)

    with transaction(db):
        booking = get_booking(db, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking.user_id != actor.id:
            raise ForbiddenError("You can only cancel your own bookings")
        prior = _cancel(db, booking, USER_CANCELLABLE_STATUSES)
        seats = booking.num_travelers
        package_id = booking.package_id

    logger.info(f"User {actor.id} cancelled booking {booking_id}, released {seats} seats on package {package_id}")
    activity_log.record(
        db, actor.id, actor.role, "cancel_booking",
        from_status=prior,
        to_status=Status.CANCELLED,
        note=f"Cancelled booking {booking_id} from {prior.value}, released {seats} seat(s)",
    )
    return booking


def update_booking_status(
        db: Session,
        actor: schemas.Actor,
        booking_id: int,
        new_status: str | Status,
) -> models.Booking:
    """
    Admin move along BOOKING_TRANSITIONS. Only the cancel path touches seat
    counts; confirming or completing keeps the seats reserved at creation.
    """
    ensure_role(actor, models.UserRole.ADMIN)
    target = parse_booking_status(new_status)

    with transaction(db):
        booking = get_booking(db, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")

        current = booking.status
        allowed = BOOKING_TRANSITIONS.get(current, ())
        if target not in allowed:
            raise InvalidTransitionError(current.value, target.value, [s.value for s in allowed])

        if target == Status.CANCELLED:
            _cancel(db, booking, allowed_from=(current,))
        else:
            updated = db.query(models.Booking).filter(
                models.Booking.id == booking_id,
                models.Booking.status == current,
            ).update(
                {
                    models.Booking.status: target,
                    models.Booking.updated_at: models.utcnow(),
                },
                synchronize_session=False,
            )
            if updated == 0:
                fresh = db.query(models.Booking.status).filter(models.Booking.id == booking_id).scalar()
                if fresh is None:
                    raise NotFoundError("Booking not found")
                raise InvalidTransitionError(
                    fresh.value, target.value, [s.value for s in BOOKING_TRANSITIONS.get(fresh, ())]
                )

    logger.info(f"Admin {actor.id} moved booking {booking_id} from {current.value} to {target.value}")
    activity_log.record(
        db, actor.id, actor.role, "update_booking_status",
        from_status=current,
        to_status=target,
        note=f"Booking {booking_id} updated from {current.value} to {target.value}",
    )
    return booking
