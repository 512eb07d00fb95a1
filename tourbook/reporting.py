"""Read-side views: paginated listings, per-actor counts and the admin dashboard."""
import math

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

from . import activity_log, bookings, crud, models, schemas
from .config import settings
from .exceptions import NotFoundError
from .permissions import ensure_role
from .request_lifecycle import get_request, parse_status

GUIDE_DETAIL_REQUEST_LIMIT = 50


def normalize_pagination(page: int | None, limit: int | None) -> tuple[int, int, int]:
    """
    Returns ``(page, limit, offset)``. A missing or zero limit falls back to the
    default page size; anything else is clamped to [1, MAX_PAGE_SIZE].
    """
    page = max(1, page or 1)
    limit = limit or settings.DEFAULT_PAGE_SIZE
    limit = min(settings.MAX_PAGE_SIZE, max(1, limit))
    return page, limit, (page - 1) * limit


def _pagination(page: int, limit: int, total: int) -> schemas.Pagination:
    return schemas.Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


def _paginate(query: Query, page: int | None, limit: int | None):
    page, limit, offset = normalize_pagination(page, limit)
    total = query.order_by(None).count()
    rows = query.offset(offset).limit(limit).all()
    return rows, _pagination(page, limit, total)


def _request_page(query: Query, page, limit) -> schemas.Page[schemas.RequestRead]:
    rows, pagination = _paginate(query, page, limit)
    return schemas.Page[schemas.RequestRead](
        items=[schemas.RequestRead.model_validate(r) for r in rows],
        pagination=pagination,
    )


# --- Requests ---

def list_user_requests(
        db: Session,
        actor: schemas.Actor,
        status: str | None = None,
        page: int | None = 1,
        limit: int | None = None,
) -> schemas.Page[schemas.RequestRead]:
    query = db.query(models.TravelRequest).filter(models.TravelRequest.user_id == actor.id)
    if status:
        query = query.filter(models.TravelRequest.status == parse_status(status))
    query = query.order_by(models.TravelRequest.created_at.desc(), models.TravelRequest.id.desc())
    return _request_page(query, page, limit)


def list_guide_requests(
        db: Session,
        actor: schemas.Actor,
        status: str | None = None,
        page: int | None = 1,
        limit: int | None = None,
) -> schemas.Page[schemas.RequestRead]:
    ensure_role(actor, models.UserRole.TOUR_GUIDE)
    query = db.query(models.TravelRequest).filter(models.TravelRequest.tour_guide_id == actor.id)
    if status:
        query = query.filter(models.TravelRequest.status == parse_status(status))
    query = query.order_by(models.TravelRequest.created_at.asc(), models.TravelRequest.id.asc())
    return _request_page(query, page, limit)


def list_all_requests(
        db: Session,
        actor: schemas.Actor,
        status: str | None = None,
        destination: str | None = None,
        page: int | None = 1,
        limit: int | None = None,
) -> schemas.Page[schemas.RequestRead]:
    ensure_role(actor, models.UserRole.ADMIN)
    query = db.query(models.TravelRequest)
    if status:
        query = query.filter(models.TravelRequest.status == parse_status(status))
    if destination and destination.strip():
        query = query.filter(models.TravelRequest.destination.ilike(f"%{destination.strip()}%"))
    query = query.order_by(models.TravelRequest.created_at.asc(), models.TravelRequest.id.asc())
    return _request_page(query, page, limit)


def get_user_request(db: Session, actor: schemas.Actor, request_id: int) -> models.TravelRequest:
    db_request = get_request(db, request_id)
    if db_request is None or db_request.user_id != actor.id:
        raise NotFoundError("Request not found")
    return db_request


def get_guide_request(db: Session, actor: schemas.Actor, request_id: int) -> models.TravelRequest:
    ensure_role(actor, models.UserRole.TOUR_GUIDE)
    db_request = get_request(db, request_id)
    if db_request is None or db_request.tour_guide_id != actor.id:
        raise NotFoundError("Request not found")
    return db_request


def get_guide_request_activity(db: Session, actor: schemas.Actor, request_id: int) -> list[models.ActivityLog]:
    get_guide_request(db, actor, request_id)
    return activity_log.get_request_activity(db, request_id)


def get_request_detail(db: Session, actor: schemas.Actor, request_id: int) -> schemas.RequestWithActivity:
    ensure_role(actor, models.UserRole.ADMIN)
    db_request = get_request(db, request_id)
    if db_request is None:
        raise NotFoundError("Request not found")
    return schemas.RequestWithActivity(
        request=schemas.RequestDetail.model_validate(db_request),
        activities=[schemas.ActivityRead.model_validate(a) for a in activity_log.get_request_activity(db, request_id)],
    )


def _status_counts(query: Query) -> schemas.RequestStats:
    rows = query.with_entities(
        models.TravelRequest.status, func.count(models.TravelRequest.id)
    ).group_by(models.TravelRequest.status).all()
    counts = {status.value: count for status, count in rows}
    return schemas.RequestStats(total=sum(counts.values()), **counts)


def user_request_stats(db: Session, actor: schemas.Actor) -> schemas.RequestStats:
    return _status_counts(db.query(models.TravelRequest).filter(models.TravelRequest.user_id == actor.id))


def guide_request_stats(db: Session, actor: schemas.Actor) -> schemas.RequestStats:
    ensure_role(actor, models.UserRole.TOUR_GUIDE)
    return _status_counts(db.query(models.TravelRequest).filter(models.TravelRequest.tour_guide_id == actor.id))


# --- Tour guides ---

def list_guides_with_workload(
        db: Session,
        actor: schemas.Actor,
        page: int | None = 1,
        limit: int | None = None,
) -> schemas.Page[schemas.TourGuideWorkload]:
    ensure_role(actor, models.UserRole.ADMIN)
    page, limit, offset = normalize_pagination(page, limit)

    active = case((models.TravelRequest.status.in_(models.ACTIVE_REQUEST_STATUSES), 1), else_=0)
    completed = case((models.TravelRequest.status == models.RequestStatus.COMPLETED, 1), else_=0)

    rows = (
        db.query(
            models.User,
            func.count(models.TravelRequest.id),
            func.coalesce(func.sum(active), 0),
            func.coalesce(func.sum(completed), 0),
        )
        .outerjoin(models.TravelRequest, models.TravelRequest.tour_guide_id == models.User.id)
        .filter(models.User.role == models.UserRole.TOUR_GUIDE)
        .group_by(models.User.id)
        .order_by(models.User.created_at.desc(), models.User.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    total = db.query(func.count(models.User.id)).filter(models.User.role == models.UserRole.TOUR_GUIDE).scalar()

    items = [
        schemas.TourGuideWorkload(
            **schemas.TourGuideRead.model_validate(guide).model_dump(),
            total_requests=total_requests,
            active_requests=active_requests,
            completed_requests=completed_requests,
        )
        for guide, total_requests, active_requests, completed_requests in rows
    ]
    return schemas.Page[schemas.TourGuideWorkload](items=items, pagination=_pagination(page, limit, total))


def get_guide_detail(db: Session, actor: schemas.Actor, guide_id: int) -> schemas.GuideDetail:
    ensure_role(actor, models.UserRole.ADMIN)
    guide = crud.get_tour_guide(db, guide_id)
    if guide is None:
        raise NotFoundError("Tour guide not found")
    recent = (
        db.query(models.TravelRequest)
        .filter(models.TravelRequest.tour_guide_id == guide_id)
        .order_by(models.TravelRequest.created_at.desc(), models.TravelRequest.id.desc())
        .limit(GUIDE_DETAIL_REQUEST_LIMIT)
        .all()
    )
    return schemas.GuideDetail(
        tour_guide=schemas.TourGuideRead.model_validate(guide),
        requests=[schemas.RequestRead.model_validate(r) for r in recent],
    )


# --- Bookings ---

def _with_package(booking: models.Booking, package: models.Package) -> schemas.BookingWithPackage:
    return schemas.BookingWithPackage(
        **schemas.BookingRead.model_validate(booking).model_dump(),
        package_title=package.title,
        package_destination=package.destination,
        package_duration_days=package.duration_days,
        package_duration_nights=package.duration_nights,
    )


def _booking_page(query: Query, page, limit) -> schemas.Page[schemas.BookingWithPackage]:
    rows, pagination = _paginate(query, page, limit)
    return schemas.Page[schemas.BookingWithPackage](
        items=[_with_package(b, p) for b, p in rows],
        pagination=pagination,
    )


def list_user_bookings(
        db: Session,
        actor: schemas.Actor,
        page: int | None = 1,
        limit: int | None = None,
) -> schemas.Page[schemas.BookingWithPackage]:
    query = (
        db.query(models.Booking, models.Package)
        .join(models.Package, models.Booking.package_id == models.Package.id)
        .filter(models.Booking.user_id == actor.id)
        .order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
    )
    return _booking_page(query, page, limit)


def get_user_booking_detail(db: Session, actor: schemas.Actor, booking_id: int) -> schemas.BookingWithPackage:
    booking = bookings.get_user_booking(db, actor, booking_id)
    return _with_package(booking, booking.package)


def list_all_bookings(
        db: Session,
        actor: schemas.Actor,
        status: str | None = None,
        page: int | None = 1,
        limit: int | None = None,
) -> schemas.Page[schemas.BookingWithPackage]:
    ensure_role(actor, models.UserRole.ADMIN)
    query = db.query(models.Booking, models.Package).join(
        models.Package, models.Booking.package_id == models.Package.id
    )
    if status:
        query = query.filter(models.Booking.status == bookings.parse_booking_status(status))
    query = query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
    return _booking_page(query, page, limit)


# --- Dashboard ---

def dashboard_stats(db: Session, actor: schemas.Actor) -> schemas.DashboardStats:
    ensure_role(actor, models.UserRole.ADMIN)

    requests = _status_counts(db.query(models.TravelRequest))

    role_counts = dict(
        db.query(models.User.role, func.count(models.User.id)).group_by(models.User.role).all()
    )
    active_guides = db.query(func.count(models.User.id)).filter(
        models.User.role == models.UserRole.TOUR_GUIDE,
        models.User.active.is_(True),
    ).scalar()

    total_packages = db.query(func.count(models.Package.id)).scalar()
    active_packages = db.query(func.count(models.Package.id)).filter(models.Package.active.is_(True)).scalar()

    booking_counts = dict(
        db.query(models.Booking.status, func.count(models.Booking.id)).group_by(models.Booking.status).all()
    )

    return schemas.DashboardStats(
        total_requests=requests.total,
        pending_requests=requests.pending,
        assigned_requests=requests.assigned,
        in_progress_requests=requests.in_progress,
        completed_requests=requests.completed,
        cancelled_requests=requests.cancelled,
        total_users=role_counts.get(models.UserRole.USER, 0),
        total_tour_guides=role_counts.get(models.UserRole.TOUR_GUIDE, 0),
        active_tour_guides=active_guides,
        total_packages=total_packages,
        active_packages=active_packages,
        pending_bookings=booking_counts.get(models.BookingStatus.PENDING, 0),
        confirmed_bookings=booking_counts.get(models.BookingStatus.CONFIRMED, 0),
        cancelled_bookings=booking_counts.get(models.BookingStatus.CANCELLED, 0),
        completed_bookings=booking_counts.get(models.BookingStatus.COMPLETED, 0),
    )
