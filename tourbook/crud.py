import logging
import re

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import activity_log, models, schemas
from .database import transaction
from .exceptions import DuplicateSlugError, InvalidInputError, NotFoundError
from .permissions import ensure_role

logger = logging.getLogger("tourbook.packages")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NULLABLE_PACKAGE_FIELDS = {"description", "image_url"}


# --- User directory ---

def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_tour_guide(db: Session, guide_id: int):
    return db.query(models.User).filter(
        models.User.id == guide_id,
        models.User.role == models.UserRole.TOUR_GUIDE,
    ).first()


def toggle_guide_active(db: Session, actor: schemas.Actor, guide_id: int) -> models.User:
    """
    Activates or deactivates a tour guide. Inactive guides keep the requests
    they already hold but can no longer be chosen for assignment.
    """
    ensure_role(actor, models.UserRole.ADMIN)

    with transaction(db):
        guide = get_tour_guide(db, guide_id)
        if guide is None:
            raise NotFoundError("Tour guide not found")
        guide.active = not guide.active
        new_active = guide.active
        guide_name = guide.name

    logger.info(f"Admin {actor.id} set tour guide {guide_id} active={new_active}")
    activity_log.record(
        db, actor.id, actor.role, "toggle_tour_guide_status",
        note=f"{'Activated' if new_active else 'Deactivated'} tour guide: {guide_name}",
    )
    return guide


# --- Packages ---

def generate_slug(title: str) -> str:
    """Lowercase, runs of non-alphanumerics become one hyphen, no edge hyphens."""
    return _NON_ALNUM.sub("-", title.lower()).strip("-")


def _slug_for(title: str) -> str:
    slug = generate_slug(title)
    if not slug:
        raise InvalidInputError("Title must contain at least one letter or digit")
    return slug


def _ensure_slug_free(db: Session, slug: str, exclude_id: int | None = None) -> None:
    query = db.query(models.Package.id).filter(models.Package.slug == slug)
    if exclude_id is not None:
        query = query.filter(models.Package.id != exclude_id)
    if query.first() is not None:
        raise DuplicateSlugError(slug)


def _is_slug_conflict(error: IntegrityError) -> bool:
    # SQLite names the column, PostgreSQL the unique index; both mention the slug
    return "slug" in str(error.orig)


def get_package(db: Session, package_id: int):
    return db.query(models.Package).filter(models.Package.id == package_id).first()


def get_package_by_slug(db: Session, slug: str):
    return db.query(models.Package).filter(
        models.Package.slug == slug,
        models.Package.active.is_(True),
    ).first()


def list_packages(
        db: Session,
        featured: bool | None = None,
        destination: str | None = None,
        active_only: bool = True,
) -> list[models.Package]:
    query = db.query(models.Package)
    if active_only:
        query = query.filter(models.Package.active.is_(True))
    if featured:
        query = query.filter(models.Package.featured.is_(True))
    if destination:
        query = query.filter(models.Package.destination.ilike(f"%{destination.strip()}%"))
    return query.order_by(models.Package.featured.desc(), models.Package.created_at.desc()).all()


def create_package(db: Session, actor: schemas.Actor, package: schemas.PackageCreate) -> models.Package:
    ensure_role(actor, models.UserRole.ADMIN)
    slug = _slug_for(package.title)

    with transaction(db):
        _ensure_slug_free(db, slug)
        db_package = models.Package(
            **package.model_dump(),
            slug=slug,
            seats_available=package.seats_total,
            active=True,
        )
        db.add(db_package)
        try:
            db.flush()
        except IntegrityError as e:
            # Lost a race against another package with the same slug
            if not _is_slug_conflict(e):
                raise
            raise DuplicateSlugError(slug)

    db.refresh(db_package)
    logger.info(f"Admin {actor.id} created package {db_package.id} ({slug})")
    activity_log.record(
        db, actor.id, actor.role, "create_package",
        note=f"Created tour package: {db_package.title} (ID: {db_package.id})",
    )
    return db_package


def update_package(
        db: Session,
        actor: schemas.Actor,
        package_id: int,
        changes: schemas.PackageUpdate,
) -> models.Package:
    """
    Applies only the fields present in ``changes``. The slug follows the title
    and ``updated_at`` is always refreshed, even for an empty payload.
    """
    ensure_role(actor, models.UserRole.ADMIN)
    fields = changes.model_dump(exclude_unset=True)
    for field, value in fields.items():
        if value is None and field not in _NULLABLE_PACKAGE_FIELDS:
            raise InvalidInputError(f"{field} cannot be null")

    with transaction(db):
        db_package = get_package(db, package_id)
        if db_package is None:
            raise NotFoundError("Package not found")

        if "title" in fields:
            slug = _slug_for(fields["title"])
            _ensure_slug_free(db, slug, exclude_id=package_id)
            fields["slug"] = slug

        for field, value in fields.items():
            setattr(db_package, field, value)
        db_package.updated_at = models.utcnow()

        try:
            db.flush()
        except IntegrityError as e:
            if "slug" not in fields or not _is_slug_conflict(e):
                raise
            raise DuplicateSlugError(fields["slug"])

    db.refresh(db_package)
    logger.info(f"Admin {actor.id} updated package {package_id}: {sorted(fields)}")
    activity_log.record(
        db, actor.id, actor.role, "update_package",
        note=f"Updated tour package: {db_package.title} (ID: {package_id})",
    )
    return db_package


def _toggle_flag(db: Session, actor: schemas.Actor, package_id: int, flag: str) -> models.Package:
    ensure_role(actor, models.UserRole.ADMIN)

    with transaction(db):
        db_package = get_package(db, package_id)
        if db_package is None:
            raise NotFoundError("Package not found")
        setattr(db_package, flag, not getattr(db_package, flag))
        db_package.updated_at = models.utcnow()

    db.refresh(db_package)
    value = getattr(db_package, flag)
    logger.info(f"Admin {actor.id} set package {package_id} {flag}={value}")
    activity_log.record(
        db, actor.id, actor.role, f"toggle_package_{flag}",
        note=f"Set {flag}={value} on tour package: {db_package.title} (ID: {package_id})",
    )
    return db_package


def toggle_package_active(db: Session, actor: schemas.Actor, package_id: int) -> models.Package:
    return _toggle_flag(db, actor, package_id, "active")


def toggle_package_featured(db: Session, actor: schemas.Actor, package_id: int) -> models.Package:
    return _toggle_flag(db, actor, package_id, "featured")


def delete_package(db: Session, actor: schemas.Actor, package_id: int) -> None:
    """Deletes the package; its bookings go with it through the foreign key cascade."""
    ensure_role(actor, models.UserRole.ADMIN)

    with transaction(db):
        db_package = get_package(db, package_id)
        if db_package is None:
            raise NotFoundError("Package not found")
        title = db_package.title
        db.delete(db_package)

    logger.info(f"Admin {actor.id} deleted package {package_id}")
    activity_log.record(
        db, actor.id, actor.role, "delete_package",
        note=f"Deleted tour package: {title} (ID: {package_id})",
    )
