import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    TIMESTAMP,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def _enum_type(enum_cls: type[PyEnum], name: str) -> SQLEnum:
    # Store the lowercase values ('pending'), not the member names ('PENDING')
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )


# --- ENUM for User Roles ---
class UserRole(str, PyEnum):
    USER = "user"
    TOUR_GUIDE = "tour_guide"
    ADMIN = "admin"


class RequestStatus(str, PyEnum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses counted against a guide's workload
ACTIVE_REQUEST_STATUSES = (RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS)

# Statuses that still hold their seats on the package
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


# --- User Model ---
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(_enum_type(UserRole, "userrole"), default=UserRole.USER, nullable=False, index=True)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(TIMESTAMP, default=utcnow)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    requests = relationship(
        "TravelRequest",
        back_populates="user",
        foreign_keys="TravelRequest.user_id",
        passive_deletes=True,
    )
    bookings = relationship("Booking", back_populates="user", passive_deletes=True)


# --- Travel Request Model ---
class TravelRequest(Base):
    __tablename__ = "requests"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    destination = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)

    status = Column(
        _enum_type(RequestStatus, "requeststatus"),
        default=RequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    # Set iff status is assigned, in_progress or completed; a guide holding requests cannot be deleted
    tour_guide_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True, index=True)

    created_at = Column(TIMESTAMP, default=utcnow)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="requests", foreign_keys=[user_id])
    tour_guide = relationship("User", foreign_keys=[tour_guide_id])
    activities = relationship("ActivityLog", back_populates="request", passive_deletes=True)
    payment_proofs = relationship("PaymentProof", back_populates="request", passive_deletes=True)


# --- Activity Log Model (append-only) ---
class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    actor_role = Column(String(20), nullable=False)
    action = Column(String(100), nullable=False)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=True, index=True)
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow)

    actor = relationship("User")
    request = relationship("TravelRequest", back_populates="activities")

    @property
    def actor_name(self) -> str | None:
        return self.actor.name if self.actor else None


# --- Tour Package Model ---
class Package(Base):
    __tablename__ = "tour_packages"

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    destination = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    price = Column(Numeric(10, 2), nullable=False)
    duration_days = Column(Integer, nullable=False)
    duration_nights = Column(Integer, default=0, nullable=False)
    departure_days = Column(JSON, default=list, nullable=False)

    # seats_total is fixed at creation; seats_available moves with bookings
    seats_total = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)

    itinerary = Column(JSON, default=list, nullable=False)
    includes = Column(JSON, default=list, nullable=False)
    excludes = Column(JSON, default=list, nullable=False)
    highlights = Column(JSON, default=list, nullable=False)

    featured = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(TIMESTAMP, default=utcnow)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    bookings = relationship(
        "Booking",
        back_populates="package",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_tour_packages_price_non_negative"),
        CheckConstraint("seats_total >= 0", name="ck_tour_packages_seats_total_non_negative"),
        CheckConstraint(
            "seats_available >= 0 AND seats_available <= seats_total",
            name="ck_tour_packages_seats_available_range",
        ),
    )


# --- Booking Model ---
class Booking(Base):
    __tablename__ = "tour_bookings"

    id = Column(Integer, primary_key=True, index=True)

    package_id = Column(Integer, ForeignKey("tour_packages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    departure_date = Column(Date, nullable=False)
    num_travelers = Column(Integer, nullable=False)
    # Frozen at booking time, never recomputed from the package price
    total_price = Column(Numeric(12, 2), nullable=False)

    status = Column(
        _enum_type(BookingStatus, "bookingstatus"),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    notes = Column(Text, nullable=True)
    contact_info = Column(JSON, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    package = relationship("Package", back_populates="bookings")
    user = relationship("User", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("num_travelers >= 1", name="ck_tour_bookings_num_travelers_positive"),
        Index("ix_tour_bookings_package_status", "package_id", "status"),
    )


# --- Payment Proof Metadata ---
class PaymentProof(Base):
    __tablename__ = "payment_proofs"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # The file itself lives in the blob store; only its reference is kept here
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)

    uploaded_at = Column(TIMESTAMP, default=utcnow)

    request = relationship("TravelRequest", back_populates="payment_proofs")
