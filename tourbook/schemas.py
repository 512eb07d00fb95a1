import datetime
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import BookingStatus, RequestStatus, UserRole

T = TypeVar("T")


class Actor(BaseModel):
    """Authenticated caller, as decoded from the session token."""
    id: int
    role: UserRole


# --- Pagination ---

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination


# --- Users ---

class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: str

    model_config = ConfigDict(from_attributes=True)


class TourGuideRead(UserSummary):
    active: bool
    created_at: datetime.datetime


class TourGuideWorkload(TourGuideRead):
    total_requests: int
    active_requests: int
    completed_requests: int


class GuideActiveToggle(BaseModel):
    id: int
    active: bool


# --- Travel requests ---

class RequestCreate(BaseModel):
    # Trimming and length limits are enforced by the lifecycle engine
    destination: str
    message: str | None = None


class RequestRead(BaseModel):
    id: int
    user_id: int
    destination: str
    message: str | None
    status: RequestStatus
    tour_guide_id: int | None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class RequestDetail(RequestRead):
    user: UserSummary
    tour_guide: UserSummary | None = None


class AssignGuide(BaseModel):
    tour_guide_id: int


class StatusUpdate(BaseModel):
    status: str
    note: str | None = None


class StatusUpdateResult(BaseModel):
    id: int
    previous_status: RequestStatus
    new_status: RequestStatus


class RequestStats(BaseModel):
    total: int = 0
    pending: int = 0
    assigned: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0


class ActivityRead(BaseModel):
    id: int
    actor_id: int
    actor_role: str
    actor_name: str | None = None
    action: str
    request_id: int | None
    from_status: str | None
    to_status: str | None
    note: str | None
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class RequestWithActivity(BaseModel):
    request: RequestDetail
    activities: list[ActivityRead]


class GuideDetail(BaseModel):
    tour_guide: TourGuideRead
    requests: list[RequestRead]


# --- Packages ---

class PackageBase(BaseModel):
    destination: str = Field(min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    duration_days: int = Field(ge=1)
    duration_nights: int = Field(default=0, ge=0)
    departure_days: list[str] = []
    itinerary: list[dict | str] = []
    includes: list[str] = []
    excludes: list[str] = []
    highlights: list[str] = []
    featured: bool = False


class PackageCreate(PackageBase):
    title: str = Field(min_length=1, max_length=255)
    seats_total: int = Field(ge=0)


class PackageUpdate(BaseModel):
    """Partial update: only fields present in the payload are written.

    Seat counts are not editable; ``seats_total`` is fixed at creation and
    ``seats_available`` only moves with bookings.
    """
    title: str | None = Field(default=None, min_length=1, max_length=255)
    destination: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    image_url: str | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    duration_days: int | None = Field(default=None, ge=1)
    duration_nights: int | None = Field(default=None, ge=0)
    departure_days: list[str] | None = None
    itinerary: list[dict | str] | None = None
    includes: list[str] | None = None
    excludes: list[str] | None = None
    highlights: list[str] | None = None
    featured: bool | None = None
    active: bool | None = None

    model_config = ConfigDict(extra="forbid")


class PackageRead(PackageBase):
    id: int
    title: str
    slug: str
    seats_total: int
    seats_available: int
    active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


# --- Bookings ---

class ContactInfo(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None


class BookingCreate(BaseModel):
    package_id: int
    departure_date: datetime.date
    num_travelers: int = Field(ge=1)
    notes: str | None = Field(default=None, max_length=1000)
    contact_info: ContactInfo | None = None


class BookingRead(BaseModel):
    id: int
    package_id: int
    user_id: int
    departure_date: datetime.date
    num_travelers: int
    total_price: Decimal
    status: BookingStatus
    notes: str | None
    contact_info: dict | None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class BookingWithPackage(BookingRead):
    package_title: str
    package_destination: str
    package_duration_days: int
    package_duration_nights: int


class BookingStatusChange(BaseModel):
    status: str


# --- Payment proofs ---

class PaymentProofCreate(BaseModel):
    request_id: int
    file_name: str = Field(min_length=1, max_length=255)
    file_path: str = Field(min_length=1, max_length=500)
    file_size: int
    mime_type: str


class PaymentProofRead(PaymentProofCreate):
    id: int
    user_id: int
    uploaded_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


# --- Dashboard ---

class DashboardStats(BaseModel):
    total_requests: int
    pending_requests: int
    assigned_requests: int
    in_progress_requests: int
    completed_requests: int
    cancelled_requests: int
    total_users: int
    total_tour_guides: int
    active_tour_guides: int
    total_packages: int
    active_packages: int
    pending_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    completed_bookings: int
