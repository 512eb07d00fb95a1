from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import bookings, crud, reporting, request_lifecycle, schemas
from ..auth import get_current_admin, read_limiter, write_limiter
from ..database import get_db

router = APIRouter(prefix="/admin", tags=["Admin"])

CurrentAdmin = Annotated[schemas.Actor, Depends(get_current_admin)]


# --- Tour guides ---

@router.get("/tour-guides", response_model=schemas.Page[schemas.TourGuideWorkload])
def read_tour_guides(
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        page: int = 1,
        limit: int = 10,
        rate_limit: None = Depends(read_limiter),
):
    """
    All tour guides with their total, active and completed request counts.
    """
    return reporting.list_guides_with_workload(db, actor, page=page, limit=limit)


@router.get("/tour-guides/{guide_id}", response_model=schemas.GuideDetail)
def read_tour_guide(
        guide_id: int,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.get_guide_detail(db, actor, guide_id)


@router.patch("/tour-guides/{guide_id}/toggle-active", response_model=schemas.GuideActiveToggle)
def toggle_tour_guide(
        guide_id: int,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    guide = crud.toggle_guide_active(db, actor, guide_id)
    return schemas.GuideActiveToggle(id=guide.id, active=guide.active)


# --- Requests ---

@router.get("/requests", response_model=schemas.Page[schemas.RequestRead])
def read_requests(
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        status: str | None = None,
        destination: str | None = None,
        page: int = 1,
        limit: int = 10,
        rate_limit: None = Depends(read_limiter),
):
    return reporting.list_all_requests(db, actor, status=status, destination=destination, page=page, limit=limit)


@router.get("/requests/{request_id}", response_model=schemas.RequestWithActivity)
def read_request(
        request_id: int,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.get_request_detail(db, actor, request_id)


@router.post("/requests/{request_id}/assign", response_model=schemas.RequestRead)
def assign_request(
        request_id: int,
        payload: schemas.AssignGuide,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    """
    Assign a pending request to an active tour guide who is below the workload cap.
    """
    return request_lifecycle.assign_request(db, actor, request_id, payload.tour_guide_id)


@router.post("/requests/{request_id}/reassign", response_model=schemas.RequestRead)
def reassign_request(
        request_id: int,
        payload: schemas.AssignGuide,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    return request_lifecycle.reassign_request(db, actor, request_id, payload.tour_guide_id)


# --- Dashboard ---

@router.get("/dashboard/stats", response_model=schemas.DashboardStats)
def read_dashboard_stats(
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.dashboard_stats(db, actor)


# --- Bookings ---

@router.get("/bookings", response_model=schemas.Page[schemas.BookingWithPackage])
def read_bookings(
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
        rate_limit: None = Depends(read_limiter),
):
    return reporting.list_all_bookings(db, actor, status=status, page=page, limit=limit)


@router.patch("/bookings/{booking_id}/status", response_model=schemas.BookingRead)
def update_booking_status(
        booking_id: int,
        payload: schemas.BookingStatusChange,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    return bookings.update_booking_status(db, actor, booking_id, payload.status)
