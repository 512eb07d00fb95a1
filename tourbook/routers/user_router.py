from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import bookings, reporting, request_lifecycle, schemas
from ..auth import get_current_user, read_limiter, write_limiter
from ..database import get_db

router = APIRouter(prefix="/user", tags=["User"])

CurrentUser = Annotated[schemas.Actor, Depends(get_current_user)]


# --- Travel requests ---

@router.post("/requests", response_model=schemas.RequestRead, status_code=status.HTTP_201_CREATED)
def create_request(
        payload: schemas.RequestCreate,
        actor: CurrentUser,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    """
    Create a new travel request for the authenticated user. It starts out pending.
    """
    return request_lifecycle.create_request(db, actor, payload.destination, payload.message)


@router.get("/requests", response_model=schemas.Page[schemas.RequestRead])
def read_requests(
        actor: CurrentUser,
        db: Session = Depends(get_db),
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
        rate_limit: None = Depends(read_limiter),
):
    return reporting.list_user_requests(db, actor, status=status, page=page, limit=limit)


@router.get("/requests/stats", response_model=schemas.RequestStats)
def read_request_stats(
        actor: CurrentUser,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.user_request_stats(db, actor)


@router.get("/requests/{request_id}", response_model=schemas.RequestDetail)
def read_request(
        request_id: int,
        actor: CurrentUser,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.get_user_request(db, actor, request_id)


@router.post("/requests/{request_id}/cancel", response_model=schemas.RequestRead)
def cancel_request(
        request_id: int,
        actor: CurrentUser,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    return request_lifecycle.cancel_request(db, actor, request_id)


# --- Bookings ---

@router.post("/bookings", response_model=schemas.BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
        booking: schemas.BookingCreate,
        actor: CurrentUser,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    """
    Book seats on a tour package. Seats are held until the booking is cancelled.
    """
    return bookings.create_booking(db, actor, booking)


@router.get("/bookings", response_model=schemas.Page[schemas.BookingWithPackage])
def read_bookings(
        actor: CurrentUser,
        db: Session = Depends(get_db),
        page: int = 1,
        limit: int = 10,
        rate_limit: None = Depends(read_limiter),
):
    return reporting.list_user_bookings(db, actor, page=page, limit=limit)


@router.get("/bookings/{booking_id}", response_model=schemas.BookingWithPackage)
def read_booking(
        booking_id: int,
        actor: CurrentUser,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.get_user_booking_detail(db, actor, booking_id)


@router.post("/bookings/{booking_id}/cancel", response_model=schemas.BookingRead)
def cancel_booking(
        booking_id: int,
        actor: CurrentUser,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    return bookings.cancel_booking(db, actor, booking_id)
