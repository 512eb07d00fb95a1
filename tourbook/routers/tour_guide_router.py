from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import reporting, request_lifecycle, schemas
from ..auth import get_current_tour_guide, read_limiter, write_limiter
from ..database import get_db

router = APIRouter(prefix="/tour-guide", tags=["Tour guide"])

CurrentGuide = Annotated[schemas.Actor, Depends(get_current_tour_guide)]


@router.get("/requests", response_model=schemas.Page[schemas.RequestRead])
def read_assigned_requests(
        actor: CurrentGuide,
        db: Session = Depends(get_db),
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
        rate_limit: None = Depends(read_limiter),
):
    """
    Requests assigned to the authenticated tour guide, oldest first.
    """
    return reporting.list_guide_requests(db, actor, status=status, page=page, limit=limit)


@router.get("/requests/stats", response_model=schemas.RequestStats)
def read_request_stats(
        actor: CurrentGuide,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.guide_request_stats(db, actor)


@router.get("/requests/{request_id}", response_model=schemas.RequestDetail)
def read_request(
        request_id: int,
        actor: CurrentGuide,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.get_guide_request(db, actor, request_id)


@router.post("/requests/{request_id}/status", response_model=schemas.StatusUpdateResult)
def update_request_status(
        request_id: int,
        payload: schemas.StatusUpdate,
        actor: CurrentGuide,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    db_request, previous = request_lifecycle.advance_status(db, actor, request_id, payload.status, payload.note)
    return schemas.StatusUpdateResult(id=db_request.id, previous_status=previous, new_status=db_request.status)


@router.get("/requests/{request_id}/activity", response_model=list[schemas.ActivityRead])
def read_request_activity(
        request_id: int,
        actor: CurrentGuide,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return reporting.get_guide_request_activity(db, actor, request_id)
