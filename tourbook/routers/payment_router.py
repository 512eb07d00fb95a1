from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import payments, schemas
from ..auth import get_current_actor, get_current_user, read_limiter, write_limiter
from ..database import get_db

router = APIRouter(prefix="/payment", tags=["Payments"])


@router.post("/proofs", response_model=schemas.PaymentProofRead, status_code=status.HTTP_201_CREATED)
def create_payment_proof(
        proof: schemas.PaymentProofCreate,
        actor: Annotated[schemas.Actor, Depends(get_current_user)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    """
    Attach an already uploaded payment proof to one of the caller's requests.
    """
    return payments.record_payment_proof(db, actor, proof)


@router.get("/request/{request_id}", response_model=list[schemas.PaymentProofRead])
def read_payment_proofs(
        request_id: int,
        actor: Annotated[schemas.Actor, Depends(get_current_actor)],
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    return payments.list_payment_proofs(db, actor, request_id)
