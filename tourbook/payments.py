import logging

from sqlalchemy.orm import Session

from . import activity_log, models, schemas
from .config import settings
from .database import transaction
from .exceptions import InvalidInputError, NotFoundError
from .permissions import ensure_role
from .request_lifecycle import get_request

logger = logging.getLogger("tourbook.payments")


def record_payment_proof(
        db: Session,
        actor: schemas.Actor,
        proof: schemas.PaymentProofCreate,
) -> models.PaymentProof:
    """
    Stores the metadata of an already uploaded payment proof. The file itself
    stays in the blob store and is never opened here.
    """
    ensure_role(actor, models.UserRole.USER)

    if proof.mime_type not in settings.PAYMENT_PROOF_MIME_TYPES:
        raise InvalidInputError("Only images (JPEG, PNG) and PDF files are allowed")
    if proof.file_size <= 0 or proof.file_size > settings.PAYMENT_PROOF_MAX_BYTES:
        raise InvalidInputError(
            f"File size must be between 1 and {settings.PAYMENT_PROOF_MAX_BYTES} bytes"
        )

    with transaction(db):
        db_request = get_request(db, proof.request_id)
        if db_request is None or db_request.user_id != actor.id:
            raise NotFoundError("Request not found")

        db_proof = models.PaymentProof(
            request_id=proof.request_id,
            user_id=actor.id,
            file_name=proof.file_name,
            file_path=proof.file_path,
            file_size=proof.file_size,
            mime_type=proof.mime_type,
        )
        db.add(db_proof)
        db.flush()
        proof_id = db_proof.id

    logger.info(f"User {actor.id} attached payment proof {proof_id} to request {proof.request_id}")
    activity_log.record(
        db, actor.id, actor.role, "upload_payment_proof", proof.request_id,
        note=f"Uploaded payment proof {proof.file_name}",
    )
    return db_proof


def list_payment_proofs(db: Session, actor: schemas.Actor, request_id: int) -> list[models.PaymentProof]:
    """Visible to the request owner, its assigned tour guide and admins."""
    db_request = get_request(db, request_id)
    if db_request is None:
        raise NotFoundError("Request not found")

    visible = (
        actor.role == models.UserRole.ADMIN
        or db_request.user_id == actor.id
        or db_request.tour_guide_id == actor.id
    )
    if not visible:
        raise NotFoundError("Request not found")

    return db.query(models.PaymentProof).filter(
        models.PaymentProof.request_id == request_id
    ).order_by(models.PaymentProof.uploaded_at.desc(), models.PaymentProof.id.desc()).all()
