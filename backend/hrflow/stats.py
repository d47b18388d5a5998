from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models
from .statuses import ContractStatus, FormStatus, OfferStatus, RequestStatus


def _count_by_status(db: Session, model, statuses) -> dict:
    rows = db.query(model.status, func.count(model.id)).group_by(model.status).all()
    counts = {status.value: 0 for status in statuses}
    counts.update({status.value: total for status, total in rows})
    counts["total"] = sum(total for _, total in rows)
    return counts


def hiring_stats(db: Session) -> dict:
    """Counts per status for the hiring board."""
    pending_requests = (
        db.query(func.count(models.DocumentRequest.id))
        .filter(models.DocumentRequest.status == RequestStatus.PENDING)
        .scalar()
    )
    return {
        "offers": _count_by_status(db, models.Offer, OfferStatus),
        "employment_forms": _count_by_status(db, models.EmploymentForm, FormStatus),
        "contracts": _count_by_status(db, models.Contract, ContractStatus),
        "pending_document_requests": pending_requests or 0,
    }
