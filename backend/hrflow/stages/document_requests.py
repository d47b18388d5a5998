from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from .. import config, events, models, schemas
from ..clock import utcnow
from ..engine import apply, get_or_404, require_text
from ..errors import Forbidden, ValidationError
from ..services.mailer import Notifier
from ..services.rendering import TemplateRenderer, html_to_pdf
from ..services.storage import LocalStorage
from ..statuses import REQUEST_TRANSITIONS, Action, DocumentRequestType, RequestStatus
from .templates import renderer_for

logger = structlog.get_logger()


def get_request(db: Session, request_id: int) -> models.DocumentRequest:
    return get_or_404(db, models.DocumentRequest, request_id, "document_request")


def list_requests(
    db: Session,
    *,
    owner_id: Optional[int] = None,
    status: Optional[RequestStatus] = None,
    type: Optional[DocumentRequestType] = None,
) -> list[models.DocumentRequest]:
    q = db.query(models.DocumentRequest)
    if owner_id is not None:
        q = q.filter(models.DocumentRequest.owner_id == owner_id)
    if status:
        q = q.filter(models.DocumentRequest.status == status)
    if type:
        q = q.filter(models.DocumentRequest.type == type)
    return q.order_by(models.DocumentRequest.id.desc()).all()


def submit_request(
    db: Session,
    employee_id: int,
    data: schemas.DocumentRequestCreate,
    *,
    employee_email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.DocumentRequest:
    custom_type = data.custom_type.strip() if data.custom_type and data.custom_type.strip() else None
    if data.type == DocumentRequestType.CERTIFICATE and not custom_type:
        raise ValidationError("Certificate requests need a custom type", field="custom_type")
    if data.type != DocumentRequestType.CERTIFICATE and custom_type:
        raise ValidationError("custom_type only applies to certificate requests", field="custom_type")

    reason = (data.reason or "").strip()
    if len(reason) < config.MIN_REQUEST_REASON_LENGTH:
        raise ValidationError(
            f"Reason must be at least {config.MIN_REQUEST_REASON_LENGTH} characters",
            field="reason",
        )

    request = models.DocumentRequest(
        owner_id=employee_id,
        owner_email=employee_email,
        type=data.type,
        custom_type=custom_type,
        reason=reason,
        status=RequestStatus.PENDING,
        download_count=0,
        created_at=now or utcnow(),
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info("Document request submitted", request_id=request.id, type=request.type.value)
    return request


def generate_document(
    db: Session,
    request_id: int,
    rendered_content: Optional[str] = None,
    *,
    renderer: TemplateRenderer,
    storage: LocalStorage,
    notifier: Optional[Notifier] = None,
    actor: Optional[str] = None,
    employee_name: Optional[str] = None,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.DocumentRequest:
    """
    Admin produces the requested document and stores it.

    ``rendered_content`` is used as-is when given (the admin edited the
    template); otherwise the request type's template is rendered. Rendering
    or storage failures propagate and leave the request pending so the admin
    can retry.
    """
    now = now or utcnow()
    request = get_request(db, request_id)
    REQUEST_TRANSITIONS.target(request.status, Action.GENERATE)

    if rendered_content and rendered_content.strip():
        html = rendered_content
    else:
        html = renderer_for(db, renderer).render(
            request.type.value,
            {
                "employee_name": employee_name or f"Employee #{request.owner_id}",
                "reason": request.reason,
                "custom_type": request.custom_type,
                "issued_at": now,
            },
        )

    pdf = html_to_pdf(html)
    if pdf is not None:
        url = storage.store(pdf, folder="requests", filename=f"request_{request.id}.pdf", content_type="application/pdf")
    else:
        url = storage.store(html, folder="requests", filename=f"request_{request.id}.html", content_type="text/html")

    apply(
        db, request, Action.GENERATE, REQUEST_TRANSITIONS, bus=bus, now=now,
        generated_document_url=url,
        processed_by=actor,
        completed_at=now,
    )

    if notifier and request.owner_email:
        notifier.notify(
            request.owner_email,
            "document_generated",
            {"document_type": request.custom_type or request.type.value, "request_id": request.id},
        )
    return request


def cancel_request(
    db: Session,
    request_id: int,
    *,
    actor_id: int,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.DocumentRequest:
    now = now or utcnow()
    request = get_request(db, request_id)
    if request.owner_id != actor_id:
        raise Forbidden("Only the requester can cancel this request")
    return apply(db, request, Action.CANCEL, REQUEST_TRANSITIONS, bus=bus, now=now, completed_at=now)


def mark_downloaded(
    db: Session,
    request_id: int,
    *,
    actor_id: Optional[int] = None,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.DocumentRequest:
    """Read tracking only; repeated downloads keep working."""
    request = get_request(db, request_id)
    if actor_id is not None and request.owner_id != actor_id:
        raise Forbidden("Only the requester can download this document")
    return apply(
        db, request, Action.DOWNLOAD, REQUEST_TRANSITIONS, bus=bus, now=now,
        download_count=request.download_count + 1,
    )


def reject_request(
    db: Session,
    request_id: int,
    admin_comments: str,
    *,
    actor: Optional[str] = None,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.DocumentRequest:
    now = now or utcnow()
    request = get_request(db, request_id)
    REQUEST_TRANSITIONS.target(request.status, Action.REJECT)
    comments = require_text(admin_comments, "admin_comments", "Comments are required when rejecting a request")
    return apply(
        db, request, Action.REJECT, REQUEST_TRANSITIONS, bus=bus, now=now,
        admin_comments=comments,
        processed_by=actor,
        completed_at=now,
    )
