from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from .. import events, models, schemas
from ..clock import utcnow
from ..engine import get_or_404, require_text, transition
from ..errors import Forbidden, InvalidTransition, ValidationError
from ..services.mailer import Notifier
from ..services.rendering import TemplateRenderer
from ..services.storage import LocalStorage, decode_blob
from ..statuses import DOCUMENT_TRANSITIONS, Action, DocumentStatus
from .templates import renderer_for

logger = structlog.get_logger()


def get_document(db: Session, document_id: int) -> models.Document:
    return get_or_404(db, models.Document, document_id, "document")


def list_documents(
    db: Session,
    *,
    owner_id: Optional[int] = None,
    status: Optional[DocumentStatus] = None,
) -> list[models.Document]:
    q = db.query(models.Document)
    if owner_id is not None:
        q = q.filter(models.Document.owner_id == owner_id)
    if status:
        q = q.filter(models.Document.status == status)
    return q.order_by(models.Document.id.desc()).all()


def _notify_owner(notifier: Optional[Notifier], document: models.Document) -> None:
    if notifier and document.owner_email:
        notifier.notify(
            document.owner_email,
            "document_sent",
            {"title": document.title, "document_id": document.id},
        )


def create_document(
    db: Session,
    data: schemas.DocumentCreate,
    *,
    renderer: Optional[TemplateRenderer] = None,
    notifier: Optional[Notifier] = None,
    actor: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Document:
    """Admin issues a document for an employee to sign, from raw HTML or a template."""
    if data.template_type:
        if renderer is None:
            raise ValidationError("A renderer is required for template documents", field="template_type")
        content = renderer_for(db, renderer).render(data.template_type, {"title": data.title, **data.variables})
    elif data.content and data.content.strip():
        content = data.content
    else:
        raise ValidationError("Provide either content or a template_type", field="content")

    document = models.Document(
        owner_id=data.owner_id,
        owner_email=str(data.owner_email) if data.owner_email else None,
        title=data.title,
        content=content,
        template_ref=data.template_type,
        status=DocumentStatus.PENDING,
        created_by=actor,
        created_at=now or utcnow(),
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    logger.info("Document created", document_id=document.id, owner_id=document.owner_id)

    _notify_owner(notifier, document)
    return document


def _owned(document: models.Document, actor_id: int) -> models.Document:
    if document.owner_id != actor_id:
        raise Forbidden("Only the document's recipient can sign or decline it")
    return document


def sign_document(
    db: Session,
    document_id: int,
    signature: str,
    *,
    actor_id: int,
    storage: LocalStorage,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.Document:
    document = _owned(get_document(db, document_id), actor_id)
    DOCUMENT_TRANSITIONS.target(document.status, Action.SIGN)
    signature = require_text(signature, "signature")
    signature_url = storage.store(signature, folder="signatures")
    return transition(
        db, document, Action.SIGN, {"signature": signature_url}, table=DOCUMENT_TRANSITIONS, bus=bus, now=now
    )


def decline_document(
    db: Session,
    document_id: int,
    reason: str,
    *,
    actor_id: int,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.Document:
    document = _owned(get_document(db, document_id), actor_id)
    return transition(db, document, Action.DECLINE, {"reason": reason}, table=DOCUMENT_TRANSITIONS, bus=bus, now=now)


def resend_document(
    db: Session,
    document_id: int,
    *,
    notifier: Optional[Notifier] = None,
) -> models.Document:
    document = get_document(db, document_id)
    DOCUMENT_TRANSITIONS.target(document.status, Action.RESEND)
    _notify_owner(notifier, document)
    logger.info("Document resent", document_id=document.id)
    return document


UPLOAD_TYPES = {"application/pdf", "image/png", "image/jpeg", "text/html"}


def upload_document(
    db: Session,
    data: schemas.DocumentUpload,
    *,
    storage: LocalStorage,
    notifier: Optional[Notifier] = None,
    actor: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Document:
    """Admin issues a ready-made file (base64 data URL) for an employee to sign."""
    _, mime = decode_blob(data.file)
    if mime not in UPLOAD_TYPES:
        raise ValidationError("Upload a PDF, PNG, JPEG or HTML file as a base64 data URL", field="file")
    file_url = storage.store(data.file, folder="documents")

    document = models.Document(
        owner_id=data.owner_id,
        owner_email=str(data.owner_email) if data.owner_email else None,
        title=data.title,
        file_url=file_url,
        status=DocumentStatus.PENDING,
        created_by=actor,
        created_at=now or utcnow(),
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    logger.info("Document uploaded", document_id=document.id, owner_id=document.owner_id, url=file_url)

    _notify_owner(notifier, document)
    return document


def delete_document(db: Session, document_id: int) -> None:
    document = get_document(db, document_id)
    if document.status == DocumentStatus.SIGNED:
        raise InvalidTransition("document", document.status.value, "delete", "Signed documents cannot be deleted")
    db.delete(document)
    db.commit()
    logger.info("Document deleted", document_id=document_id)
