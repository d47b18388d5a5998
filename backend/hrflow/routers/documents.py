from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrflow import schemas
from hrflow.database import get_db
from hrflow.deps import Principal, get_bus, get_notifier, get_principal, get_renderer, get_storage, require_admin
from hrflow.errors import Forbidden
from hrflow.events import EventBus
from hrflow.services.mailer import Notifier
from hrflow.services.rendering import TemplateRenderer
from hrflow.services.storage import LocalStorage
from hrflow.stages import documents
from hrflow.statuses import DocumentStatus

router = APIRouter(tags=["documents"])


@router.post("/admin/documents", response_model=schemas.DocumentOut, status_code=201)
def create_document(
    data: schemas.DocumentCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    renderer: TemplateRenderer = Depends(get_renderer),
    notifier: Notifier = Depends(get_notifier),
):
    return documents.create_document(db, data, renderer=renderer, notifier=notifier, actor=admin.label)


@router.post("/admin/documents/upload", response_model=schemas.DocumentOut, status_code=201)
def upload_document(
    data: schemas.DocumentUpload,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    storage: LocalStorage = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
):
    return documents.upload_document(db, data, storage=storage, notifier=notifier, actor=admin.label)


@router.get("/documents", response_model=list[schemas.DocumentOut])
def list_documents(
    status: Optional[DocumentStatus] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    # employees only ever see their own documents
    owner_id = None if principal.is_admin else principal.user_id
    return documents.list_documents(db, owner_id=owner_id, status=status)


@router.get("/documents/{document_id}", response_model=schemas.DocumentOut)
def get_document(document_id: int, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    document = documents.get_document(db, document_id)
    if not principal.is_admin and document.owner_id != principal.user_id:
        raise Forbidden()
    return document


@router.post("/documents/{document_id}/sign", response_model=schemas.DocumentOut)
def sign_document(
    document_id: int,
    data: schemas.SignatureIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    storage: LocalStorage = Depends(get_storage),
    bus: EventBus = Depends(get_bus),
):
    return documents.sign_document(
        db, document_id, data.signature, actor_id=principal.user_id, storage=storage, bus=bus,
    )


@router.post("/documents/{document_id}/decline", response_model=schemas.DocumentOut)
def decline_document(
    document_id: int,
    data: schemas.DocumentDecline,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    bus: EventBus = Depends(get_bus),
):
    return documents.decline_document(db, document_id, data.reason, actor_id=principal.user_id, bus=bus)


@router.post("/admin/documents/{document_id}/resend", response_model=schemas.DocumentOut)
def resend_document(
    document_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
):
    return documents.resend_document(db, document_id, notifier=notifier)


@router.delete("/admin/documents/{document_id}", status_code=204)
def delete_document(document_id: int, db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    documents.delete_document(db, document_id)
