from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrflow import schemas
from hrflow.database import get_db
from hrflow.deps import (
    Principal,
    get_bus,
    get_notifier,
    get_principal,
    get_renderer,
    get_storage,
    require_admin,
)
from hrflow.errors import Forbidden
from hrflow.events import EventBus
from hrflow.services.mailer import Notifier
from hrflow.services.rendering import TemplateRenderer
from hrflow.services.storage import LocalStorage
from hrflow.stages import document_requests as requests
from hrflow.statuses import DocumentRequestType, RequestStatus

router = APIRouter(tags=["document-requests"])


@router.post("/requests", response_model=schemas.DocumentRequestOut, status_code=201)
def submit_request(
    data: schemas.DocumentRequestCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    return requests.submit_request(db, principal.user_id, data, employee_email=principal.email)


@router.get("/requests", response_model=list[schemas.DocumentRequestOut])
def list_requests(
    status: Optional[RequestStatus] = None,
    type: Optional[DocumentRequestType] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    owner_id = None if principal.is_admin else principal.user_id
    return requests.list_requests(db, owner_id=owner_id, status=status, type=type)


@router.get("/requests/{request_id}", response_model=schemas.DocumentRequestOut)
def get_request(request_id: int, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    request = requests.get_request(db, request_id)
    if not principal.is_admin and request.owner_id != principal.user_id:
        raise Forbidden()
    return request


@router.post("/admin/requests/{request_id}/generate", response_model=schemas.DocumentRequestOut)
def generate_document(
    request_id: int,
    data: schemas.DocumentRequestGenerate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    renderer: TemplateRenderer = Depends(get_renderer),
    storage: LocalStorage = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
    bus: EventBus = Depends(get_bus),
):
    return requests.generate_document(
        db, request_id, data.html_content,
        renderer=renderer, storage=storage, notifier=notifier,
        actor=admin.label, bus=bus,
    )


@router.post("/requests/{request_id}/cancel", response_model=schemas.DocumentRequestOut)
def cancel_request(
    request_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    bus: EventBus = Depends(get_bus),
):
    return requests.cancel_request(db, request_id, actor_id=principal.user_id, bus=bus)


@router.post("/requests/{request_id}/download", response_model=schemas.DocumentRequestOut)
def download_document(
    request_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    bus: EventBus = Depends(get_bus),
):
    actor_id = None if principal.is_admin else principal.user_id
    return requests.mark_downloaded(db, request_id, actor_id=actor_id, bus=bus)


@router.post("/admin/requests/{request_id}/reject", response_model=schemas.DocumentRequestOut)
def reject_request(
    request_id: int,
    data: schemas.DocumentRequestReject,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    bus: EventBus = Depends(get_bus),
):
    return requests.reject_request(db, request_id, data.admin_comments, actor=admin.label, bus=bus)
