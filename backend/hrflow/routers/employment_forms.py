from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrflow import schemas
from hrflow.database import get_db
from hrflow.deps import Principal, get_bus, get_notifier, get_principal, require_admin, require_owner
from hrflow.events import EventBus
from hrflow.services.mailer import Notifier
from hrflow.stages import employment_forms as forms
from hrflow.statuses import FormStatus

router = APIRouter(tags=["employment-forms"])


@router.get("/employment-forms/revisable-fields")
def revisable_fields():
    return [{"id": key, "label": label} for key, label in forms.REVISABLE_FIELDS.items()]


@router.get("/admin/employment-forms", response_model=list[schemas.EmploymentFormOut])
def list_forms(
    status: Optional[FormStatus] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return forms.list_forms(db, status=status, limit=limit, offset=offset)


@router.get("/employment-forms/{form_id}", response_model=schemas.EmploymentFormOut)
def get_form(form_id: int, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    form = forms.get_form(db, form_id)
    require_owner(principal, form.offer.candidate_email)
    return form


@router.post("/employment-forms/{form_id}/submit", response_model=schemas.EmploymentFormOut)
def submit_form(
    form_id: int,
    data: schemas.EmploymentFormSubmit,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    bus: EventBus = Depends(get_bus),
):
    require_owner(principal, forms.get_form(db, form_id).offer.candidate_email, allow_admin=False)
    return forms.submit_form(db, form_id, data, bus=bus)


@router.post("/employment-forms/{form_id}/amend", response_model=schemas.EmploymentFormOut)
def amend_form(
    form_id: int,
    data: schemas.EmploymentFormAmend,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    bus: EventBus = Depends(get_bus),
):
    require_owner(principal, forms.get_form(db, form_id).offer.candidate_email, allow_admin=False)
    return forms.amend_form(db, form_id, data, bus=bus)


@router.post("/admin/employment-forms/{form_id}/review", response_model=schemas.EmploymentFormOut)
def review_form(
    form_id: int,
    data: schemas.FormReview,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    bus: EventBus = Depends(get_bus),
):
    return forms.review_form(db, form_id, data.decision, data.feedback, reviewer=admin.label, bus=bus)


@router.post("/admin/employment-forms/{form_id}/revisions", response_model=schemas.EmploymentFormOut)
def request_revision(
    form_id: int,
    data: schemas.RevisionRequestIn,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
    bus: EventBus = Depends(get_bus),
):
    return forms.request_revision(
        db, form_id, data.requested_fields, data.notes,
        requester=admin.label, notifier=notifier, bus=bus,
    )
