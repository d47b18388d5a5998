"""
Employment form stage.

The candidate fills the form once (``submit_form``), the admin then either
decides (``review_form``) or sends it back with ``request_revision``. A
revision request keeps the form in ``pending_review``; the candidate answers
it with ``amend_form`` on the same record. Revision history and accepted
policies only ever grow.
"""

from datetime import datetime
from typing import Iterable, Optional

import structlog
from sqlalchemy.orm import Session

from .. import events, models, schemas
from ..clock import utcnow
from ..engine import apply, get_or_404, require_text
from ..errors import Conflict, InvalidTransition, ValidationError
from ..services.mailer import Notifier
from ..statuses import FORM_TRANSITIONS, Action, FormStatus, OfferStatus

logger = structlog.get_logger()

# sections an admin may send back for correction
REVISABLE_FIELDS = {
    "cnicFrontImage": "CNIC (Front Image)",
    "cnicBackImage": "CNIC (Back Image)",
    "photo": "Profile Photograph",
    "primaryAddress": "Primary Address",
    "secondaryAddress": "Secondary Address",
    "phone": "Phone Number",
    "legalName": "Legal Name Spelling",
}

SECTIONS = ("personal_info", "cnic_info", "contact_info", "addresses")


def get_form(db: Session, form_id: int) -> models.EmploymentForm:
    return get_or_404(db, models.EmploymentForm, form_id, "employment_form")


def list_forms(
    db: Session,
    *,
    status: Optional[FormStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[models.EmploymentForm]:
    q = db.query(models.EmploymentForm)
    if status:
        q = q.filter(models.EmploymentForm.status == status)
    return q.order_by(models.EmploymentForm.id.desc()).offset(offset).limit(limit).all()


def new_form_for_offer(db: Session, offer: models.Offer, *, now: Optional[datetime] = None) -> models.EmploymentForm:
    """Stage a draft form for an accepted offer; the caller commits."""
    if offer.status != OfferStatus.ACCEPTED:
        raise InvalidTransition(
            "offer", offer.status.value, "create_employment_form",
            "An employment form can only be created for an accepted offer",
        )
    if offer.employment_form is not None:
        raise Conflict(f"Offer {offer.id} already has employment form {offer.employment_form.id}")

    form = models.EmploymentForm(
        offer=offer,
        status=FormStatus.DRAFT,
        accepted_policies=[],
        revision_count=0,
        revisions_addressed=0,
        created_at=now or utcnow(),
    )
    db.add(form)
    db.flush()
    return form


def has_outstanding_revision(form: models.EmploymentForm) -> bool:
    return form.revision_count > form.revisions_addressed


def _ensure_offer_live(form: models.EmploymentForm, action: Action) -> None:
    if form.offer is not None and form.offer.status == OfferStatus.REVOKED:
        raise InvalidTransition(
            "employment_form", form.status.value, action.value,
            f"Offer {form.offer_id} was revoked",
        )


def _merge_policies(existing: list, accepted: Iterable[schemas.PolicyAcceptance], now: datetime) -> list:
    seen = {p["policy_id"] for p in existing}
    merged = list(existing)
    for policy in accepted:
        if policy.policy_id in seen:
            continue
        seen.add(policy.policy_id)
        entry = policy.model_dump(mode="json")
        entry["accepted_at"] = entry["accepted_at"] or now.isoformat()
        merged.append(entry)
    return merged


def submit_form(
    db: Session,
    form_id: int,
    data: schemas.EmploymentFormSubmit,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.EmploymentForm:
    now = now or utcnow()
    form = get_form(db, form_id)
    FORM_TRANSITIONS.target(form.status, Action.SUBMIT)
    _ensure_offer_live(form, Action.SUBMIT)

    changes = {name: getattr(data, name).model_dump(mode="json") for name in SECTIONS}
    changes["accepted_policies"] = _merge_policies(form.accepted_policies or [], data.accepted_policies, now)
    return apply(db, form, Action.SUBMIT, FORM_TRANSITIONS, bus=bus, now=now, submitted_at=now, **changes)


def amend_form(
    db: Session,
    form_id: int,
    data: schemas.EmploymentFormAmend,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.EmploymentForm:
    """Candidate resubmission answering every revision request issued so far."""
    now = now or utcnow()
    form = get_form(db, form_id)
    FORM_TRANSITIONS.target(form.status, Action.AMEND)
    _ensure_offer_live(form, Action.AMEND)
    if not has_outstanding_revision(form):
        raise InvalidTransition(
            "employment_form", form.status.value, Action.AMEND.value,
            "No revision has been requested for this form",
        )

    changes = {
        name: getattr(data, name).model_dump(mode="json")
        for name in SECTIONS
        if getattr(data, name) is not None
    }
    if not changes and not data.accepted_policies:
        raise ValidationError("Nothing to resubmit", field="sections")
    changes["accepted_policies"] = _merge_policies(form.accepted_policies or [], data.accepted_policies, now)

    return apply(
        db, form, Action.AMEND, FORM_TRANSITIONS, bus=bus, now=now,
        resubmitted_at=now,
        revisions_addressed=form.revision_count,
        **changes,
    )


def review_form(
    db: Session,
    form_id: int,
    decision: str,
    feedback: Optional[str] = None,
    *,
    reviewer: Optional[str] = None,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.EmploymentForm:
    """Approve or reject a form under review; rejections must say why."""
    now = now or utcnow()
    form = get_form(db, form_id)
    actions = {"approved": Action.APPROVE, "rejected": Action.REJECT}
    if decision not in actions:
        raise ValidationError("Decision must be approved or rejected", field="decision")
    action = actions[decision]

    FORM_TRANSITIONS.target(form.status, action)
    _ensure_offer_live(form, action)
    if action == Action.REJECT:
        feedback = require_text(feedback, "feedback", "Feedback is required when rejecting a form")
    else:
        feedback = feedback.strip() if feedback and feedback.strip() else None

    apply(
        db, form, action, FORM_TRANSITIONS, bus=bus, now=now,
        reviewed_by=reviewer,
        reviewed_at=now,
        review_feedback=feedback,
    )
    if action == Action.APPROVE:
        (bus or events.bus).publish(db, events.FormApproved(source_id=form.id, occurred_at=now))
    return form


def request_revision(
    db: Session,
    form_id: int,
    requested_fields: list[str],
    notes: Optional[str] = None,
    *,
    requester: Optional[str] = None,
    notifier: Optional[Notifier] = None,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.EmploymentForm:
    now = now or utcnow()
    form = get_form(db, form_id)
    FORM_TRANSITIONS.target(form.status, Action.REQUEST_REVISION)
    _ensure_offer_live(form, Action.REQUEST_REVISION)

    if not requested_fields:
        raise ValidationError("Select at least one field to revise", field="requested_fields")
    unknown = [f for f in requested_fields if f not in REVISABLE_FIELDS]
    if unknown:
        raise ValidationError(f"Fields cannot be revised: {', '.join(unknown)}", field="requested_fields")
    fields = list(dict.fromkeys(requested_fields))

    db.add(
        models.RevisionRequest(
            employment_form=form,
            requested_fields=fields,
            notes=notes.strip() if notes else None,
            requested_by=requester,
            requested_at=now,
        )
    )
    apply(
        db, form, Action.REQUEST_REVISION, FORM_TRANSITIONS, bus=bus, now=now,
        revision_count=form.revision_count + 1,
    )
    logger.info("Revision requested", form_id=form.id, fields=fields, history=len(form.revision_requests))

    if notifier and form.offer is not None:
        notifier.notify(
            form.offer.candidate_email,
            "revision_requested",
            {
                "candidate_name": form.offer.candidate_name,
                "form_id": form.id,
                "requested_fields": [REVISABLE_FIELDS[f] for f in fields],
                "notes": notes,
            },
        )
    return form
