from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from .. import config, events, models, schemas
from ..clock import as_naive_utc, utcnow
from ..engine import apply, get_or_404, require_text
from ..errors import Conflict, ContractExpired, InvalidTransition
from ..services.mailer import Notifier
from ..services.rendering import TemplateRenderer, append_signature_footer
from ..services.storage import LocalStorage
from ..statuses import CONTRACT_TRANSITIONS, Action, ContractStatus, EmploymentType, FormStatus
from .accounts import get_account_for_contract, send_activation_link
from .employment_forms import get_form

logger = structlog.get_logger()

DETAIL_FIELDS = (
    "position",
    "department",
    "employment_type",
    "start_date",
    "compensation",
    "probation_period_months",
)


def get_contract(db: Session, contract_id: int) -> models.Contract:
    return get_or_404(db, models.Contract, contract_id, "contract")


def list_contracts(
    db: Session,
    *,
    status: Optional[ContractStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[models.Contract]:
    q = db.query(models.Contract)
    if status:
        q = q.filter(models.Contract.status == status)
    return q.order_by(models.Contract.id.desc()).offset(offset).limit(limit).all()


def active_contract_for_form(db: Session, employment_form_id: int) -> Optional[models.Contract]:
    return (
        db.query(models.Contract)
        .filter(
            models.Contract.employment_form_id == employment_form_id,
            models.Contract.status != ContractStatus.EXPIRED,
        )
        .first()
    )


def new_contract_for_form(
    db: Session,
    form: models.EmploymentForm,
    details: Optional[schemas.ContractDetails] = None,
    *,
    now: Optional[datetime] = None,
) -> models.Contract:
    """Stage a draft contract for an approved form; the caller commits."""
    if form.status != FormStatus.APPROVED:
        raise InvalidTransition(
            "employment_form", form.status.value, "create_contract",
            "A contract can only be created from an approved employment form",
        )
    existing = active_contract_for_form(db, form.id)
    if existing is not None:
        raise Conflict(
            f"Employment form {form.id} already has an active contract ({existing.id})",
            details={"contract_id": existing.id},
        )

    offer = form.offer
    personal = form.personal_info or {}
    contact = form.contact_info or {}
    given = details.model_dump(exclude_none=True) if details else {}

    contract = models.Contract(
        employment_form=form,
        employee_name=personal.get("legal_name") or offer.candidate_name,
        employee_email=contact.get("email") or offer.candidate_email,
        position=given.get("position") or offer.position,
        department=given.get("department", offer.department),
        employment_type=given.get("employment_type") or EmploymentType(config.DEFAULT_EMPLOYMENT_TYPE),
        start_date=as_naive_utc(given.get("start_date")) or offer.joining_date,
        compensation=given.get("compensation", offer.compensation),
        probation_period_months=given.get("probation_period_months", config.DEFAULT_PROBATION_MONTHS),
        status=ContractStatus.DRAFT,
        created_at=now or utcnow(),
    )
    db.add(contract)
    db.flush()
    return contract


def create_contract(
    db: Session,
    employment_form_id: int,
    details: Optional[schemas.ContractDetails] = None,
    *,
    now: Optional[datetime] = None,
) -> models.Contract:
    """Admin creates the contract for an approved form; one active contract per form."""
    form = get_form(db, employment_form_id)
    contract = new_contract_for_form(db, form, details, now=now)
    db.commit()
    db.refresh(contract)
    logger.info("Contract created", contract_id=contract.id, employment_form_id=form.id)
    return contract


def update_contract(
    db: Session,
    contract_id: int,
    details: schemas.ContractDetails,
    *,
    now: Optional[datetime] = None,
) -> models.Contract:
    contract = get_contract(db, contract_id)
    changes = {
        name: value
        for name, value in details.model_dump(exclude_unset=True).items()
        if name in DETAIL_FIELDS and value is not None
    }
    if "start_date" in changes:
        changes["start_date"] = as_naive_utc(changes["start_date"])
    if "position" in changes:
        changes["position"] = require_text(changes["position"], "position")
    return apply(db, contract, Action.UPDATE, CONTRACT_TRANSITIONS, now=now, **changes)


def send_contract(
    db: Session,
    contract_id: int,
    *,
    renderer: TemplateRenderer,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> models.Contract:
    now = now or utcnow()
    contract = get_contract(db, contract_id)
    CONTRACT_TRANSITIONS.target(contract.status, Action.SEND)

    expires_at = now + timedelta(days=config.CONTRACT_VALIDITY_DAYS)
    # a render failure leaves the contract in draft
    html = renderer.render(
        "contract",
        {
            "employee_name": contract.employee_name,
            "position": contract.position,
            "department": contract.department,
            "employment_type": contract.employment_type.value,
            "start_date": contract.start_date,
            "compensation": contract.compensation,
            "probation_period_months": contract.probation_period_months,
            "expires_at": expires_at,
        },
    )
    apply(
        db, contract, Action.SEND, CONTRACT_TRANSITIONS, now=now,
        html_body=html,
        sent_at=now,
        expires_at=expires_at,
    )

    if notifier:
        notifier.notify(
            contract.employee_email,
            "contract_sent",
            {
                "employee_name": contract.employee_name,
                "position": contract.position,
                "contract_id": contract.id,
                "expires_at": expires_at,
            },
        )
    return contract


def sign_contract(
    db: Session,
    contract_id: int,
    signature: str,
    *,
    storage: LocalStorage,
    notifier: Optional[Notifier] = None,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.Contract:
    """Employee signs a sent contract within its validity window."""
    now = now or utcnow()
    contract = get_contract(db, contract_id)
    CONTRACT_TRANSITIONS.target(contract.status, Action.SIGN)
    signature = require_text(signature, "signature")
    if contract.expires_at is not None and now >= contract.expires_at:
        raise ContractExpired(contract.id)

    # artifacts are stored before the transition so a storage failure changes nothing
    signature_url = storage.store(signature, folder="signatures")
    signed_html = append_signature_footer(
        contract.html_body or "",
        signer_name=contract.employee_name,
        signed_at=now,
        signature_url=signature_url,
    )
    signed_url = storage.store(
        signed_html,
        folder="contracts",
        filename=f"contract_{contract.id}_signed.html",
        content_type="text/html",
    )

    apply(
        db, contract, Action.SIGN, CONTRACT_TRANSITIONS, bus=bus, now=now,
        employee_signature=signature_url,
        employee_signed_at=now,
        signed_document_url=signed_url,
    )
    (bus or events.bus).publish(db, events.ContractSigned(source_id=contract.id, occurred_at=now))
    account = get_account_for_contract(db, contract.id)
    if account is not None:
        send_activation_link(db, account, notifier=notifier, now=now)
    else:
        logger.warning("No account after signing; activation link not sent", contract_id=contract.id)
    return contract


def expire_contract(
    db: Session,
    contract_id: int,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.Contract:
    """Expire a sent contract past its window; signed or expired contracts are left alone."""
    now = now or utcnow()
    contract = get_contract(db, contract_id)
    if contract.status in (ContractStatus.SIGNED, ContractStatus.EXPIRED):
        return contract

    CONTRACT_TRANSITIONS.target(contract.status, Action.EXPIRE)
    if contract.expires_at is None or now < contract.expires_at:
        raise InvalidTransition(
            "contract", contract.status.value, Action.EXPIRE.value,
            f"Contract {contract.id} is still within its signing window",
        )
    return apply(db, contract, Action.EXPIRE, CONTRACT_TRANSITIONS, bus=bus, now=now)


def expire_due_contracts(
    db: Session,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> list[int]:
    now = now or utcnow()
    due = (
        db.query(models.Contract.id)
        .filter(models.Contract.status == ContractStatus.SENT, models.Contract.expires_at <= now)
        .all()
    )
    expired = [expire_contract(db, contract_id, bus=bus, now=now).id for (contract_id,) in due]
    if expired:
        logger.info("Expired overdue contracts", count=len(expired))
    return expired
