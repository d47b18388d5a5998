from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from .. import config, events, models, schemas
from ..clock import as_naive_utc, utcnow
from ..engine import apply, get_or_404, require_text
from ..errors import AlreadyTerminal, InvalidTransition, OfferExpired, ValidationError
from ..services.mailer import Notifier
from ..statuses import OFFER_TRANSITIONS, Action, FormStatus, OfferStatus

logger = structlog.get_logger()


def create_offer(
    db: Session,
    data: schemas.OfferCreate,
    *,
    notifier: Optional[Notifier] = None,
    actor: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Offer:
    now = now or utcnow()
    expires_at = as_naive_utc(data.expires_at) or now + timedelta(hours=config.OFFER_VALIDITY_HOURS)
    if expires_at <= now:
        raise ValidationError("Offer expiry must be in the future", field="expires_at")

    offer = models.Offer(
        candidate_name=data.candidate_name,
        candidate_email=str(data.candidate_email),
        position=data.position,
        department=data.department,
        compensation=data.compensation,
        joining_date=as_naive_utc(data.joining_date),
        expires_at=expires_at,
        status=OfferStatus.PENDING,
        created_by=actor,
        created_at=now,
        updated_at=now,
    )
    db.add(offer)
    db.commit()
    db.refresh(offer)
    logger.info("Offer created", offer_id=offer.id, position=offer.position)

    if notifier:
        notifier.notify(
            offer.candidate_email,
            "offer_sent",
            {
                "candidate_name": offer.candidate_name,
                "position": offer.position,
                "offer_id": offer.id,
                "expires_at": offer.expires_at,
            },
        )
    return offer


def get_offer(db: Session, offer_id: int) -> models.Offer:
    return get_or_404(db, models.Offer, offer_id, "offer")


def list_offers(
    db: Session,
    *,
    status: Optional[OfferStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[models.Offer]:
    q = db.query(models.Offer)
    if status:
        q = q.filter(models.Offer.status == status)
    return q.order_by(models.Offer.id.desc()).offset(offset).limit(limit).all()


def respond_to_offer(
    db: Session,
    offer_id: int,
    response: str,
    reason: Optional[str] = None,
    *,
    notifier: Optional[Notifier] = None,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.Offer:
    """Candidate accepts or rejects a pending offer before it expires."""
    now = now or utcnow()
    offer = get_offer(db, offer_id)
    if response not in ("accept", "reject"):
        raise ValidationError("Response must be accept or reject", field="response")
    action = Action.ACCEPT if response == "accept" else Action.REJECT

    OFFER_TRANSITIONS.target(offer.status, action)
    if offer.is_overdue(now):
        # stored status stays pending; expire_offer records the expiry
        raise OfferExpired(offer.id)

    changes = {"responded_at": now}
    if action == Action.REJECT and reason and reason.strip():
        changes["rejection_reason"] = reason.strip()
    apply(db, offer, action, OFFER_TRANSITIONS, bus=bus, now=now, **changes)

    if action == Action.ACCEPT:
        (bus or events.bus).publish(db, events.OfferAccepted(source_id=offer.id, occurred_at=now))
        form = offer.employment_form
        if notifier and form is not None:
            notifier.notify(
                offer.candidate_email,
                "employment_form_ready",
                {"candidate_name": offer.candidate_name, "form_id": form.id},
            )
    return offer


def revoke_offer(
    db: Session,
    offer_id: int,
    reason: str,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.Offer:
    """Admin withdraws an offer that has not progressed past form approval."""
    now = now or utcnow()
    offer = get_offer(db, offer_id)
    OFFER_TRANSITIONS.target(offer.status, Action.REVOKE)
    if offer.is_overdue(now):
        raise AlreadyTerminal("offer", OfferStatus.EXPIRED.value, Action.REVOKE.value)
    reason = require_text(reason, "reason", "A revocation reason is required")

    form = offer.employment_form
    if form is not None and form.status == FormStatus.APPROVED:
        raise InvalidTransition(
            "offer", offer.status.value, Action.REVOKE.value,
            "Offer cannot be revoked after the employment form was approved",
        )
    return apply(db, offer, Action.REVOKE, OFFER_TRANSITIONS, bus=bus, now=now, revocation_reason=reason)


def expire_offer(
    db: Session,
    offer_id: int,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.Offer:
    """Record the expiry of a pending offer past its deadline; repeat calls are no-ops."""
    now = now or utcnow()
    offer = get_offer(db, offer_id)
    if offer.status == OfferStatus.EXPIRED:
        return offer

    OFFER_TRANSITIONS.target(offer.status, Action.EXPIRE)
    if not offer.is_overdue(now):
        raise InvalidTransition(
            "offer", offer.status.value, Action.EXPIRE.value,
            f"Offer {offer.id} does not expire until {offer.expires_at.isoformat()}",
        )
    return apply(db, offer, Action.EXPIRE, OFFER_TRANSITIONS, bus=bus, now=now)


def expire_due_offers(
    db: Session,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> list[int]:
    now = now or utcnow()
    due = (
        db.query(models.Offer.id)
        .filter(models.Offer.status == OfferStatus.PENDING, models.Offer.expires_at <= now)
        .all()
    )
    expired = [expire_offer(db, offer_id, bus=bus, now=now).id for (offer_id,) in due]
    if expired:
        logger.info("Expired overdue offers", count=len(expired))
    return expired
