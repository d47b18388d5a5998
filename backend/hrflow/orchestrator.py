"""
Lifecycle orchestrator.

Reacts to a stage reaching its advancing state by creating the next stage's
record, and does nothing else:

    OfferAccepted   -> EmploymentForm (draft)
    FormApproved    -> Contract (draft)
    ContractSigned  -> Account (pending)

Each creation is recorded in ``stage_links`` keyed on ``(source_type,
source_id)``. A redelivered event finds the link and returns the existing
record; two concurrent deliveries race on the unique constraint and the loser
rolls back and resolves to the winner's record.
"""

from typing import Callable, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import events, models
from .clock import utcnow
from .stages.accounts import new_account_for_contract
from .stages.contracts import get_contract, new_contract_for_form
from .stages.employment_forms import get_form, new_form_for_offer
from .stages.offers import get_offer

logger = structlog.get_logger()

TARGET_MODELS = {
    "employment_form": models.EmploymentForm,
    "contract": models.Contract,
    "account": models.Account,
}


def find_link(db: Session, source_type: str, source_id: int) -> Optional[models.StageLink]:
    return (
        db.query(models.StageLink)
        .filter(models.StageLink.source_type == source_type, models.StageLink.source_id == source_id)
        .first()
    )


class LifecycleOrchestrator:
    def register(self, bus: events.EventBus) -> "LifecycleOrchestrator":
        bus.subscribe(events.OfferAccepted, self.on_offer_accepted)
        bus.subscribe(events.FormApproved, self.on_form_approved)
        bus.subscribe(events.ContractSigned, self.on_contract_signed)
        return self

    def _advance(self, db: Session, event: events.DomainEvent, target_type: str, create: Callable):
        existing = find_link(db, event.source_type, event.source_id)
        if existing is not None:
            logger.info(
                "Duplicate event ignored",
                source_type=event.source_type,
                source_id=event.source_id,
                target_id=existing.target_id,
            )
            return db.get(TARGET_MODELS[existing.target_type], existing.target_id)

        try:
            target = create()
            db.add(
                models.StageLink(
                    source_type=event.source_type,
                    source_id=event.source_id,
                    target_type=target_type,
                    target_id=target.id,
                    created_at=utcnow(),
                )
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            winner = find_link(db, event.source_type, event.source_id)
            if winner is None:
                raise
            logger.info("Concurrent delivery resolved", source_type=event.source_type, source_id=event.source_id)
            return db.get(TARGET_MODELS[winner.target_type], winner.target_id)

        logger.info(
            "Stage advanced",
            source_type=event.source_type,
            source_id=event.source_id,
            target_type=target_type,
            target_id=target.id,
        )
        return target

    def on_offer_accepted(self, db: Session, event: events.OfferAccepted):
        offer = get_offer(db, event.source_id)
        return self._advance(db, event, "employment_form", lambda: new_form_for_offer(db, offer, now=event.occurred_at))

    def on_form_approved(self, db: Session, event: events.FormApproved):
        form = get_form(db, event.source_id)
        return self._advance(db, event, "contract", lambda: new_contract_for_form(db, form, now=event.occurred_at))

    def on_contract_signed(self, db: Session, event: events.ContractSigned):
        contract = get_contract(db, event.source_id)
        return self._advance(db, event, "account", lambda: new_account_for_contract(db, contract, now=event.occurred_at))
