from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrflow import schemas
from hrflow.database import get_db
from hrflow.deps import Principal, get_bus, get_notifier, get_principal, require_admin, require_owner
from hrflow.events import EventBus
from hrflow.services.mailer import Notifier
from hrflow.stages import offers
from hrflow.statuses import OfferStatus

router = APIRouter(tags=["offers"])


@router.post("/admin/offers", response_model=schemas.OfferOut, status_code=201)
def create_offer(
    data: schemas.OfferCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
):
    return offers.create_offer(db, data, notifier=notifier, actor=admin.label)


@router.get("/admin/offers", response_model=list[schemas.OfferOut])
def list_offers(
    status: Optional[OfferStatus] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return offers.list_offers(db, status=status, limit=limit, offset=offset)


@router.get("/offers/{offer_id}", response_model=schemas.OfferOut)
def get_offer(offer_id: int, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    offer = offers.get_offer(db, offer_id)
    require_owner(principal, offer.candidate_email)
    return offer


@router.post("/offers/{offer_id}/respond", response_model=schemas.OfferOut)
def respond_to_offer(
    offer_id: int,
    data: schemas.OfferRespond,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    notifier: Notifier = Depends(get_notifier),
    bus: EventBus = Depends(get_bus),
):
    require_owner(principal, offers.get_offer(db, offer_id).candidate_email, allow_admin=False)
    return offers.respond_to_offer(db, offer_id, data.response, data.reason, notifier=notifier, bus=bus)


@router.post("/admin/offers/{offer_id}/revoke", response_model=schemas.OfferOut)
def revoke_offer(
    offer_id: int,
    data: schemas.OfferRevoke,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    bus: EventBus = Depends(get_bus),
):
    return offers.revoke_offer(db, offer_id, data.reason, bus=bus)


@router.post("/admin/offers/{offer_id}/expire", response_model=schemas.OfferOut)
def expire_offer(
    offer_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    bus: EventBus = Depends(get_bus),
):
    return offers.expire_offer(db, offer_id, bus=bus)
