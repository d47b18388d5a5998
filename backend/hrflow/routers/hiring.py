from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrflow import schemas
from hrflow.database import get_db
from hrflow.deps import Principal, get_bus, require_admin
from hrflow.events import EventBus
from hrflow.stages.contracts import expire_due_contracts
from hrflow.stages.offers import expire_due_offers
from hrflow.stats import hiring_stats

router = APIRouter(tags=["hiring"])


@router.get("/admin/hiring/stats", response_model=schemas.HiringStats)
def get_hiring_stats(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return hiring_stats(db)


@router.post("/admin/maintenance/expire", response_model=schemas.ExpirySweep)
def expire_overdue(
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    bus: EventBus = Depends(get_bus),
):
    return {
        "expired_offers": expire_due_offers(db, bus=bus),
        "expired_contracts": expire_due_contracts(db, bus=bus),
    }
