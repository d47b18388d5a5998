from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrflow import schemas
from hrflow.database import get_db
from hrflow.deps import Principal, get_bus, get_notifier, get_principal, require_admin, require_owner
from hrflow.events import EventBus
from hrflow.services.mailer import Notifier
from hrflow.stages import accounts

router = APIRouter(tags=["accounts"])


# reached from the account_ready email, before the employee has credentials
@router.post("/auth/set-password/{token}", response_model=schemas.AccountOut)
def set_password(
    token: str,
    data: schemas.AccountActivate,
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_bus),
):
    return accounts.activate_account(db, token, data.password, bus=bus)


@router.post("/admin/accounts/{employment_form_id}/activation-link", response_model=schemas.AccountOut)
def resend_activation_link(
    employment_form_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
):
    account = accounts.get_account_for_form(db, employment_form_id)
    accounts.send_activation_link(db, account, notifier=notifier)
    return account


@router.get("/accounts/{employment_form_id}", response_model=schemas.AccountOut)
def get_account(employment_form_id: int, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    account = accounts.get_account_for_form(db, employment_form_id)
    require_owner(principal, account.email)
    return account
