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
    require_owner,
)
from hrflow.events import EventBus
from hrflow.services.mailer import Notifier
from hrflow.services.rendering import TemplateRenderer
from hrflow.services.storage import LocalStorage
from hrflow.stages import contracts
from hrflow.statuses import ContractStatus

router = APIRouter(tags=["contracts"])


@router.post("/admin/contracts", response_model=schemas.ContractOut, status_code=201)
def create_contract(
    data: schemas.ContractCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    details = schemas.ContractDetails(**data.model_dump(exclude={"employment_form_id"}))
    return contracts.create_contract(db, data.employment_form_id, details)


@router.get("/admin/contracts", response_model=list[schemas.ContractOut])
def list_contracts(
    status: Optional[ContractStatus] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return contracts.list_contracts(db, status=status, limit=limit, offset=offset)


@router.get("/contracts/{contract_id}", response_model=schemas.ContractOut)
def get_contract(contract_id: int, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    contract = contracts.get_contract(db, contract_id)
    require_owner(principal, contract.employee_email, contract.employment_form.offer.candidate_email)
    return contract


@router.patch("/admin/contracts/{contract_id}", response_model=schemas.ContractOut)
def update_contract(
    contract_id: int,
    data: schemas.ContractDetails,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return contracts.update_contract(db, contract_id, data)


@router.post("/admin/contracts/{contract_id}/send", response_model=schemas.ContractOut)
def send_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    renderer: TemplateRenderer = Depends(get_renderer),
    notifier: Notifier = Depends(get_notifier),
):
    return contracts.send_contract(db, contract_id, renderer=renderer, notifier=notifier)


@router.post("/contracts/{contract_id}/sign", response_model=schemas.ContractOut)
def sign_contract(
    contract_id: int,
    data: schemas.SignatureIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    storage: LocalStorage = Depends(get_storage),
    notifier: Notifier = Depends(get_notifier),
    bus: EventBus = Depends(get_bus),
):
    contract = contracts.get_contract(db, contract_id)
    owners = (contract.employee_email, contract.employment_form.offer.candidate_email)
    require_owner(principal, *owners, allow_admin=False)
    return contracts.sign_contract(db, contract_id, data.signature, storage=storage, notifier=notifier, bus=bus)


@router.post("/admin/contracts/{contract_id}/expire", response_model=schemas.ContractOut)
def expire_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
    bus: EventBus = Depends(get_bus),
):
    return contracts.expire_contract(db, contract_id, bus=bus)
