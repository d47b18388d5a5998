import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional

import structlog
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .. import config, events, models
from ..clock import utcnow
from ..engine import apply, get_or_404
from ..errors import AlreadyTerminal, Conflict, Forbidden, InvalidTransition, NotFound, ValidationError
from ..services.mailer import Notifier
from ..statuses import ACCOUNT_TRANSITIONS, AccountStatus, Action, ContractStatus

logger = structlog.get_logger()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str):
    return pwd_context.hash(password)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_account(db: Session, account_id: int) -> models.Account:
    return get_or_404(db, models.Account, account_id, "account")


def get_account_for_form(db: Session, employment_form_id: int) -> models.Account:
    account = (
        db.query(models.Account)
        .filter(models.Account.employment_form_id == employment_form_id)
        .first()
    )
    if account is None:
        raise NotFound("account for employment_form", employment_form_id)
    return account


def new_account_for_contract(db: Session, contract: models.Contract, *, now: Optional[datetime] = None) -> models.Account:
    """Stage a pending account for a signed contract; the caller commits."""
    if contract.status != ContractStatus.SIGNED:
        raise InvalidTransition(
            "contract", contract.status.value, "create_account",
            "An account can only be created once the contract is signed",
        )
    existing = db.query(models.Account).filter(models.Account.contract_id == contract.id).first()
    if existing is not None:
        raise Conflict(f"Contract {contract.id} already has account {existing.id}")

    account = models.Account(
        contract_id=contract.id,
        employment_form_id=contract.employment_form_id,
        email=contract.employee_email,
        status=AccountStatus.PENDING,
        created_at=now or utcnow(),
    )
    db.add(account)
    db.flush()
    return account


def _hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def get_account_for_contract(db: Session, contract_id: int) -> Optional[models.Account]:
    return db.query(models.Account).filter(models.Account.contract_id == contract_id).first()


def create_activation_token(
    db: Session,
    account: models.Account,
    *,
    ttl_hours: int = config.ACCOUNT_TOKEN_TTL_HOURS,
    now: Optional[datetime] = None,
) -> str:
    """Store a hashed one-time token for the account and return the raw value."""
    now = now or utcnow()
    # only the newest link works
    outstanding = (
        db.query(models.ActivationToken)
        .filter(models.ActivationToken.account_id == account.id, models.ActivationToken.used_at.is_(None))
        .all()
    )
    for old in outstanding:
        old.used_at = now

    raw = secrets.token_urlsafe(24)
    token = models.ActivationToken(
        account_id=account.id,
        token_hash=_hash_token(raw),
        expires_at=now + timedelta(hours=ttl_hours),
        created_at=now,
    )
    db.add(token)
    db.commit()
    return raw


def send_activation_link(
    db: Session,
    account: models.Account,
    *,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> str:
    if account.status != AccountStatus.PENDING:
        raise AlreadyTerminal("account", account.status.value, "send_activation_link")
    raw = create_activation_token(db, account, now=now)
    if notifier:
        notifier.notify(
            account.email,
            "account_ready",
            {
                "employment_form_id": account.employment_form_id,
                "token": raw,
                "activation_url": f"{config.PORTAL_URL}/set-password/{raw}",
            },
        )
    logger.info("Activation link issued", account_id=account.id)
    return raw


def _usable_token(db: Session, raw_token: str, now: datetime) -> models.ActivationToken:
    token = (
        db.query(models.ActivationToken)
        .filter(models.ActivationToken.token_hash == _hash_token(raw_token or ""))
        .first()
    )
    if token is None or token.used_at is not None or token.expires_at <= now:
        raise Forbidden("Invalid or expired activation link")
    return token


def activate_account(
    db: Session,
    token: str,
    password: str,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
) -> models.Account:
    """Credential issuance: set the first password through a one-time link, exactly once."""
    now = now or utcnow()
    activation = _usable_token(db, token, now)
    account = get_account(db, activation.account_id)
    ACCOUNT_TRANSITIONS.target(account.status, Action.ACTIVATE)
    if not password or len(password) < config.MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters",
            field="password",
        )

    # consumed in the same commit as the activation
    activation.used_at = now
    return apply(
        db, account, Action.ACTIVATE, ACCOUNT_TRANSITIONS, bus=bus, now=now,
        hashed_password=get_password_hash(password),
        activated_at=now,
    )
