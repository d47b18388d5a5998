"""FastAPI dependencies: caller identity and the external collaborators."""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header

from . import events
from .errors import Forbidden, ValidationError
from .services.mailer import BackgroundNotifier, Notifier, default_notifier
from .services.rendering import TemplateRenderer
from .services.storage import LocalStorage
from .statuses import Role


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: Role
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def label(self) -> str:
        return f"{self.role.value}:{self.user_id}"


# identity comes from the upstream session layer as trusted headers
def get_principal(
    x_user_id: int = Header(...),
    x_user_role: str = Header(...),
    x_user_email: Optional[str] = Header(default=None),
) -> Principal:
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise ValidationError(f"Unknown role {x_user_role!r}", field="X-User-Role") from None
    return Principal(user_id=x_user_id, role=role, email=x_user_email)


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        raise Forbidden("Admin access required")
    return principal


def require_owner(principal: Principal, *owner_emails: Optional[str], allow_admin: bool = True) -> None:
    """Raise Forbidden unless the caller's email is one of ``owner_emails`` (or an admin, when allowed)."""
    if allow_admin and principal.is_admin:
        return
    owners = {email.lower() for email in owner_emails if email}
    if not principal.email or principal.email.lower() not in owners:
        raise Forbidden("Not allowed to access this record")


@lru_cache
def get_renderer() -> TemplateRenderer:
    return TemplateRenderer()


@lru_cache
def get_storage() -> LocalStorage:
    return LocalStorage()


@lru_cache
def get_base_notifier() -> Notifier:
    return default_notifier()


def get_notifier(
    background_tasks: BackgroundTasks,
    base: Notifier = Depends(get_base_notifier),
) -> Notifier:
    return BackgroundNotifier(base, background_tasks)


def get_bus() -> events.EventBus:
    return events.bus
