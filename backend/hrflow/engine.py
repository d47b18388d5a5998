"""
Shared transition engine for every status-bearing record.

``apply`` is the single read-validate-write step: it asks the record's
``TransitionTable`` for the target status, writes the change conditioned on
the version that was read (SQLAlchemy ``version_id_col``), and announces
``RecordFinalized`` when the record enters a terminal status.

``transition`` layers the generic sign/decline payload rules on top of
``apply`` for the standalone signable records (documents and document
requests).
"""

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from . import events
from .clock import utcnow
from .errors import Conflict, NotFound, ValidationError
from .statuses import Action, TransitionTable

logger = structlog.get_logger()

# action -> (payload key, record attribute); the payload value must be non-empty
PAYLOAD_RULES = {
    Action.SIGN: ("signature", "signature"),
    Action.DECLINE: ("reason", "decline_reason"),
}


def get_or_404(db: Session, model, record_id: int, resource: Optional[str] = None):
    record = db.get(model, record_id)
    if record is None:
        raise NotFound(resource or model.__tablename__, record_id)
    return record


def commit_or_conflict(db: Session) -> None:
    """Commit; a lost optimistic version check becomes ``Conflict``."""
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent write lost", error=str(exc))
        raise Conflict("Record was modified concurrently; reload and retry") from exc


def require_text(value: Optional[str], field: str, message: Optional[str] = None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(message or f"{field} is required", field=field)
    return str(value).strip()


def apply(
    db: Session,
    record,
    action: Action,
    table: TransitionTable,
    *,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
    **changes,
):
    """
    Move ``record`` along ``table`` by ``action`` and persist it.

    Extra keyword arguments are written onto the record in the same UPDATE.
    The caller's session is rolled back if the write loses a version race.
    """
    previous = record.status
    target = table.target(previous, action)

    for name, value in changes.items():
        setattr(record, name, value)
    record.status = target
    db.add(record)
    commit_or_conflict(db)

    logger.info(
        "Record transitioned",
        record=table.record,
        record_id=record.id,
        action=action.value,
        from_status=previous.value,
        to_status=target.value,
    )

    if not table.is_terminal(previous) and table.is_terminal(target):
        (bus or events.bus).publish(
            db,
            events.RecordFinalized(
                source_id=record.id,
                occurred_at=now or utcnow(),
                source_type=table.record,
                status=target.value,
            ),
        )
    return record


def transition(
    db: Session,
    record,
    action: Action,
    payload: Optional[dict] = None,
    *,
    table: TransitionTable,
    bus: Optional[events.EventBus] = None,
    now: Optional[datetime] = None,
):
    """Generic signable-record transition (sign, decline, ...)."""
    payload = payload or {}
    now = now or utcnow()

    # status first: a finalized record reports AlreadyTerminal, not a payload error
    target = table.target(record.status, action)

    changes = {}
    rule = PAYLOAD_RULES.get(action)
    if rule:
        key, attribute = rule
        changes[attribute] = require_text(payload.get(key), key)
    if table.is_terminal(target) and hasattr(record, "completed_at"):
        changes["completed_at"] = now

    return apply(db, record, action, table, bus=bus, now=now, **changes)
