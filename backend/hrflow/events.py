"""
Domain events published by the stages after a transition has been committed.

Subscribers receive ``(db, event)`` so they can act in the caller's session.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, DefaultDict, List, Type

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class DomainEvent:
    source_id: int
    occurred_at: datetime


@dataclass(frozen=True)
class OfferAccepted(DomainEvent):
    source_type: str = field(default="offer", init=False)


@dataclass(frozen=True)
class FormApproved(DomainEvent):
    source_type: str = field(default="employment_form", init=False)


@dataclass(frozen=True)
class ContractSigned(DomainEvent):
    source_type: str = field(default="contract", init=False)


@dataclass(frozen=True)
class RecordFinalized(DomainEvent):
    source_type: str = ""
    status: str = ""


Handler = Callable[..., object]


class EventBus:
    """Synchronous in-process publish/subscribe."""

    def __init__(self):
        self._handlers: DefaultDict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def clear(self) -> None:
        self._handlers.clear()

    def publish(self, db, event: DomainEvent) -> list:
        results = []
        for handler in list(self._handlers[type(event)]):
            logger.debug(
                "Dispatching event",
                event_type=type(event).__name__,
                source_id=event.source_id,
                handler=getattr(handler, "__name__", repr(handler)),
            )
            results.append(handler(db, event))
        return results


# process-wide default bus; main.py registers the orchestrator on it
bus = EventBus()
