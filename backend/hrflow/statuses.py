"""
Status vocabulary for every record in the onboarding pipeline.

Each record type gets a closed ``(str, Enum)`` of statuses plus a
``TransitionTable`` mapping ``(status, action)`` to the next status. The
tables are the only place legal moves are defined; stage modules ask the
table and never compare status strings themselves.

    Offer            pending -> accepted | rejected | revoked | expired
                     accepted -> revoked
    EmploymentForm   draft -> pending_review -> approved | rejected
    Contract         draft -> sent -> signed | expired
    Account          pending -> active
    Document         pending -> signed | declined
    DocumentRequest  pending -> generated -> downloaded
                     pending -> rejected | cancelled
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple

from .errors import AlreadyTerminal, InvalidTransition


class Action(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    REVOKE = "revoke"
    EXPIRE = "expire"
    SUBMIT = "submit"
    AMEND = "amend"
    REQUEST_REVISION = "request_revision"
    APPROVE = "approve"
    UPDATE = "update"
    SEND = "send"
    SIGN = "sign"
    DECLINE = "decline"
    RESEND = "resend"
    ACTIVATE = "activate"
    GENERATE = "generate"
    CANCEL = "cancel"
    DOWNLOAD = "download"


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    REVOKED = "revoked"


class FormStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContractStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    EXPIRED = "expired"


class AccountStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    SIGNED = "signed"
    DECLINED = "declined"


class RequestStatus(str, Enum):
    PENDING = "pending"
    GENERATED = "generated"
    DOWNLOADED = "downloaded"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class DocumentRequestType(str, Enum):
    RECOMMENDATION = "recommendation"
    EXPERIENCE = "experience"
    CERTIFICATE = "certificate"


class EmploymentType(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"


class Role(str, Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"


class TransitionTable:
    """Legal moves for one record type."""

    def __init__(
        self,
        record: str,
        transitions: Dict[Tuple[Enum, Action], Enum],
        terminal: FrozenSet[Enum],
    ):
        self.record = record
        self.transitions = transitions
        self.terminal = terminal

    def is_terminal(self, status) -> bool:
        return status in self.terminal

    def allows(self, status, action: Action) -> bool:
        return (status, action) in self.transitions

    def target(self, status, action: Action):
        """
        Resolve the status ``action`` leads to from ``status``.

        Explicit table entries win, so a terminal status may still list a
        side-effect-free self transition (a repeated download, for example).

        Raises:
            AlreadyTerminal: status is terminal and has no entry for action
            InvalidTransition: status is live but has no entry for action
        """
        try:
            return self.transitions[(status, action)]
        except KeyError:
            pass
        if status in self.terminal:
            raise AlreadyTerminal(self.record, _value(status), _value(action))
        raise InvalidTransition(self.record, _value(status), _value(action))


def _value(member) -> str:
    return member.value if isinstance(member, Enum) else str(member)


OFFER_TRANSITIONS = TransitionTable(
    "offer",
    {
        (OfferStatus.PENDING, Action.ACCEPT): OfferStatus.ACCEPTED,
        (OfferStatus.PENDING, Action.REJECT): OfferStatus.REJECTED,
        (OfferStatus.PENDING, Action.REVOKE): OfferStatus.REVOKED,
        (OfferStatus.PENDING, Action.EXPIRE): OfferStatus.EXPIRED,
        (OfferStatus.ACCEPTED, Action.REVOKE): OfferStatus.REVOKED,
    },
    frozenset({OfferStatus.REJECTED, OfferStatus.EXPIRED, OfferStatus.REVOKED}),
)

FORM_TRANSITIONS = TransitionTable(
    "employment_form",
    {
        (FormStatus.DRAFT, Action.SUBMIT): FormStatus.PENDING_REVIEW,
        (FormStatus.PENDING_REVIEW, Action.AMEND): FormStatus.PENDING_REVIEW,
        (FormStatus.PENDING_REVIEW, Action.REQUEST_REVISION): FormStatus.PENDING_REVIEW,
        (FormStatus.PENDING_REVIEW, Action.APPROVE): FormStatus.APPROVED,
        (FormStatus.PENDING_REVIEW, Action.REJECT): FormStatus.REJECTED,
    },
    frozenset({FormStatus.APPROVED, FormStatus.REJECTED}),
)

CONTRACT_TRANSITIONS = TransitionTable(
    "contract",
    {
        (ContractStatus.DRAFT, Action.UPDATE): ContractStatus.DRAFT,
        (ContractStatus.DRAFT, Action.SEND): ContractStatus.SENT,
        (ContractStatus.SENT, Action.SIGN): ContractStatus.SIGNED,
        (ContractStatus.SENT, Action.EXPIRE): ContractStatus.EXPIRED,
    },
    frozenset({ContractStatus.SIGNED, ContractStatus.EXPIRED}),
)

ACCOUNT_TRANSITIONS = TransitionTable(
    "account",
    {
        (AccountStatus.PENDING, Action.ACTIVATE): AccountStatus.ACTIVE,
    },
    frozenset({AccountStatus.ACTIVE}),
)

DOCUMENT_TRANSITIONS = TransitionTable(
    "document",
    {
        (DocumentStatus.PENDING, Action.SIGN): DocumentStatus.SIGNED,
        (DocumentStatus.PENDING, Action.DECLINE): DocumentStatus.DECLINED,
        (DocumentStatus.PENDING, Action.RESEND): DocumentStatus.PENDING,
    },
    frozenset({DocumentStatus.SIGNED, DocumentStatus.DECLINED}),
)

# generated is final for everything except read tracking
REQUEST_TRANSITIONS = TransitionTable(
    "document_request",
    {
        (RequestStatus.PENDING, Action.GENERATE): RequestStatus.GENERATED,
        (RequestStatus.PENDING, Action.CANCEL): RequestStatus.CANCELLED,
        (RequestStatus.PENDING, Action.REJECT): RequestStatus.REJECTED,
        (RequestStatus.GENERATED, Action.DOWNLOAD): RequestStatus.DOWNLOADED,
        (RequestStatus.DOWNLOADED, Action.DOWNLOAD): RequestStatus.DOWNLOADED,
    },
    frozenset({
        RequestStatus.GENERATED,
        RequestStatus.DOWNLOADED,
        RequestStatus.REJECTED,
        RequestStatus.CANCELLED,
    }),
)
