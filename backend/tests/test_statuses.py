"""Transition tables: legal moves, terminal statuses and the errors they raise."""

import pytest

from hrflow.errors import AlreadyTerminal, InvalidTransition
from hrflow.statuses import (
    ACCOUNT_TRANSITIONS,
    CONTRACT_TRANSITIONS,
    DOCUMENT_TRANSITIONS,
    FORM_TRANSITIONS,
    OFFER_TRANSITIONS,
    REQUEST_TRANSITIONS,
    AccountStatus,
    Action,
    ContractStatus,
    DocumentStatus,
    FormStatus,
    OfferStatus,
    RequestStatus,
)

ALL_TABLES = [
    (OFFER_TRANSITIONS, OfferStatus),
    (FORM_TRANSITIONS, FormStatus),
    (CONTRACT_TRANSITIONS, ContractStatus),
    (ACCOUNT_TRANSITIONS, AccountStatus),
    (DOCUMENT_TRANSITIONS, DocumentStatus),
    (REQUEST_TRANSITIONS, RequestStatus),
]


class TestTransitionTargets:
    def test_offer_moves(self):
        assert OFFER_TRANSITIONS.target(OfferStatus.PENDING, Action.ACCEPT) == OfferStatus.ACCEPTED
        assert OFFER_TRANSITIONS.target(OfferStatus.PENDING, Action.REJECT) == OfferStatus.REJECTED
        assert OFFER_TRANSITIONS.target(OfferStatus.ACCEPTED, Action.REVOKE) == OfferStatus.REVOKED

    def test_revision_loop_stays_in_review(self):
        assert FORM_TRANSITIONS.target(FormStatus.PENDING_REVIEW, Action.REQUEST_REVISION) == FormStatus.PENDING_REVIEW
        assert FORM_TRANSITIONS.target(FormStatus.PENDING_REVIEW, Action.AMEND) == FormStatus.PENDING_REVIEW

    def test_contract_moves(self):
        assert CONTRACT_TRANSITIONS.target(ContractStatus.DRAFT, Action.SEND) == ContractStatus.SENT
        assert CONTRACT_TRANSITIONS.target(ContractStatus.SENT, Action.SIGN) == ContractStatus.SIGNED

    def test_repeated_download_is_allowed(self):
        assert REQUEST_TRANSITIONS.target(RequestStatus.GENERATED, Action.DOWNLOAD) == RequestStatus.DOWNLOADED
        assert REQUEST_TRANSITIONS.target(RequestStatus.DOWNLOADED, Action.DOWNLOAD) == RequestStatus.DOWNLOADED


class TestIllegalMoves:
    def test_live_status_raises_invalid_transition(self):
        with pytest.raises(InvalidTransition) as exc_info:
            CONTRACT_TRANSITIONS.target(ContractStatus.DRAFT, Action.SIGN)
        assert exc_info.value.details == {"record": "contract", "status": "draft", "action": "sign"}

    def test_form_cannot_be_approved_from_draft(self):
        with pytest.raises(InvalidTransition):
            FORM_TRANSITIONS.target(FormStatus.DRAFT, Action.APPROVE)

    @pytest.mark.parametrize("table,statuses", ALL_TABLES)
    def test_terminal_statuses_reject_everything_unlisted(self, table, statuses):
        for status in statuses:
            if not table.is_terminal(status):
                continue
            for action in Action:
                if table.allows(status, action):
                    continue
                with pytest.raises(AlreadyTerminal):
                    table.target(status, action)

    def test_accepted_offer_is_not_terminal(self):
        assert not OFFER_TRANSITIONS.is_terminal(OfferStatus.ACCEPTED)
        with pytest.raises(InvalidTransition):
            OFFER_TRANSITIONS.target(OfferStatus.ACCEPTED, Action.ACCEPT)
