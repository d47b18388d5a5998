"""Next-stage creation: exactly one record per advancing event, however often it arrives."""

from datetime import timedelta

import pytest

from hrflow import events, models, orchestrator
from hrflow.errors import InvalidTransition
from hrflow.orchestrator import LifecycleOrchestrator
from hrflow.stages import contracts, offers

from conftest import NOW


class TestRedelivery:
    def test_offer_accepted_twice(self, db, bus, accepted_offer):
        form = accepted_offer.employment_form
        event = events.OfferAccepted(source_id=accepted_offer.id, occurred_at=NOW)

        (again,) = bus.publish(db, event)

        assert again.id == form.id
        assert db.query(models.EmploymentForm).count() == 1
        assert db.query(models.StageLink).filter_by(source_type="offer").count() == 1

    def test_form_approved_twice(self, db, bus, approved_form, draft_contract):
        (again,) = bus.publish(db, events.FormApproved(source_id=approved_form.id, occurred_at=NOW))

        assert again.id == draft_contract.id
        assert db.query(models.Contract).count() == 1

    def test_contract_signed_twice(self, db, bus, storage, sent_contract):
        contracts.sign_contract(db, sent_contract.id, "sig", storage=storage, bus=bus, now=NOW + timedelta(days=2))
        first = db.query(models.Account).one()

        (again,) = bus.publish(db, events.ContractSigned(source_id=sent_contract.id, occurred_at=NOW))

        assert again.id == first.id
        assert db.query(models.Account).count() == 1

    def test_link_records_target(self, db, accepted_offer):
        link = orchestrator.find_link(db, "offer", accepted_offer.id)
        assert (link.target_type, link.target_id) == ("employment_form", accepted_offer.employment_form.id)


class TestConcurrentDelivery:
    def test_losing_session_resolves_to_winner(self, session_factory, bare_bus, make_offer, monkeypatch):
        offer = make_offer()
        responder = session_factory()
        offers.respond_to_offer(responder, offer.id, "accept", bus=bare_bus, now=NOW)
        responder.close()
        event = events.OfferAccepted(source_id=offer.id, occurred_at=NOW)
        handler = LifecycleOrchestrator()

        loser, winner = session_factory(), session_factory()
        try:
            # the loser has already looked: no form and no link yet
            assert loser.get(models.Offer, offer.id).employment_form is None
            real_find_link = orchestrator.find_link
            loser_calls = []

            def find_link_once_stale(db, source_type, source_id):
                if db is loser:
                    loser_calls.append(source_id)
                if db is loser and len(loser_calls) == 1:
                    return None
                return real_find_link(db, source_type, source_id)

            monkeypatch.setattr(orchestrator, "find_link", find_link_once_stale)

            created = handler.on_offer_accepted(winner, event)
            resolved = handler.on_offer_accepted(loser, event)

            assert resolved.id == created.id
            assert winner.query(models.EmploymentForm).count() == 1
            assert winner.query(models.StageLink).count() == 1
        finally:
            loser.close()
            winner.close()


class TestNoAdvance:
    def test_rejected_offer_creates_nothing(self, db, bus, make_offer):
        offer = make_offer()
        offers.respond_to_offer(db, offer.id, "reject", bus=bus, now=NOW)
        assert db.query(models.StageLink).count() == 0

    def test_event_for_unaccepted_offer_is_refused(self, db, bus, make_offer):
        offer = make_offer()
        with pytest.raises(InvalidTransition):
            bus.publish(db, events.OfferAccepted(source_id=offer.id, occurred_at=NOW))
        assert db.query(models.EmploymentForm).count() == 0
