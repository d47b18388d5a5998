from datetime import timedelta

import pytest

from hrflow import events, models, schemas
from hrflow.errors import AlreadyTerminal, Conflict, InvalidTransition, ValidationError
from hrflow.stages import employment_forms as forms
from hrflow.statuses import ContractStatus, FormStatus

from conftest import NOW, RecordingHandler


class TestSubmitForm:
    def test_submit_moves_to_review(self, db, bus, submitted_form):
        assert submitted_form.status == FormStatus.PENDING_REVIEW
        assert submitted_form.submitted_at == NOW + timedelta(hours=2)
        assert submitted_form.personal_info["legal_name"] == "Ayesha Khan"
        assert submitted_form.addresses["primary_address"]["city"] == "Lahore"
        assert [p["policy_id"] for p in submitted_form.accepted_policies] == ["code-of-conduct"]

    def test_submit_twice_is_invalid(self, db, bus, submitted_form, form_data):
        with pytest.raises(InvalidTransition):
            forms.submit_form(db, submitted_form.id, form_data, bus=bus)

    def test_only_one_form_per_offer(self, db, accepted_offer):
        with pytest.raises(Conflict):
            forms.new_form_for_offer(db, accepted_offer)

    def test_bad_cnic_rejected_by_schema(self, form_data):
        payload = form_data.model_dump()
        payload["cnic_info"]["cnic_number"] = "3520212345678"
        with pytest.raises(ValueError):
            schemas.EmploymentFormSubmit(**payload)


class TestRequestRevision:
    def test_two_requests_make_ordered_history(self, db, bus, notifier, submitted_form):
        forms.request_revision(
            db, submitted_form.id, ["phone"], "Number unreachable",
            requester="admin:1", notifier=notifier, bus=bus, now=NOW + timedelta(hours=3),
        )
        forms.request_revision(
            db, submitted_form.id, ["photo", "legalName", "photo"],
            requester="admin:1", notifier=notifier, bus=bus, now=NOW + timedelta(hours=4),
        )

        db.refresh(submitted_form)
        history = submitted_form.revision_requests
        assert submitted_form.status == FormStatus.PENDING_REVIEW
        assert [r.requested_fields for r in history] == [["phone"], ["photo", "legalName"]]
        assert history[0].notes == "Number unreachable"
        assert submitted_form.revision_count == 2
        assert notifier.keys() == ["revision_requested", "revision_requested"]
        assert notifier.sent[1][2]["requested_fields"] == ["Profile Photograph", "Legal Name Spelling"]

    def test_requires_known_fields(self, db, bus, submitted_form):
        with pytest.raises(ValidationError):
            forms.request_revision(db, submitted_form.id, [], bus=bus)
        with pytest.raises(ValidationError):
            forms.request_revision(db, submitted_form.id, ["salary"], bus=bus)

    def test_not_allowed_on_draft(self, db, bus, accepted_offer):
        with pytest.raises(InvalidTransition):
            forms.request_revision(db, accepted_offer.employment_form.id, ["phone"], bus=bus)


class TestAmendForm:
    def test_amend_answers_outstanding_revision(self, db, bus, submitted_form, form_data):
        forms.request_revision(db, submitted_form.id, ["phone"], bus=bus, now=NOW + timedelta(hours=3))
        contact = form_data.contact_info.model_copy(update={"phone": "+92 333 0000000"})

        amended = forms.amend_form(
            db, submitted_form.id, schemas.EmploymentFormAmend(contact_info=contact),
            bus=bus, now=NOW + timedelta(hours=5),
        )

        assert amended.status == FormStatus.PENDING_REVIEW
        assert amended.contact_info["phone"] == "+92 333 0000000"
        assert amended.personal_info["legal_name"] == "Ayesha Khan"
        assert amended.resubmitted_at == NOW + timedelta(hours=5)
        assert not forms.has_outstanding_revision(amended)

    def test_amend_without_revision_request(self, db, bus, submitted_form, form_data):
        with pytest.raises(InvalidTransition):
            forms.amend_form(
                db, submitted_form.id, schemas.EmploymentFormAmend(contact_info=form_data.contact_info), bus=bus
            )

    def test_empty_amendment(self, db, bus, submitted_form):
        forms.request_revision(db, submitted_form.id, ["phone"], bus=bus)
        with pytest.raises(ValidationError):
            forms.amend_form(db, submitted_form.id, schemas.EmploymentFormAmend(), bus=bus)

    def test_policies_only_grow(self, db, bus, submitted_form):
        forms.request_revision(db, submitted_form.id, ["phone"], bus=bus)
        amended = forms.amend_form(
            db, submitted_form.id,
            schemas.EmploymentFormAmend(accepted_policies=[
                {"policy_id": "code-of-conduct"},
                {"policy_id": "it-security", "policy_title": "IT Security"},
            ]),
            bus=bus, now=NOW + timedelta(hours=5),
        )
        assert [p["policy_id"] for p in amended.accepted_policies] == ["code-of-conduct", "it-security"]


class TestReviewForm:
    def test_reject_requires_feedback(self, db, bus, submitted_form):
        with pytest.raises(ValidationError):
            forms.review_form(db, submitted_form.id, "rejected", "", bus=bus)
        db.refresh(submitted_form)
        assert submitted_form.status == FormStatus.PENDING_REVIEW

    def test_reject_with_feedback(self, db, bus, submitted_form):
        rejected = forms.review_form(
            db, submitted_form.id, "rejected", "Documents are illegible", reviewer="admin:1", bus=bus
        )
        assert rejected.status == FormStatus.REJECTED
        assert rejected.review_feedback == "Documents are illegible"
        assert rejected.reviewed_by == "admin:1"
        assert db.query(models.Contract).count() == 0

    def test_approve_creates_draft_contract(self, db, approved_form):
        contracts = db.query(models.Contract).filter_by(employment_form_id=approved_form.id).all()
        assert len(contracts) == 1
        contract = contracts[0]
        assert contract.status == ContractStatus.DRAFT
        assert contract.employee_name == "Ayesha Khan"
        assert contract.employee_email == "ayesha.personal@example.com"
        assert contract.position == "Backend Engineer"
        assert contract.probation_period_months == 3

    def test_approve_publishes_single_event(self, db, bare_bus, accepted_offer, form_data):
        handler = RecordingHandler()
        bare_bus.subscribe(events.FormApproved, handler)
        form_id = accepted_offer.employment_form.id
        forms.submit_form(db, form_id, form_data, bus=bare_bus)

        forms.review_form(db, form_id, "approved", bus=bare_bus, now=NOW)

        assert [e.source_id for e in handler.events] == [form_id]

    def test_unknown_decision(self, db, bus, submitted_form):
        with pytest.raises(ValidationError):
            forms.review_form(db, submitted_form.id, "maybe", bus=bus)

    def test_decided_form_is_final(self, db, bus, approved_form, form_data):
        with pytest.raises(AlreadyTerminal):
            forms.review_form(db, approved_form.id, "rejected", "Too late", bus=bus)
        with pytest.raises(AlreadyTerminal):
            forms.request_revision(db, approved_form.id, ["phone"], bus=bus)
        with pytest.raises(AlreadyTerminal):
            forms.submit_form(db, approved_form.id, form_data, bus=bus)
