"""
Shared fixtures: a throwaway SQLite database per test, a private event bus
with the orchestrator wired in, and fakes for the outbound collaborators.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hrflow import events, schemas
from hrflow.database import init_db
from hrflow.orchestrator import LifecycleOrchestrator
from hrflow.services.mailer import Notifier
from hrflow.services.rendering import TemplateRenderer
from hrflow.services.storage import LocalStorage
from hrflow.stages import contracts, employment_forms, offers

NOW = datetime(2025, 3, 3, 9, 0, 0)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    def notify(self, recipient, template_key, data):
        self.sent.append((recipient, template_key, data))

    def keys(self):
        return [key for _, key, _ in self.sent]


class RecordingHandler:
    def __init__(self):
        self.events = []

    def __call__(self, db, event):
        self.events.append(event)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'hrflow_test.db'}",
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def bare_bus():
    """A bus with no orchestrator: stages publish but nothing advances."""
    return events.EventBus()


@pytest.fixture
def bus():
    bus = events.EventBus()
    LifecycleOrchestrator().register(bus)
    return bus


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def renderer():
    return TemplateRenderer()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "files", base_url="/files")


@pytest.fixture
def offer_data():
    return schemas.OfferCreate(
        candidate_name="Ayesha Khan",
        candidate_email="ayesha@example.com",
        position="Backend Engineer",
        department="Platform",
        compensation="PKR 450,000 / month",
        joining_date=NOW + timedelta(days=30),
    )


@pytest.fixture
def form_data():
    return schemas.EmploymentFormSubmit(
        personal_info={
            "legal_name": "Ayesha Khan",
            "father_name": "Imran Khan",
            "date_of_birth": "1996-05-14",
            "gender": "female",
            "marital_status": "single",
        },
        cnic_info={
            "cnic_number": "35202-1234567-8",
            "cnic_front_image": "/files/cnic/front.png",
            "cnic_back_image": "/files/cnic/back.png",
        },
        contact_info={
            "phone": "+92 300 1234567",
            "email": "ayesha.personal@example.com",
            "emergency_contact": {"name": "Imran Khan", "relationship": "father", "phone": "+92 321 7654321"},
        },
        addresses={
            "primary_address": {"street": "12 Canal Road", "city": "Lahore", "state": "Punjab"},
        },
        accepted_policies=[{"policy_id": "code-of-conduct", "policy_title": "Code of Conduct"}],
    )


@pytest.fixture
def make_offer(db, offer_data):
    def _make(**overrides):
        data = offer_data.model_copy(update=overrides)
        return offers.create_offer(db, data, actor="admin:1", now=NOW)

    return _make


@pytest.fixture
def accepted_offer(db, bus, make_offer):
    offer = make_offer()
    return offers.respond_to_offer(db, offer.id, "accept", bus=bus, now=NOW + timedelta(hours=1))


@pytest.fixture
def submitted_form(db, bus, accepted_offer, form_data):
    return employment_forms.submit_form(
        db, accepted_offer.employment_form.id, form_data, bus=bus, now=NOW + timedelta(hours=2)
    )


@pytest.fixture
def approved_form(db, bus, submitted_form):
    return employment_forms.review_form(
        db, submitted_form.id, "approved", reviewer="admin:1", bus=bus, now=NOW + timedelta(hours=3)
    )


@pytest.fixture
def draft_contract(db, approved_form):
    return contracts.active_contract_for_form(db, approved_form.id)


@pytest.fixture
def sent_contract(db, draft_contract, renderer, notifier):
    return contracts.send_contract(
        db, draft_contract.id, renderer=renderer, notifier=notifier, now=NOW + timedelta(days=1)
    )
