import pytest

from hrflow import models, schemas
from hrflow.errors import AlreadyTerminal, Forbidden, InvalidTransition, NotFound, RenderError, ValidationError
from hrflow.stages import documents, templates
from hrflow.statuses import DocumentStatus

from conftest import NOW

OWNER_ID = 9


@pytest.fixture
def pending_document(db, renderer, notifier):
    data = schemas.DocumentCreate(
        owner_id=OWNER_ID,
        owner_email="owner@example.com",
        title="Remote Work Policy",
        template_type="general",
        variables={"body": "Employees may work remotely two days a week."},
    )
    return documents.create_document(db, data, renderer=renderer, notifier=notifier, actor="admin:1", now=NOW)


class TestCreateDocument:
    def test_from_template(self, pending_document, notifier):
        assert pending_document.status == DocumentStatus.PENDING
        assert pending_document.template_ref == "general"
        assert "two days a week" in pending_document.content
        assert notifier.keys() == ["document_sent"]

    def test_from_raw_content(self, db):
        data = schemas.DocumentCreate(owner_id=OWNER_ID, title="NDA", content="<p>Confidential</p>")
        document = documents.create_document(db, data, now=NOW)
        assert document.content == "<p>Confidential</p>"

    def test_needs_some_content(self, db):
        with pytest.raises(ValidationError):
            documents.create_document(db, schemas.DocumentCreate(owner_id=OWNER_ID, title="Empty"))

    def test_unknown_template(self, db, renderer):
        data = schemas.DocumentCreate(owner_id=OWNER_ID, title="Nope", template_type="missing")
        with pytest.raises(RenderError):
            documents.create_document(db, data, renderer=renderer)


class TestSignAndDecline:
    def test_sign_stores_signature_image(self, db, bare_bus, storage, pending_document):
        signed = documents.sign_document(
            db, pending_document.id, "data:image/png;base64,iVBORw0KGgo=",
            actor_id=OWNER_ID, storage=storage, bus=bare_bus, now=NOW,
        )
        assert signed.status == DocumentStatus.SIGNED
        assert signed.signature.startswith("/files/signatures/")
        assert signed.signature.endswith(".png")
        assert signed.completed_at == NOW

    def test_blank_signature_stores_nothing(self, db, bare_bus, storage, pending_document):
        with pytest.raises(ValidationError):
            documents.sign_document(db, pending_document.id, "  ", actor_id=OWNER_ID, storage=storage, bus=bare_bus)
        assert not (storage.root / "signatures").exists()
        assert pending_document.status == DocumentStatus.PENDING

    def test_decline_needs_reason(self, db, bare_bus, pending_document):
        with pytest.raises(ValidationError):
            documents.decline_document(db, pending_document.id, "", actor_id=OWNER_ID, bus=bare_bus)

    def test_decline(self, db, bare_bus, pending_document):
        declined = documents.decline_document(
            db, pending_document.id, "Name is misspelled", actor_id=OWNER_ID, bus=bare_bus
        )
        assert declined.status == DocumentStatus.DECLINED
        assert declined.decline_reason == "Name is misspelled"

    def test_only_recipient(self, db, bare_bus, storage, pending_document):
        with pytest.raises(Forbidden):
            documents.sign_document(
                db, pending_document.id, "sig", actor_id=OWNER_ID + 1, storage=storage, bus=bare_bus
            )

    def test_final_after_signing(self, db, bare_bus, storage, notifier, pending_document):
        documents.sign_document(db, pending_document.id, "sig", actor_id=OWNER_ID, storage=storage, bus=bare_bus)
        with pytest.raises(AlreadyTerminal):
            documents.decline_document(db, pending_document.id, "changed my mind", actor_id=OWNER_ID, bus=bare_bus)
        with pytest.raises(AlreadyTerminal):
            documents.resend_document(db, pending_document.id, notifier=notifier)


class TestResend:
    def test_resend_pending(self, db, notifier, pending_document):
        documents.resend_document(db, pending_document.id, notifier=notifier)
        assert notifier.keys() == ["document_sent", "document_sent"]
        assert pending_document.version == 1


class TestUploadAndDelete:
    def test_upload_stores_file(self, db, storage, notifier):
        data = schemas.DocumentUpload(
            owner_id=OWNER_ID, owner_email="owner@example.com", title="Handbook",
            file="data:application/pdf;base64,JVBERi0xLjQ=",
        )
        document = documents.upload_document(db, data, storage=storage, notifier=notifier, actor="admin:1", now=NOW)

        assert document.status == DocumentStatus.PENDING
        assert document.content is None
        assert document.file_url.startswith("/files/documents/") and document.file_url.endswith(".pdf")
        assert (storage.root / "documents" / document.file_url.rsplit("/", 1)[1]).read_bytes() == b"%PDF-1.4"
        assert notifier.keys() == ["document_sent"]

    @pytest.mark.parametrize("blob", ["just some text", "data:application/x-msdownload;base64,TVo="])
    def test_upload_rejects_unknown_files(self, db, storage, blob):
        data = schemas.DocumentUpload(owner_id=OWNER_ID, title="Bad", file=blob)
        with pytest.raises(ValidationError):
            documents.upload_document(db, data, storage=storage)
        assert db.query(models.Document).count() == 0

    def test_delete_pending(self, db, pending_document):
        documents.delete_document(db, pending_document.id)
        with pytest.raises(NotFound):
            documents.get_document(db, pending_document.id)

    def test_signed_documents_are_kept(self, db, bare_bus, storage, pending_document):
        documents.sign_document(db, pending_document.id, "sig", actor_id=OWNER_ID, storage=storage, bus=bare_bus)
        with pytest.raises(InvalidTransition):
            documents.delete_document(db, pending_document.id)
        assert documents.get_document(db, pending_document.id).status == DocumentStatus.SIGNED


class TestStoredTemplates:
    def test_stored_template_overrides_bundled_file(self, db, renderer):
        templates.create_template(
            db,
            schemas.DocumentTemplateCreate(name="general", title="House style", body="<h2>{{ title }}</h2>{{ body }}"),
            actor="admin:1",
        )
        data = schemas.DocumentCreate(
            owner_id=OWNER_ID, title="Leave Policy", template_type="general", variables={"body": "Ten days."}
        )
        document = documents.create_document(db, data, renderer=renderer, now=NOW)
        assert document.content == "<h2>Leave Policy</h2>Ten days."

    def test_new_template_name(self, db, renderer):
        templates.create_template(
            db, schemas.DocumentTemplateCreate(name="nda", title="NDA", body="<p>NDA for {{ employee }}</p>")
        )
        data = schemas.DocumentCreate(
            owner_id=OWNER_ID, title="NDA", template_type="nda", variables={"employee": "Ayesha"}
        )
        assert documents.create_document(db, data, renderer=renderer).content == "<p>NDA for Ayesha</p>"
