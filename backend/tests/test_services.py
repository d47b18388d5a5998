import base64
from datetime import datetime

import pytest
from fastapi import BackgroundTasks, Depends, FastAPI
from fastapi.testclient import TestClient

from hrflow import deps
from hrflow.errors import RenderError
from hrflow.services import mailer
from hrflow.services.rendering import append_signature_footer
from hrflow.services.storage import LocalStorage, decode_blob

from conftest import RecordingNotifier


class TestStorage:
    def test_data_url_is_decoded(self, storage):
        raw = b"\x89PNG\r\n"
        url = storage.store("data:image/png;base64," + base64.b64encode(raw).decode(), folder="signatures")

        assert url.startswith("/files/signatures/") and url.endswith(".png")
        name = url.rsplit("/", 1)[-1]
        assert (storage.root / "signatures" / name).read_bytes() == raw

    def test_plain_text_kept(self):
        data, mime = decode_blob("Ayesha K.")
        assert data == b"Ayesha K."
        assert mime is None

    def test_named_file(self, tmp_path):
        storage = LocalStorage(tmp_path, base_url="https://cdn.example.com/hr/")
        url = storage.store("<p>hi</p>", folder="requests", filename="request_1.html", content_type="text/html")
        assert url == "https://cdn.example.com/hr/requests/request_1.html"

    def test_rejects_nested_paths(self, storage):
        with pytest.raises(ValueError):
            storage.store("x", folder="../etc", filename="passwd")


class TestRendering:
    def test_contract_template(self, renderer):
        html = renderer.render(
            "contract",
            {
                "employee_name": "Ayesha Khan",
                "position": "Backend Engineer",
                "department": None,
                "employment_type": "full_time",
                "start_date": datetime(2025, 4, 1),
                "compensation": None,
                "probation_period_months": 3,
                "expires_at": datetime(2025, 3, 17),
            },
        )
        assert "Ayesha Khan" in html
        assert "01 Apr 2025" in html
        assert "Full Time" in html

    def test_missing_variable_is_a_render_error(self, renderer):
        with pytest.raises(RenderError):
            renderer.render("recommendation", {"employee_name": "Ayesha Khan"})

    @pytest.mark.parametrize("name", ["../emails/offer_sent", "", "a/b"])
    def test_template_names_are_plain(self, renderer, name):
        with pytest.raises(RenderError):
            renderer.render(name, {})

    def test_signature_footer_goes_inside_body(self):
        html = append_signature_footer(
            "<html><body><p>Terms</p></body></html>",
            signer_name="Ayesha Khan",
            signed_at=datetime(2025, 3, 5, 10, 30),
            signature_url="/files/signatures/a.png",
        )
        assert html.index("Electronically signed by") < html.index("</body>")
        assert "2025-03-05 10:30:00" in html


class TestMailer:
    def test_default_without_credentials(self, monkeypatch):
        monkeypatch.setattr(mailer.config, "SMTP_USER", None)
        monkeypatch.setattr(mailer.config, "SMTP_PASS", None)
        assert isinstance(mailer.default_notifier(), mailer.NullNotifier)

    def test_smtp_failures_are_logged_not_raised(self, monkeypatch):
        sent = []

        def fail(to_email, subject, html):
            sent.append((to_email, subject, html))
            raise OSError("connection refused")

        monkeypatch.setattr(mailer, "_send_html_via_smtp", fail)
        mailer.SmtpNotifier().notify(
            "ayesha@example.com",
            "employment_form_ready",
            {"candidate_name": "Ayesha Khan", "form_id": 3},
        )

        assert len(sent) == 1
        assert sent[0][1] == mailer.SUBJECTS["employment_form_ready"]
        assert "Ayesha Khan" in sent[0][2]

    def test_notifier_is_abstract(self):
        with pytest.raises(TypeError):
            mailer.Notifier()

    def test_background_notifier_defers_delivery(self):
        inner = RecordingNotifier()
        tasks = BackgroundTasks()
        notifier = mailer.BackgroundNotifier(inner, tasks)

        notifier.notify("ayesha@example.com", "offer_sent", {"offer_id": 1})

        assert inner.sent == []
        (task,) = tasks.tasks
        assert task.func == inner.notify
        assert task.args == ("ayesha@example.com", "offer_sent", {"offer_id": 1})

    def test_request_notifier_runs_after_the_response(self):
        inner = RecordingNotifier()
        app = FastAPI()
        app.dependency_overrides[deps.get_base_notifier] = lambda: inner

        @app.post("/ping")
        def ping(notifier: mailer.Notifier = Depends(deps.get_notifier)):
            notifier.notify("ayesha@example.com", "offer_sent", {"offer_id": 1})
            return {"queued": len(inner.sent) == 0}

        response = TestClient(app).post("/ping")

        assert response.json() == {"queued": True}
        assert inner.keys() == ["offer_sent"]

    def test_account_ready_email_links_to_set_password(self, monkeypatch):
        sent = []
        monkeypatch.setattr(mailer, "_send_html_via_smtp", lambda to, subject, html: sent.append(html))
        mailer.SmtpNotifier().notify(
            "ayesha@example.com",
            "account_ready",
            {"employment_form_id": 3, "token": "abc", "activation_url": "https://hr.example.com/set-password/abc"},
        )
        assert 'href="https://hr.example.com/set-password/abc"' in sent[0]
