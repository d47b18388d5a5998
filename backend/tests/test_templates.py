import pytest

from hrflow import models, schemas
from hrflow.errors import Conflict, NotFound, RenderError, ValidationError
from hrflow.stages import templates

from conftest import NOW


def template_data(**overrides):
    values = {"name": "welcome", "title": "Welcome letter", "body": "<p>Welcome, {{ name }}</p>"}
    values.update(overrides)
    return schemas.DocumentTemplateCreate(**values)


class TestCreateTemplate:
    def test_create(self, db):
        template = templates.create_template(db, template_data(), actor="admin:1", now=NOW)
        assert template.name == "welcome"
        assert template.created_by == "admin:1"
        assert template.updated_at == NOW

    def test_name_is_normalised(self, db):
        assert templates.create_template(db, template_data(name=" Welcome ")).name == "welcome"

    @pytest.mark.parametrize("name", ["../contract", "two words", "a/b"])
    def test_name_must_be_plain(self, db, name):
        with pytest.raises(ValidationError) as exc_info:
            templates.create_template(db, template_data(name=name))
        assert exc_info.value.details == {"field": "name"}

    def test_duplicate_name(self, db):
        templates.create_template(db, template_data())
        with pytest.raises(Conflict):
            templates.create_template(db, template_data(title="Another"))

    def test_syntax_checked_on_save(self, db):
        with pytest.raises(ValidationError) as exc_info:
            templates.create_template(db, template_data(body="<p>{% if name %}unclosed</p>"))
        assert exc_info.value.details == {"field": "body"}
        assert db.query(models.DocumentTemplate).count() == 0


class TestUpdateAndDelete:
    def test_update_body(self, db):
        template = templates.create_template(db, template_data(), now=NOW)
        change = schemas.DocumentTemplateUpdate(body="<p>Hi {{ name }}</p>")
        updated = templates.update_template(db, template.id, change)
        assert updated.body == "<p>Hi {{ name }}</p>"
        assert updated.title == "Welcome letter"
        assert updated.version == 2

    def test_update_rejects_bad_syntax(self, db):
        template = templates.create_template(db, template_data())
        with pytest.raises(ValidationError):
            templates.update_template(db, template.id, schemas.DocumentTemplateUpdate(body="{{ name "))

    def test_delete(self, db):
        template = templates.create_template(db, template_data())
        templates.delete_template(db, template.id)
        with pytest.raises(NotFound):
            templates.get_template(db, template.id)


class TestRendererFor:
    def test_no_stored_templates_keeps_renderer(self, db, renderer):
        assert templates.renderer_for(db, renderer) is renderer

    def test_stored_templates_render(self, db, renderer):
        templates.create_template(db, template_data())
        rendered = templates.renderer_for(db, renderer).render("welcome", {"name": "Ayesha"})
        assert rendered == "<p>Welcome, Ayesha</p>"

    def test_bundled_templates_still_resolve(self, db, renderer):
        templates.create_template(db, template_data())
        with pytest.raises(RenderError):
            # bundled general.html needs a body
            templates.renderer_for(db, renderer).render("general", {"title": "x"})
        assert "Hello" in templates.renderer_for(db, renderer).render("general", {"title": "x", "body": "Hello"})
