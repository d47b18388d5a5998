"""Admin-managed document templates, layered over the bundled files."""

import re
from datetime import datetime
from typing import Optional

import structlog
from jinja2 import TemplateSyntaxError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..clock import utcnow
from ..engine import commit_or_conflict, get_or_404, require_text
from ..errors import Conflict, ValidationError
from ..services.rendering import TemplateRenderer, build_environment

logger = structlog.get_logger()

NAME_RE = re.compile(r"^[a-z0-9_-]+$")


def _check_body(body: Optional[str]) -> str:
    body = require_text(body, "body", "Template body is required")
    try:
        build_environment().parse(body)
    except TemplateSyntaxError as exc:
        raise ValidationError(f"Template syntax error on line {exc.lineno}: {exc.message}", field="body") from exc
    return body


def get_template(db: Session, template_id: int) -> models.DocumentTemplate:
    return get_or_404(db, models.DocumentTemplate, template_id, "document_template")


def list_templates(db: Session) -> list[models.DocumentTemplate]:
    return db.query(models.DocumentTemplate).order_by(models.DocumentTemplate.name).all()


def stored_templates(db: Session) -> dict[str, str]:
    return {t.name: t.body for t in list_templates(db)}


def renderer_for(db: Session, renderer: TemplateRenderer) -> TemplateRenderer:
    stored = stored_templates(db)
    return renderer.with_templates(stored) if stored else renderer


def create_template(
    db: Session,
    data: schemas.DocumentTemplateCreate,
    *,
    actor: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.DocumentTemplate:
    name = data.name.strip().lower()
    if not NAME_RE.match(name):
        raise ValidationError("Template names use lowercase letters, digits, '-' and '_'", field="name")
    if db.query(models.DocumentTemplate).filter(models.DocumentTemplate.name == name).first():
        raise Conflict(f"Template {name!r} already exists")

    now = now or utcnow()
    template = models.DocumentTemplate(
        name=name,
        title=require_text(data.title, "title"),
        description=data.description,
        body=_check_body(data.body),
        created_by=actor,
        created_at=now,
        updated_at=now,
    )
    db.add(template)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict(f"Template {name!r} already exists") from exc
    db.refresh(template)
    logger.info("Document template created", template_id=template.id, name=name)
    return template


def update_template(
    db: Session,
    template_id: int,
    data: schemas.DocumentTemplateUpdate,
    *,
    now: Optional[datetime] = None,
) -> models.DocumentTemplate:
    template = get_template(db, template_id)
    if data.title is not None:
        template.title = require_text(data.title, "title")
    if data.description is not None:
        template.description = data.description
    if data.body is not None:
        template.body = _check_body(data.body)
    template.updated_at = now or utcnow()
    commit_or_conflict(db)
    db.refresh(template)
    logger.info("Document template updated", template_id=template.id)
    return template


def delete_template(db: Session, template_id: int) -> None:
    template = get_template(db, template_id)
    db.delete(template)
    db.commit()
    logger.info("Document template deleted", template_id=template_id, name=template.name)
