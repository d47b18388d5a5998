from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog
from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    select_autoescape,
)

from .. import config
from ..errors import RenderError

logger = structlog.get_logger()


# date format
def _date_au(dt: Optional[datetime]) -> str:
    if not dt:
        return ""
    return dt.strftime("%d %b %Y")


def build_environment(templates_dir: Path | str = config.TEMPLATES_DIR) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
    )
    env.filters["date_au"] = _date_au
    return env


class TemplateRenderer:
    """Renders ``templates/<folder>/<template_type>.html`` to an HTML string."""

    def __init__(
        self,
        templates_dir: Path | str = config.TEMPLATES_DIR,
        folder: str = "documents",
        stored: Optional[dict[str, str]] = None,
    ):
        self.templates_dir = templates_dir
        self.folder = folder
        self.env = build_environment(templates_dir)
        if stored:
            # stored bodies shadow bundled files of the same name
            overrides = DictLoader({f"{folder}/{name}.html": body for name, body in stored.items()})
            self.env.loader = ChoiceLoader([overrides, self.env.loader])

    def with_templates(self, stored: dict[str, str]) -> "TemplateRenderer":
        return TemplateRenderer(self.templates_dir, self.folder, stored)

    def render(self, template_type: str, variables: dict) -> str:
        # avoid path cross
        if not template_type or "/" in template_type or "\\" in template_type or ".." in template_type:
            raise RenderError(f"Invalid template type {template_type!r}")
        context = {"company_name": config.COMPANY_NAME, **variables}
        try:
            template = self.env.get_template(f"{self.folder}/{template_type}.html")
            return template.render(**context)
        except TemplateError as exc:
            logger.error("Template rendering failed", template=template_type, error=str(exc))
            raise RenderError(f"Could not render {template_type}: {exc}") from exc


def append_signature_footer(html: str, *, signer_name: str, signed_at: datetime, signature_url: Optional[str]) -> str:
    # generate a "signed version"
    footer = f"""
    <hr/>
    <div style="font-size:12px;color:#444;margin-top:16px;">
      <strong>Electronically signed by:</strong> {signer_name}<br/>
      <strong>Date (UTC):</strong> {signed_at.strftime("%Y-%m-%d %H:%M:%S")}<br/>
      <strong>Signature:</strong> {signature_url or "-"}<br/>
    </div>
    """
    lower = html.lower()
    insert_at = lower.rfind("</body>")
    if insert_at != -1:
        return html[:insert_at] + footer + html[insert_at:]
    return html + footer


def html_to_pdf(html: str) -> Optional[bytes]:
    """PDF bytes via WeasyPrint when the ``pdf`` extra is installed, else None."""
    try:
        from weasyprint import HTML  # type: ignore
    except ImportError:
        return None
    return HTML(string=html).write_pdf()
