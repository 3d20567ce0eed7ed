"""Jinja2 template loading for generated HTML forms and Groovy scripts.

Templates live in the ``procforge/templates`` package directory. An extra
directory can be supplied to override individual templates.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
from jinja2 import (
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFound,
    select_autoescape,
)

logger = structlog.get_logger(__name__)

PACKAGE_TEMPLATES = Path(__file__).resolve().parent.parent / "templates"


class TemplateLoader:
    """Load and render generator templates.

    Args:
        override_dir: Optional directory searched before the packaged templates
    """

    def __init__(self, override_dir: Path | None = None):
        search_path = [str(PACKAGE_TEMPLATES)]
        if override_dir is not None:
            search_path.insert(0, str(override_dir))

        self.env = Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(enabled_extensions=("html.j2", "xml.j2")),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            auto_reload=False,
        )
        logger.debug("template_loader_initialized", search_path=search_path)

    def load_template(self, name: str) -> Template:
        """Load a template by file name.

        Raises:
            TemplateNotFound: If the template does not exist
        """
        try:
            return self.env.get_template(name)
        except TemplateNotFound:
            logger.error("template_not_found", template=name)
            raise

    def render(self, name: str, **context: Any) -> str:
        return self.load_template(name).render(**context)
