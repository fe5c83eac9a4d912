"""Jinja2 rendering of the transactional mail bodies."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape

from .errors import DependencyError

TEMPLATE_DIR = Path(__file__).parent / "templates"


class TemplateRenderer:
    def __init__(self, directory: Optional[Path] = None) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(directory or TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
        )

    def render(self, template_name: str, data: Mapping[str, Any]) -> str:
        try:
            return self._env.get_template(template_name).render(**data)
        except TemplateError as exc:
            raise DependencyError("render error", origin="renderer") from exc


__all__ = ["TEMPLATE_DIR", "TemplateRenderer"]
