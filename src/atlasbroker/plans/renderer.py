"""
Plan template rendering.

Rendering happens in two phases that fail differently: the template is
executed against the context (TemplateExecutionError), then the resulting
text is decoded as a YAML plan document (DocumentDecodeError).
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Any, Mapping, Protocol

import structlog
import yaml
from jinja2 import ChainableUndefined, Environment, StrictUndefined, Template, TemplateError
from pydantic import ValidationError

from atlasbroker.core.errors import DocumentDecodeError, TemplateExecutionError
from atlasbroker.plans.models import Plan

if TYPE_CHECKING:
    from atlasbroker.plans.catalog import PlanTemplate
    from atlasbroker.plans.context import Context

logger = structlog.get_logger()


class TemplateEngine(Protocol):
    def render(self, template_text: str, context_view: Mapping[str, Any]) -> str: ...

    def validate(self, template_text: str) -> None: ...


class JinjaTemplateEngine:
    """Jinja2 backed template engine.

    ``strict`` engines fail on any undefined placeholder. Lenient engines
    render missing values as empty, which is what catalog construction uses
    to read plan metadata without a request context.
    """

    def __init__(self, *, strict: bool = True) -> None:
        self._env = Environment(
            undefined=StrictUndefined if strict else ChainableUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._compile = lru_cache(maxsize=256)(self._env.from_string)

    def validate(self, template_text: str) -> None:
        """Compile a template, raising jinja2.TemplateSyntaxError on bad syntax."""
        self._compile(template_text)

    def render(self, template_text: str, context_view: Mapping[str, Any]) -> str:
        try:
            template: Template = self._compile(template_text)
            return template.render(dict(context_view))
        except TemplateError as exc:
            raise TemplateExecutionError(
                f"template execution failed: {exc}",
                {"cause": type(exc).__name__},
            ) from exc


def decode_plan(text: str) -> Plan:
    """Decode rendered template output into a Plan."""
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DocumentDecodeError(f"rendered plan is not valid YAML: {exc}") from exc

    if not isinstance(document, dict):
        raise DocumentDecodeError(
            "rendered plan must be a mapping",
            {"document_type": type(document).__name__},
        )

    try:
        return Plan.from_document(document)
    except ValidationError as exc:
        raise DocumentDecodeError(
            f"rendered plan does not match the plan schema: {exc.error_count()} error(s)",
            {"errors": _summarize(exc)},
        ) from exc


def _summarize(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]


class PlanRenderer:
    """Executes a plan template against a context and decodes the result."""

    def __init__(self, engine: TemplateEngine | None = None) -> None:
        self.engine = engine or JinjaTemplateEngine()

    def render_text(self, template: PlanTemplate, context: Context) -> str:
        try:
            return self.engine.render(template.body, context.template_view())
        except TemplateExecutionError as exc:
            exc.details.setdefault("plan", template.name)
            raise

    def render(self, template: PlanTemplate, context: Context) -> Plan:
        raw = self.render_text(template, context)
        try:
            plan = decode_plan(raw)
        except DocumentDecodeError as exc:
            exc.details.setdefault("plan", template.name)
            raise

        logger.info("plan_rendered", plan=template.name, rendered=plan.safe_copy().to_document())
        return plan
