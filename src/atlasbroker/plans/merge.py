"""
Request context overlay.

Template defaults are resolved first, request-time overrides second: the
request context is serialized and applied onto the rendered plan as a partial
overlay. A top-level context key naming a plan field replaces that field
entirely; fields the context does not mention keep their template values.

Keys are matched case-insensitively against both the camelCase document key
and the Python field name, at every level of a modelled sub-document, so
``{"Project": {"OrgID": "..."}}`` and ``{"project": {"orgId": "..."}}`` are
equivalent.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, get_args

import structlog
from pydantic import BaseModel, ValidationError

from atlasbroker.core.errors import ContextMergeError
from atlasbroker.plans.context import Context
from atlasbroker.plans.models import Plan

logger = structlog.get_logger()


def _model_of(annotation: Any) -> type[BaseModel] | None:
    try:
        if issubclass(annotation, BaseModel):
            return annotation
    except TypeError:
        pass
    for arg in get_args(annotation):
        model = _model_of(arg)
        if model is not None:
            return model
    return None


@lru_cache
def _field_index(model: type[BaseModel]) -> dict[str, tuple[str, type[BaseModel] | None]]:
    index: dict[str, tuple[str, type[BaseModel] | None]] = {}
    for name, info in model.model_fields.items():
        alias = info.alias or name
        entry = (alias, _model_of(info.annotation))
        index[name.lower()] = entry
        index[alias.lower()] = entry
    return index


def _normalize(value: Any, model: type[BaseModel] | None) -> Any:
    if model is None:
        return value
    if isinstance(value, list):
        return [_normalize(item, model) for item in value]
    if not isinstance(value, dict):
        return value

    index = _field_index(model)
    normalized: dict[str, Any] = {}
    for key, item in value.items():
        match = index.get(str(key).lower())
        if match is None:
            normalized[key] = item
            continue
        alias, sub_model = match
        normalized[alias] = _normalize(item, sub_model)
    return normalized


def merge(plan: Plan, context: Context) -> Plan:
    """Overlay the request context onto a rendered plan.

    Raises:
        ContextMergeError: context is not serializable or an override does not validate
    """
    try:
        overlay = context.to_document()
    except (TypeError, ValueError) as exc:
        raise ContextMergeError(f"request context cannot be serialized: {exc}") from exc

    index = _field_index(Plan)
    document = plan.to_document()
    overridden: list[str] = []
    for key, value in overlay.items():
        match = index.get(str(key).lower())
        if match is None:
            continue
        alias, model = match
        document[alias] = _normalize(value, model)
        overridden.append(alias)

    if not overridden:
        return plan

    try:
        merged = Plan.from_document(document)
    except ValidationError as exc:
        raise ContextMergeError(
            f"request context is not compatible with the plan: {exc.error_count()} error(s)",
            {
                "fields": overridden,
                "errors": [
                    f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}"
                    for error in exc.errors()
                ],
            },
        ) from exc

    logger.info("plan_context_merged", fields=overridden, plan=merged.safe_copy().to_document())
    return merged
