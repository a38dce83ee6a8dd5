"""Request context assembly for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import yaml

from atlasbroker.core.errors import ContextMergeError
from atlasbroker.plans.context import Context


def parse_assignment(assignment: str) -> tuple[list[str], Any]:
    """Split ``project.orgId=org1`` into a key path and a YAML-decoded value."""
    key, sep, raw = assignment.partition("=")
    if not sep or not key.strip():
        raise ContextMergeError(
            f"context override {assignment!r} must look like key=value",
            {"override": assignment},
        )
    return key.strip().split("."), yaml.safe_load(raw) if raw else ""


def build_context(
    context_file: str | None = None,
    assignments: Sequence[str] = (),
) -> Context:
    """Build a request context from an optional YAML file plus ``key=value`` overrides."""
    data: dict[str, Any] = {}
    if context_file:
        try:
            loaded = yaml.safe_load(Path(context_file).read_text()) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ContextMergeError(
                f"cannot read context file {context_file!r}: {exc}",
                {"file": context_file},
            ) from exc
        if not isinstance(loaded, dict):
            raise ContextMergeError(
                f"context file {context_file!r} must contain a mapping",
                {"file": context_file},
            )
        data.update(loaded)

    for assignment in assignments:
        path, value = parse_assignment(assignment)
        target = data
        for part in path[:-1]:
            node = target.get(part)
            if not isinstance(node, dict):
                node = {}
                target[part] = node
            target = node
        target[path[-1]] = value

    return Context(data)
