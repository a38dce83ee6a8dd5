"""CLI command for rendering a plan template offline."""

from __future__ import annotations

import json
from typing import Sequence

from atlasbroker.cli.catalog import load_catalog
from atlasbroker.cli.context import build_context
from atlasbroker.cli.ux import console, header, print_document
from atlasbroker.config import Settings
from atlasbroker.core.errors import MissingProjectDefinition, main_with_error_handling
from atlasbroker.credentials import credential_store_from_settings
from atlasbroker.plans.merge import merge
from atlasbroker.plans.renderer import PlanRenderer


@main_with_error_handling()
def render_command(
    settings: Settings,
    plan: str,
    *,
    context_file: str | None = None,
    assignments: Sequence[str] = (),
    output_format: str = "yaml",
) -> int:
    """Render a plan template against a context without touching the network.

    Secrets are always redacted in the output.
    """
    catalog = load_catalog(settings)
    template = catalog.lookup(plan)
    credentials = credential_store_from_settings(settings).snapshot()
    context = build_context(context_file, assignments)

    rendered = PlanRenderer().render(
        template, context.with_value("credentials", credentials.as_context())
    )
    rendered = merge(rendered, context)
    if rendered.project is None:
        raise MissingProjectDefinition(
            "missing Project in plan definition", {"plan_id": template.id}
        )

    document = rendered.safe_copy().to_document()
    if output_format == "json":
        console.print_json(json.dumps(document))
    else:
        header(f"Plan: {template.name}")
        print_document(document)
    return 0
