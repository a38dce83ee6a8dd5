"""CLI command for running the full resolution pipeline against Atlas."""

from __future__ import annotations

import asyncio
import json
from typing import Sequence

from atlasbroker.broker import Broker, ResolvedPlan
from atlasbroker.cli.context import build_context
from atlasbroker.cli.ux import console, header, print_document, print_key_value, success
from atlasbroker.config import Settings
from atlasbroker.core.errors import main_with_error_handling


async def _resolve(
    settings: Settings,
    instance_id: str,
    plan: str,
    context_file: str | None,
    assignments: Sequence[str],
    existing: bool,
) -> tuple[Broker, ResolvedPlan]:
    broker = Broker.from_settings(settings)
    try:
        plan_id = broker.catalog.get(plan).id if plan in broker.catalog else plan
        context = None if existing else build_context(context_file, assignments)
        return broker, await broker.resolve_plan(instance_id, plan_id, context)
    finally:
        await broker.close()


@main_with_error_handling()
def resolve_command(
    settings: Settings,
    instance_id: str,
    plan: str,
    *,
    context_file: str | None = None,
    assignments: Sequence[str] = (),
    existing: bool = False,
    output_format: str = "yaml",
) -> int:
    """Resolve a plan the way a provision (or, with ``existing``, bind) call would.

    Reconciliation talks to the Atlas admin API with the routed key.
    """
    broker, resolved = asyncio.run(
        _resolve(settings, instance_id, plan, context_file, assignments, existing)
    )

    document = resolved.plan.safe_copy().to_document()
    if output_format == "json":
        console.print_json(json.dumps(document))
        return 0

    header(f"Instance: {instance_id}")
    print_document(document)

    details = {
        "public key": resolved.api_key.public_key,
        "organization": resolved.api_key.org_id or "-",
    }
    project = resolved.plan.project
    cluster = resolved.plan.cluster
    if project is not None and project.id and cluster is not None and cluster.name:
        details["dashboard"] = broker.dashboard_url(project.id, cluster.name)
    print_key_value(details, title="Routing")
    success("plan resolved")
    return 0
