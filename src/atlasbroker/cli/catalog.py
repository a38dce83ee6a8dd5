"""CLI command for listing the plan catalog."""

from __future__ import annotations

import json

from atlasbroker.cli.ux import console, header, info, print_table
from atlasbroker.config import Settings
from atlasbroker.core.errors import main_with_error_handling
from atlasbroker.plans.catalog import PlanCatalog, ServiceDefinition


def load_catalog(settings: Settings) -> PlanCatalog:
    service = ServiceDefinition(
        id=settings.service_id,
        name=settings.service_name,
        description=settings.service_description,
    )
    return PlanCatalog.from_directory(settings.template_dir, service=service)


@main_with_error_handling()
def catalog_command(settings: Settings, output_format: str = "text") -> int:
    """List the plans built from the template directory.

    Returns:
        Exit code (0 for success)
    """
    catalog = load_catalog(settings)

    if output_format == "json":
        console.print_json(json.dumps(catalog.services()))
        return 0

    header(f"Plan catalog: {settings.service_name}")
    rows = [
        [entry.id, entry.name, "yes" if entry.free else "no", entry.description]
        for entry in catalog.plans()
    ]
    print_table("Plans", ["ID", "Name", "Free", "Description"], rows)
    info(f"{len(catalog)} plan(s) loaded from {settings.template_dir}")
    return 0
