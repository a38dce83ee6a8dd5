"""
Plan catalog.

The catalog is built once at startup and is read only afterwards. Each entry
maps a plan ID to its metadata; the plan's template lives in the entry
metadata under the ``template`` key, mirroring how OSB plan metadata carries
broker specific extras.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import structlog
import yaml
from jinja2 import TemplateError

from atlasbroker.core.errors import (
    CatalogBuildError,
    PlanNotFound,
    TemplateExecutionError,
    TemplateInvalid,
)
from atlasbroker.plans.renderer import JinjaTemplateEngine, TemplateEngine

logger = structlog.get_logger()

TEMPLATE_SUFFIXES = (".yml.j2", ".yaml.j2", ".yml.tpl", ".yaml.tpl")


@dataclass(frozen=True, slots=True)
class PlanTemplate:
    """Parameterized pre-resolution definition of a plan."""

    id: str
    name: str
    body: str
    description: str = ""
    free: bool = True
    source: str | None = None


@dataclass(frozen=True, slots=True)
class ServiceDefinition:
    id: str
    name: str
    description: str = ""
    bindable: bool = True
    plan_updateable: bool = True


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Catalog metadata for one plan."""

    id: str
    name: str
    description: str = ""
    free: bool = True
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def template(self) -> PlanTemplate | None:
        template = self.metadata.get("template")
        if isinstance(template, PlanTemplate) and template.body.strip():
            return template
        return None

    @classmethod
    def for_template(cls, template: PlanTemplate) -> CatalogEntry:
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            free=template.free,
            metadata={"template": template},
        )


def plan_id_for(service_id: str, plan_name: str) -> str:
    """Stable plan ID derived from the service and plan names."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{service_id}/{plan_name}"))


class PlanCatalog:
    """Immutable mapping from plan ID to plan metadata."""

    def __init__(
        self,
        entries: Iterable[CatalogEntry],
        *,
        service: ServiceDefinition | None = None,
    ) -> None:
        by_id: dict[str, CatalogEntry] = {}
        by_name: dict[str, str] = {}
        for entry in entries:
            if entry.id in by_id:
                raise CatalogBuildError(f"duplicate plan ID {entry.id!r} in catalog")
            if entry.name in by_name:
                raise CatalogBuildError(f"duplicate plan name {entry.name!r} in catalog")
            by_id[entry.id] = entry
            by_name[entry.name] = entry.id

        self.service = service
        self._entries = MappingProxyType(by_id)
        self._names = MappingProxyType(by_name)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self._entries or plan_id in self._names

    def plans(self) -> list[CatalogEntry]:
        return list(self._entries.values())

    def get(self, plan_id: str) -> CatalogEntry:
        """Return the entry for a plan ID (or plan name)."""
        entry = self._entries.get(plan_id)
        if entry is None and plan_id in self._names:
            entry = self._entries[self._names[plan_id]]
        if entry is None:
            raise PlanNotFound(f"plan ID {plan_id!r} not found in catalog", {"plan_id": plan_id})
        return entry

    def lookup(self, plan_id: str) -> PlanTemplate:
        """Return the template for a plan.

        Raises:
            PlanNotFound: plan ID is absent
            TemplateInvalid: entry exists but carries no usable template
        """
        entry = self.get(plan_id)
        template = entry.template
        if template is None:
            raise TemplateInvalid(
                f"plan ID {plan_id!r} does not contain a valid plan template",
                {"plan_id": plan_id},
            )
        return template

    def services(self) -> dict[str, Any]:
        """Build the OSB catalog document for this catalog."""
        if self.service is None:
            return {"services": []}

        plans = [
            {
                "id": entry.id,
                "name": entry.name,
                "description": entry.description,
                "free": entry.free,
            }
            for entry in self._entries.values()
        ]
        return {
            "services": [
                {
                    "id": self.service.id,
                    "name": self.service.name,
                    "description": self.service.description,
                    "bindable": self.service.bindable,
                    "plan_updateable": self.service.plan_updateable,
                    "plans": plans,
                }
            ]
        }

    @classmethod
    def from_directory(
        cls,
        path: str | Path,
        *,
        service: ServiceDefinition,
        engine: TemplateEngine | None = None,
    ) -> PlanCatalog:
        """Build a catalog from every template file in a directory.

        Raises:
            CatalogBuildError: directory missing, empty, or a template is unusable
        """
        directory = Path(path)
        if not directory.is_dir():
            raise CatalogBuildError(
                f"template directory {str(directory)!r} does not exist",
                {"template_dir": str(directory)},
            )

        files = sorted(
            p for p in directory.iterdir() if p.is_file() and p.name.endswith(TEMPLATE_SUFFIXES)
        )
        if not files:
            raise CatalogBuildError(
                f"no plan templates found in {str(directory)!r}",
                {"template_dir": str(directory)},
            )

        engine = engine or JinjaTemplateEngine(strict=False)
        entries = [CatalogEntry.for_template(_load_template(f, service, engine)) for f in files]

        catalog = cls(entries, service=service)
        logger.info(
            "catalog_built",
            template_dir=str(directory),
            plans=[entry.name for entry in catalog.plans()],
        )
        return catalog


def _load_template(path: Path, service: ServiceDefinition, engine: TemplateEngine) -> PlanTemplate:
    body = path.read_text()

    try:
        engine.validate(body)
        rendered = engine.render(body, {})
        header = yaml.safe_load(rendered) or {}
    except (TemplateError, yaml.YAMLError) as exc:
        raise CatalogBuildError(
            f"plan template {path.name!r} is invalid: {exc}",
            {"template": str(path)},
        ) from exc
    except TemplateExecutionError as exc:
        raise CatalogBuildError(
            f"plan template {path.name!r} could not be rendered: {exc}",
            {"template": str(path)},
        ) from exc

    if not isinstance(header, dict):
        raise CatalogBuildError(
            f"plan template {path.name!r} does not render to a mapping",
            {"template": str(path)},
        )

    name = str(header.get("name") or _stem(path))
    return PlanTemplate(
        id=plan_id_for(service.id, name),
        name=name,
        body=body,
        description=str(header.get("description") or ""),
        free=bool(header.get("free", True)),
        source=str(path),
    )


def _stem(path: Path) -> str:
    name = path.name
    for suffix in TEMPLATE_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return path.stem
