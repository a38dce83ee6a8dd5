"""
Remote state reconciliation.

Before a plan is handed back, the control plane is asked whether a project
with the plan's project name already exists. If it does, the live definition
replaces the templated one, so retrying a provision call adopts the project
the earlier attempt created instead of trying to create it again.

Only "not found" means "proceed as new". Any other lookup failure raises
RemoteReconcileError unless the reconciler runs in lenient mode.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

import httpx
import structlog
from circuitbreaker import CircuitBreakerError
from pydantic import ValidationError

from atlasbroker.clients.atlas import ProjectNotFound
from atlasbroker.clients.base import PermanentHTTPError, RetryableHTTPError
from atlasbroker.core.errors import RemoteReconcileError
from atlasbroker.plans.models import APIKey, Plan, Project

logger = structlog.get_logger()


class ProjectLookup(Protocol):
    async def get_project_by_name(self, name: str) -> dict[str, Any]: ...


ClientFactory = Callable[[APIKey], ProjectLookup]

_LOOKUP_FAILURES = (
    RetryableHTTPError,
    PermanentHTTPError,
    CircuitBreakerError,
    httpx.HTTPError,
)


class RemoteReconciler:
    def __init__(self, client_factory: ClientFactory, *, strict: bool = True) -> None:
        self.client_factory = client_factory
        self.strict = strict

    async def reconcile(self, plan: Plan, key: APIKey) -> Plan:
        """Adopt the live project definition when the project already exists.

        Raises:
            RemoteReconcileError: lookup failed for a reason other than not found (strict mode)
        """
        project = plan.project
        if project is None or not project.name:
            return plan

        client = self.client_factory(key)
        try:
            remote = await client.get_project_by_name(project.name)
        except ProjectNotFound:
            logger.info("project_not_found", project=project.name)
            return plan
        except _LOOKUP_FAILURES as exc:
            if not self.strict:
                logger.warning(
                    "project_lookup_failed",
                    project=project.name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                return plan
            raise RemoteReconcileError(
                f"cannot look up project {project.name!r}: {exc}",
                {"project": project.name, "cause": type(exc).__name__},
            ) from exc

        try:
            adopted = Project.model_validate(remote)
        except ValidationError as exc:
            raise RemoteReconcileError(
                f"unexpected project definition returned for {project.name!r}",
                {"project": project.name},
            ) from exc

        if not adopted.org_id:
            adopted = adopted.model_copy(update={"org_id": project.org_id})

        logger.info("project_adopted", project=project.name, project_id=adopted.id)
        return plan.model_copy(update={"project": adopted})
