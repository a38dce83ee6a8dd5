"""
Instance plan resolution.

Existing instances are resolved from their persisted record; new instances
are rendered from the catalog and overlaid with the request context. A record
that exists but cannot be decoded is an error and never falls through to
re-rendering, which could silently replace an already provisioned
configuration.
"""

from __future__ import annotations

import structlog

from atlasbroker.core.errors import InstanceNotFound, MissingProjectDefinition
from atlasbroker.credentials.store import CredentialStore
from atlasbroker.plans.catalog import PlanCatalog
from atlasbroker.plans.context import Context
from atlasbroker.plans.merge import merge
from atlasbroker.plans.models import Plan
from atlasbroker.plans.renderer import PlanRenderer
from atlasbroker.state import InstanceRecord, InstanceStore

logger = structlog.get_logger()


class InstancePlanResolver:
    def __init__(
        self,
        catalog: PlanCatalog,
        credentials: CredentialStore,
        store: InstanceStore,
        *,
        renderer: PlanRenderer | None = None,
    ) -> None:
        self.catalog = catalog
        self.credentials = credentials
        self.store = store
        self.renderer = renderer or PlanRenderer()

    async def load(self, instance_id: str) -> Plan | None:
        """Return the persisted plan for an instance, or None when there is no record."""
        raw = await self.store.get(instance_id)
        if raw is None:
            return None
        return InstanceRecord.from_raw(instance_id, raw).plan()

    def render(self, plan_id: str, context: Context) -> Plan:
        """Render a fresh plan for a new instance."""
        template = self.catalog.lookup(plan_id)
        credentials = self.credentials.snapshot()

        plan = self.renderer.render(template, context.with_value("credentials", credentials.as_context()))
        plan = merge(plan, context)

        if plan.project is None:
            raise MissingProjectDefinition(
                "missing Project in plan definition", {"plan_id": plan_id}
            )
        return plan

    async def resolve(self, instance_id: str, plan_id: str, context: Context | None) -> Plan:
        """Resolve the plan for a broker call.

        Raises:
            CorruptInstanceState: persisted record exists but cannot be decoded
            InstanceNotFound: no record and no context to render a new plan from
            MissingProjectDefinition: rendered plan has no project
        """
        plan = await self.load(instance_id)
        if plan is not None:
            logger.info("instance_plan_loaded", instance_id=instance_id)
            return plan

        if context is None:
            raise InstanceNotFound(
                f"cannot find plan for instance {instance_id!r}",
                {"instance_id": instance_id},
            )

        plan = self.render(plan_id, context)
        logger.info("instance_plan_rendered", instance_id=instance_id, plan_id=plan_id)
        return plan
