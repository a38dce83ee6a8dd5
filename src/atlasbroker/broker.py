"""
Plan resolution pipeline.

The Broker wires the resolution components together:

    InstancePlanResolver -> CredentialRouter -> RemoteReconciler

and hands the OSB layer a fully resolved plan plus the API key it must be
provisioned with. Persisting the outcome is a separate step (``commit``) so a
resolution that fails or is cancelled never leaves a record behind.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass

import structlog

from atlasbroker.clients.atlas import DEFAULT_ATLAS_URL, AtlasClient, dashboard_url
from atlasbroker.config.settings import Settings
from atlasbroker.core.errors import (
    InstanceConflict,
    MissingProjectDefinition,
    ResolutionTimeout,
)
from atlasbroker.credentials import CredentialStore, credential_store_from_settings
from atlasbroker.logging import bind_context
from atlasbroker.plans.catalog import PlanCatalog, ServiceDefinition
from atlasbroker.plans.context import Context
from atlasbroker.plans.models import APIKey, Plan
from atlasbroker.plans.reconcile import RemoteReconciler
from atlasbroker.plans.renderer import PlanRenderer
from atlasbroker.plans.resolver import InstancePlanResolver
from atlasbroker.plans.router import CredentialRouter
from atlasbroker.state import InstanceRecord, InstanceStore, store_from_settings

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ResolvedPlan:
    plan: Plan
    api_key: APIKey


class Broker:
    """Resolves OSB calls into concrete provisioning plans."""

    def __init__(
        self,
        catalog: PlanCatalog,
        credentials: CredentialStore,
        store: InstanceStore,
        *,
        reconciler: RemoteReconciler,
        renderer: PlanRenderer | None = None,
        atlas_base_url: str = DEFAULT_ATLAS_URL,
        resolve_timeout: float | None = None,
    ) -> None:
        self.catalog = catalog
        self.credentials = credentials
        self.store = store
        self.atlas_base_url = atlas_base_url
        self.resolve_timeout = resolve_timeout

        self.resolver = InstancePlanResolver(catalog, credentials, store, renderer=renderer)
        self.router = CredentialRouter(credentials)
        self.reconciler = reconciler

    @classmethod
    def from_settings(cls, settings: Settings) -> Broker:
        """Build every component from settings.

        Raises:
            CatalogBuildError: the template directory cannot be turned into a catalog
        """
        service = ServiceDefinition(
            id=settings.service_id,
            name=settings.service_name,
            description=settings.service_description,
        )
        catalog = PlanCatalog.from_directory(settings.template_dir, service=service)
        client_factory = functools.partial(
            AtlasClient,
            base_url=settings.atlas_base_url,
            user_agent=settings.user_agent,
            timeout=settings.http_timeout,
            max_retries=settings.http_max_retries,
        )
        return cls(
            catalog,
            credential_store_from_settings(settings),
            store_from_settings(settings),
            reconciler=RemoteReconciler(client_factory, strict=settings.strict_reconcile),
            atlas_base_url=settings.atlas_base_url,
            resolve_timeout=settings.resolve_timeout,
        )

    async def resolve_plan(
        self,
        instance_id: str,
        plan_id: str,
        context: Context | None = None,
        *,
        timeout: float | None = None,
    ) -> ResolvedPlan:
        """Resolve the plan and credentials for a broker call.

        ``context`` is None for calls against an instance that must already
        exist (bind, update, deprovision).

        Raises:
            BrokerError: any resolution failure
            ResolutionTimeout: the deadline expired before resolution finished
        """
        deadline = self.resolve_timeout if timeout is None else timeout
        log = bind_context(instance_id=instance_id, plan_id=plan_id)

        try:
            async with asyncio.timeout(deadline):
                resolved = await self._resolve(instance_id, plan_id, context)
        except TimeoutError as exc:
            log.warning("plan_resolution_timed_out", timeout=deadline)
            raise ResolutionTimeout(
                f"plan resolution for instance {instance_id!r} exceeded {deadline}s",
                {"instance_id": instance_id, "timeout": deadline},
            ) from exc

        log.info("plan_resolved", plan=resolved.plan.safe_copy().to_document())
        return resolved

    async def _resolve(
        self, instance_id: str, plan_id: str, context: Context | None
    ) -> ResolvedPlan:
        plan = await self.resolver.resolve(instance_id, plan_id, context)
        if plan.project is None:
            raise MissingProjectDefinition(
                "missing Project in plan definition", {"instance_id": instance_id}
            )

        plan, key = self.router.route(plan)
        plan = await self.reconciler.reconcile(plan, key)
        return ResolvedPlan(plan=plan, api_key=key)

    async def commit(
        self,
        instance_id: str,
        plan_id: str | None,
        plan: Plan,
        *,
        replace: bool = False,
    ) -> InstanceRecord:
        """Persist a resolved plan once provisioning succeeded.

        A provision (``replace=False``) only writes when no record exists for
        the instance; updates pass ``replace=True`` to overwrite it.

        Raises:
            InstanceConflict: the instance was recorded by another provision
        """
        record = InstanceRecord.for_plan(instance_id, plan_id, plan)
        async with self.store.lock(instance_id):
            if not replace and await self.store.get(instance_id) is not None:
                logger.warning("instance_commit_conflict", instance_id=instance_id, plan_id=plan_id)
                raise InstanceConflict(
                    f"instance {instance_id!r} already exists", {"instance_id": instance_id}
                )
            await self.store.put(instance_id, record.to_raw())
        logger.info("instance_recorded", instance_id=instance_id, plan_id=plan_id)
        return record

    async def forget(self, instance_id: str) -> None:
        """Drop an instance record after a successful deprovision."""
        async with self.store.lock(instance_id):
            await self.store.delete(instance_id)
        logger.info("instance_forgotten", instance_id=instance_id)

    def dashboard_url(self, group_id: str, cluster_name: str) -> str:
        return dashboard_url(self.atlas_base_url, group_id, cluster_name)

    async def close(self) -> None:
        await self.store.close()
