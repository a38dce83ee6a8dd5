import pytest

from atlasbroker.core.errors import (
    CorruptInstanceState,
    InstanceNotFound,
    MissingProjectDefinition,
    PlanNotFound,
)
from atlasbroker.plans.catalog import plan_id_for
from atlasbroker.plans.context import Context
from atlasbroker.plans.models import Plan, Project
from atlasbroker.plans.resolver import InstancePlanResolver
from atlasbroker.state import InMemoryInstanceStore, InstanceRecord

FULL_PLAN_ID = plan_id_for("svc-test", "full-plan")


@pytest.fixture
def store() -> InMemoryInstanceStore:
    return InMemoryInstanceStore()


@pytest.fixture
def resolver(catalog, credential_store, store) -> InstancePlanResolver:
    return InstancePlanResolver(catalog, credential_store, store)


@pytest.mark.asyncio
async def test_new_instance_is_rendered(resolver, scenario_context):
    plan = await resolver.resolve("inst-1", FULL_PLAN_ID, scenario_context)

    assert plan.name == "full-plan"
    assert plan.api_key.public_key == "pub"
    assert plan.project.id == "p1"


@pytest.mark.asyncio
async def test_existing_instance_wins_over_template(resolver, store, scenario_context):
    stored = Plan(name="stored", project=Project(id="p7", name="legacy", org_id="org1"))
    await store.put("inst-1", InstanceRecord.for_plan("inst-1", FULL_PLAN_ID, stored).to_raw())

    plan = await resolver.resolve("inst-1", FULL_PLAN_ID, scenario_context)

    assert plan.to_document() == stored.to_document()


@pytest.mark.asyncio
async def test_existing_instance_without_context(resolver, store):
    stored = Plan(name="stored", project=Project(id="p7", name="legacy"))
    await store.put("inst-1", InstanceRecord.for_plan("inst-1", None, stored).to_raw())

    plan = await resolver.resolve("inst-1", "ignored", None)

    assert plan.project.name == "legacy"


@pytest.mark.asyncio
async def test_unknown_instance_without_context(resolver):
    with pytest.raises(InstanceNotFound):
        await resolver.resolve("missing", FULL_PLAN_ID, None)


@pytest.mark.asyncio
async def test_corrupt_record_never_falls_back_to_rendering(resolver, store, scenario_context):
    await store.put("inst-1", {"parameters": {"plan": "garbage"}})

    with pytest.raises(CorruptInstanceState):
        await resolver.resolve("inst-1", FULL_PLAN_ID, scenario_context)


@pytest.mark.asyncio
async def test_record_without_plan_is_corrupt(resolver, store):
    await store.put("inst-1", {"parameters": {}})

    with pytest.raises(CorruptInstanceState):
        await resolver.load("inst-1")


@pytest.mark.asyncio
async def test_rendered_plan_without_project(resolver):
    with pytest.raises(MissingProjectDefinition):
        await resolver.resolve("inst-2", "no-project", Context())


@pytest.mark.asyncio
async def test_unknown_plan(resolver, scenario_context):
    with pytest.raises(PlanNotFound):
        await resolver.resolve("inst-3", "nope", scenario_context)


def test_context_overlays_rendered_plan(resolver, scenario_context):
    context = scenario_context.with_value("cluster", {"name": "override"})

    plan = resolver.render(FULL_PLAN_ID, context)

    assert plan.cluster.name == "override"
    assert plan.cluster.provider_settings is None
