import pytest

from atlasbroker.core.errors import ContextMergeError
from atlasbroker.plans.context import Context
from atlasbroker.plans.merge import merge
from atlasbroker.plans.models import Cluster, Plan, Project, ProviderSettings


@pytest.fixture
def plan() -> Plan:
    return Plan(
        name="full-plan",
        project=Project(id="p1", name="demo", org_id="org1"),
        cluster=Cluster(
            name="demo-cluster",
            provider_settings=ProviderSettings(instance_size_name="M20"),
        ),
    )


def test_context_fields_replace_plan_fields(plan):
    merged = merge(plan, Context({"project": {"id": "p2", "name": "other"}}))

    assert merged.project.id == "p2"
    assert merged.project.name == "other"
    # top-level keys replace the whole field
    assert merged.project.org_id is None
    assert merged.cluster == plan.cluster


def test_keys_match_case_insensitively(plan):
    merged = merge(plan, Context({"Project": {"ID": "p3", "OrgID": "org9", "Name": "x"}}))

    assert merged.project.id == "p3"
    assert merged.project.org_id == "org9"


def test_nested_keys_are_normalized(plan):
    context = Context({"Cluster": {"ProviderSettings": {"InstanceSizeName": "M30"}}})

    merged = merge(plan, context)

    assert merged.cluster.provider_settings.instance_size_name == "M30"


def test_unrelated_keys_leave_plan_untouched(plan):
    merged = merge(plan, Context({"credentials": {"projects": {}}, "region": "EU"}))

    assert merged is plan


def test_incompatible_override_is_merge_error(plan):
    with pytest.raises(ContextMergeError) as exc_info:
        merge(plan, Context({"databaseUsers": "not-a-list"}))

    assert exc_info.value.details["fields"] == ["databaseUsers"]


def test_unserializable_context_is_merge_error(plan):
    with pytest.raises(ContextMergeError):
        merge(plan, Context({"project": {"id": object()}}))


def test_merge_does_not_mutate_inputs(plan):
    context = Context({"project": {"id": "p2"}})
    before = plan.to_document()

    merge(plan, context)

    assert plan.to_document() == before
    assert context["project"] == {"id": "p2"}
