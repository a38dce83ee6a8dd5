import pytest

from atlasbroker.core.errors import CatalogBuildError, PlanNotFound, TemplateInvalid, TemplateMissing
from atlasbroker.plans.catalog import (
    CatalogEntry,
    PlanCatalog,
    PlanTemplate,
    ServiceDefinition,
    plan_id_for,
)

SERVICE = ServiceDefinition(id="svc-test", name="mongodb-atlas-template")


def test_from_directory_loads_every_template(catalog):
    names = sorted(entry.name for entry in catalog.plans())

    assert names == ["full-plan", "no-project", "org-plan"]
    assert len(catalog) == 3


def test_plan_ids_are_stable(catalog):
    entry = catalog.get("full-plan")

    assert entry.id == plan_id_for("svc-test", "full-plan")
    assert catalog.get(entry.id) is entry
    assert entry.id in catalog


def test_template_metadata_is_read_from_header(catalog):
    entry = catalog.get("full-plan")

    assert entry.free is False
    assert entry.description == "Full plan used by the resolution scenario tests"
    assert entry.template.source.endswith("full-plan.yml.j2")


def test_unknown_plan_raises_not_found(catalog):
    with pytest.raises(PlanNotFound) as exc_info:
        catalog.lookup("does-not-exist")

    assert exc_info.value.details == {"plan_id": "does-not-exist"}


def test_entry_without_template_is_invalid():
    good = PlanTemplate(id="good", name="good", body="name: good\n")
    catalog = PlanCatalog(
        [
            CatalogEntry.for_template(good),
            CatalogEntry(id="bogus", name="bogus", metadata={"template": "not a template"}),
            CatalogEntry(id="blank", name="blank", metadata={"template": PlanTemplate("blank", "blank", "  ")}),
        ]
    )

    assert catalog.lookup("good") is good
    with pytest.raises(TemplateInvalid):
        catalog.lookup("bogus")
    with pytest.raises(TemplateMissing):
        catalog.lookup("blank")


def test_duplicate_names_are_rejected():
    first = PlanTemplate(id="a", name="same", body="name: same\n")
    second = PlanTemplate(id="b", name="same", body="name: same\n")

    with pytest.raises(CatalogBuildError):
        PlanCatalog([CatalogEntry.for_template(first), CatalogEntry.for_template(second)])


def test_missing_directory_fails(tmp_path):
    with pytest.raises(CatalogBuildError):
        PlanCatalog.from_directory(tmp_path / "nope", service=SERVICE)


def test_empty_directory_fails(tmp_path):
    (tmp_path / "notes.txt").write_text("not a template")

    with pytest.raises(CatalogBuildError):
        PlanCatalog.from_directory(tmp_path, service=SERVICE)


def test_invalid_template_fails_the_build(tmp_path):
    (tmp_path / "broken.yml.j2").write_text("name: {% if %}\n")

    with pytest.raises(CatalogBuildError) as exc_info:
        PlanCatalog.from_directory(tmp_path, service=SERVICE)

    assert exc_info.value.details["template"].endswith("broken.yml.j2")


def test_name_defaults_to_file_stem(tmp_path):
    (tmp_path / "anonymous.yaml.tpl").write_text("cluster:\n  name: x\n")

    catalog = PlanCatalog.from_directory(tmp_path, service=SERVICE)

    assert [entry.name for entry in catalog.plans()] == ["anonymous"]


def test_services_document(catalog):
    document = catalog.services()

    [service] = document["services"]
    assert service["id"] == "svc-test"
    assert service["bindable"] is True
    assert {plan["name"] for plan in service["plans"]} == {"full-plan", "no-project", "org-plan"}
