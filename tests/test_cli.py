import json

import pytest

from atlasbroker.cli.catalog import catalog_command
from atlasbroker.cli.context import build_context, parse_assignment
from atlasbroker.cli.render import render_command
from atlasbroker.config import Settings
from atlasbroker.core.errors import ContextMergeError, ExitCode
from atlasbroker.main import build_parser, main

CREDENTIALS = json.dumps({"projects": {"p1": {"publicKey": "pub", "privateKey": "priv"}}})


@pytest.fixture
def settings(template_dir) -> Settings:
    return Settings(template_dir=str(template_dir), service_id="svc-test", api_keys=CREDENTIALS)


def test_parser_commands():
    parser = build_parser()

    args = parser.parse_args(["render", "full-plan", "--set", "project.id=p1", "--set", "project.name=demo"])

    assert args.command == "render"
    assert args.plan == "full-plan"
    assert args.assignments == ["project.id=p1", "project.name=demo"]

    args = parser.parse_args(["resolve", "inst-1", "full-plan", "--existing"])
    assert args.existing is True


def test_parse_assignment_decodes_values():
    assert parse_assignment("free=true") == (["free"], True)
    assert parse_assignment("project.orgId=org1") == (["project", "orgId"], "org1")

    with pytest.raises(ContextMergeError):
        parse_assignment("no-equals-sign")


def test_build_context_from_file_and_overrides(tmp_path):
    path = tmp_path / "context.yml"
    path.write_text("project:\n  id: p1\n  name: demo\n")

    context = build_context(str(path), ["project.orgId=org1"])

    assert context["project"] == {"id": "p1", "name": "demo", "orgId": "org1"}


def test_catalog_command(settings, capsys):
    assert catalog_command(settings, output_format="json") == ExitCode.SUCCESS

    document = json.loads(capsys.readouterr().out)
    assert {plan["name"] for plan in document["services"][0]["plans"]} == {
        "full-plan",
        "no-project",
        "org-plan",
    }


def test_catalog_command_missing_directory(tmp_path):
    settings = Settings(template_dir=str(tmp_path / "missing"))

    assert catalog_command(settings) == ExitCode.CONFIG_ERROR


def test_render_command_redacts_secrets(settings, capsys):
    code = render_command(
        settings,
        "full-plan",
        assignments=["project.id=p1", "project.name=demo", "project.orgId=org1"],
        output_format="json",
    )

    assert code == ExitCode.SUCCESS
    document = json.loads(capsys.readouterr().out)
    assert document["apiKey"]["publicKey"] == "pub"
    assert document["apiKey"]["privateKey"] == "********"
    assert document["cluster"]["providerSettings"]["instanceSizeName"] == "M20"


def test_render_command_unknown_plan(settings):
    assert render_command(settings, "nope") == ExitCode.NOT_FOUND


def test_main_without_command():
    with pytest.raises(SystemExit) as exc_info:
        main([])

    assert exc_info.value.code == 1
