from __future__ import annotations

import argparse
import sys
from typing import Sequence

from atlasbroker.config import Settings, get_settings
from atlasbroker.logging import configure_logging


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--template-dir", help="Directory holding plan templates")
    parser.add_argument("--credentials-file", help="YAML credentials file")


def _add_context(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--context", dest="context_file", help="YAML file with request parameters")
    parser.add_argument(
        "--set",
        dest="assignments",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Context override, e.g. project.orgId=org1 (repeatable)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="atlasbroker", description="Atlas broker plan tooling")
    parser.add_argument("--log-level", help="Log level (default from settings)")
    subparsers = parser.add_subparsers(dest="command")

    catalog_parser = subparsers.add_parser("catalog", help="List plans built from the templates")
    _add_common(catalog_parser)
    catalog_parser.add_argument("--output", choices=["text", "json"], default="text")

    render_parser = subparsers.add_parser("render", help="Render a plan template offline")
    render_parser.add_argument("plan", help="Plan ID or plan name")
    _add_common(render_parser)
    _add_context(render_parser)
    render_parser.add_argument("--output", choices=["yaml", "json"], default="yaml")

    resolve_parser = subparsers.add_parser(
        "resolve", help="Resolve a plan including credential routing and remote reconciliation"
    )
    resolve_parser.add_argument("instance_id", help="Service instance ID")
    resolve_parser.add_argument("plan", help="Plan ID or plan name")
    _add_common(resolve_parser)
    _add_context(resolve_parser)
    resolve_parser.add_argument(
        "--existing",
        action="store_true",
        help="Resolve as a call against an existing instance (no context)",
    )
    resolve_parser.add_argument("--output", choices=["yaml", "json"], default="yaml")

    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    overrides = {}
    if getattr(args, "template_dir", None):
        overrides["template_dir"] = args.template_dir
    if getattr(args, "credentials_file", None):
        overrides["credentials_file"] = args.credentials_file
    return settings.model_copy(update=overrides) if overrides else settings


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    settings = _settings_for(args)
    configure_logging(args.log_level or settings.log_level)

    if args.command == "catalog":
        from atlasbroker.cli.catalog import catalog_command

        sys.exit(catalog_command(settings, output_format=args.output))

    if args.command == "render":
        from atlasbroker.cli.render import render_command

        sys.exit(
            render_command(
                settings,
                args.plan,
                context_file=args.context_file,
                assignments=args.assignments,
                output_format=args.output,
            )
        )

    if args.command == "resolve":
        from atlasbroker.cli.resolve import resolve_command

        sys.exit(
            resolve_command(
                settings,
                args.instance_id,
                args.plan,
                context_file=args.context_file,
                assignments=args.assignments,
                existing=args.existing,
                output_format=args.output,
            )
        )

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
