"""Command line interface for extconfig."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from extconfig.extension_system import DRIVER_TYPE, PLUGIN_TYPE, DriverConfig, Manifest, PluginConfig
from extconfig.kernel.config import load_config
from extconfig.kernel.errors import ExtConfigError
from extconfig.kernel.logging import JsonlLogger


_FACADES = {DRIVER_TYPE: DriverConfig, PLUGIN_TYPE: PluginConfig}


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _print_report(kind: str, report: dict[str, Any]) -> None:
    for name in report["valid"]:
        print(f"{kind} {name}: ok")
    for name, warnings in sorted(report["warnings"].items()):
        for warning in warnings:
            print(f"{kind} {name}: warning: {warning}")
    for name, problems in sorted(report["invalid"].items()):
        for problem in problems:
            print(f"{kind} {name}: error: {problem['err']} (value: {problem['val']!r})")


def cmd_validate(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    manifest = Manifest.load(args.manifest)
    logger = JsonlLogger.from_config(config)
    kinds = [args.kind] if args.kind else [DRIVER_TYPE, PLUGIN_TYPE]
    reports: dict[str, dict[str, Any]] = {}
    for kind in kinds:
        facade = _FACADES[kind].create(manifest, config=config, logger=logger)
        facade.validate()
        reports[kind] = facade.load_report()
    if args.json:
        _print_json(reports)
    else:
        for kind, report in reports.items():
            _print_report(kind, report)
    return 1 if any(report["invalid"] for report in reports.values()) else 0


def cmd_config_show(args: argparse.Namespace) -> int:
    _print_json(load_config(args.config))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="extconfig")
    parser.add_argument("--config", default=None, help="Path to a user config JSON file")

    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Validate installed extensions and their schemas")
    validate.add_argument("--manifest", required=True, help="Path to the installed-extensions manifest")
    validate.add_argument("--kind", choices=sorted(_FACADES), default=None)
    validate.add_argument("--json", action="store_true", default=False)
    validate.set_defaults(func=cmd_validate)

    cfg = sub.add_parser("config")
    cfg_sub = cfg.add_subparsers(dest="config_cmd", required=True)
    cfg_show = cfg_sub.add_parser("show")
    cfg_show.set_defaults(func=cmd_config_show)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        exit_code = args.func(args)
    except ExtConfigError as exc:
        print(f"ERROR: {exc}")
        exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
