#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cppcheckdata_unitags/__main__.py
================================

Command line for running the engine and inspecting its fact store.

Usage
-----
    python -m cppcheckdata_unitags <command> [options]

Commands
--------
    analyze     Run both checkers over Cppcheck dump files
    facts       List the records of one fact table
    member      Look up the unit persisted for a structure member
    info        Display package metadata

Exit codes: 0 on success, 1 when a lookup finds nothing, 2 on
configuration, store or input errors.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from termcolor import colored

from cppcheckdata_unitags.config import EngineConfig
from cppcheckdata_unitags.errors import UnitagsError
from cppcheckdata_unitags.fact_store import FACT_TABLES, FactRepository

_SEVERITY_COLORS = {
    "error": "red",
    "warning": "yellow",
    "style": "cyan",
    "portability": "magenta",
    "information": "green",
}


def _load_config(args: argparse.Namespace) -> EngineConfig:
    config = (
        EngineConfig.from_json_file(args.config)
        if getattr(args, "config", None)
        else EngineConfig()
    )
    if getattr(args, "db", None):
        config.db_path = args.db
    return config


def _configure_logging(args: argparse.Namespace, config: EngineConfig) -> None:
    if args.verbose >= 2:
        level = logging.DEBUG
    elif args.verbose == 1:
        level = logging.INFO
    else:
        level = config.logging_level
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_analyze(args: argparse.Namespace, config: EngineConfig) -> int:
    try:
        from cppcheckdata import parsedump  # type: ignore[import-untyped]
    except ImportError:
        sys.stderr.write("ERROR: cppcheckdata module not found\n")
        return 2

    from cppcheckdata_unitags.engine import UnitagsEngine, file_id_for

    with UnitagsEngine(config) as engine:
        for dump_file in args.dump_files:
            data = parsedump(dump_file)
            engine.run_dump(data, file_id_for(dump_file))
        for diag in engine.sink:
            if args.output == "json":
                sys.stdout.write(diag.to_json_str() + "\n")
            elif args.color:
                color = _SEVERITY_COLORS.get(diag.severity.value)
                sys.stdout.write(colored(diag.to_gcc_format(), color) + "\n")
            else:
                sys.stdout.write(diag.to_gcc_format() + "\n")
    return 0


def cmd_facts(args: argparse.Namespace, config: EngineConfig) -> int:
    repo = FactRepository.open(config.db_path)
    try:
        rows = list(repo.iter_facts(args.table))
    finally:
        repo.close()
    for row in rows:
        print(json.dumps(row, sort_keys=True))
    return 0


def cmd_member(args: argparse.Namespace, config: EngineConfig) -> int:
    repo = FactRepository.open(config.db_path)
    try:
        lookup = repo.member_unit(args.member)
    finally:
        repo.close()
    if lookup.is_found:
        print(lookup.value)
        return 0
    print(lookup.status.value)
    return 1


def cmd_info(args: argparse.Namespace, config: EngineConfig) -> int:
    import cppcheckdata_unitags

    info = cppcheckdata_unitags.package_info()
    if args.json:
        print(json.dumps(info, indent=2, sort_keys=True))
        return 0
    for key in sorted(info):
        value = info[key]
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        print(f"{key:18s} {value}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cppcheckdata_unitags",
        description="Units and heap-tag dataflow engine for Cppcheck dumps",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="-v for INFO, -vv for DEBUG logging")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--db", help="Fact store path (overrides the config)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_analyze = sub.add_parser("analyze", help="Run the checkers over dump files")
    p_analyze.add_argument("dump_files", nargs="+", help="Cppcheck .dump files")
    p_analyze.add_argument("--output", choices=["json", "gcc"], default="json",
                           help="Diagnostic format")
    p_analyze.add_argument("--color", action="store_true",
                           help="Colorize GCC-style output")
    p_analyze.set_defaults(func=cmd_analyze)

    p_facts = sub.add_parser("facts", help="List one fact table")
    p_facts.add_argument("table", choices=sorted(FACT_TABLES))
    p_facts.set_defaults(func=cmd_facts)

    p_member = sub.add_parser("member", help="Look up a member's unit")
    p_member.add_argument("member", help="e.g. '(struct foo)->len'")
    p_member.set_defaults(func=cmd_member)

    p_info = sub.add_parser("info", help="Show package metadata")
    p_info.add_argument("--json", action="store_true")
    p_info.set_defaults(func=cmd_info)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _load_config(args)
        _configure_logging(args, config)
        return args.func(args, config)
    except UnitagsError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2


if __name__ == "__main__":
    sys.exit(main())
