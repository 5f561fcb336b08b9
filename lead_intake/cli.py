# lead_intake/cli.py
"""
Operator commands for the lead intake service.

    lead-intake config-status
    lead-intake init-db
    lead-intake ghl-diagnose
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Awaitable, Callable, Dict, Optional

from lead_intake.core.config import PipelineConfig, config_status, load_config
from lead_intake.core.exceptions import ConfigurationError
from lead_intake.core.logging import configure_structlog
from lead_intake.db import session as db_session
from lead_intake.integrations.gohighlevel import build_crm_client
from lead_intake.services.diagnostics import diagnose_crm
from lead_intake.services.lead_store import create_schema


def print_error(message: str) -> None:
    print(f"[x] {message}", file=sys.stderr)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


async def cmd_config_status(config: PipelineConfig, args: argparse.Namespace) -> int:
    print_json(config_status(config))
    return 0


async def cmd_init_db(config: PipelineConfig, args: argparse.Namespace) -> int:
    engine = db_session.create_database_engine(config.database)
    try:
        await create_schema(engine)
    finally:
        await db_session.dispose_engine()
    print("[ok] leads table is ready")
    return 0


async def cmd_ghl_diagnose(config: PipelineConfig, args: argparse.Namespace) -> int:
    crm = config.integrations.crm
    if crm is None:
        print_json({"ok": False, "error": "Missing GHL_API_KEY secret"})
        return 1

    client = build_crm_client(crm)
    try:
        result = await diagnose_crm(crm, client)
    finally:
        await client.close()

    print_json(result)
    return 0 if result["ok"] else 1


Command = Callable[[PipelineConfig, argparse.Namespace], Awaitable[int]]

COMMANDS: Dict[str, Command] = {
    "config-status": cmd_config_status,
    "init-db": cmd_init_db,
    "ghl-diagnose": cmd_ghl_diagnose,
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lead-intake", description="Lead intake operator CLI")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    subparsers.add_parser("config-status", help="Show which secrets are configured (values redacted)")
    subparsers.add_parser("init-db", help="Create the leads table")
    subparsers.add_parser("ghl-diagnose", help="Probe CRM credentials and tenant access")
    return parser


def main(args: Optional[list] = None) -> int:
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    configure_structlog(stream=sys.stderr)

    try:
        config = load_config(os.environ)
    except ConfigurationError as e:
        print_error(str(e))
        return 1

    try:
        return asyncio.run(COMMANDS[parsed_args.command](config, parsed_args))
    except KeyboardInterrupt:
        print_error("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
