#!/usr/bin/env python3
"""Command-line interface for the suggestion pipeline.

Commands:
  - nearby suggest   : Run the pipeline for one location and print the JSON response
  - nearby providers : Show which provider connectors are enabled and configured

Typical usage:
  nearby suggest --lat 37.7749 --lon -122.4194 --minutes 120 --interest music
  nearby providers
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx

from nearby.configs.settings import get_settings
from nearby.errors import ValidationError
from nearby.ingestion.factory import ConnectorFactory
from nearby.monitoring.logging import LoggingOptions, setup_logging
from nearby.pipeline.factory import build_orchestrator


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="nearby", description="Nearby event suggestions")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    sub = p.add_subparsers(dest="cmd")

    # suggest
    ps = sub.add_parser("suggest", help="Suggest events near a location")
    ps.add_argument("--lat", type=float, required=True, help="Latitude")
    ps.add_argument("--lon", type=float, required=True, help="Longitude")
    ps.add_argument(
        "--minutes", type=int, required=True, help="Minutes available (15-360)"
    )
    ps.add_argument(
        "--interest",
        action="append",
        dest="interests",
        default=None,
        help="Interest tag (repeatable)",
    )
    ps.add_argument("--radius", type=int, default=None, help="Search radius in meters")
    ps.add_argument("--limit", type=int, default=None, help="Maximum suggestions")
    ps.add_argument("--now", default=None, help="ISO-8601 time override")
    ps.add_argument("--json-logs", action="store_true", help="Emit JSON logs")

    # providers
    sub.add_parser("providers", help="List provider connectors and their status")

    return p.parse_args(argv)


def _build_request(args: argparse.Namespace) -> dict[str, Any]:
    request: dict[str, Any] = {
        "lat": args.lat,
        "lon": args.lon,
        "minutesAvailable": args.minutes,
    }
    if args.interests:
        request["interests"] = args.interests
    if args.radius is not None:
        request["radiusMeters"] = args.radius
    if args.limit is not None:
        request["limit"] = args.limit
    if args.now:
        request["now"] = args.now
    return request


async def _run_suggest(request: dict[str, Any]) -> dict[str, Any]:
    settings = get_settings()
    async with httpx.AsyncClient() as client:
        orchestrator = build_orchestrator(client, settings)
        response = await orchestrator.suggest(request)
    return response.to_wire()


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        for err in e.errors:
            loc = ".".join(str(part) for part in err.get("loc", ()))
            print(f"  {loc}: {err.get('msg')}", file=sys.stderr)
        return 2
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.version:
        from nearby import __version__

        print(f"nearby version {__version__}")
        return 0

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    settings = get_settings()
    setup_logging(
        LoggingOptions(
            level=settings.LOG_LEVEL,
            json_logs=settings.JSON_LOGS or bool(getattr(args, "json_logs", False)),
        )
    )

    if args.cmd == "providers":
        status = ConnectorFactory(settings).list_providers()
        print(f"{'PROVIDER':<16} {'ENABLED':<8} {'CONFIGURED'}")
        print("-" * 36)
        for name, info in status.items():
            print(f"{name:<16} {str(info['enabled']).lower():<8} {str(info['configured']).lower()}")
        return 0

    if args.cmd == "suggest":
        result = asyncio.run(_run_suggest(_build_request(args)))
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0

    print(f"Error: Unknown command {args.cmd}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
