"""CLI entry point: python main.py serve | status | validate | switch green | rollback"""

import argparse
import asyncio
import json
import sys

from src.bluegreen import Environment, build_system
from src.logging_config import LogFormat, LoggingConfig, LogLevel, configure_logging
from src.settings import get_settings


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _print_header(title: str) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)


async def _run(command: str, environment: str = None) -> int:
    settings = get_settings()
    system = build_system(settings.to_migration_config())
    controller = system.controller

    if command == "status":
        _print_json(controller.system_status())
        return 0

    if command == "validate":
        report = await controller.validate_environments()
        _print_json(report.to_dict())
        return 0 if report.success else 1

    if command == "switch":
        target = Environment(environment)
        _print_header(f"GRADUAL MIGRATION TO {target.value.upper()}")
        print(f"Steps: {', '.join(f'{p}%' for p in settings.step_percentages)}")
        outcome = await controller.begin_migration(target)
        _print_json(outcome.to_dict())
        return 0 if outcome.success else 1

    if command == "rollback":
        _print_header("EMERGENCY ROLLBACK")
        outcome = await controller.rollback()
        _print_json(outcome.to_dict())
        return 0 if outcome.success else 1

    raise ValueError(f"Unknown command: {command}")


def main():
    parser = argparse.ArgumentParser(
        description="Blue/Green Switchover - gradual traffic migration with auto-rollback"
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log at DEBUG level"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the control API")
    serve.add_argument("--host", default=None, help="Bind address (default: settings)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: settings)")

    sub.add_parser("status", help="Print active environment, migration and health state")
    sub.add_parser("validate", help="Probe both environments without moving traffic")

    switch = sub.add_parser("switch", help="Gradually migrate traffic to an environment")
    switch.add_argument("environment", choices=[e.value for e in Environment])

    sub.add_parser("rollback", help="Restore 100%% of traffic to the active environment")

    args = parser.parse_args()

    if args.command == "serve":
        import uvicorn

        from src.api import create_app

        settings = get_settings()
        uvicorn.run(
            create_app(settings=settings),
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return

    configure_logging(LoggingConfig(
        level=LogLevel.DEBUG if args.verbose else LogLevel.INFO,
        format=LogFormat.CONSOLE,
    ))
    exit_code = asyncio.run(_run(args.command, getattr(args, "environment", None)))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
