"""Command line access to configuration profiles."""

import argparse
import json
import logging
import sys
from typing import Any, Optional

from pydantic import ValidationError

from .errors import ConfigurationError
from .models.schemas import BackendKind, NewProfileRequest, StoreSettings
from .service import ConfigurationService, create_service

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for command line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nexusflow-config",
        description="Manage configuration profiles",
    )
    parser.add_argument(
        "--backend",
        choices=[kind.value for kind in BackendKind if kind != BackendKind.MEMORY],
        help="Storage backend (default: NEXUSFLOW_BACKEND or file)",
    )
    parser.add_argument("--data-dir", help="Directory for the file backend")
    parser.add_argument("--database-url", help="SQLAlchemy URL for the sql backend")
    parser.add_argument("--log-level", help="Logging level")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List profiles")
    commands.add_parser("show", help="Show the current profile")

    create = commands.add_parser("create", help="Create a profile")
    create.add_argument("name", help="Profile name")
    create.add_argument(
        "--empty",
        action="store_true",
        help="Start with no settings instead of copying the current profile",
    )

    switch = commands.add_parser("switch", help="Switch the current profile")
    switch.add_argument("profile_id", help="Profile id")

    delete = commands.add_parser("delete", help="Delete a profile")
    delete.add_argument("profile_id", help="Profile id")

    set_cmd = commands.add_parser("set", help="Set a setting on the current profile")
    set_cmd.add_argument("key", help="Setting key")
    set_cmd.add_argument("value", help="Setting value (JSON or plain string)")

    get_cmd = commands.add_parser("get", help="Print a setting of the current profile")
    get_cmd.add_argument("key", help="Setting key")

    return parser


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def run_command(service: ConfigurationService, args: argparse.Namespace) -> int:
    """Execute one parsed command against ``service``.

    Returns:
        Process exit code
    """
    if args.command == "list":
        current = service.state.current_profile
        for summary in service.get_profile_summaries():
            marker = "*" if current is not None and current.id == summary.id else " "
            print(f"{marker} {summary.id}  {summary.name}  {summary.updated_at.isoformat()}")
        return 0

    if args.command == "show":
        current = service.state.current_profile
        if current is None:
            print("No current profile", file=sys.stderr)
            return 1
        _print_json(current.to_json_dict())
        return 0

    if args.command == "create":
        profile = service.create_profile(
            NewProfileRequest(name=args.name, copy_from_current=not args.empty)
        )
        print(profile.id)
        return 0

    if args.command == "switch":
        service.switch_profile(args.profile_id)
        return 0

    if args.command == "delete":
        service.delete_profile(args.profile_id)
        return 0

    if args.command == "set":
        if service.update_setting(args.key, _parse_value(args.value)) is None:
            print("No current profile", file=sys.stderr)
            return 1
        service.flush()
        return 0

    if args.command == "get":
        _print_json(service.get_setting(args.key))
        return 0

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = StoreSettings.from_environment(
            backend=args.backend,
            data_dir=args.data_dir,
            database_url=args.database_url,
            log_level=args.log_level,
        )
    except ValidationError as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level)

    service: Optional[ConfigurationService] = None
    try:
        service = create_service(settings)
        return run_command(service, args)
    except (ConfigurationError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if service is not None:
            service.close()


if __name__ == "__main__":
    sys.exit(main())
