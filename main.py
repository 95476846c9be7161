"""Command-line interface for the coaching dashboard service."""

from __future__ import annotations
import argparse
import json
import logging
import sys
from typing import Sequence

from coachdash.admin import hash_admin_key
from coachdash.api import debug_environment
from coachdash.config import load_settings
from coachdash.logs import configure_logging

logger = logging.getLogger("coachdash.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Coach dashboard utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    serve_parser.add_argument(
        "--proxy-headers",
        action="store_true",
        help="Trust X-Forwarded-* headers from a reverse proxy",
    )

    hash_parser = subparsers.add_parser(
        "hash-admin-key", help="Print the ADMIN_CREATION_KEY_HASH value for an admin key"
    )
    hash_parser.add_argument("admin_key", help="The secret admin creation key")

    subparsers.add_parser("check-config", help="Show which settings are configured")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "hash-admin-key", "check-config"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _serve(*, host: str, port: int, proxy_headers: bool) -> None:
    from coachdash.service import create_app
    import uvicorn

    settings = load_settings()
    logger.info("Starting dashboard on http://%s:%s (%s)", host, port, settings.environment)
    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info", proxy_headers=proxy_headers)


def _print_admin_hash(admin_key: str) -> None:
    digest = hash_admin_key(admin_key)
    print("SHA256 hash:", digest)
    print("\nAdd this to your environment:")
    print(f"ADMIN_CREATION_KEY_HASH={digest}")
    print("\nKeep the original admin key private; only the hash belongs in configuration.")


def _check_config() -> None:
    settings = load_settings()
    summary = debug_environment(settings)
    summary["hasSupabase"] = bool(settings.supabase_url and settings.supabase_anon_key)
    summary["hasAdminCreationKeyHash"] = bool(settings.admin_creation_key_hash)
    print(json.dumps(summary, indent=2))


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    configure_logging()

    args = _parse_args(argv)

    if args.command == "serve":
        _serve(host=args.host, port=args.port, proxy_headers=args.proxy_headers)
    elif args.command == "hash-admin-key":
        _print_admin_hash(args.admin_key)
    elif args.command == "check-config":
        _check_config()


if __name__ == "__main__":
    main()
