"""
Main application entry point
"""
import argparse
import logging
import sys

from email_backend import config
from email_backend.app import build_services
from email_backend.storage.db import init_db
from email_backend.utils.errors import EmailBackendError, human_friendly_message
from email_backend.utils.logging_cfg import setup_logging


logger = logging.getLogger(__name__)


def cmd_init_db(args: argparse.Namespace) -> int:
    init_db()
    logger.info(f"Database initialized at {config.get_database_url()}")
    print(f"Database ready: {config.get_database_url()}")
    return 0


def cmd_provider(args: argparse.Namespace) -> int:
    """Print which mailbox provider serves an account."""
    services = build_services()
    provider = services.selector.get_provider(args.account_id)
    print(provider.name)
    return 0


def main(argv=None) -> int:
    """Main function"""
    parser = argparse.ArgumentParser(prog="email-backend", description="Mail backend utilities")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create the database schema")
    init_parser.set_defaults(func=cmd_init_db)

    provider_parser = subparsers.add_parser("provider", help="Show the provider serving an account")
    provider_parser.add_argument("account_id")
    provider_parser.set_defaults(func=cmd_provider)

    args = parser.parse_args(argv)

    # Load environment variables and ensure directories exist
    config.load_env()
    setup_logging(debug=args.debug)

    try:
        return args.func(args)
    except EmailBackendError as e:
        logger.error(f"{args.command} failed: {e}")
        print(human_friendly_message(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
