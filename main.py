import argparse
import logging
import sys
from typing import Optional, Sequence, TextIO
import structlog
from pydantic import ValidationError

from models import ProcessingSummary
from services import get_transaction_service
from repositories import get_account_repository, get_transaction_repository
from csv_io import InputSourceError, read_transactions, write_accounts
from config import LOG_LEVELS, Settings, get_settings, get_settings_for_environment

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    """Route structured logs to stderr, keeping stdout for the account CSV."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=settings.log_level.upper(),
        force=True,
    )

    if settings.log_format == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Apply a CSV of deposits, withdrawals, disputes, resolves and chargebacks "
            "to client accounts and print the final balances as CSV."
        )
    )
    parser.add_argument("input", help="Path to the transactions CSV.")
    parser.add_argument(
        "--env",
        choices=["development", "production", "testing"],
        default=None,
        help="Load environment-specific settings instead of the defaults.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Override the configured log level.",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        default=None,
        help="Override the configured log format.",
    )
    return parser.parse_args(argv)


def run(input_path: str, output: TextIO, settings: Settings) -> ProcessingSummary:
    """Process one input file and write the account table to output."""
    service = get_transaction_service(get_account_repository(), get_transaction_repository())

    summary = service.process_transactions(
        read_transactions(input_path, encoding=settings.csv_encoding)
    )
    write_accounts(service.get_account_summaries(), output)
    return summary


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = get_settings_for_environment(args.env) if args.env else get_settings()
    except ValidationError as e:
        # Logging is not configured yet, so report like argparse does
        sys.stderr.write(f"Invalid settings: {e}\n")
        return 2

    overrides = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings)
    logger.info("Starting ledger run", app=settings.app_name, version=settings.app_version, input=args.input)

    try:
        summary = run(args.input, sys.stdout, settings)
    except InputSourceError as e:
        logger.error("Ledger run failed", error=str(e), input=args.input)
        return 1

    logger.info("Ledger run completed", **summary.model_dump())
    return 0


if __name__ == "__main__":
    sys.exit(main())
