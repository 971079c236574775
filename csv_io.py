"""CSV input and output for the ledger.

Input rows look like ``type, client, tx, amount``. Dispute-family rows may
leave the amount blank or drop the column entirely. Output is one row per
account with amounts fixed to four decimal places.
"""
import csv
from decimal import Context, Decimal
from typing import Dict, Iterable, Iterator, Optional, TextIO
import structlog
from pydantic import ValidationError

from models import AMOUNT_PRECISION, AccountSummary, TransactionRow

logger = structlog.get_logger()

INPUT_FIELDS = ("type", "client", "tx", "amount")
OUTPUT_FIELDS = ("client", "available", "held", "total", "locked")

# Rendering never depends on the precision of the ambient decimal context
OUTPUT_CONTEXT = Context(prec=64)


class InputSourceError(Exception):
    """The input could not be read at all, as opposed to a single bad row."""


def read_transactions(path: str, encoding: str = "utf-8") -> Iterator[TransactionRow]:
    """Lazily yield parsed rows from a CSV file, skipping malformed ones."""
    try:
        with open(path, newline="", encoding=encoding) as f:
            reader = csv.DictReader(f, skipinitialspace=True)
            for line_number, raw in enumerate(reader, start=2):
                row = parse_row(raw)
                if row is None:
                    logger.debug("Skipping malformed row", line=line_number, row=raw)
                    continue
                yield row
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise InputSourceError(f"Cannot read transactions from {path}: {e}") from e


def parse_row(raw: Dict[Optional[str], object]) -> Optional[TransactionRow]:
    """Parse a DictReader row into a TransactionRow. Returns None if malformed."""
    normalized = {}
    for key, value in raw.items():
        # Extra trailing columns land under the None key
        if key is None:
            continue
        normalized[key.strip().lower()] = value.strip() if isinstance(value, str) else value

    try:
        return TransactionRow.model_validate({field: normalized.get(field) for field in INPUT_FIELDS})
    except ValidationError:
        return None


def format_amount(value: Decimal) -> str:
    return f"{value.quantize(AMOUNT_PRECISION, context=OUTPUT_CONTEXT):f}"


def write_accounts(summaries: Iterable[AccountSummary], stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_FIELDS)
    for summary in summaries:
        writer.writerow([
            summary.client_id,
            format_amount(summary.available),
            format_amount(summary.held),
            format_amount(summary.total),
            str(summary.locked).lower(),
        ])
