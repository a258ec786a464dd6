import csv
import logging
import sqlite3
from pathlib import Path
from typing import TextIO

from .db import Store
from .logic import validate_record
from .models import ImportResult, NewTransaction, RowError
from .repo import create_txns

logger = logging.getLogger(__name__)

CSV_HEADER = ["type", "amount", "category", "from", "to", "date", "note"]

NO_VALID_ROWS = "No valid transactions found in the CSV file"
SAVE_FAILED = "Error saving transactions to database"
NOT_CSV = "Only CSV files are allowed!"
NO_FILE = "Please upload a CSV file"


class ImportFailed(Exception):
    """The whole batch was rejected; nothing was stored."""

    def __init__(self, message: str, errors: list[RowError], detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.detail = detail


def check_csv_filename(filename: str | None) -> str:
    if not filename:
        raise ValueError(NO_FILE)
    if not filename.endswith(".csv"):
        raise ValueError(NOT_CSV)
    return filename


def _rows(reader: csv.DictReader):
    """Yield each row, or the ``csv.Error`` raised while reading it."""
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            yield exc
            continue
        yield row


def read_rows(stream: TextIO) -> tuple[list[NewTransaction], list[RowError]]:
    """Validate every row of ``stream`` in arrival order.

    Row numbers count accepted and rejected rows together, starting at 1.
    """
    accepted: list[NewTransaction] = []
    rejected: list[RowError] = []
    for row in _rows(csv.DictReader(stream)):
        index = len(accepted) + len(rejected) + 1
        try:
            if isinstance(row, csv.Error):
                raise row
            accepted.append(validate_record(row))
            continue
        except ValueError as exc:
            error = RowError(row=index, error=str(exc))
        except Exception as exc:
            error = RowError(row=index, error=f"Processing error: {exc}")
        logger.debug("rejected row %d: %s", index, error.error)
        rejected.append(error)
    return accepted, rejected


def import_transactions(store: Store, stream: TextIO, owner_id: str) -> ImportResult:
    accepted, rejected = read_rows(stream)
    if not accepted:
        logger.info("import for %s rejected: %d invalid rows", owner_id, len(rejected))
        raise ImportFailed(NO_VALID_ROWS, rejected)

    try:
        saved = create_txns(store, owner_id, accepted)
    except sqlite3.Error as exc:
        logger.exception("bulk insert of %d rows failed for %s", len(accepted), owner_id)
        raise ImportFailed(SAVE_FAILED, rejected, detail=str(exc)) from exc

    logger.info(
        "imported %d transactions for %s (%d rows rejected)",
        len(saved),
        owner_id,
        len(rejected),
    )
    return ImportResult(imported=saved, rejected=rejected)


def import_csv_file(store: Store, path: str | Path, owner_id: str) -> ImportResult:
    """Import an uploaded CSV file and delete it afterwards."""
    path = Path(path)
    try:
        with path.open(encoding="utf-8-sig", errors="replace", newline="") as fh:
            return import_transactions(store, fh, owner_id)
    finally:
        path.unlink(missing_ok=True)
