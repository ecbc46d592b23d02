"""Header-driven parsers for comma-separated payment ledgers.

Transactions export header (column order does not matter)::

    Time, Transaction ID | ID, Description, Product, Payment method | Method,
    Status, Amount

Cashback rewards export header::

    Date, Currency, Reward amount | Amount, Rewards description | Description

A row missing its timestamp or identity, or whose timestamp cannot be parsed,
is skipped and counted. A header without the required columns means the
content is not this format and raises ``StructuralError``.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterator, Mapping

from ...classifier import MerchantClassifier, default_classifier
from ...currency import parse_currency, strip_to_number
from ...errors import StructuralError
from ...logging_setup import get_logger
from ...models import CashbackReward, CurrencyCode, ParseResult, SourceApp, UnifiedTransaction
from ..dates import parse_timestamp

_TIME_FORMATS = (
    "%b %d, %Y, %I:%M %p",
    "%b %d, %Y, %I:%M:%S %p",
    "%d %b %Y, %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
)
_ID_COLUMNS = ("Transaction ID", "ID")
_METHOD_COLUMNS = ("Payment method", "Method")
# Rows quoted in the log before switching to a count-only summary.
_MAX_LOGGED_SKIPS = 3


def _first(row: Mapping[str, str | None], *keys: str) -> str:
    for key in keys:
        value = row.get(key)
        if value is not None and value.strip():
            return value.strip()
    return ""


def _read_rows(text: str, required: tuple[tuple[str, ...], ...]) -> Iterator[tuple[int, dict]]:
    """Yield ``(line_no, row)`` pairs, validating the header first.

    ``required`` lists alternatives per logical column; each group needs at
    least one member in the header. Rows with a field count that disagrees
    with the header come back with a ``None`` key or ``None`` values, which
    callers treat as malformed.
    """

    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    headers = [h.strip() for h in (reader.fieldnames or [])]
    if not headers:
        return
    reader.fieldnames = headers
    missing = [" | ".join(group) for group in required if not any(c in headers for c in group)]
    if missing:
        raise StructuralError("CSV header mismatch. Missing columns: " + ", ".join(missing))
    try:
        for row in reader:
            yield reader.line_num, row
    except csv.Error as e:
        raise StructuralError(f"Failed to parse CSV near line {reader.line_num}: {e}") from e


def _malformed(row: Mapping[str | None, object]) -> bool:
    return None in row or any(v is None for v in row.values())


def parse_transactions_csv(
    text: str,
    *,
    source_app: SourceApp = SourceApp.GOOGLEPAY,
    classifier: MerchantClassifier | None = None,
    logger: logging.Logger | None = None,
) -> ParseResult[UnifiedTransaction]:
    log = logger or get_logger("upi_ledger.ingest.csv_ledger")
    if not text or not text.strip():
        log.warning("Empty transactions CSV")
        return ParseResult(records=[])
    clf = classifier or default_classifier()

    records: list[UnifiedTransaction] = []
    skipped = 0
    for line_no, row in _read_rows(text, (("Time",), _ID_COLUMNS)):
        if _malformed(row):
            skipped += 1
            log.warning("Skipping CSV line %d: field count does not match header", line_no)
            continue
        time_raw = _first(row, "Time")
        tx_id = _first(row, *_ID_COLUMNS)
        timestamp = parse_timestamp(time_raw, formats=_TIME_FORMATS)
        if not tx_id or timestamp is None:
            skipped += 1
            if skipped <= _MAX_LOGGED_SKIPS:
                log.warning(
                    "Skipping CSV line %d: missing or invalid Time/Transaction ID (%r, %r)",
                    line_no,
                    time_raw,
                    tx_id,
                )
            continue

        description = _first(row, "Description")
        amount_text = _first(row, "Amount") or "0"
        records.append(
            UnifiedTransaction(
                timestamp=timestamp,
                external_id=tx_id,
                description=description,
                product_label=_first(row, "Product"),
                payment_method_label=_first(row, *_METHOD_COLUMNS),
                status=_first(row, "Status"),
                amount=parse_currency(amount_text),
                amount_text=amount_text,
                category=clf.categorize(description, strip_to_number(amount_text)),
                source_app=source_app,
            )
        )

    if skipped:
        log.warning("Skipped %d of %d transaction rows", skipped, skipped + len(records))
    return ParseResult(records=records, skipped=skipped)


def parse_cashback_csv(
    text: str,
    *,
    logger: logging.Logger | None = None,
) -> ParseResult[CashbackReward]:
    log = logger or get_logger("upi_ledger.ingest.csv_ledger")
    if not text or not text.strip():
        log.warning("Empty cashback rewards CSV")
        return ParseResult(records=[])

    records: list[CashbackReward] = []
    skipped = 0
    for line_no, row in _read_rows(text, (("Date",),)):
        if _malformed(row):
            skipped += 1
            log.warning("Skipping cashback line %d: field count does not match header", line_no)
            continue
        date = parse_timestamp(_first(row, "Date"))
        if date is None:
            skipped += 1
            log.warning("Skipping cashback line %d: missing or invalid Date", line_no)
            continue
        code = _first(row, "Currency").upper()
        amount = parse_currency(_first(row, "Reward amount", "Amount") or "0")
        records.append(
            CashbackReward(
                date=date,
                currency=CurrencyCode(code) if code in CurrencyCode.__members__ else amount.currency,
                amount=amount.value,
                description=_first(row, "Rewards description", "Description"),
            )
        )
    return ParseResult(records=records, skipped=skipped)
