"""Sheet-addressed spreadsheet parsing (openpyxl).

``read_sheet`` returns the rows of one named sheet as header-keyed dicts. A
missing sheet is a structural failure; an existing sheet with no data rows is
an empty, successful read.

``parse_upi_statement`` maps the wallet "Passbook Payment History" sheet::

    Date (DD/MM/YYYY), Time (HH:MM:SS), Transaction Details,
    Other Transaction Details (UPI ID or A/c No), Your Account, Amount,
    UPI Ref No., Order ID, Remarks, Tags, Comment

The amount's leading sign gives the direction: ``+`` is a credit, anything
else a debit. Numeric cells carry that ``+`` only in their number format
(``+#,##0.00;-#,##0.00``), so ``read_sheet`` restores it as text.
"""

from __future__ import annotations

import io
import logging
import re
import zipfile
from datetime import date, datetime, time
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ...classifier import MerchantClassifier, default_classifier
from ...currency import parse_currency
from ...errors import StructuralError
from ...logging_setup import get_logger
from ...models import Direction, ParseResult, SourceApp, UnifiedTransaction
from ...settings import IST
from ..dates import parse_with_formats

PASSBOOK_SHEET = "Passbook Payment History"
_OTHER_DETAILS = "Other Transaction Details (UPI ID or A/c No)"
# Positive section of a number format that draws a literal plus: +0, \+0, "+"0.
_PLUS_FORMAT = re.compile(r'^(?:\[[^\]]*\])*(?:\+|\\\+|"\+)')


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _displayed(value: Any, number_format: str | None) -> Any:
    """Prefix ``+`` to positive numbers whose format shows one."""

    if isinstance(value, bool) or not isinstance(value, int | float):
        return value
    if value > 0 and number_format and _PLUS_FORMAT.match(number_format.split(";", 1)[0]):
        return "+" + _cell_text(value)
    return value


def read_sheet(data: bytes, sheet_name: str) -> list[dict[str, Any]]:
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise StructuralError(f"Invalid or corrupted spreadsheet: {e}") from e

    try:
        if sheet_name not in wb.sheetnames:
            raise StructuralError(
                f'Sheet "{sheet_name}" not found in workbook (sheets: {", ".join(wb.sheetnames)})'
            )
        rows = (
            tuple(_displayed(c.value, getattr(c, "number_format", None)) for c in cells)
            for cells in wb[sheet_name].iter_rows()
        )
        header: list[str] | None = None
        out: list[dict[str, Any]] = []
        for values in rows:
            if all(v is None or _cell_text(v) == "" for v in values):
                continue
            if header is None:
                header = [_cell_text(v) for v in values]
                continue
            out.append({h: v for h, v in zip(header, values, strict=False) if h})
        return out
    finally:
        wb.close()


def _row_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _cell_text(value)
    if not text:
        return None
    dt = parse_with_formats(text, ("%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y"))
    return dt.date() if dt else None


def _row_time(value: Any) -> time:
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    text = _cell_text(value)
    dt = parse_with_formats(text, ("%H:%M:%S", "%H:%M")) if text else None
    return dt.time() if dt else time(0, 0)


def parse_upi_statement(
    data: bytes,
    *,
    sheet_name: str = PASSBOOK_SHEET,
    source_app: SourceApp = SourceApp.PAYTM,
    classifier: MerchantClassifier | None = None,
    logger: logging.Logger | None = None,
) -> ParseResult[UnifiedTransaction]:
    log = logger or get_logger("upi_ledger.ingest.spreadsheet")
    rows = read_sheet(data, sheet_name)
    if not rows:
        log.warning('Sheet "%s" is empty', sheet_name)
        return ParseResult(records=[])
    clf = classifier or default_classifier()

    records: list[UnifiedTransaction] = []
    skipped = 0
    for n, row in enumerate(rows, start=1):
        ref = _cell_text(row.get("UPI Ref No."))
        day = _row_date(row.get("Date"))
        if not ref or day is None:
            skipped += 1
            log.warning("Skipping sheet row %d: missing or invalid Date/UPI Ref No.", n)
            continue

        amount_text = _cell_text(row.get("Amount")) or "0"
        amount = parse_currency(amount_text)
        description = _cell_text(row.get("Transaction Details"))
        account = _cell_text(row.get("Your Account"))
        extras = tuple(
            (key, _cell_text(row.get(column)))
            for key, column in (
                ("upi_id", _OTHER_DETAILS),
                ("tags", "Tags"),
                ("comment", "Comment"),
                ("order_id", "Order ID"),
            )
            if _cell_text(row.get(column))
        )
        records.append(
            UnifiedTransaction(
                timestamp=datetime.combine(day, _row_time(row.get("Time")), tzinfo=IST),
                external_id=ref,
                description=description,
                product_label="UPI",
                payment_method_label=f"Paytm UPI - {account}" if account else "Paytm UPI",
                status=_cell_text(row.get("Remarks")) or "Transaction success",
                amount=amount,
                amount_text=amount_text,
                direction=Direction.CREDIT if amount_text.startswith("+") else Direction.DEBIT,
                category=clf.categorize(description, amount.value),
                source_app=source_app,
                extras=extras,
            )
        )

    if skipped:
        log.warning("Skipped %d of %d sheet rows", skipped, len(rows))
    return ParseResult(records=records, skipped=skipped)
