"""Positional-text parser for password-protected PDF statements.

The statement PDF has no table structure. Each word is drawn at an ``(x, y)``
position, so rows are rebuilt by grouping words whose baselines lie within
``ROW_TOLERANCE`` of each other on the same page and joining them left to
right. ``y`` is the text baseline measured from the top of the page, so
ascending ``(page, y)`` is reading order. The baseline is shared by words of
different font sizes on one printed line, unlike a word's ``top``.

A reconstructed row is a transaction header when it contains ``Credit`` or
``Debit`` and an amount such as ``INR 1,234.00``::

    Oct 03, 2025  Paid to SOME SHOP           Debit   INR 250.00
    09:39 PM      Transaction ID : T2510032139...
                  UTR No : 527612345678
                  Debited from XXXXXX1234

The date may sit up to three rows above the header. Details are collected from
at most five following rows, stopping at the next header.

``reconstruct_rows`` and ``parse_statement_rows`` are pure so they can be
tested without PDF fixtures; ``parse_statement_pdf`` feeds them from
pdfplumber.
"""

from __future__ import annotations

import io
import logging
import re
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import pdfplumber
from pdfminer.pdfdocument import PDFPasswordIncorrect
from pdfminer.psparser import PSException
from pdfplumber.utils.exceptions import PdfminerException

from ...classifier import MerchantClassifier, default_classifier
from ...errors import InvalidSecretError, SecretRequiredError, StructuralError
from ...logging_setup import get_logger
from ...models import Currency, Direction, ParseResult, SourceApp, UnifiedTransaction
from ..dates import localize, parse_with_formats

NO_TRANSACTIONS_WARNING = "No transactions found in PDF"
DATE_LOOKBACK_ROWS = 3
DETAIL_LOOKAHEAD_ROWS = 5
ROW_TOLERANCE = 3.0

_DIRECTION_RE = re.compile(r"\b(Credit|Debit)\b")
_AMOUNT_RE = re.compile(r"(?:INR|₹)\s*([\d,]+\.\d{2})")
_DATE_RE = re.compile(r"([A-Z][a-z]{2})\s+(\d{1,2}),\s+(\d{4})")
_TIME_RE = re.compile(r"(\d{1,2}:\d{2})\s*([AP]M)")
_TXN_ID_RE = re.compile(r"Transaction ID\s*:?\s*(\w+)")
_UTR_RE = re.compile(r"UTR No\.?\s*:?\s*(\w+)")
_ACCOUNT_RE = re.compile(r"Credited to|Debited from")


@dataclass(frozen=True, slots=True)
class TextFragment:
    page: int
    x: float
    y: float
    text: str


@dataclass(frozen=True, slots=True)
class TextRow:
    page: int
    y: int
    text: str


def reconstruct_rows(fragments: Iterable[TextFragment]) -> list[TextRow]:
    """Cluster fragments whose ``y`` is within ``ROW_TOLERANCE`` and join each row by ``x``.

    A row's ``y`` is the rounded ``y`` of its topmost fragment.
    """

    ordered = sorted((f for f in fragments if f.text.strip()), key=lambda f: (f.page, f.y))
    groups: list[list[TextFragment]] = []
    for frag in ordered:
        anchor = groups[-1][0] if groups else None
        if anchor is not None and anchor.page == frag.page and frag.y - anchor.y <= ROW_TOLERANCE:
            groups[-1].append(frag)
        else:
            groups.append([frag])
    rows: list[TextRow] = []
    for group in groups:
        text = " ".join(f.text.strip() for f in sorted(group, key=lambda f: f.x))
        rows.append(TextRow(page=group[0].page, y=round(group[0].y), text=text))
    return rows


def _is_header(text: str) -> bool:
    return bool(_DIRECTION_RE.search(text) and _AMOUNT_RE.search(text))


@dataclass(slots=True)
class _Details:
    time: str | None = None
    transaction_id: str | None = None
    utr: str | None = None
    account: str | None = None


def _scan_details(rows: list[TextRow], start: int) -> _Details:
    found = _Details()
    for row in rows[start + 1 : start + 1 + DETAIL_LOOKAHEAD_ROWS]:
        text = row.text
        if _is_header(text):
            break
        if found.time is None and (m := _TIME_RE.search(text)):
            found.time = f"{m.group(1)} {m.group(2)}"
        if found.transaction_id is None and (m := _TXN_ID_RE.search(text)):
            found.transaction_id = m.group(1)
        if found.utr is None and (m := _UTR_RE.search(text)):
            found.utr = m.group(1)
        if found.account is None and _ACCOUNT_RE.search(text):
            found.account = text.strip()
    return found


def _find_date(rows: list[TextRow], i: int) -> tuple[re.Match[str] | None, bool]:
    """Return the date match for header row ``i`` and whether it sits on that row."""

    m = _DATE_RE.search(rows[i].text)
    if m is not None:
        return m, True
    # Nearest preceding row first.
    for j in range(i - 1, max(-1, i - 1 - DATE_LOOKBACK_ROWS), -1):
        m = _DATE_RE.search(rows[j].text)
        if m is not None:
            return m, False
    return None, False


def _statement_datetime(date_match: re.Match[str], time_text: str | None) -> datetime | None:
    month, day, year = date_match.groups()
    base = f"{month} {int(day):02d}, {year}"
    if time_text:
        dt = parse_with_formats(f"{base} {time_text}", ("%b %d, %Y %I:%M %p",))
        if dt is not None:
            return localize(dt)
    dt = parse_with_formats(base, ("%b %d, %Y",))
    return localize(dt) if dt else None


def _description(text: str, direction: re.Match[str], date_on_row: re.Match[str] | None) -> str:
    head = text[: direction.start()]
    if date_on_row is not None:
        head = head.replace(date_on_row.group(0), " ", 1)
    head = " ".join(head.split())
    return head or "PhonePe Transaction"


def parse_statement_rows(
    rows: list[TextRow],
    *,
    source_app: SourceApp = SourceApp.PHONEPE,
    classifier: MerchantClassifier | None = None,
    logger: logging.Logger | None = None,
) -> ParseResult[UnifiedTransaction]:
    log = logger or get_logger("upi_ledger.ingest.pdf_statement")
    clf = classifier or default_classifier()

    records: list[UnifiedTransaction] = []
    skipped = 0
    for i, row in enumerate(rows):
        direction = _DIRECTION_RE.search(row.text)
        amount = _AMOUNT_RE.search(row.text)
        if direction is None or amount is None:
            continue
        date_match, same_row = _find_date(rows, i)
        if date_match is None:
            skipped += 1
            log.warning("Skipping statement row %d: no date found for %r", i, row.text)
            continue

        details = _scan_details(rows, i)
        timestamp = _statement_datetime(date_match, details.time)
        if timestamp is None:
            skipped += 1
            log.warning("Skipping statement row %d: unreadable date %r", i, date_match.group(0))
            continue

        value = Decimal(amount.group(1).replace(",", ""))
        description = _description(row.text, direction, date_match if same_row else None)
        records.append(
            UnifiedTransaction(
                timestamp=timestamp,
                external_id=details.transaction_id or details.utr or f"PHONEPE-{i}",
                description=description,
                product_label="PhonePe UPI",
                payment_method_label=details.account or "PhonePe",
                status="Success",
                amount=Currency(value),
                amount_text=f"INR {amount.group(1)}",
                direction=Direction.CREDIT if direction.group(1) == "Credit" else Direction.DEBIT,
                category=clf.categorize(description, value),
                source_app=source_app,
            )
        )

    records.sort(key=lambda tx: tx.timestamp, reverse=True)
    if skipped:
        log.warning("Skipped %d incomplete statement rows", skipped)
    if not records:
        log.warning(NO_TRANSACTIONS_WARNING)
        return ParseResult(records=[], skipped=skipped, warnings=(NO_TRANSACTIONS_WARNING,))
    return ParseResult(records=records, skipped=skipped)


# ---------------------------------------------------------------------------
# pdfplumber I/O
# ---------------------------------------------------------------------------


def _root_cause(exc: BaseException) -> BaseException:
    if isinstance(exc, PdfminerException) and exc.args and isinstance(exc.args[0], BaseException):
        return exc.args[0]
    return exc


@contextmanager
def open_statement(
    data: bytes, password: str | None, *, filename: str = "statement.pdf"
) -> Iterator[pdfplumber.PDF]:
    """Open ``data`` with ``password`` and touch page one.

    Raises ``SecretRequiredError`` or ``InvalidSecretError`` when decryption
    fails and ``StructuralError`` when the bytes are not a readable PDF.
    """

    try:
        pdf = pdfplumber.open(io.BytesIO(data), password=password or "")
    except (PdfminerException, PSException) as e:
        cause = _root_cause(e)
        if isinstance(cause, PDFPasswordIncorrect):
            if not password:
                raise SecretRequiredError(filename) from e
            raise InvalidSecretError(filename) from e
        raise StructuralError("Invalid or corrupted PDF file.") from e

    try:
        try:
            if not pdf.pages:
                raise StructuralError("Invalid or corrupted PDF file: no pages")
            pdf.pages[0].chars  # noqa: B018 - forces decryption of the first page
        except (PdfminerException, PSException) as e:
            raise StructuralError("Invalid or corrupted PDF file.") from e
        yield pdf
    finally:
        pdf.close()


def validate_secret(data: bytes, password: str | None, *, filename: str = "statement.pdf") -> None:
    with open_statement(data, password, filename=filename):
        pass


def extract_fragments(pdf: pdfplumber.PDF) -> list[TextFragment]:
    fragments: list[TextFragment] = []
    for page_no, page in enumerate(pdf.pages, start=1):
        for word in page.extract_words(return_chars=True):
            # matrix[5] is the baseline in PDF space, which grows upwards.
            baseline = page.height - float(word["chars"][0]["matrix"][5])
            fragments.append(
                TextFragment(page=page_no, x=float(word["x0"]), y=baseline, text=word["text"])
            )
    return fragments


def parse_statement_pdf(
    data: bytes,
    password: str | None,
    *,
    filename: str = "statement.pdf",
    source_app: SourceApp = SourceApp.PHONEPE,
    classifier: MerchantClassifier | None = None,
    logger: logging.Logger | None = None,
) -> ParseResult[UnifiedTransaction]:
    log = logger or get_logger("upi_ledger.ingest.pdf_statement")
    with open_statement(data, password, filename=filename) as pdf:
        try:
            fragments = extract_fragments(pdf)
        except (PdfminerException, PSException) as e:
            raise StructuralError(f"Failed to read text from {filename}: {e}") from e
    rows = reconstruct_rows(fragments)
    log.debug("Reconstructed %d text rows from %s", len(rows), filename)
    return parse_statement_rows(rows, source_app=source_app, classifier=classifier, logger=log)
