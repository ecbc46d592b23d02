"""Parser for scraped "My Activity" style HTML logs.

Each ``.outer-cell`` element is one activity. Its layout::

    <div class="outer-cell">
      <div class="header-cell"><p>Google Pay</p></div>
      <div class="content-cell">Paid ₹100.00 to SHOP using Bank Account ...<br>
                                 8 Dec 2025, 20:11:19 GMT+05:30</div>
      <div class="content-cell">Products:<br>Google Pay<br>Details:<br>
                                 &emsp;ABC123<br>&emsp;Completed</div>
    </div>

Filtering rules, applied before any field extraction:

- the whole cell's text (not only the first content cell, since the status
  can sit in a sibling) is scanned for failure keywords; a hit drops the cell;
- a cell with a ``Details:`` section must carry an id followed by one of
  ``Completed``, ``Failed`` or ``Pending``, otherwise it is dropped.

Cells whose date cannot be read are skipped and counted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

from bs4 import BeautifulSoup, Tag

from ...classifier import MerchantClassifier, default_classifier
from ...currency import parse_currency
from ...logging_setup import get_logger
from ...models import ActivityRecord, Currency, ParseResult, SourceApp, TransactionType
from ...rules import P2PCollectCorrection
from ...settings import IST
from ..dates import parse_timestamp, parse_with_formats, split_zone

FAILURE_KEYWORDS = ("failed", "declined", "cancelled", "canceled", "rejected", "unsuccessful")
# No word boundaries: &emsp; and friends are not reliably word separators.
_FAILURE_RE = re.compile("|".join(FAILURE_KEYWORDS), re.IGNORECASE)
_DETAILS_RE = re.compile(r"Details:", re.IGNORECASE)
_DETAILS_STATUS_RE = re.compile(
    r"Details:.*?([A-Za-z0-9\-@/+]+)\s+(Completed|Failed|Pending)", re.DOTALL
)

# "8 Dec 2025, 20:11:19 GMT+05:30"
_DATE_DAY_FIRST = re.compile(
    r"(\d{1,2}\s+[A-Za-z]{3,9}\s+\d{4},\s+\d{1,2}:\d{2}:\d{2}\s+(?:GMT[+-]\d{2}:\d{2}|IST))"
)
# "Dec 6, 2025, 12:12:14 PM GMT+05:30"
_DATE_MONTH_FIRST = re.compile(
    r"([A-Za-z]{3,9}\s+\d{1,2},\s+\d{4},\s+\d{1,2}:\d{2}:\d{2}\s+[AP]M\s+(?:GMT[+-]\d{2}:\d{2}|IST))"
)
_DAY_FIRST_FORMATS = ("%d %b %Y, %H:%M:%S", "%d %B %Y, %H:%M:%S")
_MONTH_FIRST_FORMATS = ("%b %d, %Y, %I:%M:%S %p", "%B %d, %Y, %I:%M:%S %p")

_AMOUNT_RE = re.compile(r"[₹$][\d,]+\.?\d*|(?:INR|USD)\s*[\d,]+\.?\d*")
_RECIPIENT_RE = re.compile(r"\bto\s+([A-Z][A-Z0-9\s.&]+?)(?:\s+using|\s*$)", re.IGNORECASE)
_SENDER_RE = re.compile(r"\bfrom\s+([A-Z][A-Z\s]+?)(?:\s+using|\s*$)", re.IGNORECASE)

_TYPE_KEYWORDS = (
    ("received", TransactionType.RECEIVED),
    ("sent", TransactionType.SENT),
    ("paid", TransactionType.PAID),
    ("request", TransactionType.REQUEST),
)


@dataclass(frozen=True, slots=True)
class _Cell:
    index: int
    product: str
    full_text: str
    content_text: str


def _content_text(cell: Tag) -> str:
    clone = BeautifulSoup(str(cell), "html.parser")
    for br in clone.find_all("br"):
        br.replace_with("\n")
    lines = (line.strip() for line in clone.get_text().splitlines())
    return "\n".join(line for line in lines if line)


def _iter_cells(soup: BeautifulSoup) -> Iterator[_Cell | int]:
    """Yield parsed cells, or the bare index of a cell lacking a content cell."""

    for index, outer in enumerate(soup.select(".outer-cell")):
        content = outer.select_one(".content-cell")
        if content is None:
            yield index
            continue
        header = outer.select_one(".header-cell p")
        yield _Cell(
            index=index,
            product=header.get_text(strip=True) if header else "",
            full_text=outer.get_text(" ", strip=True),
            content_text=_content_text(content),
        )


def _parse_activity_date(raw: str, formats: tuple[str, ...]) -> datetime | None:
    body, tz = split_zone(raw)
    zone = tz or IST
    dt = parse_with_formats(body, formats)
    if dt is not None:
        return dt.replace(tzinfo=zone)
    # Second chance: tolerant re-parse of the zone-stripped text.
    return parse_timestamp(body, default_tz=zone)


def find_activity_date(text: str) -> tuple[str, datetime | None] | None:
    """Locate a supported date in ``text``; returns the matched span and its value."""

    for rx, formats in (
        (_DATE_DAY_FIRST, _DAY_FIRST_FORMATS),
        (_DATE_MONTH_FIRST, _MONTH_FIRST_FORMATS),
    ):
        m = rx.search(text)
        if m is not None:
            return m.group(0), _parse_activity_date(m.group(1), formats)
    return None


def transaction_type_from_title(title: str) -> TransactionType:
    lower = title.lower()
    for keyword, kind in _TYPE_KEYWORDS:
        if keyword in lower:
            return kind
    return TransactionType.OTHER


def amount_from_title(title: str) -> Currency | None:
    m = _AMOUNT_RE.search(title)
    return parse_currency(m.group(0)) if m else None


def counterparties(text: str, kind: TransactionType) -> tuple[str | None, str | None]:
    """Return ``(recipient, sender)`` for ``text`` given the activity type."""

    if kind in (TransactionType.SENT, TransactionType.PAID):
        m = _RECIPIENT_RE.search(text)
        return (m.group(1).strip() if m else None), None
    if kind is TransactionType.RECEIVED:
        m = _SENDER_RE.search(text)
        return None, (m.group(1).strip() if m else None)
    return None, None


def parse_activity_html(
    html: str,
    *,
    source_app: SourceApp = SourceApp.GOOGLEPAY,
    classifier: MerchantClassifier | None = None,
    p2p_correction: P2PCollectCorrection | None = None,
    logger: logging.Logger | None = None,
) -> ParseResult[ActivityRecord]:
    log = logger or get_logger("upi_ledger.ingest.activity_html")
    if not html or not html.strip():
        log.warning("Empty activity HTML")
        return ParseResult(records=[])
    clf = classifier or default_classifier()
    correction = p2p_correction or clf.rules.p2p_collect_correction

    soup = BeautifulSoup(html, "html.parser")
    records: list[ActivityRecord] = []
    dropped = 0
    skipped = 0
    for cell in _iter_cells(soup):
        if isinstance(cell, int):
            log.debug("Activity %d has no content cell", cell)
            continue
        if _FAILURE_RE.search(cell.full_text):
            dropped += 1
            continue
        details = None
        if _DETAILS_RE.search(cell.full_text):
            details = _DETAILS_STATUS_RE.search(cell.full_text)
            if details is None:
                dropped += 1
                continue

        found = find_activity_date(cell.content_text)
        if found is None or found[1] is None:
            skipped += 1
            log.warning("Skipping activity %d: no readable date", cell.index)
            continue
        matched, timestamp = found
        title = cell.content_text[: cell.content_text.index(matched)].strip()
        if not title:
            skipped += 1
            log.warning("Skipping activity %d: no title before the date", cell.index)
            continue

        external_id = details.group(1).strip() if details else None
        kind = transaction_type_from_title(title)
        amount = amount_from_title(title)
        recipient, sender = counterparties(title, kind)
        if (
            kind is TransactionType.PAID
            and recipient is None
            and correction.applies_to(external_id)
        ):
            kind = TransactionType.RECEIVED
            log.debug("Activity %d reclassified as received (collect id %s)", cell.index, external_id)

        records.append(
            ActivityRecord(
                title=title,
                timestamp=timestamp,
                transaction_type=kind,
                source_app=source_app,
                description=cell.content_text,
                amount=amount,
                counterparty_recipient=recipient,
                counterparty_sender=sender,
                category=clf.categorize(
                    f"{title} {cell.content_text}", amount.value if amount else None
                ),
                products=(cell.product,) if cell.product else (),
                external_id=external_id,
            )
        )

    if dropped:
        log.info("Dropped %d failed or incomplete activities", dropped)
    if skipped:
        log.warning("Skipped %d activities without a usable date or title", skipped)
    return ParseResult(records=records, skipped=skipped)
