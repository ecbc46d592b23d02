"""Google Pay: Takeout archives and the loose files inside them.

Payload keys produced by ``extract`` and consumed by ``parse``:
``transactions`` (CSV), ``cashback_rewards`` (CSV), ``group_expenses`` (JSON),
``voucher_rewards`` (JSON) and ``my_activity`` (HTML).

One unreadable payload in an archive does not sink the others; it becomes a
warning. Only when every payload fails is the failure raised.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from ...errors import StructuralError
from ...logging_setup import get_logger
from ...models import DetectionMatch, ParsedData, ParseResult, SourceApp, UploadedFile
from ..bundle import locate_payloads
from ..parsers.activity_html import parse_activity_html
from ..parsers.csv_ledger import parse_cashback_csv, parse_transactions_csv
from ..parsers.prefixed_json import parse_group_expenses_json, parse_voucher_rewards_json
from .base import Adapter, Payloads, decode_text, lower_name, preview_text

logger = get_logger("upi_ledger.ingest.adapters.googlepay")

_ZIP_MARKERS = (b"Google Pay/", b"Google transactions/", b"Takeout/")
_GROUP_KEYS = ('"Group_expenses"', '"groupExpenses"', '"creation_time"', '"creationTime"')
_VOUCHER_KEYS = ('"couponRewardExportRecord"', '"vouchers"')


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0]


def _csv_kind(text: str) -> str | None:
    header = _first_line(text)
    if "Time" in header and ("Transaction ID" in header or "ID" in header.split(",")):
        return "transactions"
    if "Reward amount" in header or "Rewards description" in header:
        return "cashback_rewards"
    return None


def _json_kind(text: str, name: str = "") -> str | None:
    if any(k in text for k in _GROUP_KEYS):
        return "group_expenses"
    if any(k in text for k in _VOUCHER_KEYS):
        return "voucher_rewards"
    # Bare arrays carry no wrapper key; fall back to the Takeout file name.
    if "voucher" in name:
        return "voucher_rewards"
    if "group expense" in name or "group_expense" in name:
        return "group_expenses"
    return None


def detect(name: str, preview: bytes) -> DetectionMatch | None:
    lname = lower_name(name)
    confidence = 0.0
    if lname.endswith(".zip"):
        confidence = 0.95 if any(m in preview for m in _ZIP_MARKERS) else 0.5
    elif lname.endswith((".html", ".htm")):
        text = preview_text(preview)
        if "outer-cell" in text and ("Google Pay" in text or "My Activity" in text):
            confidence = 0.9
        elif "my activity" in lname:
            confidence = 0.6
    elif lname.endswith(".csv"):
        if _csv_kind(preview_text(preview)) is not None:
            confidence = 0.9
    elif lname.endswith(".json"):
        text = preview_text(preview)
        if text.startswith(")]}'") or _json_kind(text) is not None:
            confidence = 0.9
    if confidence <= 0:
        return None
    return DetectionMatch(adapter_id=SourceApp.GOOGLEPAY, confidence=confidence)


def extract(file: UploadedFile, secret: str | None = None) -> Payloads:
    lname = lower_name(file.name)
    if lname.endswith(".zip"):
        return locate_payloads(file.content)
    text = decode_text(file.content)
    if lname.endswith((".html", ".htm")):
        return {"my_activity": text}
    if lname.endswith(".csv"):
        kind = _csv_kind(text)
        if kind is None:
            raise StructuralError(f"{file.name}: not a Google Pay transactions or rewards CSV")
        return {kind: text}
    if lname.endswith(".json"):
        kind = _json_kind(text, lname)
        if kind is None:
            raise StructuralError(f"{file.name}: not a Google Pay group expense or voucher file")
        return {kind: text}
    raise StructuralError(f"{file.name}: unsupported Google Pay file type")


_PARSERS: dict[str, tuple[str, Callable[[str], ParseResult[Any]]]] = {
    "transactions": ("transactions", parse_transactions_csv),
    "cashback_rewards": ("cashback_rewards", parse_cashback_csv),
    "group_expenses": ("group_expenses", parse_group_expenses_json),
    "voucher_rewards": ("voucher_rewards", parse_voucher_rewards_json),
    "my_activity": ("activities", parse_activity_html),
}


def parse(payloads: Mapping[str, str]) -> ParsedData:
    data = ParsedData()
    failures: list[StructuralError] = []
    attempted = 0
    for key, (collection, parser) in _PARSERS.items():
        text = payloads.get(key)
        if text is None:
            continue
        attempted += 1
        try:
            result = parser(text)
        except StructuralError as e:
            failures.append(e)
            logger.warning("Google Pay %s could not be parsed: %s", key, e)
            data.warnings.append(f"{key}: {e}")
            continue
        getattr(data, collection).extend(result.records)
        data.skipped_rows += result.skipped
        data.warnings.extend(result.warnings)

    unknown = sorted(set(payloads) - set(_PARSERS))
    if unknown:
        logger.debug("Ignoring unknown Google Pay payloads: %s", ", ".join(unknown))
    if attempted and len(failures) == attempted:
        if attempted == 1:
            raise failures[0]
        raise StructuralError("; ".join(data.warnings))
    return data


ADAPTER = Adapter(
    app=SourceApp.GOOGLEPAY,
    display_name="Google Pay",
    formats=("zip", "csv", "json", "html"),
    detect=detect,
    extract=extract,
    parse=parse,
)
