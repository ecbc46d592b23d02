"""Parsers for JSON exports guarded by an anti-hijacking prefix.

Some exporters prepend ``)]}'`` plus a newline or space to JSON bodies so the
file cannot be evaluated as a script. The prefix is removed before decoding;
payloads with and without it parse identically.

A top level that is not valid JSON (or not a list/object) is a structural
failure. Individual array elements that are not usable are skipped with their
index logged. Field names are accepted in both snake_case and camelCase.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from ...currency import parse_currency
from ...errors import StructuralError
from ...logging_setup import get_logger
from ...models import ZERO_INR, Currency, GroupExpense, GroupExpenseItem, ParseResult, Voucher
from ...settings import IST
from ..dates import parse_timestamp

_PREFIX = re.compile(r"^\)\]\}'(?:[ \t]*\r?\n+|[ \t]+)")


def strip_prefix(text: str) -> str:
    """Remove a leading ``)]}'`` guard followed by newline(s) or blanks."""

    return _PREFIX.sub("", text.lstrip("\ufeff"), count=1)


def load_prefixed_json(text: str) -> Any:
    try:
        return json.loads(strip_prefix(text))
    except json.JSONDecodeError as e:
        raise StructuralError(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e


def _pick(obj: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = obj.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _money(value: Any) -> Currency:
    if isinstance(value, bool):
        return ZERO_INR
    if isinstance(value, int | float):
        try:
            return Currency(abs(Decimal(str(value))))
        except InvalidOperation:
            return ZERO_INR
    if isinstance(value, Mapping):
        # {"amount": "...", "currency": "INR"} style nested money
        inner = _pick(value, "amount", "value", "units")
        code = _text(_pick(value, "currency", "currencyCode", "currency_code")).upper()
        base = _money(inner)
        return parse_currency(f"{code} {base.value}") if code else base
    return parse_currency(value)


def _when(value: Any) -> datetime | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=IST)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        return parse_timestamp(value)
    return None


def _elements(parsed: Any, *keys: str) -> list[Any]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in keys:
            if key in parsed:
                found = parsed[key]
                if not isinstance(found, list):
                    raise StructuralError(f"Expected a list under {key!r}")
                return found
        return []
    raise StructuralError("Expected a JSON object or array at the top level")


def parse_group_expenses_json(
    text: str, *, logger: logging.Logger | None = None
) -> ParseResult[GroupExpense]:
    log = logger or get_logger("upi_ledger.ingest.prefixed_json")
    if not text or not text.strip():
        log.warning("Empty group expenses JSON")
        return ParseResult(records=[])

    elements = _elements(load_prefixed_json(text), "Group_expenses", "groupExpenses")
    records: list[GroupExpense] = []
    skipped = 0
    for index, raw in enumerate(elements):
        if not isinstance(raw, Mapping):
            skipped += 1
            log.warning("Skipping group expense %d: not an object", index)
            continue
        created = _when(_pick(raw, "creation_time", "creationTime"))
        if created is None:
            skipped += 1
            log.warning("Skipping group expense %d: missing or invalid creation_time", index)
            continue
        items_raw = raw.get("items") or []
        if not isinstance(items_raw, list):
            skipped += 1
            log.warning("Skipping group expense %d: items is not a list", index)
            continue
        items = tuple(
            GroupExpenseItem(
                amount=_money(item.get("amount")),
                state=_text(item.get("state")) or "UNPAID",
                payer=_text(item.get("payer")),
            )
            for item in items_raw
            if isinstance(item, Mapping)
        )
        records.append(
            GroupExpense(
                creation_time=created,
                creator=_text(raw.get("creator")),
                group_name=_text(_pick(raw, "group_name", "groupName")),
                total_amount=_money(_pick(raw, "total_amount", "totalAmount")),
                state=_text(raw.get("state")) or "ONGOING",
                title=_text(raw.get("title")),
                items=items,
            )
        )
    return ParseResult(records=records, skipped=skipped)


def parse_voucher_rewards_json(
    text: str, *, logger: logging.Logger | None = None
) -> ParseResult[Voucher]:
    log = logger or get_logger("upi_ledger.ingest.prefixed_json")
    if not text or not text.strip():
        log.warning("Empty voucher rewards JSON")
        return ParseResult(records=[])

    elements = _elements(load_prefixed_json(text), "couponRewardExportRecord", "vouchers")
    records: list[Voucher] = []
    skipped = 0
    for index, raw in enumerate(elements):
        if not isinstance(raw, Mapping) or not _text(raw.get("code")):
            skipped += 1
            log.warning("Skipping voucher %d: no code", index)
            continue
        expiry_raw = _pick(raw, "expiryDate", "expiry_date", "expiration_date")
        expiry = _when(expiry_raw)
        if expiry_raw is not None and expiry is None:
            log.info("Voucher %d has an unreadable expiry date %r", index, expiry_raw)
        records.append(
            Voucher(
                code=_text(raw.get("code")),
                details=_text(raw.get("details")),
                summary=_text(raw.get("summary")),
                expiry_date=expiry,
            )
        )
    return ParseResult(records=records, skipped=skipped)
