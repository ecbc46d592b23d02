"""Monetary text parsing and formatting.

``parse_currency`` understands the shapes the payment exports use:

- symbol prefixed: ``₹1,234.56``, ``$25.00``, ``₹ 1,234.56``
- code prefixed: ``INR 1,234.56``, ``USD25``
- legacy space separated: ``<CODE> <value>`` with an arbitrary leading token
- bare numeric: ``1234.56``

Thousands separators are removed whatever the grouping (``1,23,456.78`` and
``123,456.78`` both parse). Parsing never raises; anything unusable yields
``Currency(0, INR)``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import StrEnum

from .models import ZERO_INR, Currency, CurrencyCode
from .settings import Settings

_SYMBOLS: dict[str, CurrencyCode] = {"₹": CurrencyCode.INR, "$": CurrencyCode.USD}
_SYMBOL_FOR: dict[CurrencyCode, str] = {v: k for k, v in _SYMBOLS.items()}
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")
_CENT = Decimal("0.01")


class CurrencyStyle(StrEnum):
    SYMBOL = "symbol"
    CODE = "code"
    LEGACY = "legacy"
    BARE = "bare"


def _split_marker(text: str) -> tuple[CurrencyCode, str]:
    head = text[:1]
    if head in _SYMBOLS:
        return _SYMBOLS[head], text[1:]
    upper = text.upper()
    for code in CurrencyCode:
        if upper.startswith(code.value):
            return code, text[len(code.value) :]
    parts = text.split()
    if len(parts) >= 2 and not any(ch.isdigit() for ch in parts[0]):
        code = CurrencyCode.USD if parts[0].upper() == "USD" else CurrencyCode.INR
        return code, " ".join(parts[1:])
    return CurrencyCode.INR, text


def parse_currency(text: object) -> Currency:
    if not isinstance(text, str):
        return ZERO_INR
    trimmed = text.strip()
    if not trimmed:
        return ZERO_INR

    code, rest = _split_marker(trimmed)
    digits = rest.replace(",", "").strip()
    m = _LEADING_NUMBER.match(digits)
    if m is None:
        return ZERO_INR
    try:
        value = Decimal(m.group(0))
    except InvalidOperation:
        return ZERO_INR
    if not value.is_finite():
        return ZERO_INR
    return Currency(abs(value), code)


def strip_to_number(text: str | None) -> Decimal:
    """Numeric value of ``text`` after dropping currency symbols and separators.

    Used where an export keeps the amount as display text but the classifier
    still needs a number. Returns ``0`` when nothing numeric remains.
    """

    if not text:
        return Decimal("0")
    cleaned = re.sub(r"[₹$,\s]|INR|USD", "", text, flags=re.IGNORECASE)
    m = _LEADING_NUMBER.match(cleaned)
    if m is None:
        return Decimal("0")
    try:
        return abs(Decimal(m.group(0)))
    except InvalidOperation:
        return Decimal("0")


def _group_indian(integer: str) -> str:
    if len(integer) <= 3:
        return integer
    head, tail = integer[:-3], integer[-3:]
    pairs: list[str] = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs) + "," + tail


def _grouped(value: Decimal, code: CurrencyCode) -> str:
    integer, _, fraction = f"{value:.2f}".partition(".")
    if code is CurrencyCode.INR:
        return f"{_group_indian(integer)}.{fraction}"
    return f"{int(integer):,}.{fraction}"


def format_currency(amount: Currency, style: CurrencyStyle = CurrencyStyle.SYMBOL) -> str:
    """Render ``amount`` in one of the shapes ``parse_currency`` accepts.

    INR uses Indian digit grouping. ``BARE`` output carries no currency marker
    and therefore only round-trips for INR amounts.
    """

    value = amount.value.quantize(_CENT, rounding=ROUND_HALF_UP)
    if style is CurrencyStyle.SYMBOL:
        return f"{_SYMBOL_FOR[amount.currency]}{_grouped(value, amount.currency)}"
    if style is CurrencyStyle.CODE:
        return f"{amount.currency.value} {_grouped(value, amount.currency)}"
    if style is CurrencyStyle.LEGACY:
        return f"{amount.currency.value} {value:.2f}"
    if style is CurrencyStyle.BARE:
        return f"{value:.2f}"
    raise ValueError(f"unknown currency style: {style!r}")


def to_inr(amount: Currency, rate: Decimal | None = None) -> Decimal:
    """INR value of ``amount``; ``rate`` defaults to ``UPI_LEDGER_USD_INR_RATE``."""

    if amount.currency is CurrencyCode.INR:
        return amount.value
    return amount.value * (rate if rate is not None else Settings.from_env().usd_inr_rate)


def sum_in_inr(amounts: Iterable[Currency], rate: Decimal | None = None) -> Decimal:
    usd_rate = rate if rate is not None else Settings.from_env().usd_inr_rate
    return sum((to_inr(a, usd_rate) for a in amounts), Decimal("0"))
