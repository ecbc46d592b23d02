"""Timestamp parsing shared by the format parsers.

Exports render times in several ways (``Nov 14, 2025, 4:52 AM``,
``8 Dec 2025, 20:11:19 GMT+05:30``, ``03/10/2025`` + ``21:39:00``). Every
helper returns an aware ``datetime`` or ``None``; a value without an offset is
read in IST. Trailing zone tokens are parsed here rather than by dateutil,
which treats ``GMT+05:30`` as the POSIX-style inverted offset.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone, tzinfo

from dateutil import parser as date_parser

from ..settings import IST

_TZ_SUFFIX = re.compile(
    r",?\s*(IST|(?:GMT|UTC)\s*([+-])(\d{1,2}):?(\d{2})|GMT|UTC)\s*$", re.IGNORECASE
)


def localize(dt: datetime, tz: tzinfo = IST) -> datetime:
    return dt.replace(tzinfo=tz) if dt.tzinfo is None else dt


def split_zone(text: str) -> tuple[str, tzinfo | None]:
    """Split a trailing ``IST``/``GMT+HH:MM`` token off ``text``."""

    m = _TZ_SUFFIX.search(text)
    if m is None:
        return text.strip(), None
    token = m.group(1).upper()
    if token == "IST":
        tz: tzinfo = IST
    elif m.group(2):
        offset = timedelta(hours=int(m.group(3)), minutes=int(m.group(4)))
        tz = timezone(-offset if m.group(2) == "-" else offset)
    else:
        tz = timezone.utc
    return text[: m.start()].strip(), tz


def parse_with_formats(text: str, formats: Iterable[str]) -> datetime | None:
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_timestamp(
    value: str | None,
    *,
    formats: Iterable[str] = (),
    default_tz: tzinfo = IST,
    dayfirst: bool = False,
) -> datetime | None:
    """Parse ``value`` into an aware datetime, or ``None`` when it is unusable.

    ``formats`` are tried first (exact ``strptime`` matches); dateutil's
    tolerant parser is the fallback. A trailing zone token wins over
    ``default_tz``.
    """

    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    body, tz = split_zone(s)
    dt = parse_with_formats(body, formats)
    if dt is None:
        try:
            dt = date_parser.parse(body, dayfirst=dayfirst)
        except (ValueError, OverflowError):
            return None
    return localize(dt, tz or default_tz)
