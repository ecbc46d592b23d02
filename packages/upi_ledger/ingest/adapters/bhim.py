"""BHIM: HTML activity exports in the My Activity layout."""

from __future__ import annotations

from collections.abc import Mapping

from ...errors import StructuralError
from ...models import DetectionMatch, ParsedData, SourceApp, UploadedFile
from ..parsers.activity_html import parse_activity_html
from .base import Adapter, Payloads, decode_text, lower_name, preview_text


def detect(name: str, preview: bytes) -> DetectionMatch | None:
    lname = lower_name(name)
    if not lname.endswith((".html", ".htm")):
        return None
    if "bhim" in lname:
        confidence = 0.95
    elif "BHIM" in preview_text(preview):
        confidence = 0.6
    else:
        return None
    return DetectionMatch(adapter_id=SourceApp.BHIM, confidence=confidence)


def extract(file: UploadedFile, secret: str | None = None) -> Payloads:
    return {"my_activity": decode_text(file.content)}


def parse(payloads: Mapping[str, str]) -> ParsedData:
    html = payloads.get("my_activity")
    if html is None:
        raise StructuralError("BHIM payload is missing its activity HTML")
    result = parse_activity_html(html, source_app=SourceApp.BHIM)
    return ParsedData(
        activities=list(result.records),
        skipped_rows=result.skipped,
        warnings=list(result.warnings),
    )


ADAPTER = Adapter(
    app=SourceApp.BHIM,
    display_name="BHIM",
    formats=("html",),
    detect=detect,
    extract=extract,
    parse=parse,
)
