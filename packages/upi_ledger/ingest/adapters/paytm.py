"""Paytm: UPI statement workbooks (``Paytm_UPI_Statement_*.xlsx``)."""

from __future__ import annotations

import binascii
from collections.abc import Mapping

from ...errors import StructuralError
from ...models import DetectionMatch, ParsedData, SourceApp, UploadedFile
from ..parsers.spreadsheet import parse_upi_statement
from .base import Adapter, Payloads, decode_binary, encode_binary, lower_name


def detect(name: str, preview: bytes) -> DetectionMatch | None:
    lname = lower_name(name)
    if not lname.endswith(".xlsx"):
        return None
    if "paytm" in lname and "upi_statement" in lname:
        return DetectionMatch(adapter_id=SourceApp.PAYTM, confidence=0.95)
    return DetectionMatch(adapter_id=SourceApp.PAYTM, confidence=0.3)


def extract(file: UploadedFile, secret: str | None = None) -> Payloads:
    return {"paytm_xlsx": encode_binary(file.content)}


def parse(payloads: Mapping[str, str]) -> ParsedData:
    encoded = payloads.get("paytm_xlsx")
    if encoded is None:
        raise StructuralError("Paytm payload is missing its workbook")
    try:
        data = decode_binary(encoded)
    except (binascii.Error, ValueError) as e:
        raise StructuralError(f"Paytm workbook payload is not valid base64: {e}") from e
    result = parse_upi_statement(data, source_app=SourceApp.PAYTM)
    return ParsedData(
        transactions=list(result.records),
        skipped_rows=result.skipped,
        warnings=list(result.warnings),
    )


ADAPTER = Adapter(
    app=SourceApp.PAYTM,
    display_name="Paytm",
    formats=("xlsx",),
    detect=detect,
    extract=extract,
    parse=parse,
)
