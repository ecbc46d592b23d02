"""PhonePe: password-protected PDF statements.

``extract`` checks the password before anything is parsed so a wrong secret
surfaces as a ``SecretError`` the caller can re-prompt on.
"""

from __future__ import annotations

import binascii
from collections.abc import Mapping

from ...errors import StructuralError
from ...models import DetectionMatch, ParsedData, SourceApp, UploadedFile
from ..parsers.pdf_statement import parse_statement_pdf, validate_secret
from .base import Adapter, Payloads, decode_binary, encode_binary, lower_name

_NAME_MARKERS = ("phonepe", "phone_pe", "phone-pe")


def detect(name: str, preview: bytes) -> DetectionMatch | None:
    lname = lower_name(name)
    if not lname.endswith(".pdf"):
        return None
    confidence = 0.95 if any(m in lname for m in _NAME_MARKERS) else 0.3
    return DetectionMatch(
        adapter_id=SourceApp.PHONEPE, confidence=confidence, requires_secret=True
    )


def extract(file: UploadedFile, secret: str | None = None) -> Payloads:
    validate_secret(file.content, secret, filename=file.name)
    return {
        "statement_pdf": encode_binary(file.content),
        "password": secret or "",
        "filename": file.name,
    }


def parse(payloads: Mapping[str, str]) -> ParsedData:
    encoded = payloads.get("statement_pdf")
    if encoded is None:
        raise StructuralError("PhonePe payload is missing its statement")
    try:
        data = decode_binary(encoded)
    except (binascii.Error, ValueError) as e:
        raise StructuralError(f"PhonePe statement payload is not valid base64: {e}") from e
    result = parse_statement_pdf(
        data,
        payloads.get("password") or None,
        filename=payloads.get("filename", "statement.pdf"),
        source_app=SourceApp.PHONEPE,
    )
    return ParsedData(
        transactions=list(result.records),
        skipped_rows=result.skipped,
        warnings=list(result.warnings),
    )


ADAPTER = Adapter(
    app=SourceApp.PHONEPE,
    display_name="PhonePe",
    formats=("pdf",),
    detect=detect,
    extract=extract,
    parse=parse,
)
