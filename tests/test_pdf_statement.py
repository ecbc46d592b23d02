# ruff: noqa: E501
from datetime import datetime
from decimal import Decimal

import pytest

from upi_ledger.errors import StructuralError
from upi_ledger.ingest.parsers import pdf_statement
from upi_ledger.ingest.parsers.pdf_statement import (
    NO_TRANSACTIONS_WARNING,
    TextFragment,
    TextRow,
    parse_statement_rows,
    reconstruct_rows,
    validate_secret,
)
from upi_ledger.models import Currency, Direction
from upi_ledger.settings import IST


def _frags(page: int, y: float, *cells: tuple[float, str]) -> list[TextFragment]:
    return [TextFragment(page=page, x=x, y=y, text=t) for x, t in cells]


def _statement_rows() -> list[TextRow]:
    fragments = [
        *_frags(1, 100.2, (300, "Debit"), (10, "Oct 03, 2025"), (100, "Paid to SWIGGY"), (400, "INR 250.00")),
        *_frags(1, 112, (10, "09:39 PM"), (100, "Transaction ID : T2510032139")),
        *_frags(1, 124, (100, "UTR No : 527612345678")),
        *_frags(1, 136, (100, "Debited from XXXXXX1234")),
        # Header with no date within reach: skipped, not fatal.
        *_frags(1, 200, (100, "Received from NOBODY"), (300, "Credit"), (400, "INR 5.00")),
        # Date rendered on the row above its header.
        *_frags(2, 40, (10, "Oct 05, 2025")),
        *_frags(2, 52, (100, "Received from RAHUL KUMAR"), (300, "Credit"), (400, "INR 1,000.00")),
        *_frags(2, 64, (10, "10:15 AM"), (100, "UTR No : 527700000001")),
    ]
    return reconstruct_rows(fragments)


def test_reconstruct_rows_groups_nearby_y_and_orders_by_x():
    rows = reconstruct_rows(
        [
            TextFragment(page=1, x=50, y=99.8, text="world"),
            TextFragment(page=1, x=10, y=100.2, text="hello"),
            TextFragment(page=1, x=10, y=80, text="first"),
            TextFragment(page=2, x=10, y=80, text="other page"),
            TextFragment(page=1, x=90, y=100, text="   "),
        ]
    )
    assert rows == [
        TextRow(page=1, y=80, text="first"),
        TextRow(page=1, y=100, text="hello world"),
        TextRow(page=2, y=80, text="other page"),
    ]


def test_reconstruct_rows_tolerates_rounding_boundaries_but_not_row_gaps():
    rows = reconstruct_rows(
        [
            TextFragment(page=1, x=10, y=100.49, text="Debit"),
            TextFragment(page=1, x=50, y=100.51, text="INR 5.00"),
            TextFragment(page=1, x=10, y=112, text="next"),
        ]
    )
    assert [r.text for r in rows] == ["Debit INR 5.00", "next"]


def _pdf(*lines: tuple[str, float, float, float, str]) -> bytes:
    """A one-page PDF drawing ``(font, size, x, baseline, text)`` runs."""

    ops = "".join(
        f"BT /{font} {size} Tf {x} {y} Td ({text}) Tj ET\n" for font, size, x, y, text in lines
    ).encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 4 0 R /F2 5 0 R >> >> /Contents 6 0 R >>",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica-Bold >>",
        b"<< /Length %d >>\nstream\n" % len(ops) + ops + b"endstream",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for n, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % n + body + b"\nendobj\n"
    xref = len(out)
    out += b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1)
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref,
    )
    return bytes(out)


def test_mixed_font_sizes_on_one_line_stay_one_row():
    data = _pdf(
        ("F1", 9, 40, 650, "Oct 03, 2025"),
        ("F1", 9, 140, 650, "Paid to SWIGGY"),
        ("F1", 9, 360, 650, "Debit"),
        ("F2", 12, 450, 650, "INR 250.00"),
        ("F1", 9, 40, 636, "09:39 PM"),
        ("F1", 9, 140, 636, "Transaction ID : T2510032139"),
    )
    result = pdf_statement.parse_statement_pdf(data, None, filename="mixed.pdf")

    (tx,) = result.records
    assert result.skipped == 0
    assert tx.amount == Currency(Decimal("250.00"))
    assert tx.direction is Direction.DEBIT
    assert tx.description == "Paid to SWIGGY"
    assert tx.external_id == "T2510032139"
    assert tx.timestamp == datetime(2025, 10, 3, 21, 39, tzinfo=IST)


def test_headers_become_transactions_newest_first():
    result = parse_statement_rows(_statement_rows())

    assert result.skipped == 1
    newest, oldest = result.records

    assert newest.timestamp == datetime(2025, 10, 5, 10, 15, tzinfo=IST)
    assert newest.description == "Received from RAHUL KUMAR"
    assert newest.direction is Direction.CREDIT
    assert newest.amount == Currency(Decimal("1000.00"))
    assert newest.external_id == "527700000001"
    assert newest.payment_method_label == "PhonePe"

    assert oldest.timestamp == datetime(2025, 10, 3, 21, 39, tzinfo=IST)
    assert oldest.description == "Paid to SWIGGY"
    assert oldest.direction is Direction.DEBIT
    assert oldest.amount_text == "INR 250.00"
    assert oldest.external_id == "T2510032139"
    assert oldest.payment_method_label == "Debited from XXXXXX1234"
    assert oldest.category == "Food"
    assert oldest.status == "Success"


def test_output_is_non_increasing_by_timestamp():
    stamps = [tx.timestamp for tx in parse_statement_rows(_statement_rows()).records]
    assert stamps == sorted(stamps, reverse=True)


def test_no_headers_yields_empty_result_with_warning():
    rows = [TextRow(page=1, y=10, text="Transaction Statement"), TextRow(page=1, y=20, text="Page 1")]
    result = parse_statement_rows(rows)
    assert result.records == []
    assert result.warnings == (NO_TRANSACTIONS_WARNING,)


def test_date_only_when_time_missing():
    rows = reconstruct_rows(
        _frags(1, 10, (10, "Jan 2, 2025"), (100, "Paid to TEA STALL"), (300, "Debit"), (400, "₹20.00"))
    )
    (tx,) = parse_statement_rows(rows).records
    assert tx.timestamp == datetime(2025, 1, 2, tzinfo=IST)
    assert tx.external_id == "PHONEPE-0"
    assert tx.description == "Paid to TEA STALL"


def test_garbage_bytes_are_structural_not_secret():
    with pytest.raises(StructuralError):
        validate_secret(b"not a pdf at all", None, filename="x.pdf")


def test_open_failure_maps_password_errors(monkeypatch: pytest.MonkeyPatch):
    from pdfminer.pdfdocument import PDFPasswordIncorrect
    from pdfplumber.utils.exceptions import PdfminerException

    from upi_ledger.errors import InvalidSecretError, SecretRequiredError

    def _locked(*_a, **_kw):
        raise PdfminerException(PDFPasswordIncorrect())

    monkeypatch.setattr(pdf_statement.pdfplumber, "open", _locked)
    with pytest.raises(SecretRequiredError):
        validate_secret(b"%PDF-1.7", None, filename="s.pdf")
    with pytest.raises(InvalidSecretError, match="Invalid password for s.pdf"):
        validate_secret(b"%PDF-1.7", "wrong", filename="s.pdf")
