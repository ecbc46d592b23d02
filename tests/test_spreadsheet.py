# ruff: noqa: E501
import io
from datetime import datetime
from decimal import Decimal

import pytest
from openpyxl import Workbook

from upi_ledger.errors import StructuralError
from upi_ledger.ingest.parsers.spreadsheet import PASSBOOK_SHEET, parse_upi_statement, read_sheet
from upi_ledger.models import Currency, Direction, SourceApp
from upi_ledger.settings import IST

HEADER = [
    "Date",
    "Time",
    "Transaction Details",
    "Other Transaction Details (UPI ID or A/c No)",
    "Your Account",
    "Amount",
    "UPI Ref No.",
    "Order ID",
    "Remarks",
    "Tags",
    "Comment",
]


def _workbook(rows: list[list[object]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = PASSBOOK_SHEET
    ws.append(HEADER)
    for row in rows:
        ws.append(row)
    wb.create_sheet("Empty")
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def statement() -> bytes:
    return _workbook(
        [
            ["03/10/2025", "21:39:00", "Paid to Swiggy", "swiggy@icici", "HDFC Bank - 1234", "-250.00", "527612345678", "ORD1", None, "#food", None],
            ["04/10/2025", "10:00:00", "Received from Rahul", "rahul@okaxis", "HDFC Bank - 1234", "+1,000.00", "527612345679", None, "Money received", None, "rent"],
            ["05/10/2025", "11:00:00", "Row without reference", None, None, "-10", None, None, None, None, None],
        ]
    )


def test_passbook_rows_become_transactions(statement: bytes):
    result = parse_upi_statement(statement)

    assert result.skipped == 1
    debit, credit = result.records

    assert debit.timestamp == datetime(2025, 10, 3, 21, 39, tzinfo=IST)
    assert debit.external_id == "527612345678"
    assert debit.amount == Currency(Decimal("250.00"))
    assert debit.direction is Direction.DEBIT
    assert debit.payment_method_label == "Paytm UPI - HDFC Bank - 1234"
    assert debit.status == "Transaction success"
    assert debit.product_label == "UPI"
    assert debit.source_app is SourceApp.PAYTM
    assert dict(debit.extras) == {"upi_id": "swiggy@icici", "tags": "#food", "order_id": "ORD1"}

    assert credit.direction is Direction.CREDIT
    assert credit.amount == Currency(Decimal("1000.00"))
    assert credit.status == "Money received"
    assert dict(credit.extras)["comment"] == "rent"


def test_missing_sheet_fails(statement: bytes):
    with pytest.raises(StructuralError, match="not found"):
        parse_upi_statement(statement, sheet_name="Does Not Exist")


def test_existing_empty_sheet_succeeds_with_no_rows(statement: bytes):
    assert read_sheet(statement, "Empty") == []
    result = parse_upi_statement(statement, sheet_name="Empty")
    assert result.records == []
    assert result.skipped == 0


def test_non_workbook_bytes_are_structural():
    with pytest.raises(StructuralError):
        parse_upi_statement(b"definitely not a workbook")


def test_numeric_amounts_take_direction_from_their_number_format():
    wb = Workbook()
    ws = wb.active
    ws.title = PASSBOOK_SHEET
    ws.append(HEADER)
    ws.append(["04/10/2025", "10:00:00", "Received from Rahul", None, None, 1000.0, "REF1", None, None, None, None])
    ws.append(["05/10/2025", "11:00:00", "Paid to Swiggy", None, None, -250.0, "REF2", None, None, None, None])
    ws.append(["06/10/2025", "12:00:00", "Paid to Zomato", None, None, 99.5, "REF3", None, None, None, None])
    for row in (2, 3):
        ws.cell(row=row, column=6).number_format = "+#,##0.00;-#,##0.00"
    ws.cell(row=4, column=6).number_format = "#,##0.00"
    buf = io.BytesIO()
    wb.save(buf)

    credit, debit, plain = parse_upi_statement(buf.getvalue()).records

    assert credit.direction is Direction.CREDIT
    assert credit.amount == Currency(Decimal("1000"))
    assert debit.direction is Direction.DEBIT
    assert debit.amount == Currency(Decimal("250"))
    assert plain.direction is Direction.DEBIT
    assert plain.amount == Currency(Decimal("99.5"))
