from pathlib import Path

from typer.testing import CliRunner

from upi_ledger.cli import app

runner = CliRunner()

TRANSACTIONS_CSV = (
    "Time,Transaction ID,Description,Product,Payment method,Status,Amount\n"
    '"Nov 14, 2025, 4:52 AM",TXN001,Paid to SWIGGY,Google Pay,UPI,Completed,₹250.00\n'
    '"Nov 15, 2025, 9:10 PM",TXN002,Google Play,Google Play,Visa,Completed,₹99.00\n'
)


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_classify_exact_merchant():
    result = runner.invoke(app, ["classify", "SWIGGY"])
    assert result.exit_code == 0, result.output
    assert "Food" in result.stdout
    assert "exact" in result.stdout


def test_classify_uses_amount_for_person_names():
    result = runner.invoke(app, ["classify", "RAHUL KUMAR", "--amount", "200"])
    assert result.exit_code == 0, result.output
    assert "Transfers & Payments" in result.stdout
    assert "heuristic" in result.stdout


def test_classify_rejects_non_numeric_amount():
    result = runner.invoke(app, ["classify", "SWIGGY", "--amount", "abc"])
    assert result.exit_code == 2


def test_detect_reports_google_pay(tmp_path: Path):
    path = _write(tmp_path, "transactions_1.csv", TRANSACTIONS_CSV)
    result = runner.invoke(app, ["detect", str(path)])
    assert result.exit_code == 0, result.output
    assert "googlepay" in result.stdout


def test_detect_unknown_file_exits_nonzero(tmp_path: Path):
    path = _write(tmp_path, "notes.txt", "hello")
    result = runner.invoke(app, ["detect", str(path)])
    assert result.exit_code == 1


def test_ingest_prints_counts(tmp_path: Path):
    path = _write(tmp_path, "transactions_1.csv", TRANSACTIONS_CSV)
    result = runner.invoke(app, ["ingest", "--no-prompt", str(path)])
    assert result.exit_code == 0, result.output
    assert "transactions=2" in result.stdout
    assert "Transactions" in result.stdout


def test_ingest_fails_when_any_file_is_unsupported(tmp_path: Path):
    good = _write(tmp_path, "transactions_1.csv", TRANSACTIONS_CSV)
    bad = _write(tmp_path, "notes.txt", "hello")
    result = runner.invoke(app, ["ingest", "--no-prompt", str(good), str(bad)])
    assert result.exit_code == 1
    assert "transactions=2" in result.stdout


def test_ingest_missing_file(tmp_path: Path):
    result = runner.invoke(app, ["ingest", "--no-prompt", str(tmp_path / "nope.csv")])
    assert result.exit_code == 1


def test_ingest_totals_in_inr_at_the_configured_rate(tmp_path: Path):
    csv_text = TRANSACTIONS_CSV.replace("₹99.00", "$1.00")
    path = _write(tmp_path, "transactions_1.csv", csv_text)
    result = runner.invoke(
        app,
        ["ingest", "--no-prompt", "--limit", "0", str(path)],
        env={"UPI_LEDGER_USD_INR_RATE": "90"},
    )
    assert result.exit_code == 0, result.output
    assert "total=₹340.00" in result.stdout
