# ruff: noqa: E501
from datetime import datetime
from decimal import Decimal

from upi_ledger.errors import InvalidSecretError, SecretRequiredError, StructuralError
from upi_ledger.ingest.adapters import ADAPTERS
from upi_ledger.ingest.adapters.base import Adapter
from upi_ledger.models import (
    Currency,
    DetectionMatch,
    ParsedData,
    SourceApp,
    UnifiedTransaction,
    UploadedFile,
)
from upi_ledger.pipeline import FailureKind, OutcomeStatus, Pipeline, ingest_files, process_file
from upi_ledger.settings import IST, Settings

TRANSACTIONS_CSV = (
    "Time,Transaction ID,Description,Product,Payment method,Status,Amount\n"
    '"Nov 14, 2025, 4:52 AM",TXN001,Paid to SWIGGY,Google Pay,UPI,Completed,₹250.00\n'
    '"Nov 15, 2025, 9:10 PM",TXN002,Google Play,Google Play,Visa,Completed,₹99.00\n'
)


def _tx(external_id: str) -> UnifiedTransaction:
    return UnifiedTransaction(
        timestamp=datetime(2025, 10, 3, tzinfo=IST),
        external_id=external_id,
        description="Statement row",
        product_label="PhonePe UPI",
        payment_method_label="PhonePe",
        status="Success",
        amount=Currency(Decimal("1")),
        source_app=SourceApp.PHONEPE,
    )


class _LockedSource:
    """A fake protected source that only opens with ``secret``."""

    def __init__(self, secret: str) -> None:
        self.secret = secret
        self.detect_calls = 0
        self.extract_calls: list[str | None] = []

    def detect(self, name: str, preview: bytes) -> DetectionMatch | None:
        self.detect_calls += 1
        if not name.endswith(".pdf"):
            return None
        return DetectionMatch(adapter_id=SourceApp.PHONEPE, confidence=0.95, requires_secret=True)

    def extract(self, file: UploadedFile, secret: str | None) -> dict[str, str]:
        self.extract_calls.append(secret)
        if not secret:
            raise SecretRequiredError(file.name)
        if secret != self.secret:
            raise InvalidSecretError(file.name)
        return {"id": "T1"}

    def parse(self, payloads) -> ParsedData:
        return ParsedData(transactions=[_tx(payloads["id"])])

    def adapters(self) -> dict[SourceApp, Adapter]:
        return {
            SourceApp.PHONEPE: Adapter(
                app=SourceApp.PHONEPE,
                display_name="Locked",
                formats=("pdf",),
                detect=self.detect,
                extract=self.extract,
                parse=self.parse,
            )
        }


def _pipeline(adapters=None, attempts: int = 3) -> Pipeline:
    return Pipeline(adapters=adapters, settings=Settings(max_secret_attempts=attempts))


def test_wrong_secret_reprompts_without_rerunning_detection():
    source = _LockedSource("right")
    prompts: list[tuple[str, int]] = []

    def prompt(file, error, attempt):
        prompts.append((type(error).__name__, attempt))
        return "right" if attempt == 2 else "wrong"

    pipeline = _pipeline(source.adapters())
    outcome = pipeline.ingest_file(UploadedFile("s.pdf", b"%PDF"), secret_prompt=prompt)

    assert outcome.status is OutcomeStatus.OK
    assert outcome.attempts == 3
    assert source.detect_calls == 1
    assert source.extract_calls == [None, "wrong", "right"]
    assert prompts == [("SecretRequiredError", 1), ("InvalidSecretError", 2)]
    assert [tx.external_id for tx in pipeline.data.transactions] == ["T1"]


def test_secret_failure_is_distinguishable_and_bounded():
    source = _LockedSource("right")
    outcome = process_file(
        UploadedFile("s.pdf", b"%PDF"),
        "nope",
        adapters=source.adapters(),
        secret_prompt=lambda f, e, n: "still wrong",
        max_secret_attempts=2,
    )
    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.failure_kind is FailureKind.SECRET
    assert outcome.needs_secret
    assert outcome.attempts == 2
    assert source.extract_calls == ["nope", "still wrong"]
    assert "Invalid password" in (outcome.message or "")


def test_prompt_returning_none_gives_up():
    source = _LockedSource("right")
    outcome = process_file(
        UploadedFile("s.pdf", b"%PDF"),
        adapters=source.adapters(),
        secret_prompt=lambda f, e, n: None,
    )
    assert outcome.failure_kind is FailureKind.SECRET
    assert source.extract_calls == [None]


def test_known_secret_is_used_without_prompting():
    source = _LockedSource("right")
    result = _pipeline(source.adapters()).ingest(
        [UploadedFile("s.pdf", b"%PDF")], {"s.pdf": "right"}
    )
    assert [o.status for o in result.outcomes] == [OutcomeStatus.OK]
    assert source.extract_calls == ["right"]


def test_batch_isolates_failures_and_merges_successes():
    files = [
        UploadedFile("transactions_1.csv", TRANSACTIONS_CSV.encode("utf-8")),
        UploadedFile("notes.txt", b"hello"),
        UploadedFile("Group expenses.json", b")]}'\n{\"Group_expenses\": ["),
        UploadedFile("transactions_2.csv", b"Time,Transaction ID,Amount\n"),
    ]
    result = _pipeline().ingest(files)

    by_name = {o.file_name: o for o in result.outcomes}
    assert [o.file_name for o in result.outcomes] == [f.name for f in files]

    assert by_name["transactions_1.csv"].status is OutcomeStatus.OK
    assert by_name["transactions_1.csv"].adapter is SourceApp.GOOGLEPAY

    assert by_name["notes.txt"].status is OutcomeStatus.FAILED
    assert by_name["notes.txt"].failure_kind is FailureKind.UNSUPPORTED

    assert by_name["Group expenses.json"].failure_kind is FailureKind.STRUCTURAL
    assert "Invalid JSON" in (by_name["Group expenses.json"].message or "")

    assert by_name["transactions_2.csv"].status is OutcomeStatus.EMPTY

    assert [tx.external_id for tx in result.data.transactions] == ["TXN001", "TXN002"]
    assert len(result.failed) == 2
    assert len(result.succeeded) == 2


def test_structural_error_from_parse_is_reported():
    def _broken(payloads):
        raise StructuralError("Invalid or corrupted PDF file.")

    source = _LockedSource("right")
    adapters = source.adapters()
    adapters[SourceApp.PHONEPE] = Adapter(
        app=SourceApp.PHONEPE,
        display_name="Broken",
        formats=("pdf",),
        detect=source.detect,
        extract=source.extract,
        parse=_broken,
    )
    outcome = process_file(UploadedFile("s.pdf", b"%PDF"), "right", adapters=adapters)
    assert outcome.failure_kind is FailureKind.STRUCTURAL
    assert outcome.message == "Invalid or corrupted PDF file."


def test_ingest_files_uses_a_fresh_accumulator():
    files = [UploadedFile("transactions_1.csv", TRANSACTIONS_CSV.encode("utf-8"))]
    first = ingest_files(files)
    second = ingest_files(files)
    assert len(first.data.transactions) == len(second.data.transactions) == 2
    assert first.data is not second.data


def test_unexpected_error_in_one_file_does_not_sink_the_batch():
    def _crash(payloads):
        raise RuntimeError("parser bug")

    source = _LockedSource("right")
    adapters = {
        **ADAPTERS,
        SourceApp.PHONEPE: Adapter(
            app=SourceApp.PHONEPE,
            display_name="Crashing",
            formats=("pdf",),
            detect=source.detect,
            extract=source.extract,
            parse=_crash,
        ),
    }
    files = [
        UploadedFile("s.pdf", b"%PDF"),
        UploadedFile("transactions_1.csv", TRANSACTIONS_CSV.encode("utf-8")),
    ]
    result = _pipeline(adapters).ingest(files, {"s.pdf": "right"})

    crashed, ok = result.outcomes
    assert crashed.status is OutcomeStatus.FAILED
    assert crashed.failure_kind is FailureKind.STRUCTURAL
    assert "parser bug" in (crashed.message or "")
    assert ok.status is OutcomeStatus.OK
    assert [tx.external_id for tx in result.data.transactions] == ["TXN001", "TXN002"]


def test_empty_batch():
    result = _pipeline().ingest([])
    assert result.outcomes == []
    assert result.data.is_empty()
