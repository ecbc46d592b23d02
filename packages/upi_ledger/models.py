"""Record types shared by parsers, adapters and the pipeline.

All records are frozen dataclasses. A parser creates each record once and the
caller that invoked ``parse`` owns it afterwards; nothing mutates records in
place. Timestamps are timezone-aware (exports without an offset are read as
IST). Monetary values are non-negative ``Decimal`` amounts; money direction is
carried by ``Direction`` or ``TransactionType``, never by the sign.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import IntEnum, StrEnum

# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


class CurrencyCode(StrEnum):
    INR = "INR"
    USD = "USD"


@dataclass(frozen=True, slots=True)
class Currency:
    value: Decimal
    currency: CurrencyCode = CurrencyCode.INR

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Currency.value must be non-negative")


ZERO_INR = Currency(Decimal("0"), CurrencyCode.INR)


# ---------------------------------------------------------------------------
# Source apps and directions
# ---------------------------------------------------------------------------


class SourceApp(StrEnum):
    GOOGLEPAY = "googlepay"
    BHIM = "bhim"
    PAYTM = "paytm"
    PHONEPE = "phonepe"


class Direction(StrEnum):
    DEBIT = "debit"
    CREDIT = "credit"


class TransactionType(StrEnum):
    SENT = "sent"
    RECEIVED = "received"
    PAID = "paid"
    REQUEST = "request"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Parsed records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UnifiedTransaction:
    """One row of a tabular ledger, spreadsheet or PDF statement.

    ``amount_text`` keeps the export's own rendering of the amount (e.g.
    ``"INR 299.00"`` or ``"+1,200.00"``) next to the parsed ``amount``.
    """

    timestamp: datetime
    external_id: str
    description: str
    product_label: str
    payment_method_label: str
    status: str
    amount: Currency
    source_app: SourceApp
    category: str | None = None
    direction: Direction | None = None
    amount_text: str | None = None
    extras: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    """A loosely structured event scraped from a human-readable activity log.

    ``counterparty_recipient`` is only set for ``sent``/``paid`` records and
    ``counterparty_sender`` only for ``received`` records.
    """

    title: str
    timestamp: datetime
    transaction_type: TransactionType
    source_app: SourceApp
    description: str | None = None
    amount: Currency | None = None
    counterparty_recipient: str | None = None
    counterparty_sender: str | None = None
    category: str | None = None
    products: tuple[str, ...] = ()
    external_id: str | None = None

    def __post_init__(self) -> None:
        if self.counterparty_recipient is not None and self.transaction_type not in (
            TransactionType.SENT,
            TransactionType.PAID,
        ):
            raise ValueError("recipient is only valid for sent/paid activities")
        if (
            self.counterparty_sender is not None
            and self.transaction_type is not TransactionType.RECEIVED
        ):
            raise ValueError("sender is only valid for received activities")


@dataclass(frozen=True, slots=True)
class GroupExpenseItem:
    amount: Currency
    state: str
    payer: str


@dataclass(frozen=True, slots=True)
class GroupExpense:
    creation_time: datetime
    creator: str
    group_name: str
    total_amount: Currency
    state: str
    title: str
    items: tuple[GroupExpenseItem, ...] = ()


@dataclass(frozen=True, slots=True)
class CashbackReward:
    date: datetime
    currency: CurrencyCode
    amount: Decimal
    description: str


@dataclass(frozen=True, slots=True)
class Voucher:
    code: str
    details: str
    summary: str
    expiry_date: datetime | None = None


@dataclass(slots=True)
class ParsedData:
    """The uniform five-collection result every adapter returns.

    ``skipped_rows`` and ``warnings`` are diagnostics only; consumers of the
    record collections can ignore them.
    """

    transactions: list[UnifiedTransaction] = field(default_factory=list)
    group_expenses: list[GroupExpense] = field(default_factory=list)
    cashback_rewards: list[CashbackReward] = field(default_factory=list)
    voucher_rewards: list[Voucher] = field(default_factory=list)
    activities: list[ActivityRecord] = field(default_factory=list)
    skipped_rows: int = 0
    warnings: list[str] = field(default_factory=list)

    def record_count(self) -> int:
        return (
            len(self.transactions)
            + len(self.group_expenses)
            + len(self.cashback_rewards)
            + len(self.voucher_rewards)
            + len(self.activities)
        )

    def is_empty(self) -> bool:
        return self.record_count() == 0

    def extend(self, other: ParsedData) -> None:
        self.transactions.extend(other.transactions)
        self.group_expenses.extend(other.group_expenses)
        self.cashback_rewards.extend(other.cashback_rewards)
        self.voucher_rewards.extend(other.voucher_rewards)
        self.activities.extend(other.activities)
        self.skipped_rows += other.skipped_rows
        self.warnings.extend(other.warnings)


@dataclass(frozen=True, slots=True)
class ParseResult[T]:
    """Records recovered by a format parser plus the count of rows it skipped."""

    records: list[T]
    skipped: int = 0
    warnings: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class RuleLayer(IntEnum):
    """Classification layers; the value is the layer's priority."""

    EXCLUSION = 1
    EXACT = 2
    FUZZY = 3
    KEYWORD = 4
    PATTERN = 5
    HEURISTIC = 6
    UNMATCHED = 10


@dataclass(frozen=True, slots=True)
class MatchedRule:
    layer: RuleLayer
    matcher: str

    @property
    def priority(self) -> int:
        return int(self.layer)


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    category: str
    confidence: float
    matched_rule: MatchedRule
    is_excluded: bool = False


# ---------------------------------------------------------------------------
# Detection and input files
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DetectionMatch:
    adapter_id: SourceApp
    confidence: float
    requires_secret: bool = False


@dataclass(frozen=True, slots=True)
class UploadedFile:
    name: str
    content: bytes

    def preview(self, limit: int) -> bytes:
        return self.content[:limit]
