"""Public interface for the ``upi_ledger`` package.

Re-exports the models, the classifier entry points and the ingestion
pipeline. There is no runtime logic here.
"""

from .classifier import MerchantClassifier, classify, default_classifier
from .currency import format_currency, parse_currency
from .detector import SourceDetector
from .errors import (
    IngestError,
    InvalidSecretError,
    RulesConfigError,
    SecretError,
    SecretRequiredError,
    StructuralError,
    UnsupportedFileError,
)
from .models import (
    ActivityRecord,
    CashbackReward,
    ClassificationResult,
    Currency,
    CurrencyCode,
    DetectionMatch,
    GroupExpense,
    GroupExpenseItem,
    ParsedData,
    SourceApp,
    TransactionType,
    UnifiedTransaction,
    UploadedFile,
    Voucher,
)
from .pipeline import IngestOutcome, Pipeline, process_file

__all__ = [
    # Pipeline
    "Pipeline",
    "IngestOutcome",
    "process_file",
    "SourceDetector",
    # Classification
    "MerchantClassifier",
    "classify",
    "default_classifier",
    # Currency
    "parse_currency",
    "format_currency",
    # Models
    "ActivityRecord",
    "CashbackReward",
    "ClassificationResult",
    "Currency",
    "CurrencyCode",
    "DetectionMatch",
    "GroupExpense",
    "GroupExpenseItem",
    "ParsedData",
    "SourceApp",
    "TransactionType",
    "UnifiedTransaction",
    "UploadedFile",
    "Voucher",
    # Errors
    "IngestError",
    "StructuralError",
    "SecretError",
    "SecretRequiredError",
    "InvalidSecretError",
    "UnsupportedFileError",
    "RulesConfigError",
]
