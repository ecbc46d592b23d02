"""Typed loading of the merchant classification rule file.

The rule file is JSON validated with pydantic. Regexes are compiled during
validation so a bad pattern fails at load time rather than silently never
matching. ``categories`` keeps the file's declaration order, which the
keyword layer depends on.

The bundled rules live in ``upi_ledger/data/classification_rules.json``;
``UPI_LEDGER_RULES_PATH`` points at a replacement file.
"""

from __future__ import annotations

import re
from importlib import resources
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import RulesConfigError
from .logging_setup import get_logger

logger = get_logger("upi_ledger.rules")


def _compile_all(patterns: list[str]) -> list[str]:
    for p in patterns:
        try:
            re.compile(p, re.IGNORECASE)
        except re.error as e:
            raise ValueError(f"invalid regex {p!r}: {e}") from e
    return patterns


class ExclusionRules(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    payment_gateways: list[str] = Field(default_factory=list)
    bank_isos: list[str] = Field(default_factory=list)
    personal_indicators: list[str] = Field(default_factory=list)
    technical_terms: list[str] = Field(default_factory=list)

    @field_validator("bank_isos", "personal_indicators")
    @classmethod
    def _valid_patterns(cls, v: list[str]) -> list[str]:
        return _compile_all(v)


class CategoryRules(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    exact_matches: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)

    @field_validator("patterns")
    @classmethod
    def _valid_patterns(cls, v: list[str]) -> list[str]:
        return _compile_all(v)

    @field_validator("keywords")
    @classmethod
    def _non_empty_keywords(cls, v: list[str]) -> list[str]:
        if any(not k.strip() for k in v):
            raise ValueError("keywords must be non-empty strings")
        return v


class HeuristicRules(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    personal_transfer_max_amount: float = 500
    personal_transfer_category: str = "Transfers & Payments"
    business_terms: list[str] = Field(
        default_factory=lambda: [
            "pvt",
            "ltd",
            "limited",
            "technologies",
            "services",
            "corporation",
            "company",
        ]
    )
    name_min_words: int = 2
    name_max_words: int = 3
    company_suffixes: list[str] = Field(
        default_factory=lambda: [
            "PRIVATE LIMITED",
            "PVT LTD",
            "LIMITED",
            "LTD",
            "TECHNOLOGIES",
            "CORPORATION",
            "CORP",
        ]
    )
    company_category: str = "Services & Miscellaneous"

    @model_validator(mode="after")
    def _word_bounds(self) -> HeuristicRules:
        if not 1 <= self.name_min_words <= self.name_max_words:
            raise ValueError("name word bounds must satisfy 1 <= min <= max")
        return self


class P2PCollectCorrection(BaseModel):
    """Reclassify id-only ``paid`` activity records as ``received``.

    Some activity exports log UPI-collect inflows as "Paid ₹X using Bank
    Account" with no counterparty. Those records carry a bank reference of 35
    alphanumerics; merchant payments carry dashed UUIDs.
    """

    model_config = ConfigDict(strict=True, extra="forbid")

    enabled: bool = True
    id_pattern: str = r"^[A-Za-z0-9]{35}$"

    @field_validator("id_pattern")
    @classmethod
    def _valid_pattern(cls, v: str) -> str:
        _compile_all([v])
        return v

    def applies_to(self, external_id: str | None) -> bool:
        if not self.enabled or not external_id:
            return False
        return re.fullmatch(self.id_pattern, external_id) is not None


class RulesConfig(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    version: str
    exclusions: ExclusionRules = Field(default_factory=ExclusionRules)
    categories: dict[str, CategoryRules]
    fuzzy_keywords: dict[str, list[str]] = Field(default_factory=dict)
    heuristics: HeuristicRules = Field(default_factory=HeuristicRules)
    p2p_collect_correction: P2PCollectCorrection = Field(default_factory=P2PCollectCorrection)

    @field_validator("categories")
    @classmethod
    def _has_categories(cls, v: dict[str, CategoryRules]) -> dict[str, CategoryRules]:
        if not v:
            raise ValueError("at least one category is required")
        return v


def rules_from_json(text: str | bytes, *, source: str = "<string>") -> RulesConfig:
    """Validate rule JSON text, raising ``RulesConfigError`` on any problem."""

    try:
        return RulesConfig.model_validate_json(text)
    except ValidationError as e:
        raise RulesConfigError(f"invalid classification rules in {source}: {e}") from e


def load_rules(path: Path | None = None) -> RulesConfig:
    """Load rules from ``path`` or from the bundled default file."""

    if path is None:
        text = (
            resources.files("upi_ledger")
            .joinpath("data/classification_rules.json")
            .read_text(encoding="utf-8")
        )
        source = "bundled classification_rules.json"
    else:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RulesConfigError(f"cannot read rules file {path}: {e}") from e
        source = str(path)

    rules = rules_from_json(text, source=source)
    logger.debug(
        "Loaded %d categories (version %s) from %s", len(rules.categories), rules.version, source
    )
    return rules
