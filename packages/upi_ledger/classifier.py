"""Six-layer merchant classification.

Layers are tried in priority order and the first one that matches decides the
result:

1. exclusion  - gateways, bank ISO fragments, self transfers, boilerplate
2. exact      - whole-string brand names (case-insensitive)
3. fuzzy      - misspelt/abbreviated variants of a canonical keyword
4. keyword    - substring match, in category declaration order
5. pattern    - per-category regexes
6. heuristic  - name shape, amount and corporate suffixes

A miss is not an error: it yields ``Uncategorized`` with confidence 0. The
classifier holds only compiled rule data, so ``classify`` is a pure function of
``(text, amount)``.
"""

from __future__ import annotations

import re
from decimal import Decimal
from functools import lru_cache

from .models import ClassificationResult, MatchedRule, RuleLayer
from .rules import RulesConfig, load_rules
from .settings import Settings

EXCLUDED_CATEGORY = "Transfers & Payments"
UNCATEGORIZED = "Uncategorized"

_CONFIDENCE: dict[RuleLayer, float] = {
    RuleLayer.EXCLUSION: 1.0,
    RuleLayer.EXACT: 1.0,
    RuleLayer.FUZZY: 0.95,
    RuleLayer.KEYWORD: 0.9,
    RuleLayer.PATTERN: 0.85,
    RuleLayer.HEURISTIC: 0.7,
    RuleLayer.UNMATCHED: 0.0,
}

type Amount = Decimal | float | int | None


def _result(layer: RuleLayer, category: str, matcher: str) -> ClassificationResult:
    return ClassificationResult(
        category=category,
        confidence=_CONFIDENCE[layer],
        matched_rule=MatchedRule(layer=layer, matcher=matcher),
        is_excluded=layer is RuleLayer.EXCLUSION,
    )


class MerchantClassifier:
    def __init__(self, rules: RulesConfig) -> None:
        self.rules = rules
        ex = rules.exclusions
        self._gateways = [g.lower() for g in ex.payment_gateways]
        self._technical = [t.lower() for t in ex.technical_terms]
        self._exclusion_res = [
            re.compile(p, re.IGNORECASE) for p in (*ex.bank_isos, *ex.personal_indicators)
        ]
        self._exact: list[tuple[str, str]] = [
            (name.strip().upper(), category)
            for category, cat in rules.categories.items()
            for name in cat.exact_matches
        ]
        self._keywords: list[tuple[str, str]] = [
            (kw.lower(), category)
            for category, cat in rules.categories.items()
            for kw in cat.keywords
        ]
        self._patterns: list[tuple[re.Pattern[str], str]] = [
            (re.compile(p, re.IGNORECASE), category)
            for category, cat in rules.categories.items()
            for p in cat.patterns
        ]
        self._fuzzy: list[tuple[str, str]] = []
        for base, variants in rules.fuzzy_keywords.items():
            owner = self._keyword_owner(base)
            if owner is None:
                continue
            self._fuzzy.extend((v.lower(), owner) for v in variants if v.strip())

    def _keyword_owner(self, keyword: str) -> str | None:
        needle = keyword.lower()
        for kw, category in self._keywords:
            if kw == needle:
                return category
        return None

    # ---- layers ---------------------------------------------------------

    def _excluded(self, text: str) -> str | None:
        lower = text.lower()
        for gateway in self._gateways:
            if gateway in lower:
                return gateway
        for rx in self._exclusion_res:
            if rx.search(text):
                return rx.pattern
        for term in self._technical:
            if term in lower:
                return term
        return None

    def _exact_match(self, text: str) -> tuple[str, str] | None:
        upper = text.strip().upper()
        for name, category in self._exact:
            if upper == name:
                return name, category
        return None

    def _fuzzy_match(self, lower: str) -> tuple[str, str] | None:
        for variant, category in self._fuzzy:
            if variant in lower:
                return variant, category
        return None

    def _keyword_match(self, lower: str) -> tuple[str, str] | None:
        for kw, category in self._keywords:
            if kw in lower:
                return kw, category
        return None

    def _pattern_match(self, text: str) -> tuple[str, str] | None:
        for rx, category in self._patterns:
            if rx.search(text):
                return rx.pattern, category
        return None

    def _heuristic(self, text: str, amount: Amount) -> tuple[str, str] | None:
        h = self.rules.heuristics
        lower = text.lower()
        if amount and 0 < amount < h.personal_transfer_max_amount:
            words = text.split()
            looks_personal = (
                h.name_min_words <= len(words) <= h.name_max_words
                and text == text.upper()
                and any(ch.isalpha() for ch in text)
                and not any(term in lower for term in h.business_terms)
            )
            if looks_personal:
                return "personal_name_small_amount", h.personal_transfer_category
        upper = text.upper()
        for suffix in h.company_suffixes:
            if suffix in upper:
                return f"company_suffix:{suffix}", h.company_category
        return None

    # ---- public ---------------------------------------------------------

    def classify(self, text: str | None, amount: Amount = None) -> ClassificationResult:
        merchant = (text or "").strip()
        if not merchant:
            return _result(RuleLayer.UNMATCHED, UNCATEGORIZED, "none")

        hit = self._excluded(merchant)
        if hit is not None:
            return _result(RuleLayer.EXCLUSION, EXCLUDED_CATEGORY, hit)

        lower = merchant.lower()
        layers = (
            (RuleLayer.EXACT, lambda: self._exact_match(merchant)),
            (RuleLayer.FUZZY, lambda: self._fuzzy_match(lower)),
            (RuleLayer.KEYWORD, lambda: self._keyword_match(lower)),
            (RuleLayer.PATTERN, lambda: self._pattern_match(merchant)),
            (RuleLayer.HEURISTIC, lambda: self._heuristic(merchant, amount)),
        )
        for layer, lookup in layers:
            found = lookup()
            if found is not None:
                matcher, category = found
                return _result(layer, category, matcher)

        return _result(RuleLayer.UNMATCHED, UNCATEGORIZED, "none")

    def categorize(self, text: str | None, amount: Amount = None) -> str:
        return self.classify(text, amount).category


@lru_cache(maxsize=1)
def default_classifier() -> MerchantClassifier:
    """Process-wide classifier built from ``UPI_LEDGER_RULES_PATH`` or the bundled rules."""

    return MerchantClassifier(load_rules(Settings.from_env().rules_path))


def classify(text: str | None, amount: Amount = None) -> ClassificationResult:
    return default_classifier().classify(text, amount)
