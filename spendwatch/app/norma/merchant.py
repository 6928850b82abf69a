"""
Merchant identity helpers.

Bank feeds give us either an explicit merchant field or only a raw
description like "POS NETFLIX.COM 4412". The description cleanup below
is a best-effort heuristic, not NLP: it peels known noise off the edges
of the string and nothing more. When it cannot produce a usable name the
transaction is treated as unattributable and callers skip it.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import List, Literal, Optional

MERCHANT_KEY_MAX_LEN = 20
MIN_MERCHANT_NAME_LEN = 3

StripPosition = Literal["start", "end"]


@dataclass(frozen=True)
class CleanupRule:
    name: str
    pattern: re.Pattern
    position: StripPosition

    def apply(self, text: str) -> str:
        return self.pattern.sub("", text, count=1)


# Order matters: each rule sees the output of the previous one.
DESCRIPTION_CLEANUP_RULES: List[CleanupRule] = [
    CleanupRule(
        "leading_txn_type",
        re.compile(r"^(pos|debit|credit|ach|wire|transfer|payment|purchase)\s+", re.IGNORECASE),
        "start",
    ),
    CleanupRule(
        "trailing_txn_type",
        re.compile(r"\s+(pos|debit|credit)$", re.IGNORECASE),
        "end",
    ),
    CleanupRule("trailing_reference_number", re.compile(r"\s+\d{4,}$"), "end"),
    CleanupRule("trailing_state_code", re.compile(r"\s+[A-Z]{2}\s*$"), "end"),
]


def normalize_merchant(name: Optional[str]) -> str:
    """
    Comparison key: lower-case, alphanumerics only, capped length.

    "AMAZON.COM" -> "amazoncom", "Netflix #1234" -> "netflix1234".
    """
    lowered = (name or "").lower()
    return re.sub(r"[^a-z0-9]", "", lowered)[:MERCHANT_KEY_MAX_LEN]


def extract_merchant_from_description(description: Optional[str]) -> Optional[str]:
    cleaned = description or ""
    for rule in DESCRIPTION_CLEANUP_RULES:
        cleaned = rule.apply(cleaned)
    cleaned = cleaned.strip()
    return cleaned if len(cleaned) >= MIN_MERCHANT_NAME_LEN else None


def resolve_merchant(merchant: Optional[str], description: Optional[str]) -> Optional[str]:
    """
    Display name for a transaction's merchant, or None when unattributable.

    The explicit field wins; the description is only consulted when the
    field is blank or too short to identify anyone.
    """
    explicit = (merchant or "").strip()
    if len(explicit) >= MIN_MERCHANT_NAME_LEN and normalize_merchant(explicit):
        return explicit
    extracted = extract_merchant_from_description(description)
    if extracted and normalize_merchant(extracted):
        return extracted
    return None
