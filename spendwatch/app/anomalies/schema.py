from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

Severity = Literal["low", "medium", "high"]

AnomalyType = Literal[
    "unusual_amount",
    "spending_spike",
    "new_merchant_large",
    "category_surge",
    "duplicate_charge",
]

SEVERITY_RANK: Dict[str, int] = {"low": 0, "medium": 1, "high": 2}


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    amount: Decimal
    currency: str
    merchant: Optional[str]
    description: Optional[str]
    date: datetime
    category_id: Optional[str] = None
    category_name: Optional[str] = None


@dataclass(frozen=True)
class CategoryTotal:
    category_id: Optional[str]
    category_name: Optional[str]
    total: Decimal
    count: int


@dataclass(frozen=True)
class DetectionWindow:
    space_id: str
    days: int
    start: datetime
    end: datetime

    @classmethod
    def ending_at(cls, space_id: str, end: datetime, days: int) -> "DetectionWindow":
        return cls(space_id=space_id, days=days, start=end - timedelta(days=days), end=end)

    def before(self, days: int) -> datetime:
        return self.start - timedelta(days=days)


@dataclass(frozen=True)
class Anomaly:
    id: str
    type: AnomalyType
    severity: Severity
    confidence: float
    description: str
    date: datetime
    transaction_id: Optional[str] = None
    merchant: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
