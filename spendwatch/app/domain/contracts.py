from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class AnomalyContract(BaseModel):
    id: str
    type: str
    severity: str
    confidence: float
    transaction_id: Optional[str] = None
    merchant: Optional[str] = None
    category: Optional[str] = None
    description: str
    amount: Optional[float] = None
    currency: Optional[str] = None
    date: datetime
    metadata: Dict[str, Any] = {}

    class Config:
        from_attributes = True


class AnomalySeverityCounts(BaseModel):
    high: int = 0
    medium: int = 0
    low: int = 0


class AnomalySummaryContract(BaseModel):
    total_count: int
    by_severity: AnomalySeverityCounts
    by_type: Dict[str, int]
    total_impact: float
    recent_anomalies: List[AnomalyContract]
