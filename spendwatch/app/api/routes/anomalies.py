from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from spendwatch.app.anomalies.aggregate import AnomalySummary
from spendwatch.app.anomalies.schema import Anomaly
from spendwatch.app.api.deps import get_current_user
from spendwatch.app.db import get_db
from spendwatch.app.domain.contracts import (
    AnomalyContract,
    AnomalySeverityCounts,
    AnomalySummaryContract,
)
from spendwatch.app.models import User
from spendwatch.app.services import anomaly_service

router = APIRouter(prefix="/api/spaces", tags=["anomalies"])


def anomaly_to_contract(anomaly: Anomaly) -> AnomalyContract:
    return AnomalyContract.model_validate(anomaly)


def summary_to_contract(summary: AnomalySummary) -> AnomalySummaryContract:
    return AnomalySummaryContract(
        total_count=summary.total_count,
        by_severity=AnomalySeverityCounts(**summary.by_severity),
        by_type=dict(summary.by_type),
        total_impact=float(summary.total_impact),
        recent_anomalies=[anomaly_to_contract(a) for a in summary.recent_anomalies],
    )


@router.get("/{space_id}/anomalies", response_model=List[AnomalyContract])
def list_anomalies(
    space_id: str,
    days: Optional[int] = Query(default=None, ge=1, le=365),
    limit: Optional[int] = Query(default=None, ge=0, le=500),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        anomalies = anomaly_service.detect_anomalies(db, space_id, user.id, days=days, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [anomaly_to_contract(a) for a in anomalies]


@router.get("/{space_id}/anomalies/summary", response_model=AnomalySummaryContract)
def anomaly_summary(
    space_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    summary = anomaly_service.get_anomaly_summary(db, space_id, user.id)
    return summary_to_contract(summary)
