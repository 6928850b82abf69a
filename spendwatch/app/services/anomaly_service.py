from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Callable, List, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from spendwatch.app.anomalies.aggregate import (
    AnomalySummary,
    aggregate_anomalies,
    summarize_anomalies,
)
from spendwatch.app.anomalies.config import AnomalyConfig
from spendwatch.app.anomalies.detectors import DETECTOR_DEFINITIONS, DetectorDefinition
from spendwatch.app.anomalies.ports import TransactionQuery
from spendwatch.app.anomalies.query import SqlTransactionQuery
from spendwatch.app.anomalies.schema import Anomaly, DetectionWindow
from spendwatch.app.api.deps import require_space_membership
from spendwatch.app.norma.money import as_utc


logger = logging.getLogger(__name__)


class AccessVerifier(Protocol):
    def verify(self, user_id: str, space_id: str, minimum_role: str) -> None:
        ...


class SpaceAccessVerifier:
    """Membership check against the spaces tables; raises HTTPException 403/404."""

    def __init__(self, db: Session):
        self.db = db

    def verify(self, user_id: str, space_id: str, minimum_role: str) -> None:
        require_space_membership(self.db, space_id, user_id, min_role=minimum_role)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def window_end_for(as_of: Optional[datetime], now: datetime) -> datetime:
    """
    Explicit ``as_of`` is used as-is. Otherwise the window closes at the next
    UTC midnight, so repeated calls on the same day see the same window.
    """
    if as_of is not None:
        return as_utc(as_of)
    today = as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return today + timedelta(days=1)


class AnomalyService:
    def __init__(
        self,
        query: TransactionQuery,
        access: AccessVerifier,
        *,
        config: Optional[AnomalyConfig] = None,
        detectors: Sequence[DetectorDefinition] = DETECTOR_DEFINITIONS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.query = query
        self.access = access
        self.config = config or AnomalyConfig()
        self.detectors = list(detectors)
        self.clock = clock

    def detect_anomalies(
        self,
        space_id: str,
        user_id: str,
        *,
        days: Optional[int] = None,
        limit: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> List[Anomaly]:
        self.access.verify(user_id, space_id, "viewer")

        days = self.config.default_days if days is None else days
        limit = self.config.default_limit if limit is None else limit
        if days < 1:
            raise ValueError("days must be >= 1")

        window = DetectionWindow.ending_at(space_id, window_end_for(as_of, self.clock()), days)
        logger.info(
            "Detecting anomalies for space=%s days=%s window=%s..%s",
            space_id,
            days,
            window.start.isoformat(),
            window.end.isoformat(),
        )

        summary = aggregate_anomalies(
            window,
            self.query,
            self.config,
            limit=limit,
            detectors=self.detectors,
        )
        for result in summary.detectors:
            logger.debug(
                "detector=%s fired=%s count=%s severity=%s",
                result.detector_id,
                result.fired,
                result.count,
                result.severity,
            )

        logger.info(
            "Found %s anomalies for space=%s, returning %s",
            sum(result.count for result in summary.detectors),
            space_id,
            len(summary.anomalies),
        )
        return summary.anomalies

    def get_anomaly_summary(
        self,
        space_id: str,
        user_id: str,
        *,
        as_of: Optional[datetime] = None,
    ) -> AnomalySummary:
        anomalies = self.detect_anomalies(
            space_id,
            user_id,
            days=self.config.summary_days,
            limit=self.config.summary_limit,
            as_of=as_of,
        )
        return summarize_anomalies(anomalies, recent_count=self.config.summary_recent_count)


def build_anomaly_service(db: Session, *, config: Optional[AnomalyConfig] = None) -> AnomalyService:
    return AnomalyService(
        SqlTransactionQuery(db),
        SpaceAccessVerifier(db),
        config=config or AnomalyConfig.from_env(),
    )


def detect_anomalies(
    db: Session,
    space_id: str,
    user_id: str,
    *,
    days: Optional[int] = None,
    limit: Optional[int] = None,
    as_of: Optional[datetime] = None,
) -> List[Anomaly]:
    return build_anomaly_service(db).detect_anomalies(
        space_id,
        user_id,
        days=days,
        limit=limit,
        as_of=as_of,
    )


def get_anomaly_summary(
    db: Session,
    space_id: str,
    user_id: str,
    *,
    as_of: Optional[datetime] = None,
) -> AnomalySummary:
    return build_anomaly_service(db).get_anomaly_summary(space_id, user_id, as_of=as_of)
