from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from spendwatch.app.anomalies.config import AnomalyConfig
from spendwatch.app.anomalies.detectors import DETECTOR_DEFINITIONS, DetectorDefinition
from spendwatch.app.anomalies.ports import TransactionQuery
from spendwatch.app.anomalies.schema import SEVERITY_RANK, Anomaly, DetectionWindow
from spendwatch.app.norma.money import CENT


@dataclass(frozen=True)
class DetectorRunResult:
    detector_id: str
    anomaly_type: str
    fired: bool
    count: int
    severity: Optional[str]


@dataclass(frozen=True)
class DetectorRunSummary:
    anomalies: List[Anomaly]
    detectors: List[DetectorRunResult]


@dataclass(frozen=True)
class AnomalySummary:
    total_count: int
    by_severity: Dict[str, int]
    by_type: Dict[str, int]
    total_impact: Decimal
    recent_anomalies: List[Anomaly]


def sort_anomalies(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    """
    Severity descending, then anchor date descending. The sort is stable so
    ties keep detector-registry order.
    """
    return sorted(
        anomalies,
        key=lambda a: (-SEVERITY_RANK[a.severity], -a.date.timestamp()),
    )


def run_detectors_with_summary(
    window: DetectionWindow,
    query: TransactionQuery,
    config: AnomalyConfig,
    *,
    detectors: Sequence[DetectorDefinition] = DETECTOR_DEFINITIONS,
) -> DetectorRunSummary:
    all_anomalies: List[Anomaly] = []
    detector_results: List[DetectorRunResult] = []

    # a failing query aborts the whole run; nothing partial is returned
    for detector in detectors:
        found = detector.runner(window, query, config)
        strongest = None
        if found:
            strongest = max((a.severity for a in found), key=lambda sev: SEVERITY_RANK[sev])
        detector_results.append(
            DetectorRunResult(
                detector_id=detector.detector_id,
                anomaly_type=detector.anomaly_type,
                fired=bool(found),
                count=len(found),
                severity=strongest,
            )
        )
        all_anomalies.extend(found)

    return DetectorRunSummary(anomalies=sort_anomalies(all_anomalies), detectors=detector_results)


def aggregate_anomalies(
    window: DetectionWindow,
    query: TransactionQuery,
    config: AnomalyConfig,
    *,
    limit: int,
    detectors: Sequence[DetectorDefinition] = DETECTOR_DEFINITIONS,
) -> DetectorRunSummary:
    """Full detector run, with the merged anomalies cut to the top ``limit``."""
    if limit < 0:
        raise ValueError("limit must be >= 0")
    summary = run_detectors_with_summary(window, query, config, detectors=detectors)
    return DetectorRunSummary(anomalies=summary.anomalies[:limit], detectors=summary.detectors)


def summarize_anomalies(anomalies: Sequence[Anomaly], *, recent_count: int = 5) -> AnomalySummary:
    by_severity = {"high": 0, "medium": 0, "low": 0}
    by_type: Dict[str, int] = {}
    total_impact = Decimal("0")

    for anomaly in anomalies:
        by_severity[anomaly.severity] += 1
        by_type[anomaly.type] = by_type.get(anomaly.type, 0) + 1
        if anomaly.amount is not None:
            total_impact += abs(anomaly.amount)

    return AnomalySummary(
        total_count=len(anomalies),
        by_severity=by_severity,
        by_type=by_type,
        total_impact=total_impact.quantize(CENT),
        recent_anomalies=list(anomalies[:recent_count]),
    )
