from .aggregate import (
    AnomalySummary,
    aggregate_anomalies,
    run_detectors_with_summary,
    sort_anomalies,
    summarize_anomalies,
)
from .config import AnomalyConfig
from .detectors import DETECTOR_DEFINITIONS, DetectorDefinition
from .ports import TransactionQuery
from .schema import Anomaly, DetectionWindow, TransactionRecord

__all__ = [
    "Anomaly",
    "AnomalyConfig",
    "AnomalySummary",
    "DETECTOR_DEFINITIONS",
    "DetectionWindow",
    "DetectorDefinition",
    "TransactionQuery",
    "TransactionRecord",
    "aggregate_anomalies",
    "run_detectors_with_summary",
    "sort_anomalies",
    "summarize_anomalies",
]
