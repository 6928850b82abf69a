"""Domain contracts and shared types."""

from spendwatch.app.domain.contracts import (  # noqa: F401
    AnomalyContract,
    AnomalySeverityCounts,
    AnomalySummaryContract,
)
