from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
import os
from typing import Optional


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise RuntimeError(f"{name} must be >= 1, got {value}")
    return value


@dataclass(frozen=True)
class AnomalyConfig:
    """
    Every knob the detectors use. Passed explicitly into the engine so tests
    can run with arbitrary thresholds; there is no per-user override.
    """

    default_days: int = 30
    default_limit: int = 50
    summary_days: int = 30
    summary_limit: int = 100
    summary_recent_count: int = 5

    # unusual_amount
    merchant_history_days: int = 30
    min_merchant_history: int = 2
    zscore_threshold: float = 2.5
    zscore_medium: float = 3.0
    zscore_high: float = 4.0

    # spending_spike
    spike_max_weeks: int = 4
    spike_min_buckets: int = 3
    spike_ratio_threshold: float = 1.5
    spike_high_ratio: float = 2.0

    # new_merchant_large
    known_merchant_lookback_days: int = 365
    large_transaction_threshold: Decimal = Decimal("500")
    large_transaction_high: Decimal = Decimal("1000")

    # category_surge
    category_baseline_days: int = 90
    category_min_history_count: int = 3
    category_min_recent_amount: Decimal = Decimal("100")
    category_ratio_threshold: float = 1.5
    category_medium_ratio: float = 1.75
    category_high_ratio: float = 2.5

    # duplicate_charge
    duplicate_window_hours: float = 48.0
    duplicate_high_amount: Decimal = Decimal("100")
    duplicate_min_confidence: float = 0.5

    @classmethod
    def from_env(cls) -> "AnomalyConfig":
        config = cls()
        days = _env_int("ANOMALY_DEFAULT_DAYS")
        limit = _env_int("ANOMALY_DEFAULT_LIMIT")
        if days is not None:
            config = replace(config, default_days=days)
        if limit is not None:
            config = replace(config, default_limit=limit)
        return config

