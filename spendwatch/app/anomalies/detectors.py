from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from spendwatch.app.anomalies.config import AnomalyConfig
from spendwatch.app.anomalies.ports import TransactionQuery
from spendwatch.app.anomalies.schema import (
    Anomaly,
    AnomalyType,
    CategoryTotal,
    DetectionWindow,
    Severity,
    TransactionRecord,
)
from spendwatch.app.anomalies.stats import build_merchant_stats, z_score
from spendwatch.app.norma.merchant import normalize_merchant, resolve_merchant
from spendwatch.app.norma.money import CENT, format_money

DetectorRunner = Callable[[DetectionWindow, TransactionQuery, AnomalyConfig], List[Anomaly]]


@dataclass(frozen=True)
class DetectorDefinition:
    detector_id: str
    anomaly_type: AnomalyType
    runner: DetectorRunner


def _window_meta(window: DetectionWindow) -> Dict[str, object]:
    return {
        "window_start": window.start.isoformat(),
        "window_end": window.end.isoformat(),
        "window_days": window.days,
    }


def _pct_above(ratio: float) -> str:
    return f"{(ratio - 1) * 100:.0f}%"


# -------------------------
# unusual_amount
# -------------------------

def _severity_from_zscore(z: float, config: AnomalyConfig) -> Severity:
    if z > config.zscore_high:
        return "high"
    if z > config.zscore_medium:
        return "medium"
    return "low"


def detect_unusual_amounts(
    window: DetectionWindow,
    query: TransactionQuery,
    config: AnomalyConfig,
) -> List[Anomaly]:
    """
    Per-merchant outlier detection.

    Formula:
      z = |(|amount| - mean) / std_dev|
      mean/std_dev come from the merchant's outflows in the
      merchant_history_days before the window (the window itself excluded).

    Merchants with too little history or with no variance are skipped.
    """
    recent = query.list_outflows(window.space_id, start=window.start, end=window.end, order="desc")
    history = query.list_outflows(
        window.space_id,
        start=window.before(config.merchant_history_days),
        end=window.start,
    )
    merchant_stats = build_merchant_stats(history, min_count=config.min_merchant_history)

    anomalies: List[Anomaly] = []
    for txn in recent:
        merchant = resolve_merchant(txn.merchant, txn.description)
        if not merchant:
            continue
        stats = merchant_stats.get(normalize_merchant(merchant))
        if stats is None or stats.std_dev == 0:
            continue

        amount = abs(txn.amount)
        z = abs(z_score(float(amount), stats.mean, stats.std_dev))
        if z <= config.zscore_threshold:
            continue

        direction = "above" if float(amount) >= stats.mean else "below"
        anomalies.append(
            Anomaly(
                id=f"unusual-{txn.id}",
                type="unusual_amount",
                severity=_severity_from_zscore(z, config),
                confidence=round(min(0.95, 0.7 + (stats.count / 20) * 0.25), 4),
                description=(
                    f"Transaction of {format_money(amount, txn.currency)} at {merchant} is "
                    f"{z:.1f} standard deviations {direction} your average of "
                    f"{format_money(Decimal(str(stats.mean)), txn.currency)}"
                ),
                date=txn.date,
                transaction_id=txn.id,
                merchant=merchant,
                category=txn.category_name,
                amount=amount,
                currency=txn.currency,
                metadata={
                    "z_score": round(z, 4),
                    "mean": round(stats.mean, 2),
                    "std_dev": round(stats.std_dev, 4),
                    "history_count": stats.count,
                    "expected_range": {"min": round(stats.min, 2), "max": round(stats.max, 2)},
                    **_window_meta(window),
                },
            )
        )
    return anomalies


# -------------------------
# spending_spike
# -------------------------

def detect_spending_spikes(
    window: DetectionWindow,
    query: TransactionQuery,
    config: AnomalyConfig,
) -> List[Anomaly]:
    """
    Week-over-week aggregate spend.

    Formula:
      buckets = min(spike_max_weeks, days // 7) + 2 weekly totals ending at window.end
      baseline = mean(buckets[1:]) (floored to 1 when zero)
      ratio = buckets[0] / baseline
    """
    bucket_count = min(config.spike_max_weeks, window.days // 7) + 2
    if bucket_count < config.spike_min_buckets:
        return []

    weekly: List[Decimal] = []
    for i in range(bucket_count):
        week_end = window.end - timedelta(days=7 * i)
        week_start = week_end - timedelta(days=7)
        weekly.append(abs(query.sum_outflows(window.space_id, start=week_start, end=week_end)))

    current = weekly[0]
    prior = weekly[1:]
    baseline = sum(prior, Decimal("0")) / len(prior)
    if baseline == 0:
        baseline = Decimal("1")
    ratio = float(current / baseline)
    if ratio <= config.spike_ratio_threshold:
        return []

    excess = (current - baseline).quantize(CENT)
    week_start = window.end - timedelta(days=7)
    return [
        Anomaly(
            id="spike-week-0",
            type="spending_spike",
            severity="high" if ratio > config.spike_high_ratio else "medium",
            confidence=0.8,
            description=(
                f"Weekly spending of {format_money(current, None)} is {_pct_above(ratio)} higher "
                f"than your average of {format_money(baseline, None)}"
            ),
            date=window.end,
            amount=excess,
            metadata={
                "ratio": round(ratio, 4),
                "current_week_total": str(current.quantize(CENT)),
                "historical_average": str(baseline.quantize(CENT)),
                "weeks_compared": len(prior),
                "week_start": week_start.isoformat(),
                "week_end": window.end.isoformat(),
                **_window_meta(window),
            },
        )
    ]


# -------------------------
# new_merchant_large
# -------------------------

def detect_new_merchant_large(
    window: DetectionWindow,
    query: TransactionQuery,
    config: AnomalyConfig,
) -> List[Anomaly]:
    history_start = window.end - timedelta(days=config.known_merchant_lookback_days)
    known = {
        key
        for key in (
            normalize_merchant(name)
            for name in query.distinct_merchants(window.space_id, start=history_start, end=window.start)
        )
        if key
    }
    large = query.list_outflows(
        window.space_id,
        start=window.start,
        end=window.end,
        below=-config.large_transaction_threshold,
        order="desc",
    )

    anomalies: List[Anomaly] = []
    for txn in large:
        merchant = resolve_merchant(txn.merchant, txn.description)
        if not merchant or normalize_merchant(merchant) in known:
            continue
        amount = abs(txn.amount)
        anomalies.append(
            Anomaly(
                id=f"new-merchant-{txn.id}",
                type="new_merchant_large",
                severity="high" if amount > config.large_transaction_high else "medium",
                confidence=0.75,
                description=(
                    f"Large transaction of {format_money(amount, txn.currency)} at new merchant: {merchant}"
                ),
                date=txn.date,
                transaction_id=txn.id,
                merchant=merchant,
                category=txn.category_name,
                amount=amount,
                currency=txn.currency,
                metadata={
                    "known_merchant_count": len(known),
                    "history_start": history_start.isoformat(),
                    "large_threshold": str(config.large_transaction_threshold),
                    **_window_meta(window),
                },
            )
        )
    return anomalies


# -------------------------
# category_surge
# -------------------------

def _severity_from_category_ratio(ratio: float, config: AnomalyConfig) -> Severity:
    if ratio > config.category_high_ratio:
        return "high"
    if ratio > config.category_medium_ratio:
        return "medium"
    return "low"


def detect_category_surges(
    window: DetectionWindow,
    query: TransactionQuery,
    config: AnomalyConfig,
) -> List[Anomaly]:
    """
    Recent category spend against its longer baseline.

    Formula:
      normalized = |historical_total| * days / category_baseline_days
      ratio = |recent_total| / normalized
    """
    recent_totals = query.outflows_by_category(window.space_id, start=window.start, end=window.end)
    if not recent_totals:
        return []
    historical: Dict[str, CategoryTotal] = {
        row.category_id: row
        for row in query.outflows_by_category(
            window.space_id,
            start=window.before(config.category_baseline_days),
            end=window.start,
        )
        if row.category_id is not None
    }

    anomalies: List[Anomaly] = []
    for recent in recent_totals:
        if recent.category_id is None:
            continue
        baseline = historical.get(recent.category_id)
        if baseline is None or baseline.count < config.category_min_history_count:
            continue
        historical_total = abs(baseline.total)
        if historical_total == 0:
            continue
        recent_amount = abs(recent.total)
        if recent_amount <= config.category_min_recent_amount:
            continue

        normalized = historical_total * window.days / config.category_baseline_days
        ratio = float(recent_amount / normalized)
        if ratio <= config.category_ratio_threshold:
            continue

        name = recent.category_name or baseline.category_name or "Unknown"
        anomalies.append(
            Anomaly(
                id=f"category-surge-{recent.category_id}",
                type="category_surge",
                severity=_severity_from_category_ratio(ratio, config),
                confidence=round(0.7 + min(0.2, baseline.count / 50), 4),
                description=f"Spending on {name} is {_pct_above(ratio)} higher than usual",
                date=window.end,
                category=name,
                amount=recent_amount,
                metadata={
                    "category_id": recent.category_id,
                    "ratio": round(ratio, 4),
                    "recent_total": str(recent_amount),
                    "historical_total": str(historical_total),
                    "normalized_historical": str(normalized.quantize(CENT)),
                    "historical_count": baseline.count,
                    "baseline_days": config.category_baseline_days,
                    **_window_meta(window),
                },
            )
        )
    return anomalies


# -------------------------
# duplicate_charge
# -------------------------

def duplicate_confidence(hours_apart: float, config: AnomalyConfig) -> float:
    """Linear decay from 1.0 at zero gap down to the floor at the window edge."""
    floor = config.duplicate_min_confidence
    span = config.duplicate_window_hours
    if span <= 0:
        return 1.0
    elapsed = min(max(hours_apart, 0.0), span)
    return round(max(floor, 1.0 - (1.0 - floor) * elapsed / span), 4)


def _duplicate_key(merchant: str, txn: TransactionRecord) -> str:
    return f"{normalize_merchant(merchant)}|{txn.amount.quantize(CENT)}"


def detect_duplicate_charges(
    window: DetectionWindow,
    query: TransactionQuery,
    config: AnomalyConfig,
) -> List[Anomaly]:
    txns = query.list_outflows(window.space_id, start=window.start, end=window.end, order="asc")

    anomalies: List[Anomaly] = []
    last_seen: Dict[str, TransactionRecord] = {}
    for txn in txns:
        merchant = resolve_merchant(txn.merchant, txn.description)
        if not merchant:
            continue
        key = _duplicate_key(merchant, txn)
        previous: Optional[TransactionRecord] = last_seen.get(key)
        last_seen[key] = txn
        if previous is None:
            continue

        hours_apart = (txn.date - previous.date).total_seconds() / 3600
        if hours_apart < 0 or hours_apart > config.duplicate_window_hours:
            continue

        amount = abs(txn.amount)
        anomalies.append(
            Anomaly(
                id=f"duplicate-{txn.id}",
                type="duplicate_charge",
                severity="high" if amount > config.duplicate_high_amount else "medium",
                confidence=duplicate_confidence(hours_apart, config),
                description=(
                    f"Possible duplicate charge of {format_money(amount, txn.currency)} at {merchant} "
                    f"({hours_apart:.1f} hours apart)"
                ),
                date=txn.date,
                transaction_id=txn.id,
                merchant=merchant,
                category=txn.category_name,
                amount=amount,
                currency=txn.currency,
                metadata={
                    "original_transaction_id": previous.id,
                    "original_date": previous.date.isoformat(),
                    "hours_apart": round(hours_apart, 2),
                    **_window_meta(window),
                },
            )
        )
    return anomalies


DETECTOR_DEFINITIONS: List[DetectorDefinition] = [
    DetectorDefinition("detect_unusual_amounts", "unusual_amount", detect_unusual_amounts),
    DetectorDefinition("detect_spending_spikes", "spending_spike", detect_spending_spikes),
    DetectorDefinition("detect_new_merchant_large", "new_merchant_large", detect_new_merchant_large),
    DetectorDefinition("detect_category_surges", "category_surge", detect_category_surges),
    DetectorDefinition("detect_duplicate_charges", "duplicate_charge", detect_duplicate_charges),
]
