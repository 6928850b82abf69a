from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
import statistics
from typing import Dict, Iterable, List, Sequence

from spendwatch.app.anomalies.schema import TransactionRecord
from spendwatch.app.norma.merchant import normalize_merchant, resolve_merchant


@dataclass(frozen=True)
class MerchantStats:
    merchant: str
    count: int
    mean: float
    std_dev: float
    min: float
    max: float


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(statistics.mean(values))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if not values:
        return 0.0
    return float(statistics.pstdev(values))


def z_score(value: float, avg: float, sd: float) -> float:
    # zero variance means nothing can stand out
    if sd == 0:
        return 0.0
    return (value - avg) / sd


def build_merchant_stats(
    txns: Iterable[TransactionRecord],
    *,
    min_count: int = 2,
) -> Dict[str, MerchantStats]:
    """
    Outflow magnitudes grouped by normalized merchant key.

    Merchants with fewer than ``min_count`` transactions are left out, and so
    are transactions whose merchant cannot be resolved.
    """
    amounts: Dict[str, List[float]] = defaultdict(list)
    for txn in txns:
        if txn.amount >= 0:
            continue
        merchant = resolve_merchant(txn.merchant, txn.description)
        if not merchant:
            continue
        amounts[normalize_merchant(merchant)].append(float(abs(txn.amount)))

    stats: Dict[str, MerchantStats] = {}
    for key, values in amounts.items():
        if len(values) < min_count:
            continue
        stats[key] = MerchantStats(
            merchant=key,
            count=len(values),
            mean=mean(values),
            std_dev=std_dev(values),
            min=min(values),
            max=max(values),
        )
    return stats
