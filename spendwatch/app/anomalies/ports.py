from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional, Protocol

from spendwatch.app.anomalies.schema import CategoryTotal, TransactionRecord

SortOrder = Literal["asc", "desc"]


class TransactionQuery(Protocol):
    """
    Read-only projections over a space's posted transactions.

    Ranges are half-open: ``start <= date < end``; ``None`` leaves that side
    open. Every method only considers outflows (``amount < 0``).
    """

    def list_outflows(
        self,
        space_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        below: Optional[Decimal] = None,
        order: Optional[SortOrder] = None,
    ) -> List[TransactionRecord]:
        ...

    def sum_outflows(self, space_id: str, *, start: datetime, end: datetime) -> Decimal:
        ...

    def outflows_by_category(
        self,
        space_id: str,
        *,
        start: datetime,
        end: datetime,
    ) -> List[CategoryTotal]:
        ...

    def distinct_merchants(self, space_id: str, *, start: datetime, end: datetime) -> List[str]:
        """Merchant names as ``resolve_merchant`` sees them (field first, then description)."""
        ...
