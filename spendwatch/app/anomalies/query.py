from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from spendwatch.app.anomalies.ports import SortOrder
from spendwatch.app.anomalies.schema import CategoryTotal, TransactionRecord
from spendwatch.app.models import Account, Category, Transaction
from spendwatch.app.norma.merchant import resolve_merchant
from spendwatch.app.norma.money import as_utc, to_money


class SqlTransactionQuery:
    """TransactionQuery backed by the ORM tables; pending rows are never visible."""

    def __init__(self, db: Session):
        self.db = db

    def _conditions(
        self,
        space_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        below: Optional[Decimal] = None,
    ) -> list:
        ceiling = to_money(below) if below is not None else Decimal("0")
        conditions = [
            Account.space_id == space_id,
            Transaction.pending.is_(False),
            Transaction.amount < ceiling,
        ]
        if start is not None:
            conditions.append(Transaction.date >= start)
        if end is not None:
            conditions.append(Transaction.date < end)
        return conditions

    def list_outflows(
        self,
        space_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        below: Optional[Decimal] = None,
        order: Optional[SortOrder] = None,
    ) -> List[TransactionRecord]:
        stmt = (
            select(Transaction, Category.name)
            .join(Account, Transaction.account_id == Account.id)
            .outerjoin(Category, Transaction.category_id == Category.id)
            .where(*self._conditions(space_id, start, end, below))
        )
        if order == "desc":
            stmt = stmt.order_by(Transaction.date.desc(), Transaction.id.desc())
        else:
            # unordered requests still get a stable order
            stmt = stmt.order_by(Transaction.date.asc(), Transaction.id.asc())

        return [
            TransactionRecord(
                id=txn.id,
                amount=to_money(txn.amount),
                currency=txn.currency,
                merchant=txn.merchant,
                description=txn.description,
                date=as_utc(txn.date),
                category_id=txn.category_id,
                category_name=category_name,
            )
            for txn, category_name in self.db.execute(stmt).all()
        ]

    def sum_outflows(self, space_id: str, *, start: datetime, end: datetime) -> Decimal:
        stmt = (
            select(func.sum(Transaction.amount))
            .select_from(Transaction)
            .join(Account, Transaction.account_id == Account.id)
            .where(*self._conditions(space_id, start, end))
        )
        return to_money(self.db.execute(stmt).scalar())

    def outflows_by_category(
        self,
        space_id: str,
        *,
        start: datetime,
        end: datetime,
    ) -> List[CategoryTotal]:
        stmt = (
            select(
                Transaction.category_id,
                Category.name,
                func.sum(Transaction.amount),
                func.count(Transaction.id),
            )
            .select_from(Transaction)
            .join(Account, Transaction.account_id == Account.id)
            .outerjoin(Category, Transaction.category_id == Category.id)
            .where(*self._conditions(space_id, start, end))
            .group_by(Transaction.category_id, Category.name)
        )
        totals = [
            CategoryTotal(
                category_id=category_id,
                category_name=name,
                total=to_money(total),
                count=int(count or 0),
            )
            for category_id, name, total, count in self.db.execute(stmt).all()
        ]
        # NULL ordering differs between backends
        return sorted(totals, key=lambda t: (t.category_id is None, t.category_id or ""))

    def distinct_merchants(self, space_id: str, *, start: datetime, end: datetime) -> List[str]:
        stmt = (
            select(Transaction.merchant, Transaction.description)
            .select_from(Transaction)
            .join(Account, Transaction.account_id == Account.id)
            .where(*self._conditions(space_id, start, end))
            .distinct()
        )
        # same resolution the detectors apply to recent charges
        names = {
            resolve_merchant(merchant, description)
            for merchant, description in self.db.execute(stmt).all()
        }
        return sorted(name for name in names if name)
