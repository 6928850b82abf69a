import os
import pathlib
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

import pytest


REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
sys.path.append(str(REPO_ROOT))

# Every test anchors its window here so results never depend on the wall clock.
AS_OF = datetime(2024, 6, 1, tzinfo=timezone.utc)


def pytest_configure():
    if os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL"):
        return
    temp_dir = tempfile.mkdtemp(prefix="spendwatch-tests-")
    db_path = pathlib.Path(temp_dir) / "pytest.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"


class InMemoryTransactionQuery:
    """TransactionQuery over a plain list, for detector-level tests."""

    def __init__(self, space_id: str = "space-123"):
        self.space_id = space_id
        self.records = []
        self.calls: List[str] = []

    def add(
        self,
        txn_id: str,
        amount,
        when: datetime,
        *,
        merchant: Optional[str] = None,
        description: Optional[str] = "",
        category_id: Optional[str] = None,
        category_name: Optional[str] = None,
        currency: str = "USD",
    ):
        from spendwatch.app.anomalies.schema import TransactionRecord
        from spendwatch.app.norma.money import to_money

        record = TransactionRecord(
            id=txn_id,
            amount=to_money(amount),
            currency=currency,
            merchant=merchant,
            description=description,
            date=when,
            category_id=category_id,
            category_name=category_name,
        )
        self.records.append(record)
        return record

    def _select(self, space_id, start, end, below=None):
        ceiling = below if below is not None else Decimal("0")
        if space_id != self.space_id:
            return []
        return [
            r
            for r in self.records
            if r.amount < ceiling
            and (start is None or r.date >= start)
            and (end is None or r.date < end)
        ]

    def list_outflows(self, space_id, *, start=None, end=None, below=None, order=None):
        self.calls.append("list_outflows")
        rows = sorted(self._select(space_id, start, end, below), key=lambda r: (r.date, r.id))
        if order == "desc":
            rows.reverse()
        return rows

    def sum_outflows(self, space_id, *, start, end):
        self.calls.append("sum_outflows")
        return sum((r.amount for r in self._select(space_id, start, end)), Decimal("0.00"))

    def outflows_by_category(self, space_id, *, start, end):
        from spendwatch.app.anomalies.schema import CategoryTotal

        self.calls.append("outflows_by_category")
        groups = {}
        for r in self._select(space_id, start, end):
            total, count, name = groups.get(r.category_id, (Decimal("0.00"), 0, r.category_name))
            groups[r.category_id] = (total + r.amount, count + 1, name)
        return [
            CategoryTotal(category_id=cid, category_name=name, total=total, count=count)
            for cid, (total, count, name) in sorted(
                groups.items(), key=lambda item: (item[0] is None, item[0] or "")
            )
        ]

    def distinct_merchants(self, space_id, *, start, end):
        from spendwatch.app.norma.merchant import resolve_merchant

        self.calls.append("distinct_merchants")
        names = {resolve_merchant(r.merchant, r.description) for r in self._select(space_id, start, end)}
        return sorted(name for name in names if name)


class AllowAllAccess:
    def __init__(self):
        self.calls = []

    def verify(self, user_id, space_id, minimum_role):
        self.calls.append((user_id, space_id, minimum_role))


@pytest.fixture()
def txn_query():
    return InMemoryTransactionQuery()


@pytest.fixture()
def allow_all_access():
    return AllowAllAccess()


@pytest.fixture()
def window():
    from spendwatch.app.anomalies.schema import DetectionWindow

    return DetectionWindow.ending_at("space-123", AS_OF, 30)


@pytest.fixture()
def days_ago():
    def _days_ago(days: float, hours: float = 0) -> datetime:
        return AS_OF - timedelta(days=days, hours=hours)

    return _days_ago


@pytest.fixture(scope="session")
def sqlite_engine():
    from spendwatch.app.db import Base, engine
    import spendwatch.app.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def sqlite_session(sqlite_engine):
    from spendwatch.app.db import Base, SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        # tables are shared across the session-scoped engine; start each test clean
        with sqlite_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture()
def api_client(sqlite_engine, sqlite_session):
    from spendwatch.app.db import get_db
    from spendwatch.app.main import app
    from fastapi.testclient import TestClient

    def _get_test_db():
        yield sqlite_session

    app.dependency_overrides[get_db] = _get_test_db
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_db, None)
