from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from records import AccountRecord, BudgetRecord, TransactionRecord


@pytest.fixture
def engine():
    """an in-memory database shared by every session of one test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_account():
    """return a function that builds an account record with a given current balance"""
    counter = iter(range(1, 10_000))

    def _make(balance_current, **overrides) -> AccountRecord:
        idx = next(counter)
        fields = {
            "id": f"acc-{idx}",
            "name": f"Account {idx}",
            "type": "depository",
            "balance_current": Decimal(str(balance_current)),
            "balance_available": Decimal(str(balance_current)),
        }
        fields.update(overrides)
        return AccountRecord(**fields)

    return _make


@pytest.fixture
def make_txn():
    """return a function that builds a transaction record"""
    counter = iter(range(1, 10_000))

    def _make(amount, category=None, on=date(2024, 3, 1), **overrides) -> TransactionRecord:
        idx = next(counter)
        fields = {
            "id": f"txn-{idx}",
            "account_id": "acc-1",
            "amount": Decimal(str(amount)),
            "date": on,
            "name": f"Transaction {idx}",
            "category": category,
        }
        fields.update(overrides)
        return TransactionRecord(**fields)

    return _make


@pytest.fixture
def make_budget():
    counter = iter(range(1, 10_000))

    def _make(amount, category=None, name="Budget") -> BudgetRecord:
        return BudgetRecord(id=next(counter), name=name, amount=Decimal(str(amount)), category=category)

    return _make
