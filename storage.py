"""
storage.py
----------
Read and write the user's finance data and hand it to the aggregator as
validated records.

Every dashboard request fetches its own :class:`DashboardSnapshot`; nothing is
cached between requests.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from config import DASHBOARD_WINDOW_DAYS, RECENT_TRANSACTIONS_LIMIT
from dashboard import build_dashboard_summary, compute_budget_progress
from database import Account, Budget, Category, PlaidItem, Transaction, User
from exceptions import InvalidInput
from records import (
    AccountRecord,
    BudgetRecord,
    BudgetWithSpent,
    CategoryRecord,
    DashboardSummary,
    DateWindow,
    TransactionRecord,
    TransactionWithAccount,
    UNKNOWN_ACCOUNT,
    validate_records,
)

logger = logging.getLogger(__name__)


# --- ORM row -> record mapping ---

def account_to_row(account: Account) -> dict:
    return {
        "id": account.account_id,
        "name": account.name,
        "official_name": account.official_name,
        "type": account.type,
        "subtype": account.subtype,
        "mask": account.mask,
        "balance_current": account.balance_current,
        "balance_available": account.balance_available,
        "balance_limit": account.balance_limit,
        "iso_currency_code": account.balance_iso_currency_code or "USD",
    }


def transaction_to_row(txn: Transaction) -> dict:
    return {
        "id": txn.transaction_id,
        "account_id": txn.account_id,
        "amount": txn.amount,
        "date": txn.date,
        "name": txn.name,
        "merchant_name": txn.merchant_name,
        "category": txn.category,
        "pending": bool(txn.pending),
    }


def budget_to_row(budget: Budget) -> dict:
    return {"id": budget.id, "name": budget.name, "amount": budget.amount, "category": budget.category}


def category_to_row(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "color": category.color,
        "is_default": bool(category.is_default),
    }


# --- Queries ---

def get_accounts_by_user_id(db: Session, user_id: str) -> List[AccountRecord]:
    rows = db.query(Account).filter(Account.user_id == user_id).order_by(Account.id).all()
    return validate_records(AccountRecord, [account_to_row(a) for a in rows])


def get_transactions_by_user_id(db: Session, user_id: str) -> List[TransactionRecord]:
    rows = (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id)
        .order_by(Transaction.date.desc(), Transaction.id)
        .all()
    )
    return validate_records(TransactionRecord, [transaction_to_row(t) for t in rows])


def get_transactions_by_date_range(db: Session, user_id: str, window: DateWindow) -> List[TransactionRecord]:
    """Transactions dated inside ``window`` (both ends included), newest first."""
    rows = (
        db.query(Transaction)
        .filter(
            Transaction.user_id == user_id,
            Transaction.date >= window.start,
            Transaction.date <= window.end,
        )
        .order_by(Transaction.date.desc(), Transaction.id)
        .all()
    )
    return validate_records(TransactionRecord, [transaction_to_row(t) for t in rows])


def get_transactions_with_account_names(
    db: Session,
    user_id: str,
    window: Optional[DateWindow] = None,
    today: Optional[date] = None,
) -> List[TransactionWithAccount]:
    """
    List the user's transactions, newest first, each with its account's name.

    Without a ``window`` the trailing ``DASHBOARD_WINDOW_DAYS`` days up to
    ``today`` are listed. Transactions whose account is not linked for the user
    show ``"Unknown Account"``.
    """
    if window is None:
        window = DateWindow.trailing_days(today or date.today(), DASHBOARD_WINDOW_DAYS)
    names = {a.id: a.name for a in get_accounts_by_user_id(db, user_id)}
    return [
        TransactionWithAccount(**t.model_dump(), account_name=names.get(t.account_id) or UNKNOWN_ACCOUNT)
        for t in get_transactions_by_date_range(db, user_id, window)
    ]


def get_budgets_by_user_id(db: Session, user_id: str) -> List[BudgetRecord]:
    rows = db.query(Budget).filter(Budget.user_id == user_id).order_by(Budget.id).all()
    return validate_records(BudgetRecord, [budget_to_row(b) for b in rows])


def get_categories_by_user_id(db: Session, user_id: str) -> List[CategoryRecord]:
    rows = db.query(Category).filter(Category.user_id == user_id).order_by(Category.name).all()
    return validate_records(CategoryRecord, [category_to_row(c) for c in rows])


# --- Dashboard ---

class DashboardSnapshot(BaseModel):
    """Everything one dashboard request reads, fetched together."""

    model_config = ConfigDict(frozen=True)

    window: DateWindow
    accounts: List[AccountRecord]
    transactions: List[TransactionRecord]
    month_transactions: List[TransactionRecord]
    budgets: List[BudgetRecord]


def fetch_dashboard_snapshot(
    db: Session,
    user_id: str,
    today: Optional[date] = None,
    window_days: int = DASHBOARD_WINDOW_DAYS,
) -> DashboardSnapshot:
    today = today or date.today()
    window = DateWindow.trailing_days(today, window_days)
    return DashboardSnapshot(
        window=window,
        accounts=get_accounts_by_user_id(db, user_id),
        transactions=get_transactions_by_date_range(db, user_id, window),
        month_transactions=get_transactions_by_date_range(db, user_id, DateWindow.month_to_date(today)),
        budgets=get_budgets_by_user_id(db, user_id),
    )


def get_dashboard_summary(
    db: Session,
    user_id: str,
    today: Optional[date] = None,
    recent_limit: int = RECENT_TRANSACTIONS_LIMIT,
) -> DashboardSummary:
    snapshot = fetch_dashboard_snapshot(db, user_id, today=today)
    logger.debug(
        "Dashboard snapshot for %s: %d accounts, %d transactions in %s..%s",
        user_id,
        len(snapshot.accounts),
        len(snapshot.transactions),
        snapshot.window.start,
        snapshot.window.end,
    )
    return build_dashboard_summary(
        snapshot.accounts,
        snapshot.transactions,
        snapshot.budgets,
        snapshot.month_transactions,
        recent_limit=recent_limit,
    )


def get_budgets_with_spent(db: Session, user_id: str, today: Optional[date] = None) -> List[BudgetWithSpent]:
    """Each budget with what has been spent against it so far this month."""
    today = today or date.today()
    month_txns = get_transactions_by_date_range(db, user_id, DateWindow.month_to_date(today))
    return [compute_budget_progress(b, month_txns) for b in get_budgets_by_user_id(db, user_id)]


# --- Users, items, accounts, transactions ---

def upsert_user(db: Session, user_id: str, email: Optional[str] = None,
                first_name: Optional[str] = None, last_name: Optional[str] = None) -> User:
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id)
        db.add(user)
    user.email = email
    user.first_name = first_name
    user.last_name = last_name
    db.commit()
    return user


def get_plaid_item_by_item_id(db: Session, item_id: str) -> Optional[PlaidItem]:
    return db.query(PlaidItem).filter(PlaidItem.item_id == item_id).first()


def get_plaid_items_by_user_id(db: Session, user_id: str) -> List[PlaidItem]:
    return db.query(PlaidItem).filter(PlaidItem.user_id == user_id).order_by(PlaidItem.id).all()


def create_plaid_item(db: Session, user_id: str, item_id: str, access_token: str) -> PlaidItem:
    item = PlaidItem(user_id=user_id, item_id=item_id, access_token=access_token, status="active")
    db.add(item)
    db.flush()
    return item


def get_account_by_account_id(db: Session, account_id: str) -> Optional[Account]:
    return db.query(Account).filter(Account.account_id == account_id).first()


def upsert_account(db: Session, user_id: str, item_pk: int, row: dict) -> Account:
    """Insert or refresh an account keyed by its provider ``account_id``. Does not commit."""
    account = get_account_by_account_id(db, row["account_id"])
    if account is None:
        account = Account(user_id=user_id, item_id=item_pk)
        db.add(account)
    for key, value in row.items():
        setattr(account, key, value)
    return account


def upsert_transaction(db: Session, user_id: str, row: dict) -> Transaction:
    """Insert or refresh a transaction keyed by its provider ``transaction_id``. Does not commit."""
    txn = db.query(Transaction).filter(Transaction.transaction_id == row["transaction_id"]).first()
    if txn is None:
        txn = Transaction(user_id=user_id)
        db.add(txn)
    for key, value in row.items():
        setattr(txn, key, value)
    return txn


def update_transaction_category(db: Session, user_id: str, transaction_id: str, category: str) -> TransactionRecord:
    if not category:
        raise InvalidInput("Category is required")
    txn = (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id, Transaction.transaction_id == transaction_id)
        .first()
    )
    if txn is None:
        raise LookupError(f"Transaction {transaction_id} not found")
    txn.category = category
    db.commit()
    return validate_records(TransactionRecord, [transaction_to_row(txn)])[0]


# --- Budgets ---

def _to_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInput(f"Budget amount {value!r} is not a number") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidInput(f"Budget amount must be a positive number, got {value!r}")
    return amount


def _get_owned_budget(db: Session, user_id: str, budget_id: int) -> Budget:
    budget = db.query(Budget).filter(Budget.id == budget_id, Budget.user_id == user_id).first()
    if budget is None:
        raise LookupError(f"Budget {budget_id} not found")
    return budget


def create_budget(db: Session, user_id: str, name: str, amount, category: Optional[str] = None) -> BudgetRecord:
    if not name:
        raise InvalidInput("Name and amount are required")
    budget = Budget(user_id=user_id, name=name, amount=_to_amount(amount), category=category or None)
    db.add(budget)
    db.commit()
    logger.info("Created budget %s (%s) for %s", budget.id, name, user_id)
    return validate_records(BudgetRecord, [budget_to_row(budget)])[0]


def update_budget(db: Session, user_id: str, budget_id: int, **changes) -> BudgetRecord:
    """Change ``name``, ``amount`` and/or ``category`` of a budget the user owns."""
    unknown = set(changes) - {"name", "amount", "category"}
    if unknown:
        raise InvalidInput(f"Unknown budget fields: {', '.join(sorted(unknown))}")

    if "name" in changes and not changes["name"]:
        raise InvalidInput("Budget name cannot be empty")
    if "amount" in changes:
        changes["amount"] = _to_amount(changes["amount"])
    if "category" in changes:
        changes["category"] = changes["category"] or None

    # nothing touches the row until every change has been checked
    budget = _get_owned_budget(db, user_id, budget_id)
    for field, value in changes.items():
        setattr(budget, field, value)
    db.commit()
    return validate_records(BudgetRecord, [budget_to_row(budget)])[0]


def delete_budget(db: Session, user_id: str, budget_id: int) -> None:
    budget = _get_owned_budget(db, user_id, budget_id)
    db.delete(budget)
    db.commit()
    logger.info("Deleted budget %s for %s", budget_id, user_id)


# --- Categories ---

def _get_owned_category(db: Session, user_id: str, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id, Category.user_id == user_id).first()
    if category is None:
        raise LookupError(f"Category {category_id} not found")
    return category


def create_category(db: Session, user_id: str, name: str, color: Optional[str] = None,
                    is_default: bool = False) -> CategoryRecord:
    if not name:
        raise InvalidInput("Category name is required")
    category = Category(user_id=user_id, name=name, color=color or "#3B82F6", is_default=is_default)
    db.add(category)
    db.commit()
    return validate_records(CategoryRecord, [category_to_row(category)])[0]


def update_category(db: Session, user_id: str, category_id: int, name: Optional[str] = None,
                    color: Optional[str] = None) -> CategoryRecord:
    category = _get_owned_category(db, user_id, category_id)
    if name:
        category.name = name
    if color:
        category.color = color
    db.commit()
    return validate_records(CategoryRecord, [category_to_row(category)])[0]


def delete_category(db: Session, user_id: str, category_id: int) -> None:
    category = _get_owned_category(db, user_id, category_id)
    db.delete(category)
    db.commit()
