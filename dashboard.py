# dashboard.py: the numbers behind the dashboard views
#
# Every function here is pure: records in, numbers out. Amounts follow the
# provider convention (positive = money out, negative = money in). Window
# filtering is done by whoever fetched the records; nothing here re-filters.

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from exceptions import InvalidInput
from records import (
    AccountRecord,
    BudgetRecord,
    BudgetWithSpent,
    DashboardSummary,
    TransactionRecord,
)

ZERO = Decimal("0")
MONTHS_IN_YEAR = 12
DEFAULT_RECENT_LIMIT = 10

WARNING_THRESHOLD = 70
DANGER_THRESHOLD = 90


def compute_total_balance(accounts: Iterable[AccountRecord]) -> Decimal:
    return sum((a.balance_current for a in accounts), ZERO)


def compute_income_and_expenses(transactions: Iterable[TransactionRecord]) -> Tuple[Decimal, Decimal]:
    """
    Split the transactions into money in and money out.

    Returns:
        ``(income, expenses)``, both non-negative. Zero amounts count for neither.
    """
    income = ZERO
    expenses = ZERO
    for t in transactions:
        if t.amount < 0:
            income += abs(t.amount)
        elif t.amount > 0:
            expenses += t.amount
    return income, expenses


def compute_spending_by_category(transactions: Iterable[TransactionRecord]) -> Dict[str, Decimal]:
    """
    Sum expenses per canonical category (first segment of the category path).

    Transactions with no category are left out. One whose first segment is
    blank lands under ``"Other"``.
    """
    by_cat: Dict[str, Decimal] = {}
    for t in transactions:
        if t.amount <= 0:
            continue
        category = t.canonical_category
        if category is None:
            continue
        by_cat[category] = by_cat.get(category, ZERO) + t.amount
    return by_cat


def rank_spending_by_category(spending: Dict[str, Decimal]) -> pd.DataFrame:
    """Spending per category as a frame, biggest first (ties by name)."""
    rows = sorted(spending.items(), key=lambda kv: (-kv[1], kv[0]))
    return pd.DataFrame(rows, columns=["Category", "Amount"])


def compute_monthly_expense_series(transactions: Iterable[TransactionRecord]) -> List[Decimal]:
    """
    Expenses per calendar month, index 0 = January.

    Same-numbered months of different years land in the same bucket. Use
    :func:`compute_monthly_expense_series_by_year` to keep years apart.
    """
    monthly = [ZERO] * MONTHS_IN_YEAR
    for t in transactions:
        if t.amount > 0:
            monthly[t.date.month - 1] += t.amount
    return monthly


def transactions_to_df(transactions: Iterable[TransactionRecord]) -> pd.DataFrame:
    df = pd.DataFrame(
        [
            {
                "Date": t.date,
                "Amount": t.amount,
                "Category": t.canonical_category,
                "Description": t.merchant_name or t.name,
            }
            for t in transactions
        ],
        columns=["Date", "Amount", "Category", "Description"],
    )
    df["Date"] = pd.to_datetime(df["Date"])
    df["Month"] = df["Date"].dt.to_period("M").astype(str)
    return df


def compute_monthly_expense_series_by_year(transactions: Iterable[TransactionRecord]) -> Dict[str, Decimal]:
    """Expenses per ``YYYY-MM`` month, in chronological order. Months with no expenses are absent."""
    df = transactions_to_df(transactions)
    expenses = df[df["Amount"] > ZERO]
    if expenses.empty:
        return {}

    monthly = expenses.groupby("Month")["Amount"].sum()
    return {month: Decimal(amount) for month, amount in monthly.items()}


def _matches_budget(budget: BudgetRecord, t: TransactionRecord) -> bool:
    if budget.category is None:
        return True
    if not t.category:
        return False
    return budget.category.lower() in t.category.lower()


def compute_budget_spent(budget: BudgetRecord, transactions: Iterable[TransactionRecord]) -> Decimal:
    return sum((t.amount for t in transactions if t.amount > 0 and _matches_budget(budget, t)), ZERO)


def compute_budget_progress(budget: BudgetRecord, transactions: Iterable[TransactionRecord]) -> BudgetWithSpent:
    """
    Attach the amount spent against ``budget``.

    ``transactions`` should be the current calendar month's transactions.
    A budget without a category counts every expense; otherwise a transaction
    counts when its category path contains the budget category, ignoring case.
    """
    spent = compute_budget_spent(budget, transactions)
    return BudgetWithSpent(**budget.model_dump(exclude={"spent"}), spent=spent)


def budget_progress_percentage(spent: Decimal, amount: Decimal) -> int:
    """Whole percent of the limit used, capped at 100. A non-positive limit reads as 0%."""
    if amount <= 0:
        return 0
    pct = (Decimal(spent) / Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return min(int(pct), 100)


def budget_progress_color(percentage: int) -> str:
    if percentage < WARNING_THRESHOLD:
        return "ok"
    if percentage < DANGER_THRESHOLD:
        return "warning"
    return "danger"


def select_recent_transactions(
    transactions: Sequence[TransactionRecord],
    limit: int = DEFAULT_RECENT_LIMIT,
) -> List[TransactionRecord]:
    """Newest ``limit`` transactions; same-day transactions keep their input order."""
    if limit < 0:
        raise InvalidInput(f"limit must be non-negative, got {limit}")
    # sorted() is stable with reverse=True as well
    return sorted(transactions, key=lambda t: t.date, reverse=True)[:limit]


def build_dashboard_summary(
    accounts: Sequence[AccountRecord],
    transactions: Sequence[TransactionRecord],
    budgets: Sequence[BudgetRecord],
    month_transactions: Sequence[TransactionRecord],
    recent_limit: int = DEFAULT_RECENT_LIMIT,
) -> DashboardSummary:
    """
    Compute every dashboard figure from one snapshot of the user's data.

    Args:
        accounts: the user's linked accounts.
        transactions: transactions inside the dashboard window.
        budgets: the user's budget definitions.
        month_transactions: transactions of the current calendar month, used
            for budget progress.
        recent_limit: how many transactions to surface as recent activity.
    """
    income, expenses = compute_income_and_expenses(transactions)
    return DashboardSummary(
        total_balance=compute_total_balance(accounts),
        income=income,
        expenses=expenses,
        recent_transactions=select_recent_transactions(transactions, recent_limit),
        spending_by_category=compute_spending_by_category(transactions),
        budgets=[compute_budget_progress(b, month_transactions) for b in budgets],
        monthly_data=compute_monthly_expense_series(transactions),
    )
