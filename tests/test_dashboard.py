import random
from datetime import date
from decimal import Decimal

import pytest

from dashboard import (
    budget_progress_color,
    budget_progress_percentage,
    build_dashboard_summary,
    compute_budget_progress,
    compute_budget_spent,
    compute_income_and_expenses,
    compute_monthly_expense_series,
    compute_monthly_expense_series_by_year,
    compute_spending_by_category,
    compute_total_balance,
    rank_spending_by_category,
    select_recent_transactions,
)
from exceptions import InvalidInput
from records import BudgetWithSpent


class TestEmptyInputs:
    def test_total_balance_of_no_accounts_is_zero(self):
        assert compute_total_balance([]) == Decimal("0")

    def test_income_and_expenses_of_no_transactions(self):
        assert compute_income_and_expenses([]) == (Decimal("0"), Decimal("0"))

    def test_monthly_series_is_twelve_zeros(self):
        assert compute_monthly_expense_series([]) == [Decimal("0")] * 12

    def test_spending_by_category_is_empty(self):
        assert compute_spending_by_category([]) == {}

    def test_year_aware_series_is_empty(self):
        assert compute_monthly_expense_series_by_year([]) == {}

    def test_recent_transactions_is_empty(self):
        assert select_recent_transactions([]) == []

    def test_ranked_spending_is_empty_frame(self):
        ranked = rank_spending_by_category({})
        assert ranked.empty
        assert list(ranked.columns) == ["Category", "Amount"]

    def test_summary_of_nothing(self):
        summary = build_dashboard_summary([], [], [], [])
        assert summary.total_balance == 0
        assert summary.income == 0
        assert summary.expenses == 0
        assert summary.recent_transactions == []
        assert summary.spending_by_category == {}
        assert summary.budgets == []
        assert summary.monthly_data == [Decimal("0")] * 12


def test_total_balance_sums_current_balances(make_account):
    accounts = [make_account("1000.00"), make_account("-250.50")]
    assert compute_total_balance(accounts) == Decimal("749.50")


def test_total_balance_has_no_float_drift(make_account):
    accounts = [make_account("0.10") for _ in range(3)]
    assert compute_total_balance(accounts) == Decimal("0.30")


def test_total_balance_ignores_available_balance(make_account):
    accounts = [make_account("100", balance_available=Decimal("5"))]
    assert compute_total_balance(accounts) == Decimal("100")


def test_income_and_expenses_follow_the_provider_sign(make_txn):
    txns = [make_txn(50, "Food, Restaurants"), make_txn(-2000)]
    income, expenses = compute_income_and_expenses(txns)
    assert income == Decimal("2000")
    assert expenses == Decimal("50")


def test_zero_amounts_count_for_neither(make_txn):
    assert compute_income_and_expenses([make_txn(0), make_txn("0.00")]) == (0, 0)


def test_income_and_expenses_do_not_refilter_by_date(make_txn):
    txns = [make_txn(10, on=date(1999, 1, 1)), make_txn(-5, on=date(2050, 1, 1))]
    assert compute_income_and_expenses(txns) == (Decimal("5"), Decimal("10"))


def test_income_and_expenses_are_order_independent(make_txn):
    rng = random.Random(7)
    txns = [make_txn(Decimal(rng.randint(-50000, 50000)) / 100) for _ in range(200)]
    expected = compute_income_and_expenses(txns)
    for _ in range(5):
        shuffled = list(txns)
        rng.shuffle(shuffled)
        assert compute_income_and_expenses(shuffled) == expected


def test_spending_by_category_uses_first_segment(make_txn):
    txns = [
        make_txn(50, "Food, Restaurants"),
        make_txn(-2000),
    ]
    assert compute_spending_by_category(txns) == {"Food": Decimal("50")}


def test_spending_by_category_accumulates_and_trims(make_txn):
    txns = [
        make_txn("12.50", "Food and Drink, Restaurants, Coffee Shop"),
        make_txn("43.20", "  Food and Drink ,Restaurants"),
        make_txn("24.00", "Travel, Taxi"),
    ]
    assert compute_spending_by_category(txns) == {
        "Food and Drink": Decimal("55.70"),
        "Travel": Decimal("24.00"),
    }


def test_spending_by_category_skips_income_zero_and_uncategorized(make_txn):
    txns = [
        make_txn(-40, "Food"),
        make_txn(0, "Food"),
        make_txn(25, None),
        make_txn(30, ""),
        make_txn(10, "Food"),
    ]
    assert compute_spending_by_category(txns) == {"Food": Decimal("10")}
    assert "Other" not in compute_spending_by_category(txns)


def test_spending_by_category_files_blank_first_segment_under_other(make_txn):
    txns = [make_txn(40, " , Restaurants"), make_txn(10, "Food")]
    spending = compute_spending_by_category(txns)
    assert spending == {"Food": Decimal("10"), "Other": Decimal("40")}
    assert sum(spending.values()) == Decimal("50")


def test_spending_by_category_sums_to_categorized_expenses(make_txn):
    rng = random.Random(3)
    categories = [None, "Food, Groceries", "Travel", "Shops, Clothing", "Food and Drink", " , Restaurants"]
    txns = [
        make_txn(Decimal(rng.randint(-10000, 10000)) / 100, rng.choice(categories))
        for _ in range(100)
    ]
    categorized = [t for t in txns if t.category]
    _, categorized_expenses = compute_income_and_expenses(categorized)
    assert sum(compute_spending_by_category(txns).values()) == categorized_expenses


def test_rank_spending_by_category_biggest_first():
    ranked = rank_spending_by_category({"Travel": Decimal("24"), "Food": Decimal("55.70"), "Bars": Decimal("24")})
    assert list(ranked["Category"]) == ["Food", "Bars", "Travel"]
    assert list(ranked["Amount"]) == [Decimal("55.70"), Decimal("24"), Decimal("24")]


def test_monthly_series_buckets_by_calendar_month(make_txn):
    txns = [
        make_txn(10, on=date(2024, 1, 31)),
        make_txn(20, on=date(2024, 12, 1)),
        make_txn(-99, on=date(2024, 12, 2)),
    ]
    series = compute_monthly_expense_series(txns)
    assert len(series) == 12
    assert series[0] == Decimal("10")
    assert series[11] == Decimal("20")
    assert sum(series[1:11]) == 0


def test_monthly_series_collapses_years(make_txn):
    txns = [make_txn(100, on=date(2023, 3, 5)), make_txn(150, on=date(2024, 3, 9))]
    assert compute_monthly_expense_series(txns)[2] == Decimal("250")


def test_year_aware_series_keeps_years_apart(make_txn):
    txns = [
        make_txn(150, on=date(2024, 3, 9)),
        make_txn(100, on=date(2023, 3, 5)),
        make_txn(-500, on=date(2023, 4, 1)),
    ]
    assert compute_monthly_expense_series_by_year(txns) == {
        "2023-03": Decimal("100"),
        "2024-03": Decimal("150"),
    }
    assert list(compute_monthly_expense_series_by_year(txns)) == ["2023-03", "2024-03"]


def test_monthly_series_sums_to_expenses(make_txn):
    rng = random.Random(11)
    txns = [
        make_txn(
            Decimal(rng.randint(-5000, 5000)) / 100,
            on=date(rng.choice([2022, 2023, 2024]), rng.randint(1, 12), rng.randint(1, 28)),
        )
        for _ in range(150)
    ]
    series = compute_monthly_expense_series(txns)
    assert len(series) == 12
    assert sum(series) == compute_income_and_expenses(txns)[1]


def test_budget_without_category_counts_every_expense(make_txn, make_budget):
    txns = [make_txn(10, "Food"), make_txn(20, None), make_txn(-500, "Transfer"), make_txn(0, "Food")]
    assert compute_budget_spent(make_budget(100), txns) == Decimal("30")


def test_budget_category_matches_substring_ignoring_case(make_txn, make_budget):
    budget = make_budget(100, category="food")
    txns = [
        make_txn(10, "Food and Drink, Restaurants"),
        make_txn(5, "Shops, Seafood Market"),
        make_txn(7, "Travel"),
        make_txn(9, None),
        make_txn(-3, "Food"),
    ]
    assert compute_budget_spent(budget, txns) == Decimal("15")


def test_budget_progress_scenario(make_txn, make_budget):
    budget = make_budget(200, category="Food")
    progress = compute_budget_progress(budget, [make_txn(50, "Food and Drink")])

    assert isinstance(progress, BudgetWithSpent)
    assert progress.spent == Decimal("50")
    assert progress.id == budget.id
    assert progress.amount == Decimal("200")
    assert progress.category == "Food"

    pct = budget_progress_percentage(progress.spent, progress.amount)
    assert pct == 25
    assert budget_progress_color(pct) == "ok"


@pytest.mark.parametrize(
    "spent, amount, expected",
    [
        ("0", "100", 0),
        ("1", "8", 13),        # 12.5 rounds up
        ("1", "3", 33),
        ("199", "200", 100),   # 99.5 rounds up
        ("300", "200", 100),   # capped
        ("50", "0", 0),
        ("50", "-10", 0),
    ],
)
def test_budget_progress_percentage(spent, amount, expected):
    assert budget_progress_percentage(Decimal(spent), Decimal(amount)) == expected


@pytest.mark.parametrize(
    "percentage, color",
    [(0, "ok"), (69, "ok"), (70, "warning"), (89, "warning"), (90, "danger"), (100, "danger")],
)
def test_budget_progress_color(percentage, color):
    assert budget_progress_color(percentage) == color


def test_recent_transactions_newest_first_with_stable_ties(make_txn):
    a = make_txn(1, on=date(2024, 3, 1))
    b = make_txn(2, on=date(2024, 3, 5))
    c = make_txn(3, on=date(2024, 3, 1))
    d = make_txn(4, on=date(2024, 3, 5))
    assert select_recent_transactions([a, b, c, d]) == [b, d, a, c]


def test_recent_transactions_default_limit_is_ten(make_txn):
    txns = [make_txn(i, on=date(2024, 1, i + 1)) for i in range(15)]
    recent = select_recent_transactions(txns)
    assert len(recent) == 10
    assert recent[0].date == date(2024, 1, 15)
    assert recent[-1].date == date(2024, 1, 6)


def test_recent_transactions_limit(make_txn):
    txns = [make_txn(1), make_txn(2)]
    assert select_recent_transactions(txns, limit=0) == []
    assert len(select_recent_transactions(txns, limit=5)) == 2
    with pytest.raises(InvalidInput):
        select_recent_transactions(txns, limit=-1)


def test_build_dashboard_summary(make_account, make_txn, make_budget):
    accounts = [make_account("1000.00"), make_account("-250.50")]
    window_txns = [
        make_txn(50, "Food, Restaurants", on=date(2024, 3, 1)),
        make_txn(-2000, None, on=date(2024, 3, 1)),
        make_txn(30, "Travel", on=date(2024, 2, 20)),
    ]
    month_txns = window_txns[:2]
    budgets = [make_budget(200, "Food"), make_budget(1000)]

    summary = build_dashboard_summary(accounts, window_txns, budgets, month_txns)

    assert summary.total_balance == Decimal("749.50")
    assert summary.income == Decimal("2000")
    assert summary.expenses == Decimal("80")
    assert summary.spending_by_category == {"Food": Decimal("50"), "Travel": Decimal("30")}
    assert summary.monthly_data[1] == Decimal("30")
    assert summary.monthly_data[2] == Decimal("50")
    # budgets only look at the current month
    assert [b.spent for b in summary.budgets] == [Decimal("50"), Decimal("50")]
    assert summary.recent_transactions == window_txns


def test_summary_serializes_with_consumer_field_names(make_account, make_txn):
    summary = build_dashboard_summary([make_account(10)], [make_txn(5, "Food")], [], [], recent_limit=1)
    dumped = summary.model_dump(by_alias=True)
    assert set(dumped) == {
        "totalBalance",
        "income",
        "expenses",
        "recentTransactions",
        "spendingByCategory",
        "budgets",
        "monthlyData",
    }
    assert len(dumped["monthlyData"]) == 12
    assert "accountId" in dumped["recentTransactions"][0]
