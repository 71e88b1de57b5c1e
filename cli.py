"""
cli.py
------

Command line entry point for the finance tracker.

Usage:

    python cli.py init-db
    python cli.py seed
    python cli.py dashboard --user demo [--today 2024-03-15] [--ranked]
    python cli.py transactions --user demo [--start 2024-03-01 --end 2024-03-15]
    python cli.py accounts --user demo
    python cli.py budgets --user demo
    python cli.py trend --user demo
    python cli.py sync --user demo
"""

import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

from config import LOG_LEVEL, RECENT_TRANSACTIONS_LIMIT, configure_logging
from dashboard import (
    budget_progress_color,
    budget_progress_percentage,
    compute_monthly_expense_series_by_year,
    rank_spending_by_category,
)
from database import SessionLocal, init_db
from exceptions import FinanceTrackerError, InvalidInput
from plaid_integration import sync_user_items
from records import DateWindow
from seed_db import seed_demo_data
import storage

logger = logging.getLogger(__name__)


def _cmd_init_db(args, db) -> None:
    init_db()
    print("Database tables created.")


def _cmd_seed(args, db) -> None:
    init_db()
    if seed_demo_data(db, today=args.today):
        print("Demo data loaded.")
    else:
        print("Demo data already present.")


def _cmd_dashboard(args, db) -> None:
    summary = storage.get_dashboard_summary(db, args.user, today=args.today, recent_limit=args.limit)
    if args.ranked:
        ranked = rank_spending_by_category(summary.spending_by_category)
        print(ranked.to_string(index=False) if not ranked.empty else "No categorized spending.")
        return
    print(summary.model_dump_json(by_alias=True, indent=2))


def _cmd_transactions(args, db) -> None:
    if (args.start is None) != (args.end is None):
        raise InvalidInput("--start and --end must be given together")
    window = DateWindow.between(args.start, args.end) if args.start else None
    transactions = storage.get_transactions_with_account_names(db, args.user, window=window, today=args.today)
    if not transactions:
        print("No transactions found.")
        return
    for t in transactions:
        pending = " (pending)" if t.pending else ""
        print(f"{t.date}  {t.account_name}  {t.merchant_name or t.name}  ${t.amount:,.2f}{pending}")


def _cmd_accounts(args, db) -> None:
    accounts = storage.get_accounts_by_user_id(db, args.user)
    if not accounts:
        print("No accounts linked yet")
        return
    for a in accounts:
        mask = f" ****{a.mask}" if a.mask else ""
        print(f"{a.name}{mask}: ${a.balance_current:,.2f}")


def _cmd_budgets(args, db) -> None:
    budgets = storage.get_budgets_with_spent(db, args.user, today=args.today)
    if not budgets:
        print("No budgets created yet")
        return
    for b in budgets:
        pct = budget_progress_percentage(b.spent, b.amount)
        print(f"{b.name}: ${b.spent:,.2f} / ${b.amount:,.2f} ({pct}%, {budget_progress_color(pct)})")


def _cmd_trend(args, db) -> None:
    series = compute_monthly_expense_series_by_year(storage.get_transactions_by_user_id(db, args.user))
    if not series:
        print("No expenses recorded.")
        return
    for month, amount in series.items():
        print(f"{month}  ${amount:,.2f}")


def _cmd_sync(args, db) -> None:
    count = sync_user_items(db, args.user, today=args.today)
    print(f"Synced {count} transactions")


COMMANDS = {
    "init-db": _cmd_init_db,
    "seed": _cmd_seed,
    "dashboard": _cmd_dashboard,
    "transactions": _cmd_transactions,
    "accounts": _cmd_accounts,
    "budgets": _cmd_budgets,
    "trend": _cmd_trend,
    "sync": _cmd_sync,
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Personal finance dashboard")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL from the environment.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables.")

    seed = sub.add_parser("seed", help="Load demo data.")
    seed.add_argument("--today", type=date.fromisoformat, default=None)

    for name, help_text in (
        ("dashboard", "Print the dashboard summary as JSON."),
        ("transactions", "List transactions with their account names."),
        ("accounts", "List linked accounts with their current balances."),
        ("budgets", "Show month-to-date progress for each budget."),
        ("trend", "Show expenses per month, keeping years apart."),
        ("sync", "Pull recent transactions for every linked institution."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--user", required=True, help="User id.")
        cmd.add_argument(
            "--today",
            type=date.fromisoformat,
            default=None,
            help="Evaluate as if today were this date (YYYY-MM-DD).",
        )
        if name == "dashboard":
            cmd.add_argument("--limit", type=int, default=RECENT_TRANSACTIONS_LIMIT,
                             help="Number of recent transactions to include.")
            cmd.add_argument("--ranked", action="store_true",
                             help="Print spending by category, biggest first, instead of JSON.")
        if name == "transactions":
            cmd.add_argument("--start", type=date.fromisoformat, default=None,
                             help="First day to list (YYYY-MM-DD); needs --end.")
            cmd.add_argument("--end", type=date.fromisoformat, default=None,
                             help="Last day to list (YYYY-MM-DD); needs --start.")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or LOG_LEVEL)

    with SessionLocal() as db:
        try:
            COMMANDS[args.command](args, db)
        except (FinanceTrackerError, LookupError) as exc:
            logger.error("%s failed: %s", args.command, exc)
            print(f"Error: {exc}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
