import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from database import Budget, init_db
import storage

logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo"

DEFAULT_CATEGORIES = [
    ("Food and Drink", "#10B981"),
    ("Groceries", "#10B981"),
    ("Transportation", "#3B82F6"),
    ("Travel", "#3B82F6"),
    ("Entertainment", "#EF4444"),
    ("Shopping", "#F59E0B"),
    ("Income", "#6B7280"),
    ("Payment", "#8B5CF6"),
    ("Transfer", "#2563EB"),
]

DEMO_ACCOUNTS = [
    {
        "account_id": "demo-checking",
        "name": "Everyday Checking",
        "type": "depository",
        "subtype": "checking",
        "mask": "0000",
        "balance_current": Decimal("2450.75"),
        "balance_available": Decimal("2400.75"),
    },
    {
        "account_id": "demo-credit",
        "name": "Rewards Card",
        "type": "credit",
        "subtype": "credit card",
        "mask": "3333",
        "balance_current": Decimal("-410.20"),
        "balance_available": Decimal("4589.80"),
        "balance_limit": Decimal("5000"),
    },
]

# (days ago, account, amount, name, category) -- positive amounts are money out
DEMO_TRANSACTIONS = [
    (1, "demo-credit", "12.50", "Blue Bottle Coffee", "Food and Drink, Restaurants, Coffee Shop"),
    (2, "demo-credit", "86.31", "Whole Foods", "Shops, Supermarkets and Groceries"),
    (3, "demo-checking", "-2200.00", "Payroll Deposit", "Transfer, Payroll"),
    (5, "demo-credit", "24.00", "Uber", "Travel, Taxi"),
    (8, "demo-credit", "59.99", "Concert Tickets", "Recreation, Arts and Entertainment"),
    (11, "demo-checking", "1500.00", "Rent", "Payment, Rent"),
    (14, "demo-credit", "43.20", "Trattoria", "Food and Drink, Restaurants"),
    (20, "demo-checking", "0.00", "Card Verification", None),
    (26, "demo-credit", "18.75", "Corner Store", None),
]

DEMO_BUDGETS = [
    ("Dining Out", "300", "Food and Drink"),
    ("Getting Around", "150", "Travel"),
    ("Everything", "3000", None),
]


def seed_demo_data(db: Session, today: date = None) -> bool:
    """Load a demo user with accounts, transactions, budgets and default categories.

    Returns False without touching anything when the demo user already has budgets.
    """
    today = today or date.today()
    if db.query(Budget).filter(Budget.user_id == DEMO_USER_ID).first():
        logger.info("Demo data already present. Skipping seed.")
        return False

    storage.upsert_user(db, DEMO_USER_ID, email="demo@example.com", first_name="Demo", last_name="User")
    item = storage.create_plaid_item(db, DEMO_USER_ID, "demo-item", "access-sandbox-demo")
    for row in DEMO_ACCOUNTS:
        storage.upsert_account(db, DEMO_USER_ID, item.id, row)

    for idx, (days_ago, account_id, amount, name, category) in enumerate(DEMO_TRANSACTIONS):
        storage.upsert_transaction(
            db,
            DEMO_USER_ID,
            {
                "transaction_id": f"demo-txn-{idx}",
                "account_id": account_id,
                "amount": Decimal(amount),
                "date": today - timedelta(days=days_ago),
                "name": name,
                "category": category,
            },
        )
    db.commit()

    for name, amount, category in DEMO_BUDGETS:
        storage.create_budget(db, DEMO_USER_ID, name, amount, category)
    for name, color in DEFAULT_CATEGORIES:
        storage.create_category(db, DEMO_USER_ID, name, color, is_default=True)

    logger.info("Database initialized with demo user %r.", DEMO_USER_ID)
    return True


if __name__ == "__main__":
    from config import configure_logging
    from database import SessionLocal

    configure_logging()
    init_db()
    with SessionLocal() as session:
        seed_demo_data(session)
