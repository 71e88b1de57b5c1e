import logging
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Database Setup
# Default to local SQLite, but allow override for a hosted Postgres
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///finance_tracker.db")

# --- Plaid ---
PLAID_CLIENT_ID = os.getenv("PLAID_CLIENT_ID", "").strip()
PLAID_SECRET = os.getenv("PLAID_SECRET", "").strip()
PLAID_ENV = os.getenv("PLAID_ENV", "sandbox").strip()

# --- Dashboard ---
DASHBOARD_WINDOW_DAYS = int(os.getenv("DASHBOARD_WINDOW_DAYS", "30"))
RECENT_TRANSACTIONS_LIMIT = int(os.getenv("RECENT_TRANSACTIONS_LIMIT", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = LOG_LEVEL):
    """Send every module logger to stderr with a timestamped format."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
