import datetime
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import plaid
from plaid.api import plaid_api
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products
from plaid.model.transactions_get_request import TransactionsGetRequest
from plaid.model.transactions_get_request_options import TransactionsGetRequestOptions
from sqlalchemy.orm import Session

from config import DASHBOARD_WINDOW_DAYS, PLAID_CLIENT_ID, PLAID_ENV, PLAID_SECRET
from exceptions import PlaidConfigError
from records import AccountRecord, TransactionRecord, validate_records
import storage

logger = logging.getLogger(__name__)

CLIENT_NAME = "Personal Finance Tracker"
PAGE_SIZE = 500

PLAID_HOSTS = {
    "sandbox": plaid.Environment.Sandbox,
    "production": plaid.Environment.Production,
}

_client = None


# --- Plaid Client Setup ---
def get_client() -> plaid_api.PlaidApi:
    """
    Build the Plaid API client on first use.

    Raises:
        PlaidConfigError: if credentials are not set or ``PLAID_ENV`` is unknown.
    """
    global _client
    if _client is not None:
        return _client

    if not PLAID_CLIENT_ID or not PLAID_SECRET:
        raise PlaidConfigError("Plaid credentials not set in .env")
    host = PLAID_HOSTS.get(PLAID_ENV)
    if host is None:
        raise PlaidConfigError(f"Unknown PLAID_ENV {PLAID_ENV!r}; expected one of {sorted(PLAID_HOSTS)}")

    logger.info("Configuring Plaid client for %s environment", PLAID_ENV)
    configuration = plaid.Configuration(
        host=host,
        api_key={
            "clientId": PLAID_CLIENT_ID,
            "secret": PLAID_SECRET,
        },
    )
    _client = plaid_api.PlaidApi(plaid.ApiClient(configuration))
    return _client


# --- Normalization ---

def _plain(value):
    # Plaid enum wrappers (AccountType, ...) carry the raw string in .value
    return getattr(value, "value", value)


def _to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _to_date(value):
    if isinstance(value, str):
        return datetime.date.fromisoformat(value)
    return value


def plaid_account_to_row(account: dict) -> dict:
    """Map a Plaid account payload onto ``accounts`` columns."""
    balances = account.get("balances") or {}
    row = {
        "account_id": account.get("account_id"),
        "name": account.get("name"),
        "official_name": account.get("official_name") or account.get("name"),
        "type": _plain(account.get("type")),
        "subtype": _plain(account.get("subtype")),
        "mask": account.get("mask"),
        "balance_available": _to_decimal(balances.get("available")) or Decimal("0"),
        "balance_current": _to_decimal(balances.get("current")) or Decimal("0"),
        "balance_limit": _to_decimal(balances.get("limit")),
        "balance_iso_currency_code": balances.get("iso_currency_code") or "USD",
    }
    validate_records(AccountRecord, [dict(row, id=row["account_id"])])
    return row


def plaid_category(txn: dict) -> Optional[str]:
    """
    Join the legacy category hierarchy into "Food and Drink, Restaurants" form.

    ``personal_finance_category`` (upper-snake keys like "FOOD_AND_DRINK") is
    ignored; a transaction without the legacy list has no category.
    """
    category = txn.get("category")
    return ", ".join(category) if category else None


def plaid_transaction_to_row(txn: dict) -> dict:
    """
    Map a Plaid transaction payload onto ``transactions`` columns.

    The amount keeps Plaid's sign: positive is money out of the account.

    Raises:
        InvalidInput: if the payload lacks an id, an amount, a date or a name.
    """
    row = {
        "transaction_id": txn.get("transaction_id"),
        "account_id": txn.get("account_id"),
        "amount": _to_decimal(txn.get("amount")),
        "date": _to_date(txn.get("date")),
        "name": txn.get("name"),
        "merchant_name": txn.get("merchant_name"),
        "category": plaid_category(txn),
        "category_id": txn.get("category_id"),
        "pending": bool(txn.get("pending")),
        "payment_channel": _plain(txn.get("payment_channel")),
        "iso_currency_code": txn.get("iso_currency_code") or "USD",
    }
    validate_records(TransactionRecord, [dict(row, id=row["transaction_id"])])
    return row


# --- API calls ---

def create_link_token(user_id: str, client=None) -> dict:
    """
    Generates a Link Token to initialize Plaid Link on the client side.
    """
    client = client or get_client()
    request = LinkTokenCreateRequest(
        products=[Products("transactions"), Products("auth")],
        client_name=CLIENT_NAME,
        country_codes=[CountryCode("US")],
        language="en",
        user=LinkTokenCreateRequestUser(client_user_id=user_id),
    )
    try:
        response = client.link_token_create(request)
    except plaid.ApiException:
        logger.exception("Error creating link token for %s", user_id)
        raise
    return response.to_dict()


def exchange_public_token(db: Session, user_id: str, public_token: str, client=None) -> dict:
    """
    Exchange the public token from Plaid Link for an access token, store the
    item and its accounts, then pull the recent transactions.
    """
    client = client or get_client()
    try:
        exchange = client.item_public_token_exchange(
            ItemPublicTokenExchangeRequest(public_token=public_token)
        ).to_dict()
        access_token = exchange["access_token"]
        item_id = exchange["item_id"]
        accounts = client.accounts_get(AccountsGetRequest(access_token=access_token)).to_dict()["accounts"]
    except plaid.ApiException:
        logger.exception("Error exchanging public token for %s", user_id)
        raise

    item = storage.get_plaid_item_by_item_id(db, item_id)
    if item is None:
        item = storage.create_plaid_item(db, user_id, item_id, access_token)

    rows = [plaid_account_to_row(a) for a in accounts]
    for row in rows:
        storage.upsert_account(db, user_id, item.id, row)
    db.commit()
    logger.info("Linked item %s with %d accounts for %s", item_id, len(rows), user_id)

    sync_transactions(db, user_id, access_token, client=client)

    return {
        "item_id": item.id,
        "accounts": validate_records(AccountRecord, [dict(r, id=r["account_id"]) for r in rows]),
    }


def sync_transactions(
    db: Session,
    user_id: str,
    access_token: str,
    today: Optional[datetime.date] = None,
    days: int = DASHBOARD_WINDOW_DAYS,
    client=None,
) -> int:
    """
    Pull the last ``days`` days of transactions for one item and upsert them.

    Returns:
        The number of transactions received from Plaid.
    """
    client = client or get_client()
    end_date = today or datetime.date.today()
    start_date = end_date - datetime.timedelta(days=days)

    fetched = []
    while True:
        request = TransactionsGetRequest(
            access_token=access_token,
            start_date=start_date,
            end_date=end_date,
            options=TransactionsGetRequestOptions(count=PAGE_SIZE, offset=len(fetched)),
        )
        try:
            response = client.transactions_get(request).to_dict()
        except plaid.ApiException:
            logger.exception("Error syncing transactions for %s", user_id)
            raise
        page = response.get("transactions", [])
        fetched.extend(page)
        if not page or len(fetched) >= response.get("total_transactions", 0):
            break

    # a malformed payload anywhere fails the sync before anything is written
    rows = [plaid_transaction_to_row(txn) for txn in fetched]
    for row in rows:
        storage.upsert_transaction(db, user_id, row)
    db.commit()
    logger.info("Synced %d transactions for %s (%s..%s)", len(fetched), user_id, start_date, end_date)
    return len(fetched)


def sync_user_items(db: Session, user_id: str, today: Optional[datetime.date] = None, client=None) -> int:
    """Sync every item the user has linked. Returns the total transaction count."""
    total = 0
    for item in storage.get_plaid_items_by_user_id(db, user_id):
        total += sync_transactions(db, user_id, item.access_token, today=today, client=client)
    return total
