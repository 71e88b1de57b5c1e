from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, create_engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from config import DATABASE_URL

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Fixed-point money: 19 digits, 4 after the point
Money = Numeric(19, 4, asdecimal=True)


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# --- Models ---

class User(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, nullable=True)
    first_name = Column(String)
    last_name = Column(String)


class PlaidItem(TimestampMixin, Base):
    """One connection to a financial institution."""

    __tablename__ = "plaid_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    item_id = Column(String, unique=True, nullable=False)
    access_token = Column(String, nullable=False)
    status = Column(String, nullable=False, default="active")

    accounts = relationship("Account", back_populates="item")


class Account(TimestampMixin, Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("plaid_items.id"), nullable=False)
    account_id = Column(String, unique=True, nullable=False)  # provider id
    name = Column(String, nullable=False)
    official_name = Column(String)
    type = Column(String, nullable=False)  # depository, credit, loan, investment, ...
    subtype = Column(String)               # checking, savings, credit card, ...
    mask = Column(String)                  # last 4 digits
    balance_available = Column(Money, default=0)
    balance_current = Column(Money, default=0)
    balance_limit = Column(Money, nullable=True)
    balance_iso_currency_code = Column(String, default="USD")

    item = relationship("PlaidItem", back_populates="accounts")


class Transaction(TimestampMixin, Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    account_id = Column(String, nullable=False)  # provider account id
    transaction_id = Column(String, unique=True, nullable=False)  # provider id
    amount = Column(Money, nullable=False)  # positive = money out
    date = Column(Date, nullable=False, index=True)
    name = Column(String, nullable=False)
    merchant_name = Column(String)
    category = Column(Text)  # "Food and Drink, Restaurants"
    category_id = Column(String)
    pending = Column(Boolean, default=False)
    payment_channel = Column(String)
    iso_currency_code = Column(String, default="USD")


class Budget(TimestampMixin, Base):
    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    amount = Column(Money, nullable=False)  # monthly limit
    category = Column(String, nullable=True)


class Category(TimestampMixin, Base):
    """User-defined label for re-tagging transactions."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, default="#3B82F6")
    is_default = Column(Boolean, default=False)


# --- Init DB ---
def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

