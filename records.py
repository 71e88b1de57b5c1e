"""Validated value types exchanged between the store, the aggregator and consumers.

Raw rows (provider payloads, ORM rows turned into mappings) are checked once,
at the data-fetch boundary, with :func:`validate_records`. Everything past that
point can rely on the field set and on money being ``Decimal``.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Annotated, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from exceptions import InvalidInput

Money = Annotated[Decimal, Field(allow_inf_nan=False)]

RecordT = TypeVar("RecordT", bound=BaseModel)

OTHER_CATEGORY = "Other"
UNKNOWN_ACCOUNT = "Unknown Account"


class Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AccountRecord(Record):
    id: str
    name: str
    official_name: Optional[str] = None
    type: str
    subtype: Optional[str] = None
    mask: Optional[str] = None
    balance_current: Money
    balance_available: Money
    balance_limit: Optional[Money] = None
    iso_currency_code: str = "USD"


class TransactionRecord(Record):
    id: str
    account_id: str
    # Provider sign convention: positive = money out, negative = money in
    amount: Money
    date: date
    name: str
    merchant_name: Optional[str] = None
    category: Optional[str] = None  # comma-joined path, e.g. "Food and Drink, Restaurants"
    pending: bool = False

    @property
    def canonical_category(self) -> Optional[str]:
        """
        First segment of the category path.

        None when the transaction has no category at all; a category whose first
        segment is blank (" , Restaurants") is filed under ``"Other"``.
        """
        if not self.category:
            return None
        head = self.category.split(",")[0].strip()
        return head or OTHER_CATEGORY


class TransactionWithAccount(TransactionRecord):
    """A transaction as listed to the user, with the name of its account."""

    account_name: str


class BudgetRecord(Record):
    id: int
    name: str
    amount: Money
    category: Optional[str] = None


class BudgetWithSpent(BudgetRecord):
    spent: Money


class CategoryRecord(Record):
    id: int
    name: str
    color: str = "#3B82F6"
    is_default: bool = False


class DateWindow(Record):
    """Inclusive ``[start, end]`` range of calendar days."""

    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self):
        if self.start > self.end:
            raise ValueError(f"window start {self.start} is after end {self.end}")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @classmethod
    def between(cls, start: date, end: date) -> "DateWindow":
        """Checked constructor: reversed bounds raise ``InvalidInput``."""
        if start > end:
            raise InvalidInput(f"window start {start} is after end {end}")
        return cls(start=start, end=end)

    @classmethod
    def trailing_days(cls, today: date, days: int) -> "DateWindow":
        if days < 0:
            raise InvalidInput(f"days must be non-negative, got {days}")
        return cls.between(today - timedelta(days=days), today)

    @classmethod
    def month_to_date(cls, today: date) -> "DateWindow":
        return cls.between(today.replace(day=1), today)


class DashboardSummary(Record):
    total_balance: Money
    income: Money
    expenses: Money
    recent_transactions: List[TransactionRecord]
    spending_by_category: Dict[str, Money]
    budgets: List[BudgetWithSpent]
    monthly_data: List[Money] = Field(min_length=12, max_length=12)


def validate_records(model: Type[RecordT], rows: Iterable[Mapping]) -> List[RecordT]:
    """
    Turn raw mappings into validated records.

    Raises:
        InvalidInput: if any row is missing a required field or carries a
            value of the wrong type (including non-finite amounts).
    """
    records = []
    for idx, row in enumerate(rows):
        try:
            records.append(model.model_validate(row))
        except ValidationError as exc:
            raise InvalidInput(f"{model.__name__} row {idx} is malformed: {exc}") from exc
    return records
