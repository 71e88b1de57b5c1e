"""Errors raised by the finance tracker."""


class FinanceTrackerError(Exception):
    """Base class for finance tracker errors."""


class InvalidInput(FinanceTrackerError, ValueError):
    """A record or argument does not satisfy the data contract."""


class PlaidConfigError(FinanceTrackerError, ValueError):
    """Plaid credentials are missing or the environment name is unknown."""
