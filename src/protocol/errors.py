"""Ledger error taxonomy.

Every error is raised before any mutation is committed; the ledger facade
rolls back the records it touched when one escapes an operation.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""


# --- Configuration ---

class ConfigError(LedgerError, ValueError):
    """Unsupported asset/currency or invalid registration parameters."""


class NotFound(ConfigError):
    """Referenced asset, currency or record was never registered."""


class InvalidConfig(ConfigError):
    """Registration parameters violate a registry invariant."""


class UnsupportedAsset(ConfigError):
    pass


class UnsupportedCurrency(ConfigError):
    pass


class InvalidAmount(ConfigError):
    pass


class InvalidBatchSize(ConfigError):
    """Batch is empty or exceeds the per-call bound."""


# --- Authorization ---

class AuthorizationError(LedgerError, PermissionError):
    """Caller is not the record owner or not the admin."""


# --- State ---

class StateError(LedgerError):
    """Record is not in the status the operation requires."""


class InvalidStatus(StateError):
    pass


class NotLiquidatable(StateError):
    """Position is at or above the liquidation threshold."""


class ReentrantCall(StateError):
    """A mutating call was made while another one was still executing."""


# --- Resources ---

class InsufficientResourceError(LedgerError):
    """Collateral, balance or debt is too small for the requested amount."""


class InsufficientAvailable(InsufficientResourceError):
    pass


class InsufficientCollateral(InsufficientResourceError):
    pass


class ExceedsOwed(InsufficientResourceError):
    pass


# --- Arithmetic ---

class LedgerArithmeticError(LedgerError, ArithmeticError):
    """Degenerate fixed-point input such as a zero price."""


class PriceUnavailable(LedgerArithmeticError):
    pass
