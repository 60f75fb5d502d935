"""Admin-controlled registry of supported assets and fiat currencies."""

from __future__ import annotations

from dataclasses import dataclass

from src.data.constants import MAX_DECIMALS, RAY
from src.position.store import RecordStore
from src.protocol.errors import (
    AuthorizationError,
    InvalidConfig,
    NotFound,
    UnsupportedAsset,
    UnsupportedCurrency,
)


@dataclass(frozen=True)
class Asset:
    """Collateral asset accepted for supply."""

    address: str
    decimals: int
    is_supported: bool = True


@dataclass(frozen=True)
class CurrencyParams:
    """Admin-supplied configuration for a fiat currency.

    Attributes:
        code: Currency identifier (e.g. "BOB").
        decimals: Smallest-unit precision of the currency.
        collateralization_ratio: Collateral multiple locked at origination (RAY).
        liquidation_threshold: Collateral/debt ratio below which a position
            can be liquidated (RAY).
        price_feed: Feed reference passed to the price feed; None disables
            price-sensitive rates and conversions.
        base_rate: Annual borrow rate at parity (RAY).
        min_rate: Lower clamp for the dynamic rate (RAY).
        max_rate: Upper clamp for the dynamic rate (RAY).
        sensitivity: Rate change per unit of price deviation from parity (RAY).
    """

    code: str
    decimals: int
    collateralization_ratio: int
    liquidation_threshold: int
    price_feed: str | None
    base_rate: int
    min_rate: int
    max_rate: int
    sensitivity: int


@dataclass
class FiatCurrency:
    """Registered currency: its parameters plus the running borrow index."""

    params: CurrencyParams
    borrow_index: int
    last_index_update_time: int

    @property
    def code(self) -> str:
        return self.params.code

    @property
    def decimals(self) -> int:
        return self.params.decimals


def validate_currency_params(params: CurrencyParams) -> None:
    """Raise ``InvalidConfig`` if ``params`` break a registry invariant."""
    if not params.code:
        raise InvalidConfig("currency code must not be empty")
    if not 0 <= params.decimals <= MAX_DECIMALS:
        raise InvalidConfig(f"currency decimals must be in [0, {MAX_DECIMALS}]")
    if params.liquidation_threshold < RAY or params.collateralization_ratio < RAY:
        raise InvalidConfig("collateralization ratio and liquidation threshold must be >= 100%")
    if params.liquidation_threshold > params.collateralization_ratio:
        raise InvalidConfig("liquidation threshold cannot exceed collateralization ratio")
    if min(params.base_rate, params.min_rate, params.max_rate, params.sensitivity) < 0:
        raise InvalidConfig("rates and sensitivity must be non-negative")
    if params.min_rate > params.max_rate:
        raise InvalidConfig("min rate cannot exceed max rate")


class Registry:
    """Process-wide asset/currency configuration guarded by an admin check.

    Assets are never deleted, only disabled. Currency updates keep the
    accrued borrow index.
    """

    def __init__(self, admin: str) -> None:
        self.admin = admin
        self.assets: RecordStore[Asset] = RecordStore()
        self.currencies: RecordStore[FiatCurrency] = RecordStore()

    def require_admin(self, caller: str) -> None:
        if caller != self.admin:
            raise AuthorizationError(f"{caller} is not the ledger admin")

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def add_asset(self, caller: str, address: str, decimals: int, supported: bool = True) -> Asset:
        self.require_admin(caller)
        if not 0 <= decimals <= MAX_DECIMALS:
            raise InvalidConfig(f"asset decimals must be in [0, {MAX_DECIMALS}]")
        asset = Asset(address=address, decimals=decimals, is_supported=supported)
        self.assets[address] = asset
        return asset

    def update_asset(self, caller: str, address: str, decimals: int, supported: bool) -> Asset:
        self.require_admin(caller)
        if address not in self.assets:
            raise NotFound(f"asset {address} is not registered")
        return self.add_asset(caller, address, decimals, supported)

    def get_asset(self, address: str) -> Asset:
        try:
            return self.assets[address]
        except KeyError:
            raise NotFound(f"asset {address} is not registered") from None

    def require_supported_asset(self, address: str) -> Asset:
        asset = self.assets.get(address)
        if asset is None or not asset.is_supported:
            raise UnsupportedAsset(f"asset {address} is not supported")
        return asset

    # ------------------------------------------------------------------
    # Currencies
    # ------------------------------------------------------------------

    def add_currency(self, caller: str, params: CurrencyParams, now: int) -> FiatCurrency:
        """Register ``params``; re-registering an existing code keeps its index."""
        self.require_admin(caller)
        validate_currency_params(params)
        existing = self.currencies.get(params.code)
        if existing is not None:
            existing.params = params
            return existing
        currency = FiatCurrency(params=params, borrow_index=RAY, last_index_update_time=now)
        self.currencies[params.code] = currency
        return currency

    def update_currency(self, caller: str, params: CurrencyParams) -> FiatCurrency:
        self.require_admin(caller)
        currency = self.currencies.get(params.code)
        if currency is None:
            raise NotFound(f"currency {params.code} is not registered")
        validate_currency_params(params)
        currency.params = params
        return currency

    def get_currency(self, code: str) -> FiatCurrency:
        try:
            return self.currencies[code]
        except KeyError:
            raise NotFound(f"currency {code} is not registered") from None

    def require_currency(self, code: str) -> FiatCurrency:
        currency = self.currencies.get(code)
        if currency is None:
            raise UnsupportedCurrency(f"currency {code} is not registered")
        return currency
