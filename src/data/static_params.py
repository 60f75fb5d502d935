"""In-memory collaborators and default registry parameters.

Used by tests, simulations and whenever on-chain collaborators are not
requested.
"""

from __future__ import annotations

from collections import defaultdict

from src.data.constants import BOB, BOB_DECIMALS, RAY, USDT, USDT_DECIMALS
from src.data.interfaces import CustodyVenue, FundTransfer, PriceFeed
from src.protocol.registry import CurrencyParams

# --- Default parameters for the BOB / USDT market ---

DEFAULT_ASSETS: dict[str, int] = {
    USDT: USDT_DECIMALS,
}

DEFAULT_CURRENCIES: dict[str, CurrencyParams] = {
    BOB: CurrencyParams(
        code=BOB,
        decimals=BOB_DECIMALS,
        collateralization_ratio=15 * RAY // 10,  # 150%
        liquidation_threshold=12 * RAY // 10,  # 120%
        price_feed=BOB,
        base_rate=5 * RAY // 100,  # 5% APR
        min_rate=2 * RAY // 100,
        max_rate=30 * RAY // 100,
        sensitivity=RAY // 10,
    ),
}

# BOB cents per one whole USDT
_PRICES: dict[str, int] = {
    BOB: 696,
}


class InMemoryFundTransfer(FundTransfer):
    """Balance book for one or more assets, acting on behalf of ``holder``.

    ``holder`` is the account whose funds ``transfer`` and ``approve`` move
    (the ledger). Allowances are recorded but not enforced.
    """

    def __init__(self, holder: str) -> None:
        self.holder = holder
        self.balances: defaultdict[tuple[str, str], int] = defaultdict(int)
        self.allowances: dict[tuple[str, str, str], int] = {}

    def mint(self, asset: str, account: str, amount: int) -> None:
        self.balances[(asset, account)] += amount

    def balance_of(self, asset: str, account: str) -> int:
        return self.balances[(asset, account)]

    def move(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("transfer amount must be non-negative")
        if self.balances[(asset, sender)] < amount:
            raise ValueError(f"{sender} has insufficient {asset} balance")
        self.balances[(asset, sender)] -= amount
        self.balances[(asset, recipient)] += amount

    def transfer_from(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        self.move(asset, sender, recipient, amount)

    def transfer(self, asset: str, recipient: str, amount: int) -> None:
        self.move(asset, self.holder, recipient, amount)

    def approve(self, asset: str, spender: str, amount: int) -> None:
        self.allowances[(asset, self.holder, spender)] = amount


class StaticCustodyVenue(CustodyVenue):
    """Custody venue with a settable normalized income per asset.

    When given a ``token`` book, supplies and withdrawals move real
    in-memory balances so that tests can observe fund flows.
    ``supplied`` tracks the net amount per asset: supplies add to it and
    withdrawals take from it, so withdrawing accrued yield can leave it
    below zero.
    """

    def __init__(
        self,
        token: InMemoryFundTransfer | None = None,
        address: str = "custody-pool",
    ) -> None:
        self._address = address
        self._token = token
        self._income: dict[str, int] = {}
        self.supplied: defaultdict[str, int] = defaultdict(int)

    @property
    def address(self) -> str:
        return self._address

    def set_normalized_income(self, asset: str, index: int) -> None:
        if index < RAY:
            raise ValueError("normalized income cannot be below RAY")
        self._income[asset] = index

    def get_normalized_income(self, asset: str) -> int:
        return self._income.get(asset, RAY)

    def supply(self, asset: str, amount: int, on_behalf_of: str) -> None:
        if self._token is not None:
            self._token.move(asset, on_behalf_of, self._address, amount)
        self.supplied[asset] += amount

    def withdraw(self, asset: str, amount: int, to: str) -> int:
        if self._token is not None:
            self._token.move(asset, self._address, to, amount)
        self.supplied[asset] -= amount
        return amount


class StaticPriceFeed(PriceFeed):
    """Price feed backed by a dict; unknown currencies price at zero."""

    def __init__(self, prices: dict[str, int] | None = None) -> None:
        self.prices = dict(_PRICES if prices is None else prices)

    def set_price(self, currency: str, price: int) -> None:
        self.prices[currency] = price

    def get_price(self, currency: str) -> int:
        return self.prices.get(currency, 0)
