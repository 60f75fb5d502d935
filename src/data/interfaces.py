"""Abstract interfaces for the ledger's external collaborators."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class CustodyVenue(ABC):
    """Yield pool that holds deposited assets (Aave-style)."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Spender address the ledger approves before supplying."""

    @abstractmethod
    def supply(self, asset: str, amount: int, on_behalf_of: str) -> None:
        """Deposit ``amount`` of ``asset`` into the venue."""

    @abstractmethod
    def withdraw(self, asset: str, amount: int, to: str) -> int:
        """Withdraw ``amount`` of ``asset`` to ``to``; returns the amount sent."""

    @abstractmethod
    def get_normalized_income(self, asset: str) -> int:
        """Current liquidity index of ``asset`` in RAY.

        The ledger treats this value as ground truth when valuing scaled
        supply balances.
        """


class PriceFeed(ABC):
    """Fiat price source."""

    @abstractmethod
    def get_price(self, currency: str) -> int:
        """Currency smallest units per one whole collateral-asset unit.

        Zero means the price is unavailable.
        """


class FundTransfer(ABC):
    """ERC20-like movement of the underlying asset."""

    @abstractmethod
    def transfer_from(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Pull ``amount`` from ``sender`` (requires prior allowance)."""

    @abstractmethod
    def transfer(self, asset: str, recipient: str, amount: int) -> None:
        """Send ``amount`` held by the ledger to ``recipient``."""

    @abstractmethod
    def approve(self, asset: str, spender: str, amount: int) -> None:
        """Allow ``spender`` to pull ``amount`` from the ledger."""


@dataclass(frozen=True)
class ContractCall:
    """A built, unsigned contract call handed to the submission layer."""

    to: str
    function: str
    args: tuple[Any, ...] = field(default_factory=tuple)
    data: str | None = None


class TransactionSubmitter(ABC):
    """Signs and broadcasts contract calls (wallet / relayer layer)."""

    @abstractmethod
    def submit(self, call: ContractCall) -> str:
        """Broadcast ``call`` and return its transaction hash.

        Raises on a failed or reverted transaction.
        """
