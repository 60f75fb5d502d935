"""Depositor balances held in the custody venue, scaled by its yield index."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from src.data.interfaces import CustodyVenue, FundTransfer
from src.position.store import RecordStore, record_key
from src.protocol.errors import (
    AuthorizationError,
    InsufficientAvailable,
    InvalidAmount,
    InvalidStatus,
    NotFound,
)
from src.protocol.events import LedgerEvent, SupplyCreated, SupplyDeposited, SupplyWithdrawn
from src.protocol.fixed_point import ray_div, ray_mul
from src.protocol.registry import Registry

logger = logging.getLogger(__name__)


class SupplyStatus(enum.Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


@dataclass
class Supply:
    """A depositor's position for one asset.

    ``scaled_balance`` is in custody-index units: multiply by the venue's
    current normalized income to get the underlying amount.
    ``used_collateral`` is in underlying units.
    """

    id: str
    owner: str
    asset: str
    scaled_balance: int = 0
    used_collateral: int = 0
    status: SupplyStatus = SupplyStatus.INACTIVE


def supply_id(owner: str, asset: str) -> str:
    return record_key("supply", owner, asset)


def value_at_index(scaled_balance: int, index: int) -> int:
    """Underlying amount of a scaled balance at ``index`` (RAY)."""
    return ray_mul(scaled_balance, index)


class SupplyLedger:
    """Deposits and withdrawals against the custody venue."""

    def __init__(
        self,
        registry: Registry,
        custody: CustodyVenue,
        token: FundTransfer,
        address: str,
        emit: Callable[[LedgerEvent], None],
        clock: Callable[[], int],
    ) -> None:
        self.registry = registry
        self.custody = custody
        self.token = token
        self.address = address
        self.emit = emit
        self.clock = clock
        self.supplies: RecordStore[Supply] = RecordStore()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get(self, supply_id_: str) -> Supply:
        supply = self.supplies.get(supply_id_)
        if supply is None:
            raise NotFound(f"supply {supply_id_} does not exist")
        return supply

    def find(self, owner: str, asset: str) -> Supply | None:
        return self.supplies.get(supply_id(owner, asset))

    def require_active(self, owner: str, asset: str) -> Supply:
        supply = self.find(owner, asset)
        if supply is None or supply.status is not SupplyStatus.ACTIVE:
            raise InvalidStatus(f"{owner} has no active supply of {asset}")
        return supply

    def value_of(self, supply: Supply) -> int:
        return value_at_index(supply.scaled_balance, self.custody.get_normalized_income(supply.asset))

    def available_collateral(self, supply: Supply) -> int:
        """Underlying value not locked by borrows (never negative)."""
        return max(self.value_of(supply) - supply.used_collateral, 0)

    def release_collateral(self, supply: Supply, amount: int) -> int:
        """Unlock up to ``amount``; ``used_collateral`` floors at zero."""
        released = min(amount, supply.used_collateral)
        supply.used_collateral -= released
        return released

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def deposit(self, owner: str, asset_address: str, amount: int) -> Supply:
        """Move ``amount`` into custody and credit the owner's supply.

        External calls (pull, approve, custody supply, index read) run before
        local effects; the caller's atomic scope discards any partial state
        if one of them raises.
        """
        if amount <= 0:
            raise InvalidAmount("deposit amount must be positive")
        self.registry.require_supported_asset(asset_address)

        self.token.transfer_from(asset_address, owner, self.address, amount)
        self.token.approve(asset_address, self.custody.address, amount)
        self.custody.supply(asset_address, amount, self.address)
        index = self.custody.get_normalized_income(asset_address)

        scaled = ray_div(amount, index)
        key = supply_id(owner, asset_address)
        supply = self.supplies.get(key)
        now = self.clock()
        if supply is None or supply.status is SupplyStatus.INACTIVE:
            supply = Supply(
                id=key,
                owner=owner,
                asset=asset_address,
                scaled_balance=scaled,
                status=SupplyStatus.ACTIVE,
            )
            self.supplies[key] = supply
            self.emit(SupplyCreated(now, key, owner, asset_address, amount, scaled))
        else:
            supply.scaled_balance += scaled
            self.emit(SupplyDeposited(now, key, owner, asset_address, amount, scaled))
        logger.debug("Deposited %d %s for %s (scaled %d)", amount, asset_address, owner, scaled)
        return supply

    def withdraw(self, caller: str, supply_id_: str, amount: int) -> int:
        """Return ``amount`` of unlocked supply to its owner."""
        supply = self.get(supply_id_)
        if caller != supply.owner:
            raise AuthorizationError(f"{caller} does not own supply {supply_id_}")
        if supply.status is not SupplyStatus.ACTIVE:
            raise InvalidStatus(f"supply {supply_id_} is not active")
        if amount <= 0:
            raise InvalidAmount("withdraw amount must be positive")

        index = self.custody.get_normalized_income(supply.asset)
        available = max(value_at_index(supply.scaled_balance, index) - supply.used_collateral, 0)
        if amount > available:
            raise InsufficientAvailable(
                f"withdraw of {amount} exceeds available {available} on supply {supply_id_}"
            )

        scaled = min(ray_div(amount, index), supply.scaled_balance)
        if value_at_index(supply.scaled_balance - scaled, index) < supply.used_collateral:
            # rounding would leave locked collateral uncovered
            raise InsufficientAvailable(f"withdraw of {amount} would undercollateralize supply {supply_id_}")
        supply.scaled_balance -= scaled
        self.emit(SupplyWithdrawn(self.clock(), supply.id, supply.owner, supply.asset, amount, scaled))
        return self.custody.withdraw(supply.asset, amount, supply.owner)
