"""Liquidation of under-collateralized borrows.

A liquidated position is closed and its locked collateral returned to the
owner's available pool. Debt and repayment totals stay on the record as
history.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from src.data.constants import RAY
from src.position.borrow import Borrow, BorrowLedger, BorrowStatus, outstanding_debt
from src.position.supply import SupplyLedger, supply_id
from src.protocol.errors import NotLiquidatable
from src.protocol.events import CollateralLiquidated, LedgerEvent
from src.protocol.pricing import PriceConversionService
from src.protocol.registry import FiatCurrency, Registry


@dataclass(frozen=True)
class PositionHealth:
    """Collateral/debt snapshot of one borrow, in collateral-asset units.

    ``ratio`` is RAY-scaled; it is None when there is no debt.
    """

    borrow_id: str
    collateral_value: int
    debt_value: int
    ratio: int | None
    liquidation_threshold: int

    @property
    def is_liquidatable(self) -> bool:
        return self.ratio is not None and self.ratio < self.liquidation_threshold


class LiquidationEngine:
    def __init__(
        self,
        registry: Registry,
        borrows: BorrowLedger,
        supplies: SupplyLedger,
        pricing: PriceConversionService,
        emit: Callable[[LedgerEvent], None],
        clock: Callable[[], int],
    ) -> None:
        self.registry = registry
        self.borrows = borrows
        self.supplies = supplies
        self.pricing = pricing
        self.emit = emit
        self.clock = clock

    def health(self, borrow: Borrow, currency: FiatCurrency | None = None) -> PositionHealth:
        """Value the position at the current custody and borrow indices.

        Callers that need an up-to-date debt must sync the currency first, or
        pass a projected copy of it as ``currency``.
        """
        if currency is None:
            currency = self.registry.get_currency(borrow.currency)
        asset = self.registry.get_asset(borrow.collateral_asset)
        supply = self.supplies.get(supply_id(borrow.owner, borrow.collateral_asset))

        collateral_value = self.supplies.value_of(supply)
        debt = outstanding_debt(borrow, currency)
        debt_value = self.pricing.currency_to_asset(currency.code, debt, asset) if debt else 0
        ratio = collateral_value * RAY // debt_value if debt_value else None
        return PositionHealth(
            borrow_id=borrow.id,
            collateral_value=collateral_value,
            debt_value=debt_value,
            ratio=ratio,
            liquidation_threshold=currency.params.liquidation_threshold,
        )

    def liquidate(self, borrow_id_: str) -> PositionHealth:
        """Close an ACTIVE borrow whose collateral ratio is below threshold.

        Raises:
            NotLiquidatable: ratio >= liquidation threshold, or no debt.
        """
        borrow = self.borrows.require_active(borrow_id_)
        self.borrows.sync(borrow)
        health = self.health(borrow)
        if not health.is_liquidatable:
            raise NotLiquidatable(
                f"borrow {borrow_id_} ratio {health.ratio} is not below "
                f"threshold {health.liquidation_threshold}"
            )

        supply = self.supplies.get(supply_id(borrow.owner, borrow.collateral_asset))
        released = self.supplies.release_collateral(supply, borrow.locked_collateral)
        borrow.locked_collateral = 0
        borrow.status = BorrowStatus.LIQUIDATED
        self.emit(
            CollateralLiquidated(
                self.clock(),
                borrow.id,
                borrow.owner,
                released,
                health.collateral_value,
                health.debt_value,
                health.ratio,
            )
        )
        return health
