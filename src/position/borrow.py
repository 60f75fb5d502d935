"""Active debt positions per (owner, collateral asset, currency).

A position is a running aggregate: every processed request against the same
triple adds to one Borrow. Debt is stored index-scaled so that growth of the
currency's borrow index accrues interest without touching the record.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from src.position.borrow_request import BorrowRequest, BorrowRequestBook, RequestStatus
from src.position.store import RecordStore, record_key
from src.position.supply import SupplyLedger
from src.protocol.errors import InsufficientCollateral, InvalidStatus, NotFound
from src.protocol.events import BorrowRequestProcessed, BorrowUpdated, LedgerEvent
from src.protocol.fixed_point import ray_div, ray_mul
from src.protocol.interest_rate import InterestRateModel
from src.protocol.pricing import PriceConversionService
from src.protocol.registry import FiatCurrency, Registry

logger = logging.getLogger(__name__)


class BorrowStatus(enum.Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    REPAID = "repaid"
    LIQUIDATED = "liquidated"


@dataclass
class Borrow:
    """Debt position.

    Attributes:
        borrowed_amount: Principal divided by the borrow index at each draw.
        locked_collateral: Collateral-asset units locked against the debt.
        total_repaid: Currency units repaid since the position (re)opened.
    """

    id: str
    owner: str
    collateral_asset: str
    currency: str
    borrowed_amount: int = 0
    locked_collateral: int = 0
    total_repaid: int = 0
    status: BorrowStatus = BorrowStatus.INACTIVE


def borrow_id(owner: str, collateral_asset: str, currency: str) -> str:
    return record_key("borrow", owner, collateral_asset, currency)


def outstanding_debt(borrow: Borrow, currency: FiatCurrency) -> int:
    """Index-adjusted debt minus repayments, in currency units (never negative)."""
    return max(ray_mul(borrow.borrowed_amount, currency.borrow_index) - borrow.total_repaid, 0)


class BorrowLedger:
    """Turns approved requests into debt and locked collateral."""

    def __init__(
        self,
        registry: Registry,
        supplies: SupplyLedger,
        requests: BorrowRequestBook,
        rates: InterestRateModel,
        pricing: PriceConversionService,
        emit: Callable[[LedgerEvent], None],
        clock: Callable[[], int],
    ) -> None:
        self.registry = registry
        self.supplies = supplies
        self.requests = requests
        self.rates = rates
        self.pricing = pricing
        self.emit = emit
        self.clock = clock
        self.borrows: RecordStore[Borrow] = RecordStore()

    def get(self, borrow_id_: str) -> Borrow:
        borrow = self.borrows.get(borrow_id_)
        if borrow is None:
            raise NotFound(f"borrow {borrow_id_} does not exist")
        return borrow

    def require_active(self, borrow_id_: str) -> Borrow:
        borrow = self.get(borrow_id_)
        if borrow.status is not BorrowStatus.ACTIVE:
            raise InvalidStatus(f"borrow {borrow_id_} is {borrow.status.value}")
        return borrow

    def sync(self, borrow: Borrow) -> FiatCurrency:
        """Bring the borrow's currency index up to date and return the currency."""
        currency = self.registry.get_currency(borrow.currency)
        self.rates.sync_index(currency, self.registry.get_asset(borrow.collateral_asset))
        return currency

    def required_collateral(self, request: BorrowRequest) -> int:
        """Collateral-asset units to lock for ``request`` at the currency's ratio."""
        currency = self.registry.require_currency(request.currency)
        asset = self.registry.get_asset(request.collateral_asset)
        value = self.pricing.currency_to_asset(currency.code, request.borrow_amount, asset)
        return ray_mul(value, currency.params.collateralization_ratio)

    def process(self, request: BorrowRequest) -> Borrow:
        """Apply one PENDING request.

        Raises:
            InsufficientCollateral: The owner's unlocked supply cannot cover
                the required collateral. Nothing is mutated in that case.
        """
        if request.status is not RequestStatus.PENDING:
            raise InvalidStatus(f"borrow request {request.id} is {request.status.value}")
        currency = self.registry.require_currency(request.currency)
        asset = self.registry.require_supported_asset(request.collateral_asset)
        supply = self.supplies.require_active(request.owner, request.collateral_asset)

        self.rates.sync_index(currency, asset)
        required = self.required_collateral(request)
        available = self.supplies.available_collateral(supply)
        if available < required:
            raise InsufficientCollateral(
                f"request {request.id} needs {required} collateral, {available} available"
            )

        key = borrow_id(request.owner, request.collateral_asset, request.currency)
        borrow = self.borrows.get(key)
        if borrow is None:
            borrow = Borrow(
                id=key,
                owner=request.owner,
                collateral_asset=request.collateral_asset,
                currency=request.currency,
            )
            self.borrows[key] = borrow
        if borrow.status is not BorrowStatus.ACTIVE:
            # new, repaid or liquidated positions restart from zero
            borrow.borrowed_amount = 0
            borrow.locked_collateral = 0
            borrow.total_repaid = 0
            borrow.status = BorrowStatus.ACTIVE

        borrow.borrowed_amount += ray_div(request.borrow_amount, currency.borrow_index)
        borrow.locked_collateral += required
        supply.used_collateral += required
        self.requests.mark_processed(request)
        logger.debug("Processed request %s: locked %d against %s", request.id, required, borrow.id)

        now = self.clock()
        self.emit(BorrowRequestProcessed(now, request.id, borrow.id, required))
        self.emit(
            BorrowUpdated(
                now,
                borrow.id,
                borrow.owner,
                borrow.collateral_asset,
                borrow.currency,
                borrow.borrowed_amount,
                borrow.locked_collateral,
            )
        )
        return borrow
