"""Lending ledger facade.

Composes the registry, rate model, price conversion, supply/borrow ledgers,
repayment and liquidation into one object whose mutating methods each run
as a single indivisible unit: all effects apply, or every record the call
touched is put back. Records handed to callers are copies; mutating them
never reaches ledger state.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Iterator, Sequence, TypeVar

import pandas as pd

from src.data.constants import MAX_BATCH_SIZE
from src.data.interfaces import CustodyVenue, FundTransfer, PriceFeed
from src.position.borrow import Borrow, BorrowLedger, BorrowStatus, borrow_id, outstanding_debt
from src.position.borrow_request import BorrowRequest, BorrowRequestBook
from src.position.repayment import RepaymentDesk
from src.position.store import RecordStore
from src.position.supply import Supply, SupplyLedger, supply_id
from src.protocol.errors import InvalidBatchSize, InvalidStatus, LedgerError, ReentrantCall
from src.protocol.events import (
    AssetConfigured,
    CurrencyConfigured,
    IndexSynced,
    LedgerEvent,
)
from src.protocol.interest_rate import InterestRateModel
from src.protocol.liquidation import LiquidationEngine, PositionHealth
from src.protocol.pricing import PriceConversionService
from src.protocol.registry import Asset, CurrencyParams, FiatCurrency, Registry

logger = logging.getLogger(__name__)


R = TypeVar("R")


def _detached(record: R) -> R:
    """Copy of a mutable record, safe to hand outside the ledger."""
    return replace(record)


def system_clock() -> int:
    return int(time.time())


class LendingLedger:
    """Collateralized lending ledger.

    Parameters
    ----------
    admin : str
        Address allowed to configure the registry and process/cancel
        borrow requests.
    custody : CustodyVenue
        Yield pool holding deposits.
    price_feed : PriceFeed
        Fiat price source used for conversions and dynamic rates.
    token : FundTransfer
        Moves the underlying asset between users, the ledger and custody.
    address : str
        The ledger's own account, used as custody beneficiary.
    clock : Callable[[], int] | None
        Returns the current time in seconds (defaults to wall clock).
    max_batch_size : int
        Upper bound on ids per batched admin call.
    """

    def __init__(
        self,
        admin: str,
        custody: CustodyVenue,
        price_feed: PriceFeed,
        token: FundTransfer,
        address: str = "torito-ledger",
        clock: Callable[[], int] | None = None,
        max_batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        self.address = address
        self.clock = clock or system_clock
        self.max_batch_size = max_batch_size

        self.events: list[LedgerEvent] = []
        self._pending_events: list[LedgerEvent] = []
        self._subscribers: list[Callable[[LedgerEvent], None]] = []
        self._lock = threading.RLock()
        self._executing = False

        self.registry = Registry(admin)
        self.pricing = PriceConversionService(self.registry, price_feed)
        self.rates = InterestRateModel(self.pricing, self.clock)
        self.supplies = SupplyLedger(
            self.registry, custody, token, address, self._emit, self.clock
        )
        self.requests = BorrowRequestBook(self.registry, self.supplies, self._emit, self.clock)
        self.borrows = BorrowLedger(
            self.registry,
            self.supplies,
            self.requests,
            self.rates,
            self.pricing,
            self._emit,
            self.clock,
        )
        self.repayments = RepaymentDesk(self.borrows, self.supplies, self._emit, self.clock)
        self.liquidations = LiquidationEngine(
            self.registry,
            self.borrows,
            self.supplies,
            self.pricing,
            self._emit,
            self.clock,
        )

        self._stores: list[RecordStore] = [
            self.registry.assets,
            self.registry.currencies,
            self.supplies.supplies,
            self.requests.requests,
            self.requests.nonces,
            self.borrows.borrows,
        ]

    @property
    def admin(self) -> str:
        return self.registry.admin

    # ------------------------------------------------------------------
    # Atomic execution and events
    # ------------------------------------------------------------------

    def _emit(self, event: LedgerEvent) -> None:
        self._pending_events.append(event)

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        """Run one ledger operation all-or-nothing.

        Each store journals the records the operation touches; a failure
        puts those records back. Events raised inside the block are
        published only after it completes. Nested mutating calls (e.g. a
        custody callback re-entering the ledger) are rejected.
        """
        with self._lock:
            if self._executing:
                raise ReentrantCall(f"{operation} called while another operation is executing")
            self._executing = True
            for store in self._stores:
                store.begin()
            self._pending_events = []
            try:
                yield
            except LedgerError as exc:
                self._rollback()
                logger.warning("%s rejected: %s", operation, exc)
                raise
            except Exception:
                self._rollback()
                logger.warning("%s failed; state rolled back", operation, exc_info=True)
                raise
            else:
                for store in self._stores:
                    store.commit()
            finally:
                self._executing = False
            published, self._pending_events = self._pending_events, []
        self._publish(published)

    def _rollback(self) -> None:
        for store in self._stores:
            store.rollback()
        self._pending_events = []

    def _publish(self, events: list[LedgerEvent]) -> None:
        for event in events:
            self.events.append(event)
            logger.info("%s %s", event.name, event)
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception:
                    logger.warning("Event subscriber failed for %s", event.name, exc_info=True)

    def subscribe(self, callback: Callable[[LedgerEvent], None]) -> None:
        """Register ``callback`` to receive every committed event."""
        self._subscribers.append(callback)

    def events_frame(self) -> pd.DataFrame:
        """Committed events as a DataFrame, one row per event.

        Columns are the union of all event fields; ``event`` holds the
        event type and ``timestamp`` the ledger clock at commit.
        """
        return pd.DataFrame([event.to_record() for event in self.events])

    def _validate_batch(self, request_ids: Sequence[str]) -> list[BorrowRequest]:
        """Check the whole batch before any element is applied."""
        if not 1 <= len(request_ids) <= self.max_batch_size:
            raise InvalidBatchSize(
                f"batch size must be between 1 and {self.max_batch_size}, got {len(request_ids)}"
            )
        seen: set[str] = set()
        requests = []
        for request_id in request_ids:
            if request_id in seen:
                raise InvalidStatus(f"borrow request {request_id} appears twice in batch")
            seen.add(request_id)
            requests.append(self.requests.require_pending(request_id))
        return requests

    # ------------------------------------------------------------------
    # Registry (admin)
    # ------------------------------------------------------------------

    def add_asset(self, caller: str, asset: str, decimals: int, supported: bool = True) -> Asset:
        with self._atomic("add_asset"):
            record = self.registry.add_asset(caller, asset, decimals, supported)
            self._emit(AssetConfigured(self.clock(), asset, decimals, supported))
        return record

    def update_asset(self, caller: str, asset: str, decimals: int, supported: bool) -> Asset:
        with self._atomic("update_asset"):
            record = self.registry.update_asset(caller, asset, decimals, supported)
            self._emit(AssetConfigured(self.clock(), asset, decimals, supported))
        return record

    def add_currency(self, caller: str, params: CurrencyParams) -> FiatCurrency:
        with self._atomic("add_currency"):
            currency = self.registry.add_currency(caller, params, self.clock())
            self._emit(self._currency_event(params))
            return _detached(currency)

    def update_currency(self, caller: str, params: CurrencyParams) -> FiatCurrency:
        with self._atomic("update_currency"):
            currency = self.registry.update_currency(caller, params)
            self._emit(self._currency_event(params))
            return _detached(currency)

    def _currency_event(self, params: CurrencyParams) -> CurrencyConfigured:
        return CurrencyConfigured(
            self.clock(),
            params.code,
            params.decimals,
            params.collateralization_ratio,
            params.liquidation_threshold,
        )

    # ------------------------------------------------------------------
    # Interest
    # ------------------------------------------------------------------

    def dynamic_rate(self, currency: str, collateral_asset: str) -> int:
        return self.rates.dynamic_rate(
            self.registry.get_currency(currency), self.registry.get_asset(collateral_asset)
        )

    def sync_index(self, currency: str, collateral_asset: str) -> int:
        """Advance ``currency``'s borrow index to now; returns the new index."""
        with self._atomic("sync_index"):
            record = self.registry.get_currency(currency)
            rate = self.rates.sync_index(record, self.registry.get_asset(collateral_asset))
            if rate:
                self._emit(IndexSynced(self.clock(), currency, rate, record.borrow_index))
        return record.borrow_index

    # ------------------------------------------------------------------
    # Supply
    # ------------------------------------------------------------------

    def deposit(self, owner: str, asset: str, amount: int) -> Supply:
        with self._atomic("deposit"):
            return _detached(self.supplies.deposit(owner, asset, amount))

    def withdraw(self, caller: str, supply_id_: str, amount: int) -> int:
        with self._atomic("withdraw"):
            return self.supplies.withdraw(caller, supply_id_, amount)

    # ------------------------------------------------------------------
    # Borrow requests
    # ------------------------------------------------------------------

    def request_borrow(self, owner: str, collateral_asset: str, currency: str, amount: int) -> BorrowRequest:
        with self._atomic("request_borrow"):
            return _detached(
                self.requests.request_borrow(owner, collateral_asset, currency, amount)
            )

    def process_request(self, caller: str, request_id: str) -> Borrow:
        return self.process_requests(caller, [request_id])[0]

    def process_requests(self, caller: str, request_ids: Sequence[str]) -> list[Borrow]:
        """Approve a batch of PENDING requests.

        The batch is one operation: its size and every element's status are
        checked first, and a failure on any element (e.g. insufficient
        collateral) rolls back the elements applied before it.
        """
        with self._atomic("process_requests"):
            self.registry.require_admin(caller)
            requests = self._validate_batch(request_ids)
            borrows = [self.borrows.process(request) for request in requests]
            # copied after the whole batch so repeated positions agree
            return [_detached(borrow) for borrow in borrows]

    def cancel_request(self, caller: str, request_id: str) -> BorrowRequest:
        return self.cancel_requests(caller, [request_id])[0]

    def cancel_requests(self, caller: str, request_ids: Sequence[str]) -> list[BorrowRequest]:
        with self._atomic("cancel_requests"):
            self.registry.require_admin(caller)
            requests = self._validate_batch(request_ids)
            return [_detached(self.requests.cancel(request.id)) for request in requests]

    # ------------------------------------------------------------------
    # Repayment and liquidation
    # ------------------------------------------------------------------

    def repay(self, caller: str, borrow_id_: str, amount: int) -> int:
        with self._atomic("repay"):
            return self.repayments.repay(caller, borrow_id_, amount)

    def liquidate(self, borrow_id_: str) -> PositionHealth:
        with self._atomic("liquidate"):
            return self.liquidations.liquidate(borrow_id_)

    # ------------------------------------------------------------------
    # Views (never mutate; debt is valued at the projected index)
    # ------------------------------------------------------------------

    def get_supply(self, supply_id_: str) -> Supply:
        return _detached(self.supplies.get(supply_id_))

    def supply_of(self, owner: str, asset: str) -> Supply:
        return _detached(self.supplies.get(supply_id(owner, asset)))

    def get_request(self, request_id: str) -> BorrowRequest:
        return _detached(self.requests.get(request_id))

    def pending_requests(self, owner: str | None = None) -> list[BorrowRequest]:
        return [_detached(request) for request in self.requests.pending(owner)]

    def get_borrow(self, borrow_id_: str) -> Borrow:
        return _detached(self.borrows.get(borrow_id_))

    def borrow_of(self, owner: str, collateral_asset: str, currency: str) -> Borrow:
        return _detached(self.borrows.get(borrow_id(owner, collateral_asset, currency)))

    def supply_value(self, supply_id_: str) -> int:
        return self.supplies.value_of(self.supplies.get(supply_id_))

    def available_collateral(self, supply_id_: str) -> int:
        return self.supplies.available_collateral(self.supplies.get(supply_id_))

    def _projected_currency(self, borrow: Borrow) -> FiatCurrency:
        currency = self.registry.get_currency(borrow.currency)
        index, _ = self.rates.projected_index(currency, self.registry.get_asset(borrow.collateral_asset))
        return replace(currency, borrow_index=index)

    def outstanding_debt(self, borrow_id_: str) -> int:
        borrow = self.borrows.get(borrow_id_)
        return outstanding_debt(borrow, self._projected_currency(borrow))

    def position_health(self, borrow_id_: str) -> PositionHealth:
        borrow = self.borrows.get(borrow_id_)
        return self.liquidations.health(borrow, self._projected_currency(borrow))

    def collateral_ratio(self, borrow_id_: str) -> int | None:
        """Collateral/debt ratio (RAY) of a borrow; None when it has no debt."""
        return self.position_health(borrow_id_).ratio

    def liquidatable_borrows(self) -> list[PositionHealth]:
        """Health of every ACTIVE borrow currently below its threshold."""
        found = []
        for borrow in self.borrows.borrows.values():
            if borrow.status is not BorrowStatus.ACTIVE:
                continue
            health = self.liquidations.health(borrow, self._projected_currency(borrow))
            if health.is_liquidatable:
                found.append(health)
        return found
