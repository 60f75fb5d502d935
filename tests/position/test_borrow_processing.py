"""Tests for turning approved requests into debt positions."""

from dataclasses import replace

import pytest

from src.data.constants import BOB, RAY, SECONDS_PER_YEAR, USDT
from src.data.static_params import StaticPriceFeed
from src.position.borrow import BorrowStatus, borrow_id
from src.position.borrow_request import RequestStatus
from src.protocol.errors import (
    InsufficientCollateral,
    InvalidStatus,
    NotFound,
    PriceUnavailable,
    UnsupportedAsset,
)
from src.protocol.ledger import LendingLedger
from tests.ledger_helpers import ADMIN, ALICE, SCENARIO_PARAMS, FakeClock, bob, open_position, usdt


class TestProcessRequest:
    def test_scenario(self, ledger: LendingLedger) -> None:
        """1000 USDT supplied, 2100 BOB borrowed at 7 BOB/USDT and 150%."""
        ledger.deposit(ALICE, USDT, usdt(1000))
        request = ledger.request_borrow(ALICE, USDT, BOB, bob(2100))

        borrow = ledger.process_request(ADMIN, request.id)

        assert borrow.id == borrow_id(ALICE, USDT, BOB)
        assert borrow.status is BorrowStatus.ACTIVE
        assert borrow.borrowed_amount == bob(2100)
        assert borrow.locked_collateral == usdt(450)
        assert ledger.get_request(request.id).status is RequestStatus.PROCESSED
        supply = ledger.supply_of(ALICE, USDT)
        assert supply.used_collateral == usdt(450)
        assert ledger.available_collateral(supply.id) == usdt(550)
        assert ledger.outstanding_debt(borrow.id) == bob(2100)

    def test_required_collateral(self, ledger: LendingLedger) -> None:
        ledger.deposit(ALICE, USDT, usdt(1000))
        request = ledger.request_borrow(ALICE, USDT, BOB, bob(2100))
        assert ledger.borrows.required_collateral(request) == usdt(450)

    def test_insufficient_collateral(self, ledger: LendingLedger) -> None:
        ledger.deposit(ALICE, USDT, usdt(100))
        request = ledger.request_borrow(ALICE, USDT, BOB, bob(2100))
        with pytest.raises(InsufficientCollateral):
            ledger.process_request(ADMIN, request.id)
        assert ledger.get_request(request.id).status is RequestStatus.PENDING
        assert ledger.supply_of(ALICE, USDT).used_collateral == 0
        with pytest.raises(NotFound):
            ledger.borrow_of(ALICE, USDT, BOB)

    def test_exact_collateral_is_enough(self, ledger: LendingLedger) -> None:
        borrow = open_position(ledger, collateral=usdt(450))
        assert borrow.locked_collateral == usdt(450)
        assert ledger.available_collateral(ledger.supply_of(ALICE, USDT).id) == 0

    def test_requests_aggregate_into_one_position(self, ledger: LendingLedger) -> None:
        open_position(ledger)
        second = ledger.request_borrow(ALICE, USDT, BOB, bob(700))
        borrow = ledger.process_request(ADMIN, second.id)
        assert borrow.borrowed_amount == bob(2800)
        assert borrow.locked_collateral == usdt(600)
        assert ledger.supply_of(ALICE, USDT).used_collateral == usdt(600)

    def test_later_draw_scaled_by_index(self, ledger: LendingLedger, clock: FakeClock) -> None:
        open_position(ledger)
        clock.advance(SECONDS_PER_YEAR)
        request = ledger.request_borrow(ALICE, USDT, BOB, bob(2100))
        borrow = ledger.process_request(ADMIN, request.id)
        # 2100 at index 1.00 plus 2100 at index 1.05
        assert borrow.borrowed_amount == bob(2100) + bob(2000)
        assert ledger.outstanding_debt(borrow.id) == bob(2205) + bob(2100)

    def test_currencies_get_separate_positions(self, ledger: LendingLedger, feed: StaticPriceFeed) -> None:
        ledger.add_currency(ADMIN, replace(SCENARIO_PARAMS, code="ARS", price_feed="ARS"))
        feed.set_price("ARS", 100_000)
        open_position(ledger)
        request = ledger.request_borrow(ALICE, USDT, "ARS", 100_000)
        ars = ledger.process_request(ADMIN, request.id)
        assert ars.id != ledger.borrow_of(ALICE, USDT, BOB).id
        # 1000 ARS at 1000 ARS/USDT, 150%
        assert ars.locked_collateral == usdt(1.5)
        assert ledger.supply_of(ALICE, USDT).used_collateral == usdt(451.5)

    def test_reopens_after_repayment(self, ledger: LendingLedger) -> None:
        borrow = open_position(ledger)
        ledger.repay(ALICE, borrow.id, bob(2100))
        assert ledger.get_borrow(borrow.id).status is BorrowStatus.REPAID

        request = ledger.request_borrow(ALICE, USDT, BOB, bob(700))
        reopened = ledger.process_request(ADMIN, request.id)
        assert reopened.id == borrow.id
        assert reopened.status is BorrowStatus.ACTIVE
        assert reopened.borrowed_amount == bob(700)
        assert reopened.locked_collateral == usdt(150)
        assert reopened.total_repaid == 0

    def test_reopens_after_liquidation(self, ledger: LendingLedger, feed: StaticPriceFeed) -> None:
        borrow = open_position(ledger)
        feed.set_price(BOB, 200)
        ledger.liquidate(borrow.id)
        feed.set_price(BOB, 700)

        request = ledger.request_borrow(ALICE, USDT, BOB, bob(700))
        reopened = ledger.process_request(ADMIN, request.id)
        assert reopened.status is BorrowStatus.ACTIVE
        assert reopened.borrowed_amount == bob(700)

    def test_already_processed(self, ledger: LendingLedger) -> None:
        ledger.deposit(ALICE, USDT, usdt(1000))
        request = ledger.request_borrow(ALICE, USDT, BOB, bob(10))
        ledger.process_request(ADMIN, request.id)
        with pytest.raises(InvalidStatus):
            ledger.process_request(ADMIN, request.id)

    def test_unknown_request(self, ledger: LendingLedger) -> None:
        with pytest.raises(NotFound):
            ledger.process_request(ADMIN, "0xmissing")

    def test_asset_disabled_after_request(self, ledger: LendingLedger) -> None:
        ledger.deposit(ALICE, USDT, usdt(1000))
        request = ledger.request_borrow(ALICE, USDT, BOB, bob(10))
        ledger.update_asset(ADMIN, USDT, 6, False)
        with pytest.raises(UnsupportedAsset):
            ledger.process_request(ADMIN, request.id)

    def test_price_unavailable(self, ledger: LendingLedger, feed: StaticPriceFeed) -> None:
        ledger.deposit(ALICE, USDT, usdt(1000))
        request = ledger.request_borrow(ALICE, USDT, BOB, bob(10))
        feed.set_price(BOB, 0)
        with pytest.raises(PriceUnavailable):
            ledger.process_request(ADMIN, request.id)
        assert ledger.get_request(request.id).status is RequestStatus.PENDING

    def test_index_synced_on_process(self, ledger: LendingLedger, clock: FakeClock) -> None:
        ledger.deposit(ALICE, USDT, usdt(1000))
        request = ledger.request_borrow(ALICE, USDT, BOB, bob(10))
        clock.advance(SECONDS_PER_YEAR)
        ledger.process_request(ADMIN, request.id)
        currency = ledger.registry.get_currency(BOB)
        assert currency.borrow_index == 105 * RAY // 100
        assert currency.last_index_update_time == clock.now
