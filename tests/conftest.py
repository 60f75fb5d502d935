"""Shared fixtures: a ledger wired to in-memory collaborators and a fake clock."""

from __future__ import annotations

import pytest

from src.data.constants import BOB, USDT, USDT_DECIMALS
from src.data.static_params import InMemoryFundTransfer, StaticCustodyVenue, StaticPriceFeed
from src.protocol.ledger import LendingLedger
from tests.ledger_helpers import (
    ADMIN,
    ALICE,
    BOB_PRICE,
    CAROL,
    LEDGER,
    SCENARIO_PARAMS,
    FakeClock,
    usdt,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token() -> InMemoryFundTransfer:
    book = InMemoryFundTransfer(LEDGER)
    book.mint(USDT, ALICE, usdt(10_000))
    book.mint(USDT, CAROL, usdt(10_000))
    return book


@pytest.fixture
def custody(token: InMemoryFundTransfer) -> StaticCustodyVenue:
    return StaticCustodyVenue(token=token)


@pytest.fixture
def feed() -> StaticPriceFeed:
    return StaticPriceFeed({BOB: BOB_PRICE})


@pytest.fixture
def ledger(
    custody: StaticCustodyVenue,
    feed: StaticPriceFeed,
    token: InMemoryFundTransfer,
    clock: FakeClock,
) -> LendingLedger:
    book = LendingLedger(ADMIN, custody, feed, token, address=LEDGER, clock=clock)
    book.add_asset(ADMIN, USDT, USDT_DECIMALS)
    book.add_currency(ADMIN, SCENARIO_PARAMS)
    return book
