"""Tests for the in-memory collaborators and default parameters."""

import pytest

from src.data.constants import BOB, RAY, USDT
from src.data.static_params import (
    DEFAULT_ASSETS,
    DEFAULT_CURRENCIES,
    InMemoryFundTransfer,
    StaticCustodyVenue,
    StaticPriceFeed,
)
from src.protocol.registry import validate_currency_params


class TestDefaults:
    def test_usdt_listed(self):
        assert DEFAULT_ASSETS[USDT] == 6

    @pytest.mark.parametrize("code", list(DEFAULT_CURRENCIES))
    def test_currency_params_valid(self, code: str):
        validate_currency_params(DEFAULT_CURRENCIES[code])

    def test_default_price(self):
        assert StaticPriceFeed().get_price(BOB) == 696


class TestInMemoryFundTransfer:
    def test_transfer_from(self):
        book = InMemoryFundTransfer("ledger")
        book.mint(USDT, "alice", 100)
        book.transfer_from(USDT, "alice", "ledger", 40)
        assert book.balance_of(USDT, "alice") == 60
        assert book.balance_of(USDT, "ledger") == 40

    def test_transfer_spends_holder_balance(self):
        book = InMemoryFundTransfer("ledger")
        book.mint(USDT, "ledger", 10)
        book.transfer(USDT, "bob", 10)
        assert book.balance_of(USDT, "bob") == 10
        assert book.balance_of(USDT, "ledger") == 0

    def test_insufficient_balance(self):
        book = InMemoryFundTransfer("ledger")
        with pytest.raises(ValueError):
            book.transfer_from(USDT, "alice", "ledger", 1)

    def test_negative_amount(self):
        book = InMemoryFundTransfer("ledger")
        with pytest.raises(ValueError):
            book.move(USDT, "alice", "ledger", -1)

    def test_approve_records_allowance(self):
        book = InMemoryFundTransfer("ledger")
        book.approve(USDT, "pool", 7)
        assert book.allowances[(USDT, "ledger", "pool")] == 7


class TestStaticCustodyVenue:
    def test_default_income_is_ray(self):
        assert StaticCustodyVenue().get_normalized_income(USDT) == RAY

    def test_set_income(self):
        venue = StaticCustodyVenue()
        venue.set_normalized_income(USDT, 2 * RAY)
        assert venue.get_normalized_income(USDT) == 2 * RAY

    def test_income_below_ray_rejected(self):
        with pytest.raises(ValueError):
            StaticCustodyVenue().set_normalized_income(USDT, RAY - 1)

    def test_without_token_book(self):
        venue = StaticCustodyVenue()
        venue.supply(USDT, 5, "ledger")
        assert venue.supplied[USDT] == 5
        assert venue.withdraw(USDT, 5, "alice") == 5
        assert venue.supplied[USDT] == 0

    def test_withdraw_reduces_supplied(self):
        venue = StaticCustodyVenue()
        venue.supply(USDT, 10, "ledger")
        venue.supply("0xdai", 4, "ledger")
        venue.withdraw(USDT, 3, "alice")
        assert venue.supplied[USDT] == 7
        assert venue.supplied["0xdai"] == 4


class TestStaticPriceFeed:
    def test_unknown_currency_is_zero(self):
        assert StaticPriceFeed({}).get_price(BOB) == 0

    def test_set_price(self):
        feed = StaticPriceFeed({})
        feed.set_price(BOB, 700)
        assert feed.get_price(BOB) == 700
