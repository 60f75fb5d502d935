"""Constants and helpers shared by the ledger tests."""

from __future__ import annotations

from src.data.constants import BOB, RAY, USDT, USDT_DECIMALS
from src.protocol.registry import CurrencyParams

ADMIN = "admin"
ALICE = "alice"
CAROL = "carol"
LEDGER = "torito-ledger"

START_TIME = 1_700_000_000

# 1 USDT = 7.00 BOB
BOB_PRICE = 700

SCENARIO_PARAMS = CurrencyParams(
    code=BOB,
    decimals=2,
    collateralization_ratio=15 * RAY // 10,
    liquidation_threshold=12 * RAY // 10,
    price_feed=BOB,
    base_rate=5 * RAY // 100,
    min_rate=0,
    max_rate=RAY,
    sensitivity=0,
)


def usdt(amount: float) -> int:
    return int(amount * 10**USDT_DECIMALS)


def bob(amount: float) -> int:
    return int(round(amount * 100))


class FakeClock:
    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def open_position(ledger, owner: str = ALICE, collateral: int = 1_000_000_000, amount: int = 210_000):
    """Deposit ``collateral`` USDT, request ``amount`` BOB cents and approve it."""
    ledger.deposit(owner, USDT, collateral)
    request = ledger.request_borrow(owner, USDT, BOB, amount)
    return ledger.process_request(ADMIN, request.id)
