"""Debt repayment with proportional collateral release."""

from __future__ import annotations

from typing import Callable

from src.position.borrow import BorrowLedger, BorrowStatus, outstanding_debt
from src.position.supply import SupplyLedger, supply_id
from src.protocol.errors import AuthorizationError, ExceedsOwed, InvalidAmount
from src.protocol.events import LedgerEvent, LoanRepaid


def collateral_release(locked: int, amount: int, outstanding: int) -> int:
    """Share of ``locked`` freed by repaying ``amount`` of ``outstanding``."""
    if locked == 0 or outstanding == 0:
        return 0
    return min(locked * amount // outstanding, locked)


class RepaymentDesk:
    def __init__(
        self,
        borrows: BorrowLedger,
        supplies: SupplyLedger,
        emit: Callable[[LedgerEvent], None],
        clock: Callable[[], int],
    ) -> None:
        self.borrows = borrows
        self.supplies = supplies
        self.emit = emit
        self.clock = clock

    def repay(self, caller: str, borrow_id_: str, amount: int) -> int:
        """Repay ``amount`` currency units of an ACTIVE borrow.

        Paying off exactly the outstanding debt closes the position as
        REPAID and frees all of its locked collateral.

        Returns:
            Collateral-asset units released back to the owner's supply.
        """
        borrow = self.borrows.get(borrow_id_)
        if caller != borrow.owner:
            raise AuthorizationError(f"{caller} does not own borrow {borrow_id_}")
        borrow = self.borrows.require_active(borrow_id_)
        if amount <= 0:
            raise InvalidAmount("repay amount must be positive")

        currency = self.borrows.sync(borrow)
        outstanding = outstanding_debt(borrow, currency)
        if amount > outstanding:
            raise ExceedsOwed(f"repay of {amount} exceeds outstanding {outstanding} on {borrow_id_}")

        release = collateral_release(borrow.locked_collateral, amount, outstanding)
        supply = self.supplies.get(supply_id(borrow.owner, borrow.collateral_asset))
        borrow.locked_collateral -= release
        self.supplies.release_collateral(supply, release)
        borrow.total_repaid += amount

        remaining = outstanding - amount
        if remaining == 0:
            self.supplies.release_collateral(supply, borrow.locked_collateral)
            release += borrow.locked_collateral
            borrow.locked_collateral = 0
            borrow.status = BorrowStatus.REPAID

        self.emit(LoanRepaid(self.clock(), borrow.id, borrow.owner, amount, release, remaining))
        return release
