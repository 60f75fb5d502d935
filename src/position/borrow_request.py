"""Pending borrow intents awaiting operator approval."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable

from src.position.store import RecordStore, record_key
from src.position.supply import SupplyLedger
from src.protocol.errors import InvalidAmount, InvalidStatus, NotFound
from src.protocol.events import BorrowRequestCanceled, BorrowRequestCreated, LedgerEvent
from src.protocol.registry import Registry


class RequestStatus(enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    CANCELED = "canceled"


@dataclass
class BorrowRequest:
    id: str
    owner: str
    collateral_asset: str
    currency: str
    borrow_amount: int
    nonce: int
    created_at: int
    status: RequestStatus = RequestStatus.PENDING


class BorrowRequestBook:
    """Creates requests and moves them out of PENDING exactly once."""

    def __init__(
        self,
        registry: Registry,
        supplies: SupplyLedger,
        emit: Callable[[LedgerEvent], None],
        clock: Callable[[], int],
    ) -> None:
        self.registry = registry
        self.supplies = supplies
        self.emit = emit
        self.clock = clock
        self.requests: RecordStore[BorrowRequest] = RecordStore()
        self.nonces: RecordStore[int] = RecordStore()

    def get(self, request_id: str) -> BorrowRequest:
        request = self.requests.get(request_id)
        if request is None:
            raise NotFound(f"borrow request {request_id} does not exist")
        return request

    def require_pending(self, request_id: str) -> BorrowRequest:
        request = self.get(request_id)
        if request.status is not RequestStatus.PENDING:
            raise InvalidStatus(f"borrow request {request_id} is {request.status.value}")
        return request

    def pending(self, owner: str | None = None) -> list[BorrowRequest]:
        return sorted(
            (
                r for r in self.requests.values()
                if r.status is RequestStatus.PENDING and (owner is None or r.owner == owner)
            ),
            key=lambda r: (r.created_at, r.owner, r.nonce),
        )

    def request_borrow(self, owner: str, collateral_asset: str, currency: str, amount: int) -> BorrowRequest:
        """Record an intent to borrow; collateral and debt are untouched."""
        if amount <= 0:
            raise InvalidAmount("borrow amount must be positive")
        self.supplies.require_active(owner, collateral_asset)
        self.registry.require_currency(currency)

        nonce = self.nonces.get(owner, 0)
        self.nonces[owner] = nonce + 1
        key = record_key("request", owner, collateral_asset, currency, amount, nonce)
        now = self.clock()
        request = BorrowRequest(
            id=key,
            owner=owner,
            collateral_asset=collateral_asset,
            currency=currency,
            borrow_amount=amount,
            nonce=nonce,
            created_at=now,
        )
        self.requests[key] = request
        self.emit(BorrowRequestCreated(now, key, owner, collateral_asset, currency, amount, nonce))
        return request

    def mark_processed(self, request: BorrowRequest) -> None:
        request.status = RequestStatus.PROCESSED

    def cancel(self, request_id: str) -> BorrowRequest:
        request = self.require_pending(request_id)
        request.status = RequestStatus.CANCELED
        self.emit(BorrowRequestCanceled(self.clock(), request.id))
        return request
