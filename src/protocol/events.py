"""Observable ledger events.

Each event carries the identifiers and amounts an indexer needs to rebuild
ledger history without reading internal state.
"""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class LedgerEvent:
    """Base event; ``timestamp`` is the ledger clock at commit time."""

    timestamp: int

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_record(self) -> dict:
        return {"event": self.name, **asdict(self)}


@dataclass(frozen=True)
class AssetConfigured(LedgerEvent):
    asset: str
    decimals: int
    is_supported: bool


@dataclass(frozen=True)
class CurrencyConfigured(LedgerEvent):
    currency: str
    decimals: int
    collateralization_ratio: int
    liquidation_threshold: int


@dataclass(frozen=True)
class IndexSynced(LedgerEvent):
    currency: str
    rate: int
    borrow_index: int


@dataclass(frozen=True)
class SupplyCreated(LedgerEvent):
    supply_id: str
    owner: str
    asset: str
    amount: int
    scaled_amount: int


@dataclass(frozen=True)
class SupplyDeposited(LedgerEvent):
    supply_id: str
    owner: str
    asset: str
    amount: int
    scaled_amount: int


@dataclass(frozen=True)
class SupplyWithdrawn(LedgerEvent):
    supply_id: str
    owner: str
    asset: str
    amount: int
    scaled_amount: int


@dataclass(frozen=True)
class BorrowRequestCreated(LedgerEvent):
    request_id: str
    owner: str
    collateral_asset: str
    currency: str
    borrow_amount: int
    nonce: int


@dataclass(frozen=True)
class BorrowRequestProcessed(LedgerEvent):
    request_id: str
    borrow_id: str
    required_collateral: int


@dataclass(frozen=True)
class BorrowRequestCanceled(LedgerEvent):
    request_id: str


@dataclass(frozen=True)
class BorrowUpdated(LedgerEvent):
    borrow_id: str
    owner: str
    collateral_asset: str
    currency: str
    borrowed_amount: int
    locked_collateral: int


@dataclass(frozen=True)
class LoanRepaid(LedgerEvent):
    borrow_id: str
    owner: str
    amount: int
    collateral_released: int
    remaining_debt: int


@dataclass(frozen=True)
class CollateralLiquidated(LedgerEvent):
    borrow_id: str
    owner: str
    collateral_released: int
    collateral_value: int
    debt_value: int
    ratio: int
