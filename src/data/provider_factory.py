"""Factory for the ledger's external collaborators and default setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.data.interfaces import CustodyVenue, FundTransfer, PriceFeed, TransactionSubmitter
from src.data.static_params import (
    DEFAULT_ASSETS,
    DEFAULT_CURRENCIES,
    InMemoryFundTransfer,
    StaticCustodyVenue,
    StaticPriceFeed,
)

if TYPE_CHECKING:
    from src.protocol.ledger import LendingLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Collaborators:
    """The three collaborators a ``LendingLedger`` is built from."""

    custody: CustodyVenue
    price_feed: PriceFeed
    token: FundTransfer


def static_collaborators(holder: str = "torito-ledger") -> Collaborators:
    token = InMemoryFundTransfer(holder)
    return Collaborators(
        custody=StaticCustodyVenue(token=token),
        price_feed=StaticPriceFeed(),
        token=token,
    )


def create_collaborators(
    use_onchain: bool = False,
    rpc_url: str | None = None,
    pool_address: str | None = None,
    feeds: dict[str, str] | None = None,
    submitter: TransactionSubmitter | None = None,
    cache_ttl: float = 60.0,
    holder: str = "torito-ledger",
) -> Collaborators:
    """Create collaborators, selecting in-memory or on-chain.

    Parameters
    ----------
    use_onchain : bool
        If True, build web3-backed collaborators; missing configuration
        is an error rather than a silent switch to in-memory data.
    rpc_url : str | None
        JSON-RPC URL. Falls back to the ``ETH_RPC_URL`` environment variable.
    pool_address : str | None
        Custody pool address. Falls back to ``TORITO_POOL_ADDRESS``.
    feeds : dict[str, str] | None
        Feed reference -> aggregator address for the default currencies.
    submitter : TransactionSubmitter | None
        Signs and broadcasts custody and token calls; required on-chain.
    cache_ttl : float
        TTL in seconds for cached prices (default 60).
    holder : str
        Ledger account used by the in-memory token book.

    Returns
    -------
    Collaborators
        On-chain collaborators when ``use_onchain`` is set, otherwise the
        in-memory ones.

    Raises
    ------
    ValueError
        On-chain collaborators were requested without an RPC URL, a pool
        address or a transaction submitter.
    """
    if not use_onchain:
        return static_collaborators(holder)

    resolved_url = rpc_url or os.environ.get("ETH_RPC_URL")
    resolved_pool = pool_address or os.environ.get("TORITO_POOL_ADDRESS")
    if not resolved_url:
        raise ValueError("on-chain collaborators need an RPC URL (rpc_url or ETH_RPC_URL)")
    if not resolved_pool:
        raise ValueError(
            "on-chain collaborators need a pool address (pool_address or TORITO_POOL_ADDRESS)"
        )
    if submitter is None:
        raise ValueError("on-chain collaborators need a transaction submitter")

    from web3 import Web3

    from src.data.onchain_provider import (
        OnChainCustodyVenue,
        OnChainFundTransfer,
        OnChainPriceFeed,
    )

    w3 = Web3(Web3.HTTPProvider(resolved_url))
    price_feed = OnChainPriceFeed(
        feeds=feeds or {},
        currency_decimals={code: p.decimals for code, p in DEFAULT_CURRENCIES.items()},
        cache_ttl=cache_ttl,
        w3=w3,
    )
    logger.info("Using on-chain collaborators: pool=%s", resolved_pool)
    return Collaborators(
        custody=OnChainCustodyVenue(resolved_pool, submitter, w3=w3),
        price_feed=price_feed,
        token=OnChainFundTransfer(submitter, w3=w3),
    )


def register_defaults(ledger: LendingLedger) -> None:
    """Register the default assets and currencies as the ledger admin."""
    for asset, decimals in DEFAULT_ASSETS.items():
        ledger.add_asset(ledger.admin, asset, decimals, supported=True)
    for params in DEFAULT_CURRENCIES.values():
        ledger.add_currency(ledger.admin, params)
