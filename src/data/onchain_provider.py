"""On-chain collaborators backed by web3.py.

Reads (price, normalized income) go straight to the chain. Writes (custody
supply/withdraw, token transfers) are encoded here and handed to a
``TransactionSubmitter``; signing and broadcasting live outside the ledger.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from src.data.contracts import CHAINLINK_FEED_ABI, ERC20_ABI, POOL_ABI
from src.data.interfaces import (
    ContractCall,
    CustodyVenue,
    FundTransfer,
    PriceFeed,
    TransactionSubmitter,
)
from src.protocol.fixed_point import rescale

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# TTL cache
# ---------------------------------------------------------------------------

class _TTLCache:
    """Simple dict-based cache with per-entry TTL expiry."""

    def __init__(self, ttl: float) -> None:
        self._ttl = ttl
        self._store: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        ts, value = entry
        if time.monotonic() - ts > self._ttl:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (time.monotonic(), value)

    def clear(self) -> None:
        self._store.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _connect(rpc_url: str | None, w3: Any | None) -> Any:
    """Return ``w3`` or a fresh HTTP Web3 client for ``rpc_url``."""
    if w3 is not None:
        return w3
    if not rpc_url:
        raise ValueError("rpc_url is required when no Web3 client is given")
    from web3 import Web3

    return Web3(Web3.HTTPProvider(rpc_url))


def _feed_answer_to_price(answer: int, feed_decimals: int, currency_decimals: int) -> int:
    """Rescale an aggregator answer to currency smallest units; <= 0 means unavailable."""
    if answer <= 0:
        return 0
    return rescale(answer, feed_decimals, currency_decimals)


# ---------------------------------------------------------------------------
# Price feed
# ---------------------------------------------------------------------------

class OnChainPriceFeed(PriceFeed):
    """Chainlink-style aggregators quoting fiat per one collateral-asset unit.

    Parameters
    ----------
    feeds : dict[str, str]
        Feed reference (as stored on the currency) -> aggregator address.
    currency_decimals : dict[str, int]
        Feed reference -> decimals of the currency it prices.
    rpc_url : str | None
        JSON-RPC endpoint; ignored when ``w3`` is given.
    cache_ttl : float
        Seconds before a cached price expires (default 60).
    fallback : PriceFeed | None
        Consulted when an RPC call fails. Without one the price reads as 0
        (unavailable).
    w3 : Any | None
        Pre-built Web3 client.
    """

    def __init__(
        self,
        feeds: dict[str, str],
        currency_decimals: dict[str, int],
        rpc_url: str | None = None,
        cache_ttl: float = 60.0,
        fallback: PriceFeed | None = None,
        w3: Any | None = None,
    ) -> None:
        self._w3 = _connect(rpc_url, w3)
        self._feeds = feeds
        self._currency_decimals = currency_decimals
        self._cache = _TTLCache(cache_ttl)
        self._fallback = fallback
        self._contracts: dict[str, Any] = {}

    def _feed_contract(self, feed: str) -> Any:
        if feed in self._contracts:
            return self._contracts[feed]
        raw = self._feeds.get(feed)
        if raw is None:
            raise ValueError(f"Unknown price feed: {feed}")
        contract = self._w3.eth.contract(
            address=self._w3.to_checksum_address(raw),
            abi=CHAINLINK_FEED_ABI,
        )
        self._contracts[feed] = contract
        return contract

    def _call_with_fallback(
        self,
        cache_key: str,
        fetcher: Callable[[], Any],
        fallback_method: Callable[..., Any] | None,
        *fallback_args: Any,
    ) -> Any:
        """Cache → RPC → fallback pipeline."""
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            value = fetcher()
            self._cache.set(cache_key, value)
            return value
        except Exception:
            logger.warning("RPC call failed for key=%s", cache_key, exc_info=True)

        if fallback_method is not None:
            logger.warning("Using fallback for key=%s", cache_key)
            return fallback_method(*fallback_args)

        return None

    def get_price(self, currency: str) -> int:
        """Latest aggregator answer; 0 when the feed is unknown or unreachable.

        A zero price makes the ledger raise ``PriceUnavailable``, so a dead
        RPC never turns into a made-up quote.
        """
        def _fetch() -> int:
            contract = self._feed_contract(currency)
            decimals = contract.functions.decimals().call()
            round_data = contract.functions.latestRoundData().call()
            return _feed_answer_to_price(
                round_data[1], decimals, self._currency_decimals[currency]
            )

        fb = self._fallback.get_price if self._fallback else None
        price = self._call_with_fallback(f"price:{currency}", _fetch, fb, currency)
        return 0 if price is None else price

    def refresh(self) -> None:
        """Invalidate all cached prices, forcing fresh RPC calls."""
        self._cache.clear()

    @property
    def is_connected(self) -> bool:
        try:
            return self._w3.is_connected()
        except Exception:
            return False


# ---------------------------------------------------------------------------
# Custody venue
# ---------------------------------------------------------------------------

class OnChainCustodyVenue(CustodyVenue):
    """Aave V3 pool used as the custody venue.

    The normalized income is read live on every call; the ledger values
    balances against it, so it is never cached.
    """

    def __init__(
        self,
        pool_address: str,
        submitter: TransactionSubmitter,
        rpc_url: str | None = None,
        w3: Any | None = None,
        referral_code: int = 0,
    ) -> None:
        self._w3 = _connect(rpc_url, w3)
        self._address = self._w3.to_checksum_address(pool_address)
        self._pool = self._w3.eth.contract(address=self._address, abi=POOL_ABI)
        self._submitter = submitter
        self._referral_code = referral_code

    @property
    def address(self) -> str:
        return self._address

    def get_normalized_income(self, asset: str) -> int:
        asset_addr = self._w3.to_checksum_address(asset)
        try:
            return self._pool.functions.getReserveNormalizedIncome(asset_addr).call()
        except Exception as exc:
            logger.warning("getReserveNormalizedIncome failed for %s", asset, exc_info=True)
            raise RuntimeError(f"normalized income unavailable for {asset}") from exc

    def _submit(self, function: str, args: list[Any]) -> str:
        call = ContractCall(
            to=self._address,
            function=function,
            args=tuple(args),
            data=self._pool.encode_abi(function, args=args),
        )
        tx_hash = self._submitter.submit(call)
        logger.info("Submitted pool.%s %s", function, tx_hash)
        return tx_hash

    def supply(self, asset: str, amount: int, on_behalf_of: str) -> None:
        self._submit(
            "supply",
            [
                self._w3.to_checksum_address(asset),
                amount,
                self._w3.to_checksum_address(on_behalf_of),
                self._referral_code,
            ],
        )

    def withdraw(self, asset: str, amount: int, to: str) -> int:
        self._submit(
            "withdraw",
            [self._w3.to_checksum_address(asset), amount, self._w3.to_checksum_address(to)],
        )
        return amount


# ---------------------------------------------------------------------------
# ERC20 transfers
# ---------------------------------------------------------------------------

class OnChainFundTransfer(FundTransfer):
    """ERC20 calls on the collateral token, submitted from the ledger account."""

    def __init__(
        self,
        submitter: TransactionSubmitter,
        rpc_url: str | None = None,
        w3: Any | None = None,
    ) -> None:
        self._w3 = _connect(rpc_url, w3)
        self._submitter = submitter
        self._tokens: dict[str, Any] = {}

    def _token(self, asset: str) -> Any:
        if asset not in self._tokens:
            self._tokens[asset] = self._w3.eth.contract(
                address=self._w3.to_checksum_address(asset),
                abi=ERC20_ABI,
            )
        return self._tokens[asset]

    def _submit(self, asset: str, function: str, args: list[Any]) -> str:
        token = self._token(asset)
        call = ContractCall(
            to=self._w3.to_checksum_address(asset),
            function=function,
            args=tuple(args),
            data=token.encode_abi(function, args=args),
        )
        return self._submitter.submit(call)

    def transfer_from(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        self._submit(
            asset,
            "transferFrom",
            [self._w3.to_checksum_address(sender), self._w3.to_checksum_address(recipient), amount],
        )

    def transfer(self, asset: str, recipient: str, amount: int) -> None:
        self._submit(asset, "transfer", [self._w3.to_checksum_address(recipient), amount])

    def approve(self, asset: str, spender: str, amount: int) -> None:
        self._submit(asset, "approve", [self._w3.to_checksum_address(spender), amount])
