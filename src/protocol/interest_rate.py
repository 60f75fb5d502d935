"""Price-sensitive borrow rate and per-currency borrow index.

The rate rises when one unit of the fiat currency buys more of the
collateral asset than parity and falls when it buys less.
"""

import logging
from typing import Callable, Sequence

import numpy as np
import pandas as pd

from src.data.constants import RAY, SECONDS_PER_YEAR
from src.protocol.fixed_point import from_ray, ray_mul
from src.protocol.pricing import PriceConversionService
from src.protocol.registry import Asset, CurrencyParams, FiatCurrency

logger = logging.getLogger(__name__)


def rate_for_price(params: CurrencyParams, price: int) -> int:
    """Dynamic annual rate (RAY) for a RAY-scaled unit price.

    Above parity: ``base + (price - 1) * sensitivity``.
    Below parity: ``base - (1 - price) * sensitivity``, or ``min_rate`` if
    that would drop below zero. The result is clamped to
    ``[min_rate, max_rate]``.
    """
    if price >= RAY:
        rate = params.base_rate + ray_mul(price - RAY, params.sensitivity)
    else:
        discount = ray_mul(RAY - price, params.sensitivity)
        rate = params.base_rate - discount if discount <= params.base_rate else params.min_rate
    return max(params.min_rate, min(params.max_rate, rate))


class InterestRateModel:
    """Computes dynamic rates and advances borrow indices."""

    def __init__(
        self,
        pricing: PriceConversionService,
        clock: Callable[[], int],
    ) -> None:
        self.pricing = pricing
        self.clock = clock

    def dynamic_rate(self, currency: FiatCurrency, collateral_asset: Asset) -> int:
        """Current annual borrow rate (RAY) of ``currency`` against ``collateral_asset``."""
        params = currency.params
        if params.price_feed is None:
            return params.base_rate
        price = self.pricing.unit_price_in_asset(currency.code, collateral_asset)
        return rate_for_price(params, price)

    def projected_index(
        self,
        currency: FiatCurrency,
        collateral_asset: Asset,
        now: int | None = None,
    ) -> tuple[int, int]:
        """Borrow index ``currency`` would have at ``now``, without mutating it.

        Linear accrual over the elapsed window:
        ``index * (1 + rate * elapsed / SECONDS_PER_YEAR)``.

        Args:
            currency: Currency whose index is projected.
            collateral_asset: Asset the dynamic rate is priced against.
            now: Projection time; read from the clock when omitted.

        Returns:
            (index, rate applied); the rate is 0 when no time has elapsed.
        """
        if now is None:
            now = self.clock()
        elapsed = now - currency.last_index_update_time
        if elapsed <= 0:
            return currency.borrow_index, 0
        rate = self.dynamic_rate(currency, collateral_asset)
        factor = RAY + rate * elapsed // SECONDS_PER_YEAR
        return ray_mul(currency.borrow_index, factor), rate

    def sync_index(self, currency: FiatCurrency, collateral_asset: Asset) -> int:
        """Advance ``currency.borrow_index`` to now using the current rate.

        The clock is read once, so the accrual window always ends at the
        recorded update time.

        Returns:
            The rate applied, or 0 when no time has elapsed.
        """
        now = self.clock()
        elapsed = now - currency.last_index_update_time
        if elapsed <= 0:
            return 0
        currency.borrow_index, rate = self.projected_index(currency, collateral_asset, now)
        currency.last_index_update_time = now
        logger.debug(
            "Synced %s index over %ds at %.4f%% -> %s",
            currency.code, elapsed, from_ray(rate) * 100, currency.borrow_index,
        )
        return rate

    def rate_curve(self, params: CurrencyParams, prices: Sequence[float] | None = None) -> pd.DataFrame:
        """Rate as a function of unit price, for plotting or reports.

        Args:
            params: Currency configuration.
            prices: Unit prices as decimals (1.0 = parity). Defaults to 200
                points in [0, 2].

        Returns:
            DataFrame with columns: price, borrow_rate
        """
        grid = np.linspace(0.0, 2.0, 200) if prices is None else np.asarray(prices, dtype=float)
        rates = [from_ray(rate_for_price(params, int(p * RAY))) for p in grid]
        return pd.DataFrame({"price": grid, "borrow_rate": rates})
