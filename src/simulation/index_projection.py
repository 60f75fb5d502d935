"""Projection of a currency's borrow index under simulated FX moves.

The unit price of the fiat currency in collateral-asset terms follows a
geometric Brownian motion. At each step the ledger's own rate rule is
applied to the simulated price and the index accrues linearly over the
step, exactly as ``InterestRateModel.sync_index`` would if it were called
once per step.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from src.data.constants import RAY, SECONDS_PER_YEAR
from src.protocol.interest_rate import rate_for_price
from src.protocol.registry import CurrencyParams
from src.simulation.results import IndexProjectionResult


@dataclass(frozen=True)
class FxPathParams:
    """GBM parameters for the currency's unit price.

    Attributes:
        drift: Annualized drift of the log price.
        volatility: Annualized volatility of the log price.
    """

    drift: float = 0.0
    volatility: float = 0.10


def simulate_price_paths(
    fx: FxPathParams,
    p0: float,
    n_paths: int,
    n_steps: int,
    dt: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Simulate GBM unit-price paths.

    Args:
        fx: Drift and volatility.
        p0: Initial unit price (1.0 = parity).
        n_paths: Number of paths.
        n_steps: Number of time steps (including the start).
        dt: Step size in years.
        rng: Numpy random generator for reproducibility.

    Returns:
        (n_paths, n_steps) array of positive prices.
    """
    if p0 <= 0:
        raise ValueError("initial price must be positive")
    z = rng.standard_normal((n_paths, n_steps - 1))
    log_steps = (fx.drift - 0.5 * fx.volatility**2) * dt + fx.volatility * np.sqrt(dt) * z
    log_paths = np.concatenate(
        [np.zeros((n_paths, 1)), np.cumsum(log_steps, axis=1)], axis=1
    )
    return p0 * np.exp(log_paths)


def rates_for_prices(params: CurrencyParams, prices: np.ndarray) -> np.ndarray:
    """Annual rates (as decimals) for an array of unit prices."""
    to_rate = np.vectorize(lambda p: rate_for_price(params, int(p * RAY)) / RAY, otypes=[float])
    return to_rate(prices)


def project_index(
    params: CurrencyParams,
    price_paths: np.ndarray,
    step_seconds: int,
    start_index: int = RAY,
    scaled_debt: int = 0,
    total_repaid: int = 0,
) -> IndexProjectionResult:
    """Accrue the borrow index along each price path.

    Args:
        params: Currency configuration (rate rule inputs).
        price_paths: (n_paths, n_steps) unit prices.
        step_seconds: Seconds between consecutive steps.
        start_index: Borrow index at step 0 (RAY).
        scaled_debt: A position's index-scaled borrowed amount.
        total_repaid: The position's repayments so far (currency units).

    Returns:
        IndexProjectionResult with index and debt paths.
    """
    price_paths = np.atleast_2d(np.asarray(price_paths, dtype=float))
    n_paths, n_steps = price_paths.shape
    rates = rates_for_prices(params, price_paths)

    growth = 1.0 + rates[:, :-1] * step_seconds / SECONDS_PER_YEAR
    index_paths = np.empty((n_paths, n_steps))
    index_paths[:, 0] = start_index / RAY
    index_paths[:, 1:] = index_paths[:, [0]] * np.cumprod(growth, axis=1)

    debt_paths = np.maximum(scaled_debt * index_paths - total_repaid, 0.0)
    timesteps = np.arange(n_steps) * step_seconds / 86_400
    return IndexProjectionResult(
        price_paths=price_paths,
        rate_paths=rates,
        index_paths=index_paths,
        debt_paths=debt_paths,
        timesteps=timesteps,
    )


def run_index_projection(
    params: CurrencyParams,
    p0: float,
    horizon_days: int = 365,
    n_paths: int = 1_000,
    fx: FxPathParams | None = None,
    start_index: int = RAY,
    scaled_debt: int = 0,
    total_repaid: int = 0,
    seed: int | None = 42,
) -> IndexProjectionResult:
    """Simulate daily price paths and project the index along them."""
    fx = fx or FxPathParams()
    rng = np.random.default_rng(seed)
    n_steps = horizon_days + 1
    prices = simulate_price_paths(fx, p0, n_paths, n_steps, 1 / 365, rng)
    return project_index(
        params,
        prices,
        step_seconds=86_400,
        start_index=start_index,
        scaled_debt=scaled_debt,
        total_repaid=total_repaid,
    )
