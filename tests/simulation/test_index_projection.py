"""Tests for borrow index projection under simulated FX paths."""

import numpy as np
import pandas as pd
import pytest

from src.data.constants import BOB, RAY, SECONDS_PER_YEAR
from src.data.static_params import DEFAULT_CURRENCIES
from src.simulation.index_projection import (
    FxPathParams,
    project_index,
    rates_for_prices,
    run_index_projection,
    simulate_price_paths,
)
from tests.ledger_helpers import SCENARIO_PARAMS

PARAMS = DEFAULT_CURRENCIES[BOB]


class TestPricePaths:
    def test_shape_and_start(self):
        rng = np.random.default_rng(0)
        paths = simulate_price_paths(FxPathParams(), 1.0, 50, 11, 1 / 365, rng)
        assert paths.shape == (50, 11)
        np.testing.assert_allclose(paths[:, 0], 1.0)
        assert (paths > 0).all()

    def test_zero_volatility_is_deterministic(self):
        rng = np.random.default_rng(0)
        fx = FxPathParams(drift=0.0, volatility=0.0)
        paths = simulate_price_paths(fx, 1.2, 3, 5, 1 / 365, rng)
        np.testing.assert_allclose(paths, 1.2)

    def test_rejects_non_positive_start(self):
        with pytest.raises(ValueError):
            simulate_price_paths(FxPathParams(), 0.0, 1, 2, 1.0, np.random.default_rng(0))


class TestRates:
    def test_matches_rate_rule(self):
        rates = rates_for_prices(PARAMS, np.array([1.0, 2.0, 10.0]))
        assert rates == pytest.approx([0.05, 0.15, 0.30])

    def test_below_parity_floor(self):
        assert rates_for_prices(PARAMS, np.array([0.1]))[0] == pytest.approx(0.02)


class TestProjectIndex:
    def test_flat_rate_one_year(self):
        prices = np.ones((1, 2))
        result = project_index(SCENARIO_PARAMS, prices, step_seconds=SECONDS_PER_YEAR)
        assert result.index_paths[0, -1] == pytest.approx(1.05)

    def test_daily_steps_compound(self):
        prices = np.ones((1, 366))
        result = project_index(SCENARIO_PARAMS, prices, step_seconds=86_400)
        assert result.index_paths[0, -1] == pytest.approx((1 + 0.05 / 365) ** 365)
        assert result.timesteps[-1] == pytest.approx(365.0)

    def test_start_index(self):
        prices = np.ones((2, 3))
        result = project_index(SCENARIO_PARAMS, prices, 86_400, start_index=2 * RAY)
        np.testing.assert_allclose(result.index_paths[:, 0], 2.0)

    def test_debt_paths(self):
        prices = np.ones((1, 2))
        result = project_index(
            SCENARIO_PARAMS,
            prices,
            SECONDS_PER_YEAR,
            scaled_debt=210_000,
            total_repaid=10_000,
        )
        assert result.debt_paths[0, 0] == pytest.approx(200_000)
        assert result.debt_paths[0, -1] == pytest.approx(210_000 * 1.05 - 10_000)

    def test_debt_never_negative(self):
        result = project_index(SCENARIO_PARAMS, np.ones((1, 2)), 86_400, scaled_debt=10, total_repaid=100)
        assert (result.debt_paths >= 0).all()

    def test_index_non_decreasing(self):
        result = run_index_projection(PARAMS, p0=1.0, horizon_days=30, n_paths=20, seed=1)
        assert (np.diff(result.index_paths, axis=1) >= 0).all()


class TestRunIndexProjection:
    def test_shapes(self):
        result = run_index_projection(PARAMS, p0=0.9, horizon_days=10, n_paths=7)
        assert result.price_paths.shape == (7, 11)
        assert result.index_paths.shape == (7, 11)
        assert result.terminal_debt.shape == (7,)

    def test_seed_is_reproducible(self):
        a = run_index_projection(PARAMS, p0=1.0, horizon_days=5, n_paths=4, seed=3)
        b = run_index_projection(PARAMS, p0=1.0, horizon_days=5, n_paths=4, seed=3)
        np.testing.assert_array_equal(a.index_paths, b.index_paths)

    def test_summary(self):
        result = run_index_projection(PARAMS, p0=1.0, horizon_days=30, n_paths=100, scaled_debt=1_000)
        summary = result.summary()
        assert isinstance(summary, pd.DataFrame)
        assert list(summary.index) == ["p5", "p50", "p95"]
        assert list(summary.columns) == ["rate", "index", "debt"]
        assert summary.loc["p5", "index"] <= summary.loc["p95", "index"]
