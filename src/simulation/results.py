"""Result dataclasses for simulation outputs."""

from dataclasses import dataclass

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class IndexProjectionResult:
    """Projected borrow index and debt under simulated price paths.

    Attributes:
        price_paths: (n_paths, n_steps) unit price of the currency in asset
            terms (1.0 = parity).
        rate_paths: (n_paths, n_steps) annual borrow rate applied per step.
        index_paths: (n_paths, n_steps) borrow index as a multiple of RAY.
        debt_paths: (n_paths, n_steps) outstanding debt in currency units.
        timesteps: (n_steps,) array of time in days.
    """

    price_paths: np.ndarray
    rate_paths: np.ndarray
    index_paths: np.ndarray
    debt_paths: np.ndarray
    timesteps: np.ndarray

    @property
    def terminal_debt(self) -> np.ndarray:
        return self.debt_paths[:, -1]

    def summary(self, percentiles: tuple[float, ...] = (5, 50, 95)) -> pd.DataFrame:
        """Percentiles of terminal rate, index and debt across paths."""
        rows = {
            "rate": self.rate_paths[:, -1],
            "index": self.index_paths[:, -1],
            "debt": self.terminal_debt,
        }
        return pd.DataFrame(
            {name: np.percentile(values, percentiles) for name, values in rows.items()},
            index=[f"p{int(p)}" for p in percentiles],
        )
