"""
diagnostics
===========

Descriptive analyses of a built probability matrix for reporting code.
Nothing here feeds back into decoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy.stats import gaussian_kde
from sklearn.mixture import GaussianMixture

from aptaspot.errors import InvalidInputError


@dataclass(frozen=True)
class MixtureSummary:
    """Two-component Gaussian mixture fitted to probability entries.

    Components are ordered by mean: the first is the off-target-dominated
    (low probability) mode, the second the on-target-dominated mode.
    """

    weights: Tuple[float, float]
    means: Tuple[float, float]
    stds: Tuple[float, float]
    n_samples: int

    @property
    def separation(self) -> float:
        """Distance between component means in pooled standard deviations."""
        pooled = np.sqrt(0.5 * (self.stds[0] ** 2 + self.stds[1] ** 2))
        if pooled == 0:
            return float("inf")
        return float((self.means[1] - self.means[0]) / pooled)

    def to_dict(self) -> dict:
        return {
            "weights": list(self.weights),
            "means": list(self.means),
            "stds": list(self.stds),
            "n_samples": self.n_samples,
            "separation": self.separation,
        }


def _flat_entries(probability_matrix: np.ndarray) -> np.ndarray:
    values = np.asarray(probability_matrix, dtype=np.float64).ravel()
    if np.unique(values).size < 2:
        raise InvalidInputError("Probability matrix needs at least two distinct values")
    return values


def fit_probability_mixture(
    probability_matrix: np.ndarray,
    rng: np.random.Generator,
    n_samples: int = 10000,
) -> MixtureSummary:
    """
    Fit a two-component Gaussian mixture to a random subsample of entries.

    Parameters
    ----------
    probability_matrix : np.ndarray
        Probe x protein binding probabilities.
    rng : np.random.Generator
        Random source for the subsample and the mixture initialisation.
    n_samples : int
        Maximum number of entries to use; all entries if the matrix is smaller.
    """
    if n_samples < 2:
        raise InvalidInputError(f"n_samples must be at least 2, got {n_samples}")

    values = _flat_entries(probability_matrix)
    if values.size > n_samples:
        values = rng.choice(values, size=n_samples, replace=False)

    seed = int(rng.integers(0, 2**31 - 1))
    mixture = GaussianMixture(n_components=2, covariance_type="full", random_state=seed)
    mixture.fit(values.reshape(-1, 1))

    means = mixture.means_.ravel()
    stds = np.sqrt(mixture.covariances_.ravel())
    weights = mixture.weights_.ravel()
    order = np.argsort(means)

    return MixtureSummary(
        weights=tuple(float(w) for w in weights[order]),
        means=tuple(float(m) for m in means[order]),
        stds=tuple(float(s) for s in stds[order]),
        n_samples=int(values.size),
    )


def probability_density(probability_matrix: np.ndarray, grid_size: int = 200) -> Tuple[np.ndarray, np.ndarray]:
    """Kernel density estimate of matrix entries on an evenly spaced [0, 1] grid."""
    values = _flat_entries(probability_matrix)
    grid = np.linspace(0.0, 1.0, grid_size)
    return grid, gaussian_kde(values)(grid)
