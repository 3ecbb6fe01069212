from __future__ import annotations

from typing import Protocol

import numpy as np

from data_structures.dataset import DataStorage


class ThresholdGenerator(Protocol):
    def dimensionality(self) -> int:
        ...

    def sample(self, feature: int, rng: np.random.Generator) -> float:
        ...


def feature_ranges(X: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Per-feature ``(min, max)`` over finite values; all-missing columns map to 0."""
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError("X must be a 2D array")

    n_features = X.shape[1]
    mins = np.zeros(n_features, dtype=np.float64)
    maxs = np.zeros(n_features, dtype=np.float64)

    for feature_idx in range(n_features):
        column = X[:, feature_idx]
        finite_mask = np.isfinite(column)
        if not np.any(finite_mask):
            continue

        mins[feature_idx] = float(np.min(column[finite_mask]))
        maxs[feature_idx] = float(np.max(column[finite_mask]))

    return mins, maxs


class RandomThresholdGenerator:
    """Draws thresholds uniformly from each feature's observed range."""

    def __init__(self, mins: np.ndarray, maxs: np.ndarray) -> None:
        mins = np.asarray(mins, dtype=np.float64)
        maxs = np.asarray(maxs, dtype=np.float64)
        if mins.ndim != 1 or mins.shape != maxs.shape:
            raise ValueError("mins and maxs must be 1D arrays of the same length")
        if np.any(mins > maxs):
            raise ValueError("every feature needs min <= max")

        self.mins = mins
        self.maxs = maxs

    @classmethod
    def from_storage(cls, storage: DataStorage) -> RandomThresholdGenerator:
        mins, maxs = feature_ranges(storage.X)
        return cls(mins, maxs)

    def dimensionality(self) -> int:
        return int(self.mins.size)

    def sample(self, feature: int, rng: np.random.Generator) -> float:
        low = self.mins[feature]
        high = self.maxs[feature]
        if low == high:
            return float(low)
        return float(rng.uniform(low, high))
