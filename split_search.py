from __future__ import annotations

from dataclasses import dataclass
import math
import time

import numpy as np

from data_structures.dataset import DataStorage
from data_structures.tree import AxisAlignedSplit, HyperplaneSplit, ProjectionSplit, SplitConfig
from entropy_histogram import EntropyHistogram

# Relative gap below which two adjacent sorted feature values count as equal.
DUPLICATE_EPSILON = 1e-6


@dataclass
class SplitSearchMetrics:
    candidates_evaluated: int = 0
    total_histogram_updates: int = 0
    time_spent_sec: float = 0.0


@dataclass
class SplitSearchResult:
    split: SplitConfig | None
    objective: float
    left_mass: int
    right_mass: int
    metrics: SplitSearchMetrics


class BaseSplitSearch:
    """Search for the split of one node that minimizes ``left.entropy + right.entropy``."""

    split_type: type = object

    def __init__(
        self,
        storage: DataStorage,
        node_rows: np.ndarray,
        node_histogram: EntropyHistogram,
        num_features: int,
        rng: np.random.Generator,
    ) -> None:
        self.storage = storage
        self.node_rows = np.asarray(node_rows, dtype=np.int64)
        self.node_histogram = node_histogram
        self.num_features = int(num_features)
        self.rng = rng

        self.n_node = int(self.node_rows.size)
        self.labels = storage.labels(self.node_rows)
        self.metrics = SplitSearchMetrics()

    def _no_split(self) -> SplitSearchResult:
        return SplitSearchResult(None, math.inf, 0, self.n_node, self.metrics)

    def _score_mask(self, left_mask: np.ndarray) -> tuple[float, int, int]:
        left = EntropyHistogram(self.node_histogram.size)
        right = self.node_histogram.copy()
        for label in self.labels[left_mask].tolist():
            left.add_one(label)
            right.sub_one(label)
            self.metrics.total_histogram_updates += 2
        self.metrics.candidates_evaluated += 1
        return left.entropy + right.entropy, left.mass, right.mass

    def _best_of_candidates(self, splits) -> SplitSearchResult:
        best: SplitConfig | None = None
        best_objective = math.inf
        best_left, best_right = 0, self.n_node

        X_node = self.storage.points(self.node_rows)
        for split in splits:
            objective, left_mass, right_mass = self._score_mask(split.goes_left_mask(X_node))
            if objective < best_objective:
                best = split
                best_objective = objective
                best_left, best_right = left_mass, right_mass

        return SplitSearchResult(best, best_objective, best_left, best_right, self.metrics)

    def search(self) -> SplitSearchResult:
        start = time.perf_counter()
        result = self._search()
        self.metrics.time_spent_sec = time.perf_counter() - start
        return result

    def _search(self) -> SplitSearchResult:
        raise NotImplementedError


class AxisAlignedSplitSearch(BaseSplitSearch):
    """Exhaustive threshold sweep over a random subset of features."""

    split_type = AxisAlignedSplit

    def _search(self) -> SplitSearchResult:
        if self.n_node < 2:
            return self._no_split()

        D = self.storage.dimensionality()
        features = self.rng.permutation(D)[: self.num_features]

        best_feature = -1
        best_threshold = 0.0
        best_objective = math.inf
        best_left, best_right = 0, self.n_node

        left = EntropyHistogram(self.node_histogram.size)
        for feature in features:
            values = self.storage.X[self.node_rows, feature]
            order = np.argsort(values, kind="stable")
            sorted_values = values[order].tolist()
            sorted_labels = self.labels[order].tolist()

            left.reset()
            right = self.node_histogram.copy()

            left_value = sorted_values[0]
            left_class = sorted_labels[0]
            for m in range(1, self.n_node):
                left.add_one(left_class)
                right.sub_one(left_class)
                self.metrics.total_histogram_updates += 2

                right_value = sorted_values[m]
                diff = abs(right_value - left_value)
                margin = DUPLICATE_EPSILON * max(
                    abs(right_value + DUPLICATE_EPSILON),
                    abs(left_value + DUPLICATE_EPSILON),
                )
                threshold = 0.5 * (left_value + right_value)
                # The midpoint must separate the boundary under ``x < threshold``.
                if diff > 0.0 and diff >= margin and left_value < threshold <= right_value:
                    self.metrics.candidates_evaluated += 1
                    objective = left.entropy + right.entropy
                    if objective < best_objective:
                        best_feature = int(feature)
                        best_threshold = threshold
                        best_objective = objective
                        best_left = left.mass
                        best_right = right.mass

                left_value = right_value
                left_class = sorted_labels[m]

        if best_feature < 0:
            return self._no_split()

        split = AxisAlignedSplit(feature=best_feature, threshold=float(best_threshold))
        return SplitSearchResult(split, best_objective, best_left, best_right, self.metrics)


class ProjectionSplitSearch(BaseSplitSearch):
    """Random sparse projections thresholded at zero."""

    split_type = ProjectionSplit

    def __init__(self, *args, sparsity: int = 3, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        if sparsity <= 0:
            raise ValueError("sparsity must be positive")
        self.sparsity = int(sparsity)

    def _sample_projection(self) -> ProjectionSplit:
        D = self.storage.dimensionality()
        k = min(self.sparsity, D)
        dims = self.rng.choice(D, size=k, replace=False)
        signs = 2 * self.rng.integers(0, 2, size=k) - 1

        projection = np.zeros(D, dtype=np.float64)
        projection[dims] = signs / np.sqrt(float(k))
        return ProjectionSplit(projection=projection)

    def _search(self) -> SplitSearchResult:
        splits = (self._sample_projection() for _ in range(self.num_features))
        return self._best_of_candidates(splits)


class HyperplaneSplitSearch(BaseSplitSearch):
    """Bisecting hyperplanes between two examples of different classes."""

    split_type = HyperplaneSplit

    def _sample_hyperplane(self, present: np.ndarray, by_class: dict[int, np.ndarray]) -> HyperplaneSplit:
        first, second = self.rng.choice(present.size, size=2, replace=False)
        row_a = self.rng.choice(by_class[int(present[first])])
        row_b = self.rng.choice(by_class[int(present[second])])

        point_a = np.array(self.storage.point_at(int(row_a)), dtype=np.float64)
        point_b = np.array(self.storage.point_at(int(row_b)), dtype=np.float64)
        threshold = 0.5 * (float(point_b @ point_b) - float(point_a @ point_a))
        return HyperplaneSplit(point_a=point_a, point_b=point_b, threshold=threshold)

    def _search(self) -> SplitSearchResult:
        present = np.flatnonzero(self.node_histogram.counts() > 0)
        if present.size < 2:
            return self._no_split()

        by_class = {int(c): self.node_rows[self.labels == c] for c in present}
        splits = (self._sample_hyperplane(present, by_class) for _ in range(self.num_features))
        return self._best_of_candidates(splits)


SPLIT_SEARCHES: dict[str, type[BaseSplitSearch]] = {
    "axis": AxisAlignedSplitSearch,
    "projection": ProjectionSplitSearch,
    "hyperplane": HyperplaneSplitSearch,
}
