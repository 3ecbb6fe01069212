from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

import numpy as np

from entropy_histogram import EntropyHistogram


@dataclass(frozen=True)
class AxisAlignedSplit:
    feature: int
    threshold: float

    def decision_values(self, X: np.ndarray) -> np.ndarray:
        return X[:, self.feature]

    def goes_left_mask(self, X: np.ndarray) -> np.ndarray:
        return X[:, self.feature] < self.threshold

    def goes_left(self, x: np.ndarray) -> bool:
        return bool(x[self.feature] < self.threshold)


@dataclass(frozen=True, eq=False)
class ProjectionSplit:
    """Sparse oblique split ``projection . x < 0``."""

    projection: np.ndarray

    def decision_values(self, X: np.ndarray) -> np.ndarray:
        return X @ self.projection

    def goes_left_mask(self, X: np.ndarray) -> np.ndarray:
        return self.decision_values(X) < 0.0

    def goes_left(self, x: np.ndarray) -> bool:
        return bool(self.goes_left_mask(np.atleast_2d(x))[0])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProjectionSplit):
            return NotImplemented
        return np.array_equal(self.projection, other.projection)


@dataclass(frozen=True, eq=False)
class HyperplaneSplit:
    """Perpendicular bisector of two reference points: ``<x,B> - <x,A> < t``."""

    point_a: np.ndarray
    point_b: np.ndarray
    threshold: float

    def decision_values(self, X: np.ndarray) -> np.ndarray:
        return X @ self.point_b - X @ self.point_a

    def goes_left_mask(self, X: np.ndarray) -> np.ndarray:
        return self.decision_values(X) < self.threshold

    def goes_left(self, x: np.ndarray) -> bool:
        return bool(self.goes_left_mask(np.atleast_2d(x))[0])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HyperplaneSplit):
            return NotImplemented
        return (
            self.threshold == other.threshold
            and np.array_equal(self.point_a, other.point_a)
            and np.array_equal(self.point_b, other.point_b)
        )


SplitConfig = Union[AxisAlignedSplit, ProjectionSplit, HyperplaneSplit]


@dataclass
class LeafStatistics:
    """Candidate split statistics of a streaming leaf.

    ``left[f * num_thresholds + t]`` / ``right[...]`` hold the class histograms
    of the examples that would fall left/right of ``thresholds[f, t]`` on
    feature ``features[f]``.
    """

    histogram: EntropyHistogram
    features: np.ndarray
    thresholds: np.ndarray
    left: list[EntropyHistogram]
    right: list[EntropyHistogram]

    @property
    def num_thresholds(self) -> int:
        return int(self.thresholds.shape[1])

    def candidate(self, f: int, t: int) -> tuple[EntropyHistogram, EntropyHistogram]:
        k = f * self.num_thresholds + t
        return self.left[k], self.right[k]


@dataclass
class TreeNode:
    depth: int
    split: SplitConfig | None = None
    left_child: int = -1
    log_probs: np.ndarray | None = None
    counts: np.ndarray | None = None
    statistics: LeafStatistics | None = None

    @property
    def is_leaf(self) -> bool:
        return self.split is None and self.log_probs is not None

    @property
    def is_internal(self) -> bool:
        return self.split is not None

    @property
    def is_pending(self) -> bool:
        return self.split is None and self.log_probs is None


class DecisionTree:
    """Array-backed binary tree; children of node ``k`` are ``left_child`` and ``left_child + 1``."""

    def __init__(self) -> None:
        self.nodes: list[TreeNode] = []
        self.add_node(depth=0)

    def add_node(self, depth: int) -> int:
        self.nodes.append(TreeNode(depth=depth))
        return len(self.nodes) - 1

    def node(self, node_id: int) -> TreeNode:
        return self.nodes[node_id]

    def node_count(self) -> int:
        return len(self.nodes)

    def split_node(self, node_id: int, split: SplitConfig) -> int:
        """Turn ``node_id`` into an internal node and allocate its two children."""
        node = self.nodes[node_id]
        node.split = split
        node.log_probs = None
        node.counts = None
        node.statistics = None

        left = self.add_node(node.depth + 1)
        self.add_node(node.depth + 1)
        node.left_child = left
        return left

    def set_leaf(self, node_id: int, histogram: EntropyHistogram, smoothing: float) -> None:
        node = self.nodes[node_id]
        node.log_probs = histogram.log_probabilities(smoothing)
        node.counts = histogram.counts()

    def find_leaf(self, x: np.ndarray) -> int:
        x = np.asarray(x, dtype=np.float64)
        node_id = 0
        node = self.nodes[0]
        while node.split is not None:
            node_id = node.left_child if node.split.goes_left(x) else node.left_child + 1
            node = self.nodes[node_id]
        return node_id

    def leaf_ids(self) -> list[int]:
        return [i for i, node in enumerate(self.nodes) if node.split is None]

    def max_depth(self) -> int:
        return max(node.depth for node in self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)
