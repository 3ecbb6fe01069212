from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Callable

import numpy as np

from data_structures.dataset import DataStorage
from data_structures.tree import AxisAlignedSplit, DecisionTree, LeafStatistics
from entropy_histogram import EntropyHistogram
from errors import ConfigurationError
from threshold_generator import ThresholdGenerator

logger = logging.getLogger(__name__)

# Re-draws allowed when a sampled threshold nearly repeats the previous one.
MAX_THRESHOLD_RETRIES = 10
THRESHOLD_EPSILON = 1e-6


@dataclass
class OnlineLearnerParams:
    num_features: int | None = None  # None: sqrt(D)
    num_thresholds: int = 10
    max_depth: int = 100
    min_split_examples: int = 30
    min_child_split_examples: int = 15
    min_split_objective: float = 1.0
    smoothing: float = 1.0

    use_bootstrap: bool = False
    bootstrap_lambda: float = 1.0

    random_state: int = 0

    def __post_init__(self) -> None:
        if self.num_features is not None and self.num_features < 1:
            raise ConfigurationError("num_features must be >= 1")
        if self.num_thresholds < 1:
            raise ConfigurationError("num_thresholds must be >= 1")
        if self.max_depth < 0:
            raise ConfigurationError("max_depth must be >= 0")
        if self.min_split_examples < 0:
            raise ConfigurationError("min_split_examples must be >= 0")
        if self.min_child_split_examples < 0:
            raise ConfigurationError("min_child_split_examples must be >= 0")
        if self.smoothing < 0.0:
            raise ConfigurationError("smoothing must be >= 0")
        if self.bootstrap_lambda < 0.0:
            raise ConfigurationError("bootstrap_lambda must be >= 0")


@dataclass
class OnlineLearnerMetrics:
    examples_seen: int = 0
    replications: int = 0
    leaves_initialized: int = 0
    splits: int = 0


class OnlineTreeLearner:
    """Grows an axis-aligned tree one example at a time.

    Every leaf samples a fixed set of (feature, threshold) candidates on its
    first visit and accumulates left/right class histograms for each of them.
    The leaf is split in place as soon as the best candidate's information
    gain reaches ``min_split_objective``.
    """

    def __init__(
        self,
        params: OnlineLearnerParams,
        threshold_generator: ThresholdGenerator,
        rng: np.random.Generator | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        self.params = params
        self.threshold_generator = threshold_generator
        self.rng = rng if rng is not None else np.random.default_rng(params.random_state)
        self.should_stop = should_stop
        self.metrics = OnlineLearnerMetrics()

    def resolve_num_features(self, dimensionality: int) -> int:
        if self.params.num_features is None:
            return max(1, int(math.sqrt(dimensionality)))
        return self.params.num_features

    def _check_config(self, storage: DataStorage, tree: DecisionTree) -> int:
        D = storage.dimensionality()
        num_features = self.resolve_num_features(D)
        if not 1 <= num_features <= D:
            raise ConfigurationError(
                f"num_features={num_features} must lie in [1, {D}]"
            )
        if self.threshold_generator.dimensionality() != D:
            raise ConfigurationError(
                f"threshold generator covers {self.threshold_generator.dimensionality()} "
                f"features but the data has {D}"
            )
        if storage.class_count() <= 0:
            raise ConfigurationError("the dataset must have at least one class")
        if tree.node_count() == 0:
            raise ConfigurationError("the tree must contain at least a root node")
        return num_features

    def _init_statistics(self, num_classes: int, dimensionality: int, num_features: int) -> LeafStatistics:
        T = self.params.num_thresholds
        features = self.rng.permutation(dimensionality)[:num_features]
        thresholds = np.zeros((num_features, T), dtype=np.float64)

        for f, feature in enumerate(features):
            for t in range(T):
                value = self.threshold_generator.sample(int(feature), self.rng)
                if t > 0:
                    retries = 0
                    while (
                        abs(value - thresholds[f, t - 1]) < THRESHOLD_EPSILON
                        and retries < MAX_THRESHOLD_RETRIES
                    ):
                        value = self.threshold_generator.sample(int(feature), self.rng)
                        retries += 1
                thresholds[f, t] = value

        n_candidates = num_features * T
        self.metrics.leaves_initialized += 1
        return LeafStatistics(
            histogram=EntropyHistogram(num_classes),
            features=features,
            thresholds=thresholds,
            left=[EntropyHistogram(num_classes) for _ in range(n_candidates)],
            right=[EntropyHistogram(num_classes) for _ in range(n_candidates)],
        )

    @staticmethod
    def _update_statistics(stats: LeafStatistics, x: np.ndarray, label: int) -> None:
        stats.histogram.add_one(label)
        goes_left = x[stats.features][:, None] < stats.thresholds
        for k, left in enumerate(goes_left.ravel().tolist()):
            if left:
                stats.left[k].add_one(label)
            else:
                stats.right[k].add_one(label)

    def _best_candidate(self, stats: LeafStatistics) -> tuple[int, int, float] | None:
        node_entropy = stats.histogram.entropy
        min_child = self.params.min_child_split_examples

        best = None
        best_gain = 0.0
        for f in range(stats.features.size):
            for t in range(stats.num_thresholds):
                left, right = stats.candidate(f, t)
                if left.mass <= min_child or right.mass <= min_child:
                    continue
                gain = node_entropy - left.entropy - right.entropy
                if gain > best_gain:
                    best = (f, t, gain)
                    best_gain = gain
        return best

    def _learn_one(
        self,
        tree: DecisionTree,
        x: np.ndarray,
        label: int,
        num_classes: int,
        num_features: int,
    ) -> None:
        leaf = tree.find_leaf(x)
        node = tree.node(leaf)

        if node.statistics is None:
            node.statistics = self._init_statistics(num_classes, x.size, num_features)
        stats = node.statistics

        replications = 1
        if self.params.use_bootstrap:
            # May be zero, which skips the example for this leaf.
            replications = int(self.rng.poisson(self.params.bootstrap_lambda))

        for _ in range(replications):
            self._update_statistics(stats, x, label)
        self.metrics.examples_seen += 1
        self.metrics.replications += replications

        if (
            stats.histogram.mass < self.params.min_split_examples
            or stats.histogram.is_pure()
            or node.depth >= self.params.max_depth
        ):
            tree.set_leaf(leaf, stats.histogram, self.params.smoothing)
            return

        best = self._best_candidate(stats)
        if best is None or best[2] < self.params.min_split_objective:
            tree.set_leaf(leaf, stats.histogram, self.params.smoothing)
            return

        f, t, gain = best
        left_hist, right_hist = stats.candidate(f, t)
        split = AxisAlignedSplit(
            feature=int(stats.features[f]),
            threshold=float(stats.thresholds[f, t]),
        )
        left_child = tree.split_node(leaf, split)
        tree.set_leaf(left_child, left_hist, self.params.smoothing)
        tree.set_leaf(left_child + 1, right_hist, self.params.smoothing)
        self.metrics.splits += 1

        logger.debug(
            "split leaf %d at depth %d on feature %d < %.6g (gain %.4f, masses %d/%d)",
            leaf,
            node.depth,
            split.feature,
            split.threshold,
            gain,
            left_hist.mass,
            right_hist.mass,
        )

    def learn(self, storage: DataStorage, tree: DecisionTree | None = None) -> DecisionTree:
        """Fold every example of ``storage`` into ``tree`` (a new single-leaf tree if omitted)."""
        if tree is None:
            tree = DecisionTree()
        num_features = self._check_config(storage, tree)
        C = storage.class_count()

        for n in range(storage.size()):
            if self.should_stop is not None and self.should_stop():
                logger.debug("stop requested after %d of %d examples", n, storage.size())
                break
            self._learn_one(
                tree,
                storage.point_at(n),
                storage.label_at(n),
                C,
                num_features,
            )

        return tree
