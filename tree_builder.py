from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from typing import Callable

import numpy as np

from bootstrap import draw_bootstrap, refine_leaf_histograms
from data_structures.dataset import DataStorage
from data_structures.partition import PartitionArena
from data_structures.tree import DecisionTree
from entropy_histogram import EntropyHistogram
from errors import ConfigurationError, InvariantViolation
from split_search import SPLIT_SEARCHES, ProjectionSplitSearch, SplitSearchResult

logger = logging.getLogger(__name__)


@dataclass
class ProgressState:
    started: bool = False
    total: int = 0
    processed: int = 0
    num_nodes: int = 0
    depth: int = 0
    terminated: bool = False

    def reset(self) -> None:
        self.started = False
        self.total = 0
        self.processed = 0
        self.num_nodes = 0
        self.depth = 0
        self.terminated = False


def default_callback(state: ProgressState) -> None:
    logger.info(
        "processed %d/%d examples, nodes=%d, depth=%d%s",
        state.processed,
        state.total,
        state.num_nodes,
        state.depth,
        " (done)" if state.terminated else "",
    )


@dataclass
class TreeBuildMetrics:
    total_histogram_updates: int = 0
    candidates_evaluated: int = 0
    split_search_time_sec: float = 0.0
    nodes_visited: int = 0
    nodes_split: int = 0
    degenerate_splits: int = 0
    node_metrics: list[dict] = field(default_factory=list)


@dataclass
class TreeBuilderParams:
    num_features: int | None = None  # None: sqrt(D)
    max_depth: int = 100
    min_split_examples: int = 3
    min_child_split_examples: int = 1
    smoothing: float = 1.0

    use_bootstrap: bool = False
    num_bootstrap_examples: int | None = None  # None: dataset size

    split_search: str = "axis"  # one of: axis, projection, hyperplane
    projection_sparsity: int = 3

    random_state: int = 0

    def __post_init__(self) -> None:
        if self.split_search not in SPLIT_SEARCHES:
            raise ConfigurationError(
                "split_search must be one of: " + ", ".join(SPLIT_SEARCHES)
            )
        if self.num_features is not None and self.num_features < 1:
            raise ConfigurationError("num_features must be >= 1")
        if self.max_depth < 0:
            raise ConfigurationError("max_depth must be >= 0")
        if self.min_split_examples < 0:
            raise ConfigurationError("min_split_examples must be >= 0")
        if self.min_child_split_examples < 0:
            raise ConfigurationError("min_child_split_examples must be >= 0")
        if self.smoothing < 0.0:
            raise ConfigurationError("smoothing must be >= 0")
        if self.num_bootstrap_examples is not None and self.num_bootstrap_examples < 0:
            raise ConfigurationError("num_bootstrap_examples must be >= 0")
        if self.projection_sparsity < 1:
            raise ConfigurationError("projection_sparsity must be >= 1")


class TreeBuilder:
    """Depth-first batch learner shared by the axis, projection and hyperplane variants."""

    def __init__(
        self,
        params: TreeBuilderParams,
        rng: np.random.Generator | None = None,
        callback: Callable[[ProgressState], None] | None = None,
        callback_cycle: int = 1,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        if callback_cycle <= 0:
            raise ConfigurationError("callback_cycle must be positive")

        self.params = params
        self.rng = rng if rng is not None else np.random.default_rng(params.random_state)
        self.callback = callback
        self.callback_cycle = callback_cycle
        self.should_stop = should_stop

        self.metrics = TreeBuildMetrics()
        self.state = ProgressState()

    def resolve_num_features(self, dimensionality: int) -> int:
        if self.params.num_features is None:
            return max(1, int(math.sqrt(dimensionality)))
        return self.params.num_features

    def _check_config(self, storage: DataStorage) -> int:
        D = storage.dimensionality()
        num_features = self.resolve_num_features(D)
        if num_features > D:
            raise ConfigurationError(
                f"num_features={num_features} exceeds the data dimensionality {D}"
            )
        if storage.class_count() <= 0:
            raise ConfigurationError("the dataset must have at least one class")
        return num_features

    def _notify(self, force: bool = False) -> None:
        if self.callback is None:
            return
        if force or self.metrics.nodes_visited % self.callback_cycle == 0:
            self.callback(self.state)

    def _find_best_split(
        self,
        storage: DataStorage,
        rows: np.ndarray,
        hist: EntropyHistogram,
        num_features: int,
    ) -> SplitSearchResult:
        search_cls = SPLIT_SEARCHES[self.params.split_search]
        kwargs = {}
        if search_cls is ProjectionSplitSearch:
            kwargs["sparsity"] = self.params.projection_sparsity

        search = search_cls(storage, rows, hist, num_features, self.rng, **kwargs)
        result = search.search()
        if result.split is not None and not isinstance(result.split, search_cls.split_type):
            raise InvariantViolation(
                f"{search_cls.__name__} returned {type(result.split).__name__}"
            )

        self.metrics.total_histogram_updates += result.metrics.total_histogram_updates
        self.metrics.candidates_evaluated += result.metrics.candidates_evaluated
        self.metrics.split_search_time_sec += result.metrics.time_spent_sec
        return result

    def _partition_rows(
        self,
        storage: DataStorage,
        rows: np.ndarray,
        result: SplitSearchResult,
    ) -> tuple[np.ndarray, np.ndarray]:
        left_mask = result.split.goes_left_mask(storage.points(rows))
        left_rows = rows[left_mask]
        right_rows = rows[~left_mask]

        left_residual = result.left_mass - left_rows.size
        right_residual = result.right_mass - right_rows.size
        if left_residual != 0 or right_residual != 0:
            raise InvariantViolation(
                f"partition residuals ({left_residual}, {right_residual}) for split "
                f"{result.split!r}; the decision function disagrees with the search"
            )
        return left_rows, right_rows

    def _is_terminal(self, hist: EntropyHistogram, depth: int) -> bool:
        return (
            hist.mass < self.params.min_split_examples
            or hist.is_pure()
            or depth >= self.params.max_depth
        )

    def grow(self, storage: DataStorage) -> DecisionTree:
        """Grow a tree on ``storage`` as-is (no resampling, no leaf refinement)."""
        num_features = self._check_config(storage)
        C = storage.class_count()

        self.state.reset()
        self.state.started = True
        self.state.total = storage.size()

        tree = DecisionTree()
        arena = PartitionArena()
        arena.assign(0, np.arange(storage.size(), dtype=np.int64))

        stack = [0]
        stopped = False
        while stack:
            node_id = stack.pop()
            node = tree.node(node_id)
            rows = arena.take(node_id)
            self.metrics.nodes_visited += 1

            self.state.num_nodes = tree.node_count()
            self.state.depth = max(self.state.depth, node.depth)

            if not stopped and self.should_stop is not None and self.should_stop():
                logger.debug("stop requested with %d pending nodes", len(stack) + 1)
                stopped = True

            hist = EntropyHistogram.from_labels(storage.labels(rows), C)

            if stopped or self._is_terminal(hist, node.depth):
                tree.set_leaf(node_id, hist, self.params.smoothing)
                self.state.processed += int(rows.size)
                self._notify()
                continue

            split_result = self._find_best_split(storage, rows, hist, num_features)
            self.metrics.node_metrics.append(
                {
                    "node": node_id,
                    "depth": node.depth,
                    "node_size": int(rows.size),
                    "objective": split_result.objective,
                    "candidates": split_result.metrics.candidates_evaluated,
                }
            )

            if (
                split_result.split is None
                or split_result.left_mass < self.params.min_child_split_examples
                or split_result.right_mass < self.params.min_child_split_examples
            ):
                self.metrics.degenerate_splits += 1
                tree.set_leaf(node_id, hist, self.params.smoothing)
                self.state.processed += int(rows.size)
                self._notify()
                continue

            left_rows, right_rows = self._partition_rows(storage, rows, split_result)

            left_child = tree.split_node(node_id, split_result.split)
            arena.assign(left_child, left_rows)
            arena.assign(left_child + 1, right_rows)
            self.metrics.nodes_split += 1

            stack.append(left_child)
            stack.append(left_child + 1)
            self._notify()

        if len(arena) != 0:
            raise InvariantViolation(f"unreleased partitions for nodes {arena.pending()}")

        self.state.num_nodes = tree.node_count()
        logger.debug(
            "grew %s tree: %d nodes, depth %d, %d splits from %d examples",
            self.params.split_search,
            tree.node_count(),
            tree.max_depth(),
            self.metrics.nodes_split,
            storage.size(),
        )
        return tree

    def learn(self, storage: DataStorage) -> DecisionTree:
        """Learn one tree, optionally from a bootstrap resample of ``storage``.

        Metrics describe the latest call only. The generator is not reseeded,
        so a builder is one seeded invocation: repeated calls on the same
        instance continue its random stream and give different trees.
        """
        self._check_config(storage)
        self.metrics = TreeBuildMetrics()

        if self.params.use_bootstrap:
            training, _sampled = draw_bootstrap(
                storage, self.params.num_bootstrap_examples, self.rng
            )
        else:
            training = storage

        tree = self.grow(training)

        # Refinement rescans every original example, sampled or not.
        if self.params.use_bootstrap:
            refine_leaf_histograms(tree, storage, self.params.smoothing)

        self.state.terminated = True
        self._notify(force=True)
        return tree
