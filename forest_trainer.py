from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Callable

import numpy as np

from data_structures.dataset import DataStorage
from data_structures.tree import DecisionTree
from errors import ConfigurationError
from tree_builder import ProgressState, TreeBuilder, TreeBuilderParams

logger = logging.getLogger(__name__)


@dataclass
class ForestParams:
    num_trees: int = 100
    tree_params: TreeBuilderParams = field(
        default_factory=lambda: TreeBuilderParams(use_bootstrap=True)
    )
    random_state: int = 0

    def __post_init__(self) -> None:
        if self.num_trees < 1:
            raise ConfigurationError("num_trees must be >= 1")


class RandomForestTrainer:
    """Grows ``num_trees`` batch trees, each with its own independent generator.

    Tree ``i`` draws from the ``i``-th child of ``SeedSequence(random_state)``,
    so its randomness does not depend on which other trees are grown or in
    which order.
    """

    def __init__(
        self,
        params: ForestParams | None = None,
        callback: Callable[[ProgressState], None] | None = None,
        callback_cycle: int = 1,
    ) -> None:
        self.params = params or ForestParams()
        self.callback = callback
        self.callback_cycle = callback_cycle

        self.trees: list[DecisionTree] = []
        self.metrics: dict = {}

    def tree_rng(self, tree_idx: int) -> np.random.Generator:
        seeds = np.random.SeedSequence(self.params.random_state).spawn(self.params.num_trees)
        return np.random.default_rng(seeds[tree_idx])

    def fit_tree(self, storage: DataStorage, tree_idx: int) -> tuple[DecisionTree, TreeBuilder]:
        if not 0 <= tree_idx < self.params.num_trees:
            raise IndexError(f"tree index {tree_idx} out of range")

        builder = TreeBuilder(
            params=self.params.tree_params,
            rng=self.tree_rng(tree_idx),
            callback=self.callback,
            callback_cycle=self.callback_cycle,
        )
        return builder.learn(storage), builder

    def fit(self, storage: DataStorage) -> RandomForestTrainer:
        self.trees = []
        self.metrics = {
            "total_histogram_updates": 0,
            "split_search_time_sec": 0.0,
            "fit_time_sec": 0.0,
            "tree_metrics": [],
        }

        start = time.perf_counter()
        for tree_idx in range(self.params.num_trees):
            tree, builder = self.fit_tree(storage, tree_idx)
            self.trees.append(tree)

            self.metrics["total_histogram_updates"] += builder.metrics.total_histogram_updates
            self.metrics["split_search_time_sec"] += builder.metrics.split_search_time_sec
            self.metrics["tree_metrics"].append(
                {
                    "tree_idx": tree_idx,
                    "num_nodes": tree.node_count(),
                    "depth": tree.max_depth(),
                    "nodes_visited": builder.metrics.nodes_visited,
                    "nodes_split": builder.metrics.nodes_split,
                }
            )
        self.metrics["fit_time_sec"] = time.perf_counter() - start

        logger.debug(
            "fitted %d trees in %.3fs",
            len(self.trees),
            self.metrics["fit_time_sec"],
        )
        return self
