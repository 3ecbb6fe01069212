from __future__ import annotations

import logging

import numpy as np

from data_structures.dataset import DataStorage
from data_structures.tree import DecisionTree
from entropy_histogram import EntropyHistogram

logger = logging.getLogger(__name__)


def draw_bootstrap(
    storage: DataStorage,
    num_examples: int | None,
    rng: np.random.Generator,
) -> tuple[DataStorage, np.ndarray]:
    """Resample ``storage`` with replacement; ``None`` draws as many examples as it holds."""
    n = storage.size() if num_examples is None else int(num_examples)
    resampled, sampled = storage.bootstrap(n, rng)
    logger.debug(
        "bootstrap drew %d examples covering %d of %d originals",
        n,
        int(sampled.sum()),
        storage.size(),
    )
    return resampled, sampled


def refine_leaf_histograms(tree: DecisionTree, storage: DataStorage, smoothing: float) -> None:
    """Recompute every leaf distribution by routing all of ``storage`` through ``tree``.

    Only leaf payloads change; node structure and split parameters are kept.
    """
    C = storage.class_count()
    histograms = {leaf: EntropyHistogram(C) for leaf in tree.leaf_ids()}

    for i in range(storage.size()):
        leaf = tree.find_leaf(storage.point_at(i))
        histograms[leaf].add_one(storage.label_at(i))

    for leaf, hist in histograms.items():
        tree.set_leaf(leaf, hist, smoothing)
