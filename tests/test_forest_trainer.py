import numpy as np
import pytest

from errors import ConfigurationError
from forest_trainer import ForestParams, RandomForestTrainer
from tree_builder import TreeBuilderParams


def _signature(tree):
    return [(node.depth, node.left_child, repr(node.split)) for node in tree.nodes]


def _params(**kwargs):
    return ForestParams(
        num_trees=4,
        tree_params=TreeBuilderParams(num_features=2, max_depth=4, use_bootstrap=True),
        **kwargs,
    )


def test_fit_grows_requested_number_of_trees(noisy_storage):
    trainer = RandomForestTrainer(_params(random_state=3)).fit(noisy_storage)

    assert len(trainer.trees) == 4
    assert len(trainer.metrics["tree_metrics"]) == 4
    for tree, tree_metrics in zip(trainer.trees, trainer.metrics["tree_metrics"]):
        assert tree_metrics["num_nodes"] == tree.node_count()
        assert sum(int(tree.node(leaf).counts.sum()) for leaf in tree.leaf_ids()) == noisy_storage.size()


def test_forest_is_reproducible_for_a_seed(noisy_storage):
    first = RandomForestTrainer(_params(random_state=8)).fit(noisy_storage)
    second = RandomForestTrainer(_params(random_state=8)).fit(noisy_storage)

    assert [_signature(t) for t in first.trees] == [_signature(t) for t in second.trees]


def test_each_tree_depends_only_on_its_index(noisy_storage):
    trainer = RandomForestTrainer(_params(random_state=8))
    trainer.fit(noisy_storage)

    alone, _ = RandomForestTrainer(_params(random_state=8)).fit_tree(noisy_storage, 2)

    assert _signature(alone) == _signature(trainer.trees[2])
    assert len({tuple(_signature(t)) for t in trainer.trees}) > 1


def test_invalid_forest_params():
    with pytest.raises(ConfigurationError):
        ForestParams(num_trees=0)

    trainer = RandomForestTrainer(_params())
    with pytest.raises(IndexError):
        trainer.fit_tree(None, 4)


def test_tree_generators_are_distinct():
    trainer = RandomForestTrainer(_params(random_state=1))

    draws = [trainer.tree_rng(i).integers(0, 2**31) for i in range(4)]
    assert len(set(draws)) == 4
    assert trainer.tree_rng(1).integers(0, 2**31) == draws[1]
    assert isinstance(trainer.tree_rng(0), np.random.Generator)
