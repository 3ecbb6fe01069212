import math

import numpy as np
import pytest

from data_structures.dataset import DataStorage
from data_structures.tree import AxisAlignedSplit, HyperplaneSplit, ProjectionSplit
from entropy_histogram import EntropyHistogram
from split_search import AxisAlignedSplitSearch, HyperplaneSplitSearch, ProjectionSplitSearch


def _search(cls, storage, num_features, seed=0, **kwargs):
    rows = np.arange(storage.size(), dtype=np.int64)
    hist = EntropyHistogram.from_labels(storage.labels(rows), storage.class_count())
    return cls(storage, rows, hist, num_features, np.random.default_rng(seed), **kwargs).search()


def test_axis_search_picks_informative_feature():
    rng = np.random.default_rng(2)
    X = rng.uniform(size=(120, 3))
    y = (X[:, 1] > 0.4).astype(np.int64)
    storage = DataStorage(X, y)

    result = _search(AxisAlignedSplitSearch, storage, num_features=3)

    assert isinstance(result.split, AxisAlignedSplit)
    assert result.split.feature == 1
    assert result.objective == 0.0
    assert result.left_mass + result.right_mass == 120
    assert result.left_mass == int(np.sum(X[:, 1] <= 0.4))

    below = X[y == 0, 1].max()
    above = X[y == 1, 1].min()
    assert result.split.threshold == pytest.approx(0.5 * (below + above))


def test_axis_search_skips_near_duplicate_values():
    X = np.array([[1.0], [1.0 + 1e-10], [5.0]])
    storage = DataStorage(X, np.array([0, 1, 1]))

    result = _search(AxisAlignedSplitSearch, storage, num_features=1)

    assert result.split.threshold == pytest.approx(3.0)
    assert result.left_mass == 2
    assert result.right_mass == 1
    assert result.objective == pytest.approx(2.0)


def test_axis_search_on_constant_feature_finds_nothing():
    storage = DataStorage(np.ones((6, 1)), np.array([0, 1, 0, 1, 0, 1]))

    result = _search(AxisAlignedSplitSearch, storage, num_features=1)

    assert result.split is None
    assert math.isinf(result.objective)


def test_axis_search_masses_match_decision_function(noisy_storage):
    result = _search(AxisAlignedSplitSearch, noisy_storage, num_features=2, seed=8)

    mask = result.split.goes_left_mask(noisy_storage.X)
    assert int(mask.sum()) == result.left_mass
    assert int((~mask).sum()) == result.right_mass


@pytest.mark.parametrize("dimensionality, expected_nonzero", [(6, 3), (2, 2)])
def test_projection_vectors_are_sparse_and_scaled(dimensionality, expected_nonzero):
    rng = np.random.default_rng(4)
    storage = DataStorage(rng.normal(size=(40, dimensionality)), rng.integers(0, 2, size=40))

    result = _search(ProjectionSplitSearch, storage, num_features=5)

    assert isinstance(result.split, ProjectionSplit)
    nonzero = result.split.projection[result.split.projection != 0.0]
    assert nonzero.size == expected_nonzero
    assert np.allclose(np.abs(nonzero), 1.0 / math.sqrt(expected_nonzero))
    assert result.metrics.candidates_evaluated == 5

    mask = result.split.decision_values(storage.X) < 0.0
    assert int(mask.sum()) == result.left_mass


def test_projection_search_respects_sparsity_setting():
    rng = np.random.default_rng(6)
    storage = DataStorage(rng.normal(size=(30, 8)), rng.integers(0, 2, size=30))

    result = _search(ProjectionSplitSearch, storage, num_features=3, sparsity=1)

    assert np.count_nonzero(result.split.projection) == 1


def test_hyperplane_bisects_points_of_different_classes(integer_storage):
    result = _search(HyperplaneSplitSearch, integer_storage, num_features=10, seed=3)

    split = result.split
    assert isinstance(split, HyperplaneSplit)

    rows_a = np.flatnonzero(np.all(integer_storage.X == split.point_a, axis=1))
    rows_b = np.flatnonzero(np.all(integer_storage.X == split.point_b, axis=1))
    assert rows_a.size > 0 and rows_b.size > 0
    assert integer_storage.label_at(int(rows_a[0])) != integer_storage.label_at(int(rows_b[0]))

    expected = 0.5 * (split.point_b @ split.point_b - split.point_a @ split.point_a)
    assert split.threshold == pytest.approx(expected)
    assert split.goes_left(split.point_a)
    assert not split.goes_left(split.point_b)

    mask = split.goes_left_mask(integer_storage.X)
    assert int(mask.sum()) == result.left_mass


def test_hyperplane_search_needs_two_classes():
    storage = DataStorage(np.arange(10, dtype=np.float64).reshape(5, 2), np.zeros(5, dtype=np.int64), 2)

    result = _search(HyperplaneSplitSearch, storage, num_features=4)

    assert result.split is None
    assert result.metrics.candidates_evaluated == 0


def test_best_candidate_has_lowest_objective(noisy_storage):
    result = _search(HyperplaneSplitSearch, noisy_storage, num_features=8, seed=12)

    mask = result.split.goes_left_mask(noisy_storage.X)
    left = EntropyHistogram.from_labels(noisy_storage.y[mask], 3)
    right = EntropyHistogram.from_labels(noisy_storage.y[~mask], 3)
    assert result.objective == pytest.approx(left.entropy + right.entropy)

    root = EntropyHistogram.from_labels(noisy_storage.y, 3)
    assert result.objective <= root.entropy + 1e-9


@pytest.mark.parametrize(
    "low, high",
    [
        (-1e-6, 5.0),
        (-1e-6, float(np.nextafter(-1e-6, 0.0))),
    ],
)
def test_axis_search_threshold_separates_its_boundary(low, high):
    X = np.array([[low], [low], [low], [high]])
    storage = DataStorage(X, np.array([0, 1, 0, 1]))

    result = _search(AxisAlignedSplitSearch, storage, num_features=1)

    if result.split is not None:
        mask = result.split.goes_left_mask(X)
        assert int(mask.sum()) == result.left_mass
        assert int((~mask).sum()) == result.right_mass
        assert low < result.split.threshold <= high
