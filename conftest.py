import numpy as np
import pytest

from data_structures.dataset import DataStorage


@pytest.fixture
def toy_storage():
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = np.array([0, 0, 1, 1])
    return DataStorage(X, y)


@pytest.fixture
def integer_storage():
    """Integer-valued features with a deterministic 3-class labeling rule.

    Decision values of every split variant are exact on this data, so routing
    through ``find_leaf`` reproduces the training partitions bit for bit.
    """
    rng = np.random.default_rng(5)
    X = rng.integers(0, 10, size=(150, 3)).astype(np.float64)
    y = (X[:, 0] + X[:, 1] > 9).astype(np.int64) + (X[:, 2] > 6).astype(np.int64)
    return DataStorage(X, y, num_classes=3)


@pytest.fixture
def noisy_storage():
    rng = np.random.default_rng(17)
    X = rng.normal(size=(200, 4))
    y = rng.integers(0, 3, size=200)
    return DataStorage(X, y, num_classes=3)
