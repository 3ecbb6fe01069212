from __future__ import annotations

import numpy as np


class DataStorage:
    """In-memory labeled dataset: a float feature matrix and integer class labels."""

    def __init__(self, X: np.ndarray, y: np.ndarray, num_classes: int | None = None) -> None:
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y)
        if X.ndim != 2:
            raise ValueError("X must be a 2D array")
        if y.ndim != 1 or y.shape[0] != X.shape[0]:
            raise ValueError("y must be a 1D array with the same number of rows as X")
        if y.size > 0 and not np.issubdtype(y.dtype, np.integer):
            if not np.all(np.equal(np.mod(y, 1), 0)):
                raise ValueError("class labels must be integers")
        y = y.astype(np.int64)
        if y.size > 0 and y.min() < 0:
            raise ValueError("class labels must be non-negative")

        inferred = int(y.max()) + 1 if y.size > 0 else 0
        if num_classes is None:
            num_classes = inferred
        elif num_classes < inferred:
            raise ValueError(
                f"num_classes={num_classes} but labels go up to {inferred - 1}"
            )

        self.X = np.ascontiguousarray(X)
        self.y = y
        self.num_classes = int(num_classes)

    def size(self) -> int:
        return int(self.X.shape[0])

    def dimensionality(self) -> int:
        return int(self.X.shape[1])

    def class_count(self) -> int:
        return self.num_classes

    def point_at(self, i: int) -> np.ndarray:
        return self.X[i]

    def label_at(self, i: int) -> int:
        return int(self.y[i])

    def points(self, rows: np.ndarray) -> np.ndarray:
        return self.X[rows]

    def labels(self, rows: np.ndarray) -> np.ndarray:
        return self.y[rows]

    def bootstrap(
        self,
        n: int,
        rng: np.random.Generator,
    ) -> tuple[DataStorage, np.ndarray]:
        """Resample ``n`` examples with replacement.

        Returns the resampled dataset and a boolean mask over the original rows
        marking which examples were drawn at least once.
        """
        if n < 0:
            raise ValueError("n must be non-negative")
        if self.size() == 0 and n > 0:
            raise ValueError("cannot bootstrap from an empty dataset")

        rows = rng.integers(0, self.size(), size=n)
        sampled = np.zeros(self.size(), dtype=bool)
        sampled[rows] = True
        resampled = DataStorage(self.X[rows], self.y[rows], num_classes=self.num_classes)
        return resampled, sampled

    def __len__(self) -> int:
        return self.size()
