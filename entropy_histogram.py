from __future__ import annotations

import math

import numpy as np

from errors import InvariantViolation


def _plogp(n: int) -> float:
    return n * math.log2(n) if n > 0 else 0.0


class EntropyHistogram:
    """Class-count histogram with an incrementally maintained weighted entropy.

    The weighted entropy is ``N*log2(N) - sum_c n_c*log2(n_c)``, i.e. the
    Shannon entropy of the class distribution multiplied by the mass. It is
    additive over disjoint partitions, so the objective of a split is simply
    ``left.entropy + right.entropy`` (lower is better, pure partitions score 0).
    All updates and queries are O(1).
    """

    __slots__ = ("_counts", "_mass", "_class_terms", "_non_empty")

    def __init__(self, num_classes: int) -> None:
        if num_classes < 0:
            raise ValueError("num_classes must be non-negative")
        self._counts = [0] * int(num_classes)
        self._mass = 0
        # sum_c n_c*log2(n_c)
        self._class_terms = 0.0
        self._non_empty = 0

    @classmethod
    def from_labels(cls, labels: np.ndarray, num_classes: int) -> EntropyHistogram:
        hist = cls(num_classes)
        for label in np.asarray(labels, dtype=np.int64):
            hist.add_one(int(label))
        return hist

    @classmethod
    def from_counts(cls, counts: np.ndarray) -> EntropyHistogram:
        counts = np.asarray(counts, dtype=np.int64)
        hist = cls(counts.size)
        for c, n in enumerate(counts):
            n = int(n)
            if n < 0:
                raise ValueError("counts must be non-negative")
            hist._counts[c] = n
            hist._mass += n
            hist._class_terms += _plogp(n)
            if n > 0:
                hist._non_empty += 1
        return hist

    @property
    def size(self) -> int:
        return len(self._counts)

    @property
    def mass(self) -> int:
        return self._mass

    @property
    def entropy(self) -> float:
        if self._non_empty <= 1:
            return 0.0
        # Clamp the rounding residue of the incremental updates.
        return max(_plogp(self._mass) - self._class_terms, 0.0)

    def at(self, c: int) -> int:
        return self._counts[c]

    def counts(self) -> np.ndarray:
        return np.asarray(self._counts, dtype=np.int64)

    def add_one(self, c: int) -> None:
        n = self._counts[c]
        self._class_terms += _plogp(n + 1) - _plogp(n)
        if n == 0:
            self._non_empty += 1
        self._counts[c] = n + 1
        self._mass += 1

    def sub_one(self, c: int) -> None:
        n = self._counts[c]
        if n <= 0:
            raise InvariantViolation(f"histogram underflow for class {c}")
        self._class_terms += _plogp(n - 1) - _plogp(n)
        if n == 1:
            self._non_empty -= 1
        self._counts[c] = n - 1
        self._mass -= 1

    def reset(self) -> None:
        self._counts = [0] * len(self._counts)
        self._mass = 0
        self._class_terms = 0.0
        self._non_empty = 0

    def is_pure(self) -> bool:
        return self._non_empty <= 1

    def copy(self) -> EntropyHistogram:
        other = EntropyHistogram(0)
        other._counts = list(self._counts)
        other._mass = self._mass
        other._class_terms = self._class_terms
        other._non_empty = self._non_empty
        return other

    def log_probabilities(self, smoothing: float) -> np.ndarray:
        """Laplace-smoothed class log-probabilities ``log((n_c + a) / (N + C*a))``.

        An empty histogram with ``smoothing == 0`` has no evidence at all and
        yields the uniform distribution.
        """
        if self.size == 0:
            raise InvariantViolation("cannot build a leaf distribution over zero classes")

        counts = np.asarray(self._counts, dtype=np.float64)
        denom = self._mass + self.size * smoothing
        if denom == 0:
            return np.full(self.size, -math.log(self.size))
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.log((counts + smoothing) / denom)

    def __repr__(self) -> str:
        return f"EntropyHistogram(counts={self._counts}, entropy={self.entropy:.4f})"
