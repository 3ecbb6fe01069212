from __future__ import annotations

import numpy as np


class PartitionArena:
    """Index buffers owned by unresolved nodes, keyed by node id.

    A node's buffer is handed out exactly once by ``take``; after that the
    arena no longer holds it.
    """

    def __init__(self) -> None:
        self._buffers: dict[int, np.ndarray] = {}

    def assign(self, node_id: int, rows: np.ndarray) -> None:
        if node_id in self._buffers:
            raise KeyError(f"node {node_id} already owns a partition")
        self._buffers[node_id] = np.asarray(rows, dtype=np.int64)

    def take(self, node_id: int) -> np.ndarray:
        return self._buffers.pop(node_id)

    def owns(self, node_id: int) -> bool:
        return node_id in self._buffers

    def pending(self) -> list[int]:
        return sorted(self._buffers)

    def __len__(self) -> int:
        return len(self._buffers)
