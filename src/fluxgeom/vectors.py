"""Reusable scratch pool of 3-component vectors for hot numeric loops."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


class VectorPool:
    """An arena of float64 3-vectors handed out by cursor.

    The pool never shrinks. ``clear()`` rewinds the cursor so the same arrays
    are reused by the next computation; vectors handed out before a ``clear()``
    must not be used afterwards. Not thread-safe: each concurrent build needs
    its own pool.
    """

    def __init__(self) -> None:
        self._vectors: list[np.ndarray] = []
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._vectors)

    def alloc(self) -> np.ndarray:
        """Return a zeroed vector from the pool."""
        if self._cursor < len(self._vectors):
            vec = self._vectors[self._cursor]
            vec.fill(0.0)
        else:
            vec = np.zeros(3, dtype=np.float64)
            self._vectors.append(vec)
        self._cursor += 1
        return vec

    def clone(self, vec: np.ndarray) -> np.ndarray:
        out = self.alloc()
        out[:] = vec
        return out

    def convert(self, coords: Sequence[float]) -> np.ndarray:
        """Copy a 2 or 3 element coordinate list into a pooled vector (z defaults to 0)."""
        out = self.alloc()
        out[0] = coords[0]
        out[1] = coords[1]
        out[2] = coords[2] if len(coords) > 2 and coords[2] is not None else 0.0
        return out

    def clear(self) -> None:
        self._cursor = 0


DEFAULT_POOL = VectorPool()
