"""Reusable per-layer byte buffers for composing terminal frames."""

from __future__ import annotations

import io


class Collection:
    """A fixed number of byte buffers, one per z-index, reused between frames."""

    def __init__(self, z_max: int) -> None:
        if z_max < 0:
            raise ValueError(f"buffer count must not be negative: {z_max}")
        self._storage = [io.BytesIO() for _ in range(z_max)]

    def __len__(self) -> int:
        return len(self._storage)

    def get(self, z: int) -> io.BytesIO:
        """Return the buffer for z-index z."""
        if not 0 <= z < len(self._storage):
            raise IndexError(f"z-index {z} out of range for {len(self._storage)} buffers")
        return self._storage[z]

    def reset(self) -> None:
        """Empty every buffer so the next frame starts clean."""
        for buffer in self._storage:
            buffer.seek(0)
            buffer.truncate(0)