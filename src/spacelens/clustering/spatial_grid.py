"""
Uniform spatial hash over 3D vectors.
"""
import math
from typing import Dict, Iterator, List, Sequence, Tuple

CellKey = Tuple[int, int, int]

MIN_CELL_SIZE = 1e-6

_NEIGHBOR_OFFSETS = [
    (dx, dy, dz)
    for dx in (-1, 0, 1)
    for dy in (-1, 0, 1)
    for dz in (-1, 0, 1)
]


class SpatialHashGrid:
    """
    Buckets vector indices by cubic cell so neighborhood queries only touch
    the 27 cells around a position. Non-finite vectors are not stored.
    """

    def __init__(self, vectors: Sequence[Sequence[float]], cell_size: float):
        self.cell_size = max(cell_size, MIN_CELL_SIZE)
        self._cells: Dict[CellKey, List[int]] = {}
        for index, vector in enumerate(vectors):
            if not all(math.isfinite(c) for c in vector):
                continue
            self._cells.setdefault(self.cell_of(vector), []).append(index)

    def cell_of(self, vector: Sequence[float]) -> CellKey:
        size = self.cell_size
        return (
            math.floor(vector[0] / size),
            math.floor(vector[1] / size),
            math.floor(vector[2] / size),
        )

    def candidates(self, vector: Sequence[float]) -> Iterator[int]:
        """Indices stored in the 3x3x3 block of cells around ``vector``."""
        ix, iy, iz = self.cell_of(vector)
        for dx, dy, dz in _NEIGHBOR_OFFSETS:
            bucket = self._cells.get((ix + dx, iy + dy, iz + dz))
            if bucket:
                yield from bucket

    def __len__(self) -> int:
        return len(self._cells)
