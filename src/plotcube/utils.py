import math
import typing

import numba
import numpy as np


__all__ = ["grid_cell_indices", "chunked"]

T = typing.TypeVar("T")


@numba.njit(cache=True)
def grid_cell_indices(
    coords: np.typing.NDArray,
    mins: np.typing.NDArray,
    steps: np.typing.NDArray,
    grid_size: int,
) -> np.typing.NDArray:
    """
    Assign each point to a cell of a regular `grid_size` per axis grid.

    Cell index along an axis is `floor((v - min) / step)`, clamped to `[0, grid_size - 1]`
    so the maximum value lands in the last cell instead of one past it.

    :param coords: (n, 3) array of point coordinates
    :param mins: per-axis minimum, shape (3,)
    :param steps: per-axis cell size, shape (3,). Must not contain zeros.
    :param grid_size: number of cells along each axis
    :return: (n, 3) int64 array of cell indices
    """
    n = coords.shape[0]
    out = np.empty((n, 3), dtype=np.int64)
    for p in range(n):
        for a in range(3):
            cell = math.floor((coords[p, a] - mins[a]) / steps[a])
            if cell < 0:
                cell = 0
            elif cell > grid_size - 1:
                cell = grid_size - 1
            out[p, a] = cell
    return out


def chunked(items: typing.Sequence[T], size: int) -> typing.Iterator[typing.Sequence[T]]:
    """
    Yield consecutive slices of `items` holding at most `size` elements.

    :param items: Sequence to split
    :param size: Maximum chunk length, must be >= 1
    """
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]
