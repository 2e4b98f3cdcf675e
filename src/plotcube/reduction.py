"""
Point-set reduction: spatial aggregation into a coarse 3D grid, and systematic sampling.
"""

import logging
import math
import typing

import numpy as np

from plotcube._precision import get_dtype
from plotcube.errors import ValidationError
from plotcube.records import Point3D
from plotcube.utils import grid_cell_indices

__all__ = ["aggregate", "sample", "MAX_RETAINED_MEMBERS"]

logger = logging.getLogger(__name__)

MAX_RETAINED_MEMBERS = 3
"""Number of original member points kept on each aggregated point for tooltips."""


def _as_array(points: typing.Sequence[Point3D]) -> np.typing.NDArray:
    return np.array([point.coordinates for point in points], dtype=get_dtype()).reshape(
        -1, 3
    )


def aggregate(
    points: typing.Sequence[Point3D], target_bucket_count: int
) -> typing.List[Point3D]:
    """
    Collapse points into the centroids of the occupied cells of a regular 3D grid.

    The grid has `ceil(sqrt(target_bucket_count))` cells along each axis, spanning the
    per-axis range of the points. An axis whose values are all equal gets a step of 1
    so no division by zero occurs. Each occupied cell yields one aggregated point at the
    arithmetic mean of its members, in the order the cells are first encountered.

    Returns a copy of `points` unchanged if there are no more points than `target_bucket_count`.

    :param points: Normalized points
    :param target_bucket_count: Desired number of buckets, must be >= 1
    :return: Aggregated points. Never longer than `points` or `ceil(sqrt(target_bucket_count))**3`.
    """
    if target_bucket_count < 1:
        raise ValidationError("Target bucket count must be at least 1")
    if len(points) <= target_bucket_count:
        return list(points)

    coords = _as_array(points)
    mins = coords.min(axis=0).astype(np.float64)
    maxs = coords.max(axis=0).astype(np.float64)
    grid_size = math.ceil(math.sqrt(target_bucket_count))
    steps = (maxs - mins) / grid_size
    steps[steps == 0] = 1.0

    cells = grid_cell_indices(coords, mins, steps, grid_size)
    keys = (cells[:, 0] * grid_size + cells[:, 1]) * grid_size + cells[:, 2]

    _, first_seen, inverse, counts = np.unique(
        keys, return_index=True, return_inverse=True, return_counts=True
    )
    inverse = inverse.reshape(-1)
    # Renumber buckets so they appear in first-encounter order
    order = np.argsort(first_seen, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(order.size)
    bucket_of = rank[inverse]
    counts = counts[order]

    sums = np.stack(
        [np.bincount(bucket_of, weights=coords[:, axis], minlength=order.size) for axis in range(3)],
        axis=1,
    )
    centroids = sums / counts[:, None]

    member_order = np.argsort(bucket_of, kind="stable")
    boundaries = np.concatenate(([0], np.cumsum(counts)))

    aggregated = []
    for bucket in range(order.size):
        start = boundaries[bucket]
        member_ids = member_order[start : start + MAX_RETAINED_MEMBERS]
        members = tuple(points[int(i)] for i in member_ids)
        cx, cy, cz = centroids[bucket]
        aggregated.append(
            Point3D(
                x=float(cx),
                y=float(cy),
                z=float(cz),
                index=members[0].index,
                count=int(counts[bucket]),
                aggregated=True,
                members=members,
            )
        )

    logger.debug(
        f"Aggregated {len(points)} points into {len(aggregated)} buckets "
        f"(grid {grid_size}x{grid_size}x{grid_size})"
    )
    return aggregated


def sample(points: typing.Sequence[Point3D], factor: float) -> typing.List[Point3D]:
    """
    Systematically sample points with a fixed stride.

    Keeps `floor(len(points) * factor)` points (at least one for a non-empty input),
    taking `points[floor(i * step)]` with `step = len(points) / target`. Order is preserved
    and the result is fully deterministic.

    Returns a copy of `points` unchanged if `factor >= 1`.

    :param points: Points to sample
    :param factor: Fraction of points to keep, in (0, 1]
    :return: Sampled points
    """
    if not factor > 0:
        raise ValidationError(f"Sampling factor must be greater than 0, got {factor}")
    if factor >= 1 or not points:
        return list(points)

    size = len(points)
    target = max(math.floor(size * factor), 1)
    # floor(i * size / target) in exact integer arithmetic
    picks = (np.arange(target, dtype=np.int64) * size) // target
    sampled = [points[int(i)] for i in picks]
    logger.debug(f"Sampled {target} of {size} points (factor={factor})")
    return sampled
