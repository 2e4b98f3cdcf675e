"""
Solid geometry for 3D bar charts.

Each bar is a rectangular prism with 8 vertices and 12 triangular faces, spanning
from the z = 0 baseline to the (signed) bar height.
"""

import typing

import attrs

from plotcube.records import Point3D
from plotcube.types import Face, Vertex

__all__ = ["BarSolid", "BAR_FACES", "build_bar", "build_bars", "gradient_index"]


# Local vertex numbering:
#   0-3: base (z = 0), counter-clockwise from (-w/2, -d/2)
#   4-7: top (z = height), same order
BAR_FACES: typing.Tuple[Face, ...] = (
    # Bottom
    (0, 1, 2),
    (0, 2, 3),
    # Top
    (4, 7, 6),
    (4, 6, 5),
    # Front (y min)
    (0, 4, 5),
    (0, 5, 1),
    # Back (y max)
    (2, 6, 7),
    (2, 7, 3),
    # Right (x max)
    (1, 5, 6),
    (1, 6, 2),
    # Left (x min)
    (0, 3, 7),
    (0, 7, 4),
)


@attrs.frozen
class BarSolid:
    """Explicit vertex/face geometry for one 3D bar."""

    vertices: typing.Tuple[Vertex, ...]
    """The 8 prism vertices."""
    faces: typing.Tuple[Face, ...]
    """The 12 triangular faces, as indices into `vertices`."""
    color: str
    """Fill color of the bar."""
    height_value: float
    """Signed bar height, as displayed."""
    point: typing.Optional[Point3D] = attrs.field(default=None, eq=False, repr=False)
    """The point the bar was built from."""

    @property
    def x(self) -> typing.List[float]:
        return [vertex[0] for vertex in self.vertices]

    @property
    def y(self) -> typing.List[float]:
        return [vertex[1] for vertex in self.vertices]

    @property
    def z(self) -> typing.List[float]:
        return [vertex[2] for vertex in self.vertices]

    @property
    def i(self) -> typing.List[int]:
        return [face[0] for face in self.faces]

    @property
    def j(self) -> typing.List[int]:
        return [face[1] for face in self.faces]

    @property
    def k(self) -> typing.List[int]:
        return [face[2] for face in self.faces]


def gradient_index(height: float, max_abs_height: float, steps: int = 7) -> int:
    """
    Bucket a bar height into one of `steps` gradient colors.

    The index is `floor(|height| / max_abs_height * (steps - 1))`, clamped to the
    gradient. A zero `max_abs_height` maps every bar to index 0.

    :param height: Signed bar height
    :param max_abs_height: Largest absolute height across all bars
    :param steps: Number of colors in the gradient
    :return: Gradient color index in `[0, steps - 1]`
    """
    if steps < 1 or not max_abs_height > 0:
        return 0
    normalized = abs(height) / max_abs_height
    return min(int(normalized * (steps - 1)), steps - 1)


def build_bar(
    point: Point3D,
    width: float = 0.4,
    depth: float = 0.4,
    color: str = "#059669",
) -> BarSolid:
    """
    Build the prism for one bar centered at `(point.x, point.y)` with height `point.z`.

    The base sits at z = 0 and the top at z = `point.z`, so negative heights produce a bar
    extending below the baseline. The footprint is `width x depth`.

    :param point: Normalized point giving the bar center and height
    :param width: Footprint size along x
    :param depth: Footprint size along y
    :param color: Fill color
    :return: The `BarSolid`
    """
    half_w = width / 2
    half_d = depth / 2
    x, y, height = point.x, point.y, point.z
    footprint = (
        (x - half_w, y - half_d),
        (x + half_w, y - half_d),
        (x + half_w, y + half_d),
        (x - half_w, y + half_d),
    )
    vertices = tuple((vx, vy, 0.0) for vx, vy in footprint) + tuple(
        (vx, vy, height) for vx, vy in footprint
    )
    return BarSolid(
        vertices=vertices,
        faces=BAR_FACES,
        color=color,
        height_value=height,
        point=point,
    )


def build_bars(
    points: typing.Sequence[Point3D],
    gradient: typing.Sequence[str],
    width: float = 0.4,
    depth: float = 0.4,
) -> typing.List[BarSolid]:
    """
    Build one bar per point, colored by relative absolute height.

    :param points: Normalized points
    :param gradient: Ordered gradient colors, lowest to highest
    :param width: Footprint size along x
    :param depth: Footprint size along y
    :return: One `BarSolid` per point, in input order
    """
    if not points:
        return []
    max_abs_height = max(abs(point.z) for point in points)
    steps = len(gradient)
    return [
        build_bar(
            point,
            width=width,
            depth=depth,
            color=gradient[gradient_index(point.z, max_abs_height, steps)],
        )
        for point in points
    ]
