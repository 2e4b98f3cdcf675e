import enum
import typing

from typing_extensions import TypeAlias


__all__ = [
    "ChartKind",
    "PerformanceLevel",
    "FieldKind",
    "MissingValuePolicy",
    "Backend",
    "TierName",
    "Record",
    "Vertex",
    "Face",
    "ChartCommand",
]

Record: TypeAlias = typing.Mapping[str, typing.Any]
"""One parsed input row: string-keyed fields holding strings or numbers."""

Vertex: TypeAlias = typing.Tuple[float, float, float]
"""A vertex in 3D space as an (x, y, z) tuple."""

Face: TypeAlias = typing.Tuple[int, int, int]
"""A triangular face as a triplet of local vertex indices."""

Backend = typing.Literal["webgl", "svg"]
"""Rendering backend hint surfaced to the UI layer."""

TierName = typing.Literal["default", "standard", "high", "extreme", "ultra"]
"""Names of the performance tiers, from least to most aggressive."""


class ChartKind(str, enum.Enum):
    """Kinds of 3D charts the pipeline can prepare."""

    SCATTER_3D = "scatter3d"
    """Point cloud, one marker per point."""
    SURFACE_3D = "surface3d"
    """Points folded into a square height grid."""
    MESH_3D = "mesh3d"
    """Alpha-hull mesh spanning the point cloud."""
    BAR_3D = "bar3d"
    """One solid rectangular prism per point."""

    def __str__(self) -> str:
        return self.value


class PerformanceLevel(str, enum.Enum):
    """Performance levels a caller may force regardless of dataset size."""

    NORMAL = "normal"
    OPTIMIZED = "optimized"
    EXTREME = "extreme"
    ULTRA = "ultra"

    def __str__(self) -> str:
        return self.value


class FieldKind(enum.Enum):
    """Inferred kind of a dataset field."""

    NUMERIC = "numeric"
    CATEGORICAL = "categorical"


class MissingValuePolicy(str, enum.Enum):
    """
    What to do when an axis value is missing or cannot be read as a finite number.

    - "zero": substitute 0.0
    - "index": substitute the row index of the record
    - "reject": drop the record entirely
    """

    ZERO = "zero"
    INDEX = "index"
    REJECT = "reject"

    def __str__(self) -> str:
        return self.value


class ChartCommand(str, enum.Enum):
    """Interactive control actions a renderer may trigger."""

    ROTATE_TOGGLE = "rotate_toggle"
    RESET = "reset"
    SAVE = "save"
    DOWNLOAD = "download"

    def __str__(self) -> str:
        return self.value
