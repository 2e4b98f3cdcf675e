import typing

import attrs

from plotcube.errors import ValidationError
from plotcube.types import ChartKind, MissingValuePolicy, PerformanceLevel

__all__ = ["ChartConfig"]


def _to_enum(enum_type: typing.Type[typing.Any], label: str):
    def converter(value: typing.Any) -> typing.Any:
        try:
            return enum_type(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown {label} {value!r}") from exc

    return converter


def _optional_level(value: typing.Any) -> typing.Optional[PerformanceLevel]:
    if value is None:
        return None
    return _to_enum(PerformanceLevel, "performance level")(value)


def _non_empty(instance: typing.Any, attribute: attrs.Attribute, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{attribute.name}' must be a non-empty field name")


def _positive(instance: typing.Any, attribute: attrs.Attribute, value: float) -> None:
    if value <= 0:
        raise ValidationError(f"'{attribute.name}' must be greater than 0, got {value}")


@attrs.frozen
class ChartConfig:
    """Chart configuration supplied alongside the records of a pipeline run."""

    x_field: str = attrs.field(validator=_non_empty)
    """Record field mapped to the x axis."""
    y_field: str = attrs.field(validator=_non_empty)
    """Record field mapped to the y axis."""
    z_field: str = attrs.field(validator=_non_empty)
    """Record field mapped to the z axis (bar height in bar mode)."""
    chart_kind: ChartKind = attrs.field(
        default=ChartKind.SCATTER_3D, converter=_to_enum(ChartKind, "chart kind")
    )
    """Kind of chart to prepare ('scatter3d', 'surface3d', 'mesh3d', 'bar3d')."""
    palette_name: str = "emerald"
    """Name of the color palette. Unknown names fall back to the default palette."""
    forced_performance_level: typing.Optional[PerformanceLevel] = attrs.field(
        default=None, converter=_optional_level
    )
    """Performance level to force regardless of dataset size."""
    extreme_override: bool = False
    """Force the most aggressive performance tier."""
    missing_value_policy: MissingValuePolicy = attrs.field(
        default=MissingValuePolicy.ZERO,
        converter=_to_enum(MissingValuePolicy, "missing value policy"),
    )
    """
    What to do with missing or non-numeric axis values.

    "zero" substitutes 0.0, "index" substitutes the row index and "reject" drops the record.
    """
    dark_mode: bool = False
    """Whether to style the layout and hover labels for a dark theme."""
    title: str = "3D Chart"
    """Chart title, also used as the legend entry name."""
    bar_width: float = attrs.field(default=0.4, validator=_positive)
    """Bar footprint along x, in axis units (bar mode only)."""
    bar_depth: float = attrs.field(default=0.4, validator=_positive)
    """Bar footprint along y, in axis units (bar mode only)."""
    respect_load_delay: bool = True
    """Whether chunked processing pauses for the tier's `load_delay` between chunks."""

    @property
    def fields(self) -> typing.Tuple[str, str, str]:
        return self.x_field, self.y_field, self.z_field
