"""
Trace assembly: packaging normalized points into renderer-ready plotly traces and layout.
"""

from abc import ABC, abstractmethod
import logging
import math
import typing

import attrs
import numpy as np
import plotly.graph_objects as go
from plotly.basedatatypes import BaseTraceType
from typing_extensions import TypedDict

from plotcube.commands import ChartCommands
from plotcube.errors import ValidationError
from plotcube.geometry import build_bars
from plotcube.records import DatasetSchema, Point3D
from plotcube.types import ChartCommand, ChartKind
from plotcube.visualization.base import (
    DEFAULT_PALETTE,
    LIGHT_THEME,
    ColorPalette,
    Theme,
    build_colorscale,
)

__all__ = [
    "CameraPosition",
    "TraceContext",
    "TraceBuilder",
    "ScatterTraceBuilder",
    "MeshTraceBuilder",
    "SurfaceTraceBuilder",
    "BarTraceBuilder",
    "TraceAssembler",
    "assemble",
    "build_layout",
    "default_camera",
    "format_value",
    "point_label",
    "surface_grid",
]

logger = logging.getLogger(__name__)

FONT_FAMILY = "Inter, system-ui, sans-serif"

COMMAND_LABELS = {
    ChartCommand.ROTATE_TOGGLE: "Autoplay",
    ChartCommand.RESET: "Reset",
    ChartCommand.SAVE: "Save",
    ChartCommand.DOWNLOAD: "Download",
}


class CameraPosition(TypedDict):
    """Camera position and orientation for 3D plots."""

    eye: typing.Dict[str, float]
    """Camera position in 3D space (x, y, z coordinates)."""

    center: typing.Dict[str, float]
    """Point in 3D space that the camera is looking at (x, y, z coordinates)."""

    up: typing.Dict[str, float]
    """Up direction vector for the camera (x, y, z coordinates)."""


def default_camera(chart_kind: typing.Union[ChartKind, str]) -> CameraPosition:
    """Initial camera pose. Bar charts get a steeper, farther eye to show bar heights."""
    if ChartKind(chart_kind) is ChartKind.BAR_3D:
        eye = dict(x=2.0, y=2.0, z=1.8)
    else:
        eye = dict(x=1.5, y=1.5, z=1.5)
    return CameraPosition(
        eye=eye,
        center=dict(x=0.0, y=0.0, z=0.0),
        up=dict(x=0.0, y=0.0, z=1.0),
    )


def format_value(value: typing.Any) -> str:
    """
    Format a value for hover display.

    Non-numeric values are shown as-is. Very large or very small numbers use scientific notation.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        return str(value)
    if isinstance(value, (int, np.integer)):
        return f"{value:,}"
    if math.isnan(value) or math.isinf(value):
        return "N/A"

    abs_val = abs(value)
    if abs_val == 0:
        return "0"
    elif abs_val < 1e-4 or abs_val >= 1e6:
        return f"{value:.4e}"
    elif abs_val >= 1000:
        return f"{value:,.1f}"
    elif abs_val >= 1:
        return f"{value:.3f}".rstrip("0").rstrip(".")
    formatted = f"{value:.6f}".rstrip("0").rstrip(".")
    return formatted if formatted else "0"


def _display(original: typing.Any, value: float) -> str:
    return format_value(original if original is not None else value)


def point_label(point: Point3D, field_names: typing.Sequence[str]) -> str:
    """
    Build the hover text for a point.

    Aggregated points show their member count, centroid and up to three of the
    original members they stand for.
    """
    x_name, y_name, z_name = field_names
    if not point.aggregated:
        return (
            f"{x_name}: {_display(point.original_x, point.x)}<br>"
            f"{y_name}: {_display(point.original_y, point.y)}<br>"
            f"{z_name}: {_display(point.original_z, point.z)}"
        )

    lines = [
        f"Aggregated from {point.count:,} points",
        f"Centroid: ({format_value(point.x)}, {format_value(point.y)}, {format_value(point.z)})",
    ]
    for member in point.members:
        lines.append(
            f"• {x_name}: {_display(member.original_x, member.x)}, "
            f"{y_name}: {_display(member.original_y, member.y)}, "
            f"{z_name}: {_display(member.original_z, member.z)}"
        )
    if point.count > len(point.members):
        lines.append(f"… and {point.count - len(point.members):,} more")
    return "<br>".join(lines)


def surface_grid(points: typing.Sequence[Point3D]) -> np.typing.NDArray:
    """
    Fold points into a square height grid of side `ceil(sqrt(n))`.

    Point `i` lands at row `i // side`, column `i % side`. Cells without a point stay at 0.
    """
    side = math.ceil(math.sqrt(len(points)))
    grid = np.zeros((side, side), dtype=float)
    for i, point in enumerate(points):
        grid[i // side, i % side] = point.z
    return grid


@attrs.frozen
class TraceContext:
    """Styling and labelling shared by all traces of one chart."""

    palette: ColorPalette = DEFAULT_PALETTE
    theme: Theme = LIGHT_THEME
    field_names: typing.Tuple[str, str, str] = ("x", "y", "z")
    """Names of the fields mapped to the x, y and z axes, for labels."""
    title: str = "3D Chart"
    """Series name shown in the legend."""
    bar_width: float = 0.4
    bar_depth: float = 0.4
    marker_size: float = 8
    """Scatter marker size. Smaller when level-of-detail reduction is on."""

    @property
    def dark(self) -> bool:
        return self.theme.name == "dark"

    @property
    def colorscale(self) -> typing.List[typing.List[typing.Any]]:
        return build_colorscale(self.palette.gradient)

    @property
    def hoverlabel(self) -> typing.Dict[str, typing.Any]:
        return dict(
            bgcolor=self.theme.hover_background,
            bordercolor=self.palette.primary,
            font=dict(family=FONT_FAMILY, size=12, color=self.theme.hover_text),
            align="left",
        )

    def lighting(self, roughness: float = 0.1) -> typing.Dict[str, float]:
        return dict(
            ambient=0.4 if self.dark else 0.3,
            diffuse=0.8,
            fresnel=0.1,
            specular=1.0,
            roughness=roughness,
        )


class TraceBuilder(ABC):
    """Base class for per-chart-kind trace builders."""

    chart_kind: typing.ClassVar[ChartKind]

    @abstractmethod
    def build(
        self, points: typing.Sequence[Point3D], context: TraceContext
    ) -> typing.List[BaseTraceType]:
        """Build the traces for a non-empty point set."""
        pass

    @staticmethod
    def coordinates(
        points: typing.Sequence[Point3D],
    ) -> typing.Tuple[typing.List[float], typing.List[float], typing.List[float]]:
        return (
            [point.x for point in points],
            [point.y for point in points],
            [point.z for point in points],
        )


class ScatterTraceBuilder(TraceBuilder):
    """One marker per point, colored by z."""

    chart_kind = ChartKind.SCATTER_3D

    def build(self, points, context):
        x, y, z = self.coordinates(points)
        palette = context.palette
        return [
            go.Scatter3d(
                x=x,
                y=y,
                z=z,
                mode="markers",
                marker=dict(
                    size=context.marker_size,
                    color=z,
                    colorscale=context.colorscale,
                    opacity=0.85,
                    line=dict(
                        color=palette.gradient[2] if context.dark else palette.primary,
                        width=1.5,
                    ),
                ),
                text=[point_label(point, context.field_names) for point in points],
                hovertemplate="%{text}<extra></extra>",
                hoverlabel=context.hoverlabel,
                name=context.title,
            )
        ]


class MeshTraceBuilder(TraceBuilder):
    """Alpha-hull mesh through all points."""

    chart_kind = ChartKind.MESH_3D

    def build(self, points, context):
        x, y, z = self.coordinates(points)
        palette = context.palette
        return [
            go.Mesh3d(
                x=x,
                y=y,
                z=z,
                alphahull=5,
                opacity=0.75 if context.dark else 0.7,
                color=palette.gradient[3] if context.dark else palette.primary,
                lighting=context.lighting(roughness=0.05 if context.dark else 0.1),
                text=[point_label(point, context.field_names) for point in points],
                hovertemplate="%{text}<extra></extra>",
                hoverlabel=context.hoverlabel,
                name=context.title,
            )
        ]


class SurfaceTraceBuilder(TraceBuilder):
    """Continuous surface over a square grid of point heights."""

    chart_kind = ChartKind.SURFACE_3D

    def build(self, points, context):
        return [
            go.Surface(
                z=surface_grid(points),
                colorscale=context.colorscale,
                opacity=0.85 if context.dark else 0.9,
                lighting=context.lighting(roughness=0.15 if context.dark else 0.2),
                contours=dict(
                    z=dict(
                        show=True,
                        usecolormap=True,
                        highlightcolor="#ffffff" if context.dark else "#000000",
                        project=dict(z=True),
                    )
                ),
                hovertemplate="Position: (%{x}, %{y})<br>Height: %{z}<extra></extra>",
                hoverlabel=context.hoverlabel,
                name=context.title,
            )
        ]


class BarTraceBuilder(TraceBuilder):
    """One solid mesh per bar, plus an invisible marker trace carrying the legend entry."""

    chart_kind = ChartKind.BAR_3D

    def build(self, points, context):
        bars = build_bars(
            points,
            context.palette.gradient,
            width=context.bar_width,
            depth=context.bar_depth,
        )
        traces: typing.List[BaseTraceType] = []
        for number, (point, bar) in enumerate(zip(points, bars), start=1):
            label = point_label(point, context.field_names)
            traces.append(
                go.Mesh3d(
                    x=bar.x,
                    y=bar.y,
                    z=bar.z,
                    i=bar.i,
                    j=bar.j,
                    k=bar.k,
                    color=bar.color,
                    opacity=0.8,
                    flatshading=True,
                    lighting=context.lighting(),
                    # Hover text on every vertex so hover works on all faces
                    text=[label] * len(bar.vertices),
                    hovertemplate="%{text}<extra></extra>",
                    hoverlabel=context.hoverlabel,
                    name=f"Bar {number}",
                    showlegend=False,
                )
            )

        # Mesh traces have no legend swatch
        first = points[0]
        traces.append(
            go.Scatter3d(
                x=[first.x],
                y=[first.y],
                z=[first.z],
                mode="markers",
                marker=dict(size=0.1, color=context.palette.primary, opacity=0),
                name=context.title,
                showlegend=True,
                hoverinfo="skip",
            )
        )
        return traces


class TraceAssembler:
    """Assembles traces and layout for any supported chart kind."""

    def __init__(self) -> None:
        self._builders: typing.Dict[ChartKind, TraceBuilder] = {}
        for builder_type in (
            ScatterTraceBuilder,
            MeshTraceBuilder,
            SurfaceTraceBuilder,
            BarTraceBuilder,
        ):
            self.add_builder(builder_type())

    def add_builder(self, builder: TraceBuilder) -> None:
        """Register (or replace) the builder for its chart kind."""
        self._builders[builder.chart_kind] = builder

    def get_builder(self, chart_kind: typing.Union[ChartKind, str]) -> TraceBuilder:
        try:
            return self._builders[ChartKind(chart_kind)]
        except (KeyError, ValueError) as exc:
            raise ValidationError(f"No trace builder for chart kind {chart_kind!r}") from exc

    def assemble(
        self,
        points: typing.Sequence[Point3D],
        chart_kind: typing.Union[ChartKind, str],
        context: TraceContext,
    ) -> typing.List[BaseTraceType]:
        """
        Build the traces for a point set.

        Scatter, mesh and surface charts yield a single trace. Bar charts yield one mesh
        trace per point plus one legend trace. An empty point set yields no traces.
        """
        if not points:
            return []
        traces = self.get_builder(chart_kind).build(points, context)
        logger.debug(f"Assembled {len(traces)} {ChartKind(chart_kind).value} traces")
        return traces


_assembler = TraceAssembler()


def assemble(
    points: typing.Sequence[Point3D],
    chart_kind: typing.Union[ChartKind, str],
    palette: ColorPalette = DEFAULT_PALETTE,
    theme: Theme = LIGHT_THEME,
    **context_kwargs: typing.Any,
) -> typing.List[BaseTraceType]:
    """
    Build renderer-ready traces for a point set.

    :param points: Normalized (and possibly reduced) points
    :param chart_kind: Chart kind to build
    :param palette: Color palette
    :param theme: Light or dark theme
    :param context_kwargs: Extra `TraceContext` fields (field_names, title, bar_width, ...)
    :return: List of plotly traces
    """
    context = TraceContext(palette=palette, theme=theme, **context_kwargs)
    return _assembler.assemble(points, chart_kind, context)


def _axis(
    title: str,
    theme: Theme,
    categories: typing.Optional[typing.Sequence[str]] = None,
) -> typing.Dict[str, typing.Any]:
    axis: typing.Dict[str, typing.Any] = {
        "title": dict(text=title, font=dict(color=theme.secondary, size=14)),
        "showgrid": True,
        "gridcolor": theme.grid,
        "showline": True,
        "linecolor": theme.line,
        "tickfont": dict(color=theme.tick, size=11),
    }
    if categories is not None:
        axis["tickmode"] = "array"
        axis["tickvals"] = list(range(len(categories)))
        axis["ticktext"] = list(categories)
    return axis


def _bar_height_range(points: typing.Sequence[Point3D]) -> typing.List[float]:
    if not points:
        return [0.0, 1.0]
    top = max(0.0, max(point.z for point in points)) * 1.1
    bottom = min(0.0, min(point.z for point in points)) * 1.1
    if top == bottom:
        return [0.0, 1.0]
    return [bottom, top]


def _command_menu(commands: ChartCommands) -> typing.Dict[str, typing.Any]:
    return dict(
        type="buttons",
        direction="left",
        showactive=False,
        x=0.0,
        y=1.08,
        xanchor="left",
        yanchor="top",
        buttons=[
            dict(label=COMMAND_LABELS[command], method="skip", name=command.value)
            for command in commands.available
        ],
    )


def build_layout(
    points: typing.Sequence[Point3D],
    chart_kind: typing.Union[ChartKind, str],
    context: TraceContext,
    schema: typing.Optional[DatasetSchema] = None,
    annotation: typing.Optional[str] = None,
    commands: typing.Optional[ChartCommands] = None,
    animation_duration: typing.Optional[int] = None,
) -> go.Layout:
    """
    Build the layout descriptor: axis titles, camera, theme colors and annotation.

    :param points: Points being rendered (bar charts size the z axis from them)
    :param chart_kind: Chart kind
    :param context: Styling context shared with the traces
    :param schema: Dataset schema. Categorical axes get their category names as tick labels.
    :param annotation: Text shown under the chart, e.g. a reduction summary
    :param commands: Control commands. One button is added per available command.
    :param animation_duration: Transition duration in milliseconds
    :return: The plotly layout
    """
    chart_kind = ChartKind(chart_kind)
    theme = context.theme
    x_name, y_name, z_name = context.field_names
    is_bar = chart_kind is ChartKind.BAR_3D

    x_categories = y_categories = None
    if schema is not None:
        if schema.x_categories is not None:
            x_categories = schema.x_categories.labels
        if schema.y_categories is not None:
            y_categories = schema.y_categories.labels

    z_axis = _axis(z_name, theme)
    if is_bar:
        z_axis["range"] = _bar_height_range(points)

    layout = go.Layout(
        title=dict(
            text=context.title,
            font=dict(family=FONT_FAMILY, size=18, color=theme.text),
            x=0.5,
            y=0.95,
        ),
        scene=dict(
            camera=default_camera(chart_kind),
            xaxis=_axis(x_name, theme, x_categories),
            yaxis=_axis(y_name, theme, y_categories),
            zaxis=z_axis,
            bgcolor=theme.background,
            aspectmode="manual" if is_bar else "cube",
            aspectratio=dict(x=1, y=1, z=1.2) if is_bar else dict(x=1, y=1, z=0.8),
            dragmode="orbit",
        ),
        paper_bgcolor=theme.paper,
        plot_bgcolor=theme.paper,
        margin=dict(l=0, r=0, t=40, b=0),
        showlegend=True,
        legend=dict(x=1.02, y=0.5, font=dict(color=theme.secondary, size=12)),
        autosize=True,
    )
    if annotation:
        layout.annotations = [
            dict(
                text=annotation,
                showarrow=False,
                xref="paper",
                yref="paper",
                x=0.5,
                y=-0.1,
                xanchor="center",
                yanchor="top",
                font=dict(color=theme.annotation, size=10),
            )
        ]
    if commands is not None and commands.available:
        layout.updatemenus = [_command_menu(commands)]
    if animation_duration is not None:
        layout.transition = dict(duration=animation_duration)
    return layout
