import logging
import typing

import attrs

from plotcube.errors import ValidationError

__all__ = [
    "ColorPalette",
    "PaletteRegistry",
    "palette_registry",
    "get_palette",
    "Theme",
    "LIGHT_THEME",
    "DARK_THEME",
    "get_theme",
    "build_colorscale",
    "DEFAULT_PALETTE",
]

logger = logging.getLogger(__name__)

GRADIENT_LENGTH = 7


def _seven_colors(instance: typing.Any, attribute: attrs.Attribute, value) -> None:
    if len(value) != GRADIENT_LENGTH:
        raise ValidationError(
            f"'{attribute.name}' must hold exactly {GRADIENT_LENGTH} colors, got {len(value)}"
        )


@attrs.frozen
class ColorPalette:
    """Named color palette used for gradients, surfaces and accents."""

    name: str
    """Palette name used for lookup."""
    primary: str
    """Main color, used for borders, legend swatches and highlights."""
    gradient: typing.Tuple[str, ...] = attrs.field(converter=tuple, validator=_seven_colors)
    """Seven colors from darkest to lightest, used for value-to-color mapping."""
    surface: typing.Tuple[str, ...] = attrs.field(converter=tuple, validator=_seven_colors)
    """Seven lighter colors from lightest to strongest, for surface fills."""
    accent: str = "#f59e0b"
    """Contrasting accent color."""


class PaletteRegistry:
    """Registry of all color palettes available for 3D charts."""

    default_name: typing.ClassVar[str] = "emerald"

    _default_palettes = (
        ColorPalette(
            name="emerald",
            primary="#059669",
            gradient=["#064e3b", "#065f46", "#047857", "#059669", "#10b981", "#34d399", "#6ee7b7"],
            surface=["#ecfdf5", "#d1fae5", "#a7f3d0", "#6ee7b7", "#34d399", "#10b981", "#059669"],
            accent="#f59e0b",
        ),
        ColorPalette(
            name="ocean",
            primary="#0284c7",
            gradient=["#0c4a6e", "#075985", "#0369a1", "#0284c7", "#0ea5e9", "#38bdf8", "#7dd3fc"],
            surface=["#f0f9ff", "#e0f2fe", "#bae6fd", "#7dd3fc", "#38bdf8", "#0ea5e9", "#0284c7"],
            accent="#f97316",
        ),
        ColorPalette(
            name="sunset",
            primary="#dc2626",
            gradient=["#7f1d1d", "#991b1b", "#b91c1c", "#dc2626", "#ef4444", "#f87171", "#fca5a5"],
            surface=["#fef2f2", "#fee2e2", "#fecaca", "#fca5a5", "#f87171", "#ef4444", "#dc2626"],
            accent="#eab308",
        ),
        ColorPalette(
            name="cosmic",
            primary="#7c3aed",
            gradient=["#4c1d95", "#5b21b6", "#6d28d9", "#7c3aed", "#8b5cf6", "#a78bfa", "#c4b5fd"],
            surface=["#f5f3ff", "#ede9fe", "#ddd6fe", "#c4b5fd", "#a78bfa", "#8b5cf6", "#7c3aed"],
            accent="#10b981",
        ),
    )

    def __init__(self) -> None:
        self._palettes: typing.Dict[str, ColorPalette] = {
            palette.name: palette for palette in self._default_palettes
        }

    def register(self, palette: ColorPalette, override: bool = False) -> None:
        """
        Register a custom palette.

        :param palette: The palette to register
        :param override: Whether to replace an existing palette with the same name
        """
        key = palette.name.lower()
        if key in self._palettes and not override:
            raise ValidationError(f"Palette '{palette.name}' is already registered")
        self._palettes[key] = palette

    def get(self, name: typing.Optional[str]) -> ColorPalette:
        """
        Get a palette by name, falling back to the default palette for unknown names.

        :param name: Palette name (case-insensitive)
        :return: The matching palette, or the default palette
        """
        key = (name or "").strip().lower()
        palette = self._palettes.get(key)
        if palette is None:
            logger.warning(
                f"Unknown palette '{name}', falling back to '{self.default_name}'"
            )
            return self._palettes[self.default_name]
        return palette

    @property
    def names(self) -> typing.List[str]:
        return list(self._palettes)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._palettes

    def __len__(self) -> int:
        return len(self._palettes)


palette_registry = PaletteRegistry()
"""Global registry of color palettes."""

DEFAULT_PALETTE = palette_registry.get(PaletteRegistry.default_name)


def get_palette(name: typing.Optional[str]) -> ColorPalette:
    """Get a palette from the global registry, falling back to the default palette."""
    return palette_registry.get(name)


def build_colorscale(colors: typing.Sequence[str]) -> typing.List[typing.List[typing.Any]]:
    """
    Build a plotly colorscale with stop `i` at `i / (len(colors) - 1)`.

    :param colors: Ordered colors
    :return: List of `[stop, color]` pairs
    """
    if len(colors) == 1:
        return [[0.0, colors[0]], [1.0, colors[0]]]
    last = len(colors) - 1
    return [[index / last, color] for index, color in enumerate(colors)]


@attrs.frozen
class Theme:
    """Light or dark styling for the chart canvas and hover labels."""

    name: str
    background: str
    """Scene background color."""
    paper: str
    """Paper (outer canvas) color."""
    text: str
    """Title text color."""
    secondary: str
    """Axis title and legend text color."""
    grid: str
    line: str
    tick: str
    annotation: str
    hover_background: str
    hover_text: str


LIGHT_THEME = Theme(
    name="light",
    background="rgba(255, 255, 255, 0.95)",
    paper="rgba(255, 255, 255, 0)",
    text="#1f2937",
    secondary="#374151",
    grid="#e5e7eb",
    line="#d1d5db",
    tick="#6b7280",
    annotation="#9ca3af",
    hover_background="rgba(255, 255, 255, 0.95)",
    hover_text="#374151",
)

DARK_THEME = Theme(
    name="dark",
    background="rgba(17, 24, 39, 0.95)",
    paper="rgba(17, 24, 39, 0)",
    text="#f9fafb",
    secondary="#e5e7eb",
    grid="#374151",
    line="#4b5563",
    tick="#9ca3af",
    annotation="#6b7280",
    hover_background="rgba(31, 41, 55, 0.95)",
    hover_text="#f9fafb",
)


def get_theme(dark_mode: bool) -> Theme:
    return DARK_THEME if dark_mode else LIGHT_THEME
