"""Tests for palettes, themes and colorscales."""
import pytest

from plotcube.errors import ValidationError
from plotcube.visualization.base import (
    DARK_THEME,
    LIGHT_THEME,
    ColorPalette,
    PaletteRegistry,
    build_colorscale,
    get_palette,
    get_theme,
    palette_registry,
)


class TestPaletteLookup:

    @pytest.mark.parametrize("name", ["emerald", "ocean", "sunset", "cosmic"])
    def test_builtin_palettes(self, name):
        palette = get_palette(name)
        assert palette.name == name
        assert len(palette.gradient) == 7
        assert len(palette.surface) == 7

    def test_lookup_is_case_insensitive(self):
        assert get_palette("Sunset").name == "sunset"

    @pytest.mark.parametrize("name", ["neon", "", None])
    def test_unknown_name_falls_back(self, name):
        assert get_palette(name).name == "emerald"

    def test_registry_contents(self):
        assert "ocean" in palette_registry
        assert len(palette_registry) >= 4


class TestPaletteRegistry:

    @pytest.fixture
    def registry(self):
        return PaletteRegistry()

    @pytest.fixture
    def mono(self):
        return ColorPalette(name="mono", primary="#000000", gradient=["#111111"] * 7, surface=["#eeeeee"] * 7)

    def test_register_custom_palette(self, registry, mono):
        registry.register(mono)
        assert registry.get("mono") is mono
        assert "mono" in registry.names

    def test_duplicate_requires_override(self, registry, mono):
        registry.register(mono)
        with pytest.raises(ValidationError):
            registry.register(mono)
        registry.register(mono, override=True)

    def test_gradient_must_have_seven_colors(self):
        with pytest.raises(ValidationError):
            ColorPalette(name="short", primary="#000000", gradient=["#000000"] * 6, surface=["#ffffff"] * 7)


class TestColorscale:

    def test_stops(self):
        gradient = get_palette("ocean").gradient
        scale = build_colorscale(gradient)
        assert [stop for stop, _ in scale] == pytest.approx([i / 6 for i in range(7)])
        assert [color for _, color in scale] == list(gradient)

    def test_single_color(self):
        assert build_colorscale(["#123456"]) == [[0.0, "#123456"], [1.0, "#123456"]]


def test_theme_selection():
    assert get_theme(False) is LIGHT_THEME
    assert get_theme(True) is DARK_THEME
    assert DARK_THEME.background != LIGHT_THEME.background
