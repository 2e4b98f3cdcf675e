"""Palettes, themes and plotly trace assembly for plotcube."""

from .base import *  # noqa
from .traces import *  # noqa
