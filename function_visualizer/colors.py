"""Vertex colors for curves and surfaces.

Curves use a red/green gradient over the fixed domain range, so the same
height always gets the same color regardless of the function. Surfaces use a
three-band blue -> green -> orange gradient over the observed height range.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from plotly.colors import label_rgb

from . import config
from .sampling import Mode, SampleSet, normalized_height

RGB = Tuple[float, float, float]


def _unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def curve_color(value: float, size: float = config.DOMAIN_HALF_WIDTH) -> RGB:
    t = (value + size) / (2 * size)
    base = config.CURVE_COLOR_BASE
    span = config.CURVE_COLOR_SPAN
    # |value| can reach the clamp bound (10) while t is normalized by size (6)
    return (_unit(base + span * t), _unit(base + span * (1 - t)), config.CURVE_COLOR_BLUE)


def surface_color(height: float) -> RGB:
    """Map a normalized height in [0, 1] onto the three-band gradient."""
    low_width, mid_width, high_width = config.SURFACE_BAND_WIDTHS
    if height < config.SURFACE_BAND_LOW:
        t = height / low_width
        rgb = (0.0 + t * 0.4, 0.4 + t * 0.6, 0.9)
    elif height < config.SURFACE_BAND_HIGH:
        t = (height - config.SURFACE_BAND_LOW) / mid_width
        rgb = (0.4 + t * 0.5, 0.9, 0.9 - t * 0.6)
    else:
        t = (height - config.SURFACE_BAND_HIGH) / high_width
        rgb = (0.9, 0.9 - t * 0.6, 0.3 - t * 0.2)
    return tuple(_unit(c) for c in rgb)


def sample_colors(sample_set: SampleSet) -> List[RGB]:
    if sample_set.mode is Mode.CURVE:
        return [curve_color(v) for v in sample_set.values]
    z_min, z_max = sample_set.z_min, sample_set.z_max
    return [surface_color(normalized_height(v, z_min, z_max)) for v in sample_set.values]


def to_css(color: Sequence[float]) -> str:
    return label_rgb(tuple(int(round(_unit(c) * 255)) for c in color))
