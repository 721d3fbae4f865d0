"""Tests for the curve and surface color mappings."""

import pytest

from function_visualizer.colors import curve_color, sample_colors, surface_color, to_css
from function_visualizer.sampling import Mode, Sample, SampleSet


def surface_set(values):
    samples = tuple(Sample((0.0, 0.0), v, v) for v in values)
    return SampleSet(Mode.SURFACE, 2, samples, min(values), max(values))


class TestCurveColor:
    """Fixed-range red/green gradient."""

    def test_midpoint(self):
        assert curve_color(0.0) == pytest.approx((0.6, 0.6, 0.2))

    def test_domain_edges(self):
        assert curve_color(6.0) == pytest.approx((1.0, 0.2, 0.2))
        assert curve_color(-6.0) == pytest.approx((0.2, 1.0, 0.2))

    def test_clamp_bounds_saturate(self):
        assert curve_color(10.0) == pytest.approx((1.0, 0.0, 0.2))
        assert curve_color(-10.0) == pytest.approx((0.0, 1.0, 0.2))

    def test_blue_is_constant(self):
        assert {curve_color(v)[2] for v in (-10.0, -3.0, 0.0, 4.5, 10.0)} == {0.2}


class TestSurfaceColor:
    """Three-band gradient over normalized height."""

    def test_bottom(self):
        assert surface_color(0.0) == pytest.approx((0.0, 0.4, 0.9))

    def test_top_of_low_band(self):
        assert surface_color(0.3299999) == pytest.approx((0.4, 1.0, 0.9), abs=1e-5)

    def test_start_of_mid_band(self):
        assert surface_color(0.33) == pytest.approx((0.4, 0.9, 0.9))

    def test_middle(self):
        t = (0.5 - 0.33) / 0.33
        assert surface_color(0.5) == pytest.approx((0.4 + 0.5 * t, 0.9, 0.9 - 0.6 * t))

    def test_start_of_high_band(self):
        assert surface_color(0.66) == pytest.approx((0.9, 0.9, 0.3))

    def test_top(self):
        assert surface_color(1.0) == pytest.approx((0.9, 0.3, 0.1))

    def test_channels_stay_in_unit_range(self):
        for step in range(101):
            assert all(0.0 <= c <= 1.0 for c in surface_color(step / 100))


class TestSampleColors:
    """Per-mode dispatch over a sample set."""

    def test_flat_surface_uses_midpoint(self):
        colors = sample_colors(surface_set([2.0, 2.0, 2.0, 2.0]))
        assert colors == [surface_color(0.5)] * 4

    def test_surface_normalizes_by_observed_range(self):
        colors = sample_colors(surface_set([-1.0, 0.0, 0.0, 1.0]))
        assert colors[0] == surface_color(0.0)
        assert colors[1] == surface_color(0.5)
        assert colors[3] == surface_color(1.0)

    def test_curve_ignores_observed_range(self):
        samples = tuple(Sample((0.0,), v, v) for v in (1.0, 2.0))
        colors = sample_colors(SampleSet(Mode.CURVE, 2, samples, -10.0, 10.0))
        assert colors == [curve_color(1.0), curve_color(2.0)]


def test_to_css():
    assert to_css((1.0, 0.0, 0.5)) == "rgb(255, 0, 128)"
    assert to_css((1.5, -0.2, 0.0)) == "rgb(255, 0, 0)"
