from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from . import config
from .evaluator import EvaluationError, Evaluator, default_evaluator

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    CURVE = config.MODE_CURVE
    SURFACE = config.MODE_SURFACE


class SampleFailure(str, Enum):
    EVALUATION_ERROR = "evaluation_error"
    NON_FINITE = "non_finite"


def coerce_mode(value) -> Mode:
    if isinstance(value, Mode):
        return value
    try:
        return Mode(str(value).lower())
    except ValueError:
        return Mode(config.DEFAULT_MODE)


def coerce_resolution(value, *, floor: int = config.RESOLUTION_FLOOR, ceiling: Optional[int] = None) -> int:
    try:
        num = int(float(value))
    except (TypeError, ValueError, OverflowError):
        num = config.DEFAULT_RESOLUTION
    num = max(floor, num)
    if ceiling is not None:
        num = min(ceiling, num)
    return num


@dataclass(frozen=True)
class Configuration:
    expression: str
    resolution: int
    mode: Mode

    @classmethod
    def create(cls, expression: str, resolution=config.DEFAULT_RESOLUTION, mode=config.DEFAULT_MODE) -> "Configuration":
        return cls(
            expression=str(expression).strip(),
            resolution=coerce_resolution(resolution),
            mode=coerce_mode(mode),
        )

    def to_dict(self) -> dict:
        return {"expression": self.expression, "resolution": self.resolution, "mode": self.mode.value}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Configuration":
        data = data if isinstance(data, dict) else {}
        mode = coerce_mode(data.get("mode", config.DEFAULT_MODE))
        expression = data.get("expression") or config.DEFAULT_EQUATIONS[mode.value]
        return cls.create(expression, data.get("resolution", config.DEFAULT_RESOLUTION), mode)


@dataclass(frozen=True)
class Sample:
    coordinate: Tuple[float, ...]
    raw: Optional[float]
    clamped: float
    failure: Optional[SampleFailure] = None


@dataclass(frozen=True)
class SampleSet:
    mode: Mode
    resolution: int
    samples: Tuple[Sample, ...]
    z_min: float
    z_max: float

    @property
    def values(self) -> List[float]:
        return [s.clamped for s in self.samples]

    @property
    def failure_count(self) -> int:
        return sum(1 for s in self.samples if s.failure is not None)


def axis_samples(count: int, size: float = config.DOMAIN_HALF_WIDTH) -> List[float]:
    count = max(config.RESOLUTION_FLOOR, int(count))
    last = count - 1
    return [-size + (i / last) * 2 * size for i in range(count)]


def curve_domain(resolution: int) -> List[Tuple[float]]:
    return [(x,) for x in axis_samples(resolution)]


def surface_domain(resolution: int) -> List[Tuple[float, float]]:
    """Row-major grid: rows walk y upwards, columns walk x left to right."""
    axis = axis_samples(resolution)
    return [(x, y) for y in axis for x in axis]


def domain_samples(mode: Mode, resolution: int) -> List[Tuple[float, ...]]:
    if mode is Mode.CURVE:
        return curve_domain(resolution)
    return surface_domain(resolution)


def clamp_value(value: float, low: float = config.VALUE_MIN, high: float = config.VALUE_MAX) -> float:
    return max(low, min(high, value))


def sample_point(expression: str, coordinate: Sequence[float], evaluator: Evaluator) -> Sample:
    names = ("x", "y")[: len(coordinate)]
    bindings = dict(zip(names, coordinate))
    bindings.update(config.EXPRESSION_CONSTANTS)
    coordinate = tuple(coordinate)
    try:
        raw = evaluator.evaluate(expression, bindings)
    except EvaluationError:
        return Sample(coordinate, None, 0.0, SampleFailure.EVALUATION_ERROR)
    if not math.isfinite(raw):
        return Sample(coordinate, raw, 0.0, SampleFailure.NON_FINITE)
    return Sample(coordinate, raw, clamp_value(raw))


def sample_function(
    expression: str,
    mode: Mode,
    resolution: int,
    *,
    evaluator: Optional[Evaluator] = None,
) -> SampleSet:
    evaluator = evaluator or default_evaluator
    mode = coerce_mode(mode)
    resolution = coerce_resolution(resolution)
    samples = tuple(sample_point(expression, c, evaluator) for c in domain_samples(mode, resolution))

    z_min = config.VALUE_MIN
    z_max = config.VALUE_MAX
    if mode is Mode.SURFACE:
        z_min = min(s.clamped for s in samples)
        z_max = max(s.clamped for s in samples)

    result = SampleSet(mode, resolution, samples, z_min, z_max)
    if result.failure_count:
        logger.debug(
            "%d of %d samples of %r fell back to 0",
            result.failure_count,
            len(samples),
            expression,
        )
    return result


def normalized_height(value: float, z_min: float, z_max: float) -> float:
    if z_max == z_min:
        return config.FLAT_NORMALIZED_HEIGHT
    return (value - z_min) / (z_max - z_min)
