"""Configuration -> Geometry, plus the explorer state transitions around it.

``build_geometry`` is pure: the same configuration always yields identical
buffers, which is what makes ``cached_geometry`` safe. The explorer state is a
plain immutable value; each operation returns a new state and leaves the
caller's copy untouched when it raises. ``committed`` and the ``with_*``
helpers are the same transitions on a bare configuration, for callers that
compute the geometry somewhere else.
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass, replace
from typing import Optional

from . import config
from .evaluator import Evaluator, ExpressionSyntaxError, trial_evaluate
from .geometry import Geometry, build_geometry_from_samples
from .sampling import Configuration, Mode, coerce_mode, coerce_resolution, sample_function

logger = logging.getLogger(__name__)


def build_geometry(configuration: Configuration, *, evaluator: Optional[Evaluator] = None) -> Geometry:
    started = time.perf_counter()
    sample_set = sample_function(
        configuration.expression,
        configuration.mode,
        configuration.resolution,
        evaluator=evaluator,
    )
    geometry = build_geometry_from_samples(sample_set)
    logger.debug(
        "Built %s geometry for %r at resolution %d (%d vertices) in %.1f ms",
        geometry.mode.value,
        configuration.expression,
        geometry.resolution,
        geometry.vertex_count,
        (time.perf_counter() - started) * 1000,
    )
    return geometry


@functools.lru_cache(maxsize=config.GEOMETRY_CACHE_SIZE)
def cached_geometry(configuration: Configuration) -> Geometry:
    return build_geometry(configuration)


@dataclass(frozen=True)
class ExplorerState:
    configuration: Configuration
    geometry: Geometry


def _state_for(configuration: Configuration, evaluator: Optional[Evaluator]) -> ExplorerState:
    if evaluator is None:
        geometry = cached_geometry(configuration)
    else:
        geometry = build_geometry(configuration, evaluator=evaluator)
    return ExplorerState(configuration, geometry)


def default_configuration(mode=config.DEFAULT_MODE) -> Configuration:
    mode = coerce_mode(mode)
    return Configuration.create(config.DEFAULT_EQUATIONS[mode.value], config.DEFAULT_RESOLUTION, mode)


def committed(configuration: Configuration, text: str, *, evaluator: Optional[Evaluator] = None) -> Configuration:
    """Return ``configuration`` with ``text`` as its expression once it passes a trial evaluation."""
    expression = (text or "").strip()
    mode = configuration.mode
    if not expression:
        raise ExpressionSyntaxError("Expression is empty", text)
    try:
        trial_evaluate(expression, mode, evaluator=evaluator)
    except ExpressionSyntaxError:
        logger.info("Rejected %s expression %r", mode.value, expression)
        raise
    logger.info("Committed %s expression %r", mode.value, expression)
    return replace(configuration, expression=expression)


def with_resolution(configuration: Configuration, value) -> Configuration:
    resolution = coerce_resolution(value, floor=config.RESOLUTION_MIN, ceiling=config.RESOLUTION_MAX)
    if resolution == configuration.resolution:
        return configuration
    return replace(configuration, resolution=resolution)


def with_mode(configuration: Configuration, mode) -> Configuration:
    """Switch mode; the expression resets to the new mode's default equation."""
    mode = coerce_mode(mode)
    if mode is configuration.mode:
        return configuration
    return replace(configuration, mode=mode, expression=config.DEFAULT_EQUATIONS[mode.value])


def with_preset(configuration: Configuration, expression: str) -> Configuration:
    # presets are known-good and skip the trial evaluation
    return replace(configuration, expression=expression.strip())


def initial_state(mode=config.DEFAULT_MODE, *, evaluator: Optional[Evaluator] = None) -> ExplorerState:
    return _state_for(default_configuration(mode), evaluator)


def commit_expression(state: ExplorerState, text: str, *, evaluator: Optional[Evaluator] = None) -> ExplorerState:
    return _state_for(committed(state.configuration, text, evaluator=evaluator), evaluator)


def _advance(state: ExplorerState, configuration: Configuration, evaluator: Optional[Evaluator]) -> ExplorerState:
    if configuration == state.configuration:
        return state
    return _state_for(configuration, evaluator)


def set_resolution(state: ExplorerState, value, *, evaluator: Optional[Evaluator] = None) -> ExplorerState:
    return _advance(state, with_resolution(state.configuration, value), evaluator)


def set_mode(state: ExplorerState, mode, *, evaluator: Optional[Evaluator] = None) -> ExplorerState:
    return _advance(state, with_mode(state.configuration, mode), evaluator)


def toggle_mode(state: ExplorerState, *, evaluator: Optional[Evaluator] = None) -> ExplorerState:
    other = Mode.SURFACE if state.configuration.mode is Mode.CURVE else Mode.CURVE
    return set_mode(state, other, evaluator=evaluator)


def select_preset(state: ExplorerState, expression: str, *, evaluator: Optional[Evaluator] = None) -> ExplorerState:
    return _state_for(with_preset(state.configuration, expression), evaluator)
