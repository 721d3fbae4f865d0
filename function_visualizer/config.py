from __future__ import annotations

import math
import os
from pathlib import Path

# Paths and filenames
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "function_visualizer" / "data"

# Sampling domain
DOMAIN_HALF_WIDTH = 6.0
VALUE_MIN = -10.0
VALUE_MAX = 10.0

# Resolution bounds (UI) and pipeline floor
RESOLUTION_MIN = 30
RESOLUTION_MAX = 150
RESOLUTION_FLOOR = 2
DEFAULT_RESOLUTION = 80

# Modes and their default equations
MODE_CURVE = "curve"
MODE_SURFACE = "surface"
DEFAULT_MODE = MODE_SURFACE
DEFAULT_EQUATIONS = {
    MODE_CURVE: "sin(x)",
    MODE_SURFACE: "sin(sqrt(x*x + y*y))",
}

# Constants bound alongside the free variables on every evaluation
EXPRESSION_CONSTANTS = {"pi": math.pi, "e": math.e}

# Commit-time trial bindings
TRIAL_BINDINGS = {
    MODE_CURVE: {"x": 1.0},
    MODE_SURFACE: {"x": 1.0, "y": 1.0},
}

# Evaluator compile cache
EVALUATOR_CACHE_SIZE = 128
GEOMETRY_CACHE_SIZE = 32

# Background recompute: how long a render request waits inline before the
# graph falls back to polling, and how many sessions keep a live task
RENDER_WAIT_SECONDS = 0.25
POLL_INTERVAL_MS = 300
SESSION_TASK_LIMIT = 64

# Preset equations (name, expression)
PRESETS = {
    MODE_CURVE: [
        ("Sine Wave", "sin(x)"),
        ("Parabola", "x^2"),
        ("Exponential", "exp(x/2)"),
        ("Logarithm", "log(abs(x) + 1)"),
        ("Absolute Value", "abs(x)"),
        ("Sigmoid", "1 / (1 + exp(-x))"),
        ("Gaussian", "exp(-x^2)"),
        ("Step Function", "x > 0 ? 1 : 0"),
    ],
    MODE_SURFACE: [
        ("Sine Wave", "sin(sqrt(x*x + y*y))"),
        ("Ripple Effect", "cos(x) * cos(y)"),
        ("Saddle Point", "x*x - y*y"),
        ("Paraboloid", "(x*x + y*y) / 4"),
        ("Wave Interference", "sin(x) * cos(y)"),
        ("Gaussian Bell", "2 * exp(-(x*x + y*y)/8)"),
        ("Hyperbolic", "x*y / 4"),
        ("Spiral", "sin(sqrt(x*x + y*y) + atan2(y, x))"),
    ],
}

# Curve gradient (fixed-range normalization)
CURVE_COLOR_BASE = 0.2
CURVE_COLOR_SPAN = 0.8
CURVE_COLOR_BLUE = 0.2

# Surface gradient bands; the 0.33 / 0.33 / 0.34 split is kept as-is
SURFACE_BAND_LOW = 0.33
SURFACE_BAND_HIGH = 0.66
SURFACE_BAND_WIDTHS = (0.33, 0.33, 0.34)
FLAT_NORMALIZED_HEIGHT = 0.5

# Figure palette and styles
AXIS_HALF_LENGTH = 8.0
AXIS_COLORS = {"x": "#e74c3c", "y": "#27ae60", "z": "#3498db"}
CURVE_LINE_WIDTH = 3
AXIS_LINE_WIDTH = 2
SURFACE_OPACITY = 0.95
SURFACE_LIGHTING = {"ambient": 0.6, "diffuse": 0.8, "specular": 0.1, "roughness": 0.3}
CURVE_CAMERA = {"eye": {"x": 0.0, "y": 0.0, "z": 2.0}, "up": {"x": 0.0, "y": 1.0, "z": 0.0}}
SURFACE_CAMERA = {"eye": {"x": 1.4, "y": 1.4, "z": 1.1}, "up": {"x": 0.0, "y": 0.0, "z": 1.0}}
FIGURE_HEIGHT = 640

# Logging and event trail
LOG_LEVEL = os.environ.get("FUNCTION_VISUALIZER_LOG_LEVEL", "INFO").upper()
EVENT_LOG_ENABLED = os.environ.get("FUNCTION_VISUALIZER_EVENT_LOG", "0") == "1"
SCHEMA_VERSION = 1
APP_MODE = "dash"

# CSV column order for event export
SCHEMA_COLUMNS = [
    "schema_version",
    "session_id",
    "seq",
    "t_server_iso",
    "elapsed_time_ms",
    "event",
    "source",
    "mode",
    "expression",
    "resolution",
    "detail",
    "app_mode",
]

# UI copy
SYNTAX_ERROR_MESSAGE = "Invalid equation syntax"
COMPUTING_MESSAGE = "Computing…"
COMPUTE_FAILED_MESSAGE = "Could not compute this function"
