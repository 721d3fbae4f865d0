"""Dash front end for the Function Visualizer."""

from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import dash
from dash import ALL, Input, Output, State, dcc, html

from function_visualizer import config
from function_visualizer.evaluator import ExpressionSyntaxError
from function_visualizer.graph_engine import build_figure
from function_visualizer.logger import (
    build_csv_content,
    event_record,
    log_event,
    read_jsonl,
    session_log_path,
    setup_logging,
)
from function_visualizer.pipeline import (
    cached_geometry,
    committed,
    default_configuration,
    with_mode,
    with_preset,
    with_resolution,
)
from function_visualizer.sampling import Configuration, Mode, coerce_mode
from function_visualizer.tasks import GeometryTask, TaskStatus

_UI_BASE_TOKEN = "visualizer-"
_DEFAULT_UI_NONCE = "0"

_ERROR_STYLE: Dict[str, Any] = {
    "padding": "12px",
    "backgroundColor": "#fef2f2",
    "border": "1px solid #fecaca",
    "borderRadius": "8px",
    "color": "#b91c1c",
    "fontSize": "14px",
    "marginTop": "8px",
}
_PANEL_STYLE: Dict[str, Any] = {
    "backgroundColor": "#f9fafb",
    "border": "1px solid #e5e7eb",
    "borderRadius": "8px",
    "padding": "16px",
}
_PRESET_STYLE: Dict[str, Any] = {
    "textAlign": "left",
    "padding": "12px",
    "backgroundColor": "#f9fafb",
    "border": "1px solid #e5e7eb",
    "borderRadius": "8px",
    "cursor": "pointer",
    "width": "100%",
    "marginBottom": "8px",
}
_CAPTION_STYLE: Dict[str, Any] = {
    "position": "absolute",
    "top": "16px",
    "left": "16px",
    "zIndex": 10,
    "backgroundColor": "rgba(255,255,255,0.95)",
    "border": "1px solid #e5e7eb",
    "borderRadius": "8px",
    "padding": "12px 16px",
}


def _get_session_id(session_data: Optional[Dict[str, Any]]) -> str:
    if isinstance(session_data, dict):
        raw = session_data.get("session_id")
        if isinstance(raw, str) and raw:
            return raw
    return "unknown"


def _resolve_uirevision_value(ui_store: Optional[Dict[str, Any]]) -> str:
    nonce = _DEFAULT_UI_NONCE
    if isinstance(ui_store, dict):
        raw = ui_store.get("uirevision_nonce")
        if raw is not None:
            nonce = str(raw)
    return f"{_UI_BASE_TOKEN}{nonce}"


def _bump_uirevision_store(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    base = dict(data) if isinstance(data, dict) else {}
    try:
        nonce_int = int(base.get("uirevision_nonce", _DEFAULT_UI_NONCE))
    except (TypeError, ValueError):
        nonce_int = int(_DEFAULT_UI_NONCE)
    base["uirevision_nonce"] = str(nonce_int + 1)
    return base


def _configuration_from_store(config_data: Optional[Dict[str, Any]]) -> Configuration:
    configuration = Configuration.from_dict(config_data)
    # the store is client data; keep it inside the slider's range
    return with_resolution(configuration, configuration.resolution)


_SESSION_TASKS: "OrderedDict[str, GeometryTask]" = OrderedDict()
_SESSION_TASKS_LOCK = threading.Lock()


def _geometry_task(session_id: str) -> GeometryTask:
    with _SESSION_TASKS_LOCK:
        task = _SESSION_TASKS.get(session_id)
        if task is None:
            task = GeometryTask(build=cached_geometry)
            _SESSION_TASKS[session_id] = task
            while len(_SESSION_TASKS) > config.SESSION_TASK_LIMIT:
                _SESSION_TASKS.popitem(last=False)
        else:
            _SESSION_TASKS.move_to_end(session_id)
        return task


def _function_prefix(mode: Mode) -> str:
    return "y =" if mode is Mode.CURVE else "z ="


def _preset_buttons(mode: Mode) -> List[html.Button]:
    return [
        html.Button(
            [
                html.Div(name, style={"fontWeight": 600, "fontSize": "14px"}),
                html.Div(
                    expression,
                    style={"fontFamily": "monospace", "fontSize": "12px", "color": "#6b7280"},
                ),
            ],
            id={"type": "preset", "index": index},
            n_clicks=0,
            type="button",
            style=_PRESET_STYLE,
            title=f"Plot {expression}",
        )
        for index, (name, expression) in enumerate(config.PRESETS[mode.value])
    ]


def _reference_panel(mode: Mode) -> html.Div:
    rows = [
        ("Basic", "+, -, *, /, ^"),
        ("Trigonometric", "sin, cos, tan, asin, acos, atan, atan2"),
        ("Exponential", "exp, log, log10, sqrt, abs"),
        ("Constants", "pi, e"),
        ("Variables", "x" if mode is Mode.CURVE else "x, y"),
        ("Conditionals", "x > 0 ? 1 : 0"),
        ("Implicit products", "2x, 2(x + 1)"),
    ]
    return html.Div(
        [
            html.H3("Available Functions", style={"fontSize": "14px", "marginTop": 0}),
            *[
                html.Div([html.Strong(f"{label}: "), html.Span(value)], style={"fontSize": "12px"})
                for label, value in rows
            ],
        ],
        style=_PANEL_STYLE,
    )


def _record(session_data, configuration: Configuration, event: str, source: str, detail: Optional[str] = None) -> None:
    session_id = _get_session_id(session_data)
    record = event_record(
        session_id,
        event=event,
        mode=configuration.mode.value,
        expression=configuration.expression,
        resolution=configuration.resolution,
        source=source,
        detail=detail,
    )
    log_event(session_id, record)


app = dash.Dash(__name__, title="Function Visualizer")
server = app.server


def _serve_layout() -> html.Div:
    configuration = default_configuration()
    mode = configuration.mode
    return html.Div(
        [
            dcc.Store(id="store-session", data={"session_id": uuid.uuid4().hex}),
            dcc.Store(id="store-config", data=configuration.to_dict()),
            dcc.Store(id="store-ui", data={"uirevision_nonce": _DEFAULT_UI_NONCE}),
            dcc.Interval(id="poll-geometry", interval=config.POLL_INTERVAL_MS, disabled=True),
            html.Header(
                [
                    html.H1("Mathematical Function Visualizer", style={"fontSize": "20px", "margin": 0}),
                    html.P(id="header-subtitle", style={"color": "#6b7280", "margin": 0}),
                ],
                style={"padding": "16px 24px", "borderBottom": "1px solid #e5e7eb"},
            ),
            html.Div(
                [
                    html.Aside(
                        [
                            html.Label("Visualization Mode", htmlFor="radio-mode", style={"fontWeight": 600}),
                            dcc.RadioItems(
                                id="radio-mode",
                                options=[
                                    {"label": " 2D curve", "value": Mode.CURVE.value},
                                    {"label": " 3D surface", "value": Mode.SURFACE.value},
                                ],
                                value=mode.value,
                                inline=True,
                                style={"margin": "8px 0 24px"},
                            ),
                            html.Label("Function Definition", htmlFor="input-equation", style={"fontWeight": 600}),
                            html.Div(
                                [
                                    html.Span(
                                        _function_prefix(mode),
                                        id="equation-prefix",
                                        style={"fontFamily": "monospace", "marginRight": "8px"},
                                    ),
                                    dcc.Input(
                                        id="input-equation",
                                        type="text",
                                        value=configuration.expression,
                                        debounce=False,
                                        placeholder=config.DEFAULT_EQUATIONS[mode.value],
                                        style={"flex": "1", "fontFamily": "monospace", "height": "36px"},
                                    ),
                                ],
                                style={"display": "flex", "alignItems": "center", "marginTop": "8px"},
                            ),
                            html.Div(
                                [
                                    html.Button("Render", id="btn-render", n_clicks=0, type="button", style={"flex": "1"}),
                                    html.Button(
                                        "Reset",
                                        id="btn-reset",
                                        n_clicks=0,
                                        type="button",
                                        title="Reset View",
                                        style={"marginLeft": "8px"},
                                    ),
                                ],
                                style={"display": "flex", "marginTop": "8px", "height": "36px"},
                            ),
                            html.Div(id="error-message", style={"display": "none"}),
                            html.Div(
                                [
                                    html.Label(id="resolution-label", htmlFor="slider-resolution", style={"fontWeight": 600}),
                                    dcc.Slider(
                                        id="slider-resolution",
                                        min=config.RESOLUTION_MIN,
                                        max=config.RESOLUTION_MAX,
                                        step=1,
                                        value=configuration.resolution,
                                        marks={config.RESOLUTION_MIN: "Fast", config.RESOLUTION_MAX: "Detailed"},
                                        tooltip={"placement": "bottom", "always_visible": False},
                                    ),
                                ],
                                style={"marginTop": "24px"},
                            ),
                            html.Label("Example Functions", style={"fontWeight": 600, "display": "block", "marginTop": "24px"}),
                            html.Div(_preset_buttons(mode), id="preset-list", style={"marginTop": "8px"}),
                            html.Div(_reference_panel(mode), id="reference-panel", style={"marginTop": "24px"}),
                            html.Div(
                                [
                                    html.Button("Download CSV", id="btn-download-csv", n_clicks=0, type="button"),
                                    dcc.Download(id="download-csv"),
                                ],
                                style={"marginTop": "16px"} if config.EVENT_LOG_ENABLED else {"display": "none"},
                            ),
                        ],
                        style={
                            "width": "320px",
                            "padding": "24px",
                            "borderRight": "1px solid #e5e7eb",
                            "overflowY": "auto",
                        },
                    ),
                    html.Main(
                        [
                            html.Div(
                                [
                                    html.Div(
                                        "CURRENT FUNCTION",
                                        style={"fontSize": "11px", "color": "#6b7280", "letterSpacing": "0.05em"},
                                    ),
                                    html.Div(id="current-function", style={"fontFamily": "monospace", "marginTop": "4px"}),
                                    html.Div(id="compute-status", style={"fontSize": "12px", "color": "#6b7280"}),
                                ],
                                style=_CAPTION_STYLE,
                            ),
                            dcc.Graph(id="function-graph", config={"displaylogo": False}),
                        ],
                        style={"flex": "1", "position": "relative", "backgroundColor": "#f3f4f6"},
                    ),
                ],
                style={"display": "flex", "minHeight": "calc(100vh - 81px)"},
            ),
        ],
        style={"fontFamily": "system-ui, sans-serif", "color": "#111827"},
    )


app.layout = _serve_layout


@app.callback(
    Output("store-config", "data"),
    Output("input-equation", "value"),
    Output("error-message", "children"),
    Output("error-message", "style"),
    Output("store-ui", "data"),
    Input("btn-render", "n_clicks"),
    Input("input-equation", "n_submit"),
    Input("btn-reset", "n_clicks"),
    Input("radio-mode", "value"),
    Input("slider-resolution", "value"),
    Input({"type": "preset", "index": ALL}, "n_clicks"),
    State("input-equation", "value"),
    State("store-config", "data"),
    State("store-session", "data"),
    State("store-ui", "data"),
    prevent_initial_call=True,
)
def _update_configuration(
    render_clicks,
    submit_count,
    reset_clicks,
    mode_value,
    resolution_value,
    preset_clicks,
    input_value,
    config_data,
    session_data,
    ui_store_data,
):
    ctx = dash.callback_context
    if not ctx.triggered:
        return dash.no_update, dash.no_update, dash.no_update, dash.no_update, dash.no_update
    trigger = ctx.triggered_id
    configuration = _configuration_from_store(config_data)
    hidden = {"display": "none"}
    ui_update = dash.no_update

    if isinstance(trigger, dict) and trigger.get("type") == "preset":
        if not ctx.triggered[0].get("value"):
            return dash.no_update, dash.no_update, dash.no_update, dash.no_update, dash.no_update
        presets = config.PRESETS[configuration.mode.value]
        _, expression = presets[int(trigger["index"])]
        configuration = with_preset(configuration, expression)
        _record(session_data, configuration, "preset", "button")
        return configuration.to_dict(), expression, None, hidden, ui_update

    if trigger == "radio-mode":
        configuration = with_mode(configuration, coerce_mode(mode_value))
        _record(session_data, configuration, "mode", "radio")
        return configuration.to_dict(), configuration.expression, None, hidden, ui_update

    if trigger == "slider-resolution":
        configuration = with_resolution(configuration, resolution_value)
        _record(session_data, configuration, "resolution", "slider")
        return configuration.to_dict(), dash.no_update, dash.no_update, dash.no_update, ui_update

    if trigger == "btn-reset":
        ui_update = _bump_uirevision_store(ui_store_data)

    try:
        configuration = committed(configuration, input_value or "")
    except ExpressionSyntaxError as exc:
        _record(session_data, configuration, "commit_rejected", "input", detail=str(exc))
        return dash.no_update, dash.no_update, config.SYNTAX_ERROR_MESSAGE, _ERROR_STYLE, ui_update
    _record(session_data, configuration, "commit", "input")
    return configuration.to_dict(), dash.no_update, None, hidden, ui_update


@app.callback(
    Output("function-graph", "figure"),
    Output("current-function", "children"),
    Output("compute-status", "children"),
    Output("poll-geometry", "disabled"),
    Input("store-config", "data"),
    Input("store-ui", "data"),
    Input("poll-geometry", "n_intervals"),
    State("store-session", "data"),
)
def _render_figure(config_data, ui_store_data, n_intervals, session_data):
    """Draw the stored configuration, keeping the previous figure up while it computes.

    Geometry is built on the session's :class:`GeometryTask`. A request waits
    briefly for it; anything slower is picked up by the polling interval, and
    a newer configuration supersedes whatever was still computing.
    """
    configuration = _configuration_from_store(config_data)
    task = _geometry_task(_get_session_id(session_data))
    if task.requested != configuration:
        task.submit(configuration)
    task.wait(config.RENDER_WAIT_SECONDS)

    ready, geometry = task.result
    if ready == configuration:
        figure = build_figure(geometry, uirevision=_resolve_uirevision_value(ui_store_data))
        caption = f"{_function_prefix(configuration.mode)} {configuration.expression}"
        return figure, caption, None, True
    if task.status is TaskStatus.COMPUTING:
        return dash.no_update, dash.no_update, config.COMPUTING_MESSAGE, False
    return dash.no_update, dash.no_update, config.COMPUTE_FAILED_MESSAGE, True


@app.callback(
    Output("preset-list", "children"),
    Output("reference-panel", "children"),
    Output("equation-prefix", "children"),
    Output("input-equation", "placeholder"),
    Output("resolution-label", "children"),
    Output("header-subtitle", "children"),
    Input("radio-mode", "value"),
)
def _sync_mode_panels(mode_value):
    mode = coerce_mode(mode_value)
    noun = "Curve" if mode is Mode.CURVE else "Surface"
    subtitle = "Interactive 2D curve plotting" if mode is Mode.CURVE else "Interactive 3D surface plotting"
    return (
        _preset_buttons(mode),
        _reference_panel(mode),
        _function_prefix(mode),
        config.DEFAULT_EQUATIONS[mode.value],
        f"{noun} Resolution",
        subtitle,
    )


@app.callback(
    Output("download-csv", "data"),
    Input("btn-download-csv", "n_clicks"),
    State("store-session", "data"),
    prevent_initial_call=True,
)
def _handle_download_csv(n_clicks, session_data):
    if not n_clicks:
        return dash.no_update
    session_id = _get_session_id(session_data)
    path = session_log_path(session_id)
    csv_content = build_csv_content(read_jsonl(path))
    if not csv_content:
        return dash.no_update
    log_event(session_id, event_record(session_id, event="export", source="button", detail="csv"))
    return dcc.send_string(csv_content, filename=path.with_suffix(".csv").name)


if __name__ == "__main__":
    setup_logging()
    app.run(debug=True)
