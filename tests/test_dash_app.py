"""Tests for the Dash helpers and callbacks, called outside a running server."""

import threading
from contextvars import copy_context

import dash
import pytest
from dash._callback_context import context_value
from dash._utils import AttributeDict

import dash_app
from function_visualizer import config
from function_visualizer.logger import event_record, log_event
from function_visualizer.pipeline import build_geometry
from function_visualizer.sampling import Configuration
from function_visualizer.tasks import GeometryTask

CURVE = Configuration.create("sin(x)", 30, "curve").to_dict()


def trigger(prop_id, value=1, *, input_value="sin(x)", config_data=CURVE, mode="curve", resolution=30, ui=None):
    """Run the configuration callback as if ``prop_id`` had fired."""

    def call():
        context_value.set(AttributeDict(triggered_inputs=[{"prop_id": prop_id, "value": value}]))
        return dash_app._update_configuration(
            1, None, 0, mode, resolution, [0] * 8, input_value, config_data, {"session_id": "c0ffee"}, ui
        )

    return copy_context().run(call)


def test_uirevision_nonce():
    assert dash_app._resolve_uirevision_value(None) == "visualizer-0"
    bumped = dash_app._bump_uirevision_store({"uirevision_nonce": "4"})
    assert dash_app._resolve_uirevision_value(bumped) == "visualizer-5"
    assert dash_app._bump_uirevision_store({"uirevision_nonce": "junk"})["uirevision_nonce"] == "1"


def test_session_id_fallback():
    assert dash_app._get_session_id(None) == "unknown"
    assert dash_app._get_session_id({"session_id": "s1"}) == "s1"


@pytest.mark.parametrize("requested, expected", [(100000, 150), (1, 30), ("junk", 80)])
def test_store_resolution_is_kept_in_slider_range(requested, expected):
    data = {"expression": "x*y", "resolution": requested, "mode": "surface"}
    assert dash_app._configuration_from_store(data).resolution == expected


def test_mode_panels():
    presets, _, prefix, placeholder, label, subtitle = dash_app._sync_mode_panels("surface")
    assert len(presets) == 8
    assert prefix == "z ="
    assert placeholder == "sin(sqrt(x*x + y*y))"
    assert label == "Surface Resolution"
    assert "3D" in subtitle


class TestUpdateConfiguration:
    """Input handling that ends in a new stored configuration, or none."""

    def test_rejected_commit_shows_error_and_keeps_store(self):
        store, text, message, style, ui = trigger("btn-render.n_clicks", input_value="sin(x")
        assert store is dash.no_update
        assert text is dash.no_update
        assert message == config.SYNTAX_ERROR_MESSAGE
        assert style == dash_app._ERROR_STYLE
        assert ui is dash.no_update

    def test_accepted_commit_updates_store(self):
        store, _, message, style, _ = trigger("input-equation.n_submit", input_value=" x^2 ")
        assert store["expression"] == "x^2"
        assert store["mode"] == "curve"
        assert message is None
        assert style == {"display": "none"}

    def test_reset_bumps_camera_revision(self):
        store, _, _, _, ui = trigger("btn-reset.n_clicks", input_value="x", ui={"uirevision_nonce": "3"})
        assert store["expression"] == "x"
        assert ui["uirevision_nonce"] == "4"

    def test_preset_replaces_expression(self):
        store, text, *_ = trigger('{"index":2,"type":"preset"}.n_clicks')
        assert text == config.PRESETS["curve"][2][1]
        assert store["expression"] == text

    def test_mode_switch_resets_equation(self):
        store, text, *_ = trigger("radio-mode.value", "surface", mode="surface")
        assert store["mode"] == "surface"
        assert text == config.DEFAULT_EQUATIONS["surface"]

    def test_slider_value_is_clamped(self):
        store, *_ = trigger("slider-resolution.value", 100000, resolution=100000)
        assert store["resolution"] == config.RESOLUTION_MAX


class TestRenderFigure:
    """Geometry is computed on the session task; the old figure stays while it runs."""

    def test_renders_stored_configuration(self, monkeypatch):
        monkeypatch.setattr(config, "RENDER_WAIT_SECONDS", 10)
        data = Configuration.create("x^2", 30, "curve").to_dict()
        figure, caption, status, poll_disabled = dash_app._render_figure(
            data, {"uirevision_nonce": "2"}, None, {"session_id": "a1"}
        )
        assert caption == "y = x^2"
        assert figure.layout.uirevision == "visualizer-2-curve"
        assert len(figure.data[0].x) == 30
        assert status is None
        assert poll_disabled is True

    def test_previous_figure_stays_while_computing(self, monkeypatch):
        release = threading.Event()

        def build(configuration):
            if configuration.expression == "x^3":
                release.wait(5)
            return build_geometry(configuration)

        task = GeometryTask(build=build)
        monkeypatch.setitem(dash_app._SESSION_TASKS, "b2", task)
        session = {"session_id": "b2"}

        monkeypatch.setattr(config, "RENDER_WAIT_SECONDS", 10)
        first = Configuration.create("x^2", 30, "curve").to_dict()
        _, caption, _, _ = dash_app._render_figure(first, None, None, session)
        assert caption == "y = x^2"

        monkeypatch.setattr(config, "RENDER_WAIT_SECONDS", 0)
        slow = Configuration.create("x^3", 30, "curve").to_dict()
        figure, caption, status, poll_disabled = dash_app._render_figure(slow, None, None, session)
        assert figure is dash.no_update
        assert caption is dash.no_update
        assert status == config.COMPUTING_MESSAGE
        assert poll_disabled is False
        assert task.configuration.expression == "x^2"

        release.set()
        assert task.wait(5)
        figure, caption, status, poll_disabled = dash_app._render_figure(slow, None, 1, session)
        assert caption == "y = x^3"
        assert poll_disabled is True

    def test_session_tasks_are_bounded(self, monkeypatch):
        monkeypatch.setattr(config, "SESSION_TASK_LIMIT", 2)
        monkeypatch.setattr(dash_app, "_SESSION_TASKS", type(dash_app._SESSION_TASKS)())
        first = dash_app._geometry_task("01")
        dash_app._geometry_task("02")
        assert dash_app._geometry_task("01") is first
        dash_app._geometry_task("03")
        assert list(dash_app._SESSION_TASKS) == ["01", "03"]


class TestDownloadCsv:
    """Export of the session event trail."""

    def test_exports_session_records(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config, "DATA_DIR", tmp_path)
        monkeypatch.setattr(config, "EVENT_LOG_ENABLED", True)
        log_event("abc123", event_record("abc123", event="commit", mode="curve", expression="x^2"))
        download = dash_app._handle_download_csv(1, {"session_id": "abc123"})
        assert download["filename"] == "session_abc123.csv"
        header, row = download["content"].strip().splitlines()
        assert header.split(",") == config.SCHEMA_COLUMNS
        assert "x^2" in row

    def test_nothing_to_export(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config, "DATA_DIR", tmp_path)
        assert dash_app._handle_download_csv(1, {"session_id": "abc123"}) is dash.no_update
        assert dash_app._handle_download_csv(0, {"session_id": "abc123"}) is dash.no_update
