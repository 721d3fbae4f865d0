from __future__ import annotations

from typing import List

import plotly.graph_objects as go

from . import config
from .colors import to_css
from .geometry import Geometry
from .sampling import Mode


def curve_trace(geometry: Geometry) -> go.Scatter3d:
    xs, ys, zs = geometry.positions.T
    return go.Scatter3d(
        x=xs,
        y=ys,
        z=zs,
        mode="lines",
        name="y = f(x)",
        line=dict(color=[to_css(c) for c in geometry.colors], width=config.CURVE_LINE_WIDTH),
        hovertemplate="x=%{x:.2f}<br>y=%{y:.2f}<extra></extra>",
        showlegend=False,
    )


def surface_trace(geometry: Geometry) -> go.Mesh3d:
    xs, ys, zs = geometry.positions.T
    i, j, k = geometry.indices.T
    return go.Mesh3d(
        x=xs,
        y=ys,
        z=zs,
        i=i,
        j=j,
        k=k,
        vertexcolor=[to_css(c) for c in geometry.colors],
        opacity=config.SURFACE_OPACITY,
        flatshading=False,
        lighting=dict(config.SURFACE_LIGHTING),
        name="z = f(x, y)",
        hovertemplate="x=%{x:.2f}<br>y=%{y:.2f}<br>z=%{z:.2f}<extra></extra>",
        showlegend=False,
    )


def axis_traces(mode: Mode) -> List[go.Scatter3d]:
    length = config.AXIS_HALF_LENGTH
    axes = {
        "x": ([-length, length], [0, 0], [0, 0]),
        "y": ([0, 0], [-length, length], [0, 0]),
        "z": ([0, 0], [0, 0], [-length, length]),
    }
    if mode is Mode.CURVE:
        del axes["z"]
    return [
        go.Scatter3d(
            x=xs,
            y=ys,
            z=zs,
            mode="lines",
            name=f"{name.upper()}-axis",
            line=dict(color=config.AXIS_COLORS[name], width=config.AXIS_LINE_WIDTH),
            hoverinfo="skip",
            showlegend=False,
        )
        for name, (xs, ys, zs) in axes.items()
    ]


def build_figure(geometry: Geometry, *, uirevision: str = "function-visualizer") -> go.Figure:
    main = curve_trace(geometry) if geometry.mode is Mode.CURVE else surface_trace(geometry)
    fig = go.Figure(data=[main, *axis_traces(geometry.mode)])
    axis_range = [-config.AXIS_HALF_LENGTH, config.AXIS_HALF_LENGTH]
    value_range = [config.VALUE_MIN, config.VALUE_MAX]
    camera = config.CURVE_CAMERA if geometry.mode is Mode.CURVE else config.SURFACE_CAMERA
    fig.update_layout(
        height=config.FIGURE_HEIGHT,
        margin=dict(l=0, r=0, t=24, b=0),
        showlegend=False,
        uirevision=f"{uirevision}-{geometry.mode.value}",
        scene=dict(
            xaxis=dict(title="x", range=axis_range, showgrid=True, zeroline=False),
            yaxis=dict(
                title="y",
                range=value_range if geometry.mode is Mode.CURVE else axis_range,
                showgrid=True,
                zeroline=False,
            ),
            zaxis=dict(title="z", range=value_range, showgrid=True, zeroline=False),
            aspectmode="cube",
            camera=dict(camera),
        ),
    )
    return fig
