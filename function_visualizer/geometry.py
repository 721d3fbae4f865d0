from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from . import colors
from .sampling import Mode, Sample, SampleSet


class Topology(str, Enum):
    LINE_STRIP = "line_strip"
    TRIANGLES = "triangles"


@dataclass(frozen=True)
class Vertex:
    position: Tuple[float, float, float]
    color: Tuple[float, float, float]


def _frozen(array: npt.ArrayLike, dtype=np.float64) -> np.ndarray:
    out = np.array(array, dtype=dtype)
    out.setflags(write=False)
    return out


@dataclass(frozen=True, eq=False)
class Geometry:
    """Immutable vertex buffer produced by one pipeline run.

    ``positions`` and ``colors`` are (n, 3) arrays in vertex order. For a
    surface, ``indices`` holds (m, 3) counter-clockwise triangles over the
    row-major grid and ``normals`` the smoothed per-vertex normals.
    """

    mode: Mode
    resolution: int
    topology: Topology
    positions: np.ndarray
    colors: np.ndarray
    samples: Tuple[Sample, ...]
    z_min: float
    z_max: float
    normals: Optional[np.ndarray] = None
    indices: Optional[np.ndarray] = None

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def vertices(self) -> Tuple[Vertex, ...]:
        return tuple(
            Vertex(tuple(p), tuple(c))
            for p, c in zip(self.positions.tolist(), self.colors.tolist())
        )

    def vertex_buffer(self, dtype=np.float32) -> np.ndarray:
        """Interleaved ``[x, y, z, r, g, b]`` rows."""
        return np.hstack([self.positions, self.colors]).astype(dtype)

    def same_as(self, other: "Geometry") -> bool:
        if self.mode is not other.mode or self.resolution != other.resolution:
            return False
        pairs = [(self.positions, other.positions), (self.colors, other.colors)]
        if self.topology is Topology.TRIANGLES:
            pairs += [(self.normals, other.normals), (self.indices, other.indices)]
        return all(np.array_equal(a, b) for a, b in pairs)


def grid_triangles(resolution: int) -> np.ndarray:
    """Two triangles per cell, wound counter-clockwise seen from +z."""
    n = resolution
    cols, rows = np.meshgrid(np.arange(n - 1), np.arange(n - 1))
    a = (rows * n + cols).ravel()
    b = a + 1
    c = a + n + 1
    d = a + n
    lower = np.stack([a, b, c], axis=1)
    upper = np.stack([a, c, d], axis=1)
    return np.concatenate([lower, upper]).astype(np.int64)


def vertex_normals(positions: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """Area-weighted average of adjacent face normals, normalized."""
    p0 = positions[triangles[:, 0]]
    p1 = positions[triangles[:, 1]]
    p2 = positions[triangles[:, 2]]
    face_normals = np.cross(p1 - p0, p2 - p0)
    normals = np.zeros_like(positions)
    for corner in range(3):
        np.add.at(normals, triangles[:, corner], face_normals)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    np.divide(normals, lengths, out=normals, where=lengths > 0)
    return normals


def build_curve(sample_set: SampleSet, vertex_colors: Sequence[Sequence[float]]) -> Geometry:
    positions = [(s.coordinate[0], s.clamped, 0.0) for s in sample_set.samples]
    return Geometry(
        mode=Mode.CURVE,
        resolution=sample_set.resolution,
        topology=Topology.LINE_STRIP,
        positions=_frozen(positions),
        colors=_frozen(vertex_colors),
        samples=sample_set.samples,
        z_min=sample_set.z_min,
        z_max=sample_set.z_max,
    )


def build_surface(sample_set: SampleSet, vertex_colors: Sequence[Sequence[float]]) -> Geometry:
    positions = np.array(
        [(s.coordinate[0], s.coordinate[1], s.clamped) for s in sample_set.samples],
        dtype=np.float64,
    )
    triangles = grid_triangles(sample_set.resolution)
    return Geometry(
        mode=Mode.SURFACE,
        resolution=sample_set.resolution,
        topology=Topology.TRIANGLES,
        positions=_frozen(positions),
        colors=_frozen(vertex_colors),
        samples=sample_set.samples,
        z_min=sample_set.z_min,
        z_max=sample_set.z_max,
        normals=_frozen(vertex_normals(positions, triangles)),
        indices=_frozen(triangles, dtype=np.int64),
    )


def build_geometry_from_samples(sample_set: SampleSet) -> Geometry:
    vertex_colors = colors.sample_colors(sample_set)
    if sample_set.mode is Mode.CURVE:
        return build_curve(sample_set, vertex_colors)
    return build_surface(sample_set, vertex_colors)
