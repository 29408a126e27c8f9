"""
Marching cubes isosurface extraction on periodic energy grids.

Every cell of the grid is visited, including the cells on the high boundary whose
upper corners wrap around to index 0. Vertices are shared between all the
triangles that cut the same cell edge. Vertex positions are not wrapped, so a
surface that crosses the zone boundary is open at the boundary rather than welded
to its periodic image.
"""

from typing import Dict, List, Sequence, Tuple

import numpy as np

from wienfermi.defaults import DEFAULT_NORMAL
from wienfermi.grid import EnergyGrid
from wienfermi.interpolate import sample_grid
from wienfermi.tables import CORNER_OFFSETS, EDGE_CORNERS, EDGE_TABLE, TRIANGLE_TABLE

__all__ = [
    "cell_configuration",
    "edge_crossing",
    "polygonise_cell",
    "vertex_normals",
    "marching_cubes",
]

_corner_offsets = np.array(CORNER_OFFSETS, dtype=int)
_edge_table = np.array(EDGE_TABLE, dtype=int)
_corner_bits = 1 << np.arange(8)


def _orient_edges():
    # each edge as (lower corner, upper corner, axis)
    edges = []
    for start, end in EDGE_CORNERS:
        delta = _corner_offsets[end] - _corner_offsets[start]
        axis = int(np.argmax(np.abs(delta)))
        if delta[axis] < 0:
            start, end = end, start
        edges.append((start, end, axis))
    return tuple(edges)


_edges = _orient_edges()

EdgeKey = Tuple[int, int, int, int]


def cell_configuration(values: Sequence[float], iso_value: float = 0.0) -> int:
    """
    Get the configuration index of a cell.

    Args:
        values: The 8 corner values of the cell.
        iso_value: The isovalue.

    Returns:
        The configuration, where bit ``i`` is set if corner ``i`` is below the
        isovalue.
    """
    return sum(1 << i for i, value in enumerate(values) if value < iso_value)


def edge_crossing(v0: float, v1: float, iso_value: float = 0.0) -> float:
    """
    Find where the isosurface crosses an edge.

    Args:
        v0: The value at the start of the edge.
        v1: The value at the end of the edge.
        iso_value: The isovalue.

    Returns:
        The fraction along the edge, ``(iso_value - v0) / (v1 - v0)``, clamped to
        [0, 1]. Edges with equal end values are crossed at their midpoint.
    """
    if v1 == v0:
        return 0.5
    return min(max((iso_value - v0) / (v1 - v0), 0.0), 1.0)


def _triangulate_cell(
    cell: Tuple[int, int, int],
    values: Sequence[float],
    iso_value: float,
    vertex_ids: Dict[EdgeKey, int],
    positions: List[List[float]],
) -> List[List[int]]:
    config = cell_configuration(values, iso_value)

    face_vertices = []
    for edge in TRIANGLE_TABLE[config]:
        start, end, axis = _edges[edge]
        origin = [c + o for c, o in zip(cell, CORNER_OFFSETS[start])]
        key = (origin[0], origin[1], origin[2], axis)

        vertex_id = vertex_ids.get(key)
        if vertex_id is None:
            origin[axis] += edge_crossing(values[start], values[end], iso_value)
            vertex_id = len(positions)
            vertex_ids[key] = vertex_id
            positions.append(origin)

        face_vertices.append(vertex_id)

    # reverse the table winding so faces point towards higher energy
    return [
        [face_vertices[i], face_vertices[i + 2], face_vertices[i + 1]]
        for i in range(0, len(face_vertices), 3)
    ]


def polygonise_cell(
    values: Sequence[float], iso_value: float = 0.0
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Triangulate the isosurface inside a single unit cube.

    Args:
        values: The 8 corner values, ordered as in
            :data:`wienfermi.tables.CORNER_OFFSETS`.
        iso_value: The isovalue.

    Returns:
        The vertices as a (n, 3) float array in units of the cube edge, and the
        faces as a (m, 3) int array. Faces are wound counter-clockwise when viewed
        from the side above the isovalue.
    """
    if len(values) != 8:
        raise ValueError(f"Expected 8 corner values, got {len(values)}")

    positions = []
    faces = _triangulate_cell((0, 0, 0), list(values), iso_value, {}, positions)
    return (
        np.array(positions, dtype=float).reshape(-1, 3),
        np.array(faces, dtype=int).reshape(-1, 3),
    )


def vertex_normals(
    grid: EnergyGrid, band_idx: int, frac_coords: np.ndarray
) -> np.ndarray:
    """
    Calculate unit normals from the energy gradient at arbitrary k-points.

    The gradient is estimated with periodic central differences of the trilinearly
    sampled grid, using one grid spacing along each axis. At grid points this is
    ``(f(i + 1) - f(i - 1)) / (2 * spacing)``.

    Args:
        grid: The energy grid.
        band_idx: The band index.
        frac_coords: A (n, 3) float array of fractional coordinates.

    Returns:
        A (n, 3) float array of unit normals. Points where the gradient vanishes get
        the default normal ``(0, 0, 1)``.
    """
    frac_coords = np.asarray(frac_coords, dtype=float).reshape(-1, 3)

    gradient = np.zeros_like(frac_coords)
    for axis, spacing in enumerate(grid.spacing):
        step = np.zeros(3)
        step[axis] = spacing
        forward = sample_grid(grid, band_idx, frac_coords + step)
        backward = sample_grid(grid, band_idx, frac_coords - step)
        gradient[:, axis] = (forward - backward) / (2 * spacing)

    norms = np.linalg.norm(gradient, axis=1)
    normals = np.tile(np.array(DEFAULT_NORMAL, dtype=float), (len(frac_coords), 1))
    nonzero = norms > 0
    normals[nonzero] = gradient[nonzero] / norms[nonzero, None]
    return normals


def marching_cubes(grid: EnergyGrid, band_idx: int, iso_value: float = 0.0):
    """
    Extract the isosurface of one band of a periodic energy grid.

    Args:
        grid: The energy grid.
        band_idx: The band index.
        iso_value: The isovalue. Use 0 for a grid shifted to the Fermi level.

    Returns:
        The isosurface as an :class:`~wienfermi.surface.IsosurfaceMesh` with
        vertices in fractional coordinates. The mesh is empty if the band does not
        cross the isovalue.
    """
    from wienfermi.surface import IsosurfaceMesh

    if not 0 <= band_idx < grid.n_bands:
        raise ValueError(
            f"Band index {band_idx} out of range for grid with {grid.n_bands} bands"
        )

    volume = grid.get_band_volume(band_idx)

    # the value of corner c of cell (ix, iy, iz) is at corner_values[ix, iy, iz, c]
    corner_values = np.stack(
        [np.roll(volume, tuple(-offset), axis=(0, 1, 2)) for offset in _corner_offsets],
        axis=-1,
    )
    configs = ((corner_values < iso_value) * _corner_bits).sum(axis=-1)
    active_cells = np.argwhere(_edge_table[configs] != 0)

    vertex_ids = {}
    positions = []
    faces = []
    for ix, iy, iz in active_cells.tolist():
        faces.extend(
            _triangulate_cell(
                (ix, iy, iz),
                corner_values[ix, iy, iz].tolist(),
                iso_value,
                vertex_ids,
                positions,
            )
        )

    if len(positions) == 0:
        return IsosurfaceMesh(
            vertices=np.zeros((0, 3)),
            normals=np.zeros((0, 3)),
            faces=np.zeros((0, 3), dtype=int),
            band_idx=band_idx,
        )

    frac_coords = grid.get_frac_coords(np.array(positions, dtype=float))
    return IsosurfaceMesh(
        vertices=frac_coords,
        normals=vertex_normals(grid, band_idx, frac_coords),
        faces=np.array(faces, dtype=int),
        band_idx=band_idx,
    )
