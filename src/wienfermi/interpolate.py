"""
Trilinear interpolation of expanded k-points onto a regular periodic grid.

The expanded k-points are first indexed on a lookup mesh with the same division as
the k-point mesh of the calculation. Every cell of the output grid is then filled
by trilinear interpolation between the 8 surrounding lookup mesh points that hold
a k-point. Cells without any such neighbour take the energies of the nearest
k-point.
"""

import warnings
from typing import Dict, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from wienfermi.defaults import GRID_SIZE, SOURCE_GRID_SIZE
from wienfermi.grid import EnergyGrid
from wienfermi.kpoints import ExpandedKPoint

__all__ = [
    "kpoint_grid_indices",
    "build_kpoint_lookup",
    "trilinear_weights",
    "interpolation_cube",
    "nearest_kpoint_indices",
    "interpolate_energy_grid",
    "sample_grid",
]

# corner c is offset by (c & 1, (c >> 1) & 1, (c >> 2) & 1)
_corner_offsets = np.array([[c & 1, (c >> 1) & 1, (c >> 2) & 1] for c in range(8)])


def kpoint_grid_indices(frac_coords: np.ndarray, grid_size: int) -> np.ndarray:
    """
    Get the lookup mesh indices of fractional k-points.

    The zone [-0.5, 0.5) is mapped onto [0, grid_size) and the result rounded half
    up, wrapping indices that round to ``grid_size`` back to 0.

    Args:
        frac_coords: A (n, 3) float array of fractional k-point coordinates.
        grid_size: The number of lookup mesh points along each axis.

    Returns:
        A (n, 3) int array of lookup mesh indices.
    """
    frac_coords = np.asarray(frac_coords, dtype=float).reshape(-1, 3)
    indices = np.floor((frac_coords + 0.5) * grid_size + 0.5).astype(int)
    return indices % grid_size


def build_kpoint_lookup(
    frac_coords: np.ndarray, grid_size: int
) -> Dict[Tuple[int, int, int], int]:
    """
    Index k-points by their position on the lookup mesh.

    When several k-points round to the same mesh point, the first one is kept.

    Args:
        frac_coords: A (n, 3) float array of fractional k-point coordinates.
        grid_size: The number of lookup mesh points along each axis.

    Returns:
        A mapping of ``(ix, iy, iz)`` lookup mesh index to k-point index, in
        insertion order.
    """
    lookup = {}
    for kpoint_idx, key in enumerate(kpoint_grid_indices(frac_coords, grid_size)):
        lookup.setdefault(tuple(key.tolist()), kpoint_idx)
    return lookup


def _dense_lookup(lookup: Dict[Tuple[int, int, int], int], grid_size: int):
    dense = np.full((grid_size,) * 3, -1, dtype=int)
    if lookup:
        keys = np.array(list(lookup.keys()), dtype=int)
        dense[keys[:, 0], keys[:, 1], keys[:, 2]] = list(lookup.values())
    return dense


def trilinear_weights(fractions: np.ndarray) -> np.ndarray:
    """
    Get the trilinear weights of the 8 corners of a unit cube.

    Corners are ordered with x varying fastest, i.e. corner ``c`` is offset by
    ``(c & 1, (c >> 1) & 1, (c >> 2) & 1)``.

    Args:
        fractions: A (..., 3) float array of positions inside the unit cube.

    Returns:
        A (..., 8) float array of weights. The weights sum to 1.
    """
    fractions = np.asarray(fractions, dtype=float)
    fx, fy, fz = fractions[..., 0], fractions[..., 1], fractions[..., 2]
    wx = np.stack([1 - fx, fx], axis=-1)
    wy = np.stack([1 - fy, fy], axis=-1)
    wz = np.stack([1 - fz, fz], axis=-1)

    weights = []
    for dz in (0, 1):
        for dy in (0, 1):
            for dx in (0, 1):
                weights.append(wx[..., dx] * wy[..., dy] * wz[..., dz])
    return np.stack(weights, axis=-1)


def interpolation_cube(
    grid_coords: np.ndarray, dim: Sequence[int]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Find the corners of the grid cell containing (fractional) grid coordinates.

    Args:
        grid_coords: A (..., 3) float array of grid coordinates.
        dim: The grid dimensions, used to wrap the corner indices.

    Returns:
        The corner indices as a (..., 8, 3) int array, wrapped into the grid, and the
        position inside the cell as a (..., 3) float array.
    """
    grid_coords = np.asarray(grid_coords, dtype=float)
    base = np.floor(grid_coords)
    fractions = grid_coords - base

    corners = base.astype(int)[..., None, :] + _corner_offsets
    corners %= np.asarray(dim, dtype=int)
    return corners, fractions


def nearest_kpoint_indices(frac_coords: np.ndarray, query: np.ndarray) -> np.ndarray:
    """
    Find the nearest k-point to each query point in the periodic zone.

    Args:
        frac_coords: A (n, 3) float array of fractional k-point coordinates.
        query: A (m, 3) float array of fractional coordinates to look up.

    Returns:
        A (m, ) int array of indices into ``frac_coords``.
    """

    def _to_unit_cell(coords):
        coords = np.mod(np.asarray(coords, dtype=float).reshape(-1, 3) + 0.5, 1)
        # float error can round small negative values up to exactly 1
        coords[coords == 1.0] = 0.0
        return coords

    tree = cKDTree(_to_unit_cell(frac_coords), boxsize=1)
    _, indices = tree.query(_to_unit_cell(query))
    return np.asarray(indices, dtype=int)


def interpolate_energy_grid(
    kpoints: Sequence[ExpandedKPoint],
    grid_size: int = GRID_SIZE,
    fermi_energy: float = 0.0,
    source_grid_size: int = SOURCE_GRID_SIZE,
) -> EnergyGrid:
    """
    Interpolate expanded k-points onto a regular periodic grid.

    Output cell ``(ix, iy, iz)`` lies at the fractional coordinate
    ``-0.5 + (ix, iy, iz) / grid_size``. Its energies are
    ``Σ(energy · weight) / Σ(weight)`` over the corners of the enclosing lookup mesh
    cell that hold a k-point. If no corner holds a k-point, the energies of the
    nearest k-point are used instead. K-points without energies are ignored.

    Args:
        kpoints: The expanded k-points.
        grid_size: The number of output grid points along each axis.
        fermi_energy: The Fermi energy in eV, stored on the grid.
        source_grid_size: The division of the k-point mesh of the calculation,
            used as the lookup mesh.

    Returns:
        The interpolated energy grid.
    """
    if grid_size < 1:
        raise ValueError(f"Grid size must be positive, got {grid_size}")

    if source_grid_size < 1:
        raise ValueError(f"Source grid size must be positive, got {source_grid_size}")

    kpoints = [k for k in kpoints if len(k.energies) > 0]
    dim = (grid_size, grid_size, grid_size)
    if len(kpoints) == 0:
        warnings.warn("No k-points with energies to interpolate.")
        data = np.zeros((0, grid_size ** 3))
        return EnergyGrid(dim=dim, data=data, fermi_energy=fermi_energy)

    n_bands = min(len(k.energies) for k in kpoints)
    frac_coords = np.array([k.frac_coords for k in kpoints])
    energies = np.array([k.energies[:n_bands] for k in kpoints])

    lookup = build_kpoint_lookup(frac_coords, source_grid_size)
    dense = _dense_lookup(lookup, source_grid_size)

    # flat grid ordering has ix varying fastest
    iz, iy, ix = np.meshgrid(*[np.arange(grid_size)] * 3, indexing="ij")
    cells = np.stack([ix.ravel(), iy.ravel(), iz.ravel()], axis=-1)
    lookup_coords = cells * source_grid_size / grid_size

    corners, fractions = interpolation_cube(lookup_coords, (source_grid_size,) * 3)
    corner_kpoints = dense[corners[..., 0], corners[..., 1], corners[..., 2]]
    present = corner_kpoints >= 0

    weights = trilinear_weights(fractions) * present
    weight_sum = weights.sum(axis=1)
    corner_kpoints[~present] = 0

    data = np.zeros((n_bands, len(cells)))
    has_weight = weight_sum > 0
    for band_idx in range(n_bands):
        corner_energies = energies[corner_kpoints, band_idx]
        numerator = (corner_energies * weights).sum(axis=1)
        data[band_idx, has_weight] = numerator[has_weight] / weight_sum[has_weight]

    if not np.all(has_weight):
        cell_frac_coords = cells[~has_weight] / grid_size - 0.5
        nearest = nearest_kpoint_indices(frac_coords, cell_frac_coords)
        data[:, ~has_weight] = energies[nearest].T

    return EnergyGrid(dim=dim, data=data, fermi_energy=fermi_energy)


def sample_grid(grid: EnergyGrid, band_idx: int, frac_coords: np.ndarray):
    """
    Sample a band of an energy grid at arbitrary k-points.

    Uses trilinear interpolation between the 8 surrounding grid points, with
    periodic wrapping at the grid boundaries.

    Args:
        grid: The energy grid.
        band_idx: The band index.
        frac_coords: A (3, ) or (n, 3) float array of fractional coordinates.

    Returns:
        The interpolated energy as a float for a single k-point or a (n, ) float
        array otherwise.
    """
    frac_coords = np.asarray(frac_coords, dtype=float)
    volume = grid.get_band_volume(band_idx)

    corners, fractions = interpolation_cube(grid.get_grid_coords(frac_coords), grid.dim)
    values = volume[corners[..., 0], corners[..., 1], corners[..., 2]]
    result = (values * trilinear_weights(fractions)).sum(axis=-1)

    if frac_coords.ndim == 1:
        return float(result)
    return result
