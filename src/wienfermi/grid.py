"""Periodic energy grids over the Brillouin zone."""

import warnings
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from monty.json import MSONable

from wienfermi.exceptions import DimensionMismatchError

__all__ = [
    "EnergyGrid",
    "shift_to_fermi_level",
    "irreducible_indices_from_relations",
    "build_relation_grid",
]


@dataclass
class EnergyGrid(MSONable):
    """
    Band energies on a regular periodic grid in fractional reciprocal coordinates.

    The values for grid point ``(ix, iy, iz)`` are stored at the flat index
    ``ix + iy * nx + iz * nx * ny``. Grid indices are periodic.

    Attributes:
        dim: The grid dimensions ``(nx, ny, nz)``.
        data: A (nbands, nx * ny * nz) float array of the band energies in eV.
        fermi_energy: The Fermi energy in eV. Zero once the grid has been shifted
            to the Fermi level.
        origin: The fractional coordinates of grid point ``(0, 0, 0)``.
    """

    dim: Tuple[int, int, int]
    data: np.ndarray
    fermi_energy: float = 0.0
    origin: Tuple[float, float, float] = (-0.5, -0.5, -0.5)

    def __post_init__(self):
        # ensure all inputs are numpy arrays
        self.dim = tuple(int(n) for n in self.dim)
        self.origin = tuple(float(o) for o in self.origin)
        self.data = np.array(self.data, dtype=float)

        if len(self.dim) != 3 or min(self.dim) < 1:
            raise DimensionMismatchError(f"Invalid grid dimensions: {self.dim}")

        if self.data.ndim == 1 and self.data.size == 0:
            self.data = self.data.reshape(0, self.n_points)

        if self.data.ndim != 2 or self.data.shape[1] != self.n_points:
            raise DimensionMismatchError(
                "Band data with shape {} does not match grid dimensions {}".format(
                    self.data.shape, self.dim
                )
            )

    @property
    def n_points(self) -> int:
        """Number of grid points."""
        return int(np.prod(self.dim))

    @property
    def n_bands(self) -> int:
        """Number of bands on the grid."""
        return self.data.shape[0]

    @property
    def spacing(self) -> np.ndarray:
        """A (3, ) float array of the grid spacing in fractional coordinates."""
        return 1 / np.array(self.dim, dtype=float)

    def flat_index(self, ix: int, iy: int, iz: int) -> int:
        """Get the flat index of a grid point, wrapping periodic indices."""
        nx, ny, nz = self.dim
        return ix % nx + (iy % ny) * nx + (iz % nz) * nx * ny

    def get_value(self, band_idx: int, ix: int, iy: int, iz: int) -> float:
        """Get the energy of a band at a grid point, wrapping periodic indices."""
        return self.data[band_idx, self.flat_index(ix, iy, iz)]

    def get_band_volume(self, band_idx: int) -> np.ndarray:
        """
        Get the energies of a band as a 3D array.

        Args:
            band_idx: The band index.

        Returns:
            A (nx, ny, nz) float array indexed by ``[ix, iy, iz]``.
        """
        nx, ny, nz = self.dim
        return self.data[band_idx].reshape((nz, ny, nx)).transpose(2, 1, 0)

    def get_frac_coords(self, grid_coords: np.ndarray) -> np.ndarray:
        """Convert (possibly fractional) grid indices to fractional k-coordinates."""
        return np.asarray(self.origin) + np.asarray(grid_coords) * self.spacing

    def get_grid_coords(self, frac_coords: np.ndarray) -> np.ndarray:
        """Convert fractional k-coordinates to (fractional) grid indices."""
        return (np.asarray(frac_coords) - np.asarray(self.origin)) / self.spacing


def shift_to_fermi_level(grid: EnergyGrid) -> EnergyGrid:
    """
    Shift the grid energies so that the Fermi level lies at zero.

    A new grid is returned and the input grid is left untouched. Each grid should
    only be shifted once.

    Args:
        grid: An energy grid.

    Returns:
        A new grid with energies relative to the Fermi level and a Fermi energy of 0.
    """
    return EnergyGrid(
        dim=grid.dim,
        data=grid.data - grid.fermi_energy,
        fermi_energy=0.0,
        origin=grid.origin,
    )


def irreducible_indices_from_relations(relations: Sequence[int]) -> np.ndarray:
    """
    Map full mesh k-points to irreducible k-points using a relation table.

    The relation table gives, for each k-point ``i`` of the full mesh (1-based), the
    1-based index of a related k-point. K-points related to themselves are the
    irreducible k-points and are numbered sequentially in mesh order. The
    representative of k-point ``i`` is found with two lookups,
    ``relation[relation[i]]``.

    Args:
        relations: A (n, ) int array of 1-based relation indices, one per mesh
            k-point in mesh order.

    Returns:
        A (n, ) int array of the 1-based sequential irreducible index of each mesh
        k-point. Zero marks k-points whose representative could not be resolved.
    """
    relations = np.asarray(relations, dtype=int)
    n_points = len(relations)
    point_idx = np.arange(1, n_points + 1)

    canonical = relations == point_idx
    sequence = np.zeros(n_points + 1, dtype=int)
    sequence[point_idx[canonical]] = np.arange(1, np.count_nonzero(canonical) + 1)

    valid = (relations >= 1) & (relations <= n_points)
    representative = np.zeros(n_points, dtype=int)
    representative[valid] = relations[relations[valid] - 1]

    in_range = (representative >= 1) & (representative <= n_points)
    irreducible_idx = np.zeros(n_points, dtype=int)
    irreducible_idx[in_range] = sequence[representative[in_range]]
    return irreducible_idx


def build_relation_grid(
    energies: np.ndarray,
    grid_coords: np.ndarray,
    relations: Sequence[int],
    dim: Tuple[int, int, int],
    fermi_energy: float = 0.0,
    origin: Optional[Tuple[float, float, float]] = None,
) -> EnergyGrid:
    """
    Build an energy grid directly from a full mesh listing and its relation table.

    No interpolation is performed: every row of the listing addresses one grid
    point, which receives the energies of its irreducible representative.

    Args:
        energies: A (nkpoints, nbands) float array of the energies of the
            irreducible k-points in eV, in sequential irreducible order.
        grid_coords: A (n, 3) int array of the integer grid coordinates of each row.
        relations: A (n, ) int array of the 1-based relation index of each row.
        dim: The grid dimensions ``(nx, ny, nz)``.
        fermi_energy: The Fermi energy in eV.
        origin: The fractional coordinates of grid point ``(0, 0, 0)``. Defaults to
            the Γ-point.

    Returns:
        The energy grid.
    """
    energies = np.asarray(energies, dtype=float)
    if energies.ndim != 2:
        raise DimensionMismatchError(
            "Energies must be given as a (nkpoints, nbands) array"
        )

    grid_coords = np.asarray(grid_coords, dtype=int).reshape(-1, 3)
    if len(grid_coords) != len(relations):
        raise DimensionMismatchError(
            "Number of grid coordinates ({}) does not match number of relations "
            "({})".format(len(grid_coords), len(relations))
        )

    nx, ny, nz = dim
    n_bands = energies.shape[1]
    data = np.zeros((n_bands, nx * ny * nz))

    irreducible_idx = irreducible_indices_from_relations(relations)
    resolved = (irreducible_idx >= 1) & (irreducible_idx <= len(energies))
    if not np.all(resolved):
        warnings.warn(
            "{} mesh k-points could not be matched to an irreducible k-point".format(
                np.count_nonzero(~resolved)
            )
        )

    coords = grid_coords[resolved] % np.array([nx, ny, nz])
    flat_idx = coords[:, 0] + coords[:, 1] * nx + coords[:, 2] * nx * ny
    data[:, flat_idx] = energies[irreducible_idx[resolved] - 1].T

    if origin is None:
        origin = (0.0, 0.0, 0.0)

    return EnergyGrid(dim=dim, data=data, fermi_energy=fermi_energy, origin=origin)
