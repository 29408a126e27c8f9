"""k-point records and periodic k-point manipulation functions."""

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np
from monty.json import MSONable

from wienfermi.defaults import KTOL

__all__ = [
    "IrreducibleKPoint",
    "ExpandedKPoint",
    "kpoints_to_first_bz",
    "kpoints_equivalent",
    "equivalent_kpoint_mask",
    "periodic_distance",
]


@dataclass(frozen=True)
class IrreducibleKPoint(MSONable):
    """
    A k-point from the symmetry reduced wedge of the Brillouin zone.

    Attributes:
        frac_coords: The fractional coordinates of the k-point.
        weight: The multiplicity of the k-point.
        energies: The band energies at the k-point in eV. Empty if the energy
            listing contained no record for the k-point.
    """

    frac_coords: Tuple[float, float, float]
    weight: float = 1.0
    energies: Tuple[float, ...] = ()

    def __post_init__(self):
        # store coordinates and energies as tuples so the record stays immutable
        object.__setattr__(self, "frac_coords", tuple(map(float, self.frac_coords)))
        object.__setattr__(self, "energies", tuple(map(float, self.energies)))

    @property
    def n_bands(self) -> int:
        """Number of band energies available at the k-point."""
        return len(self.energies)


@dataclass(frozen=True)
class ExpandedKPoint(MSONable):
    """
    A k-point of the full Brillouin zone generated from an irreducible k-point.

    Attributes:
        frac_coords: The fractional coordinates, wrapped into [-0.5, 0.5).
        energies: The band energies in eV, copied from the irreducible k-point.
        irreducible_index: Index of the irreducible k-point this point came from.
    """

    frac_coords: Tuple[float, float, float]
    energies: Tuple[float, ...]
    irreducible_index: int

    def __post_init__(self):
        object.__setattr__(self, "frac_coords", tuple(map(float, self.frac_coords)))
        object.__setattr__(self, "energies", tuple(map(float, self.energies)))


def kpoints_to_first_bz(kpoints: Union[float, np.ndarray]) -> np.ndarray:
    """Translate fractional k-points to the first Brillouin zone.

    I.e. all k-points will have fractional coordinates:
        -0.5 <= fractional coordinates < 0.5

    Coordinates are shifted by whole reciprocal lattice vectors one at a time
    rather than reduced with a modulo, so that values already inside the zone
    are returned untouched and -0.5 is never mapped onto 0.5.

    Args:
        kpoints: A (n, 3) or (3, ) float array of fractional k-point coordinates.

    Returns:
        A float array of the translated k-points with the same shape.
    """
    kp = np.array(kpoints, dtype=float)

    above = kp >= 0.5
    while np.any(above):
        kp[above] -= 1.0
        above = kp >= 0.5

    below = kp < -0.5
    while np.any(below):
        kp[below] += 1.0
        below = kp < -0.5

    return kp


def periodic_distance(kpoint_a: np.ndarray, kpoint_b: np.ndarray) -> np.ndarray:
    """
    Get the per-axis distance between k-points accounting for periodicity.

    Args:
        kpoint_a: A (..., 3) float array of fractional coordinates.
        kpoint_b: A (..., 3) float array of fractional coordinates.

    Returns:
        A (..., 3) float array of ``min(|Δ|, 1 - |Δ|)`` for each axis.
    """
    delta = np.abs(kpoints_to_first_bz(kpoint_a) - kpoints_to_first_bz(kpoint_b))
    return np.minimum(delta, 1.0 - delta)


def kpoints_equivalent(
    kpoint_a: Sequence[float], kpoint_b: Sequence[float], tol: float = KTOL
) -> bool:
    """
    Check whether two k-points are the same point of the periodic zone.

    Args:
        kpoint_a: The fractional coordinates of the first k-point.
        kpoint_b: The fractional coordinates of the second k-point.
        tol: Tolerance for treating two k-points as equivalent.

    Returns:
        Whether the k-points are equivalent.
    """
    return bool(np.all(periodic_distance(kpoint_a, kpoint_b) < tol))


def equivalent_kpoint_mask(
    kpoint: Sequence[float], kpoints: np.ndarray, tol: float = KTOL
) -> np.ndarray:
    """
    Find which of a set of k-points are equivalent to a reference k-point.

    Args:
        kpoint: The fractional coordinates of the reference k-point.
        kpoints: A (n, 3) float array of fractional k-point coordinates.
        tol: Tolerance for treating two k-points as equivalent.

    Returns:
        A (n, ) bool array.
    """
    kpoints = np.asarray(kpoints, dtype=float).reshape(-1, 3)
    return np.all(periodic_distance(kpoints, kpoint) < tol, axis=1)
