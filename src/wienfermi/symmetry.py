"""Point group operations and expansion of irreducible k-points."""

import warnings
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from monty.json import MSONable

from wienfermi.defaults import KTOL
from wienfermi.kpoints import (
    ExpandedKPoint,
    IrreducibleKPoint,
    equivalent_kpoint_mask,
    kpoints_to_first_bz,
)

__all__ = ["SymmetryOperation", "IDENTITY", "apply_symmetry", "expand_kpoints"]


@dataclass(frozen=True)
class SymmetryOperation(MSONable):
    """
    A symmetry operation of the crystal.

    Only the rotation acts on k-points; the translation is kept for completeness.

    Attributes:
        rotation: The 3x3 integer rotation matrix, given row by row.
        translation: The fractional translation vector.
    """

    rotation: Tuple[Tuple[int, int, int], ...]
    translation: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        rotation = tuple(tuple(int(r) for r in row) for row in self.rotation)
        if len(rotation) != 3 or any(len(row) != 3 for row in rotation):
            raise ValueError("Rotation must be a 3x3 matrix.")

        object.__setattr__(self, "rotation", rotation)
        object.__setattr__(self, "translation", tuple(map(float, self.translation)))

    @property
    def rotation_matrix(self) -> np.ndarray:
        """A (3, 3) int array of the rotation matrix."""
        return np.array(self.rotation, dtype=int)

    def operate(self, kpoint: Sequence[float]) -> np.ndarray:
        """
        Apply the operation to a k-point.

        Args:
            kpoint: The fractional coordinates of the k-point.

        Returns:
            A (3, ) float array of the rotated k-point (not wrapped).
        """
        return np.dot(self.rotation_matrix, np.asarray(kpoint, dtype=float))


IDENTITY = SymmetryOperation(((1, 0, 0), (0, 1, 0), (0, 0, 1)))


def apply_symmetry(operation: SymmetryOperation, kpoint: Sequence[float]) -> np.ndarray:
    """Rotate a k-point by a symmetry operation, ``k' = R·k``."""
    return operation.operate(kpoint)


def expand_kpoints(
    kpoints: Sequence[IrreducibleKPoint],
    symmetry_ops: Sequence[SymmetryOperation],
    tol: float = KTOL,
) -> List[ExpandedKPoint]:
    """
    Expand irreducible k-points to the full Brillouin zone.

    Every symmetry operation is applied to every irreducible k-point. The rotated
    k-point is translated to the first Brillouin zone and kept only if it is not
    equivalent to a k-point that has already been kept. Energies are copied from
    the irreducible k-point unchanged.

    Args:
        kpoints: The irreducible k-points.
        symmetry_ops: The symmetry operations. If empty, only the identity is used.
        tol: Tolerance for treating two k-points as equivalent.

    Returns:
        The expanded k-points, ordered by irreducible k-point then by operation.
    """
    if len(symmetry_ops) == 0:
        warnings.warn("No symmetry operations given, using the identity only.")
        symmetry_ops = [IDENTITY]

    rotations = np.array([op.rotation_matrix for op in symmetry_ops])

    kept = np.zeros((len(kpoints) * len(rotations), 3))
    n_kept = 0
    expanded = []
    for irr_idx, kpoint in enumerate(kpoints):
        rotated = np.dot(rotations, np.asarray(kpoint.frac_coords, dtype=float))
        rotated = kpoints_to_first_bz(rotated)

        for frac_coords in rotated:
            seen = equivalent_kpoint_mask(frac_coords, kept[:n_kept], tol)
            if np.any(seen):
                continue

            kept[n_kept] = frac_coords
            n_kept += 1
            expanded.append(
                ExpandedKPoint(
                    frac_coords=tuple(frac_coords),
                    energies=kpoint.energies,
                    irreducible_index=irr_idx,
                )
            )

    return expanded
