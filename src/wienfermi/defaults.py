"""Default values shared across wienfermi."""

RY_TO_EV = 13.605693122994
"""Conversion factor from Rydberg to eV."""

BOHR_TO_ANGSTROM = 0.529177210903
"""Conversion factor from bohr to Å."""

KTOL = 1e-6
"""Tolerance for treating two fractional k-points as equivalent."""

GRID_SIZE = 32
"""Number of grid points along each axis of the interpolated energy grid."""

SOURCE_GRID_SIZE = 10
"""Mesh division assumed when the k-point list does not annotate it."""

TOTAL_KPOINTS = 1000
"""Total number of k-points assumed when the k-point list does not annotate it."""

ENERGY_HEADER_LINES = 4
"""Number of header lines at the top of spin-orbit energy files."""

DEFAULT_NORMAL = (0.0, 0.0, 1.0)
"""Normal used for isosurface vertices where the energy gradient vanishes."""

N_DEFAULT_BANDS = 4
"""Number of Fermi level crossing bands enabled by default."""

BAND_COLORS = (
    "#3b82f6",  # blue
    "#ef4444",  # red
    "#22c55e",  # green
    "#f59e0b",  # amber
    "#8b5cf6",  # purple
    "#ec4899",  # pink
    "#06b6d4",  # cyan
    "#f97316",  # orange
)
"""Display colors cycled over the enabled bands."""
