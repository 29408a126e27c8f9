"""Tools to generate isosurfaces and Fermi surfaces."""

import warnings
from dataclasses import dataclass, replace
from typing import Collection, Dict, List, Optional, Sequence, Tuple

import numpy as np
from monty.json import MSONable, jsanitize

from wienfermi.defaults import BAND_COLORS, GRID_SIZE, KTOL, N_DEFAULT_BANDS
from wienfermi.exceptions import DimensionMismatchError
from wienfermi.grid import EnergyGrid, build_relation_grid, shift_to_fermi_level
from wienfermi.interpolate import interpolate_energy_grid
from wienfermi.io import IrreducibleData, RelationData
from wienfermi.marching_cubes import marching_cubes
from wienfermi.symmetry import expand_kpoints

__all__ = [
    "IsosurfaceMesh",
    "FermiSurface",
    "find_crossing_bands",
    "select_bands",
    "compute_isosurfaces",
]


@dataclass
class IsosurfaceMesh(MSONable):
    """
    A triangular mesh of the isosurface of a single band.

    Attributes:
        vertices: A (n, 3) float array of the vertices in fractional coordinates.
        normals: A (n, 3) float array of the unit vertex normals.
        faces: A (m, 3) int array of the faces, indexing into the vertices.
        band_idx: The band index to which the surface belongs.
    """

    vertices: np.ndarray
    normals: np.ndarray
    faces: np.ndarray
    band_idx: int = 0

    def __post_init__(self):
        # ensure all inputs are numpy arrays
        self.vertices = np.array(self.vertices, dtype=float).reshape(-1, 3)
        self.normals = np.array(self.normals, dtype=float).reshape(-1, 3)
        self.faces = np.array(self.faces, dtype=int).reshape(-1, 3)

        if len(self.normals) != len(self.vertices):
            raise DimensionMismatchError(
                "Got {} normals for {} vertices".format(
                    len(self.normals), len(self.vertices)
                )
            )

    @property
    def vertex_count(self) -> int:
        """Number of vertices in the mesh."""
        return len(self.vertices)

    @property
    def n_faces(self) -> int:
        """Number of faces in the mesh."""
        return len(self.faces)

    @property
    def is_empty(self) -> bool:
        """Whether the mesh has no faces."""
        return self.n_faces == 0

    @property
    def area(self) -> float:
        """Area of the isosurface in fractional coordinates."""
        return self.get_area()

    def get_area(self, reciprocal_lattice: Optional[np.ndarray] = None) -> float:
        """
        Get the area of the isosurface.

        Args:
            reciprocal_lattice: A (3, 3) float array of the reciprocal lattice
                vectors. If given, the area is calculated in Cartesian coordinates.

        Returns:
            The area.
        """
        if self.is_empty:
            return 0.0
        return float(self.to_trimesh(reciprocal_lattice).area)

    def get_cartesian_vertices(
        self, reciprocal_lattice: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get the vertices and normals in Cartesian coordinates.

        Args:
            reciprocal_lattice: A (3, 3) float array of the reciprocal lattice
                vectors, one vector per row. If ``None``, the fractional vertices and
                normals are returned unchanged.

        Returns:
            The (n, 3) vertices and (n, 3) unit normals.
        """
        if reciprocal_lattice is None:
            return self.vertices, self.normals

        reciprocal_lattice = np.asarray(reciprocal_lattice, dtype=float)
        vertices = np.dot(self.vertices, reciprocal_lattice)

        # normals are gradients so transform with the inverse transpose
        normals = np.dot(self.normals, np.linalg.inv(reciprocal_lattice).T)
        norms = np.linalg.norm(normals, axis=1)
        norms[norms == 0] = 1
        return vertices, normals / norms[:, None]

    def to_trimesh(self, reciprocal_lattice: Optional[np.ndarray] = None):
        """
        Convert the isosurface to a trimesh mesh.

        Args:
            reciprocal_lattice: A (3, 3) float array of the reciprocal lattice
                vectors. If given, the mesh is built in Cartesian coordinates.

        Returns:
            A ``trimesh.Trimesh``.
        """
        import trimesh

        vertices, normals = self.get_cartesian_vertices(reciprocal_lattice)
        return trimesh.Trimesh(
            vertices=vertices, faces=self.faces, vertex_normals=normals, process=False
        )

    def to_buffers(self) -> Dict[str, np.ndarray]:
        """
        Get flat buffers for rendering.

        Returns:
            A dictionary with ``"positions"`` and ``"normals"`` (float32) and
            ``"indices"`` (uint32) flat arrays.
        """
        return {
            "positions": self.vertices.astype(np.float32).ravel(),
            "normals": self.normals.astype(np.float32).ravel(),
            "indices": self.faces.astype(np.uint32).ravel(),
        }


def find_crossing_bands(
    energies: Sequence[Sequence[float]], fermi_energy: float
) -> List[int]:
    """
    Find the bands that cross the Fermi level.

    A band crosses the Fermi level if at least one energy is strictly above and at
    least one is strictly below the Fermi energy.

    Args:
        energies: The band energies of each k-point. K-points may have different
            numbers of bands; missing bands are ignored.
        fermi_energy: The Fermi energy.

    Returns:
        The indices of the crossing bands in ascending order.
    """
    n_bands = max((len(e) for e in energies), default=0)

    above = np.zeros(n_bands, dtype=bool)
    below = np.zeros(n_bands, dtype=bool)
    for kpoint_energies in energies:
        kpoint_energies = np.asarray(kpoint_energies, dtype=float)
        n = len(kpoint_energies)
        above[:n] |= kpoint_energies > fermi_energy
        below[:n] |= kpoint_energies < fermi_energy

    return np.where(above & below)[0].tolist()


def select_bands(
    crossing_bands: Sequence[int], enabled_bands: Optional[Collection[int]] = None
) -> List[int]:
    """
    Select the bands for which isosurfaces will be calculated.

    Args:
        crossing_bands: The bands that cross the Fermi level.
        enabled_bands: The requested band indices. If ``None``, the first few
            crossing bands are selected. Requested bands that do not cross the Fermi
            level are dropped with a warning.

    Returns:
        The selected band indices.
    """
    if enabled_bands is None:
        return list(crossing_bands[:N_DEFAULT_BANDS])

    selected = []
    for band_idx in enabled_bands:
        if band_idx not in crossing_bands:
            warnings.warn(
                f"Band {band_idx + 1} does not cross the Fermi level, skipping."
            )
        elif band_idx not in selected:
            selected.append(band_idx)
    return selected


def compute_isosurfaces(
    grid: EnergyGrid, band_indices: Sequence[int], iso_value: float = 0.0
) -> Dict[int, IsosurfaceMesh]:
    """
    Compute the isosurfaces of several bands.

    Args:
        grid: The energy grid, usually shifted to the Fermi level.
        band_indices: The band indices.
        iso_value: The isovalue.

    Returns:
        The isosurfaces as a dictionary of ``{band_idx: mesh}``.
    """
    return {
        band_idx: marching_cubes(grid, band_idx, iso_value=iso_value)
        for band_idx in band_indices
    }


@dataclass
class FermiSurface(MSONable):
    """
    A Fermi surface built from WIEN2k output.

    Attributes:
        grid: The energy grid, shifted so the Fermi level is at zero.
        crossing_bands: The indices of the bands that cross the Fermi level.
        isosurfaces: The isosurfaces of the enabled bands as ``{band_idx: mesh}``.
        fermi_energy: The Fermi energy in eV.
        n_bands: The total number of bands.
        n_irreducible: The number of irreducible k-points.
        n_kpoints: The number of k-points in the full Brillouin zone.
        reciprocal_lattice: A (3, 3) float array of the reciprocal lattice vectors,
            one vector per row, or ``None`` if not known.
        case_name: The name of the calculation.
    """

    grid: EnergyGrid
    crossing_bands: List[int]
    isosurfaces: Dict[int, IsosurfaceMesh]
    fermi_energy: float
    n_bands: int
    n_irreducible: int
    n_kpoints: int
    reciprocal_lattice: Optional[np.ndarray] = None
    case_name: str = ""

    def __post_init__(self):
        self.crossing_bands = [int(b) for b in self.crossing_bands]
        if self.reciprocal_lattice is not None:
            self.reciprocal_lattice = np.array(self.reciprocal_lattice, dtype=float)

    @classmethod
    def from_irreducible_data(
        cls,
        data: IrreducibleData,
        grid_size: int = GRID_SIZE,
        tol: float = KTOL,
        enabled_bands: Optional[Collection[int]] = None,
    ) -> "FermiSurface":
        """
        Create a Fermi surface from irreducible k-points and symmetry operations.

        The k-points are expanded to the full Brillouin zone and interpolated onto a
        regular grid before the isosurfaces are extracted.

        Args:
            data: The irreducible k-point data.
            grid_size: The number of grid points along each axis.
            tol: Tolerance for treating two k-points as equivalent.
            enabled_bands: The band indices for which to extract isosurfaces. Default
                is the first few bands that cross the Fermi level.

        Returns:
            The Fermi surface.
        """
        expanded = expand_kpoints(data.kpoints, data.symmetry_ops, tol=tol)
        grid = interpolate_energy_grid(
            expanded,
            grid_size=grid_size,
            fermi_energy=data.fermi_energy,
            source_grid_size=data.grid_size,
        )
        crossing_bands = find_crossing_bands(
            [k.energies for k in data.kpoints], data.fermi_energy
        )

        return cls._from_grid(
            grid,
            crossing_bands,
            enabled_bands,
            n_bands=data.n_bands,
            n_irreducible=len(data.kpoints),
            n_kpoints=len(expanded),
            reciprocal_lattice=data.lattice_parameters.reciprocal_lattice,
            case_name=data.case_name,
        )

    @classmethod
    def from_relation_data(
        cls, data: RelationData, enabled_bands: Optional[Collection[int]] = None
    ) -> "FermiSurface":
        """
        Create a Fermi surface from a full k-point mesh and its relation table.

        Args:
            data: The relation table data.
            enabled_bands: The band indices for which to extract isosurfaces. Default
                is the first few bands that cross the Fermi level.

        Returns:
            The Fermi surface.
        """
        mesh = data.mesh
        grid = build_relation_grid(
            data.energies,
            mesh.grid_coords,
            mesh.relations,
            mesh.dim,
            fermi_energy=data.fermi_energy,
        )
        crossing_bands = find_crossing_bands(data.energies, data.fermi_energy)

        reciprocal_lattice = None
        if mesh.reciprocal_vectors is not None:
            # the listing gives G1, G2 and G3 as columns
            reciprocal_lattice = mesh.reciprocal_vectors.T

        return cls._from_grid(
            grid,
            crossing_bands,
            enabled_bands,
            n_bands=data.n_bands,
            n_irreducible=data.n_irreducible,
            n_kpoints=mesh.n_points,
            reciprocal_lattice=reciprocal_lattice,
            case_name=data.case_name,
        )

    @classmethod
    def _from_grid(cls, grid, crossing_bands, enabled_bands, **kwargs):
        crossing_bands = [b for b in crossing_bands if b < grid.n_bands]
        shifted = shift_to_fermi_level(grid)
        selected = select_bands(crossing_bands, enabled_bands)
        return cls(
            grid=shifted,
            crossing_bands=crossing_bands,
            isosurfaces=compute_isosurfaces(shifted, selected),
            fermi_energy=grid.fermi_energy,
            **kwargs,
        )

    def with_bands(self, enabled_bands: Collection[int]) -> "FermiSurface":
        """
        Get a Fermi surface with a different set of enabled bands.

        Only the isosurfaces are recalculated; the energy grid is reused.

        Args:
            enabled_bands: The band indices for which to extract isosurfaces.

        Returns:
            A new Fermi surface.
        """
        selected = select_bands(self.crossing_bands, enabled_bands)
        isosurfaces = {
            band_idx: self.isosurfaces[band_idx]
            if band_idx in self.isosurfaces
            else marching_cubes(self.grid, band_idx)
            for band_idx in selected
        }
        return replace(self, isosurfaces=isosurfaces)

    @property
    def enabled_bands(self) -> List[int]:
        """The bands with isosurfaces, in the order they were enabled."""
        return list(self.isosurfaces.keys())

    @property
    def grid_size(self) -> Tuple[int, int, int]:
        """The dimensions of the energy grid."""
        return self.grid.dim

    @property
    def band_colors(self) -> Dict[int, str]:
        """The display color of each enabled band."""
        return {
            band_idx: BAND_COLORS[i % len(BAND_COLORS)]
            for i, band_idx in enumerate(self.enabled_bands)
        }

    @property
    def summary(self) -> Dict[str, object]:
        """Summary of the Fermi surface for display."""
        return {
            "case_name": self.case_name,
            "fermi_energy": self.fermi_energy,
            "n_bands": self.n_bands,
            "n_irreducible": self.n_irreducible,
            "n_kpoints": self.n_kpoints,
            "grid_size": self.grid_size,
            "crossing_bands": list(self.crossing_bands),
            "enabled_bands": list(self.enabled_bands),
        }

    def cartesian_vertices_faces(self) -> Dict[int, Tuple[np.ndarray, np.ndarray]]:
        """
        Get the vertices and faces of the enabled isosurfaces.

        Returns:
            A dictionary of ``{band_idx: (vertices, faces)}``. The vertices are in
            Cartesian coordinates if the reciprocal lattice is known and in
            fractional coordinates otherwise.
        """
        vertices_faces = {}
        for band_idx, isosurface in self.isosurfaces.items():
            vertices, _ = isosurface.get_cartesian_vertices(self.reciprocal_lattice)
            vertices_faces[band_idx] = (vertices, isosurface.faces)
        return vertices_faces

    @classmethod
    def from_dict(cls, d) -> "FermiSurface":
        """Return FermiSurface object from dict."""
        fs = super().from_dict(d)
        fs.isosurfaces = {int(k): v for k, v in fs.isosurfaces.items()}
        return fs

    def as_dict(self) -> dict:
        """Get a json-serializable dict representation of FermiSurface."""
        d = super().as_dict()
        d["isosurfaces"] = {str(b): iso for b, iso in self.isosurfaces.items()}
        return jsanitize(d, strict=True)
