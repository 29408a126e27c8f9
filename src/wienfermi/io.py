"""
Parsers for the text output of the WIEN2k electronic structure code.

Two sets of files can be used to reconstruct a Fermi surface:

- The generic set: ``case.klist`` (irreducible k-points), ``case.energy`` or
  ``case.energyso`` (eigenvalues), ``case.scf`` (Fermi energy) and ``case.struct``
  (lattice parameters and symmetry operations). The irreducible k-points must be
  expanded to the full Brillouin zone using the symmetry operations.
- The relation set: ``case.output1`` (eigenvalues), ``case.output2`` (Fermi energy)
  and ``case.outputkgen`` (the full k-point mesh with the relation of every mesh
  point to its irreducible representative).

Lines are classified by small matcher functions tried in a fixed order. Each matcher
returns a :class:`ParsedLine` if it recognises the line and ``None`` otherwise.
Lines that no matcher recognises are skipped.
"""

import re
import warnings
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from monty.io import zopen
from monty.json import MSONable
from pymatgen.core import Lattice

from wienfermi.defaults import (
    BOHR_TO_ANGSTROM,
    ENERGY_HEADER_LINES,
    RY_TO_EV,
    SOURCE_GRID_SIZE,
    TOTAL_KPOINTS,
)
from wienfermi.exceptions import (
    DimensionMismatchError,
    MissingSectionError,
    UnreadableInputError,
)
from wienfermi.kpoints import IrreducibleKPoint
from wienfermi.symmetry import SymmetryOperation

__all__ = [
    "LineKind",
    "ParsedLine",
    "classify_line",
    "LatticeParameters",
    "KlistData",
    "KgenMesh",
    "IrreducibleData",
    "RelationData",
    "read_text",
    "parse_klist",
    "parse_energy",
    "parse_fermi_energy",
    "parse_symmetry_row",
    "parse_struct",
    "parse_output1",
    "parse_outputkgen",
    "truncate_band_counts",
    "load_irreducible_data",
    "load_relation_data",
    "detect_file_type",
    "extract_case_name",
]

_float = r"[-+]?\d*\.\d+(?:[EeDd][-+]?\d+)?"

_energy_header_re = re.compile(
    rf"^\s*({_float})\s*({_float})\s*({_float})\s+(\S+)\s+(\d+)\s+(\d+)\s+(\S+)"
)
_band_energy_re = re.compile(rf"^\s*(\d+)\s+({_float})")
_fermi_re = re.compile(r":FER\s*:\s*F\s*E\s*R\s*M\s*I.*?=\s*([-\d.]+)", re.IGNORECASE)
_div_re = re.compile(r"div:\s*\(\s*(\d+)\s+(\d+)\s+(\d+)\s*\)")
_total_re = re.compile(r"(\d+)\s+k,")
_symmetry_header_re = re.compile(
    r"(\d+)\s+NUMBER OF SYMMETRY OPERATIONS", re.IGNORECASE
)
_symmetry_row_re = re.compile(r"(-?\d)\s*(-?\d)\s*(-?\d)\s*([-+]?\d*\.\d+)")
_output1_value_re = re.compile(r"[-+]?\d*\.?\d+(?:[Ee][+-]?\d+)?")
_int_prefix_re = re.compile(r"[-+]?\d+")
_kgen_basis_re = re.compile(r"\bG1\b\s+G2\s+G3")

SYMMETRY_SECTION = "NUMBER OF SYMMETRY OPERATIONS"
DIVISION_SECTION = "DIVISION OF RECIPROCAL LATTICE VECTORS"
RELATION_SECTION = "point coordinates relation"


class LineKind(Enum):
    """The kind of a classified line."""

    RECORD = "record"
    SKIP = "skip"
    BOUNDARY = "boundary"


@dataclass(frozen=True)
class ParsedLine:
    """
    A classified line.

    Attributes:
        kind: Whether the line is a record, a section boundary or should be skipped.
        tag: The name of the matcher that recognised the line.
        value: The data parsed from the line, if any.
    """

    kind: LineKind
    tag: str = ""
    value: Any = None


LineMatcher = Callable[[str], Optional[ParsedLine]]

_SKIP = ParsedLine(LineKind.SKIP)


def classify_line(line: str, matchers: Sequence[LineMatcher]) -> ParsedLine:
    """
    Classify a line using the first matcher that recognises it.

    Args:
        line: The line of text.
        matchers: Matcher functions in priority order.

    Returns:
        The parsed line. Lines that no matcher recognises are skipped.
    """
    for matcher in matchers:
        parsed = matcher(line)
        if parsed is not None:
            return parsed
    return _SKIP


@dataclass
class LatticeParameters(MSONable):
    """
    Lattice parameters as written in a structure file.

    Attributes:
        a: The length of the first lattice vector in bohr.
        b: The length of the second lattice vector in bohr.
        c: The length of the third lattice vector in bohr.
        alpha: The angle between b and c in degrees.
        beta: The angle between a and c in degrees.
        gamma: The angle between a and b in degrees.
    """

    a: float = 1.0
    b: float = 1.0
    c: float = 1.0
    alpha: float = 90.0
    beta: float = 90.0
    gamma: float = 90.0

    @property
    def lattice(self) -> Lattice:
        """The real space lattice, with lengths in Å."""
        return Lattice.from_parameters(
            self.a * BOHR_TO_ANGSTROM,
            self.b * BOHR_TO_ANGSTROM,
            self.c * BOHR_TO_ANGSTROM,
            self.alpha,
            self.beta,
            self.gamma,
        )

    @property
    def reciprocal_lattice(self) -> np.ndarray:
        """A (3, 3) float array of the reciprocal lattice vectors in Å⁻¹."""
        return self.lattice.reciprocal_lattice.matrix


@dataclass
class KlistData(MSONable):
    """
    The contents of a k-point list.

    Attributes:
        frac_coords: A (n, 3) float array of the fractional k-point coordinates.
        weights: A (n, ) float array of the k-point multiplicities.
        labels: The labels of the labelled k-points, keyed by k-point index.
        grid_size: The division of the k-point mesh.
        total_kpoints: The number of k-points in the full mesh.
    """

    frac_coords: np.ndarray
    weights: np.ndarray
    labels: Dict[int, str] = field(default_factory=dict)
    grid_size: int = SOURCE_GRID_SIZE
    total_kpoints: int = TOTAL_KPOINTS

    @property
    def n_kpoints(self) -> int:
        return len(self.frac_coords)


@dataclass
class KgenMesh(MSONable):
    """
    The full k-point mesh listed by the k-mesh generator.

    Attributes:
        dim: The mesh dimensions ``(nx, ny, nz)``.
        grid_coords: A (nx * ny * nz, 3) int array of the integer grid coordinates
            of each mesh point, in listing order.
        relations: A (nx * ny * nz, ) int array of the 1-based index of the mesh
            point each point is related to.
        reciprocal_vectors: A (3, 3) float array of the reciprocal basis vectors,
            or ``None`` if the listing does not contain them.
    """

    dim: Tuple[int, int, int]
    grid_coords: np.ndarray
    relations: np.ndarray
    reciprocal_vectors: Optional[np.ndarray] = None

    def __post_init__(self):
        self.dim = tuple(int(n) for n in self.dim)
        self.grid_coords = np.array(self.grid_coords, dtype=int).reshape(-1, 3)
        self.relations = np.array(self.relations, dtype=int)
        if self.reciprocal_vectors is not None:
            self.reciprocal_vectors = np.array(self.reciprocal_vectors, dtype=float)

    @property
    def n_points(self) -> int:
        return len(self.relations)


@dataclass
class IrreducibleData(MSONable):
    """
    Data needed to build a Fermi surface from irreducible k-points.

    Attributes:
        fermi_energy: The Fermi energy in eV.
        kpoints: The irreducible k-points with their band energies.
        n_bands: The number of bands at every k-point with energies.
        symmetry_ops: The symmetry operations of the crystal.
        lattice_parameters: The lattice parameters.
        grid_size: The division of the k-point mesh of the calculation.
        total_kpoints: The number of k-points in the full mesh of the calculation.
        case_name: The name of the calculation.
    """

    fermi_energy: float
    kpoints: List[IrreducibleKPoint]
    n_bands: int
    symmetry_ops: List[SymmetryOperation]
    lattice_parameters: LatticeParameters = field(default_factory=LatticeParameters)
    grid_size: int = SOURCE_GRID_SIZE
    total_kpoints: int = TOTAL_KPOINTS
    case_name: str = ""


@dataclass
class RelationData(MSONable):
    """
    Data needed to build a Fermi surface from a k-point relation table.

    Attributes:
        fermi_energy: The Fermi energy in eV.
        energies: A (nkpoints, nbands) float array of the band energies of the
            irreducible k-points in eV.
        mesh: The full k-point mesh and its relation table.
        case_name: The name of the calculation.
    """

    fermi_energy: float
    energies: np.ndarray
    mesh: KgenMesh
    case_name: str = ""

    def __post_init__(self):
        self.energies = np.array(self.energies, dtype=float)
        if self.energies.ndim == 1 and self.energies.size == 0:
            self.energies = self.energies.reshape(0, 0)

        if self.energies.ndim != 2:
            raise DimensionMismatchError(
                "Energies must be given as a (nkpoints, nbands) array"
            )

    @property
    def n_bands(self) -> int:
        return self.energies.shape[1]

    @property
    def n_irreducible(self) -> int:
        return self.energies.shape[0]


def read_text(filename: Union[str, Path]) -> str:
    """
    Read a text file, which may be compressed.

    Args:
        filename: Path to the file.

    Returns:
        The file contents.
    """
    try:
        with zopen(filename, "rt", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as exc:
        raise UnreadableInputError(f"{filename} is not a text file") from exc


def _check_content(content: str, description: str) -> str:
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise UnreadableInputError(f"{description} is not text") from exc

    if not isinstance(content, str):
        raise UnreadableInputError(f"{description} is not text")

    if not content.strip():
        raise UnreadableInputError(f"{description} is empty")

    return content


def _match_klist_end(line: str) -> Optional[ParsedLine]:
    if line.strip() == "END":
        return ParsedLine(LineKind.BOUNDARY, "end")
    return None


def _match_klist_record(line: str) -> Optional[ParsedLine]:
    # label/index, kx * d, ky * d, kz * d, d, weight, [annotations]
    parts = line.split()
    if len(parts) < 6:
        return None

    try:
        coords = [int(p) for p in parts[1:4]]
        div = int(parts[4])
        weight = float(parts[5])
    except ValueError:
        return None

    if div == 0:
        return None

    frac_coords = tuple(c / div for c in coords)
    return ParsedLine(LineKind.RECORD, "kpoint", (parts[0], frac_coords, weight))


def parse_klist(content: str) -> KlistData:
    """
    Parse a k-point list (``case.klist``).

    Each record holds the integer coordinates ``kx·d ky·d kz·d``, the divisor ``d``
    and the weight. The first record may be annotated with the total number of
    k-points and the mesh division, e.g. ``1000 k, div: ( 10 10 10)``. Parsing stops
    at the ``END`` line. Malformed records are skipped.

    Args:
        content: The contents of the k-point list.

    Returns:
        The k-point list data.
    """
    content = _check_content(content, "k-point list")
    matchers = (_match_klist_end, _match_klist_record)

    frac_coords = []
    weights = []
    labels = {}
    grid_size = SOURCE_GRID_SIZE
    total_kpoints = TOTAL_KPOINTS
    for line in content.splitlines():
        parsed = classify_line(line, matchers)
        if parsed.kind == LineKind.BOUNDARY:
            break

        if parsed.kind == LineKind.SKIP:
            continue

        label, coords, weight = parsed.value
        if len(frac_coords) == 0:
            div_match = _div_re.search(line)
            if div_match:
                grid_size = int(div_match.group(1))

            total_match = _total_re.search(line)
            if total_match:
                total_kpoints = int(total_match.group(1))

        if not label.lstrip("-").isdigit():
            labels[len(frac_coords)] = label

        frac_coords.append(coords)
        weights.append(weight)

    return KlistData(
        frac_coords=np.array(frac_coords, dtype=float).reshape(-1, 3),
        weights=np.array(weights, dtype=float),
        labels=labels,
        grid_size=grid_size,
        total_kpoints=total_kpoints,
    )


def _to_float(value: str) -> float:
    return float(value.replace("D", "E").replace("d", "e"))


def _match_energy_header(line: str) -> Optional[ParsedLine]:
    match = _energy_header_re.match(line)
    if not match:
        return None

    try:
        frac_coords = tuple(_to_float(match.group(i)) for i in (1, 2, 3))
        n_bands = int(match.group(6))
        weight = _to_float(match.group(7))
    except ValueError:
        return None

    return ParsedLine(LineKind.RECORD, "kpoint", (frac_coords, n_bands, weight))


def parse_energy(content: str, header_lines: int = 0) -> List[IrreducibleKPoint]:
    """
    Parse an eigenvalue file (``case.energy`` or ``case.energyso``).

    Each k-point starts with a header line ``kx ky kz name nPW nBands weight``
    followed by ``nBands`` lines of ``bandIndex energy``. The header fields may be
    written without separating whitespace (e.g. ``0.5E+00-0.5E+00``). Energies are
    converted from Rydberg to eV. Band lines that cannot be parsed are skipped.

    Args:
        content: The contents of the eigenvalue file.
        header_lines: The number of lines to skip at the top of the file.

    Returns:
        The k-points in file order, with their band energies in eV.
    """
    content = _check_content(content, "eigenvalue file")
    lines = content.splitlines()

    kpoints = []
    i = header_lines
    while i < len(lines):
        parsed = classify_line(lines[i], (_match_energy_header,))
        i += 1
        if parsed.kind != LineKind.RECORD:
            continue

        frac_coords, n_bands, weight = parsed.value
        energies = []
        for band_line in lines[i : i + n_bands]:
            match = _band_energy_re.match(band_line)
            if match:
                energies.append(_to_float(match.group(2)) * RY_TO_EV)
        i += n_bands

        kpoints.append(IrreducibleKPoint(frac_coords, weight, energies))

    return kpoints


def _match_fermi(line: str) -> Optional[ParsedLine]:
    match = _fermi_re.search(line)
    if not match:
        return None

    try:
        return ParsedLine(LineKind.RECORD, "fermi", float(match.group(1)))
    except ValueError:
        return None


def parse_fermi_energy(content: str, filename: str = "") -> float:
    """
    Parse the Fermi energy from a self-consistent field log or ``case.output2``.

    The energy is read from lines such as
    ``:FER  : F E R M I - ENERGY(TETRAH.M.)=   0.4931865487``. The last such line
    holds the converged value. If no line is found, a warning is issued and a Fermi
    energy of 0 is returned.

    Args:
        content: The file contents.
        filename: Description of the file, used in the warning.

    Returns:
        The Fermi energy in eV.
    """
    fermi_energy = None
    for line in content.splitlines():
        parsed = classify_line(line, (_match_fermi,))
        if parsed.kind == LineKind.RECORD:
            fermi_energy = parsed.value

    if fermi_energy is None:
        where = f" in {filename}" if filename else ""
        warnings.warn(f"No Fermi energy found{where}, using 0 eV.")
        return 0.0

    return fermi_energy * RY_TO_EV


def parse_symmetry_row(line: str) -> Optional[Tuple[Tuple[int, int, int], float]]:
    """
    Parse one row of a symmetry operation.

    Rows hold three single digit integers and a translation, e.g.
    ``" 0-1 0 0.00000000"``. The integers may not be separated by whitespace.

    Args:
        line: The row.

    Returns:
        The rotation row and translation component, or ``None`` if the line cannot
        be parsed.
    """
    match = _symmetry_row_re.search(line)
    if not match:
        return None

    rotation = tuple(int(match.group(i)) for i in (1, 2, 3))
    return rotation, float(match.group(4))


def _parse_lattice_line(line: str) -> Optional[LatticeParameters]:
    parts = line.split()
    if len(parts) < 6:
        # lattice parameters are written as fixed width 10 character fields
        parts = [line[i : i + 10] for i in range(0, 60, 10)]

    try:
        values = [float(p) for p in parts[:6]]
    except ValueError:
        return None

    return LatticeParameters(*values)


def parse_struct(content: str) -> Tuple[List[SymmetryOperation], LatticeParameters]:
    """
    Parse the symmetry operations and lattice parameters from ``case.struct``.

    The lattice parameters ``a b c α β γ`` are read from the fourth line. The
    symmetry operations follow a ``N NUMBER OF SYMMETRY OPERATIONS`` line; each
    operation occupies 4 lines, three rotation rows and an operation index.
    Operations with malformed rows are skipped.

    Args:
        content: The contents of the structure file.

    Returns:
        The symmetry operations and the lattice parameters. The lattice parameters
        default to a unit cube if the lattice line cannot be parsed.

    Raises:
        MissingSectionError: If the symmetry operation header is not found.
    """
    content = _check_content(content, "structure file")
    lines = content.splitlines()

    lattice_parameters = None
    if len(lines) > 3:
        lattice_parameters = _parse_lattice_line(lines[3])
    if lattice_parameters is None:
        lattice_parameters = LatticeParameters()

    start = None
    n_ops = 0
    for i, line in enumerate(lines):
        match = _symmetry_header_re.search(line)
        if match:
            n_ops = int(match.group(1))
            start = i + 1
            break

    if start is None:
        raise MissingSectionError(SYMMETRY_SECTION, "structure file")

    symmetry_ops = []
    for op_idx in range(n_ops):
        op_start = start + op_idx * 4
        if op_start + 3 > len(lines):
            break

        rows = [parse_symmetry_row(line) for line in lines[op_start : op_start + 3]]
        if any(row is None for row in rows):
            continue

        rotation = [row[0] for row in rows]
        translation = [row[1] for row in rows]
        symmetry_ops.append(SymmetryOperation(rotation, translation))

    return symmetry_ops, lattice_parameters


def truncate_band_counts(
    energies: Sequence[Sequence[float]],
) -> Tuple[List[Tuple[float, ...]], int]:
    """
    Truncate band energies so every k-point has the same number of bands.

    The number of bands is the minimum over the k-points that have energies. A
    warning is issued if any bands are dropped. K-points without energies are left
    empty.

    Args:
        energies: The band energies of each k-point.

    Returns:
        The truncated energies and the number of bands.
    """
    counts = [len(e) for e in energies if len(e) > 0]
    if not counts:
        return [tuple(e) for e in energies], 0

    n_bands = min(counts)
    if max(counts) != n_bands:
        warnings.warn(
            "Number of bands varies between k-points ({} to {}), only the lowest {} "
            "bands will be used.".format(n_bands, max(counts), n_bands)
        )

    return [tuple(e[:n_bands]) for e in energies], n_bands


def _match_output1_kpoint(line: str) -> Optional[ParsedLine]:
    if re.match(r"^\s*K=", line):
        return ParsedLine(LineKind.BOUNDARY, "kpoint")
    return None


def _match_output1_start(line: str) -> Optional[ParsedLine]:
    if "EIGENVALUES ARE" in line:
        return ParsedLine(LineKind.BOUNDARY, "start")
    return None


def _match_output1_end(line: str) -> Optional[ParsedLine]:
    if "EIGENVALUES BELOW" in line:
        return ParsedLine(LineKind.BOUNDARY, "end")
    return None


def _match_output1_values(line: str) -> Optional[ParsedLine]:
    values = []
    for token in _output1_value_re.findall(line):
        try:
            values.append(float(token) * RY_TO_EV)
        except ValueError:
            continue
    return ParsedLine(LineKind.RECORD, "values", values)


def parse_output1(content: str) -> np.ndarray:
    """
    Parse the band energies of the irreducible k-points from ``case.output1``.

    Each k-point block starts with a ``K=`` line. The energies in Rydberg are read
    from the region between the ``EIGENVALUES ARE`` and ``EIGENVALUES BELOW``
    markers. Blocks without energies are dropped and all k-points are truncated to
    the smallest number of bands found.

    Args:
        content: The contents of the output file.

    Returns:
        A (nkpoints, nbands) float array of energies in eV.
    """
    content = _check_content(content, "eigenvalue output")
    block_matchers = (_match_output1_kpoint, _match_output1_start, _match_output1_end)
    value_matchers = block_matchers + (_match_output1_values,)

    blocks = []
    current = None
    in_energies = False
    for line in content.splitlines():
        parsed = classify_line(line, value_matchers if in_energies else block_matchers)

        if parsed.tag == "kpoint":
            if current:
                blocks.append(current)
            current = []
            in_energies = False
        elif parsed.tag == "start":
            in_energies = True
        elif parsed.tag == "end":
            in_energies = False
        elif parsed.tag == "values" and current is not None:
            current.extend(parsed.value)

    if current:
        blocks.append(current)

    if not blocks:
        warnings.warn("No eigenvalues found in eigenvalue output.")
        return np.zeros((0, 0))

    energies, n_bands = truncate_band_counts(blocks)
    return np.array(energies, dtype=float).reshape(len(energies), n_bands)


def _parse_float_line(line: str) -> List[float]:
    values = []
    for token in line.split():
        try:
            values.append(float(token))
        except ValueError:
            continue
    return values


def _parse_int_prefixes(line: str) -> List[int]:
    values = []
    for token in line.split():
        match = _int_prefix_re.match(token)
        if match:
            values.append(int(match.group()))
    return values


def parse_outputkgen(content: str) -> KgenMesh:
    """
    Parse the full k-point mesh and relation table from ``case.outputkgen``.

    The reciprocal basis vectors are read from the 3 lines following the
    ``G1 G2 G3`` header. The mesh dimensions are the last three integers of the
    ``DIVISION OF RECIPROCAL LATTICE VECTORS`` line, each incremented by one. The
    ``nx·ny·nz`` mesh rows ``pointIndex x y z relation`` follow the
    ``point coordinates relation`` header.

    Args:
        content: The contents of the k-mesh generator output.

    Returns:
        The k-point mesh.

    Raises:
        MissingSectionError: If the mesh division line is not found.
        DimensionMismatchError: If there are fewer mesh rows than mesh points.
    """
    content = _check_content(content, "k-mesh output")
    lines = content.splitlines()

    reciprocal_vectors = None
    for i, line in enumerate(lines):
        if _kgen_basis_re.search(line):
            vectors = [_parse_float_line(v) for v in lines[i + 1 : i + 4]]
            if len(vectors) == 3 and all(len(v) == 3 for v in vectors):
                reciprocal_vectors = np.array(vectors)
                break

    dim = None
    for line in lines:
        if DIVISION_SECTION in line:
            ints = _parse_int_prefixes(line)
            if len(ints) >= 3:
                dim = tuple(n + 1 for n in ints[-3:])
            break

    if dim is None or min(dim) < 1:
        raise MissingSectionError(DIVISION_SECTION, "k-mesh output")

    header_idx = next(
        (
            i
            for i, line in enumerate(lines)
            if "point" in line and "coordinates" in line and "relation" in line
        ),
        None,
    )
    if header_idx is None:
        header_idx = next(
            (i for i, line in enumerate(lines) if line.strip().startswith("point")),
            None,
        )
    start = 0 if header_idx is None else header_idx + 1

    n_points = int(np.prod(dim))
    rows = []
    for line in lines[start:]:
        if len(rows) == n_points:
            break

        parts = line.split()
        if len(parts) < 5:
            continue

        try:
            values = [float(p) for p in parts]
        except ValueError:
            continue

        rows.append([int(v) for v in values[1:5]])

    if len(rows) < n_points:
        raise DimensionMismatchError(
            f"Expected {n_points} k-point mesh rows, found {len(rows)}."
        )

    rows = np.array(rows, dtype=int)
    return KgenMesh(
        dim=dim,
        grid_coords=rows[:, :3],
        relations=rows[:, 3],
        reciprocal_vectors=reciprocal_vectors,
    )


def load_irreducible_data(
    klist: str,
    energy: str,
    scf: str,
    struct: str,
    case_name: str = "",
    spin_orbit: bool = True,
) -> IrreducibleData:
    """
    Combine the generic set of files into irreducible k-point data.

    The k-points of the k-point list are matched to the records of the eigenvalue
    file by order. K-points without a matching record have no energies.

    Args:
        klist: The contents of ``case.klist``.
        energy: The contents of ``case.energyso`` or ``case.energy``.
        scf: The contents of ``case.scf``.
        struct: The contents of ``case.struct``.
        case_name: The name of the calculation.
        spin_orbit: Whether the eigenvalue file is a spin-orbit file, which starts
            with header lines that must be skipped.

    Returns:
        The irreducible k-point data.
    """
    klist_data = parse_klist(klist)
    header_lines = ENERGY_HEADER_LINES if spin_orbit else 0
    energy_kpoints = parse_energy(energy, header_lines=header_lines)
    fermi_energy = parse_fermi_energy(scf, filename="self-consistent field log")
    symmetry_ops, lattice_parameters = parse_struct(struct)

    if len(energy_kpoints) != klist_data.n_kpoints:
        warnings.warn(
            "Found {} k-points in the k-point list but {} in the eigenvalue "
            "file.".format(klist_data.n_kpoints, len(energy_kpoints))
        )

    energies = [
        energy_kpoints[i].energies if i < len(energy_kpoints) else ()
        for i in range(klist_data.n_kpoints)
    ]
    energies, n_bands = truncate_band_counts(energies)

    kpoints = [
        IrreducibleKPoint(frac_coords, weight, kpoint_energies)
        for frac_coords, weight, kpoint_energies in zip(
            klist_data.frac_coords, klist_data.weights, energies
        )
    ]

    return IrreducibleData(
        fermi_energy=fermi_energy,
        kpoints=kpoints,
        n_bands=n_bands,
        symmetry_ops=symmetry_ops,
        lattice_parameters=lattice_parameters,
        grid_size=klist_data.grid_size,
        total_kpoints=klist_data.total_kpoints,
        case_name=case_name,
    )


def load_relation_data(
    output1: str, output2: str, outputkgen: str, case_name: str = ""
) -> RelationData:
    """
    Combine the relation set of files into relation table data.

    Args:
        output1: The contents of ``case.output1``.
        output2: The contents of ``case.output2``.
        outputkgen: The contents of ``case.outputkgen``.
        case_name: The name of the calculation.

    Returns:
        The relation table data.
    """
    return RelationData(
        fermi_energy=parse_fermi_energy(output2, filename="eigenvalue summary"),
        energies=parse_output1(output1),
        mesh=parse_outputkgen(outputkgen),
        case_name=case_name,
    )


_extension_types = (
    (re.compile(r"\.klist$"), "klist"),
    (re.compile(r"\.energyso(up|dn)?$"), "energyso"),
    (re.compile(r"\.energy(up|dn)?$"), "energy"),
    (re.compile(r"\.scf(\d*|so)$"), "scf"),
    (re.compile(r"\.output1(up|dn)?$"), "output1"),
    (re.compile(r"\.output2(up|dn)?$"), "output2"),
    (re.compile(r"\.outputkgen$"), "outputkgen"),
)

_case_extension_re = re.compile(
    r"\.(klist|energy(so)?(up|dn)?|scf(\d|c|m|q|so)?|struct(_ii|_nn|_st)?|"
    r"output(1|2)(up|dn)?|outputkgen)$",
    re.IGNORECASE,
)


def detect_file_type(content: str, filename: str) -> str:
    """
    Detect the type of a WIEN2k file.

    The file extension is checked first, then the file contents.

    Args:
        content: The file contents.
        filename: The file name.

    Returns:
        One of ``"klist"``, ``"energy"``, ``"energyso"``, ``"scf"``, ``"struct"``,
        ``"output1"``, ``"output2"``, ``"outputkgen"`` or ``"unknown"``.
    """
    name = re.sub(r"\.gz$", "", Path(filename).name.lower())

    for extension_re, file_type in _extension_types:
        if extension_re.search(name):
            return file_type

    if name.endswith(".struct") and "_nn" not in name and "_st" not in name:
        return "struct"

    if "EIGENVALUES ARE" in content:
        return "output1"
    if DIVISION_SECTION in content:
        return "outputkgen"
    if ":FER" in content:
        return "scf"
    if SYMMETRY_SECTION in content:
        return "struct"
    if "END" in content and re.search(r"\d+\s+\d+\s+\d+\s+\d+\s+\d+", content):
        return "klist"
    if re.search(rf"{_float}\s*{_float}\s*{_float}\s+\S+\s+\d+\s+\d+", content):
        return "energyso"

    return "unknown"


def extract_case_name(filename: str) -> str:
    """
    Get the case name from a WIEN2k file name.

    For example, ``"LaSb_try3.klist"`` gives ``"LaSb_try3"``.

    Args:
        filename: The file name.

    Returns:
        The file name with any WIEN2k extension removed.
    """
    name = re.sub(r"\.gz$", "", Path(filename).name)
    return _case_extension_re.sub("", name)
