import tempfile
import unittest
from pathlib import Path

import numpy as np
from monty.io import zopen

from wienfermi.defaults import RY_TO_EV, SOURCE_GRID_SIZE, TOTAL_KPOINTS
from wienfermi.exceptions import (
    DimensionMismatchError,
    MissingSectionError,
    UnreadableInputError,
)
from wienfermi.io import (
    SYMMETRY_SECTION,
    LatticeParameters,
    LineKind,
    ParsedLine,
    classify_line,
    detect_file_type,
    extract_case_name,
    load_irreducible_data,
    load_relation_data,
    parse_energy,
    parse_fermi_energy,
    parse_klist,
    parse_output1,
    parse_outputkgen,
    parse_struct,
    parse_symmetry_row,
    read_text,
    truncate_band_counts,
)

test_dir = Path(__file__).resolve().parent / "simple"


def read_fixture(extension):
    return read_text(test_dir / f"simple.{extension}")


class ClassifyLineTest(unittest.TestCase):
    def test_first_match_wins(self):
        def match_a(line):
            return ParsedLine(LineKind.RECORD, "a") if "a" in line else None

        def match_b(line):
            return ParsedLine(LineKind.BOUNDARY, "b") if "b" in line else None

        self.assertEqual(classify_line("ab", (match_a, match_b)).tag, "a")
        self.assertEqual(classify_line("ab", (match_b, match_a)).tag, "b")
        self.assertEqual(classify_line("c", (match_a, match_b)).kind, LineKind.SKIP)


class ReadTextTest(unittest.TestCase):
    def test_read_text(self):
        content = read_text(test_dir / "simple.scf")
        self.assertIn(":FER", content)

    def test_read_gzipped(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            filename = Path(tmp_dir) / "case.scf.gz"
            with zopen(filename, "wt", encoding="utf-8") as f:
                f.write(read_fixture("scf"))

            self.assertEqual(read_text(filename), read_fixture("scf"))

    def test_binary_file(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            filename = Path(tmp_dir) / "case.klist"
            filename.write_bytes(b"\xff\xfe\x00\x81\x90")

            with self.assertRaises(UnreadableInputError):
                read_text(filename)

    def test_empty_content(self):
        with self.assertRaises(UnreadableInputError):
            parse_klist("")

        with self.assertRaises(UnreadableInputError):
            parse_struct("   \n\n")

        with self.assertRaises(UnreadableInputError):
            parse_output1(b"\xff\xfe")


class KlistTest(unittest.TestCase):
    def test_parse_klist(self):
        klist = parse_klist(read_fixture("klist"))

        self.assertEqual(klist.n_kpoints, 4)
        np.testing.assert_array_almost_equal(
            klist.frac_coords,
            [[0, 0, 0], [0.5, 0, 0], [0.5, 0.5, 0], [0.5, 0.5, 0.5]],
        )
        np.testing.assert_array_almost_equal(klist.weights, [1, 3, 3, 1])
        self.assertEqual(klist.grid_size, 2)
        self.assertEqual(klist.total_kpoints, 8)
        self.assertEqual(klist.labels, {})

    def test_labels_and_malformed_records(self):
        content = "\n".join(
            [
                "GAMMA     0     0     0     4  1.0",
                "X         2     0     0     4  3.0",
                "not a k-point",
                "3         1     1     0     0  1.0",
                "4         1     1     1     4  1.0",
                "END",
                "5         1     1     1     4  1.0",
            ]
        )
        klist = parse_klist(content)

        self.assertEqual(klist.n_kpoints, 3)
        self.assertEqual(klist.labels, {0: "GAMMA", 1: "X"})
        np.testing.assert_array_almost_equal(klist.frac_coords[2], [0.25, 0.25, 0.25])

        # without annotations the defaults are used
        self.assertEqual(klist.grid_size, SOURCE_GRID_SIZE)
        self.assertEqual(klist.total_kpoints, TOTAL_KPOINTS)


class EnergyTest(unittest.TestCase):
    def test_parse_energyso(self):
        kpoints = parse_energy(read_fixture("energyso"), header_lines=4)

        self.assertEqual(len(kpoints), 4)
        np.testing.assert_array_almost_equal(kpoints[1].frac_coords, [0.5, 0, 0])
        self.assertEqual(kpoints[1].weight, 3.0)
        np.testing.assert_array_almost_equal(
            kpoints[0].energies, np.array([-0.5, 0.3, 1.0]) * RY_TO_EV
        )

    def test_concatenated_header(self):
        content = (
            " 0.500000000000E+00-0.500000000000E+00 0.000000000000E+00"
            "         X    50     2  8.0\n"
            "           1  -0.1D+00\n"
            "           2   0.2000000000\n"
        )
        kpoints = parse_energy(content)

        self.assertEqual(len(kpoints), 1)
        np.testing.assert_array_almost_equal(kpoints[0].frac_coords, [0.5, -0.5, 0])
        self.assertEqual(kpoints[0].weight, 8.0)
        np.testing.assert_array_almost_equal(
            kpoints[0].energies, np.array([-0.1, 0.2]) * RY_TO_EV
        )

    def test_malformed_band_line(self):
        content = (
            " 0.0E+00 0.0E+00 0.0E+00    1   50     3  1.0\n"
            "           1   0.1000000000\n"
            "  garbage\n"
            "           3   0.3000000000\n"
            " 0.5E+00 0.0E+00 0.0E+00    2   50     1  1.0\n"
            "           1   0.4000000000\n"
        )
        kpoints = parse_energy(content)

        self.assertEqual(len(kpoints), 2)
        self.assertEqual(kpoints[0].n_bands, 2)
        self.assertAlmostEqual(kpoints[1].energies[0], 0.4 * RY_TO_EV)


class FermiEnergyTest(unittest.TestCase):
    def test_last_value_used(self):
        fermi_energy = parse_fermi_energy(read_fixture("scf"))
        self.assertAlmostEqual(fermi_energy, 0.5 * RY_TO_EV)

    def test_missing_fermi_energy(self):
        with self.assertWarns(UserWarning):
            fermi_energy = parse_fermi_energy("no energy here", filename="case.scf")
        self.assertEqual(fermi_energy, 0)


class StructTest(unittest.TestCase):
    def test_parse_symmetry_row(self):
        self.assertEqual(parse_symmetry_row(" 0-1 0 0.00000000"), ((0, -1, 0), 0.0))
        self.assertEqual(parse_symmetry_row("-1 0 0 0.50000000"), ((-1, 0, 0), 0.5))
        self.assertIsNone(parse_symmetry_row("       1"))

    def test_parse_struct(self):
        symmetry_ops, lattice_parameters = parse_struct(read_fixture("struct"))

        self.assertEqual(len(symmetry_ops), 8)
        np.testing.assert_array_equal(symmetry_ops[0].rotation_matrix, np.eye(3))
        np.testing.assert_array_equal(symmetry_ops[-1].rotation_matrix, -np.eye(3))
        self.assertEqual(lattice_parameters.a, 7.5)
        self.assertEqual(lattice_parameters.gamma, 90)

    def test_fixed_width_lattice(self):
        content = "\n".join(
            [
                "title",
                "H   LATTICE,NONEQUIV.ATOMS:  1",
                "MODE OF CALC=RELA unit=bohr",
                "123.456789123.456789123.456789 90.000000 90.000000120.000000",
                "   0      NUMBER OF SYMMETRY OPERATIONS",
            ]
        )
        symmetry_ops, lattice_parameters = parse_struct(content)

        self.assertEqual(symmetry_ops, [])
        self.assertAlmostEqual(lattice_parameters.a, 123.456789)
        self.assertAlmostEqual(lattice_parameters.c, 123.456789)
        self.assertAlmostEqual(lattice_parameters.gamma, 120)

    def test_unparsable_lattice(self):
        content = "title\n\n\nno lattice\n   0      NUMBER OF SYMMETRY OPERATIONS\n"
        _, lattice_parameters = parse_struct(content)
        self.assertEqual(lattice_parameters, LatticeParameters())

    def test_missing_symmetry_section(self):
        with self.assertRaises(MissingSectionError) as context:
            parse_struct("title\nP LATTICE\nMODE\n 1 1 1 90 90 90\n")

        self.assertEqual(context.exception.section, SYMMETRY_SECTION)
        self.assertIn(SYMMETRY_SECTION, str(context.exception))

    def test_reciprocal_lattice(self):
        length = 1 / 0.529177210903
        lattice_parameters = LatticeParameters(length, length, length)
        np.testing.assert_array_almost_equal(
            lattice_parameters.reciprocal_lattice, 2 * np.pi * np.eye(3)
        )


class Output1Test(unittest.TestCase):
    def test_parse_output1(self):
        energies = parse_output1(read_fixture("output1"))

        self.assertEqual(energies.shape, (4, 3))
        np.testing.assert_array_almost_equal(
            energies[:, 1], np.array([0.3, 0.45, 0.55, 0.6]) * RY_TO_EV
        )

    def test_multiline_eigenvalues(self):
        content = (
            "     K=  0.0 0.0 0.0  1\n"
            "     EIGENVALUES ARE:\n"
            "      -0.5000000    0.3000000\n"
            "       1.0000000    1.2000000\n"
            "        ********\n"
            "        0 EIGENVALUES BELOW THE ENERGY  -9.00000\n"
        )
        energies = parse_output1(content)
        np.testing.assert_array_almost_equal(
            energies, np.array([[-0.5, 0.3, 1.0, 1.2]]) * RY_TO_EV
        )

    def test_band_counts_truncated(self):
        content = (
            "     K=  0.0 0.0 0.0  1\n"
            "     EIGENVALUES ARE:\n"
            "      -0.5000000    0.3000000    1.0000000\n"
            "        0 EIGENVALUES BELOW THE ENERGY  -9.00000\n"
            "     K=  0.5 0.0 0.0  2\n"
            "     EIGENVALUES ARE:\n"
            "      -0.4000000    0.4000000\n"
            "        0 EIGENVALUES BELOW THE ENERGY  -9.00000\n"
        )
        with self.assertWarns(UserWarning):
            energies = parse_output1(content)

        self.assertEqual(energies.shape, (2, 2))

    def test_no_eigenvalues(self):
        with self.assertWarns(UserWarning):
            energies = parse_output1("nothing to see here")

        self.assertEqual(energies.shape, (0, 0))

    def test_truncate_band_counts(self):
        energies, n_bands = truncate_band_counts([(1, 2, 3), (), (4, 5, 6)])
        self.assertEqual(n_bands, 3)
        self.assertEqual(energies, [(1, 2, 3), (), (4, 5, 6)])

        with self.assertWarns(UserWarning):
            energies, n_bands = truncate_band_counts([(1, 2, 3), (4, 5)])
        self.assertEqual(n_bands, 2)
        self.assertEqual(energies, [(1, 2), (4, 5)])


class OutputKgenTest(unittest.TestCase):
    def test_parse_outputkgen(self):
        mesh = parse_outputkgen(read_fixture("outputkgen"))

        self.assertEqual(mesh.dim, (2, 2, 2))
        self.assertEqual(mesh.n_points, 8)
        np.testing.assert_array_equal(mesh.grid_coords[3], [1, 1, 0])
        np.testing.assert_array_equal(mesh.relations, [1, 2, 2, 4, 2, 4, 4, 8])
        np.testing.assert_array_almost_equal(mesh.reciprocal_vectors, np.eye(3))

    def test_without_row_header(self):
        content = (
            "  DIVISION OF RECIPROCAL LATTICE VECTORS (INTERVALS)=   0   0   1\n"
            "     1     0     0     0     1\n"
            "     2     0     0     1     2\n"
        )
        mesh = parse_outputkgen(content)

        self.assertEqual(mesh.dim, (1, 1, 2))
        self.assertIsNone(mesh.reciprocal_vectors)
        np.testing.assert_array_equal(mesh.grid_coords, [[0, 0, 0], [0, 0, 1]])

    def test_missing_division(self):
        with self.assertRaises(MissingSectionError):
            parse_outputkgen("  point     coordinates    relation\n 1 0 0 0 1\n")

    def test_too_few_rows(self):
        content = (
            "  DIVISION OF RECIPROCAL LATTICE VECTORS (INTERVALS)=   1   1   1\n"
            "  point     coordinates    relation\n"
            "     1     0     0     0     1\n"
            "     2     1     0     0     2\n"
        )
        with self.assertRaises(DimensionMismatchError):
            parse_outputkgen(content)


class LoadDataTest(unittest.TestCase):
    def test_load_irreducible_data(self):
        data = load_irreducible_data(
            read_fixture("klist"),
            read_fixture("energyso"),
            read_fixture("scf"),
            read_fixture("struct"),
            case_name="simple",
        )

        self.assertEqual(data.case_name, "simple")
        self.assertEqual(len(data.kpoints), 4)
        self.assertEqual(data.n_bands, 3)
        self.assertEqual(len(data.symmetry_ops), 8)
        self.assertEqual(data.grid_size, 2)
        self.assertAlmostEqual(data.fermi_energy, 0.5 * RY_TO_EV)
        np.testing.assert_array_almost_equal(data.kpoints[2].frac_coords, [0.5, 0.5, 0])
        self.assertAlmostEqual(data.kpoints[3].energies[1], 0.6 * RY_TO_EV)

    def test_kpoint_count_mismatch(self):
        klist = "1  0 0 0 2  1.0\n2  1 0 0 2  3.0\nEND\n"
        energy = " 0.0E+00 0.0E+00 0.0E+00    1   50     1  1.0\n     1   0.1\n"

        with self.assertWarns(UserWarning):
            data = load_irreducible_data(
                klist,
                energy,
                read_fixture("scf"),
                read_fixture("struct"),
                spin_orbit=False,
            )

        self.assertEqual(len(data.kpoints), 2)
        self.assertEqual(data.n_bands, 1)
        self.assertEqual(data.kpoints[1].energies, ())

    def test_load_relation_data(self):
        data = load_relation_data(
            read_fixture("output1"),
            read_fixture("output2"),
            read_fixture("outputkgen"),
            case_name="simple",
        )

        self.assertEqual(data.n_irreducible, 4)
        self.assertEqual(data.n_bands, 3)
        self.assertEqual(data.mesh.n_points, 8)
        self.assertAlmostEqual(data.fermi_energy, 0.5 * RY_TO_EV)


class FileTypeTest(unittest.TestCase):
    def test_detect_from_extension(self):
        expected = {
            "case.klist": "klist",
            "case.energyso": "energyso",
            "case.energy": "energy",
            "case.scf": "scf",
            "case.struct": "struct",
            "case.output1.gz": "output1",
            "case.output2": "output2",
            "case.outputkgen": "outputkgen",
        }
        for filename, file_type in expected.items():
            self.assertEqual(detect_file_type("", filename), file_type)

    def test_detect_from_content(self):
        extensions = ("klist", "energyso", "scf", "struct", "output1", "outputkgen")
        for extension in extensions:
            file_type = detect_file_type(read_fixture(extension), "upload.txt")
            self.assertEqual(file_type, extension)

        self.assertEqual(detect_file_type("hello", "upload.txt"), "unknown")

    def test_extract_case_name(self):
        self.assertEqual(extract_case_name("LaSb_try3.klist"), "LaSb_try3")
        self.assertEqual(extract_case_name("/data/case.energyso.gz"), "case")
        self.assertEqual(extract_case_name("case.output1up"), "case")
        self.assertEqual(extract_case_name("notes.txt"), "notes.txt")
