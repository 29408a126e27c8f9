import itertools
import unittest

import numpy as np

from wienfermi.kpoints import IrreducibleKPoint, kpoints_equivalent
from wienfermi.symmetry import (
    IDENTITY,
    SymmetryOperation,
    apply_symmetry,
    expand_kpoints,
)


def sign_flip_operations():
    return [
        SymmetryOperation(np.diag(signs))
        for signs in itertools.product((1, -1), repeat=3)
    ]


class SymmetryOperationTest(unittest.TestCase):
    def test_apply(self):
        op = SymmetryOperation(((0, -1, 0), (1, 0, 0), (0, 0, 1)), (0.5, 0.0, 0.0))
        np.testing.assert_array_almost_equal(
            apply_symmetry(op, [0.25, 0.1, 0.3]), [-0.1, 0.25, 0.3]
        )

    def test_translation_ignored(self):
        op = SymmetryOperation(IDENTITY.rotation, (0.5, 0.5, 0.5))
        np.testing.assert_array_equal(op.operate([0.1, 0.2, 0.3]), [0.1, 0.2, 0.3])

    def test_invalid_rotation(self):
        with self.assertRaises(ValueError):
            SymmetryOperation(((1, 0), (0, 1)))

    def test_serialization(self):
        op = SymmetryOperation(((0, 1, 0), (1, 0, 0), (0, 0, -1)))
        self.assertEqual(SymmetryOperation.from_dict(op.as_dict()), op)


class ExpandKpointsTest(unittest.TestCase):
    def setUp(self):
        self.kpoints = [
            IrreducibleKPoint((0.0, 0.0, 0.0), 1, (-1.0, 0.5)),
            IrreducibleKPoint((0.25, 0.0, 0.0), 2, (-0.5, 1.0)),
            IrreducibleKPoint((0.25, 0.25, 0.0), 4, (0.0, 1.5)),
            IrreducibleKPoint((0.25, 0.25, 0.25), 8, (0.5, 2.0)),
        ]

    def test_identity_reproduces_irreducible_set(self):
        expanded = expand_kpoints(self.kpoints, [IDENTITY])
        self.assertEqual(len(expanded), len(self.kpoints))
        for i, (exp, irr) in enumerate(zip(expanded, self.kpoints)):
            self.assertEqual(exp.frac_coords, irr.frac_coords)
            self.assertEqual(exp.energies, irr.energies)
            self.assertEqual(exp.irreducible_index, i)

    def test_no_operations_uses_identity(self):
        with self.assertWarns(UserWarning):
            expanded = expand_kpoints(self.kpoints, [])
        self.assertEqual(len(expanded), len(self.kpoints))

    def test_sign_flips(self):
        expanded = expand_kpoints(self.kpoints, sign_flip_operations())

        # 1 + 2 + 4 + 8 distinct images
        self.assertEqual(len(expanded), 15)
        counts = np.bincount([k.irreducible_index for k in expanded])
        np.testing.assert_array_equal(counts, [1, 2, 4, 8])

        for kpoint in expanded:
            irr = self.kpoints[kpoint.irreducible_index]
            self.assertEqual(kpoint.energies, irr.energies)
            self.assertTrue(np.all(np.array(kpoint.frac_coords) >= -0.5))
            self.assertTrue(np.all(np.array(kpoint.frac_coords) < 0.5))

    def test_no_equivalent_pairs(self):
        kpoints = self.kpoints + [IrreducibleKPoint((0.5, 0.0, 0.0), 1, (3.0, 4.0))]
        expanded = expand_kpoints(kpoints, sign_flip_operations())

        # (0.5, 0, 0) and (-0.5, 0, 0) are the same point of the periodic zone
        self.assertEqual(len(expanded), 16)
        for a, b in itertools.combinations(expanded, 2):
            self.assertFalse(kpoints_equivalent(a.frac_coords, b.frac_coords))

    def test_irreducible_subset_of_expansion(self):
        expanded = expand_kpoints(self.kpoints, sign_flip_operations()[::-1])
        for irr in self.kpoints:
            self.assertTrue(
                any(
                    kpoints_equivalent(irr.frac_coords, k.frac_coords)
                    for k in expanded
                )
            )
