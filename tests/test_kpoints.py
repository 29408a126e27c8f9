import unittest

import numpy as np

from wienfermi.kpoints import (
    ExpandedKPoint,
    IrreducibleKPoint,
    equivalent_kpoint_mask,
    kpoints_equivalent,
    kpoints_to_first_bz,
    periodic_distance,
)


class KpointsToFirstBZTest(unittest.TestCase):
    def test_range(self):
        kpoints = np.array(
            [
                [0.5, -0.5, 0.0],
                [1.25, -1.75, 3.0],
                [-0.5000001, 0.4999999, 2.5],
                [7.1, -7.1, 0.25],
            ]
        )
        wrapped = kpoints_to_first_bz(kpoints)
        self.assertTrue(np.all(wrapped >= -0.5))
        self.assertTrue(np.all(wrapped < 0.5))
        np.testing.assert_array_almost_equal(
            wrapped[:2], [[-0.5, -0.5, 0.0], [0.25, 0.25, 0.0]]
        )

    def test_idempotent(self):
        kpoints = np.random.RandomState(0).uniform(-5, 5, size=(200, 3))
        wrapped = kpoints_to_first_bz(kpoints)
        np.testing.assert_array_equal(kpoints_to_first_bz(wrapped), wrapped)

    def test_inside_zone_unchanged(self):
        kpoints = np.array([[-0.5, 0.0, 0.4999], [0.1, -0.2, 0.3]])
        np.testing.assert_array_equal(kpoints_to_first_bz(kpoints), kpoints)

    def test_single_kpoint(self):
        np.testing.assert_array_almost_equal(
            kpoints_to_first_bz([0.75, -0.75, 1.0]), [-0.25, 0.25, 0.0]
        )


class EquivalenceTest(unittest.TestCase):
    def test_periodic_distance(self):
        distance = periodic_distance([0.49, 0.0, 0.1], [-0.49, 0.0, -0.1])
        np.testing.assert_array_almost_equal(distance, [0.02, 0.0, 0.2])

    def test_equivalent_across_boundary(self):
        self.assertTrue(kpoints_equivalent([0.5, 0.0, 0.0], [-0.5, 0.0, 0.0]))
        self.assertTrue(kpoints_equivalent([0.25, 1.0, 0.0], [0.25, 0.0, -2.0]))
        self.assertTrue(kpoints_equivalent([0.1, 0.1, 0.1], [0.1 + 5e-7, 0.1, 0.1]))

    def test_not_equivalent(self):
        self.assertFalse(kpoints_equivalent([0.25, 0.0, 0.0], [-0.25, 0.0, 0.0]))
        self.assertFalse(kpoints_equivalent([0.1, 0.1, 0.1], [0.1, 0.1, 0.1 + 1e-5]))
        self.assertTrue(
            kpoints_equivalent([0.1, 0.1, 0.1], [0.1, 0.1, 0.1 + 1e-5], tol=1e-4)
        )

    def test_equivalent_kpoint_mask(self):
        kpoints = np.array([[0.0, 0.0, 0.0], [-0.5, 0.25, 0.0], [0.5, 0.25, 1.0]])
        mask = equivalent_kpoint_mask([0.5, 0.25, 0.0], kpoints)
        np.testing.assert_array_equal(mask, [False, True, True])

        empty = equivalent_kpoint_mask([0.0, 0.0, 0.0], np.zeros((0, 3)))
        self.assertEqual(empty.shape, (0,))


class KPointRecordTest(unittest.TestCase):
    def test_irreducible_kpoint(self):
        kpoint = IrreducibleKPoint(np.array([0.25, 0.0, 0.0]), 6, [1, 2.5])
        self.assertEqual(kpoint.frac_coords, (0.25, 0.0, 0.0))
        self.assertEqual(kpoint.energies, (1.0, 2.5))
        self.assertEqual(kpoint.n_bands, 2)
        self.assertEqual(IrreducibleKPoint((0, 0, 0)).n_bands, 0)

    def test_immutable(self):
        kpoint = ExpandedKPoint((0.0, 0.0, 0.0), (1.0,), 0)
        with self.assertRaises(AttributeError):
            kpoint.irreducible_index = 1

    def test_serialization(self):
        kpoint = IrreducibleKPoint((0.25, 0.0, -0.25), 2.0, (1.0, 2.0))
        self.assertEqual(IrreducibleKPoint.from_dict(kpoint.as_dict()), kpoint)
