from __future__ import annotations

import unittest

from hris.models import Branch
from hris.services.location import distance_m, validate_location


class LocationServiceTests(unittest.TestCase):
    def test_distance_m_zero_for_same_point(self) -> None:
        value = distance_m(-6.2088, 106.8456, -6.2088, 106.8456)
        self.assertAlmostEqual(value, 0.0, places=6)

    def test_distance_m_is_symmetric(self) -> None:
        forward = distance_m(-6.2088, 106.8456, -7.2575, 112.7521)
        backward = distance_m(-7.2575, 112.7521, -6.2088, 106.8456)
        self.assertAlmostEqual(forward, backward, places=6)

    def test_distance_m_known_reference(self) -> None:
        # One degree of longitude on the equator.
        value = distance_m(0.0, 0.0, 0.0, 1.0)
        self.assertAlmostEqual(value, 111_195, delta=300)

    def test_validate_location_inside_radius(self) -> None:
        branch = Branch(id=1, name="HQ", latitude=0.0, longitude=0.0, radius_m=100)

        # ~50m north of the branch
        result = validate_location(branch, 0.00045, 0.0)

        self.assertTrue(result.valid)
        self.assertIsNone(result.error)
        self.assertAlmostEqual(result.distance_m or 0.0, 50, delta=1)

    def test_validate_location_outside_radius_reports_distance(self) -> None:
        branch = Branch(id=1, name="HQ", latitude=0.0, longitude=0.0, radius_m=100)

        # ~150m north of the branch
        result = validate_location(branch, 0.00135, 0.0)

        self.assertFalse(result.valid)
        self.assertEqual(result.error, "You are 150m away from HQ. Maximum allowed: 100m")
        self.assertEqual(result.radius_m, 100)

    def test_validate_location_on_boundary_is_valid(self) -> None:
        branch = Branch(id=1, name="HQ", latitude=0.0, longitude=0.0, radius_m=100)
        lat_at_boundary = 100 / 111_194.93

        result = validate_location(branch, lat_at_boundary - 1e-9, 0.0)

        self.assertTrue(result.valid)

    def test_validate_location_without_branch_coordinates(self) -> None:
        branch = Branch(id=2, name="Remote", latitude=None, longitude=None, radius_m=100)

        result = validate_location(branch, 0.0, 0.0)

        self.assertFalse(result.valid)
        self.assertIsNone(result.distance_m)
        self.assertEqual(result.error, "Branch location not configured")


if __name__ == "__main__":
    unittest.main()
