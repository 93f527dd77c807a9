import math

import pytest

from beatplan.services.geospatial import (
    angular_distance,
    convex_hull_area_km2,
    haversine_km,
    haversine_matrix,
    median_center,
    polar_angle,
    travel_time_minutes,
)


def test_one_degree_of_latitude_is_about_111_km():
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)


def test_haversine_is_symmetric_and_zero_on_same_point():
    assert haversine_km(24.7, 46.7, 24.7, 46.7) == 0.0
    assert haversine_km(24.7, 46.7, 24.8, 46.9) == pytest.approx(haversine_km(24.8, 46.9, 24.7, 46.7))


def test_haversine_matrix_matches_scalar_distances():
    lats = [24.70, 24.71, 24.75]
    lons = [46.70, 46.72, 46.69]
    matrix = haversine_matrix(lats, lons)

    assert matrix.shape == (3, 3)
    for i in range(3):
        for j in range(3):
            assert matrix[i, j] == pytest.approx(haversine_km(lats[i], lons[i], lats[j], lons[j]), abs=1e-9)

    rectangular = haversine_matrix(lats[:1], lons[:1], lats, lons)
    assert rectangular.shape == (1, 3)
    assert rectangular[0, 2] == pytest.approx(matrix[0, 2])


def test_travel_time_in_minutes():
    assert travel_time_minutes(15.0, 30.0) == pytest.approx(30.0)


def test_median_center_averages_middle_values_for_even_counts():
    center = median_center([(1.0, 10.0), (2.0, 40.0), (3.0, 20.0), (10.0, 30.0)])
    assert center == (2.5, 25.0)


def test_median_center_requires_points():
    with pytest.raises(ValueError):
        median_center([])


def test_polar_angle_is_clockwise_from_north():
    assert polar_angle(0.0, 0.0, 1.0, 0.0) == pytest.approx(0.0, abs=1e-9)
    assert polar_angle(0.0, 0.0, 0.0, 1.0) == pytest.approx(math.pi / 2)
    assert polar_angle(0.0, 0.0, -1.0, 0.0) == pytest.approx(math.pi)
    assert 0.0 <= polar_angle(0.0, 0.0, 1.0, -0.001) < 2 * math.pi


def test_angular_distance_wraps_around_zero():
    assert angular_distance(0.1, 2 * math.pi - 0.1) == pytest.approx(0.2)
    assert angular_distance(0.0, math.pi) == pytest.approx(math.pi)


def test_convex_hull_area_of_one_km_square():
    side = 1 / 111.195
    square = [(0.0, 0.0), (side, 0.0), (side, side), (0.0, side)]
    assert convex_hull_area_km2(square) == pytest.approx(1.0, rel=1e-2)


def test_convex_hull_area_is_zero_below_three_points():
    assert convex_hull_area_km2([(0.0, 0.0), (0.1, 0.1)]) == 0.0
