"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np
from shapely.geometry import MultiPoint

EARTH_RADIUS_KM = 6371.0
TWO_PI = 2 * math.pi


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_matrix(
    lats_a: Sequence[float],
    lons_a: Sequence[float],
    lats_b: Sequence[float] | None = None,
    lons_b: Sequence[float] | None = None,
) -> np.ndarray:
    """Pairwise Haversine distances (km) between two coordinate sets.

    When the second set is omitted the square matrix of the first set against
    itself is returned.
    """

    phi_a = np.radians(np.asarray(lats_a, dtype=float))[:, None]
    lam_a = np.radians(np.asarray(lons_a, dtype=float))[:, None]
    if lats_b is None or lons_b is None:
        phi_b, lam_b = phi_a.T, lam_a.T
    else:
        phi_b = np.radians(np.asarray(lats_b, dtype=float))[None, :]
        lam_b = np.radians(np.asarray(lons_b, dtype=float))[None, :]

    a = np.sin((phi_b - phi_a) / 2) ** 2 + np.cos(phi_a) * np.cos(phi_b) * np.sin((lam_b - lam_a) / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def travel_time_minutes(distance_km: float, speed_kmh: float) -> float:
    """Minutes needed to cover ``distance_km`` at a constant ``speed_kmh``."""

    return distance_km / speed_kmh * 60


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial bearing from (lat1, lon1) to (lat2, lon2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def normalize_angle(angle: float) -> float:
    """Wrap an angle in radians into [0, 2π)."""

    wrapped = angle % TWO_PI
    return 0.0 if wrapped >= TWO_PI else wrapped


def polar_angle(origin_lat: float, origin_lon: float, lat: float, lon: float) -> float:
    """Angle (radians, clockwise from north) of a point seen from the origin."""

    return normalize_angle(math.radians(bearing_degrees(origin_lat, origin_lon, lat, lon)))


def angular_distance(a: float, b: float) -> float:
    """Smallest absolute difference between two angles in radians."""

    diff = abs(normalize_angle(a) - normalize_angle(b))
    return min(diff, TWO_PI - diff)


def median_center(points: Iterable[tuple[float, float]]) -> tuple[float, float]:
    """Independent per-axis median of (lat, lon) pairs."""

    coords = np.asarray(list(points), dtype=float)
    if coords.size == 0:
        raise ValueError("median_center requires at least one point")
    return float(np.median(coords[:, 0])), float(np.median(coords[:, 1]))


def centroid(points: Iterable[tuple[float, float]]) -> tuple[float, float]:
    coords = list(points)
    if not coords:
        return (0.0, 0.0)
    lat = sum(lat for lat, _ in coords) / len(coords)
    lon = sum(lon for _, lon in coords) / len(coords)
    return (lat, lon)


def project_to_plane_km(
    points: Sequence[tuple[float, float]], reference_lat: float | None = None
) -> list[tuple[float, float]]:
    """Equirectangular projection of (lat, lon) pairs into planar km (x east, y north)."""

    if not points:
        return []
    if reference_lat is None:
        reference_lat = sum(lat for lat, _ in points) / len(points)
    km_per_degree = math.radians(1) * EARTH_RADIUS_KM
    cos_ref = math.cos(math.radians(reference_lat))
    return [(lon * km_per_degree * cos_ref, lat * km_per_degree) for lat, lon in points]


def convex_hull_area_km2(points: Sequence[tuple[float, float]]) -> float:
    """Area of the convex hull of (lat, lon) pairs in square kilometres."""

    if len(points) < 3:
        return 0.0
    hull = MultiPoint(project_to_plane_km(points)).convex_hull
    return float(hull.area)
