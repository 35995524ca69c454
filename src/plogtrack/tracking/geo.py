"""Great-circle distance between positional fixes."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from plogtrack.tracking.models import PositionFix

EARTH_RADIUS_M = 6_371_000.0  # mean Earth radius in meters


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def distance(a: PositionFix, b: PositionFix) -> float:
    """Distance in meters between two fixes. Timestamps and accuracy are ignored."""
    if a.latitude == b.latitude and a.longitude == b.longitude:
        return 0.0
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def segment_distances(fixes: Sequence[PositionFix]) -> np.ndarray:
    """Vectorised distances between consecutive fixes.

    Returns:
        Array of length max(len(fixes) - 1, 0)
    """
    if len(fixes) < 2:
        return np.zeros(0)

    coords = np.radians(
        np.array([(f.latitude, f.longitude) for f in fixes], dtype=float)
    )
    phi = coords[:, 0]
    lam = coords[:, 1]
    d_phi = np.diff(phi)
    d_lambda = np.diff(lam)

    a = (
        np.sin(d_phi / 2.0) ** 2
        + np.cos(phi[:-1]) * np.cos(phi[1:]) * np.sin(d_lambda / 2.0) ** 2
    )
    c = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def path_distance(fixes: Sequence[PositionFix]) -> float:
    """Total path length in meters over fixes in the given order."""
    return float(segment_distances(fixes).sum())
