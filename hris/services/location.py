from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt

from hris.models import Branch

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class LocationCheck:
    valid: bool
    distance_m: float | None
    radius_m: int | None
    branch_name: str | None
    error: str | None = None

    def to_flags(self) -> dict[str, float | int | str | None]:
        return {
            "distance_m": round(self.distance_m, 2) if self.distance_m is not None else None,
            "radius_m": self.radius_m,
            "branch": self.branch_name,
        }


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lon = radians(lon2 - lon1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    # Rounding can push the haversine term slightly past 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_M * c


def branch_has_geofence(branch: Branch | None) -> bool:
    return branch is not None and branch.latitude is not None and branch.longitude is not None


def validate_location(branch: Branch | None, lat: float, lon: float) -> LocationCheck:
    if branch is None or not branch_has_geofence(branch):
        return LocationCheck(
            valid=False,
            distance_m=None,
            radius_m=branch.radius_m if branch is not None else None,
            branch_name=branch.name if branch is not None else None,
            error="Branch location not configured",
        )

    distance_value = distance_m(lat, lon, branch.latitude, branch.longitude)
    if distance_value <= branch.radius_m:
        return LocationCheck(
            valid=True,
            distance_m=distance_value,
            radius_m=branch.radius_m,
            branch_name=branch.name,
        )

    return LocationCheck(
        valid=False,
        distance_m=distance_value,
        radius_m=branch.radius_m,
        branch_name=branch.name,
        error=(
            f"You are {round(distance_value)}m away from {branch.name}. "
            f"Maximum allowed: {branch.radius_m}m"
        ),
    )
