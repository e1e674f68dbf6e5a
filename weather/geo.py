from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    def contains(self, lat: float, lon: float) -> bool:
        """Edges are inclusive."""

        return (
            self.south <= lat <= self.north and self.west <= lon <= self.east
        )


class RegionClassifier:
    """Membership test over a union of bounding boxes.

    A region may be disjoint, e.g. a mainland plus its island groups; a point
    belongs to the region when any box contains it.
    """

    def __init__(self, boxes: Iterable[BoundingBox]) -> None:
        self.boxes: tuple[BoundingBox, ...] = tuple(boxes)

    def is_in_region(self, lat: float, lon: float) -> bool:
        return any(box.contains(lat, lon) for box in self.boxes)


SPAIN_REGION = RegionClassifier(
    (
        # Peninsula
        BoundingBox(north=43.9, south=35.2, east=4.5, west=-9.5),
        # Balearic Islands
        BoundingBox(north=40.1, south=38.6, east=4.4, west=1.1),
        # Canary Islands
        BoundingBox(north=29.5, south=27.6, east=-13.4, west=-18.2),
    )
)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
