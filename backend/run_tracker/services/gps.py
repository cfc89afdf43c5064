"""GPS helpers shared by the mapper and the enrichment services."""
from dataclasses import dataclass
from typing import Optional, Sequence

from run_tracker.core.constants import SEMICIRCLE_DEG


@dataclass
class Location:
    latitude: float  # degrees
    longitude: float
    elevation: Optional[float] = None  # meters


@dataclass
class Marker:
    location: Location
    label: str


def semicircles_to_degrees(val):
    return val * SEMICIRCLE_DEG if val is not None else None


def encode_polyline(locations: Sequence[Location], precision: int = 5) -> str:
    """Encode coordinates in Google's Encoded Polyline format.

    https://developers.google.com/maps/documentation/utilities/polylinealgorithm
    """
    factor = 10**precision
    output = []
    prev_lat = prev_lon = 0
    for loc in locations:
        lat = int(round(loc.latitude * factor))
        lon = int(round(loc.longitude * factor))
        output.append(_encode_value(lat - prev_lat))
        output.append(_encode_value(lon - prev_lon))
        prev_lat, prev_lon = lat, lon
    return "".join(output)


def _encode_value(delta: int) -> str:
    value = ~(delta << 1) if delta < 0 else delta << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)
