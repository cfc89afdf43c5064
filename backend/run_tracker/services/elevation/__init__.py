"""Elevation lookups for GPS coordinates from an external service.

Any object with a ``request_elevation(locations)`` method works as a
provider; ``new_elevation_provider`` builds the configured one.
"""
from typing import Optional, Protocol, Sequence

from run_tracker.core.config import ServiceSettings
from run_tracker.core.errors import ServiceConfigError
from run_tracker.services.elevation.mapquest import MapquestElevationApi
from run_tracker.services.elevation.opentopodata import OpenTopoData
from run_tracker.services.gps import Location


class ElevationProvider(Protocol):
    def request_elevation(self, locations: Sequence[Location]) -> list[Optional[float]]:
        """Return one elevation (meters, or None when unknown) per location, in order."""
        ...


HANDLERS = {
    "opentopodata": OpenTopoData,
    "mapquest": MapquestElevationApi,
}


def new_elevation_provider(config: ServiceSettings) -> ElevationProvider:
    handler = HANDLERS.get(config.handler)
    if handler is None:
        raise ServiceConfigError(f"no elevation handler exists for: {config.handler}")
    try:
        return handler(**config.configuration)
    except (TypeError, ValueError) as exc:
        raise ServiceConfigError(f"invalid configuration for {config.handler}: {exc}") from exc
