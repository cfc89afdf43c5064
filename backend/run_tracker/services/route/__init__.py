"""Route images drawn from a GPS trace by an external map service."""
from typing import Protocol, Sequence

from run_tracker.core.config import ServiceSettings
from run_tracker.core.errors import ServiceConfigError
from run_tracker.services.gps import Location, Marker
from run_tracker.services.route.mapbox import MapBox
from run_tracker.services.route.openmaptiles import OpenMapTiles


class RouteRenderer(Protocol):
    image_format: str

    def draw_route(self, trace: Sequence[Location], markers: Sequence[Marker]) -> bytes:
        """Return encoded image bytes for the trace with the markers pinned on it."""
        ...


HANDLERS = {
    "openmaptiles": OpenMapTiles,
    "mapbox": MapBox,
}


def new_route_renderer(config: ServiceSettings) -> RouteRenderer:
    handler = HANDLERS.get(config.handler)
    if handler is None:
        raise ServiceConfigError(f"no route visualization handler exists for: {config.handler}")
    try:
        return handler(**config.configuration)
    except (TypeError, ValueError) as exc:
        raise ServiceConfigError(f"invalid configuration for {config.handler}: {exc}") from exc
