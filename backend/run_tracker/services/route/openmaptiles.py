from typing import Optional, Sequence

import httpx

from run_tracker.core.errors import EnrichmentError
from run_tracker.services.gps import Location, Marker


class OpenMapTiles:
    """Draw a route with the static image endpoint of an OpenMapTiles server."""

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        style: str = "osm-bright",
        image_width: int = 1800,
        image_height: int = 1200,
        image_format: str = "png",
        stroke_color: str = "red",
        stroke_width: int = 3,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.style = style
        self.image_width = image_width
        self.image_height = image_height
        self.image_format = image_format
        self.stroke_color = stroke_color
        self.stroke_width = stroke_width
        self.timeout = timeout
        self.transport = transport

    def request_url(self, min_lat, max_lat, min_lon, max_lon) -> str:
        # Ex.: http://localhost:8080/styles/osm-bright/static/-80.1465,39.46,-80.1313,39.4842/1800x1200.png
        return (
            f"{self.base_url}/styles/{self.style}/static/"
            f"{min_lon},{min_lat},{max_lon},{max_lat}/"
            f"{self.image_width}x{self.image_height}.{self.image_format}"
        )

    def draw_route(self, trace: Sequence[Location], markers: Sequence[Marker]) -> bytes:
        # markers are not supported by the static endpoint
        if not trace:
            raise EnrichmentError("Cannot draw a route without GPS points")
        lats = [loc.latitude for loc in trace]
        lons = [loc.longitude for loc in trace]
        path = "|".join(f"{loc.longitude},{loc.latitude}" for loc in trace)
        url = self.request_url(min(lats), max(lats), min(lons), max(lons))
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.get(
                    url,
                    params={"stroke": self.stroke_color, "width": self.stroke_width, "path": path},
                )
        except httpx.HTTPError as exc:
            raise EnrichmentError(f"OpenMapTiles request failed: {exc}") from exc
        if r.status_code != 200:
            raise EnrichmentError(f"OpenMapTiles drawing failed with code: {r.status_code}")
        return r.content
