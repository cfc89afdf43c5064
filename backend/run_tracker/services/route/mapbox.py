import logging
from typing import Optional, Sequence
from urllib.parse import quote

import httpx

from run_tracker.core.constants import MAPBOX_URL_LIMIT
from run_tracker.core.errors import EnrichmentError
from run_tracker.services.gps import Location, Marker, encode_polyline

logger = logging.getLogger(__name__)


class MapBox:
    """Draw a route with the Mapbox static images API."""

    image_format = "png"

    def __init__(
        self,
        access_token: str = "",
        base_url: str = "https://api.mapbox.com",
        api_version: str = "v1",
        username: str = "mapbox",
        style: str = "streets-v11",
        image_width: int = 1280,
        image_height: int = 1280,
        marker_color: str = "f07272",
        marker_style: str = "l",
        stroke_color: str = "f44",
        stroke_width: int = 5,
        stroke_opacity: float = 0.75,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.username = username
        self.style = style
        self.image_width = image_width
        self.image_height = image_height
        self.marker_color = marker_color
        self.marker_style = marker_style
        self.stroke_color = stroke_color
        self.stroke_width = stroke_width
        self.stroke_opacity = stroke_opacity
        self.timeout = timeout
        self.transport = transport

    def request_url(self, trace: Sequence[Location], markers: Sequence[Marker]) -> str:
        overlays = [
            f"pin-{self.marker_style}-{m.label.lower()}+{self.marker_color}"
            f"({m.location.longitude},{m.location.latitude})"
            for m in markers
        ]
        overlays.append(
            f"path-{self.stroke_width}+{self.stroke_color}-{self.stroke_opacity}"
            f"({quote(encode_polyline(trace), safe='')})"
        )
        url = (
            f"{self.base_url}/styles/{self.api_version}/{self.username}/{self.style}/static/"
            f"{quote(','.join(overlays), safe='()+,-.%')}/auto/{self.image_width}x{self.image_height}"
        )
        # the access_token query parameter adds roughly another 100 bytes
        if len(url) > MAPBOX_URL_LIMIT:
            logger.warning(
                "URL length exceeds 8KB due to a long running route, request may fail (size=%.2fKB).",
                len(url) / 1024,
            )
        return url

    def draw_route(self, trace: Sequence[Location], markers: Sequence[Marker]) -> bytes:
        if not trace:
            raise EnrichmentError("Cannot draw a route without GPS points")
        url = self.request_url(trace, markers)
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.get(url, params={"access_token": self.access_token})
        except httpx.HTTPError as exc:
            raise EnrichmentError(f"MapBox request failed: {exc}") from exc
        if r.status_code != 200:
            raise EnrichmentError(f"MapBox drawing failed with code: {r.status_code}")
        return r.content
