from typing import Optional, Sequence

import httpx

from run_tracker.core.constants import MAPQUEST_NO_HEIGHT
from run_tracker.core.errors import EnrichmentError
from run_tracker.services.gps import Location, encode_polyline


class MapquestElevationApi:
    """Elevation data from the Mapquest open elevation profile API."""

    base_url = "http://open.mapquestapi.com"
    api_version = "v1"

    def __init__(
        self,
        api_key: str = "",
        batch_size: int = 512,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.api_key = api_key
        self.batch_size = batch_size
        self.timeout = timeout
        self.transport = transport

    def request_url(self) -> str:
        return f"{self.base_url}/elevation/{self.api_version}/profile"

    def request_elevation(self, locations: Sequence[Location]) -> list[Optional[float]]:
        results: list[Optional[float]] = []
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                for start in range(0, len(locations), self.batch_size):
                    chunk = locations[start:start + self.batch_size]
                    r = client.get(
                        self.request_url(),
                        params={
                            "key": self.api_key,
                            "shapeFormat": "cmp",
                            "latLngCollection": encode_polyline(chunk),
                        },
                    )
                    if r.status_code != 200:
                        raise EnrichmentError(f"Elevation data request failed with code: {r.status_code}")
                    body = r.json()
                    info = body.get("info", {})
                    # Mapquest uses 0 for success, accept 200 as well
                    if info.get("statuscode") not in (0, 200):
                        raise EnrichmentError(
                            f"Elevation data request failed with code: {info.get('statuscode')} - "
                            + "\n".join(info.get("messages", []))
                        )
                    profile = body.get("elevationProfile", [])
                    if len(profile) != len(chunk):
                        raise EnrichmentError(
                            f"mapquest returned {len(profile)} heights for {len(chunk)} locations"
                        )
                    results.extend(_height(p.get("height")) for p in profile)
        except httpx.HTTPError as exc:
            raise EnrichmentError(f"Elevation request to {self.base_url} failed: {exc}") from exc
        except (ValueError, AttributeError, TypeError, KeyError) as exc:
            raise EnrichmentError(f"Invalid elevation response from {self.base_url}: {exc}") from exc
        return results


def _height(value):
    if value is None or int(value) == MAPQUEST_NO_HEIGHT:
        return None
    return float(value)
