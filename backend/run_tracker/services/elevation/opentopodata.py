import logging
import time
from typing import Optional, Sequence

import httpx

from run_tracker.core.errors import EnrichmentError
from run_tracker.services.gps import Location

logger = logging.getLogger(__name__)


class OpenTopoData:
    """Elevation data from an opentopodata instance (v1 API)."""

    api_version = "v1"

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        dataset: str = "ned10m",  # works well for USA/Canada
        batch_size: int = 100,
        requests_per_sec: float = -1.0,  # <= 0 means no rate limit
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.base_url = base_url.rstrip("/")
        self.dataset = dataset
        self.batch_size = batch_size
        self.requests_per_sec = requests_per_sec
        self.timeout = timeout
        self.transport = transport

    def request_url(self) -> str:
        return f"{self.base_url}/{self.api_version}/{self.dataset}"

    def request_elevation(self, locations: Sequence[Location]) -> list[Optional[float]]:
        delay = 1.0 / self.requests_per_sec if self.requests_per_sec > 0 else 0.0
        results: list[Optional[float]] = []
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                for start in range(0, len(locations), self.batch_size):
                    chunk = locations[start:start + self.batch_size]
                    param = "|".join(f"{loc.latitude:.6f},{loc.longitude:.6f}" for loc in chunk)
                    r = client.get(self.request_url(), params={"locations": param})
                    if r.status_code != 200:
                        raise EnrichmentError(
                            f"Elevation data request failed with code: {r.status_code} - {_error_text(r)}"
                        )
                    body = r.json()
                    elevations = [item.get("elevation") for item in body.get("results", [])]
                    if len(elevations) != len(chunk):
                        raise EnrichmentError(
                            f"opentopodata returned {len(elevations)} results for {len(chunk)} locations"
                        )
                    results.extend(elevations)
                    logger.debug("Fetched %d elevations from %s", len(chunk), self.request_url())
                    if delay:
                        time.sleep(delay)
        except httpx.HTTPError as exc:
            raise EnrichmentError(f"Elevation request to {self.base_url} failed: {exc}") from exc
        except (ValueError, AttributeError, TypeError, KeyError) as exc:  # undecodable or malformed body
            raise EnrichmentError(f"Invalid elevation response from {self.base_url}: {exc}") from exc
        return results


def _error_text(r: httpx.Response) -> str:
    try:
        return r.json().get("error") or r.text
    except ValueError:
        return r.text
