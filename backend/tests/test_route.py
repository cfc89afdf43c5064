from urllib.parse import unquote

import httpx
import pytest

from run_tracker.core.config import ServiceSettings
from run_tracker.core.errors import EnrichmentError, ServiceConfigError
from run_tracker.services.gps import Location, Marker
from run_tracker.services.route import new_route_renderer
from run_tracker.services.route.mapbox import MapBox
from run_tracker.services.route.openmaptiles import OpenMapTiles

TRACE = [Location(39.46, -80.1465), Location(39.47, -80.14), Location(39.4842, -80.1313)]
MARKERS = [Marker(TRACE[0], "S"), Marker(TRACE[1], "1"), Marker(TRACE[-1], "F")]


def test_openmaptiles_bounds_and_path():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, content=b"image-bytes")

    renderer = OpenMapTiles(base_url="http://tiles.test", transport=httpx.MockTransport(handler))
    assert renderer.draw_route(TRACE, MARKERS) == b"image-bytes"

    request = seen[0]
    assert request.url.path == "/styles/osm-bright/static/-80.1465,39.46,-80.1313,39.4842/1800x1200.png"
    assert request.url.params["stroke"] == "red"
    assert request.url.params["width"] == "3"
    assert request.url.params["path"].split("|")[0] == "-80.1465,39.46"


def test_openmaptiles_error_status():
    renderer = OpenMapTiles(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    with pytest.raises(EnrichmentError, match="500"):
        renderer.draw_route(TRACE, MARKERS)


def test_empty_trace_is_rejected():
    with pytest.raises(EnrichmentError):
        OpenMapTiles().draw_route([], [])
    with pytest.raises(EnrichmentError):
        MapBox(access_token="t").draw_route([], [])


def test_mapbox_overlays():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, content=b"png")

    renderer = MapBox(access_token="pk.test", transport=httpx.MockTransport(handler))
    assert renderer.draw_route(TRACE, MARKERS) == b"png"

    request = seen[0]
    assert request.url.params["access_token"] == "pk.test"
    path = unquote(request.url.raw_path.decode().split("?")[0])
    assert path.startswith("/styles/v1/mapbox/streets-v11/static/")
    assert path.endswith("/auto/1280x1280")
    assert "pin-l-s+f07272(-80.1465,39.46)" in path
    assert "pin-l-1+f07272(-80.14,39.47)" in path
    assert "pin-l-f+f07272(-80.1313,39.4842)" in path
    assert "path-5+f44-0.75(" in path


def test_mapbox_long_url_warns(caplog):
    trace = [Location(40.0 + i * 0.0137, -105.0 - i * 0.0191) for i in range(3000)]
    renderer = MapBox(access_token="t")
    with caplog.at_level("WARNING"):
        url = renderer.request_url(trace, [])
    assert len(url) > 8192
    assert "exceeds 8KB" in caplog.text


def test_renderer_factory():
    renderer = new_route_renderer(ServiceSettings(handler="mapbox", configuration={"access_token": "abc"}))
    assert isinstance(renderer, MapBox)
    assert renderer.image_format == "png"
    with pytest.raises(ServiceConfigError, match="no route visualization handler"):
        new_route_renderer(ServiceSettings(handler="gmaps"))
