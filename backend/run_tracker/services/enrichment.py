"""Best-effort work done after a file's import has committed.

Each step runs in its own transaction (or none) and reports problems as
EnrichmentError; the imported rows are never touched by a failure here.
"""
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from run_tracker.core.constants import DEVICES_DIRNAME, ROUTES_DIRNAME
from run_tracker.core.errors import EnrichmentError
from run_tracker.models.activity_file import ActivityFile
from run_tracker.models.lap import Lap
from run_tracker.models.session import ActivitySession
from run_tracker.models.track_point import TrackPoint
from run_tracker.services.elevation import ElevationProvider
from run_tracker.services.gps import Location, Marker
from run_tracker.services.persistence import file_laps, file_track_points
from run_tracker.services.route import RouteRenderer

logger = logging.getLogger(__name__)


# --------- elevation --------- #

def update_elevation(
    db: Session,
    provider: ElevationProvider,
    file_id: Optional[int] = None,
    overwrite: bool = False,
) -> tuple[int, int]:
    """Fill service elevation for track points and lap endpoints.

    With `file_id` only that file is touched; `overwrite` then also replaces
    values already present. Without `file_id` only missing values are filled.
    Returns (points set, points requested) for the track points.
    """
    if overwrite and file_id is None:
        logger.warning("Refusing to overwrite all elevation data, specify individual files instead")
        overwrite = False

    try:
        pq = db.query(TrackPoint).filter(TrackPoint.lat.isnot(None), TrackPoint.lon.isnot(None))
        lq = db.query(Lap).filter(Lap.start_lat.isnot(None), Lap.start_lon.isnot(None))
        if file_id is not None:
            pq = pq.join(ActivitySession, TrackPoint.session_id == ActivitySession.id).filter(
                ActivitySession.file_id == file_id
            )
            lq = lq.join(ActivitySession, Lap.session_id == ActivitySession.id).filter(
                ActivitySession.file_id == file_id
            )
        if not overwrite:
            pq = pq.filter(TrackPoint.elevation_m.is_(None))
            lq = lq.filter(or_(Lap.start_elevation_m.is_(None), Lap.end_elevation_m.is_(None)))
        points = pq.order_by(TrackPoint.id).all()
        laps = lq.order_by(Lap.id).all()

        if points:
            elevations = provider.request_elevation([Location(p.lat, p.lon) for p in points])
            for point, elevation in zip(points, elevations):
                point.elevation_m = elevation
        if laps:
            starts = provider.request_elevation([Location(lap.start_lat, lap.start_lon) for lap in laps])
            ends = provider.request_elevation(
                [Location(lap.end_lat, lap.end_lon) for lap in laps if lap.end_lat is not None and lap.end_lon is not None]
            )
            end_iter = iter(ends)
            for lap, start in zip(laps, starts):
                lap.start_elevation_m = start
                if lap.end_lat is not None and lap.end_lon is not None:
                    lap.end_elevation_m = next(end_iter, None)
        nset = sum(1 for p in points if p.elevation_m is not None)
        db.commit()
    except EnrichmentError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise EnrichmentError(f"Could not store elevation data: {exc}") from exc
    except BaseException:
        # no half-applied elevation left in the session
        db.rollback()
        raise

    logger.info("Set elevation data for %d/%d record messages", nset, len(points))
    logger.info("Set elevation data for %d lap messages", len(laps))
    return nset, len(points)


# --------- route image --------- #

def build_route(db: Session, file_id: int) -> tuple[list[Location], list[Marker]]:
    """GPS trace of a file plus start, per-lap and finish markers."""
    trace = [
        Location(p.lat, p.lon, p.elevation_m)
        for p in file_track_points(db, file_id)
        if p.lat is not None and p.lon is not None
    ]
    if not trace:
        raise EnrichmentError(f"File id={file_id} has no GPS points to draw")

    markers = [Marker(trace[0], "S")]
    for number, lap in enumerate(
        (lap for lap in file_laps(db, file_id) if lap.end_lat is not None and lap.end_lon is not None),
        start=1,
    ):
        markers.append(Marker(Location(lap.end_lat, lap.end_lon), str(number)))
    markers.append(Marker(trace[-1], "F"))
    return trace, markers


def render_route(db: Session, renderer: RouteRenderer, file_id: int) -> bytes:
    trace, markers = build_route(db, file_id)
    return renderer.draw_route(trace, markers)


def save_route_image(
    db: Session, renderer: RouteRenderer, activity_file: ActivityFile, data_dir: str | Path
) -> Path:
    image = render_route(db, renderer, activity_file.id)
    dest = Path(data_dir) / ROUTES_DIRNAME / f"{activity_file.uuid}.{renderer.image_format}"
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(image)
    except OSError as exc:
        raise EnrichmentError(f"Could not write route image to {dest}: {exc}") from exc
    logger.info("Saved route image for %s to %s", activity_file.uuid, dest)
    return dest


# --------- raw file archive --------- #

def archive_file(activity_file: ActivityFile, filename: str, data: bytes, data_dir: str | Path) -> Path:
    """Keep a copy of the raw FIT file; the watch deletes old files when it needs space."""
    sub_dir = f"{activity_file.manufacturer}-{activity_file.product}-{activity_file.serial_number}"
    name = Path(filename).name or f"{activity_file.uuid}.fit"
    dest = Path(data_dir) / DEVICES_DIRNAME / sub_dir / name
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
    except OSError as exc:
        raise EnrichmentError(f"Could not copy FIT file to {dest}: {exc}") from exc
    logger.info("Copied FIT file %s to %s", filename, dest)
    return dest
