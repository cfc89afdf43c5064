from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from run_tracker.core.config import settings
from run_tracker.core.errors import EnrichmentError, FileNotFoundInStoreError, ServiceConfigError
from run_tracker.core.time_utils import compute_pace, seconds_to_hhmmss
from run_tracker.db import get_db
from run_tracker.models.activity_file import ActivityFile
from run_tracker.schemas.activity import ElevationUpdate, FileRead, LapRead, SessionRead, TrackPointRead
from run_tracker.services.elevation import ElevationProvider, new_elevation_provider
from run_tracker.services.enrichment import build_route, update_elevation
from run_tracker.services.persistence import (
    delete_file,
    file_sessions,
    file_totals,
    get_session,
    list_files,
    resolve_file,
    session_laps,
    session_track_points,
)
from run_tracker.services.route import RouteRenderer, new_route_renderer

router = APIRouter(tags=["files"])


# --------- dependencies --------- #

def get_elevation_provider() -> ElevationProvider:
    config = settings.service("elevation")
    if config is None:
        raise HTTPException(status_code=400, detail="No elevation service configured")
    try:
        return new_elevation_provider(config)
    except ServiceConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


def get_route_renderer() -> RouteRenderer:
    config = settings.service("route_visualization")
    if config is None:
        raise HTTPException(status_code=400, detail="No route visualization service configured")
    try:
        return new_route_renderer(config)
    except ServiceConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _get_file(db: Session, ident: str) -> ActivityFile:
    try:
        return resolve_file(db, ident)
    except FileNotFoundInStoreError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _file_read(activity_file: ActivityFile, totals: Optional[dict]) -> FileRead:
    out = FileRead.model_validate(activity_file)
    if not totals:
        return out
    timer = totals["total_timer_time_s"]
    distance = totals["total_distance_m"]
    return out.model_copy(
        update={
            **totals,
            "duration": seconds_to_hhmmss(int(timer)) if timer is not None else None,
            "pace": compute_pace(timer, distance) if timer is not None and distance else None,
        }
    )


# --------- files --------- #

@router.get("/files", response_model=list[FileRead])
def list_activity_files(
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    reverse: bool = Query(False),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    """
    List imported files, newest first.

      GET /files?since=2025-01-06T00:00:00Z&limit=10
    """
    files = list_files(db, since=since, until=until, reverse=reverse, limit=limit)
    totals = file_totals(db, [f.id for f in files])
    return [_file_read(f, totals.get(f.id)) for f in files]


@router.get("/files/{ident}", response_model=FileRead)
def get_activity_file(ident: str, db: Session = Depends(get_db)):
    activity_file = _get_file(db, ident)
    return _file_read(activity_file, file_totals(db, [activity_file.id]).get(activity_file.id))


@router.delete("/files/{ident}")
def delete_activity_file(ident: str, db: Session = Depends(get_db)):
    activity_file = _get_file(db, ident)
    file_uuid = activity_file.uuid
    delete_file(db, activity_file)
    return {"message": "File deleted", "uuid": file_uuid}


@router.get("/files/{ident}/sessions", response_model=list[SessionRead])
def list_file_sessions(ident: str, db: Session = Depends(get_db)):
    activity_file = _get_file(db, ident)
    return file_sessions(db, activity_file.id)


# --------- sessions --------- #

@router.get("/sessions/{session_id}/laps", response_model=list[LapRead])
def list_session_laps(session_id: int, db: Session = Depends(get_db)):
    if get_session(db, session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session_laps(db, session_id)


@router.get("/sessions/{session_id}/track_points", response_model=list[TrackPointRead])
def list_session_track_points(session_id: int, db: Session = Depends(get_db)):
    if get_session(db, session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session_track_points(db, session_id)


# --------- enrichment --------- #

@router.post("/files/{ident}/elevation", response_model=ElevationUpdate)
def update_file_elevation(
    ident: str,
    overwrite: bool = Query(False),
    db: Session = Depends(get_db),
    provider: ElevationProvider = Depends(get_elevation_provider),
):
    activity_file = _get_file(db, ident)
    try:
        points_set, points_requested = update_elevation(
            db, provider, file_id=activity_file.id, overwrite=overwrite
        )
    except EnrichmentError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return ElevationUpdate(points_set=points_set, points_requested=points_requested)


@router.get("/files/{ident}/route")
def get_route_image(
    ident: str,
    db: Session = Depends(get_db),
    renderer: RouteRenderer = Depends(get_route_renderer),
):
    activity_file = _get_file(db, ident)
    try:
        trace, markers = build_route(db, activity_file.id)
    except EnrichmentError as e:
        raise HTTPException(status_code=404, detail=str(e))
    try:
        image = renderer.draw_route(trace, markers)
    except EnrichmentError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return Response(content=image, media_type=f"image/{renderer.image_format}")
