"""Transactional writes and read access for imported activity data.

All inserts for one file happen in one transaction: the file row, then its
sessions, then each session's laps and track points. Any failure rolls the
whole file back. Cascading deletes are left to the schema's foreign keys.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from run_tracker.core.errors import DuplicateFileError, FileNotFoundInStoreError, PersistenceError
from run_tracker.models.activity_file import ActivityFile
from run_tracker.models.lap import Lap
from run_tracker.models.session import ActivitySession
from run_tracker.models.track_point import TrackPoint
from run_tracker.services.schema_mapper import MappedActivity

logger = logging.getLogger(__name__)

# Special identifier for the most recently imported file
LAST_FILE = ":last"


# --------- writes --------- #

def write_activity(db: Session, mapped: MappedActivity) -> ActivityFile:
    """Insert a mapped file and all of its children, then commit.

    Raises DuplicateFileError when another row already holds the fingerprint
    (the unique constraint fired) and PersistenceError for any other failed
    insert. In both cases nothing from this file remains in the database.
    """
    file_uuid = mapped.file.uuid
    try:
        db.add(mapped.file)
        db.flush()  # assigns mapped.file.id
        for bundle in mapped.sessions:
            bundle.session.file_id = mapped.file.id
            db.add(bundle.session)
            db.flush()
            for lap in bundle.laps:
                lap.session_id = bundle.session.id
            db.add_all(bundle.laps)
            for point in bundle.track_points:
                point.session_id = bundle.session.id
            db.add_all(bundle.track_points)
            db.flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if find_file_by_uuid(db, file_uuid) is not None:
            raise DuplicateFileError(file_uuid) from exc
        raise PersistenceError(f"Could not store FIT file {file_uuid}: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Could not store FIT file {file_uuid}: {exc}") from exc
    except BaseException:
        # interrupted mid-write: never leave a partial file visible
        db.rollback()
        raise

    logger.debug(
        "Stored file %s with %d sessions, %d laps, %d track points",
        file_uuid,
        len(mapped.sessions),
        mapped.lap_count,
        mapped.track_point_count,
    )
    return mapped.file


def delete_file(db: Session, activity_file: ActivityFile) -> None:
    """Delete a file row; the schema cascades to sessions, laps and track points."""
    db.delete(activity_file)
    db.commit()


# --------- lookups --------- #

def find_file_by_uuid(db: Session, uuid: str) -> Optional[ActivityFile]:
    return db.query(ActivityFile).filter(ActivityFile.uuid == uuid).first()


def resolve_file(db: Session, ident: str) -> ActivityFile:
    """Locate a file by full UUID, unique UUID prefix, or ``:last``."""
    if ident == LAST_FILE:
        row = (
            db.query(ActivityFile)
            .order_by(ActivityFile.imported_at.desc(), ActivityFile.id.desc())
            .first()
        )
    else:
        row = find_file_by_uuid(db, ident)
        if row is None and ident:
            matches = (
                db.query(ActivityFile)
                .filter(ActivityFile.uuid.startswith(ident, autoescape=True))
                .limit(2)
                .all()
            )
            row = matches[0] if len(matches) == 1 else None
    if row is None:
        raise FileNotFoundInStoreError(ident)
    return row


def list_files(
    db: Session,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    reverse: bool = False,
    limit: Optional[int] = None,
) -> list[ActivityFile]:
    """Files ordered newest first (oldest first with `reverse`)."""
    q = db.query(ActivityFile)
    if since is not None:
        q = q.filter(ActivityFile.time_created >= since)
    if until is not None:
        q = q.filter(ActivityFile.time_created < until)
    if reverse:
        q = q.order_by(ActivityFile.time_created.asc(), ActivityFile.id.asc())
    else:
        q = q.order_by(ActivityFile.time_created.desc(), ActivityFile.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def file_sessions(db: Session, file_id: int) -> list[ActivitySession]:
    return (
        db.query(ActivitySession)
        .filter(ActivitySession.file_id == file_id)
        .order_by(ActivitySession.start_time, ActivitySession.id)
        .all()
    )


def get_session(db: Session, session_id: int) -> Optional[ActivitySession]:
    return db.query(ActivitySession).filter(ActivitySession.id == session_id).first()


def session_laps(db: Session, session_id: int) -> list[Lap]:
    return (
        db.query(Lap)
        .filter(Lap.session_id == session_id)
        .order_by(Lap.start_time, Lap.idx)
        .all()
    )


def session_track_points(db: Session, session_id: int) -> list[TrackPoint]:
    return (
        db.query(TrackPoint)
        .filter(TrackPoint.session_id == session_id)
        .order_by(TrackPoint.timestamp, TrackPoint.seq)
        .all()
    )


def file_laps(db: Session, file_id: int) -> list[Lap]:
    return (
        db.query(Lap)
        .join(ActivitySession, Lap.session_id == ActivitySession.id)
        .filter(ActivitySession.file_id == file_id)
        .order_by(ActivitySession.start_time, ActivitySession.id, Lap.start_time, Lap.idx)
        .all()
    )


def file_track_points(db: Session, file_id: int) -> list[TrackPoint]:
    return (
        db.query(TrackPoint)
        .join(ActivitySession, TrackPoint.session_id == ActivitySession.id)
        .filter(ActivitySession.file_id == file_id)
        .order_by(ActivitySession.start_time, ActivitySession.id, TrackPoint.timestamp, TrackPoint.seq)
        .all()
    )


def file_totals(db: Session, file_ids: list[int]) -> dict[int, dict]:
    """Aggregate session stats per file for listings.

    Returns {file_id: {"total_distance_m", "total_timer_time_s", "avg_heart_rate"}}.
    Files without sessions are absent from the result.
    """
    if not file_ids:
        return {}
    rows = (
        db.query(
            ActivitySession.file_id,
            func.sum(ActivitySession.total_distance_m).label("total_distance_m"),
            func.sum(ActivitySession.total_timer_time_s).label("total_timer_time_s"),
            func.avg(ActivitySession.avg_heart_rate).label("avg_heart_rate"),
        )
        .filter(ActivitySession.file_id.in_(file_ids))
        .group_by(ActivitySession.file_id)
        .all()
    )
    return {
        file_id: {
            "total_distance_m": float(dist) if dist is not None else None,
            "total_timer_time_s": float(timer) if timer is not None else None,
            "avg_heart_rate": float(hr) if hr is not None else None,
        }
        for file_id, dist, timer, hr in rows
    }
