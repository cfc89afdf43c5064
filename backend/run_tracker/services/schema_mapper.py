"""Turn decoded FIT messages into unsaved ORM rows grouped by session.

Only ``file_id``, ``session``, ``lap`` and ``record`` messages are mapped;
every other kind is dropped. Values are normalized on the way through:

- distances and altitudes in meters, speeds in m/s, durations in seconds
- positions in degrees (FIT semicircles unless the decoder says degrees)
- timestamps as aware UTC datetimes
- a missing field stays ``None`` so aggregates are not skewed by zeros

Grouping follows the message order: a session message opens a new group and
the laps and records after it belong to that session until the next one.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from run_tracker.core.constants import DISTANCE_TO_M, SPEED_TO_MPS, TIME_TO_S
from run_tracker.core.errors import MappingError
from run_tracker.core.time_utils import to_utc
from run_tracker.models.activity_file import ActivityFile
from run_tracker.models.lap import Lap
from run_tracker.models.session import ActivitySession
from run_tracker.models.track_point import TrackPoint
from run_tracker.services.fit_decoder import DecodedMessage
from run_tracker.services.gps import semicircles_to_degrees

logger = logging.getLogger(__name__)

FILE_KIND = "file_id"
SESSION_KIND = "session"
LAP_KIND = "lap"
RECORD_KIND = "record"


@dataclass
class SessionBundle:
    session: ActivitySession
    laps: list[Lap] = field(default_factory=list)
    track_points: list[TrackPoint] = field(default_factory=list)


@dataclass
class MappedActivity:
    file: ActivityFile
    sessions: list[SessionBundle] = field(default_factory=list)

    @property
    def lap_count(self) -> int:
        return sum(len(b.laps) for b in self.sessions)

    @property
    def track_point_count(self) -> int:
        return sum(len(b.track_points) for b in self.sessions)


# --------- field readers --------- #

def _first(message: DecodedMessage, names):
    """Return (value, units, name) for the first field present with a value."""
    for name in names:
        value = message.fields.get(name)
        if value is not None:
            return value, message.units.get(name), name
    return None, None, None


def _scaled(message, names, table, default_units, kind):
    value, units, name = _first(message, names)
    if value is None:
        return None
    factor = table.get((units or default_units).lower())
    if factor is None:
        raise MappingError(f"Unsupported {kind} units {units!r} for {message.kind}.{name}")
    try:
        return float(value) * factor
    except (TypeError, ValueError) as exc:
        raise MappingError(f"Non-numeric value {value!r} for {message.kind}.{name}") from exc


def distance_m(message: DecodedMessage, *names: str):
    return _scaled(message, names, DISTANCE_TO_M, "m", "distance")


def speed_mps(message: DecodedMessage, *names: str):
    return _scaled(message, names, SPEED_TO_MPS, "m/s", "speed")


def duration_s(message: DecodedMessage, *names: str):
    return _scaled(message, names, TIME_TO_S, "s", "time")


def position_deg(message: DecodedMessage, name: str):
    value, units, _ = _first(message, (name,))
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise MappingError(f"Non-numeric value {value!r} for {message.kind}.{name}") from exc
    if units and units.lower() in ("deg", "degrees"):
        return value
    return semicircles_to_degrees(value)


def integer(message: DecodedMessage, *names: str):
    value, _, name = _first(message, names)
    if value is None:
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError) as exc:
        raise MappingError(f"Non-numeric value {value!r} for {message.kind}.{name}") from exc


def timestamp(message: DecodedMessage, name: str):
    value = message.fields.get(name)
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise MappingError(f"Expected a datetime for {message.kind}.{name}, got {value!r}")
    return to_utc(value)


def text(message: DecodedMessage, *names: str):
    value, _, _ = _first(message, names)
    return str(value) if value is not None else None


# --------- per-message mapping --------- #

def map_file_info(message: DecodedMessage) -> ActivityFile:
    return ActivityFile(
        file_type=text(message, "type") or "unknown",
        manufacturer=text(message, "manufacturer"),
        # fitparse names the product sub-field after the manufacturer
        product=text(message, "garmin_product", "product"),
        serial_number=integer(message, "serial_number"),
        time_created=timestamp(message, "time_created"),
    )


def map_session(message: DecodedMessage) -> ActivitySession:
    return ActivitySession(
        sport=text(message, "sport"),
        start_time=timestamp(message, "start_time"),
        end_time=timestamp(message, "timestamp"),
        total_distance_m=distance_m(message, "total_distance"),
        total_elapsed_time_s=duration_s(message, "total_elapsed_time"),
        total_timer_time_s=duration_s(message, "total_timer_time"),
        avg_heart_rate=integer(message, "avg_heart_rate"),
        max_heart_rate=integer(message, "max_heart_rate"),
        avg_speed_mps=speed_mps(message, "enhanced_avg_speed", "avg_speed"),
        max_speed_mps=speed_mps(message, "enhanced_max_speed", "max_speed"),
        total_calories=integer(message, "total_calories"),
        total_ascent_m=distance_m(message, "total_ascent"),
        total_descent_m=distance_m(message, "total_descent"),
        avg_cadence=integer(message, "avg_running_cadence", "avg_cadence"),
    )


def map_lap(message: DecodedMessage) -> Lap:
    return Lap(
        start_time=timestamp(message, "start_time"),
        end_time=timestamp(message, "timestamp"),
        start_lat=position_deg(message, "start_position_lat"),
        start_lon=position_deg(message, "start_position_long"),
        end_lat=position_deg(message, "end_position_lat"),
        end_lon=position_deg(message, "end_position_long"),
        total_distance_m=distance_m(message, "total_distance"),
        total_elapsed_time_s=duration_s(message, "total_elapsed_time"),
        total_timer_time_s=duration_s(message, "total_timer_time"),
        avg_heart_rate=integer(message, "avg_heart_rate"),
        max_heart_rate=integer(message, "max_heart_rate"),
        avg_speed_mps=speed_mps(message, "enhanced_avg_speed", "avg_speed"),
        max_speed_mps=speed_mps(message, "enhanced_max_speed", "max_speed"),
        total_calories=integer(message, "total_calories"),
    )


def map_track_point(message: DecodedMessage) -> TrackPoint:
    ts = timestamp(message, "timestamp")
    if ts is None:
        raise MappingError("record message without a timestamp")
    return TrackPoint(
        timestamp=ts,
        lat=position_deg(message, "position_lat"),
        lon=position_deg(message, "position_long"),
        # Prefer enhanced fields when present
        altitude_m=distance_m(message, "enhanced_altitude", "altitude"),
        heart_rate=integer(message, "heart_rate"),
        cadence=integer(message, "cadence"),
        speed_mps=speed_mps(message, "enhanced_speed", "speed"),
        distance_m=distance_m(message, "distance"),
    )


# --------- grouping --------- #

def map_messages(messages: Iterable[DecodedMessage]) -> MappedActivity:
    """Map a decoded message sequence into a file row plus grouped sessions.

    Raises MappingError when the file_id message is missing, when a lap or
    record shows up before any session, or when records go back in time.
    """
    activity_file = None
    bundles: list[SessionBundle] = []
    current = None

    for message in messages:
        kind = message.kind
        if kind == FILE_KIND:
            if activity_file is None:
                activity_file = map_file_info(message)
            else:
                logger.debug("Ignoring extra file_id message: %s", message.fields)
        elif kind == SESSION_KIND:
            current = SessionBundle(session=map_session(message))
            bundles.append(current)
        elif kind == LAP_KIND:
            if current is None:
                raise MappingError("lap message appears before any session message")
            lap = map_lap(message)
            lap.idx = len(current.laps) + 1
            current.laps.append(lap)
        elif kind == RECORD_KIND:
            if current is None:
                raise MappingError("record message appears before any session message")
            point = map_track_point(message)
            if current.track_points and point.timestamp < current.track_points[-1].timestamp:
                raise MappingError(
                    f"record at {point.timestamp.isoformat()} is earlier than the previous record"
                )
            point.seq = len(current.track_points)
            current.track_points.append(point)
        else:
            logger.debug("Skipped %s message", kind)

    if activity_file is None:
        raise MappingError("FIT data did not have a file_id message")

    return MappedActivity(file=activity_file, sessions=bundles)
