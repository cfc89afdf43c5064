from datetime import timedelta, timezone

import pytest

from run_tracker.core.errors import DecodeError
from run_tracker.models.activity_file import ActivityFile
from run_tracker.models.lap import Lap
from run_tracker.models.session import ActivitySession
from run_tracker.schemas.imports import ImportStatus
from run_tracker.services.fit_decoder import decode, hoist_sessions
from run_tracker.services.importer import ImportCoordinator
from run_tracker.services.persistence import session_track_points
from conftest import FIT_EPOCH, FIT_T0, build_fit_file, msg


def test_decode_real_fit_file():
    messages = decode(build_fit_file())

    assert [m.kind for m in messages] == ["file_id", "session", "record", "record", "record", "lap"]
    record = messages[2]
    assert record.fields["timestamp"] == FIT_EPOCH + timedelta(seconds=FIT_T0)
    assert record.fields["timestamp"].tzinfo is None
    assert record.fields["position_lat"] == 2**29
    assert record.units["position_lat"] == "semicircles"
    assert record.units["distance"] == "m"
    assert record.fields["enhanced_altitude"] == pytest.approx(100.0)
    assert messages[4].fields["distance"] == pytest.approx(4.0)
    assert messages[1].fields["sport"] == "running"


def test_decode_rejects_bad_checksum():
    data = bytearray(build_fit_file())
    data[-1] ^= 0xFF
    with pytest.raises(DecodeError):
        decode(bytes(data))


def test_import_real_fit_file(db):
    outcome = ImportCoordinator(db).import_data("morning.fit", build_fit_file())
    assert outcome.status == ImportStatus.imported

    stored = db.query(ActivityFile).one()
    assert stored.file_type == "activity"
    assert stored.manufacturer == "garmin"
    assert stored.serial_number == 3999999999
    session = db.query(ActivitySession).one()
    assert session.sport == "running"
    assert session.total_distance_m == pytest.approx(4.0)
    assert session.start_time == (FIT_EPOCH + timedelta(seconds=FIT_T0)).replace(tzinfo=timezone.utc)

    points = session_track_points(db, session.id)
    assert len(points) == 3
    assert points[0].lat == pytest.approx(45.0)
    assert points[0].lon == pytest.approx(-45.0, abs=1e-6)
    assert [p.distance_m for p in points] == pytest.approx([0.0, 2.0, 4.0])
    assert points[0].speed_mps == pytest.approx(2.0)
    assert points[0].altitude_m == pytest.approx(100.0)
    assert points[0].timestamp.tzinfo is not None

    lap = db.query(Lap).one()
    assert lap.session_id == session.id
    assert lap.total_distance_m == pytest.approx(4.0)


def test_decode_rejects_garbage():
    with pytest.raises(DecodeError):
        decode(b"this is not a FIT file at all, just some text")


def test_decode_rejects_empty_content():
    with pytest.raises(DecodeError):
        decode(b"")


def test_hoist_sessions_moves_summary_ahead_of_its_block():
    messages = [
        msg("file_id"),
        msg("record", n=1),
        msg("lap", n=1),
        msg("record", n=2),
        msg("session", n=1),
        msg("record", n=3),
        msg("session", n=2),
        msg("activity"),
    ]
    ordered = hoist_sessions(messages)
    assert [(m.kind, m.fields.get("n")) for m in ordered] == [
        ("file_id", None),
        ("session", 1),
        ("record", 1),
        ("lap", 1),
        ("record", 2),
        ("session", 2),
        ("record", 3),
        ("activity", None),
    ]


def test_hoist_sessions_keeps_trailing_records_without_summary():
    messages = [msg("file_id"), msg("session", n=1), msg("record", n=1)]
    ordered = hoist_sessions(messages)
    assert [m.kind for m in ordered] == ["file_id", "session", "record"]
