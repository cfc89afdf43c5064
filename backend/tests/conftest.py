import os
import struct
import tempfile
from datetime import datetime, timedelta

# Use in-memory sqlite and a throwaway data dir for tests.
# Set before any run_tracker import so the engine is created with sqlite.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="run-tracker-test-")
os.environ["RUN_TRACKER_CONFIG"] = os.path.join(os.environ["DATA_DIR"], "missing-config.yml")

import pytest  # noqa: E402

from run_tracker.core.config import settings  # noqa: E402
from run_tracker.core.errors import DecodeError  # noqa: E402
from run_tracker.db import Base, SessionLocal, create_database, engine  # noqa: E402
from run_tracker.services.fit_decoder import DecodedMessage  # noqa: E402

# FIT timestamps decode as naive UTC datetimes
START = datetime(2024, 5, 4, 12, 0, 0)
# 45 degrees in semicircles
LAT0 = 536870912
LON0 = -536870912


def msg(kind, units=None, **fields):
    return DecodedMessage(kind=kind, fields=fields, units=units or {})


def file_id_msg(serial=3999999999, created=START):
    return msg(
        "file_id",
        type="activity",
        manufacturer="garmin",
        garmin_product="fr245",
        serial_number=serial,
        time_created=created,
    )


def session_msg(start=START, n_points=5, distance_m=1000.0):
    return msg(
        "session",
        units={"total_distance": "m", "total_timer_time": "s", "enhanced_avg_speed": "m/s"},
        sport="running",
        start_time=start,
        timestamp=start + timedelta(seconds=n_points),
        total_distance=distance_m,
        total_elapsed_time=float(n_points),
        total_timer_time=float(n_points),
        avg_heart_rate=150,
        max_heart_rate=171,
        enhanced_avg_speed=3.2,
        total_calories=80,
    )


def lap_msg(start=START, seconds=5, first_point=0, last_point=4):
    return msg(
        "lap",
        units={"total_distance": "m"},
        start_time=start,
        timestamp=start + timedelta(seconds=seconds),
        start_position_lat=LAT0 + first_point * 1000,
        start_position_long=LON0 + first_point * 1000,
        end_position_lat=LAT0 + last_point * 1000,
        end_position_long=LON0 + last_point * 1000,
        total_distance=500.0,
        total_timer_time=float(seconds),
    )


def record_msg(t, i=0, distance=None):
    return msg(
        "record",
        units={"enhanced_altitude": "m", "enhanced_speed": "m/s", "distance": "m"},
        timestamp=t,
        position_lat=LAT0 + i * 1000,
        position_long=LON0 + i * 1000,
        enhanced_altitude=100.0 + i,
        heart_rate=140 + i,
        cadence=85,
        enhanced_speed=3.0,
        distance=distance if distance is not None else 2.0 * i,
    )


def activity_messages(start=START, n_points=5, serial=3999999999):
    """file_id, one session with two laps, and `n_points` records one second apart."""
    half = n_points // 2
    return (
        [
            file_id_msg(serial=serial, created=start),
            session_msg(start=start, n_points=n_points),
            lap_msg(start=start, seconds=half, first_point=0, last_point=half),
            lap_msg(start=start + timedelta(seconds=half), seconds=n_points - half, first_point=half, last_point=n_points - 1),
        ]
        + [record_msg(start + timedelta(seconds=i), i) for i in range(n_points)]
        + [msg("device_info", serial_number=serial)]
    )


# --------- real FIT bytes --------- #

FIT_EPOCH = datetime(1989, 12, 31)
# seconds since FIT_EPOCH; values below 0x10000000 would decode as relative time
FIT_T0 = 1_083_000_000


def _definition(local, global_num, fields):
    out = struct.pack("<BBBHB", 0x40 | local, 0, 0, global_num, len(fields))
    for def_num, size, base_type in fields:
        out += struct.pack("<3B", def_num, size, base_type)
    return out


def _data(local, fmt, *values):
    return struct.pack("<B" + fmt, local, *values)


def build_fit_file():
    """A minimal activity: file_id, three records, one lap, then the session summary.

    Records are 2 m apart at 45N 45W, 100 m altitude, 2 m/s.
    """
    from fitparse.records import Crc

    data = _definition(0, 0, [(0, 1, 0x00), (1, 2, 0x84), (2, 2, 0x84), (3, 4, 0x8C), (4, 4, 0x86)])
    data += _data(0, "BHHII", 4, 1, 2697, 3999999999, FIT_T0)

    data += _definition(
        1, 20, [(253, 4, 0x86), (0, 4, 0x85), (1, 4, 0x85), (2, 2, 0x84), (3, 1, 0x02), (5, 4, 0x86), (6, 2, 0x84)]
    )
    for i in range(3):
        # altitude is stored as (m + 500) * 5, distance in cm, speed in mm/s
        data += _data(1, "IiiHBIH", FIT_T0 + i, LAT0, LON0 + i, 3000, 140 + i, 200 * i, 2000)

    data += _definition(
        2,
        19,
        [(253, 4, 0x86), (2, 4, 0x86), (3, 4, 0x85), (4, 4, 0x85), (5, 4, 0x85), (6, 4, 0x85),
         (7, 4, 0x86), (8, 4, 0x86), (9, 4, 0x86)],
    )
    data += _data(2, "IIiiiiIII", FIT_T0 + 2, FIT_T0, LAT0, LON0, LAT0, LON0 + 2, 2000, 2000, 400)

    data += _definition(3, 18, [(253, 4, 0x86), (2, 4, 0x86), (5, 1, 0x00), (7, 4, 0x86), (8, 4, 0x86), (9, 4, 0x86)])
    data += _data(3, "IIBIII", FIT_T0 + 2, FIT_T0, 1, 2000, 2000, 400)

    header = struct.pack("<BBHI4s", 14, 0x20, 2132, len(data), b".FIT")
    header += struct.pack("<H", Crc.calculate(header))
    body = header + data
    return body + struct.pack("<H", Crc.calculate(body))


class FakeDecoder:
    """Maps exact file contents to prepared message lists; anything else fails to decode."""

    def __init__(self, contents):
        self.contents = contents
        self.calls = []

    def __call__(self, data):
        self.calls.append(data)
        if data not in self.contents:
            raise DecodeError("Could not parse FIT data: invalid header")
        return self.contents[data]


@pytest.fixture(autouse=True)
def fresh_database(tmp_path, monkeypatch):
    # One shared in-memory engine; start every test from empty tables
    Base.metadata.drop_all(bind=engine)
    create_database(engine)
    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "services", {})
    monkeypatch.setattr(settings, "import_paths", [])
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from run_tracker.main import app

    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
