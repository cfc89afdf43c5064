from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class FileRead(BaseModel):
    """A stored FIT file plus session totals for listings."""

    id: int
    uuid: str
    file_type: str
    manufacturer: Optional[str] = None
    product: Optional[str] = None
    serial_number: Optional[int] = None
    time_created: Optional[datetime] = None
    filename: Optional[str] = None
    size_bytes: Optional[int] = None
    imported_at: Optional[datetime] = None

    total_distance_m: Optional[float] = None
    total_timer_time_s: Optional[float] = None
    avg_heart_rate: Optional[float] = None
    duration: Optional[str] = None  # "HH:MM:SS"
    pace: Optional[str] = None  # e.g. "7:05/mi"

    model_config = ConfigDict(from_attributes=True)


class SessionRead(BaseModel):
    id: int
    file_id: int
    sport: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_distance_m: Optional[float] = None
    total_elapsed_time_s: Optional[float] = None
    total_timer_time_s: Optional[float] = None
    avg_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    avg_speed_mps: Optional[float] = None
    max_speed_mps: Optional[float] = None
    total_calories: Optional[int] = None
    total_ascent_m: Optional[float] = None
    total_descent_m: Optional[float] = None
    avg_cadence: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class LapRead(BaseModel):
    id: int
    session_id: int
    idx: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    start_lat: Optional[float] = None
    start_lon: Optional[float] = None
    end_lat: Optional[float] = None
    end_lon: Optional[float] = None
    start_elevation_m: Optional[float] = None
    end_elevation_m: Optional[float] = None
    total_distance_m: Optional[float] = None
    total_elapsed_time_s: Optional[float] = None
    total_timer_time_s: Optional[float] = None
    avg_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    avg_speed_mps: Optional[float] = None
    max_speed_mps: Optional[float] = None
    total_calories: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class TrackPointRead(BaseModel):
    seq: int
    timestamp: datetime
    lat: Optional[float] = None
    lon: Optional[float] = None
    altitude_m: Optional[float] = None
    elevation_m: Optional[float] = None
    heart_rate: Optional[int] = None
    cadence: Optional[int] = None
    speed_mps: Optional[float] = None
    distance_m: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class ElevationUpdate(BaseModel):
    points_set: int
    points_requested: int
