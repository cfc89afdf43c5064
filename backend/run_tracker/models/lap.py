from sqlalchemy import Column, Float, ForeignKey, Integer

from run_tracker.db import Base, UTCDateTime


class Lap(Base):
    __tablename__ = "laps"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)

    idx = Column(Integer, nullable=False)  # 1-based, order of appearance
    start_time = Column(UTCDateTime, nullable=True)
    end_time = Column(UTCDateTime, nullable=True)

    # Degrees
    start_lat = Column(Float, nullable=True)
    start_lon = Column(Float, nullable=True)
    end_lat = Column(Float, nullable=True)
    end_lon = Column(Float, nullable=True)
    # Filled in by the elevation service after import
    start_elevation_m = Column(Float, nullable=True)
    end_elevation_m = Column(Float, nullable=True)

    total_distance_m = Column(Float, nullable=True)
    total_elapsed_time_s = Column(Float, nullable=True)
    total_timer_time_s = Column(Float, nullable=True)
    avg_heart_rate = Column(Integer, nullable=True)
    max_heart_rate = Column(Integer, nullable=True)
    avg_speed_mps = Column(Float, nullable=True)
    max_speed_mps = Column(Float, nullable=True)
    total_calories = Column(Integer, nullable=True)
