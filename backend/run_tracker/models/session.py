from sqlalchemy import Column, Float, ForeignKey, Integer, String

from run_tracker.db import Base, UTCDateTime


class ActivitySession(Base):
    """One recorded activity (a run) inside an imported file."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(Integer, ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)

    sport = Column(String, nullable=True)
    start_time = Column(UTCDateTime, nullable=True)
    end_time = Column(UTCDateTime, nullable=True)

    # Aggregates. NULL means the device did not report the value.
    total_distance_m = Column(Float, nullable=True)
    total_elapsed_time_s = Column(Float, nullable=True)
    total_timer_time_s = Column(Float, nullable=True)  # excludes pauses
    avg_heart_rate = Column(Integer, nullable=True)
    max_heart_rate = Column(Integer, nullable=True)
    avg_speed_mps = Column(Float, nullable=True)
    max_speed_mps = Column(Float, nullable=True)
    total_calories = Column(Integer, nullable=True)
    total_ascent_m = Column(Float, nullable=True)
    total_descent_m = Column(Float, nullable=True)
    avg_cadence = Column(Integer, nullable=True)
