from sqlalchemy import Column, Float, ForeignKey, Index, Integer

from run_tracker.db import Base, UTCDateTime


class TrackPoint(Base):
    __tablename__ = "track_points"
    __table_args__ = (Index("ix_track_points_session_time", "session_id", "timestamp"),)

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)

    seq = Column(Integer, nullable=False)  # 0-based position in the source file
    timestamp = Column(UTCDateTime, nullable=False)

    lat = Column(Float, nullable=True)  # degrees
    lon = Column(Float, nullable=True)
    altitude_m = Column(Float, nullable=True)   # as recorded by the device
    elevation_m = Column(Float, nullable=True)  # from the elevation service
    heart_rate = Column(Integer, nullable=True)
    cadence = Column(Integer, nullable=True)
    speed_mps = Column(Float, nullable=True)
    distance_m = Column(Float, nullable=True)   # cumulative
