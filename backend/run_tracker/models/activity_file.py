from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, Integer, String

from run_tracker.db import Base, UTCDateTime


def _utcnow():
    return datetime.now(timezone.utc)


class ActivityFile(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)

    # Content fingerprint. The unique constraint is the authoritative
    # duplicate guard; the lookup before decoding only saves work.
    uuid = Column(String(36), nullable=False, unique=True, index=True)

    file_type = Column(String, nullable=False)  # activity, settings, ...
    manufacturer = Column(String, nullable=True)
    product = Column(String, nullable=True)
    serial_number = Column(BigInteger, nullable=True)
    time_created = Column(UTCDateTime, nullable=True)

    filename = Column(String, nullable=True)
    size_bytes = Column(Integer, nullable=True)
    imported_at = Column(UTCDateTime, nullable=False, default=_utcnow)
