# models.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime
from sqlalchemy.orm import relationship

from database import Base

RESOLUTIONS = ("1280x720", "720x1280", "768x768")
DEFAULT_RESOLUTION = "1280x720"

STATUS_PENDING = "pending"
STATUS_PROCESSED = "processed"
STATUS_ERROR = "error"
STATUSES = (STATUS_PENDING, STATUS_PROCESSED, STATUS_ERROR)


def _utcnow():
    return datetime.now(timezone.utc)


class Dataset(Base):
    __tablename__ = "datasets"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    videos = relationship(
        "Video",
        back_populates="dataset",
        cascade="all, delete-orphan",
        order_by="Video.id",
    )


class Video(Base):
    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, index=True)
    dataset_id = Column(Integer, ForeignKey("datasets.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String, nullable=False)
    filepath = Column(String, nullable=False)  # relative to the storage root
    duration = Column(Float, nullable=False)
    original_width = Column(Integer, nullable=False)
    original_height = Column(Integer, nullable=False)

    start_time = Column(Float, nullable=False, default=0.0)
    resolution = Column(String, nullable=False, default=DEFAULT_RESOLUTION)
    crop_x = Column(Integer, nullable=False, default=0)
    crop_y = Column(Integer, nullable=False, default=0)
    crop_width = Column(Integer, nullable=False)
    crop_height = Column(Integer, nullable=False)

    # null until the first batch attempt
    fps = Column(Integer, nullable=True)
    frame_count = Column(Integer, nullable=True)
    status = Column(String, nullable=False, default=STATUS_PENDING, index=True)

    dataset = relationship("Dataset", back_populates="videos")
