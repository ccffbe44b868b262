# schemas.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt, PositiveInt, field_validator
from pydantic.alias_generators import to_camel

Resolution = Literal["1280x720", "720x1280", "768x768"]
VideoStatus = Literal["pending", "processed", "error"]
ProgressStatus = Literal["idle", "processing", "completed", "error"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Requests

class DatasetCreate(CamelModel):
    name: str = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Dataset name is required")
        return v


class VideoPatch(CamelModel):
    """Partial update of a video's trim/crop/resolution settings."""

    model_config = ConfigDict(extra="forbid")

    start_time: Optional[NonNegativeFloat] = None
    resolution: Optional[Resolution] = None
    crop_x: Optional[NonNegativeInt] = None
    crop_y: Optional[NonNegativeInt] = None
    crop_width: Optional[PositiveInt] = None
    crop_height: Optional[PositiveInt] = None

    @field_validator("*", mode="before")
    @classmethod
    def _no_nulls(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ProcessingConfig(CamelModel):
    fps: PositiveInt
    frame_count: PositiveInt


# Responses

class VideoOut(CamelModel):
    id: int
    dataset_id: int
    filename: str
    filepath: str
    duration: float
    original_width: int
    original_height: int
    start_time: float
    resolution: Resolution
    crop_x: int
    crop_y: int
    crop_width: int
    crop_height: int
    fps: Optional[int] = None
    frame_count: Optional[int] = None
    status: VideoStatus


class DatasetOut(CamelModel):
    id: int
    name: str
    created_at: datetime
    video_count: int = 0


class DatasetDetail(DatasetOut):
    configured_count: int = 0
    processed_count: int = 0
    can_process: bool = False
    videos: List[VideoOut] = []


class ProcessingResultOut(CamelModel):
    processed_count: int
    total_videos: int
    message: str


class ProgressOut(CamelModel):
    video_id: int
    progress: int
    status: ProgressStatus
    message: str


class MessageOut(CamelModel):
    message: str
