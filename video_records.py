# video_records.py
"""
Dataset and video records: CRUD, configuration patches, and the
per-video status state machine.

Status moves only along TRANSITIONS. `processed` and `error` are written by
the batch processor; user edits never touch status.
"""
import secrets
import shutil
import time
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from config import get_settings
from errors import ExtractionError, NotFoundError, StatusTransitionError, ValidationError
from geometry import center_crop, is_valid_crop, recenter_for_resolution
from models import (
    DEFAULT_RESOLUTION,
    RESOLUTIONS,
    STATUS_ERROR,
    STATUS_PENDING,
    STATUS_PROCESSED,
    STATUSES,
    Dataset,
    Video,
)
from schemas import VideoPatch
from video_metadata import extract_metadata

TRANSITIONS = {
    STATUS_PENDING: {STATUS_PENDING, STATUS_PROCESSED, STATUS_ERROR},
    STATUS_PROCESSED: {STATUS_PENDING},
    STATUS_ERROR: {STATUS_PENDING},
}


# ---------- status ----------

def transition(video: Video, status: str) -> Video:
    current = video.status
    if status not in STATUSES or status not in TRANSITIONS.get(current, ()):
        raise StatusTransitionError(current, status)
    video.status = status
    return video


def mark_pending(video: Video) -> Video:
    return transition(video, STATUS_PENDING)


def mark_processed(video: Video, fps: int, frame_count: int) -> Video:
    transition(video, STATUS_PROCESSED)
    video.fps = fps
    video.frame_count = frame_count
    return video


def mark_error(video: Video) -> Video:
    # fps/frame_count stay as they were so a failed run is distinguishable
    return transition(video, STATUS_ERROR)


# ---------- filesystem helpers ----------

def _safe_dirname(name: str) -> str:
    cleaned = name.replace("/", "_").replace("\\", "_").strip()
    if cleaned in ("", ".", ".."):
        return "_"
    return cleaned


def dataset_output_dir(dataset: Dataset) -> Path:
    return get_settings().output_dir / _safe_dirname(dataset.name)


def dataset_uploads_dir(dataset_id: int) -> Path:
    return get_settings().uploads_dir / str(dataset_id)


def _remove_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning("Video file already gone: {}", path)
    except OSError as e:
        logger.warning("Could not delete video file {}: {}", path, e)


def _remove_tree(path: Path) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning("Could not delete directory {}: {}", path, e)


# ---------- datasets ----------

def create_dataset(db: Session, name: str) -> Dataset:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Dataset name is required")

    dataset = Dataset(name=name)
    db.add(dataset)
    db.commit()
    db.refresh(dataset)
    logger.info("Created dataset {} ({})", dataset.id, dataset.name)
    return dataset


def list_datasets(db: Session) -> List[dict]:
    rows = (
        db.query(Dataset, func.count(Video.id))
        .outerjoin(Video, Video.dataset_id == Dataset.id)
        .group_by(Dataset.id)
        .order_by(Dataset.created_at.desc(), Dataset.id.desc())
        .all()
    )
    return [
        {
            "id": dataset.id,
            "name": dataset.name,
            "created_at": dataset.created_at,
            "video_count": count,
        }
        for dataset, count in rows
    ]


def get_dataset(db: Session, dataset_id: int) -> Dataset:
    dataset = db.query(Dataset).filter(Dataset.id == dataset_id).first()
    if not dataset:
        raise NotFoundError("Dataset", dataset_id)
    return dataset


def delete_dataset(db: Session, dataset_id: int) -> None:
    """
    Remove a dataset, its videos, their raw files, and the dataset's
    upload and output directories. Missing files are logged and skipped.
    """
    settings = get_settings()
    dataset = get_dataset(db, dataset_id)
    output_dir = dataset_output_dir(dataset)

    for video in dataset.videos:
        _remove_file(settings.resolve(video.filepath))

    db.delete(dataset)  # videos go with it (delete-orphan)
    db.commit()

    _remove_tree(dataset_uploads_dir(dataset_id))
    _remove_tree(output_dir)
    logger.info("Deleted dataset {}", dataset_id)


# ---------- videos ----------

def list_videos(db: Session, dataset_id: int) -> List[Video]:
    get_dataset(db, dataset_id)
    return (
        db.query(Video)
        .filter(Video.dataset_id == dataset_id)
        .order_by(Video.id)
        .all()
    )


def get_video(db: Session, video_id: int) -> Video:
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise NotFoundError("Video", video_id)
    return video


def _unique_upload_name(filename: str) -> str:
    ext = Path(filename).suffix.lstrip(".") or "mp4"
    return f"{int(time.time() * 1000)}_{secrets.token_hex(3)}.{ext}"


def create_video_from_upload(db: Session, dataset_id: int, filename: str, content: bytes) -> Video:
    """
    Store an uploaded file and create its Video row.

    Metadata comes from ffprobe; if probing fails the upload still goes
    through with the configured fallback dimensions.
    """
    settings = get_settings()
    get_dataset(db, dataset_id)

    rel_path = f"{settings.uploads_subdir}/{dataset_id}/{_unique_upload_name(filename)}"
    abs_path = settings.resolve(rel_path)
    abs_path.parent.mkdir(parents=True, exist_ok=True)
    abs_path.write_bytes(content)

    duration = settings.fallback_duration
    width = settings.fallback_width
    height = settings.fallback_height
    try:
        meta = extract_metadata(abs_path)
        duration, width, height = meta.duration, meta.width, meta.height
        logger.info(
            "Extracted metadata for {}: {}x{} {:.2f}s fps={} frames={}",
            filename, width, height, duration, meta.fps, meta.frame_count,
        )
    except ExtractionError as e:
        logger.error("Failed to extract metadata for {}: {}", filename, e)

    video = Video(
        dataset_id=dataset_id,
        filename=filename,
        filepath=rel_path,
        duration=duration,
        original_width=width,
        original_height=height,
        start_time=0.0,
        resolution=DEFAULT_RESOLUTION,
        crop_x=0,
        crop_y=0,
        crop_width=width,
        crop_height=height,
        status=STATUS_PENDING,
    )
    db.add(video)
    db.commit()
    db.refresh(video)
    return video


def upload_videos(db: Session, dataset_id: int, files: Iterable[Tuple[str, bytes]]) -> List[Video]:
    files = list(files)
    if not files:
        raise ValidationError("No files provided")
    get_dataset(db, dataset_id)
    return [create_video_from_upload(db, dataset_id, name, content) for name, content in files]


def update_video(db: Session, video_id: int, patch: Union[VideoPatch, dict]) -> Video:
    """
    Apply a partial trim/crop/resolution patch.

    A resolution change without an explicit crop size re-fits the crop to
    the new aspect around the old center. A crop larger than the frame is
    shrunk to fit, and one that ends up outside the frame is re-centered.
    Status is left alone.
    """
    if not isinstance(patch, VideoPatch):
        try:
            patch = VideoPatch.model_validate(patch)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid video update: {e.errors()[0]['msg']}")
    changes = patch.changes()

    video = get_video(db, video_id)
    frame_w, frame_h = video.original_width, video.original_height

    start_time = changes.get("start_time", video.start_time)
    if start_time >= video.duration:
        raise ValidationError("startTime must be less than the video duration")

    resolution = changes.get("resolution", video.resolution)
    x = changes.get("crop_x", video.crop_x)
    y = changes.get("crop_y", video.crop_y)
    w = changes.get("crop_width", video.crop_width)
    h = changes.get("crop_height", video.crop_height)

    resized = "crop_width" in changes or "crop_height" in changes
    if resolution != video.resolution and not resized:
        x, y, w, h = recenter_for_resolution(resolution, x, y, w, h, frame_w, frame_h)

    w, h = min(w, frame_w), min(h, frame_h)
    if not is_valid_crop(x, y, w, h, frame_w, frame_h):
        x, y = center_crop(w, h, frame_w, frame_h)

    video.start_time = start_time
    video.resolution = resolution
    video.crop_x, video.crop_y = x, y
    video.crop_width, video.crop_height = w, h

    db.commit()
    db.refresh(video)
    return video


def delete_video(db: Session, video_id: int) -> None:
    video = get_video(db, video_id)
    _remove_file(get_settings().resolve(video.filepath))
    db.delete(video)
    db.commit()
    logger.info("Deleted video {}", video_id)


# ---------- configuration summary ----------

def is_video_configured(video) -> bool:
    """Ready for a batch run: non-negative start, known resolution, non-empty crop."""
    return (
        video.start_time is not None
        and video.start_time >= 0
        and video.resolution in RESOLUTIONS
        and (video.crop_width or 0) > 0
        and (video.crop_height or 0) > 0
    )


def dataset_stats(videos: Iterable) -> dict:
    videos = list(videos)
    configured = sum(1 for v in videos if is_video_configured(v))
    processed = sum(1 for v in videos if v.status == STATUS_PROCESSED)
    return {
        "video_count": len(videos),
        "configured_count": configured,
        "processed_count": processed,
        "can_process": bool(videos) and configured > 0,
    }


# ---------- metadata back-fill ----------

def refresh_metadata(db: Session, dataset_id: Optional[int] = None) -> Tuple[int, int]:
    """
    Re-probe stored files and rewrite duration and frame size, resetting the
    crop to the full frame. A start time past the new end goes back to 0.

    Missing files and probe failures are logged and skipped.
    Returns (updated, skipped).
    """
    settings = get_settings()
    query = db.query(Video)
    if dataset_id is not None:
        get_dataset(db, dataset_id)
        query = query.filter(Video.dataset_id == dataset_id)

    updated = skipped = 0
    for video in query.order_by(Video.id).all():
        path = settings.resolve(video.filepath)
        if not path.is_file():
            logger.warning("File not found for video {}: {}", video.id, path)
            skipped += 1
            continue
        try:
            meta = extract_metadata(path)
        except ExtractionError as e:
            logger.error("Failed to extract metadata for video {}: {}", video.id, e)
            skipped += 1
            continue

        video.duration = meta.duration
        video.original_width, video.original_height = meta.width, meta.height
        video.crop_x, video.crop_y = 0, 0
        video.crop_width, video.crop_height = meta.width, meta.height
        if video.start_time >= meta.duration:
            video.start_time = 0.0
        db.commit()
        updated += 1
        logger.info("Updated metadata for video {}: {}x{} {:.2f}s", video.id, meta.width, meta.height, meta.duration)

    return updated, skipped
