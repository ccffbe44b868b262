# process_dataset.py
from dataclasses import dataclass
from typing import Callable, Optional, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.orm import Session

from config import get_settings
from errors import ConversionError, ValidationError
from schemas import ProcessingConfig
from video_converter import convert_video
from video_records import dataset_output_dir, get_dataset, list_videos, mark_error, mark_pending, mark_processed


@dataclass
class ProcessingResult:
    processed_count: int
    total_videos: int
    message: str


def output_filename(index: int) -> str:
    """1-based position in the batch -> item_0001.mp4"""
    return f"item_{index:04d}.mp4"


def _validate_config(config) -> ProcessingConfig:
    if isinstance(config, ProcessingConfig):
        config = config.model_dump()
    try:
        return ProcessingConfig.model_validate(config)
    except PydanticValidationError:
        raise ValidationError("Invalid processing config: fps and frameCount must be positive integers")


def process_dataset(
    db: Session,
    dataset_id: int,
    config: Union[ProcessingConfig, dict],
    convert: Optional[Callable] = None,
) -> ProcessingResult:
    """
    Full pipeline:
      - validate config, resolve dataset (the only fatal errors)
      - make output/<dataset name>/
      - convert each video in turn, recording processed/error per video

    A failing video never stops the batch, and a video deleted while the
    batch runs is skipped. total_videos counts the videos at the start.
    """
    config = _validate_config(config)
    convert = convert or convert_video
    settings = get_settings()
    dataset = get_dataset(db, dataset_id)
    videos = list_videos(db, dataset_id)
    video_ids = [video.id for video in videos]
    total = len(videos)

    processed_count = 0
    if total:
        output_dir = dataset_output_dir(dataset)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Processing dataset {} ({} videos) at {} fps x {} frames",
            dataset_id, total, config.fps, config.frame_count,
        )

        for index, (video, video_id) in enumerate(zip(videos, video_ids), start=1):
            # pick up edits made since the list was loaded
            try:
                db.refresh(video)
            except InvalidRequestError:
                logger.warning("Video {} was deleted during processing, skipping", video_id)
                continue
            mark_pending(video)
            db.commit()

            output_path = output_dir / output_filename(index)
            try:
                convert(
                    video,
                    settings.resolve(video.filepath),
                    output_path,
                    config.fps,
                    config.frame_count,
                )
            except ConversionError as e:
                logger.error(
                    "Error processing video {} in dataset {} (exit code {}): {}",
                    video.id, dataset_id, e.returncode, e,
                )
                if e.stderr:
                    logger.debug("ffmpeg stderr for video {}:\n{}", video.id, e.stderr)
                mark_error(video)
            except Exception as e:
                logger.exception("Unexpected error processing video {} in dataset {}: {}", video.id, dataset_id, e)
                mark_error(video)
            else:
                mark_processed(video, config.fps, config.frame_count)
                processed_count += 1
                logger.info("Processed video {} -> {}", video.id, output_path)
            db.commit()

    message = f"Processing completed. {processed_count}/{total} videos processed successfully."
    logger.info("Dataset {}: {}", dataset_id, message)
    return ProcessingResult(processed_count=processed_count, total_videos=total, message=message)
