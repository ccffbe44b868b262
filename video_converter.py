# video_converter.py
import subprocess
from pathlib import Path
from typing import List

from loguru import logger

from config import get_settings
from errors import ConversionError
from geometry import parse_resolution


def build_ffmpeg_command(
    source_path,
    output_path,
    start_time: float,
    crop: tuple,
    resolution: str,
    fps: int,
    frame_count: int,
) -> List[str]:
    """
    crop is (x, y, width, height) in source pixels; the cropped region is
    scaled to the resolution's literal pixel size.
    """
    settings = get_settings()
    crop_x, crop_y, crop_w, crop_h = crop
    res_w, res_h = parse_resolution(resolution)

    return [
        settings.ffmpeg_bin,
        "-i", str(source_path),
        "-ss", str(start_time),
        "-vf", f"crop={crop_w}:{crop_h}:{crop_x}:{crop_y},scale={res_w}:{res_h}",
        "-r", str(fps),
        "-frames:v", str(frame_count),
        "-c:v", "libx264",
        "-preset", settings.encode_preset,
        "-crf", str(settings.encode_crf),
        "-y",
        str(output_path),
    ]


def run_ffmpeg(cmd: List[str]) -> None:
    logger.debug("Running ffmpeg: {}", " ".join(cmd))
    try:
        # container tags echoed on stderr are not always valid UTF-8
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
    except FileNotFoundError:
        raise ConversionError(f"{cmd[0]} not found, is FFmpeg installed?")
    except OSError as e:
        raise ConversionError(f"Could not start {cmd[0]}: {e}")

    if result.returncode != 0:
        raise ConversionError(
            f"ffmpeg failed with exit code {result.returncode}",
            returncode=result.returncode,
            stderr=result.stderr,
        )


def convert_video(video, source_path: Path, output_path: Path, fps: int, frame_count: int) -> None:
    """Convert one Video row into a standardized clip at output_path.

    Raises:
        ConversionError: source missing or ffmpeg exited non-zero.
    """
    if not Path(source_path).is_file():
        raise ConversionError(f"Source file not found: {source_path}")

    cmd = build_ffmpeg_command(
        source_path,
        output_path,
        start_time=video.start_time,
        crop=(video.crop_x, video.crop_y, video.crop_width, video.crop_height),
        resolution=video.resolution,
        fps=fps,
        frame_count=frame_count,
    )
    run_ffmpeg(cmd)
