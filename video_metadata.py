# video_metadata.py
"""Video metadata extraction via ffprobe."""
import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import get_settings
from errors import ExtractionError


@dataclass
class VideoMetadata:
    duration: float
    width: int
    height: int
    fps: Optional[float] = None
    frame_count: Optional[int] = None


def probe(video_path) -> dict:
    """Run ffprobe and return its parsed JSON stream/format info.

    Raises:
        ExtractionError: ffprobe missing, timed out, exited non-zero or
            printed something that isn't JSON.
    """
    settings = get_settings()
    cmd = [
        settings.ffprobe_bin,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(Path(video_path)),
    ]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=settings.probe_timeout,
        )
    except FileNotFoundError:
        raise ExtractionError(f"{settings.ffprobe_bin} not found, is FFmpeg installed?")
    except subprocess.TimeoutExpired:
        raise ExtractionError(f"ffprobe timed out on {video_path}")

    if result.returncode != 0:
        raise ExtractionError(
            f"ffprobe failed with code {result.returncode}: {result.stderr.strip()}"
        )

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"ffprobe returned invalid JSON: {e}")


def get_video_stream(data: dict) -> dict:
    """Return the first stream whose codec_type is video."""
    for stream in data.get("streams") or []:
        if stream.get("codec_type") == "video":
            return stream
    raise ExtractionError("No video stream found in file")


def _to_float(raw) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return 0.0


def _to_int(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def parse_frame_rate(raw) -> Optional[float]:
    """'30000/1001' -> 29.97...; None for a zero denominator or garbage."""
    if not raw:
        return None
    try:
        num, den = str(raw).split("/")
        num, den = float(num), float(den)
    except ValueError:
        return None
    if den == 0:
        return None
    return num / den


def parse_metadata(data: dict) -> VideoMetadata:
    stream = get_video_stream(data)
    fmt = data.get("format") or {}

    # container duration wins over the stream's own
    duration = _to_float(fmt.get("duration")) or _to_float(stream.get("duration"))
    width = _to_int(stream.get("width"))
    height = _to_int(stream.get("height"))

    fps = parse_frame_rate(stream.get("r_frame_rate"))
    frame_count = None
    if fps and duration:
        frame_count = round(fps * duration)
    else:
        nb_frames = _to_int(stream.get("nb_frames"))
        if nb_frames:
            frame_count = nb_frames
            if duration:
                fps = nb_frames / duration

    if duration <= 0 or width <= 0 or height <= 0:
        raise ExtractionError("Could not extract required video metadata (duration, width, height)")

    return VideoMetadata(
        duration=duration,
        width=width,
        height=height,
        fps=round(fps, 2) if fps else None,
        frame_count=frame_count,
    )


def extract_metadata(video_path) -> VideoMetadata:
    """Probe a file and normalize the result into a VideoMetadata."""
    return parse_metadata(probe(video_path))
