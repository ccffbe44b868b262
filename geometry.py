# geometry.py
"""Crop-rectangle math for the video editor and the processing pipeline.

Everything here is pure: functions take explicit frame/crop values and return
new tuples, nothing is mutated in place.
"""
import math
from typing import NamedTuple, Tuple


class CropSize(NamedTuple):
    width: int
    height: int


class CropPosition(NamedTuple):
    x: int
    y: int


class CropRect(NamedTuple):
    x: int
    y: int
    width: int
    height: int


def round_half_up(value: float) -> int:
    """2.5 -> 3, where round() would give 2."""
    return math.floor(value + 0.5)


def parse_resolution(resolution: str) -> Tuple[int, int]:
    """
    '1280x720' -> (1280, 720).
    Anything that doesn't look like WIDTHxHEIGHT gives (0, 0).
    """
    try:
        w, h = resolution.lower().split("x")
        return int(w), int(h)
    except (AttributeError, ValueError):
        return 0, 0


def crop_size_for_resolution(resolution: str, original_width: int, original_height: int) -> CropSize:
    """
    Largest rectangle with the resolution's aspect ratio that fits inside
    the original frame.
    """
    res_w, res_h = parse_resolution(resolution)
    if res_w <= 0 or res_h <= 0:
        return CropSize(original_width, original_height)

    target_aspect = res_w / res_h
    video_aspect = original_width / original_height

    if target_aspect > video_aspect:
        # width-limited
        width = original_width
        height = round_half_up(width * res_h / res_w)
    else:
        height = original_height
        width = round_half_up(height * res_w / res_h)

    return CropSize(width, height)


def is_valid_crop(x, y, w, h, original_width, original_height) -> bool:
    return x >= 0 and y >= 0 and x + w <= original_width and y + h <= original_height


def center_crop(w, h, original_width, original_height) -> CropPosition:
    x = max(0, (original_width - w) // 2)
    y = max(0, (original_height - h) // 2)
    return CropPosition(x, y)


def constrain_crop(x, y, w, h, original_width, original_height) -> CropPosition:
    """Clamp the top-left corner so the rectangle stays on-canvas."""
    max_x = original_width - w
    max_y = original_height - h
    return CropPosition(max(0, min(max_x, x)), max(0, min(max_y, y)))


def recenter_for_resolution(resolution, x, y, w, h, original_width, original_height) -> CropRect:
    """
    Resize the crop for a new resolution, keeping the center point of the
    previous rectangle, then clamp back into the frame.
    """
    new_w, new_h = crop_size_for_resolution(resolution, original_width, original_height)

    center_x = x + w / 2
    center_y = y + h / 2
    new_x = max(0, round_half_up(center_x - new_w / 2))
    new_y = max(0, round_half_up(center_y - new_h / 2))

    pos = constrain_crop(new_x, new_y, new_w, new_h, original_width, original_height)
    return CropRect(pos.x, pos.y, new_w, new_h)


def scale_crop(resolution, scale, x, y, original_width, original_height) -> CropRect:
    """Resize to `scale` times the maximum crop for the resolution, keeping the corner."""
    max_w, max_h = crop_size_for_resolution(resolution, original_width, original_height)
    new_w = min(max_w, max(1, round_half_up(max_w * scale)))
    new_h = min(max_h, max(1, round_half_up(max_h * scale)))

    pos = constrain_crop(x, y, new_w, new_h, original_width, original_height)
    return CropRect(pos.x, pos.y, new_w, new_h)


def reset_crop_to_max(resolution, original_width, original_height) -> CropRect:
    w, h = crop_size_for_resolution(resolution, original_width, original_height)
    pos = center_crop(w, h, original_width, original_height)
    return CropRect(pos.x, pos.y, w, h)
