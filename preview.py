# preview.py
import cv2

from errors import PreviewError

CROP_COLOR = (0, 255, 0)  # BGR


def read_frame_at(video_path: str, seconds: float):
    """
    Grab the frame shown at `seconds` into the video.
    Returns a BGR ndarray.
    """
    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        raise PreviewError(f"Could not open video: {video_path}")

    try:
        cap.set(cv2.CAP_PROP_POS_MSEC, max(0.0, seconds) * 1000.0)
        ok, frame = cap.read()
        if not ok or frame is None:
            # some containers can't seek; fall back to the first frame
            cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ok, frame = cap.read()
    finally:
        cap.release()

    if not ok or frame is None:
        raise PreviewError(f"Could not read a frame from {video_path}")
    return frame


def draw_crop(frame, crop_x: int, crop_y: int, crop_w: int, crop_h: int):
    """Dim everything outside the crop and outline it. Returns a new image."""
    img = (frame * 0.4).astype(frame.dtype)
    region = (slice(crop_y, crop_y + crop_h), slice(crop_x, crop_x + crop_w))
    img[region] = frame[region]

    cv2.rectangle(img, (crop_x, crop_y), (crop_x + crop_w - 1, crop_y + crop_h - 1), CROP_COLOR, 2)
    return img


def render_crop_preview(video_path: str, start_time: float, crop: tuple) -> bytes:
    """JPEG bytes of the frame at start_time with the crop rectangle drawn on it."""
    frame = read_frame_at(video_path, start_time)
    img = draw_crop(frame, *crop)

    ok, buffer = cv2.imencode(".jpg", img)
    if not ok:
        raise PreviewError("Could not encode preview image")
    return buffer.tobytes()
