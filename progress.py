# progress.py
"""
Client-side progress view over a dataset's video statuses.

Processing runs synchronously inside the request, so progress is obtained by
polling the dataset's video list and projecting each video's status through
a fixed table:

    processed -> completed, 100, "Processing complete"
    error     -> error, previous progress (or 0), "Processing failed"
    pending   -> processing, 75, "Processing video..."
    other     -> previous value if it was processing, else idle/0

ProgressPoller owns the polling loop and its timers; create one per batch.
"""
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from config import get_settings

IDLE = "idle"
PROCESSING = "processing"
COMPLETED = "completed"
ERROR = "error"


@dataclass(frozen=True)
class ProcessingProgress:
    video_id: int
    progress: int
    status: str
    message: str


def _field(video, name):
    if isinstance(video, dict):
        return video.get(name)
    return getattr(video, name, None)


def project_progress(videos: Iterable, previous: Optional[Iterable[ProcessingProgress]] = None) -> List[ProcessingProgress]:
    prev_by_id: Dict[int, ProcessingProgress] = {p.video_id: p for p in (previous or [])}
    result = []

    for video in videos:
        video_id = _field(video, "id")
        status = _field(video, "status")
        prev = prev_by_id.get(video_id)

        if status == "processed":
            item = ProcessingProgress(video_id, 100, COMPLETED, "Processing complete")
        elif status == "error":
            item = ProcessingProgress(video_id, prev.progress if prev else 0, ERROR, "Processing failed")
        elif status == "pending":
            item = ProcessingProgress(video_id, 75, PROCESSING, "Processing video...")
        elif prev is not None and prev.status == PROCESSING:
            item = replace(prev)
        else:
            item = ProcessingProgress(video_id, 0, IDLE, "Waiting to start...")
        result.append(item)

    return result


def initial_progress(videos: Iterable) -> List[ProcessingProgress]:
    """Instant feedback for the moment a batch is kicked off."""
    result = []
    for video in videos:
        video_id = _field(video, "id")
        if _field(video, "status") == "processed":
            result.append(ProcessingProgress(video_id, 100, COMPLETED, "Already processed"))
        else:
            result.append(ProcessingProgress(video_id, 25, PROCESSING, "Starting processing..."))
    return result


def is_complete(progress: Iterable[ProcessingProgress]) -> bool:
    return all(p.status in (COMPLETED, ERROR) for p in progress)


class ProgressPoller:
    """
    Polls `fetch_videos()` every `interval` seconds and keeps the latest
    projection in `snapshot`.

    Polling ends once every entry has been completed/error for at least
    `grace_period` seconds, when a fetch fails, when `stop()` is called, or
    unconditionally after `max_duration` seconds.
    """

    def __init__(
        self,
        fetch_videos: Callable[[], Iterable],
        interval: Optional[float] = None,
        grace_period: Optional[float] = None,
        max_duration: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        settings = get_settings()
        self.fetch_videos = fetch_videos
        self.interval = settings.poll_interval if interval is None else interval
        self.grace_period = settings.poll_grace_period if grace_period is None else grace_period
        self.max_duration = settings.poll_max_duration if max_duration is None else max_duration
        self._clock = clock
        self._sleep = sleep

        self._snapshot: List[ProcessingProgress] = []
        self._started_at: Optional[float] = None
        self._done_since: Optional[float] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> List[ProcessingProgress]:
        with self._lock:
            return list(self._snapshot)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def completed(self) -> bool:
        with self._lock:
            return bool(self._snapshot) and is_complete(self._snapshot)

    def kickoff(self, videos: Iterable) -> List[ProcessingProgress]:
        with self._lock:
            self._snapshot = initial_progress(videos)
        self._started_at = self._clock()
        self._done_since = None
        return self.snapshot

    def poll_once(self) -> bool:
        """One polling cycle. Returns False when polling should stop."""
        now = self._clock()
        if self._started_at is None:
            self._started_at = now

        if now - self._started_at >= self.max_duration:
            logger.warning("Progress polling gave up after {:.0f}s", now - self._started_at)
            return False

        try:
            videos = list(self.fetch_videos())
        except Exception as e:
            logger.error("Error polling dataset status: {}", e)
            return False

        with self._lock:
            self._snapshot = project_progress(videos, self._snapshot)
            done = is_complete(self._snapshot)

        if not done:
            self._done_since = None
            return True
        if self._done_since is None:
            self._done_since = now
        return now - self._done_since < self.grace_period

    def run(self) -> None:
        """Blocking polling loop."""
        while not self._stop_event.is_set():
            if not self.poll_once():
                break
            if self._sleep is not None:
                self._sleep(self.interval)
            else:
                self._stop_event.wait(self.interval)

    def start(self, videos: Optional[Iterable] = None) -> None:
        if self.is_running:
            return
        if videos is not None:
            self.kickoff(videos)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="progress-poller", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None
