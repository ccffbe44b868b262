"""Tests for the progress projection and the polling lifecycle."""

import threading
from types import SimpleNamespace

import pytest

from errors import ConversionError
from process_dataset import process_dataset
from progress import (
    ProcessingProgress,
    ProgressPoller,
    initial_progress,
    is_complete,
    project_progress,
)
from video_records import list_videos


def v(video_id, status):
    return SimpleNamespace(id=video_id, status=status)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class TestProjectProgress:
    def test_status_table(self):
        progress = project_progress([v(1, "processed"), v(2, "error"), v(3, "pending"), v(4, "unknown")])
        assert progress == [
            ProcessingProgress(1, 100, "completed", "Processing complete"),
            ProcessingProgress(2, 0, "error", "Processing failed"),
            ProcessingProgress(3, 75, "processing", "Processing video..."),
            ProcessingProgress(4, 0, "idle", "Waiting to start..."),
        ]

    def test_error_carries_previous_progress(self):
        previous = [ProcessingProgress(1, 75, "processing", "Processing video...")]
        (item,) = project_progress([v(1, "error")], previous)
        assert (item.progress, item.status, item.message) == (75, "error", "Processing failed")

    def test_unknown_status_keeps_previous_processing_entry(self):
        previous = [ProcessingProgress(1, 25, "processing", "Starting processing...")]
        (item,) = project_progress([v(1, None)], previous)
        assert item == previous[0]

    def test_unknown_status_after_idle_is_idle(self):
        previous = [ProcessingProgress(1, 0, "idle", "Waiting to start...")]
        (item,) = project_progress([v(1, None)], previous)
        assert item.status == "idle"

    def test_accepts_api_dicts(self):
        (item,) = project_progress([{"id": 7, "status": "processed"}])
        assert item.video_id == 7 and item.status == "completed"


class TestInitialProgress:
    def test_kickoff_view(self):
        progress = initial_progress([v(1, "processed"), v(2, "pending"), v(3, "error")])
        assert [(p.progress, p.status) for p in progress] == [
            (100, "completed"),
            (25, "processing"),
            (25, "processing"),
        ]
        assert progress[1].message == "Starting processing..."


class TestIsComplete:
    def test_all_terminal(self):
        assert is_complete(project_progress([v(1, "processed"), v(2, "error")]))

    def test_pending_is_not_complete(self):
        assert not is_complete(project_progress([v(1, "processed"), v(2, "pending")]))

    def test_empty(self):
        assert is_complete([])


class TestProgressPoller:
    def test_stops_after_grace_period(self):
        clock = FakeClock()
        responses = iter([[v(1, "pending")], [v(1, "processed")], [v(1, "processed")], [v(1, "processed")]])
        fetches = []

        def fetch():
            fetches.append(clock.now)
            return next(responses)

        poller = ProgressPoller(fetch, interval=2.0, grace_period=2.0, max_duration=300.0, clock=clock, sleep=clock.sleep)
        poller.kickoff([v(1, "pending")])
        assert poller.snapshot[0].progress == 25

        poller.run()

        assert fetches == [0.0, 2.0, 4.0]
        assert poller.completed
        assert poller.snapshot == [ProcessingProgress(1, 100, "completed", "Processing complete")]

    def test_completion_that_reverts_resets_grace(self):
        clock = FakeClock()
        poller = ProgressPoller(lambda: [v(1, "processed")], grace_period=2.0, clock=clock, max_duration=300.0)
        poller.kickoff([v(1, "pending")])
        assert poller.poll_once()

        poller.fetch_videos = lambda: [v(1, "pending")]
        clock.now = 1.0
        assert poller.poll_once()

        poller.fetch_videos = lambda: [v(1, "processed")]
        clock.now = 2.5
        assert poller.poll_once()  # grace restarted at 2.5
        clock.now = 4.5
        assert not poller.poll_once()

    def test_hard_ceiling(self):
        clock = FakeClock()
        fetches = []

        def fetch():
            fetches.append(clock.now)
            return [v(1, "pending")]

        poller = ProgressPoller(fetch, interval=2.0, grace_period=2.0, max_duration=10.0, clock=clock, sleep=clock.sleep)
        poller.kickoff([v(1, "pending")])
        poller.run()

        assert fetches == [0.0, 2.0, 4.0, 6.0, 8.0]
        assert not poller.completed

    def test_fetch_error_stops_polling(self):
        clock = FakeClock()
        calls = []

        def fetch():
            calls.append(1)
            raise RuntimeError("connection refused")

        poller = ProgressPoller(fetch, clock=clock, sleep=clock.sleep)
        poller.kickoff([v(1, "pending")])
        poller.run()
        assert calls == [1]
        assert poller.snapshot[0].status == "processing"

    def test_completed_waits_for_writer(self):
        poller = ProgressPoller(lambda: [], grace_period=0.0)
        poller.kickoff([v(1, "processed")])
        seen = []

        with poller._lock:
            reader = threading.Thread(target=lambda: seen.append(poller.completed))
            reader.start()
            reader.join(timeout=0.1)
            assert reader.is_alive()
        reader.join(timeout=5)
        assert seen == [True]

    def test_start_and_stop_thread(self):
        poller = ProgressPoller(lambda: [v(1, "pending")], interval=0.01, grace_period=0.0, max_duration=30.0)
        poller.start([v(1, "pending")])
        assert poller.is_running
        poller.start()  # already running, no second thread
        poller.stop()
        assert not poller.is_running

    def test_thread_finishes_on_its_own(self):
        poller = ProgressPoller(lambda: [v(1, "error")], interval=0.01, grace_period=0.0, max_duration=30.0)
        poller.start([v(1, "pending")])
        poller._thread.join(timeout=5)
        assert not poller.is_running
        assert poller.snapshot[0].status == "error"
        assert poller.snapshot[0].progress == 25


@pytest.mark.parametrize("fail", [set(), {"b.mp4"}])
def test_completion_detected_within_one_poll(db_session, settings, make_dataset, make_video, fail):
    dataset = make_dataset()
    make_video(dataset, "a.mp4")
    make_video(dataset, "b.mp4")

    poller = ProgressPoller(lambda: list_videos(db_session, dataset.id), grace_period=0.0)
    poller.kickoff(list_videos(db_session, dataset.id))
    assert not poller.completed

    def convert(video, source, output, fps, frame_count):
        if video.filename in fail:
            raise ConversionError("failed", returncode=1)

    process_dataset(db_session, dataset.id, {"fps": 16, "frame_count": 81}, convert=convert)

    assert not poller.poll_once()
    assert poller.completed
    statuses = {p.status for p in poller.snapshot}
    assert statuses <= {"completed", "error"}
