"""Tests for coalesced editor saves."""

import threading
import time

from debounce import DebouncedSaver


class TestDebouncedSaver:
    def test_flush_coalesces_to_last_values(self):
        saved = []
        saver = DebouncedSaver(saved.append, delay=60)
        saver.schedule("crop_x", 1)
        saver.schedule("crop_x", 5)
        saver.schedule("crop_y", 3)

        saver.flush()

        assert saved == [{"crop_x": 5, "crop_y": 3}]
        assert saver.pending == {}

    def test_timer_saves_once_after_quiet_period(self):
        saved = []
        done = threading.Event()

        def save(changes):
            saved.append(changes)
            done.set()

        saver = DebouncedSaver(save, delay=0.05)
        for x in range(10):
            saver.schedule("crop_x", x)

        assert done.wait(timeout=5)
        time.sleep(0.1)
        assert saved == [{"crop_x": 9}]

    def test_keys_are_independent(self):
        saved = []
        saver = DebouncedSaver(saved.append, delay=60)
        saver.schedule("start_time", 1.0)
        saver.schedule("resolution", "768x768")
        assert saver.pending == {"start_time": 1.0, "resolution": "768x768"}
        saver.cancel()

    def test_cancel_drops_pending(self):
        saved = []
        saver = DebouncedSaver(saved.append, delay=60)
        saver.schedule("crop_x", 1)
        saver.cancel()
        saver.flush()
        assert saved == []

    def test_save_errors_are_not_raised(self):
        def save(changes):
            raise RuntimeError("server down")

        saver = DebouncedSaver(save, delay=60)
        saver.schedule("crop_x", 1)
        saver.flush()
        assert saver.pending == {}

    def test_saves_through_update_video(self, db_session, make_dataset, make_video):
        from video_records import update_video

        video = make_video(make_dataset())
        saver = DebouncedSaver(lambda changes: update_video(db_session, video.id, changes), delay=60)
        saver.schedule("crop_x", 10)
        saver.schedule("crop_width", 960)
        saver.schedule("crop_height", 540)
        saver.schedule("crop_x", 20)
        saver.flush()

        db_session.refresh(video)
        assert (video.crop_x, video.crop_width, video.crop_height) == (20, 960, 540)
