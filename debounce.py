# debounce.py
import threading
from typing import Any, Callable, Dict, Optional

from loguru import logger

from config import get_settings


class DebouncedSaver:
    """
    Coalesces rapid edits: each key keeps only its latest value, and
    `save({key: value})` runs once after `delay` seconds without a newer
    edit to that key.

    Typical use is the crop editor, where a drag emits many cropX/cropY
    updates but only the final position should be written.
    """

    def __init__(self, save: Callable[[Dict[str, Any]], Any], delay: Optional[float] = None):
        self.save = save
        self.delay = get_settings().save_delay if delay is None else delay
        self._pending: Dict[str, Any] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def pending(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._pending)

    def schedule(self, key: str, value: Any) -> None:
        with self._lock:
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            self._pending[key] = value
            timer = threading.Timer(self.delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def _fire(self, key: str) -> None:
        with self._lock:
            # a newer schedule() replaced this timer while it was firing
            if self._timers.get(key) is not threading.current_thread():
                return
            del self._timers[key]
            value = self._pending.pop(key)
        self._save({key: value})

    def _save(self, changes: Dict[str, Any]) -> None:
        try:
            self.save(changes)
        except Exception as e:
            logger.error("Failed to save {}: {}", sorted(changes), e)

    def flush(self) -> None:
        """Save everything pending right now, in one call."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            changes, self._pending = self._pending, {}
        if changes:
            self._save(changes)

    def cancel(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._pending.clear()
