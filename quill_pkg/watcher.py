"""
Rebuild the site when source or content files change.
"""

import logging
import threading
import time

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger('quill.watcher')


class Debouncer:
    """Call ``callback`` once, ``delay`` seconds after the last trigger.

    Runs never overlap. Triggers that fire while the callback is running
    are collapsed into a single follow-up run.
    """

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self._timer = None
        self._running = False
        self._pending = False
        self._lock = threading.Lock()

    def trigger(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self):
        with self._lock:
            self._pending = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self):
        with self._lock:
            if self._timer is threading.current_thread():
                self._timer = None
            if self._running:
                self._pending = True
                return
            self._running = True

        while True:
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Rebuild failed: {e}")

            with self._lock:
                if not self._pending:
                    self._running = False
                    return
                self._pending = False


class RebuildHandler(FileSystemEventHandler):
    """File system event handler that schedules a debounced rebuild."""

    def __init__(self, debouncer):
        super().__init__()
        self.debouncer = debouncer
        self.events_seen = 0

    def on_any_event(self, event):
        if event.is_directory:
            return
        if event.event_type not in ('created', 'modified', 'deleted', 'moved'):
            return
        self.events_seen += 1
        logger.debug(f"{event.event_type}: {event.src_path}")
        self.debouncer.trigger()


def watch(paths, rebuild, delay=0.3, observer_factory=Observer):
    """Run ``rebuild`` after changes below any of ``paths`` until interrupted."""
    debouncer = Debouncer(delay, rebuild)
    handler = RebuildHandler(debouncer)
    observer = observer_factory()

    for path in paths:
        observer.schedule(handler, path, recursive=True)
        logger.info(f"Watching {path}")

    observer.start()
    try:
        while observer.is_alive():
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Stopping watcher")
    finally:
        debouncer.cancel()
        observer.stop()
        observer.join()
