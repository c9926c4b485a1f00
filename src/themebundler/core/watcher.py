"""
Filesystem subscriptions for watch mode.

Each watched root is one ``WatchHandle``. Observer threads (watchdog) hand
raw events to the event loop, where they are settled per path: a burst of
events on the same file (truncate, write, close) yields a single call to
the change handler once the file has been quiet for ``settle_delay``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from .patterns import IGNORED_DIRS

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.1

ChangeHandler = Callable[[Path], Awaitable[object] | object]


class _EventBridge(FileSystemEventHandler):
    """Forwards file events from the observer thread to a ``WatchHandle``."""

    def __init__(self, handle: WatchHandle):
        self._handle = handle

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle.notify(Path(str(event.src_path)))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle.notify(Path(str(event.src_path)))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle.notify(Path(str(event.dest_path)))


class WatchHandle:
    """
    Subscription to changes below one filesystem root.

    Call ``close()`` to stop the observer and drop pending notifications.
    """

    def __init__(
        self,
        root: Path,
        on_change: ChangeHandler,
        loop: asyncio.AbstractEventLoop,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ):
        self.root = root
        self.on_change = on_change
        self.settle_delay = settle_delay

        self._loop = loop
        self._observer: BaseObserver | None = None
        self._timers: dict[Path, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[object]] = set()
        self._closed = False

    @property
    def active(self) -> bool:
        return self._observer is not None and not self._closed

    def start(self) -> None:
        """Start the observer thread."""
        if self.root.is_file():
            watch_dir, recursive = self.root.parent, False
        else:
            watch_dir, recursive = self.root, True

        observer = Observer()
        observer.schedule(_EventBridge(self), str(watch_dir), recursive=recursive)
        observer.daemon = True
        observer.start()
        self._observer = observer

    def close(self) -> None:
        """Stop observing and cancel pending notifications. Safe to call twice."""
        self._closed = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=2)

    def notify(self, path: Path) -> None:
        """Record a raw event. Called from the observer thread."""
        if self._closed or self._loop.is_closed():
            return
        if any(part in IGNORED_DIRS for part in path.parts):
            return
        if self.root.is_file() and path != self.root:
            return
        self._loop.call_soon_threadsafe(self._settle, path)

    def _settle(self, path: Path) -> None:
        if self._closed:
            return
        pending = self._timers.pop(path, None)
        if pending is not None:
            pending.cancel()
        self._timers[path] = self._loop.call_later(self.settle_delay, self._fire, path)

    def _fire(self, path: Path) -> None:
        self._timers.pop(path, None)
        if self._closed:
            return
        result = self.on_change(path)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error handling change below %s: %s", self.root, exc, exc_info=exc)


def watch_tree(
    root: Path,
    on_change: ChangeHandler,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
) -> WatchHandle:
    """Start watching *root* and return the subscription handle.

    Must be called from a running event loop; *on_change* runs on that loop.
    """
    handle = WatchHandle(root, on_change, asyncio.get_running_loop(), settle_delay)
    handle.start()
    return handle
