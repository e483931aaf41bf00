"""File watcher: polls the save directory and debounces changes into backup batches."""

from __future__ import annotations

import os
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Union

from loguru import logger

from savekeeper.core.backup import commit_batch, scan_slots
from savekeeper.core.save_files import normalize_to_directory, parse_path
from savekeeper.errors import WatcherError

# Quiet period required after the last relevant change before backing up
DEBOUNCE_DURATION = 2.0
# Wait used while nothing is pending; also bounds how long a stop can go unnoticed
IDLE_WAIT = 60.0
POLL_INTERVAL = 0.5


class BatchObserver(Protocol):
    """Receives a notification after a batch created at least one snapshot."""

    def on_batch_committed(self, save_dir: Path, created: list[Path]) -> None: ...


BatchCallback = Callable[[Path, list[Path]], None]
BatchListener = Union[BatchObserver, BatchCallback]


@dataclass
class FileEvent:
    """Paths that changed in the watched directory, or a watch error."""

    paths: list[Path] = field(default_factory=list)
    error: Exception | None = None


class DirectoryPoller:
    """
    Watch handle for one directory (non-recursive).

    A daemon thread samples ``(size, mtime_ns)`` of every file each
    ``interval`` seconds and publishes a FileEvent for created, modified and
    removed files. ``stop()`` ends the thread and publishes ``None`` so the
    consumer sees the handle close.
    """

    def __init__(self, directory: Path, events: queue.Queue, interval: float = POLL_INTERVAL) -> None:
        self._directory = directory
        self._events = events
        self._interval = interval
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None
        self._state: dict[str, tuple[int, int]] = {}
        self._failing = False

    @property
    def directory(self) -> Path:
        return self._directory

    def _sample(self) -> dict[str, tuple[int, int]]:
        state: dict[str, tuple[int, int]] = {}
        with os.scandir(self._directory) as it:
            for entry in it:
                try:
                    if entry.is_file():
                        st = entry.stat()
                        state[entry.name] = (st.st_size, st.st_mtime_ns)
                except OSError:
                    # Vanished between listing and stat; the next sample reports it
                    continue
        return state

    def start(self) -> None:
        self._state = self._sample()
        self._thread = threading.Thread(
            target=self._run, name=f"savekeeper-poll-{self._directory.name}", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        self._events.put(None)
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout if timeout is not None else self._interval * 4)

    def poll_once(self) -> None:
        """Take one sample and publish the differences from the previous one."""
        try:
            current = self._sample()
        except OSError as e:
            if not self._failing:
                self._failing = True
                self._events.put(FileEvent(error=e))
            return
        self._failing = False

        changed = [
            name
            for name in current.keys() | self._state.keys()
            if current.get(name) != self._state.get(name)
        ]
        self._state = current
        if changed:
            self._events.put(FileEvent(paths=[self._directory / name for name in sorted(changed)]))

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            self.poll_once()


def _notify(listener: BatchListener | None, save_dir: Path, created: list[Path]) -> None:
    if listener is None or not created:
        return
    callback = getattr(listener, "on_batch_committed", listener)
    try:
        callback(save_dir, created)
    except Exception as e:
        logger.error(f"Batch listener failed: {e}")


def _run_batch(save_dir: Path, slots: set[int], limit: int, listener: BatchListener | None) -> None:
    try:
        created = commit_batch(save_dir, slots, limit)
    except Exception as e:
        logger.error(f"Backup batch failed for {save_dir}: {e}")
        return
    _notify(listener, save_dir, created)


def debounce_loop(
    events: queue.Queue,
    save_dir: Path,
    limit: int,
    shutdown: threading.Event,
    listener: BatchListener | None = None,
    *,
    debounce: float = DEBOUNCE_DURATION,
    idle_wait: float = IDLE_WAIT,
    initial_delay: float = 0.0,
) -> None:
    """
    Coalesce change events per slot and back them up after a quiet period.

    Idle: nothing pending, wait up to ``idle_wait`` for an event.
    Pending: wait for the rest of the debounce window; any relevant event
    restarts the window. When the window elapses every pending slot is
    backed up in one batch. An initial scan of the directory runs first as
    a batch of its own. ``None`` on the queue means the watch handle closed.
    """
    if initial_delay > 0 and shutdown.wait(initial_delay):
        return

    logger.info(f"Performing initial scan of {save_dir}")
    try:
        initial_slots = scan_slots(save_dir)
    except Exception as e:
        logger.error(f"Initial scan failed: {e}")
        initial_slots = set()
    if initial_slots:
        _run_batch(save_dir, initial_slots, limit, listener)

    pending: set[int] = set()
    last_change = time.monotonic()

    while not shutdown.is_set():
        if pending:
            elapsed = time.monotonic() - last_change
            if elapsed >= debounce:
                logger.info(f"Debounce timeout. Backing up {len(pending)} games")
                _run_batch(save_dir, set(pending), limit, listener)
                pending.clear()
                continue
            timeout = debounce - elapsed
        else:
            timeout = idle_wait

        try:
            event = events.get(timeout=timeout)
        except queue.Empty:
            continue

        if event is None:
            break
        if event.error is not None:
            logger.error(f"Watch error: {event.error}")
            continue

        relevant = False
        for path in event.paths:
            info = parse_path(path)
            if info is not None and not info.is_bak:
                pending.add(info.slot)
                relevant = True
        if relevant:
            last_change = time.monotonic()

    logger.debug(f"Debounce loop for {save_dir} exited")


class FileWatcher:
    """
    Starts and stops the watch on one save directory at a time.

    Each ``start()`` issues a fresh shutdown token; ``stop()`` only sets the
    current one, so a slow thread from an earlier run is never revived by a
    later start. Locks are held only while swapping the token or handle.
    """

    def __init__(
        self,
        *,
        debounce: float = DEBOUNCE_DURATION,
        poll_interval: float = POLL_INTERVAL,
        idle_wait: float = IDLE_WAIT,
        initial_delay: float = 0.0,
    ) -> None:
        self._debounce = debounce
        self._poll_interval = poll_interval
        self._idle_wait = idle_wait
        self._initial_delay = initial_delay

        self._handle_lock = threading.Lock()
        self._handle: DirectoryPoller | None = None
        self._token_lock = threading.Lock()
        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self, path: Path, limit: int, listener: BatchListener | None = None) -> None:
        self.stop()

        watch_target = normalize_to_directory(Path(path))
        if not watch_target.is_dir():
            raise WatcherError(f"Watch target does not exist: {watch_target}")

        events: queue.Queue = queue.Queue()
        poller = DirectoryPoller(watch_target, events, self._poll_interval)
        try:
            poller.start()
        except OSError as e:
            raise WatcherError(f"Failed to watch {watch_target}: {e}") from e

        with self._handle_lock:
            self._handle = poller

        token = threading.Event()
        with self._token_lock:
            self._shutdown = token

        thread = threading.Thread(
            target=debounce_loop,
            args=(events, watch_target, limit, token, listener),
            kwargs={
                "debounce": self._debounce,
                "idle_wait": self._idle_wait,
                "initial_delay": self._initial_delay,
            },
            name="savekeeper-debounce",
            daemon=True,
        )
        thread.start()
        self._thread = thread
        logger.info(f"Started watching: {watch_target}")

    def stop(self) -> None:
        with self._token_lock:
            token = self._shutdown
        token.set()

        with self._handle_lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.stop()
            logger.info("Stopped watching")

    def join(self, timeout: float | None = None) -> None:
        """Wait for the current debounce thread to exit."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    @property
    def is_running(self) -> bool:
        with self._handle_lock:
            return self._handle is not None

    @property
    def watched_directory(self) -> Path | None:
        with self._handle_lock:
            return self._handle.directory if self._handle is not None else None

    @property
    def shutdown_token(self) -> threading.Event:
        with self._token_lock:
            return self._shutdown
