"""Tests for the file watcher and debounce loop."""

from __future__ import annotations

import queue
import threading
import time
from pathlib import Path

import pytest

from savekeeper.core.watcher import DirectoryPoller, FileEvent, FileWatcher, debounce_loop
from savekeeper.errors import WatcherError


class Recorder:
    """Batch listener that records calls and lets tests wait for them."""

    def __init__(self) -> None:
        self.calls: list[list[Path]] = []
        self.called = threading.Event()

    def on_batch_committed(self, save_dir: Path, created: list[Path]) -> None:
        self.calls.append(created)
        self.called.set()


def _folders(save_dir: Path) -> list[Path]:
    root = save_dir / ".backups"
    return [p for p in root.iterdir() if p.is_dir()] if root.exists() else []


def _run_loop(events: queue.Queue, save_dir: Path, listener=None, **kwargs) -> threading.Thread:
    shutdown = threading.Event()
    kwargs.setdefault("debounce", 0.2)
    kwargs.setdefault("idle_wait", 0.5)
    thread = threading.Thread(
        target=debounce_loop,
        args=(events, save_dir, 10, shutdown, listener),
        kwargs=kwargs,
        daemon=True,
    )
    thread.start()
    return thread


class TestDebounceLoop:
    def test_initial_scan_backs_up_every_slot(self, save_dir: Path, write_save) -> None:
        write_save(0, "data0")
        write_save(1, "data1", offset=1)
        recorder = Recorder()
        events: queue.Queue = queue.Queue()
        events.put(None)

        _run_loop(events, save_dir, recorder).join(5)

        assert len(_folders(save_dir)) == 2
        assert len(recorder.calls) == 1
        assert len(recorder.calls[0]) == 2

    def test_burst_coalesced_into_one_batch(self, save_dir: Path, write_save) -> None:
        main = write_save(0, "first")
        recorder = Recorder()
        events: queue.Queue = queue.Queue()
        thread = _run_loop(events, save_dir, recorder)
        assert recorder.called.wait(5)  # initial scan
        recorder.called.clear()

        write_save(0, "middle", offset=10)
        events.put(FileEvent(paths=[main]))
        write_save(0, "second", offset=20)
        events.put(FileEvent(paths=[main]))

        assert recorder.called.wait(5)
        events.put(None)
        thread.join(5)

        assert len(recorder.calls) == 2
        assert len(recorder.calls[1]) == 1
        contents = sorted(
            (f / "gamesave_0.sav").read_text(encoding="utf-8") for f in _folders(save_dir)
        )
        assert contents == ["first", "second"]

    def test_new_event_restarts_debounce_window(self, save_dir: Path, write_save) -> None:
        main = write_save(0, "first")
        recorder = Recorder()
        events: queue.Queue = queue.Queue()
        thread = _run_loop(events, save_dir, recorder, debounce=0.4)
        assert recorder.called.wait(5)  # initial scan
        recorder.called.clear()

        write_save(0, "second", offset=10)
        events.put(FileEvent(paths=[main]))
        time.sleep(0.3)
        write_save(0, "third", offset=20)
        events.put(FileEvent(paths=[main]))

        # 0.6 s after the first event, but inside the window restarted by the second
        assert not recorder.called.wait(0.3)
        assert recorder.called.wait(5)
        events.put(None)
        thread.join(5)

        assert len(recorder.calls) == 2
        [created] = recorder.calls[1]
        assert (created / "gamesave_0.sav").read_text(encoding="utf-8") == "third"

    def test_bak_and_foreign_events_ignored(self, save_dir: Path, write_save) -> None:
        recorder = Recorder()
        events: queue.Queue = queue.Queue()
        thread = _run_loop(events, save_dir, recorder)

        bak = write_save(0, "bak", bak=True)
        events.put(FileEvent(paths=[bak, save_dir / "notes.txt"]))
        events.put(FileEvent(error=OSError("watch failed")))
        events.put(None)
        thread.join(5)

        assert not thread.is_alive()
        assert recorder.calls == []
        assert _folders(save_dir) == []

    def test_duplicate_batch_does_not_notify(self, save_dir: Path, write_save) -> None:
        main = write_save(0, "same")
        recorder = Recorder()
        events: queue.Queue = queue.Queue()
        thread = _run_loop(events, save_dir, recorder)

        assert recorder.called.wait(5)  # initial scan
        recorder.called.clear()
        events.put(FileEvent(paths=[main]))
        assert not recorder.called.wait(1.0)
        events.put(None)
        thread.join(5)

        assert len(recorder.calls) == 1
        assert len(_folders(save_dir)) == 1

    def test_plain_callable_listener(self, save_dir: Path, write_save) -> None:
        write_save(3, "x")
        seen: list[Path] = []
        events: queue.Queue = queue.Queue()
        events.put(None)

        _run_loop(events, save_dir, lambda _dir, created: seen.extend(created)).join(5)

        assert len(seen) == 1
        assert seen[0].name.startswith("Game 4 - ")

    def test_listener_error_does_not_kill_loop(self, save_dir: Path, write_save) -> None:
        write_save(0, "x")
        hits: list[int] = []
        hit = threading.Event()

        def broken(_dir: Path, _created: list[Path]) -> None:
            hits.append(1)
            hit.set()
            raise RuntimeError("ui went away")

        events: queue.Queue = queue.Queue()
        thread = _run_loop(events, save_dir, broken)
        assert hit.wait(5)
        hit.clear()

        main = write_save(0, "y", offset=10)
        events.put(FileEvent(paths=[main]))
        assert hit.wait(5)
        assert thread.is_alive()

        events.put(None)
        thread.join(5)
        assert len(hits) == 2
        assert len(_folders(save_dir)) == 2

    def test_shutdown_during_initial_delay(self, save_dir: Path, write_save) -> None:
        write_save(0, "x")
        shutdown = threading.Event()
        shutdown.set()
        debounce_loop(queue.Queue(), save_dir, 10, shutdown, initial_delay=5.0)
        assert _folders(save_dir) == []


class TestDirectoryPoller:
    def test_reports_created_modified_and_removed(self, save_dir: Path, write_save) -> None:
        events: queue.Queue = queue.Queue()
        poller = DirectoryPoller(save_dir, events, interval=3600)
        poller.start()
        try:
            main = write_save(0, "a")
            poller.poll_once()
            assert events.get_nowait().paths == [main]

            write_save(0, "bb", offset=5)
            poller.poll_once()
            assert events.get_nowait().paths == [main]

            main.unlink()
            poller.poll_once()
            assert events.get_nowait().paths == [main]

            poller.poll_once()
            assert events.empty()
        finally:
            poller.stop()
        assert events.get_nowait() is None

    def test_missing_directory_reports_error_once(self, tmp_path: Path) -> None:
        d = tmp_path / "gone"
        d.mkdir()
        events: queue.Queue = queue.Queue()
        poller = DirectoryPoller(d, events, interval=3600)
        poller.start()
        d.rmdir()
        poller.poll_once()
        poller.poll_once()
        poller.stop()

        first = events.get_nowait()
        assert first.error is not None
        assert events.get_nowait() is None


class TestFileWatcher:
    def test_lifecycle(self, save_dir: Path) -> None:
        watcher = FileWatcher(poll_interval=0.05, idle_wait=0.2)
        watcher.start(save_dir, 10)
        assert watcher.is_running
        assert watcher.watched_directory == save_dir
        watcher.stop()
        watcher.join(5)
        assert not watcher.is_running

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(WatcherError):
            FileWatcher().start(tmp_path / "missing", 10)

    def test_file_path_watches_parent(self, save_dir: Path, write_save) -> None:
        main = write_save(0, "x")
        watcher = FileWatcher(poll_interval=0.05, idle_wait=0.2)
        watcher.start(main, 10)
        try:
            assert watcher.watched_directory == save_dir
        finally:
            watcher.stop()

    def test_stop_signal_not_cleared_by_restart(self, save_dir: Path) -> None:
        watcher = FileWatcher(poll_interval=0.05, idle_wait=0.2)
        watcher.start(save_dir, 10)
        first_token = watcher.shutdown_token

        watcher.stop()
        assert first_token.is_set()

        watcher.start(save_dir, 10)
        try:
            assert first_token.is_set()
            assert watcher.shutdown_token is not first_token
            assert not watcher.shutdown_token.is_set()
        finally:
            watcher.stop()

    def test_change_on_disk_creates_snapshot(self, save_dir: Path, write_save) -> None:
        recorder = Recorder()
        watcher = FileWatcher(debounce=0.2, poll_interval=0.05, idle_wait=0.5)
        watcher.start(save_dir, 10, recorder)
        try:
            write_save(0, "fresh save")
            assert recorder.called.wait(10)
        finally:
            watcher.stop()
            watcher.join(5)

        [folder] = _folders(save_dir)
        assert (folder / "gamesave_0.sav").read_text(encoding="utf-8") == "fresh save"
