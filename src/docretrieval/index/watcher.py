"""Filesystem watcher that keeps the index in sync with a directory tree."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from docretrieval.index.indexer import Indexer
from docretrieval.utils.files import is_hidden

LOGGER = logging.getLogger(__name__)


class _IndexingHandler(FileSystemEventHandler):
    def __init__(self, watcher: "DocumentWatcher") -> None:
        super().__init__()
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.handle_change(os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.handle_change(os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.handle_removal(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.watcher.handle_removal(os.fsdecode(event.src_path))
        self.watcher.handle_change(os.fsdecode(event.dest_path))


class DocumentWatcher:
    """Watches ``root`` recursively and forwards file events to an :class:`Indexer`.

    Events on hidden paths or deeper than ``max_depth`` directory levels
    below the root are ignored. Errors while handling an event are logged
    and never reach the observer thread.
    """

    def __init__(
        self,
        indexer: Indexer,
        root: Path,
        *,
        max_depth: int = 10,
        initial_scan: bool = True,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self.indexer = indexer
        self.root = Path(root).resolve()
        self.max_depth = max_depth
        self.initial_scan = initial_scan
        self._observer_factory = observer_factory
        self._observer = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def accepts(self, path: Path) -> bool:
        path = Path(path).resolve()
        try:
            relative = path.relative_to(self.root)
        except ValueError:
            return False
        if len(relative.parts) - 1 > self.max_depth:
            return False
        return not is_hidden(relative)

    def handle_change(self, path: Path | str) -> None:
        path = Path(path)
        if not self.accepts(path):
            return
        LOGGER.info("File changed: %s", path)
        try:
            self.indexer.index_path(path)
        except Exception as exc:
            LOGGER.error("Failed to index %s: %s", path, exc)

    def handle_removal(self, path: Path | str) -> None:
        path = Path(path)
        if not self.accepts(path):
            return
        LOGGER.info("File removed: %s", path)
        try:
            self.indexer.remove_path(path)
        except Exception as exc:
            LOGGER.error("Failed to remove %s from index: %s", path, exc)

    def start(self) -> bool:
        """Start watching; returns False if the watch could not be set up."""
        if self._observer is not None:
            return True
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            observer = self._observer_factory()
            observer.schedule(_IndexingHandler(self), str(self.root), recursive=True)
            observer.start()
        except (OSError, RuntimeError) as exc:
            LOGGER.error("Failed to start watching %s: %s", self.root, exc)
            return False
        self._observer = observer
        LOGGER.info("Watching %s for document changes", self.root)

        if self.initial_scan:
            self.indexer.index_directory(self.root)
        return True

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        LOGGER.info("Stopped watching %s", self.root)

    def __enter__(self) -> "DocumentWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
