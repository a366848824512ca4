"""
Shader source watcher — background mtime polling of a shader crate.

A daemon thread scans the crate's files every ``poll_interval``
seconds and puts a ``ChangeEvent`` on ``events`` when the newest
modification time moves forward.  The consumer blocks on the queue.
``target/`` and hidden directories are not scanned.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Collection

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 1.0

_SKIP_DIRS = frozenset({"target", "node_modules"})


@dataclass(frozen=True)
class ChangeEvent:
    """The crate changed; ``mtime`` is the newest file time seen."""

    path: Path
    mtime: float


def max_mtime(root: Path, exclude: Collection[Path] = ()) -> float:
    """Newest modification time of any watched file under ``root``.

    Paths in ``exclude`` (files or whole directories) are not scanned.
    """
    newest = 0.0
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            entries = list(current.iterdir())
        except OSError:
            continue  # vanished mid-scan
        for entry in entries:
            if entry.name.startswith(".") or entry in exclude:
                continue
            if entry.is_dir():
                if entry.name not in _SKIP_DIRS:
                    stack.append(entry)
                continue
            try:
                newest = max(newest, entry.stat().st_mtime)
            except OSError:
                continue
    return newest


class ShaderWatcher:
    """Polls a shader crate for changes on its own thread.

    ``exclude`` is read on every poll, so paths added to it later (build
    outputs written into the crate) stop counting as changes.
    """

    def __init__(
        self,
        root: Path,
        poll_interval: float = POLL_INTERVAL_S,
        exclude: Collection[Path] | None = None,
    ) -> None:
        self.root = root
        self.poll_interval = poll_interval
        self.exclude: Collection[Path] = exclude if exclude is not None else set()
        self.events: queue.Queue[ChangeEvent | None] = queue.Queue()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def started(self) -> bool:
        return self._thread is not None

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(
            target=self._poll_loop,
            args=(max_mtime(self.root, self.exclude),),
            daemon=True,
            name="shader-watcher",
        )
        self._thread.start()
        logger.info(
            "Watching %s for changes (poll every %.1fs)", self.root, self.poll_interval
        )
        return self._thread

    def stop(self) -> None:
        """Stop polling and wake up a consumer blocked on ``events``."""
        self._stop.set()
        self.events.put(None)

    def _poll_loop(self, last_seen: float) -> None:
        while not self._stop.wait(self.poll_interval):
            current = max_mtime(self.root, self.exclude)
            if current > last_seen:
                logger.debug("change detected in %s", self.root)
                last_seen = current
                self.events.put(ChangeEvent(self.root, current))
