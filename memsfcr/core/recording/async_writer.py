# memsfcr/core/recording/async_writer.py
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from queue import Queue, Empty
from typing import Any, Callable, List, Optional

WriteFunc = Callable[[Path, List[Any]], None]


class AsyncWriter:
    """
    Threaded, batched appender. write() only enqueues, so callers on a timing
    path never wait on the disk. Batches are handed to `write_func` in the
    order they were queued.
    """

    def __init__(
        self,
        path: Path,
        write_func: WriteFunc,
        flush_interval: float = 0.5,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self._path = Path(path)
        self._write_func = write_func
        self._flush_interval = float(flush_interval)

        self._log = logger or logging.getLogger(__name__)

        self._queue: Queue[Any] = Queue()
        self._stop_event = threading.Event()
        self._written = 0

        self._thread = threading.Thread(target=self._worker, name="AsyncWriter", daemon=True)
        self._thread.start()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def items_written(self) -> int:
        return self._written

    # ---------------- Public API ----------------
    def write(self, item: Any) -> None:
        """Queue an item for writing (no-op after close())."""
        if self._stop_event.is_set():
            return
        self._queue.put(item)

    def close(self) -> None:
        """Flush remaining items and stop the writer thread."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        self._thread.join(timeout=None)

    # ---------------- Internal ----------------
    def _worker(self) -> None:
        batch: List[Any] = []
        last_flush = time.monotonic()

        while not self._stop_event.is_set() or not self._queue.empty():
            try:
                batch.append(self._queue.get(timeout=0.1))
            except Empty:
                pass

            now = time.monotonic()
            if batch and (now - last_flush >= self._flush_interval or self._stop_event.is_set()):
                self._flush_safe(batch)
                batch = []
                last_flush = now

        if batch:
            self._flush_safe(batch)

    def _flush_safe(self, batch: List[Any]) -> None:
        """Never kill the worker thread; a failed batch is logged and dropped."""
        try:
            self._write_func(self._path, batch)
            self._written += len(batch)
        except Exception:
            self._log.exception("ASYNC_WRITER_FLUSH_FAILED path=%s batch_len=%d", self._path, len(batch))
