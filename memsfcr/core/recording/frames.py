# memsfcr/core/recording/frames.py
from __future__ import annotations

import csv
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from memsfcr.core.recording.async_writer import AsyncWriter
from memsfcr.interfaces.frame_sink import FrameSink
from memsfcr.protocol.dataframe import DataFrame


class DataFrameRecorder(FrameSink):
    """
    Appends decoded data frames to one CSV time series per run.

    Rows are queued to an AsyncWriter, so on_frame() returns immediately.
    """

    def __init__(self, path: Path, *, flush_interval_s: float = 0.5, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger(__name__)
        self._fieldnames: List[str] = DataFrame.field_names()
        self._lock = Lock()
        self._active = True
        self._writer = AsyncWriter(
            path=Path(path),
            write_func=self._write_batch,
            flush_interval=flush_interval_s,
            logger=self._log,
        )
        self._log.info("DATAFRAME_LOG path=%s", path)

    @property
    def path(self) -> Path:
        return self._writer.path

    def on_frame(self, frame: DataFrame) -> None:
        with self._lock:
            if not self._active:
                return
        self._writer.write(frame.as_dict())

    def close(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._writer.close()

    def _write_batch(self, path: Path, batch: List[Dict[str, Any]]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        new_file = not path.exists()

        with open(path, "a", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=self._fieldnames)
            if new_file:
                w.writeheader()
            w.writerows(batch)
