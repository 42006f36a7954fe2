# memsfcr/app/publisher.py
from __future__ import annotations

import logging
import queue
import threading
from typing import Any, List, Mapping, Optional

from memsfcr.interfaces.frame_sink import FrameSink
from memsfcr.model import messages as m
from memsfcr.model.messages import CommandResult, OutboundMessage
from memsfcr.protocol.dataframe import DataFrame
from memsfcr.runtime.state import ConnectionStatus


class FanoutPublisher:
    """
    Delivers results to the UI outbound channel and to frame sinks.

    Never blocks: data and command results are dropped when the UI channel is
    full. Connection-status messages are never dropped; they evict the oldest
    queued message instead.
    """

    def __init__(
        self,
        outbound: "queue.Queue[OutboundMessage]",
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self._outbound = outbound
        self._log = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._sinks: List[FrameSink] = []
        self._dropped = 0

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def add_sink(self, sink: FrameSink) -> None:
        with self._lock:
            if sink not in self._sinks:
                self._sinks.append(sink)

    # ---------------- publish ----------------
    def publish_frame(self, frame: DataFrame) -> None:
        self._offer(OutboundMessage(m.OUT_DATA, frame.as_dict()))

        with self._lock:
            sinks = list(self._sinks)
        for s in sinks:
            try:
                s.on_frame(frame)
            except Exception:
                self._log.exception("SINK_ON_FRAME_ERROR")

    def publish_result(self, result: CommandResult) -> None:
        self._offer(OutboundMessage(m.OUT_ECU_RESPONSE, result.as_dict()))

    def publish_status(self, status: ConnectionStatus) -> None:
        self._force(OutboundMessage(m.OUT_CONNECTION_STATUS, status.as_dict()))

    def publish_config(self, config: Mapping[str, Any]) -> None:
        self._force(OutboundMessage(m.OUT_CONFIG, dict(config)))

    def close(self) -> None:
        with self._lock:
            sinks = list(self._sinks)
            self._sinks.clear()
        for s in sinks:
            try:
                s.close()
            except Exception:
                self._log.exception("SINK_CLOSE_ERROR")

    # ---------------- channel ----------------
    def _offer(self, msg: OutboundMessage) -> bool:
        try:
            self._outbound.put_nowait(msg)
            return True
        except queue.Full:
            with self._lock:
                self._dropped += 1
                total = self._dropped
            self._log.debug("UI_QUEUE_FULL dropped_action=%s dropped_total=%d", msg.action, total)
            return False

    def _force(self, msg: OutboundMessage) -> None:
        while True:
            try:
                self._outbound.put_nowait(msg)
                return
            except queue.Full:
                pass
            try:
                evicted = self._outbound.get_nowait()
            except queue.Empty:
                continue
            with self._lock:
                self._dropped += 1
            self._log.debug("UI_QUEUE_EVICTED action=%s for=%s", evicted.action, msg.action)
