# memsfcr/app/intake.py
from __future__ import annotations

import logging
import threading
from typing import Optional

from memsfcr.app.bridge import QueueBridge
from memsfcr.app.dispatcher import CommandDispatcher


class CommandIntake(threading.Thread):
    """Thread that receives UI actions from the bridge and feeds the dispatcher."""

    def __init__(
        self,
        bridge: QueueBridge,
        dispatcher: CommandDispatcher,
        *,
        poll_s: float = 0.1,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(name="MemsCommandIntake", daemon=True)
        self._bridge = bridge
        self._dispatcher = dispatcher
        self._poll_s = float(poll_s)
        self._log = logger or logging.getLogger(__name__)
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            action = self._bridge.next_action(timeout=self._poll_s)
            if action is None:
                continue
            try:
                self._dispatcher.dispatch(action)
            except Exception:
                self._log.exception("UI_ACTION_DISPATCH_ERROR action=%r", action.action)

    def stop(self) -> None:
        self._stop_event.set()
