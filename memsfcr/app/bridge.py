# memsfcr/app/bridge.py
from __future__ import annotations

import queue
from typing import Optional

from memsfcr.model.messages import OutboundMessage, UIAction


class QueueBridge:
    """
    In-process channel pair between the core and a presentation layer.

    inbound:  UI -> core, unbounded (user actions are rare and must not be lost)
    outbound: core -> UI, bounded; the publisher never blocks on it
    """

    def __init__(self, *, outbound_size: int = 64):
        self.inbound: "queue.Queue[UIAction]" = queue.Queue()
        self.outbound: "queue.Queue[OutboundMessage]" = queue.Queue(maxsize=int(outbound_size))

    # ---- UI side ----
    def send_action(self, action: UIAction) -> None:
        self.inbound.put(action)

    def send_json(self, text: str) -> None:
        self.send_action(UIAction.from_json(text))

    def receive(self, timeout: Optional[float] = None) -> Optional[OutboundMessage]:
        try:
            return self.outbound.get(timeout=timeout)
        except queue.Empty:
            return None

    # ---- core side ----
    def next_action(self, timeout: Optional[float] = None) -> Optional[UIAction]:
        try:
            return self.inbound.get(timeout=timeout)
        except queue.Empty:
            return None
