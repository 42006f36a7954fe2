# memsfcr/app/controller.py
from __future__ import annotations

import logging
from typing import Iterable, Optional

from memsfcr.app.bridge import QueueBridge
from memsfcr.app.config import MemsConfig
from memsfcr.app.dispatcher import CommandDispatcher
from memsfcr.app.intake import CommandIntake
from memsfcr.app.publisher import FanoutPublisher
from memsfcr.interfaces.command_sink import CommandSink
from memsfcr.interfaces.frame_sink import FrameSink
from memsfcr.runtime.connection import ConnectionManager
from memsfcr.runtime.orchestrator import SessionOrchestrator
from memsfcr.runtime.session import Session
from memsfcr.runtime.state import SessionStatus
from memsfcr.transport.base import Transport
from memsfcr.transport.uart import list_serial_ports


class MemsController:
    """
    App-level wiring of one ECU session:

      bridge.inbound -> intake -> dispatcher -> orchestrator -> ECU
      orchestrator -> publisher -> {bridge.outbound, frame sinks}
    """

    def __init__(
        self,
        config: MemsConfig,
        *,
        transport: Transport,
        bridge: Optional[QueueBridge] = None,
        cmd_sink: Optional[CommandSink] = None,
        frame_sinks: Iterable[FrameSink] = (),
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._log = logger or logging.getLogger(__name__)
        self._bridge = bridge or QueueBridge(outbound_size=config.ui_queue_size)
        self._cmd_sink = cmd_sink

        self._session = Session(
            poll_interval_s=config.poll_interval_s,
            heartbeat_interval_s=config.heartbeat_interval_s,
            loop_limit=config.loop_limit,
            logger=self._log,
        )

        self._publisher = FanoutPublisher(self._bridge.outbound, logger=self._log)
        for s in frame_sinks:
            self._publisher.add_sink(s)

        self._connection = ConnectionManager(
            transport,
            self._session,
            cmd_timeout_s=config.cmd_timeout_s,
            liveness_timeout_s=config.liveness_timeout_s,
            cmd_sink=cmd_sink,
            on_status=self._publisher.publish_status,
            logger=self._log,
        )

        self._orchestrator = SessionOrchestrator(
            self._session,
            self._connection,
            self._publisher,
            command_queue_size=config.command_queue_size,
            logger=self._log,
        )

        self._dispatcher = CommandDispatcher(
            session=self._session,
            submit=self._orchestrator.submit,
            on_connect=self._orchestrator.request_connect,
            on_read_config=self.publish_config,
            logger=self._log,
        )

        self._intake: Optional[CommandIntake] = None

    @property
    def config(self) -> MemsConfig:
        return self._config

    @property
    def bridge(self) -> QueueBridge:
        return self._bridge

    @property
    def session(self) -> Session:
        return self._session

    @property
    def publisher(self) -> FanoutPublisher:
        return self._publisher

    def start(self) -> None:
        self._orchestrator.start()
        if self._intake is None:
            self._intake = CommandIntake(self._bridge, self._dispatcher, logger=self._log)
            self._intake.start()
        self.publish_config()

    def stop(self) -> None:
        if self._intake is not None:
            self._intake.stop()
            self._intake.join(timeout=1.0)
            self._intake = None

        try:
            self._orchestrator.stop(timeout=self._config.cmd_timeout_s * 3)
        except Exception:
            self._log.exception("ORCHESTRATOR_STOP_ERROR")

        self._publisher.close()

        if self._cmd_sink is not None:
            try:
                self._cmd_sink.close()
            except Exception:
                self._log.exception("CMD_SINK_CLOSE_ERROR")

    def __enter__(self) -> "MemsController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def connect(self) -> None:
        self._orchestrator.request_connect()

    def wait_finished(self, timeout: Optional[float] = None) -> bool:
        return self._orchestrator.finished.wait(timeout)

    def status(self) -> SessionStatus:
        return self._session.status()

    def publish_config(self) -> None:
        cfg = self._config.as_dict()
        try:
            cfg["ports"] = [self._config.port] + [p for p in list_serial_ports() if p != self._config.port]
        except Exception:
            self._log.exception("SERIAL_PORT_ENUMERATION_FAILED")
            cfg["ports"] = [self._config.port]
        self._publisher.publish_config(cfg)
