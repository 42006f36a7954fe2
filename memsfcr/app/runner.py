# memsfcr/app/runner.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from memsfcr.app.bridge import QueueBridge
from memsfcr.app.config import MemsConfig
from memsfcr.app.controller import MemsController
from memsfcr.core.errors import ConfigError
from memsfcr.core.paths import make_log_path
from memsfcr.core.recording.command import CommandTraceLogger
from memsfcr.core.recording.frames import DataFrameRecorder
from memsfcr.interfaces.frame_sink import FrameSink
from memsfcr.transport.base import Transport
from memsfcr.transport.errors import TransportError
from memsfcr.transport.registry import TransportDriverRegistry


@dataclass(frozen=True)
class AppRun:
    controller: MemsController
    bridge: QueueBridge
    transport: Transport
    cmd_sink: CommandTraceLogger
    recorder: Optional[DataFrameRecorder] = None
    frames_path: Optional[Path] = None
    commands_path: Optional[Path] = None


def create_transport(cfg: MemsConfig, drivers: Optional[TransportDriverRegistry] = None) -> Transport:
    drivers = drivers or TransportDriverRegistry.default()
    try:
        return drivers.create(cfg.driver, **cfg.transport_params())
    except (TransportError, TypeError) as e:
        raise ConfigError(
            f"Failed to construct transport (driver='{cfg.driver}').",
            hint=f"{e} (available drivers: {', '.join(drivers.names())})",
            details={"driver": cfg.driver, "port": cfg.port},
        ) from None


def start_run(
    cfg: MemsConfig,
    *,
    drivers: Optional[TransportDriverRegistry] = None,
    bridge: Optional[QueueBridge] = None,
    extra_sinks: Optional[List[FrameSink]] = None,
) -> AppRun:
    log = logging.getLogger(__name__)

    transport = create_transport(cfg, drivers)
    bridge = bridge or QueueBridge(outbound_size=cfg.ui_queue_size)

    frames_path: Optional[Path] = None
    commands_path: Optional[Path] = None
    recorder: Optional[DataFrameRecorder] = None
    sinks: List[FrameSink] = list(extra_sinks or [])

    if cfg.logging_enabled:
        frames_path = make_log_path(Path(cfg.log_folder))
        commands_path = frames_path.with_suffix(".jsonl")
        recorder = DataFrameRecorder(frames_path)
        sinks.append(recorder)

    cmd_sink = CommandTraceLogger(
        logger=logging.getLogger("commands"),
        file_path=commands_path,
        flush_interval_s=0.5,
    )

    controller = MemsController(
        cfg,
        transport=transport,
        bridge=bridge,
        cmd_sink=cmd_sink,
        frame_sinks=sinks,
        logger=log,
    )

    return AppRun(
        controller=controller,
        bridge=bridge,
        transport=transport,
        cmd_sink=cmd_sink,
        recorder=recorder,
        frames_path=frames_path,
        commands_path=commands_path,
    )
