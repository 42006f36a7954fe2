# memsfcr/core/recording/command.py
from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from memsfcr.core.recording.async_writer import AsyncWriter
from memsfcr.interfaces.command_sink import CommandEvent, CommandSink

# outcomes that mean the ECU did not do what was asked
PROBLEM_KINDS = frozenset({"timeout", "error", "rejected"})


def trace_row(event: CommandEvent) -> Dict[str, Any]:
    """
    One flat trace row per ECU transaction event:
    ts_utc, seq, cmd, event, code (0xNN), reply (hex), status, rtt_ms, error.
    """
    p = dict(event.payload or {})
    code = p.get("code")
    rtt = p.get("rtt_ms")
    row = {
        "ts_utc": event.ts_utc or datetime.now(timezone.utc).isoformat(),
        "seq": event.request_id,
        "cmd": event.name,
        "event": event.kind,
        "code": f"0x{code:02X}" if isinstance(code, int) else code,
        "reply": p.get("reply"),
        "status": p.get("status"),
        "rtt_ms": round(rtt, 1) if isinstance(rtt, (int, float)) else None,
        "error": p.get("error"),
    }
    return {k: v for k, v in row.items() if v is not None}


@dataclass
class CommandTraceLogger(CommandSink):
    """
    ECU command trace: logs every transaction event, keeps per-outcome counts
    for the run summary and, with a file_path, appends JSON lines.
    """
    logger: logging.Logger
    file_path: Optional[Path] = None
    flush_interval_s: float = 0.5
    counts: Counter = field(default_factory=Counter, init=False)

    def __post_init__(self) -> None:
        self._lock = Lock()
        self._writer: Optional[AsyncWriter] = None
        if self.file_path is not None:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self._writer = AsyncWriter(
                path=self.file_path,
                flush_interval=self.flush_interval_s,
                write_func=_append_lines,
                logger=self.logger,
            )

    def on_command(self, event: CommandEvent) -> None:
        row = trace_row(event)
        with self._lock:
            self.counts[event.kind] += 1

        if event.kind in PROBLEM_KINDS:
            self.logger.warning(
                "ECU_CMD_%s cmd=%s code=%s detail=%s",
                event.kind.upper(), event.name, row.get("code"),
                row.get("error") or row.get("status") or row.get("reply"),
            )
        else:
            self.logger.debug("ECU_CMD_%s cmd=%s code=%s seq=%s", event.kind.upper(), event.name, row.get("code"), row.get("seq"))

        if self._writer is not None:
            self._writer.write(json.dumps(row, ensure_ascii=False))

    def summary(self) -> Dict[str, int]:
        with self._lock:
            return dict(self.counts)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


def _append_lines(path: Path, batch: list[str]) -> None:
    with open(path, "a", encoding="utf-8") as f:
        f.write("".join(line + "\n" for line in batch))
