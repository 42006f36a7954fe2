# memsfcr/app/config.py
from __future__ import annotations

import sys
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from memsfcr.core.errors import ConfigError
from memsfcr.core.paths import default_log_folder

INFINITE = "inf"
INFINITE_LOOP = sys.maxsize

OUTPUTS = ("stdout", "file")
DRIVERS = ("uart", "virtual")

CONFIG_FILENAME = "memsfcr.yml"


@dataclass(frozen=True)
class MemsConfig:
    port: str = "/dev/ttyUSB0"
    driver: str = "uart"
    baudrate: int = 9600
    poll_interval_ms: int = 500
    heartbeat_interval_ms: int = 2000
    loop: Union[int, str] = INFINITE
    output: str = "stdout"
    log_folder: str = field(default_factory=lambda: str(default_log_folder()))
    cmd_timeout_s: float = 1.0
    liveness_timeout_s: float = 5.0
    ui_queue_size: int = 64
    command_queue_size: int = 16

    def __post_init__(self) -> None:
        _validate(self)

    @property
    def loop_limit(self) -> int:
        """Loop count as a number; 'inf' is an effectively unbounded count."""
        if self.loop == INFINITE:
            return INFINITE_LOOP
        return int(self.loop)

    @property
    def logging_enabled(self) -> bool:
        return self.output == "file"

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def heartbeat_interval_s(self) -> float:
        return self.heartbeat_interval_ms / 1000.0

    def transport_params(self) -> Dict[str, Any]:
        if self.driver == "uart":
            return {"port": self.port, "baudrate": self.baudrate}
        return {"port": self.port}

    def with_overrides(self, **overrides: Any) -> "MemsConfig":
        clean = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(clean) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigError(f"Unknown config option(s): {', '.join(sorted(unknown))}.")
        return replace(self, **{k: _coerce(k, v) for k, v in clean.items()})

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(name: str, value: Any) -> Any:
    if name != "loop" or not isinstance(value, str):
        return value
    if value.strip().lower() == INFINITE:
        return INFINITE
    try:
        return int(value)
    except ValueError:
        raise ConfigError(
            f"Invalid loop count '{value}'.",
            hint="Use a positive integer or 'inf'.",
        ) from None


def _validate(cfg: MemsConfig) -> None:
    if not isinstance(cfg.port, str) or not cfg.port:
        raise ConfigError("Config 'port' must be a non-empty string.")
    if cfg.driver not in DRIVERS:
        raise ConfigError(f"Unknown driver '{cfg.driver}'.", hint=f"Valid drivers: {', '.join(DRIVERS)}")
    if cfg.output not in OUTPUTS:
        raise ConfigError(f"Unknown output '{cfg.output}'.", hint=f"Valid outputs: {', '.join(OUTPUTS)}")

    loop = cfg.loop
    if loop != INFINITE and (isinstance(loop, bool) or not isinstance(loop, int) or loop <= 0):
        raise ConfigError(f"Invalid loop count '{loop}'.", hint="Use a positive integer or 'inf'.")

    for name in ("baudrate", "poll_interval_ms", "heartbeat_interval_ms", "ui_queue_size", "command_queue_size"):
        v = getattr(cfg, name)
        if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
            raise ConfigError(f"Config '{name}' must be a positive integer, got {v!r}.")

    for name in ("cmd_timeout_s", "liveness_timeout_s"):
        v = getattr(cfg, name)
        if isinstance(v, bool) or not isinstance(v, (int, float)) or v <= 0:
            raise ConfigError(f"Config '{name}' must be a positive number, got {v!r}.")

    # heartbeats alone must keep a paused link inside the liveness window
    if cfg.liveness_timeout_s <= cfg.heartbeat_interval_ms / 1000.0 + cfg.cmd_timeout_s:
        raise ConfigError(
            "liveness_timeout_s must exceed heartbeat interval + command timeout.",
            details={
                "liveness_timeout_s": cfg.liveness_timeout_s,
                "heartbeat_interval_ms": cfg.heartbeat_interval_ms,
                "cmd_timeout_s": cfg.cmd_timeout_s,
            },
        )


def config_from_mapping(data: Mapping[str, Any]) -> MemsConfig:
    known = {f.name for f in fields(MemsConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(
            f"Unknown config key(s): {', '.join(sorted(unknown))}.",
            hint=f"Valid keys: {', '.join(sorted(known))}",
        )
    values = {k: _coerce(k, v) for k, v in data.items() if v is not None}
    return MemsConfig(**values)


def load_config(path: Optional[str | Path] = None) -> MemsConfig:
    """
    Load memsfcr.yml. A missing default file yields the built-in defaults;
    an explicitly named file must exist.
    """
    explicit = path is not None
    path = Path(path) if explicit else Path(CONFIG_FILENAME)

    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return MemsConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError("Failed to parse config file.", hint=str(e), details={"path": str(path)}) from None

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a mapping.", details={"path": str(path)})

    return config_from_mapping(data)
