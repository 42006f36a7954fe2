# memsfcr/cli/commands.py
from __future__ import annotations

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

from memsfcr.app.config import load_config
from memsfcr.app.runner import start_run
from memsfcr.cli.console import ConsolePresenter, StdinActionReader
from memsfcr.core.paths import app_root, default_log_folder, home_folder, make_log_path
from memsfcr.transport.uart import list_serial_ports

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def app_version() -> str:
    try:
        return version("memsfcr")
    except PackageNotFoundError:
        return "dev"


# ---------------- Logging ----------------

def configure_logging(debug: bool, *, log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Console logging on stdout; with debug, DEBUG level and a copy in
    <home>/memsfcr/logs/debug-<date>-<time>.log. Returns the debug log path.
    Kept in CLI (presentation-layer concern).
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    if not any(getattr(h, "_memsfcr_console", False) for h in root.handlers):
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(formatter)
        sh._memsfcr_console = True  # type: ignore[attr-defined]
        root.addHandler(sh)

    if not debug:
        return None

    path = make_log_path(log_dir or default_log_folder(), prefix="debug-", ext=".log")
    try:
        fh = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning("DEBUG_LOG_OPEN_FAILED path=%s err=%s", path, e)
        return None
    fh.setFormatter(formatter)
    root.addHandler(fh)
    logging.getLogger(__name__).info("debug logging to %s", path)
    return path


# ---------------- Commands ----------------

def cmd_ports() -> int:
    ports = list_serial_ports()
    if not ports:
        print("No serial ports found.")
        return 0
    for p in ports:
        print(p)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    log = logging.getLogger(__name__)

    cfg = load_config(args.config).with_overrides(
        port=args.port,
        driver=args.driver,
        loop=args.loop,
        output=args.output,
        log_folder=args.log_folder,
    )

    log.info(
        "MEMSFCR_START version=%s home=%s app_folder=%s log_folder=%s driver=%s port=%s",
        app_version(), home_folder(), app_root(), cfg.log_folder, cfg.driver, cfg.port,
    )

    run = start_run(cfg)
    presenter = ConsolePresenter(run.bridge, show_frames=True, as_json=args.json)
    presenter.start()

    if args.interactive:
        StdinActionReader(run.bridge).start()
        print("Type an action (pause, resume, clear-faults, reset-ecu, ...) and press Enter.")

    if run.frames_path is not None:
        print(f"Logging frames to {run.frames_path}")

    try:
        with run.controller:
            run.controller.connect()
            while not run.controller.wait_finished(timeout=0.5):
                pass
    except KeyboardInterrupt:
        log.info("Exit requested, exiting")
    finally:
        presenter.stop()
        presenter.join(timeout=1.0)
        presenter.drain()

    log.info("COMMAND_SUMMARY %s", " ".join(f"{k}={v}" for k, v in sorted(run.cmd_sink.summary().items())))

    st = run.controller.status()
    print(f"Frames read: {st.loop_count} (state={st.state.value})")
    return 0
