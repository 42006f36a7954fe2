# memsfcr/cli/args.py
from __future__ import annotations

import argparse
from typing import Optional

from memsfcr.app.config import DRIVERS, OUTPUTS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memsfcr",
        description="Rover MEMS 1.6 fault code reader",
    )
    parser.add_argument("--debug", action="store_true", help="Debug logging, also written to a log file.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("ports", help="List serial ports.")

    pr = sub.add_parser("run", help="Connect to the ECU and poll data frames.")
    pr.add_argument("--config", default=None, help="Path to memsfcr.yml (default: ./memsfcr.yml if present).")
    pr.add_argument("--port", default=None, help="Name/path of the serial port.")
    pr.add_argument("--driver", choices=DRIVERS, default=None, help="Transport driver.")
    pr.add_argument("--loop", default=None, help="Data frame loop count, 'inf' for infinite.")
    pr.add_argument(
        "--output",
        choices=OUTPUTS,
        default=None,
        help="'stdout' prints frames, 'file' also logs them in CSV format.",
    )
    pr.add_argument("--log-folder", default=None, help="Folder for CSV frame logs.")
    pr.add_argument(
        "--interactive",
        action="store_true",
        help="Read UI actions (pause, resume, clear-faults, ...) from stdin.",
    )
    pr.add_argument("--json", action="store_true", help="Print UI messages as JSON envelopes.")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
