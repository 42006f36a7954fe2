# memsfcr/cli/main.py
from __future__ import annotations

import logging
from typing import Optional

from memsfcr.core.errors import MemsError

from memsfcr.cli.args import parse_args
from memsfcr.cli.commands import cmd_ports, cmd_run, configure_logging


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.debug)

    try:
        if args.cmd == "ports":
            return cmd_ports()
        if args.cmd == "run":
            return cmd_run(args)
        return 2
    except MemsError as e:
        logging.getLogger(__name__).debug("CLI_ERROR code=%s details=%s", e.code, e.details)
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
