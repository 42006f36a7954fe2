# memsfcr/core/paths.py
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

APP_DIRNAME = "memsfcr"


def home_folder() -> Path:
    return Path.home()


def app_root() -> Path:
    # <home>/memsfcr
    return home_folder() / APP_DIRNAME


def default_log_folder() -> Path:
    return app_root() / "logs"


def make_log_path(
    directory: Optional[Path] = None,
    *,
    prefix: str = "",
    ext: str = ".csv",
    now: Optional[datetime] = None,
) -> Path:
    """
    <directory>/<prefix>YYYY-MM-DD-HHMMSS<ext>, creating the directory.
    """
    root = Path(directory) if directory else default_log_folder()
    root.mkdir(parents=True, exist_ok=True)
    ts = (now or datetime.now()).strftime("%Y-%m-%d-%H%M%S")
    return root / f"{prefix}{ts}{ext}"
