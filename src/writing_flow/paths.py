"""Helpers for locating application directories."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "WritingFlow"
APP_AUTHOR = "WritingFlow"
DATA_DIR_ENV = "WRITING_FLOW_DATA_DIR"


def get_data_dir() -> Path:
    """Return the base directory for session history and logs.

    ``WRITING_FLOW_DATA_DIR`` overrides the per-user platform location.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        path = Path(override).expanduser()
    else:
        dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
        path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / "sessions.sqlite3"


def get_log_path() -> Path:
    return get_data_dir() / "writing-flow.log"
