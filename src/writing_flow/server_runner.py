"""Run the session API under uvicorn."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import SessionSettings
from .paths import get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8766


def run_server(
    *,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    db_path: Optional[Path] = None,
    settings: Optional[SessionSettings] = None,
    use_llm: bool = False,
    open_browser: bool = False,
    log_level: str = "info",
) -> None:
    """Serve the session engine over HTTP until interrupted.

    ``settings`` and ``use_llm`` configure the lifecycle behind the API;
    with ``open_browser`` the interactive docs open once the server is up.
    """
    settings = settings or SessionSettings()
    db_path = Path(db_path or get_db_path())
    app = create_app(db_path=db_path, settings=settings, use_llm=use_llm)
    logger.info(
        "Serving sessions from %s on %s:%d (%s analysis, %.0f minute default).",
        db_path,
        host,
        port,
        "Claude" if use_llm else "heuristic",
        settings.default_duration.total_seconds() / 60,
    )

    if open_browser:
        _open_docs_later(f"http://{host}:{port}/docs")

    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_docs_later(url: str, delay: float = 1.0) -> None:
    timer = threading.Timer(delay, webbrowser.open, args=(url,))
    timer.daemon = True
    timer.start()
