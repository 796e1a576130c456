"""Command-line interface for writing sessions."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator, Optional

import typer

from .config import SessionSettings
from .db import SessionStore, database_connection
from .errors import SessionNotActive, SessionNotFound, TextTooShort, WritingFlowError
from .paths import get_db_path, get_log_path
from .reporting import SummaryPrinter, compute_history_stats

app = typer.Typer(help="Timed, forward-only writing sessions.")

DbOption = typer.Option(
    None,
    "--db",
    path_type=Path,
    help="Location of the session SQLite database.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=[logging.FileHandler(get_log_path(), encoding="utf-8")],
    )


def _open_store(db_path: Optional[Path]) -> SessionStore:
    return SessionStore.open(db_path or get_db_path())


@contextmanager
def _session_store(db_path: Optional[Path]) -> Iterator[SessionStore]:
    with database_connection(db_path or get_db_path()) as conn:
        yield SessionStore(conn)


def _parse_day(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise typer.BadParameter("Use the YYYY-MM-DD format.") from exc


@app.command()
def write(
    minutes: float = typer.Option(
        15.0,
        "--minutes",
        "-m",
        min=1.0,
        max=60.0,
        help="Target session length in minutes.",
    ),
    title: Optional[str] = typer.Option(None, "--title", help="Session title."),
    llm: bool = typer.Option(False, "--llm", help="Analyze with Claude, falling back to heuristics."),
    db_path: Optional[Path] = DbOption,
) -> None:
    """Write line by line until time runs out or input ends (Ctrl-D)."""
    from .analyzer import build_analyzer
    from .lifecycle import SessionLifecycle
    from .signals import Signal

    settings = SessionSettings.from_minutes(minutes)
    store = _open_store(db_path)
    lifecycle = SessionLifecycle(store, analyzer=build_analyzer(llm), settings=settings)
    lifecycle.bus.subscribe(
        Signal.INACTIVITY, lambda _sid: typer.secho("Keep writing...", fg=typer.colors.YELLOW)
    )
    lifecycle.bus.subscribe(
        Signal.TIMER_EXPIRED, lambda _state: typer.secho("Time is up.", fg=typer.colors.GREEN)
    )

    try:
        session = lifecycle.start(settings.default_duration.total_seconds(), title=title)
    except WritingFlowError as exc:
        lifecycle.shutdown()
        store.close()
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Session {session.id[:8]} started. Write; there is no going back.")
    lines: list[str] = []
    try:
        while lifecycle.current_active() is not None:
            try:
                line = input()
            except EOFError:
                break
            lines.append(line)
            try:
                lifecycle.update_content(session.id, "\n".join(lines))
            except SessionNotActive:
                break
    except KeyboardInterrupt:
        typer.echo()
    finally:
        session = lifecycle.complete(session.id)
        lifecycle.shutdown()
        store.close()

    printer = SummaryPrinter(echo=typer.echo)
    typer.echo()
    printer.print_session(session)


@app.command()
def history(
    start: Optional[str] = typer.Option(None, "--start", help="First day (YYYY-MM-DD)."),
    end: Optional[str] = typer.Option(None, "--end", help="Last day (YYYY-MM-DD), inclusive."),
    db_path: Optional[Path] = DbOption,
) -> None:
    """List recorded sessions, newest first."""
    start_day = _parse_day(start)
    end_day = _parse_day(end)
    with _session_store(db_path) as store:
        sessions = store.list_sessions(
            start_day, end_day + timedelta(days=1) if end_day else None
        )
    SummaryPrinter(echo=typer.echo).print_sessions(sessions)


@app.command()
def show(session_id: str, db_path: Optional[Path] = DbOption) -> None:
    """Show one session with its analysis."""
    with _session_store(db_path) as store:
        session = store.get(session_id)
    if session is None:
        typer.echo(f"Session {session_id} not found.", err=True)
        raise typer.Exit(code=1)
    SummaryPrinter(echo=typer.echo).print_session(session)


@app.command()
def search(query: str, db_path: Optional[Path] = DbOption) -> None:
    """Find sessions whose title or text contains QUERY."""
    with _session_store(db_path) as store:
        sessions = store.search(query)
    SummaryPrinter(echo=typer.echo).print_sessions(sessions)


@app.command()
def delete(
    session_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    db_path: Optional[Path] = DbOption,
) -> None:
    """Delete a session and its analysis."""
    if not yes:
        typer.confirm(f"Delete session {session_id}?", abort=True)
    with _session_store(db_path) as store:
        try:
            store.delete(session_id)
        except SessionNotFound as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc
    typer.echo(f"Deleted {session_id}.")


@app.command()
def stats(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to all sessions.",
    ),
    db_path: Optional[Path] = DbOption,
) -> None:
    """Print totals across recorded sessions."""
    day = _parse_day(date)
    with _session_store(db_path) as store:
        sessions = store.list_sessions(day, day + timedelta(days=1) if day else None)
    SummaryPrinter(echo=typer.echo).print_stats(
        compute_history_stats(sessions), label=date
    )


@app.command()
def analyze(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    llm: bool = typer.Option(False, "--llm", help="Analyze with Claude, falling back to heuristics."),
) -> None:
    """Analyze a text file without starting a session."""
    from .analyzer import build_analyzer

    text = file.read_text(encoding="utf-8")
    try:
        result = build_analyzer(llm).analyze(text)
    except TextTooShort as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    SummaryPrinter(echo=typer.echo).print_analysis(result)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = DbOption,
    minutes: float = typer.Option(
        15.0, "--minutes", min=1.0, max=60.0, help="Default session length in minutes."
    ),
    inactivity_seconds: float = typer.Option(
        30.0,
        "--inactivity",
        min=1.0,
        help="Seconds without typing before an inactivity signal.",
    ),
    llm: bool = typer.Option(False, "--llm", help="Analyze with Claude, falling back to heuristics."),
) -> None:
    """Serve the session API for an editor front end."""
    from .server_runner import run_server

    settings = SessionSettings.from_minutes(minutes, inactivity_seconds=inactivity_seconds)
    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        use_llm=llm,
    )
