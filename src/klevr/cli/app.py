from __future__ import annotations

import json
from datetime import timedelta

import typer
import uvicorn

from klevr.api.app import create_app
from klevr.config import get_settings
from klevr.core.auth import issue_session_token
from klevr.core.runtime import get_event_client
from klevr.db.init import init_database
from klevr.functions.celery_app import celery_app
from klevr.logging_config import configure_logging

app = typer.Typer(help="Klevr CLI")
auth_app = typer.Typer(help="Session helpers")
events_app = typer.Typer(help="Background functions and events")
searches_app = typer.Typer(help="Saved job searches")

app.add_typer(auth_app, name="auth")
app.add_typer(events_app, name="events")
app.add_typer(searches_app, name="searches")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


@app.command("init")
def init_cmd() -> None:
    """Initialize database and storage directories."""
    configure_logging()
    result = init_database()
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    uvicorn.run(create_app(), host=host or settings.app_host, port=port or settings.app_port)


@auth_app.command("token")
def auth_token(
    sub: str = typer.Option(..., "--sub", help="External identity id"),
    email: str = typer.Option(..., "--email"),
    ttl_min: int | None = typer.Option(None, "--ttl-min"),
) -> None:
    """Issue a session token for local testing."""
    ttl = timedelta(minutes=ttl_min) if ttl_min else None
    typer.echo(issue_session_token(sub=sub, email=email, ttl=ttl))


@events_app.command("list")
def events_list() -> None:
    client = get_event_client()
    typer.echo(json.dumps([spec.describe() for spec in client.functions], indent=2))


@events_app.command("send")
def events_send(
    name: str = typer.Argument(...),
    data: str = typer.Option("{}", "--data", help="JSON object payload"),
) -> None:
    configure_logging()
    ensure_initialized()
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--data is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise typer.BadParameter("--data must be a JSON object")

    client = get_event_client()
    event_id = client.send(name, payload)
    functions = [spec.id for spec in client.functions_for(name)]
    typer.echo(json.dumps({"id": event_id, "mode": client.mode, "functions": functions}, indent=2))


@events_app.command("worker")
def events_worker(
    beat: bool = typer.Option(True, "--beat/--no-beat", help="Also run the cron schedule"),
    concurrency: int = typer.Option(4, "--concurrency"),
    loglevel: str = typer.Option("INFO", "--loglevel"),
) -> None:
    """Run a Celery worker for the background functions."""
    configure_logging()
    ensure_initialized()
    argv = ["worker", f"--loglevel={loglevel}", f"--concurrency={concurrency}"]
    if beat:
        argv.append("--beat")
    celery_app.worker_main(argv)


@searches_app.command("run")
def searches_run() -> None:
    """Run every saved search that is due now."""
    configure_logging()
    ensure_initialized()
    run = get_event_client().invoke("run-saved-searches")
    typer.echo(json.dumps({**run.as_dict(), "result": run.result}, indent=2, default=str))
    if run.status != "Completed":
        raise typer.Exit(code=1)
