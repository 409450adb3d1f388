#!/usr/bin/env python3
# cli.py
# Background jobs CLI
#
# Runs workers and the monitor, and lets operators inspect queues,
# jobs and worker processes. Powered by Typer + Rich.

import json
import logging
from datetime import datetime
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bgjobs import BackgroundJobs, BackgroundJobsError, get_settings

from .monitor import Monitor
from .worker import Worker

app = typer.Typer(
    help="Background jobs: Redis queues and supervisord-managed workers",
    add_completion=False,
)

console = Console()


# -----------------------------
# Helpers
# -----------------------------

def success(msg: str):
    console.print(f"[green]✔ {escape(msg)}[/green]")


def error(msg: str):
    console.print(f"[bold red]✖ {escape(msg)}[/bold red]")


def fmt_ts(ts: Optional[float]) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def get_background_jobs() -> BackgroundJobs:
    return BackgroundJobs.from_settings(get_settings())


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    level = "DEBUG" if verbose else get_settings().log_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# -----------------------------
# Long-running processes
# -----------------------------

@app.command()
def worker(
    queue: str = typer.Argument(..., help="Queue to drain (default | email | cache | prio | update)"),
    max_runtime: Optional[float] = typer.Option(None, "--max-runtime", help="Stop after N seconds"),
):
    """
    Run a worker for one queue. Meant to be started by supervisord.
    """
    jobs = get_background_jobs()
    Worker(
        queue,
        jobs.dispatcher,
        jobs.orchestrator,
        timeout=jobs.settings.dequeue_timeout,
    ).start(max_runtime=max_runtime)


@app.command()
def monitor(
    interval: Optional[float] = typer.Option(None, "--interval", help="Seconds between checks"),
):
    """
    Restart dead workers periodically. Meant to be started by supervisord.
    """
    jobs = get_background_jobs()
    Monitor(jobs.orchestrator, interval=interval or jobs.settings.monitor_interval).start()


# -----------------------------
# Jobs & queues
# -----------------------------

@app.command()
def enqueue(
    queue: str = typer.Argument(..., help="Queue name"),
    command: str = typer.Argument(..., help="Command (event | server | admin)"),
    args: Optional[List[str]] = typer.Argument(None, help="Command arguments"),
    no_track: bool = typer.Option(False, "--no-track", help="Keep the status record only briefly"),
):
    """
    Enqueue a job and print its id.
    """
    try:
        job_id = get_background_jobs().dispatcher.enqueue(
            queue, command, args or [], track_status=False if no_track else None
        )
    except BackgroundJobsError as e:
        error(str(e))
        raise typer.Exit(code=1)

    console.print(job_id)


@app.command()
def job(job_id: str = typer.Argument(..., help="Background job id")):
    """
    Show a job's status record.
    """
    record = get_background_jobs().dispatcher.get_job(job_id)
    if record is None:
        error(f"Job {job_id} not found (never existed or expired)")
        raise typer.Exit(code=1)

    console.print_json(json.dumps(record.to_dict()))


@app.command()
def queues():
    """
    List queues and their sizes.
    """
    sizes = get_background_jobs().dispatcher.get_queue_sizes()

    table = Table(title="Queues")
    table.add_column("Queue")
    table.add_column("Pending", justify="right")
    for name, size in sizes.items():
        table.add_row(name, str(size))

    console.print(table)


@app.command("purge-queue")
def purge_queue(
    queue: str = typer.Argument(..., help="Queue name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """
    Drop every pending job of a queue.
    """
    if not yes:
        typer.confirm(f"Purge all pending jobs of '{queue}'?", abort=True)

    try:
        get_background_jobs().dispatcher.purge_queue(queue)
    except BackgroundJobsError as e:
        error(str(e))
        raise typer.Exit(code=1)

    success(f"Queue '{queue}' purged")


# -----------------------------
# Workers
# -----------------------------

@app.command()
def workers():
    """
    List worker records and supervised worker processes.
    """
    jobs = get_background_jobs()

    table = Table(title="Worker records")
    table.add_column("PID", justify="right")
    table.add_column("Queue")
    table.add_column("Status")
    table.add_column("Created")
    table.add_column("Updated")
    for w in sorted(jobs.orchestrator.get_workers(), key=lambda w: w.pid):
        table.add_row(str(w.pid), w.queue.value, w.status.value, fmt_ts(w.created_at), fmt_ts(w.updated_at))
    console.print(table)

    table = Table(title="Supervised processes")
    table.add_column("Name")
    table.add_column("PID", justify="right")
    table.add_column("State")
    table.add_column("Description")
    for proc in jobs.orchestrator.get_processes():
        table.add_row(proc.full_name, str(proc.pid or "-"), proc.state, proc.description)
    console.print(table)


@app.command("start-worker")
def start_worker(
    name: str = typer.Argument(..., help="Worker name, e.g. default_00"),
    wait: bool = typer.Option(False, "--wait", help="Wait until the process is running"),
):
    """
    Start one worker process.
    """
    try:
        get_background_jobs().orchestrator.start_worker(name, wait)
    except BackgroundJobsError as e:
        error(str(e))
        raise typer.Exit(code=1)

    success(f"Worker {name} started")


@app.command("stop-worker")
def stop_worker(
    worker_id: str = typer.Argument(..., help="Worker name (default_00) or pid"),
    wait: bool = typer.Option(False, "--wait", help="Wait until the process is stopped"),
):
    """
    Stop one worker process.
    """
    try:
        get_background_jobs().orchestrator.stop_worker(worker_id, wait)
    except BackgroundJobsError as e:
        error(str(e))
        raise typer.Exit(code=1)

    success(f"Worker {worker_id} stopped")


@app.command("restart-workers")
def restart_workers(
    wait: bool = typer.Option(False, "--wait", help="Wait for every process"),
):
    """
    Stop and start the whole worker group.
    """
    get_background_jobs().orchestrator.restart_workers(wait)
    success("Workers restarted")


@app.command("restart-dead-workers")
def restart_dead_workers(
    wait: bool = typer.Option(False, "--wait", help="Wait for every process"),
):
    """
    Start worker processes that are not running.
    """
    get_background_jobs().orchestrator.restart_dead_workers(wait)
    success("Dead workers restarted")


def main():
    app()


if __name__ == "__main__":
    main()
