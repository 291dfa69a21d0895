# backend/studiobook/commands/maintenance.py
"""
Maintenance CLI.

Usage:
    python -m studiobook.commands.maintenance run
    python -m studiobook.commands.maintenance release-holds
    python -m studiobook.commands.maintenance expire-lots
    python -m studiobook.commands.maintenance expire-requests
    python -m studiobook.commands.maintenance send-reminders

Meant to be run from cron every few minutes; each job is idempotent.
"""

from contextlib import contextmanager
import logging
from typing import Callable, Iterator

import click

from ..core.config import settings
from ..database import SessionLocal, get_engine
from ..services.maintenance_service import MaintenanceService

logger = logging.getLogger(__name__)


@contextmanager
def maintenance_service() -> Iterator[MaintenanceService]:
    get_engine()
    db = SessionLocal()
    try:
        yield MaintenanceService(db)
    finally:
        db.close()


def _run_job(label: str, job: Callable[[MaintenanceService], int]) -> None:
    with maintenance_service() as service:
        count = job(service)
    click.echo(f"{click.style('[OK]', fg='green')} {label}: {count}")


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this run.")
def cli(log_level: str) -> None:
    """Studio booking housekeeping jobs."""
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command("run")
def run_all() -> None:
    """Run every job once."""
    with maintenance_service() as service:
        report = service.run_all()
    for key, value in report.as_dict().items():
        click.echo(f"{click.style('[OK]', fg='green')} {key.replace('_', ' ')}: {value}")


@cli.command("release-holds")
def release_holds() -> None:
    """Cancel and refund soft-holds past their expiry."""
    _run_job("holds released", lambda service: service.release_expired_holds().holds_released)


@cli.command("expire-lots")
def expire_lots() -> None:
    """Mark credit lots past their expiry as expired."""
    _run_job("lots expired", lambda service: service.expire_lots())


@cli.command("expire-requests")
def expire_requests() -> None:
    """Expire booking requests nobody answered in time."""
    _run_job("requests expired", lambda service: service.expire_stale_requests())


@cli.command("send-reminders")
def send_reminders() -> None:
    """Send session reminders that have come due."""
    _run_job("reminders sent", lambda service: service.dispatch_reminders())


if __name__ == "__main__":
    cli()
