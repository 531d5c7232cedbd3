"""ManagerOS CLI: scheduled jobs, keys, the API server and demo data.

Usage::

    # Run every notification job for every organization
    manageros run-cron-jobs

    # Run one job for one organization without committing anything
    manageros run-cron-jobs --job overdue-tasks-notification --org <UUID> --dry-run

    # Generate an ENCRYPTION_KEY for integration credentials
    manageros generate-key
"""

from __future__ import annotations

import asyncio
import logging
import sys
import uuid

import click


@click.group()
def cli():
    """ManagerOS: the management operating system."""
    pass


# ── run-cron-jobs ─────────────────────────────────────────────────────


@cli.command("run-cron-jobs")
@click.option("--job", "job_id", default=None, help="Job id to run (default: all jobs).")
@click.option("--org", "org_id", default=None, help="Organization UUID (default: all organizations).")
@click.option("--dry-run", is_flag=True, default=False, help="Roll back instead of committing.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def run_cron_jobs(job_id: str | None, org_id: str | None, dry_run: bool, verbose: bool):
    """Run notification jobs in-process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    )
    from manageros.tasks.jobs import JOBS

    if job_id is not None and job_id not in JOBS:
        click.secho(f"Error: unknown job '{job_id}'. Use list-jobs to see available jobs.", fg="red", err=True)
        sys.exit(1)

    organization = None
    if org_id is not None:
        try:
            organization = uuid.UUID(org_id)
        except ValueError:
            click.secho(f"Error: invalid organization id '{org_id}'", fg="red", err=True)
            sys.exit(1)

    job_ids = [job_id] if job_id else list(JOBS)
    ok = asyncio.run(_run_cron_jobs(job_ids, organization, dry_run))
    if not ok:
        sys.exit(1)


async def _run_cron_jobs(job_ids: list[str], org_id: uuid.UUID | None, dry_run: bool) -> bool:
    from manageros.db.session import close_db
    from manageros.tasks.jobs import run_job

    ok = True
    try:
        for job_id in job_ids:
            click.echo(f"Running {job_id}{' (dry run)' if dry_run else ''}...")
            for result in await run_job(job_id, org_id=org_id, dry_run=dry_run):
                if result["success"]:
                    click.echo(
                        f"  {result['organization_id']}: "
                        f"{result['notifications_created']} notification(s) created"
                    )
                else:
                    ok = False
                    click.secho(f"  {result['organization_id']}: failed: {result['error']}", fg="red", err=True)
    finally:
        await close_db()
    return ok


# ── list-jobs ─────────────────────────────────────────────────────────


@cli.command("list-jobs")
def list_jobs():
    """List the available notification jobs."""
    from manageros.tasks.jobs import JOBS

    for job in JOBS.values():
        click.echo(f"{job.id:<30} {job.description}")


# ── generate-key ──────────────────────────────────────────────────────


@cli.command("generate-key")
def generate_key():
    """Print a new Fernet key for ENCRYPTION_KEY."""
    from manageros.integrations.crypto import generate_key as new_key

    click.echo(new_key())


# ── serve ─────────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address.")
@click.option("--port", default=8000, type=int, help="Bind port.")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool):
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run("manageros.main:app", host=host, port=port, reload=reload)


# ── seed ──────────────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--create-tables",
    is_flag=True,
    default=False,
    help="Create missing tables from the models first (local SQLite databases).",
)
def seed(create_tables: bool):
    """Load the demo organization."""
    from manageros.seed import main as seed_main

    asyncio.run(seed_main(create_tables=create_tables))


# ── Entry point ───────────────────────────────────────────────────────


def main():
    cli()


if __name__ == "__main__":
    main()
