"""Cron-triggered notification jobs, authenticated with the shared cron secret."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException

from manageros.api.deps import verify_cron_secret
from manageros.tasks.jobs import JOBS, run_job

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/cron/notifications", dependencies=[Depends(verify_cron_secret)])
async def run_notification_jobs(job: str | None = None, org: uuid.UUID | None = None):
    """Run one job (``?job=``) or all of them, for one organization (``?org=``) or all."""
    if job is not None and job not in JOBS:
        raise HTTPException(status_code=400, detail=f"Unknown job: {job}")

    job_ids = [job] if job else list(JOBS)
    results = {}
    for job_id in job_ids:
        results[job_id] = await run_job(job_id, org_id=org)
    success = all(result["success"] for runs in results.values() for result in runs)
    if not success:
        logger.warning("Cron run finished with failures: %s", ", ".join(job_ids))
    return {"success": success, "results": results}
