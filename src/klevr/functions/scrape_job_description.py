from __future__ import annotations

from typing import Any

from klevr.core.job_fetcher import scrape_job_description as scrape_url
from klevr.db.base import utcnow
from klevr.db.repositories import Repository
from klevr.db.session import session_scope
from klevr.functions.client import FunctionContext, FunctionSpec


def _trigger_scoring(ctx: FunctionContext, description: str, job_id: str) -> bool:
    minimum = ctx.settings.min_description_length
    if len(description) < minimum:
        ctx.logger.info(
            "Skipping job scoring for job %s: description too short (%s chars, minimum %s)",
            job_id,
            len(description),
            minimum,
        )
        return False

    data = ctx.event.data
    # No taskId: job-scoring creates its own task.
    ctx.step(
        "trigger-scoring",
        lambda: ctx.events.send("job/assess-fit", {"userId": data["userId"], "applicationId": data["applicationId"]}),
    )
    return True


def scrape_job_description(ctx: FunctionContext) -> dict[str, Any]:
    job_id = ctx.event.data["jobId"]

    with session_scope(ctx.session_factory) as session:
        repo = Repository(session)
        if repo.get_job(job_id) is None:
            raise ValueError("Job not found")
        repo.update_job(job_id, {"scraping_status": "IN_PROGRESS", "scraping_attempted_at": utcnow()})

        try:
            job = repo.get_job(job_id)
            if not job.job_url:
                raise ValueError("Job has no URL to scrape")

            result = scrape_url(job.job_url, job.job_description_raw, ctx.settings.scrape_timeout_sec)
            if result.success:
                repo.update_job(
                    job_id,
                    {
                        "job_description_raw": result.description,
                        "scraping_status": "SUCCESS",
                        "scraping_completed_at": utcnow(),
                        "scraping_method": result.method,
                        "final_source_url": result.final_url,
                    },
                )
                final_description = result.description
            else:
                repo.update_job(
                    job_id,
                    {
                        "scraping_status": "FAILED",
                        "scraping_completed_at": utcnow(),
                        "scraping_error": result.error or "Unknown error",
                        "final_source_url": result.final_url,
                    },
                )
                final_description = job.job_description_raw
        except Exception as exc:
            session.rollback()
            job = repo.update_job(
                job_id,
                {"scraping_status": "FAILED", "scraping_completed_at": utcnow(), "scraping_error": str(exc)},
            )
            _trigger_scoring(ctx, job.job_description_raw, job_id)
            raise

        scored = _trigger_scoring(ctx, final_description, job_id)

    return {"jobId": job_id, "success": result.success, "method": result.method, "error": result.error, "scored": scored}


spec = FunctionSpec(
    id="scrape-job-description",
    name="Scrape Job Description",
    handler=scrape_job_description,
    retries=1,
    event="job/scrape-description",
)
