from __future__ import annotations

from typing import Any

from klevr.core.job_search import JobSearchClient
from klevr.core.saved_searches import calculate_next_run_at
from klevr.db.base import utcnow
from klevr.db.models import SavedSearch
from klevr.db.repositories import Repository
from klevr.db.session import session_scope
from klevr.functions.client import FunctionContext, FunctionSpec
from klevr.types import JobSearchQuery

SAVED_SEARCH_RESULTS_PER_PAGE = 50


def run_one_search(
    ctx: FunctionContext, repo: Repository, search: SavedSearch, client: JobSearchClient
) -> dict[str, Any]:
    if not search.query_config:
        raise ValueError("Query config is empty")

    query = JobSearchQuery.model_validate(
        {**search.query_config, "results_per_page": SAVED_SEARCH_RESULTS_PER_PAGE, "page": 1}
    )
    result = client.search(query)
    current_ids = [hit.id for hit in result.results]

    previous = repo.latest_saved_search_run(search.id)
    seen = set(previous.job_ids) if previous else set()
    new_ids = [job_id for job_id in current_ids if job_id not in seen]
    ctx.logger.info('Search "%s": %s total jobs, %s new', search.name, result.count, len(new_ids))

    run = repo.record_saved_search_run(
        saved_search_id=search.id,
        status="SUCCESS",
        job_ids=current_ids,
        new_jobs_count=len(new_ids),
        total_jobs_found=result.count,
    )

    if new_ids and search.notify_in_app:
        plural = "" if len(new_ids) == 1 else "s"
        repo.create_notification(
            user_id=search.user_id,
            type="SAVED_SEARCH_NEW_JOBS",
            title=f'{len(new_ids)} new jobs for "{search.name}"',
            body=f"We found {len(new_ids)} new job{plural} matching your saved search.",
            link_url=f"/jobs/discover?searchRunId={run.id}",
            metadata={"saved_search_id": search.id, "new_jobs_count": len(new_ids), "search_run_id": run.id},
        )

    return {"searchId": search.id, "searchName": search.name, "totalJobs": result.count, "newJobs": len(new_ids)}


def run_saved_searches(ctx: FunctionContext) -> dict[str, Any]:
    client = JobSearchClient(ctx.settings)
    results: list[dict[str, Any]] = []

    with session_scope(ctx.session_factory) as session:
        repo = Repository(session)
        due = repo.list_due_saved_searches(utcnow())
        ctx.logger.info("Found %s saved searches to run", len(due))

        for search in due:
            try:
                results.append(run_one_search(ctx, repo, search, client))
            except Exception as exc:
                ctx.logger.error('Error running search "%s": %s', search.name, exc)
                session.rollback()
                repo.record_saved_search_run(saved_search_id=search.id, status="FAILED", error_message=str(exc))
                results.append({"searchId": search.id, "searchName": search.name, "error": str(exc)})

            now = utcnow()
            repo.update_saved_search(
                search.id,
                {
                    "last_run_at": now,
                    "next_run_at": calculate_next_run_at(
                        search.frequency,
                        search.schedule_time,
                        day_of_week=search.day_of_week,
                        day_of_month=search.day_of_month,
                        timezone=search.user_timezone,
                        from_dt=now,
                    ),
                },
            )

    failures = [item for item in results if "error" in item]
    return {
        "searchesProcessed": len(results),
        "successCount": len(results) - len(failures),
        "failureCount": len(failures),
        "totalNewJobs": sum(item.get("newJobs", 0) for item in results),
        "results": results,
    }


spec = FunctionSpec(
    id="run-saved-searches",
    name="Run Saved Searches",
    handler=run_saved_searches,
    retries=0,
    cron="0 * * * *",
)
