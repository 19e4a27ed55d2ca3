from __future__ import annotations

from typing import Any

from klevr.core.activity import log_activity
from klevr.db.repositories import Repository
from klevr.db.session import session_scope
from klevr.functions.client import FunctionContext, FunctionSpec
from klevr.functions.common import fail_task, load_application, mark_running, mark_succeeded


def company_research(ctx: FunctionContext) -> dict[str, Any]:
    data = ctx.event.data
    user_id = data["userId"]
    task_id = data["taskId"]
    application_id = data["applicationId"]

    with session_scope(ctx.session_factory) as session:
        repo = Repository(session)
        mark_running(repo, task_id)
        try:
            _, job = load_application(repo, application_id)
            research = ctx.llm.research_company(
                user_id=user_id,
                company=job.company,
                job_title=job.title,
                description=job.job_description_raw,
            )
            repo.update_application(application_id, {"company_research": research.model_dump()})
            mark_succeeded(repo, task_id, application_id)
        except Exception as exc:
            fail_task(ctx, repo, task_id, exc)
            raise

        log_activity(repo, user_id=user_id, application_id=application_id, type="COMPANY_RESEARCH_COMPLETED")

    return {"applicationId": application_id}


spec = FunctionSpec(
    id="company-research",
    name="Company Research Summary",
    handler=company_research,
    retries=2,
    event="company/research",
)
