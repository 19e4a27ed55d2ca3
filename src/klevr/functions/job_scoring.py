from __future__ import annotations

from typing import Any

from klevr.core.activity import log_activity
from klevr.core.scoring import calculate_fit_score
from klevr.core.usage import ensure_usage_available, increment_usage
from klevr.db.repositories import Repository
from klevr.db.session import session_scope
from klevr.errors import UsageLimitError
from klevr.functions.client import FunctionContext, FunctionSpec
from klevr.functions.common import fail_task, load_application, mark_running, mark_succeeded
from klevr.types import ParsedResume


def job_scoring(ctx: FunctionContext) -> dict[str, Any]:
    data = ctx.event.data
    user_id = data["userId"]
    application_id = data["applicationId"]

    with session_scope(ctx.session_factory) as session:
        repo = Repository(session)
        task_id = data.get("taskId") or ctx.step(
            "create-task",
            lambda: repo.create_ai_task(user_id=user_id, type="JOB_SCORING", application_id=application_id).id,
        )

        try:
            ensure_usage_available(repo, user_id, "JOB_SCORING")
        except UsageLimitError as exc:
            fail_task(ctx, repo, task_id, exc)
            raise

        mark_running(repo, task_id)
        try:
            application, job = load_application(repo, application_id)
            profile = repo.get_profile(user_id)
            if profile is None or profile.parsed_resume_confirmed_at is None:
                raise ValueError("User has not confirmed resume")

            parsed_job = ctx.llm.parse_job(user_id=user_id, description=job.job_description_raw)
            repo.update_job(job.id, {"job_description_parsed": parsed_job.model_dump()})

            fit = calculate_fit_score(
                ParsedResume.model_validate(profile.parsed_resume or {}),
                parsed_job,
                job_types=profile.job_types,
                preferred_locations=profile.preferred_locations,
                job_location=job.location,
                profile_skills=profile.skills,
            )
            explanation = ctx.llm.explain_fit(user_id=user_id, fit=fit, job_title=job.title, major=profile.major or None)

            ctx.step(
                "save-results",
                lambda: repo.update_application(
                    application_id,
                    {
                        "fit_bucket": fit.fit_bucket,
                        "fit_score": fit.fit_score,
                        "score_explanation": explanation,
                        "matching_skills": fit.skills_match.matching_skills,
                        "missing_required_skills": fit.skills_match.missing_required_skills,
                        "missing_preferred_skills": fit.skills_match.missing_preferred_skills,
                        "score_count": application.score_count + 1,
                    },
                ).id,
            )
            ctx.step("increment-usage", lambda: increment_usage(repo, user_id, "JOB_SCORING") or True)
            mark_succeeded(repo, task_id, application_id)
        except Exception as exc:
            fail_task(ctx, repo, task_id, exc)
            raise

        log_activity(
            repo,
            user_id=user_id,
            application_id=application_id,
            type="JOB_SCORING_COMPLETED",
            metadata={"fit_bucket": fit.fit_bucket, "fit_score": fit.fit_score},
        )

    return {"applicationId": application_id, "fit_bucket": fit.fit_bucket, "fit_score": fit.fit_score}


spec = FunctionSpec(id="job-scoring", name="Job Fit Assessment", handler=job_scoring, retries=2, event="job/assess-fit")
