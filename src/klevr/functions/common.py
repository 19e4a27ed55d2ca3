from __future__ import annotations

from klevr.db.models import Application, Job, Profile, User
from klevr.db.repositories import Repository
from klevr.errors import InvalidTaskTransition
from klevr.functions.client import FunctionContext


def mark_running(repo: Repository, task_id: str) -> None:
    repo.transition_task(task_id, "RUNNING")


def mark_succeeded(repo: Repository, task_id: str, result_ref: str) -> None:
    repo.transition_task(task_id, "SUCCEEDED", result_ref=result_ref)


def fail_task(ctx: FunctionContext, repo: Repository, task_id: str, error: BaseException) -> None:
    """Record the failure unless the client is about to run another attempt."""
    if ctx.will_retry(error):
        return

    repo.session.rollback()
    try:
        repo.transition_task(task_id, "FAILED", error_message=str(error) or "Unknown error")
    except InvalidTaskTransition as exc:
        ctx.logger.warning("Could not mark task %s failed: %s", task_id, exc)


def load_application(repo: Repository, application_id: str) -> tuple[Application, Job]:
    application = repo.get_application(application_id)
    if application is None:
        raise ValueError("Application not found")
    job = repo.get_job(application.job_id)
    if job is None:
        raise ValueError("Job not found")
    return application, job


def load_confirmed_profile(repo: Repository, user_id: str) -> tuple[User, Profile]:
    user = repo.get_user(user_id)
    profile = repo.get_profile(user_id)
    if user is None or profile is None or not profile.parsed_resume:
        raise ValueError("User profile or resume not found")
    if profile.parsed_resume_confirmed_at is None:
        raise ValueError("User has not confirmed resume")
    return user, profile
