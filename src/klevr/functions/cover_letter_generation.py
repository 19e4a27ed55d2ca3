from __future__ import annotations

from typing import Any

from klevr.core.activity import log_activity
from klevr.core.documents import MARKDOWN_CONTENT_TYPE, default_display_name, render_cover_letter_markdown
from klevr.core.storage import document_key
from klevr.core.usage import ensure_usage_available, increment_usage
from klevr.db.base import utcnow
from klevr.db.repositories import Repository
from klevr.db.session import session_scope
from klevr.errors import UsageLimitError
from klevr.functions.client import FunctionContext, FunctionSpec
from klevr.functions.common import fail_task, load_application, load_confirmed_profile, mark_running, mark_succeeded
from klevr.llm.prompts import COVER_LETTER_GENERATE_VERSION
from klevr.types import ParsedResume


def cover_letter_generation(ctx: FunctionContext) -> dict[str, Any]:
    data = ctx.event.data
    user_id = data["userId"]
    task_id = data["taskId"]
    application_id = data["applicationId"]

    with session_scope(ctx.session_factory) as session:
        repo = Repository(session)
        try:
            ensure_usage_available(repo, user_id, "COVER_LETTER_GENERATION")
        except UsageLimitError as exc:
            fail_task(ctx, repo, task_id, exc)
            raise

        mark_running(repo, task_id)
        try:
            _, job = load_application(repo, application_id)
            user, profile = load_confirmed_profile(repo, user_id)
            resume = ParsedResume.model_validate(profile.parsed_resume)
            user_name = profile.full_name or resume.personal.name or ""

            letter, model_used = ctx.llm.generate_cover_letter(
                user_id=user_id,
                user_name=user_name,
                resume=resume,
                job_title=job.title,
                company=job.company,
                description=job.job_description_raw,
                profile_skills=profile.skills,
            )
            personal = resume.personal.model_copy(update={"name": user_name or None, "email": user.email})
            markdown = render_cover_letter_markdown(letter, personal, job.title, job.company)

            key = ctx.step(
                "upload",
                lambda: ctx.storage.put(
                    document_key(application_id, "cover-letter"), markdown.encode("utf-8"), MARKDOWN_CONTENT_TYPE
                ),
            )
            document_id = ctx.step(
                "save-document",
                lambda: repo.create_document(
                    application_id=application_id,
                    type="COVER_LETTER",
                    storage_url=key,
                    display_name=default_display_name("COVER_LETTER", user_name, job.title, job.company, utcnow()),
                    structured_data={"content": letter},
                    prompt_version=COVER_LETTER_GENERATE_VERSION,
                    model_used=model_used,
                ).id,
            )
            ctx.step("increment-usage", lambda: increment_usage(repo, user_id, "COVER_LETTER_GENERATION") or True)
            mark_succeeded(repo, task_id, document_id)
        except Exception as exc:
            fail_task(ctx, repo, task_id, exc)
            raise

        log_activity(
            repo,
            user_id=user_id,
            application_id=application_id,
            type="COVER_LETTER_GENERATED",
            metadata={"document_id": document_id},
        )

    return {"documentId": document_id}


spec = FunctionSpec(
    id="cover-letter-generation",
    name="Generate Cover Letter",
    handler=cover_letter_generation,
    retries=2,
    event="cover-letter/generate",
)
