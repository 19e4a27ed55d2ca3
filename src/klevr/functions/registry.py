from __future__ import annotations

from klevr.functions import (
    company_research,
    cover_letter_generation,
    job_scoring,
    resume_generation,
    resume_parse,
    run_saved_searches,
    scrape_job_description,
)
from klevr.functions.celery_app import celery_app
from klevr.functions.client import EventClient, FunctionSpec, function_task

FUNCTIONS: tuple[FunctionSpec, ...] = (
    resume_parse.spec,
    job_scoring.spec,
    resume_generation.spec,
    cover_letter_generation.spec,
    company_research.spec,
    scrape_job_description.spec,
    run_saved_searches.spec,
)

TASKS = {spec.id: function_task(spec) for spec in FUNCTIONS}

celery_app.conf.beat_schedule.update(
    {f"{spec.id}-schedule": {"task": spec.id, "schedule": spec.schedule()} for spec in FUNCTIONS if spec.cron}
)


def register_functions(client: EventClient) -> EventClient:
    for spec in FUNCTIONS:
        client.register(spec)
    return client
