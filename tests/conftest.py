from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="klevr-tests-"))
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'klevr-test.db'}"
os.environ["DATA_DIR"] = str(_TMP)
os.environ["STORAGE_DIR"] = str(_TMP / "objects")
os.environ["SECRET_KEY"] = "test-secret"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["EVENT_RETRY_BACKOFF_SEC"] = "0"
os.environ["EVENT_SIGNING_KEY"] = ""
os.environ["TASK_STREAM_POLL_INTERVAL_SEC"] = "0.01"
os.environ["OPENAI_API_KEY"] = ""
os.environ["LOCAL_LLM_ENABLED"] = "false"
os.environ["AUTH0_DOMAIN"] = "klevr.test.auth0.com"
os.environ["AUTH0_CLIENT_ID"] = "test-client"

import pytest  # noqa: E402

from klevr.core.auth import issue_session_token  # noqa: E402
from klevr.core.runtime import reset_runtime  # noqa: E402
from klevr.db import models  # noqa: E402,F401
from klevr.db.base import Base, utcnow  # noqa: E402
from klevr.db.repositories import Repository  # noqa: E402
from klevr.db.session import SessionLocal, engine  # noqa: E402

RESUME = {
    "personal": {"name": "Alex Rivera", "email": "alex@example.com"},
    "education": [{"school": "State University", "degree": "BS", "major": "Computer Science"}],
    "experience": [
        {
            "title": "Software Engineering Intern",
            "company": "Acme",
            "startDate": "2024-06",
            "endDate": "2024-08",
            "bullets": ["Built internal dashboards with React", "Wrote Python ETL jobs"],
        }
    ],
    "projects": [{"name": "Course Planner", "description": "Schedule builder", "technologies": ["FastAPI"]}],
    "skills": {"languages": ["Python", "SQL"], "frameworks": ["React", "FastAPI"], "tools": ["Git", "Docker"]},
}

JOB_DESCRIPTION = (
    "Software Engineer Intern, Summer 2026. Full time internship on the platform team.\n"
    "Responsibilities: build and ship backend services in Python and SQL.\n"
    "Requirements: Python, SQL, Git and experience with REST APIs in FastAPI.\n"
    "Nice to have: Docker, Kubernetes.\n"
    "You will collaborate with product managers and designers on features used by thousands of students."
)


@pytest.fixture(autouse=True)
def reset_db() -> None:
    reset_runtime()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    reset_runtime()


@pytest.fixture
def make_user():
    def _make(auth0_id: str = "auth0|alice", email: str = "alice@example.com", *, confirmed: bool = True):
        with SessionLocal() as session:
            repo = Repository(session)
            user = repo.get_or_create_user(auth0_id=auth0_id, email=email)
            repo.upsert_profile(
                user.id,
                {
                    "full_name": "Alex Rivera",
                    "major": "Computer Science",
                    "skills": ["Python"],
                    "job_types": ["INTERNSHIP"],
                    "preferred_locations": ["Remote"],
                    "parsed_resume": RESUME,
                    "parsed_resume_confirmed_at": utcnow() if confirmed else None,
                },
            )
        headers = {"Authorization": f"Bearer {issue_session_token(sub=auth0_id, email=email)}"}
        return user, headers

    return _make


@pytest.fixture
def make_application():
    def _make(
        user_id: str,
        *,
        description: str = JOB_DESCRIPTION,
        job_url: str | None = None,
        application_id: str | None = None,
    ):
        with SessionLocal() as session:
            _, application = Repository(session).create_job_with_application(
                user_id=user_id,
                application_id=application_id,
                values={
                    "title": "Software Engineer Intern",
                    "company": "Globex",
                    "location": "Remote",
                    "job_url": job_url,
                    "job_description_raw": description,
                },
            )
        return application

    return _make


@pytest.fixture
def make_document():
    def _make(application_id: str, *, key: str | None = None, deleted: bool = False):
        with SessionLocal() as session:
            repo = Repository(session)
            document = repo.create_document(
                application_id=application_id,
                type="RESUME",
                storage_url=key or f"documents/{application_id}/resume-1.md",
                display_name="Alex Rivera Software Engineer Intern Globex Oct 2026",
                structured_data={},
                prompt_version="resume-generate-v1.0.0",
                model_used="heuristic",
            )
            if deleted:
                repo.set_document_deleted(document, deleted=True)
        return document

    return _make


@pytest.fixture
def job_description() -> str:
    return JOB_DESCRIPTION
