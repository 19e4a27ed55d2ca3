from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from klevr.db.base import utcnow
from klevr.db.models import (
    ActivityLog,
    AiTask,
    Application,
    GeneratedDocument,
    Job,
    Note,
    Notification,
    Profile,
    SavedSearch,
    SavedSearchRun,
    UsageTracking,
    User,
)
from klevr.errors import InvalidTaskTransition

_TASK_TRANSITIONS: dict[str, frozenset[str]] = {
    "PENDING": frozenset({"RUNNING", "FAILED"}),
    "RUNNING": frozenset({"RUNNING", "SUCCEEDED", "FAILED"}),
    "SUCCEEDED": frozenset(),
    "FAILED": frozenset(),
}

USAGE_FIELDS = {"fit_count", "resume_count", "cover_letter_count"}


class Repository:
    def __init__(self, session: Session):
        self.session = session

    # users & profiles

    def get_user(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def get_or_create_user(self, *, auth0_id: str, email: str) -> User:
        user = self.session.scalar(select(User).where(User.auth0_id == auth0_id))
        if user:
            return user

        user = User(auth0_id=auth0_id, email=email)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_profile(self, user_id: str) -> Profile | None:
        return self.session.scalar(select(Profile).where(Profile.user_id == user_id))

    def upsert_profile(self, user_id: str, values: dict[str, Any]) -> Profile:
        profile = self.get_profile(user_id)
        if profile:
            for key, value in values.items():
                setattr(profile, key, value)
        else:
            profile = Profile(user_id=user_id, **values)
            self.session.add(profile)

        self.session.commit()
        self.session.refresh(profile)
        return profile

    def confirm_resume(self, user_id: str, parsed_resume: dict[str, Any] | None = None) -> Profile:
        values: dict[str, Any] = {"parsed_resume_confirmed_at": utcnow()}
        if parsed_resume is not None:
            values["parsed_resume"] = parsed_resume
        return self.upsert_profile(user_id, values)

    def delete_user(self, user_id: str) -> bool:
        """Remove the user row; everything the user owns goes with it through FK cascades."""
        result = self.session.execute(delete(User).where(User.id == user_id))
        self.session.commit()
        return bool(result.rowcount)

    # jobs & applications

    def create_job_with_application(
        self,
        *,
        user_id: str,
        values: dict[str, Any],
        application_id: str | None = None,
    ) -> tuple[Job, Application]:
        job = Job(user_id=user_id, **values)
        self.session.add(job)
        self.session.flush()

        application = Application(user_id=user_id, job_id=job.id, status="PLANNED")
        if application_id:
            application.id = application_id
        self.session.add(application)
        self.session.commit()
        self.session.refresh(job)
        self.session.refresh(application)
        return job, application

    def get_job(self, job_id: str) -> Job | None:
        return self.session.get(Job, job_id)

    def update_job(self, job_id: str, values: dict[str, Any]) -> Job:
        job = self.session.get(Job, job_id)
        if not job:
            raise ValueError(f"job {job_id} not found")
        for key, value in values.items():
            setattr(job, key, value)
        self.session.commit()
        self.session.refresh(job)
        return job

    def get_owned_job(self, job_id: str, user_id: str) -> Job | None:
        return self.session.scalar(select(Job).where(Job.id == job_id, Job.user_id == user_id))

    def delete_owned_job(self, job_id: str, user_id: str) -> bool:
        result = self.session.execute(delete(Job).where(Job.id == job_id, Job.user_id == user_id))
        self.session.commit()
        return bool(result.rowcount)

    def find_saved_adzuna_job(self, user_id: str, adzuna_id: str) -> tuple[Job, Application] | None:
        statement = (
            select(Job, Application)
            .join(Application, Application.job_id == Job.id)
            .where(Job.user_id == user_id, Job.adzuna_id == adzuna_id)
            .limit(1)
        )
        row = self.session.execute(statement).first()
        return (row[0], row[1]) if row else None

    def saved_adzuna_ids(self, user_id: str, adzuna_ids: list[str]) -> list[str]:
        statement = select(Job.adzuna_id).where(Job.user_id == user_id, Job.adzuna_id.in_(adzuna_ids)).distinct()
        return [value for value in self.session.scalars(statement).all() if value is not None]

    def get_application(self, application_id: str) -> Application | None:
        return self.session.get(Application, application_id)

    def get_owned_application(self, application_id: str, user_id: str) -> Application | None:
        return self.session.scalar(
            select(Application).where(Application.id == application_id, Application.user_id == user_id)
        )

    def list_applications(
        self,
        user_id: str,
        *,
        status: str | None = None,
        fit_bucket: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[tuple[Application, Job]], int]:
        conditions = [Application.user_id == user_id]
        if status:
            conditions.append(Application.status == status)
        if fit_bucket:
            conditions.append(Application.fit_bucket == fit_bucket)

        total = int(self.session.scalar(select(func.count(Application.id)).where(*conditions)) or 0)
        statement = (
            select(Application, Job)
            .join(Job, Job.id == Application.job_id)
            .where(*conditions)
            .order_by(Application.updated_at.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = [(application, job) for application, job in self.session.execute(statement).all()]
        return rows, total

    def update_application(self, application_id: str, values: dict[str, Any]) -> Application:
        application = self.session.get(Application, application_id)
        if not application:
            raise ValueError(f"application {application_id} not found")
        for key, value in values.items():
            setattr(application, key, value)
        self.session.commit()
        self.session.refresh(application)
        return application

    def set_application_status(self, application_id: str, user_id: str, status: str) -> tuple[Application, str] | None:
        application = self.get_owned_application(application_id, user_id)
        if application is None:
            return None

        previous = application.status
        application.status = status
        if status == "APPLIED":
            application.applied_at = utcnow()
        self.session.commit()
        self.session.refresh(application)
        return application, previous

    def list_job_applications(self, job_id: str) -> list[Application]:
        statement = select(Application).where(Application.job_id == job_id).order_by(Application.created_at.desc())
        return list(self.session.scalars(statement).all())

    def list_owned_applications(self, application_ids: list[str], user_id: str) -> list[Application]:
        statement = (
            select(Application)
            .join(Job, Job.id == Application.job_id)
            .where(Application.id.in_(application_ids), Job.user_id == user_id)
        )
        return list(self.session.scalars(statement).all())

    def bulk_set_application_status(self, application_ids: list[str], status: str) -> int:
        values: dict[str, Any] = {"status": status, "updated_at": utcnow()}
        if status == "APPLIED":
            values["applied_at"] = utcnow()
        result = self.session.execute(update(Application).where(Application.id.in_(application_ids)).values(**values))
        self.session.commit()
        return int(result.rowcount or 0)

    def delete_applications(self, application_ids: list[str]) -> int:
        result = self.session.execute(delete(Application).where(Application.id.in_(application_ids)))
        self.session.commit()
        return int(result.rowcount or 0)

    # notes

    def create_note(self, *, application_id: str, content: str) -> Note:
        note = Note(application_id=application_id, content=content)
        self.session.add(note)
        self.session.commit()
        self.session.refresh(note)
        return note

    def get_owned_note(self, note_id: str, user_id: str) -> Note | None:
        """Ownership through Application -> Job -> User."""
        statement = (
            select(Note)
            .join(Application, Application.id == Note.application_id)
            .join(Job, Job.id == Application.job_id)
            .where(Note.id == note_id, Job.user_id == user_id)
        )
        return self.session.scalar(statement)

    def update_note(self, note: Note, content: str) -> Note:
        note.content = content
        self.session.commit()
        self.session.refresh(note)
        return note

    def delete_note(self, note: Note) -> None:
        self.session.delete(note)
        self.session.commit()

    def list_notes(self, application_id: str) -> list[Note]:
        statement = select(Note).where(Note.application_id == application_id).order_by(Note.created_at.desc())
        return list(self.session.scalars(statement).all())

    # generated documents

    def create_document(
        self,
        *,
        application_id: str,
        type: str,
        storage_url: str,
        display_name: str | None,
        structured_data: dict[str, Any],
        prompt_version: str,
        model_used: str,
    ) -> GeneratedDocument:
        document = GeneratedDocument(
            application_id=application_id,
            type=type,
            storage_url=storage_url,
            display_name=display_name,
            structured_data=structured_data,
            prompt_version=prompt_version,
            model_used=model_used,
        )
        self.session.add(document)
        self.session.commit()
        self.session.refresh(document)
        return document

    def get_owned_document(self, document_id: str, user_id: str) -> GeneratedDocument | None:
        """Ownership through Application -> Job -> User."""
        statement = (
            select(GeneratedDocument)
            .join(Application, Application.id == GeneratedDocument.application_id)
            .join(Job, Job.id == Application.job_id)
            .where(GeneratedDocument.id == document_id, Job.user_id == user_id)
        )
        return self.session.scalar(statement)

    def get_document_for_application_owner(self, document_id: str, user_id: str) -> GeneratedDocument | None:
        """Ownership through Application -> User only."""
        statement = (
            select(GeneratedDocument)
            .join(Application, Application.id == GeneratedDocument.application_id)
            .where(GeneratedDocument.id == document_id, Application.user_id == user_id)
        )
        return self.session.scalar(statement)

    def set_document_deleted(self, document: GeneratedDocument, deleted: bool) -> GeneratedDocument:
        document.deleted_at = utcnow() if deleted else None
        self.session.commit()
        self.session.refresh(document)
        return document

    def rename_document(self, document: GeneratedDocument, name: str) -> GeneratedDocument:
        document.display_name = name
        self.session.commit()
        self.session.refresh(document)
        return document

    def list_application_documents(self, application_id: str, *, include_deleted: bool = False) -> list[GeneratedDocument]:
        statement = select(GeneratedDocument).where(GeneratedDocument.application_id == application_id)
        if not include_deleted:
            statement = statement.where(GeneratedDocument.deleted_at.is_(None))
        statement = statement.order_by(GeneratedDocument.created_at.desc())
        return list(self.session.scalars(statement).all())

    def list_user_document_keys(self, user_id: str) -> list[str]:
        statement = (
            select(GeneratedDocument.storage_url)
            .join(Application, Application.id == GeneratedDocument.application_id)
            .where(Application.user_id == user_id)
        )
        return list(self.session.scalars(statement).all())

    # notifications

    def create_notification(
        self,
        *,
        user_id: str,
        type: str,
        title: str,
        body: str = "",
        link_url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            link_url=link_url,
            metadata_json=metadata or {},
        )
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)
        return notification

    def get_owned_notification(self, notification_id: str, user_id: str) -> Notification | None:
        return self.session.scalar(
            select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )

    def mark_notification_read(self, notification: Notification) -> Notification:
        notification.read_at = utcnow()
        self.session.commit()
        self.session.refresh(notification)
        return notification

    def mark_all_notifications_read(self, user_id: str) -> int:
        result = self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read_at.is_(None))
            .values(read_at=utcnow())
        )
        self.session.commit()
        return int(result.rowcount or 0)

    def count_unread_notifications(self, user_id: str) -> int:
        statement = select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.read_at.is_(None)
        )
        return int(self.session.scalar(statement) or 0)

    def list_notifications(
        self, user_id: str, *, page: int, limit: int, unread_only: bool = False
    ) -> tuple[list[Notification], int]:
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.read_at.is_(None))

        total = int(self.session.scalar(select(func.count(Notification.id)).where(*conditions)) or 0)
        statement = (
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.session.scalars(statement).all()), total

    # ai tasks

    def create_ai_task(
        self,
        *,
        user_id: str,
        type: str,
        application_id: str | None,
        input_data: dict[str, Any] | None = None,
    ) -> AiTask:
        task = AiTask(
            user_id=user_id,
            type=type,
            application_id=application_id,
            status="PENDING",
            input_data=input_data or {},
        )
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def get_ai_task(self, task_id: str) -> AiTask | None:
        return self.session.get(AiTask, task_id)

    def get_owned_ai_task(self, task_id: str, user_id: str) -> AiTask | None:
        return self.session.scalar(select(AiTask).where(AiTask.id == task_id, AiTask.user_id == user_id))

    def count_ai_tasks(self, *, user_id: str, type: str | None = None) -> int:
        statement = select(func.count(AiTask.id)).where(AiTask.user_id == user_id)
        if type is not None:
            statement = statement.where(AiTask.type == type)
        return int(self.session.scalar(statement) or 0)

    def transition_task(
        self,
        task_id: str,
        status: str,
        *,
        result_ref: str | None = None,
        error_message: str | None = None,
    ) -> AiTask:
        task = self.session.get(AiTask, task_id)
        if not task:
            raise ValueError(f"task {task_id} not found")
        if status not in _TASK_TRANSITIONS.get(task.status, frozenset()):
            raise InvalidTaskTransition(task_id, task.status, status)

        now = utcnow()
        task.status = status
        if status == "RUNNING":
            task.started_at = task.started_at or now
        else:
            task.completed_at = now
            task.result_ref = result_ref
            task.error_message = error_message

        self.session.commit()
        self.session.refresh(task)
        return task

    # usage

    def get_usage(self, user_id: str, month: str) -> UsageTracking | None:
        return self.session.scalar(
            select(UsageTracking).where(UsageTracking.user_id == user_id, UsageTracking.month == month)
        )

    def increment_usage(self, user_id: str, month: str, field: str) -> UsageTracking:
        if field not in USAGE_FIELDS:
            raise ValueError(f"unknown usage field '{field}'")

        usage = self.get_usage(user_id, month)
        if usage is None:
            usage = UsageTracking(user_id=user_id, month=month, fit_count=0, resume_count=0, cover_letter_count=0)
            self.session.add(usage)
        setattr(usage, field, getattr(usage, field) + 1)
        self.session.commit()
        self.session.refresh(usage)
        return usage

    # activity log

    def add_activity(
        self,
        *,
        user_id: str,
        application_id: str | None,
        type: str,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLog:
        entry = ActivityLog(user_id=user_id, application_id=application_id, type=type, metadata_json=metadata)
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def list_activity(self, application_id: str) -> list[ActivityLog]:
        statement = (
            select(ActivityLog)
            .where(ActivityLog.application_id == application_id)
            .order_by(ActivityLog.created_at.desc())
        )
        return list(self.session.scalars(statement).all())

    # saved searches

    def create_saved_search(self, *, user_id: str, name: str, values: dict[str, Any]) -> SavedSearch:
        search = SavedSearch(user_id=user_id, name=name, **values)
        self.session.add(search)
        self.session.commit()
        self.session.refresh(search)
        return search

    def list_due_saved_searches(self, now: datetime) -> list[SavedSearch]:
        statement = (
            select(SavedSearch)
            .where(SavedSearch.active.is_(True), SavedSearch.next_run_at <= now)
            .order_by(SavedSearch.next_run_at)
        )
        return list(self.session.scalars(statement).all())

    def latest_saved_search_run(self, saved_search_id: str) -> SavedSearchRun | None:
        statement = (
            select(SavedSearchRun)
            .where(SavedSearchRun.saved_search_id == saved_search_id)
            .order_by(SavedSearchRun.ran_at.desc())
            .limit(1)
        )
        return self.session.scalar(statement)

    def record_saved_search_run(
        self,
        *,
        saved_search_id: str,
        status: str,
        job_ids: list[str] | None = None,
        new_jobs_count: int = 0,
        total_jobs_found: int = 0,
        error_message: str | None = None,
    ) -> SavedSearchRun:
        run = SavedSearchRun(
            saved_search_id=saved_search_id,
            ran_at=utcnow(),
            status=status,
            job_ids=job_ids or [],
            new_jobs_count=new_jobs_count,
            total_jobs_found=total_jobs_found,
            error_message=error_message,
        )
        self.session.add(run)
        self.session.commit()
        self.session.refresh(run)
        return run

    def update_saved_search(self, saved_search_id: str, values: dict[str, Any]) -> SavedSearch:
        search = self.session.get(SavedSearch, saved_search_id)
        if not search:
            raise ValueError(f"saved search {saved_search_id} not found")
        for key, value in values.items():
            setattr(search, key, value)
        self.session.commit()
        self.session.refresh(search)
        return search

    def list_saved_searches(self, user_id: str) -> list[SavedSearch]:
        statement = (
            select(SavedSearch)
            .where(SavedSearch.user_id == user_id)
            .order_by(SavedSearch.created_at.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_owned_saved_search(self, saved_search_id: str, user_id: str) -> SavedSearch | None:
        return self.session.scalar(
            select(SavedSearch).where(SavedSearch.id == saved_search_id, SavedSearch.user_id == user_id)
        )

    def list_saved_search_runs(self, saved_search_id: str, *, limit: int = 5) -> list[SavedSearchRun]:
        statement = (
            select(SavedSearchRun)
            .where(SavedSearchRun.saved_search_id == saved_search_id)
            .order_by(SavedSearchRun.ran_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(statement).all())
