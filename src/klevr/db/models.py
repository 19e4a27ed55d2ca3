from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from klevr.db.base import Base, IdMixin, TimestampMixin


class User(IdMixin, TimestampMixin, Base):
    __tablename__ = "users"

    auth0_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)


class Profile(IdMixin, TimestampMixin, Base):
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True)
    full_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    major: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    job_types: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    preferred_locations: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    raw_resume_text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    parsed_resume: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    parsed_resume_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Job(IdMixin, TimestampMixin, Base):
    __tablename__ = "jobs"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_source: Mapped[str] = mapped_column(String(40), default="OTHER", nullable=False)
    job_url: Mapped[str | None] = mapped_column(String(800), nullable=True)
    job_description_raw: Mapped[str] = mapped_column(Text, default="", nullable=False)
    job_description_parsed: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    scraping_status: Mapped[str] = mapped_column(String(40), default="NOT_STARTED", nullable=False)
    scraping_attempted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scraping_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scraping_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    scraping_method: Mapped[str | None] = mapped_column(String(40), nullable=True)
    final_source_url: Mapped[str | None] = mapped_column(String(800), nullable=True)
    adzuna_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    listing_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class Application(IdMixin, TimestampMixin, Base):
    __tablename__ = "applications"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    job_id: Mapped[str] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(20), default="PLANNED", nullable=False)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fit_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    fit_bucket: Mapped[str | None] = mapped_column(String(20), nullable=True)
    score_explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    matching_skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    missing_required_skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    missing_preferred_skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    score_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    company_research: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class GeneratedDocument(IdMixin, TimestampMixin, Base):
    __tablename__ = "generated_documents"

    application_id: Mapped[str] = mapped_column(ForeignKey("applications.id", ondelete="CASCADE"), index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    storage_url: Mapped[str] = mapped_column(String(800), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    structured_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    prompt_version: Mapped[str] = mapped_column(String(80), default="", nullable=False)
    model_used: Mapped[str] = mapped_column(String(80), default="", nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Note(IdMixin, TimestampMixin, Base):
    __tablename__ = "notes"

    application_id: Mapped[str] = mapped_column(ForeignKey("applications.id", ondelete="CASCADE"), index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)


class Notification(IdMixin, TimestampMixin, Base):
    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    type: Mapped[str] = mapped_column(String(60), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="", nullable=False)
    link_url: Mapped[str | None] = mapped_column(String(800), nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AiTask(IdMixin, TimestampMixin, Base):
    __tablename__ = "ai_tasks"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    application_id: Mapped[str | None] = mapped_column(
        ForeignKey("applications.id", ondelete="SET NULL"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", nullable=False)
    input_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    result_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class UsageTracking(IdMixin, TimestampMixin, Base):
    __tablename__ = "usage_tracking"
    __table_args__ = (UniqueConstraint("user_id", "month", name="uq_usage_tracking_user_month"),)

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    fit_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    resume_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cover_letter_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class ActivityLog(IdMixin, TimestampMixin, Base):
    __tablename__ = "activity_logs"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    application_id: Mapped[str | None] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(60), nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)


class SavedSearch(IdMixin, TimestampMixin, Base):
    __tablename__ = "saved_searches"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    query_config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    frequency: Mapped[str] = mapped_column(String(20), default="DAILY", nullable=False)
    schedule_time: Mapped[str] = mapped_column(String(5), default="08:00", nullable=False)
    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notify_in_app: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)


class SavedSearchRun(IdMixin, Base):
    __tablename__ = "saved_search_runs"

    saved_search_id: Mapped[str] = mapped_column(ForeignKey("saved_searches.id", ondelete="CASCADE"), index=True)
    ran_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    new_jobs_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_jobs_found: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    job_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
