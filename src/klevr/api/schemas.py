from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from klevr.types import ApplicationStatus, JobSource, ParsedResume, SavedSearchFrequency


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TaskCreateRequest(BaseModel):
    applicationId: str = Field(min_length=1)


class TaskCreateResponse(BaseModel):
    taskId: str


class TaskStatusResponse(BaseModel):
    status: str
    result_ref: str | None = None
    error_message: str | None = None


class DocumentResponse(ORMModel):
    id: str
    application_id: str
    type: str
    display_name: str | None
    prompt_version: str
    model_used: str
    created_at: datetime
    deleted_at: datetime | None


class DownloadResponse(BaseModel):
    url: str
    expires_in: int


class RenameDocumentRequest(BaseModel):
    name: str


class NotificationResponse(ORMModel):
    id: str
    user_id: str
    type: str
    title: str
    body: str
    link_url: str | None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    read_at: datetime | None
    created_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    pagination: Pagination
    unreadCount: int


class UserResponse(ORMModel):
    id: str
    email: str
    auth0_id: str
    created_at: datetime


class ProfileResponse(ORMModel):
    id: str
    full_name: str
    major: str
    skills: list[str]
    job_types: list[str]
    preferred_locations: list[str]
    parsed_resume: dict[str, Any] | None
    parsed_resume_confirmed_at: datetime | None


class ProfileUpdateRequest(BaseModel):
    full_name: str | None = None
    major: str | None = None
    skills: list[str] | None = None
    job_types: list[str] | None = None
    preferred_locations: list[str] | None = None


class ResumeParseRequest(BaseModel):
    text: str = Field(min_length=1)


class ResumeConfirmRequest(BaseModel):
    parsed_resume: ParsedResume | None = None


class JobCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    company: str = Field(min_length=1, max_length=255)
    location: str | None = None
    job_source: JobSource = "OTHER"
    job_url: str | None = None
    job_description_raw: str = ""


class JobResponse(ORMModel):
    id: str
    title: str
    company: str
    location: str | None
    job_source: str
    job_url: str | None
    job_description_raw: str
    job_description_parsed: dict[str, Any] | None
    scraping_status: str
    adzuna_id: str | None = None


class ApplicationResponse(ORMModel):
    id: str
    job_id: str
    status: str
    applied_at: datetime | None
    fit_score: float | None
    fit_bucket: str | None
    score_explanation: str | None
    matching_skills: list[str]
    missing_required_skills: list[str]
    missing_preferred_skills: list[str]
    score_count: int
    company_research: dict[str, Any] | None
    created_at: datetime


class ApplicationStatusRequest(BaseModel):
    status: ApplicationStatus


class ActivityResponse(ORMModel):
    id: str
    type: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class SavedSearchCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    query_config: dict[str, Any]
    frequency: SavedSearchFrequency = "DAILY"
    schedule_time: str = "08:00"
    day_of_week: int | None = Field(default=None, ge=1, le=7)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    user_timezone: str | None = None
    notify_in_app: bool = True


class SavedSearchResponse(ORMModel):
    id: str
    name: str
    query_config: dict[str, Any] | None
    frequency: str
    schedule_time: str
    day_of_week: int | None
    day_of_month: int | None
    user_timezone: str | None
    active: bool
    notify_in_app: bool
    last_run_at: datetime | None
    next_run_at: datetime | None


class EventSendRequest(BaseModel):
    name: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class JobUpdateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    company: str | None = Field(default=None, max_length=255)
    location: str | None = None
    job_source: JobSource | None = None
    job_url: str | None = None
    job_description_raw: str | None = None


class AdzunaJobSaveRequest(BaseModel):
    adzuna_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=255)
    company: str = Field(min_length=1, max_length=255)
    location: str | None = None
    job_url: HttpUrl
    job_description_raw: str = Field(min_length=1)
    salary_min: float | None = None
    salary_max: float | None = None
    contract_type: str | None = None
    contract_time: str | None = None


class CheckSavedRequest(BaseModel):
    adzunaIds: list[str] = Field(min_length=1, max_length=50)


class BulkUpdateData(BaseModel):
    status: ApplicationStatus | None = None


class BulkUpdateRequest(BaseModel):
    applicationIds: list[str] = Field(min_length=1)
    action: Literal["update_status", "delete"]
    data: BulkUpdateData | None = None


class NoteCreateRequest(BaseModel):
    applicationId: str = Field(min_length=1)
    content: str = Field(min_length=1, max_length=5000)


class NoteUpdateRequest(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class NoteResponse(ORMModel):
    id: str
    application_id: str
    content: str
    created_at: datetime
    updated_at: datetime


class SavedSearchUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    query_config: dict[str, Any] | None = None
    frequency: SavedSearchFrequency | None = None
    schedule_time: str | None = None
    day_of_week: int | None = Field(default=None, ge=1, le=7)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    user_timezone: str | None = None
    notify_in_app: bool | None = None


class SavedSearchReplaceRequest(SavedSearchCreateRequest):
    frequency: SavedSearchFrequency
    schedule_time: str


class SavedSearchRunResponse(ORMModel):
    id: str
    ran_at: datetime
    status: str
    new_jobs_count: int
    total_jobs_found: int
    job_ids: list[str]
    error_message: str | None


class DeleteAccountRequest(BaseModel):
    confirmation: Literal["DELETE MY ACCOUNT"]
