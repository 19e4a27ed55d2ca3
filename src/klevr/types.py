from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

ApplicationStatus = Literal["PLANNED", "APPLIED", "INTERVIEW", "OFFER", "REJECTED"]
AiTaskType = Literal["JOB_SCORING", "RESUME_GENERATION", "COVER_LETTER_GENERATION", "COMPANY_RESEARCH"]
AiTaskStatus = Literal["PENDING", "RUNNING", "SUCCEEDED", "FAILED"]
DocumentType = Literal["RESUME", "COVER_LETTER"]
FitBucket = Literal["EXCELLENT", "GOOD", "FAIR", "POOR"]
JobSource = Literal[
    "LINKEDIN",
    "INDEED",
    "GLASSDOOR",
    "HANDSHAKE",
    "COMPANY_WEBSITE",
    "REFERRAL",
    "ADZUNA",
    "OTHER",
]
ScrapingStatus = Literal["NOT_STARTED", "IN_PROGRESS", "SUCCESS", "FAILED"]
SavedSearchFrequency = Literal["DAILY", "WEEKLY", "MONTHLY"]
ActivityType = Literal[
    "JOB_CREATED",
    "STATUS_CHANGED",
    "DOCUMENT_DELETED",
    "JOB_SCORING_COMPLETED",
    "RESUME_GENERATED",
    "COVER_LETTER_GENERATED",
    "COMPANY_RESEARCH_COMPLETED",
    "JOB_DISCOVERED",
    "SEARCH_PERFORMED",
]

TERMINAL_TASK_STATUSES: frozenset[str] = frozenset({"SUCCEEDED", "FAILED"})


class PersonalInfo(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    location: str | None = None
    linkedin: str | None = None
    github: str | None = None
    website: str | None = None


class EducationEntry(BaseModel):
    school: str
    degree: str | None = None
    major: str | None = None
    graduationDate: str | None = None
    gpa: str | None = None


class ExperienceEntry(BaseModel):
    title: str
    company: str
    location: str | None = None
    startDate: str | None = None
    endDate: str | None = None
    current: bool = False
    bullets: list[str] = Field(default_factory=list)


class ProjectEntry(BaseModel):
    name: str
    description: str | None = None
    technologies: list[str] = Field(default_factory=list)
    url: str | None = None


class SkillSet(BaseModel):
    languages: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    other: list[str] = Field(default_factory=list)


class CertificationEntry(BaseModel):
    name: str
    issuer: str | None = None
    date: str | None = None


class ParsedResume(BaseModel):
    personal: PersonalInfo = Field(default_factory=PersonalInfo)
    education: list[EducationEntry] = Field(default_factory=list)
    experience: list[ExperienceEntry] = Field(default_factory=list)
    projects: list[ProjectEntry] = Field(default_factory=list)
    skills: SkillSet = Field(default_factory=SkillSet)
    certifications: list[CertificationEntry] = Field(default_factory=list)

    def all_skills(self) -> list[str]:
        return [*self.skills.languages, *self.skills.frameworks, *self.skills.tools]


class ParsedJobDescription(BaseModel):
    required_skills: list[str] = Field(default_factory=list)
    preferred_skills: list[str] = Field(default_factory=list)
    education_required: str | None = None
    experience_required: str | None = None
    responsibilities: list[str] = Field(default_factory=list)
    qualifications: list[str] = Field(default_factory=list)
    job_type: str | None = None
    level: Literal["ENTRY_LEVEL", "MID_LEVEL", "SENIOR"] | None = None
    domain: str | None = None


class ResumeExperience(BaseModel):
    title: str
    company: str
    location: str | None = None
    dates: str = ""
    bullets: list[str] = Field(default_factory=list)


class ResumeEducation(BaseModel):
    degree: str = ""
    school: str
    graduation: str = ""
    gpa: str | None = None


class ResumeSkills(BaseModel):
    technical: list[str] = Field(default_factory=list)
    other: list[str] = Field(default_factory=list)


class ResumeProject(BaseModel):
    name: str
    description: str = ""
    technologies: list[str] = Field(default_factory=list)


class GeneratedResumeContent(BaseModel):
    summary: str = ""
    experience: list[ResumeExperience] = Field(default_factory=list)
    education: list[ResumeEducation] = Field(default_factory=list)
    skills: ResumeSkills = Field(default_factory=ResumeSkills)
    projects: list[ResumeProject] = Field(default_factory=list)


class CompanyResearch(BaseModel):
    overview: str
    talking_points: list[str] = Field(default_factory=list)
    things_to_research: list[str] = Field(default_factory=list)
    culture_notes: str | None = None


class SkillsMatchResult(BaseModel):
    matching_skills: list[str] = Field(default_factory=list)
    missing_required_skills: list[str] = Field(default_factory=list)
    missing_preferred_skills: list[str] = Field(default_factory=list)
    match_score: float = 0.0


class FitScore(BaseModel):
    fit_score: float
    fit_bucket: FitBucket
    skills_match: SkillsMatchResult
    experience_score: float
    preference_score: float
    components: dict[str, float] = Field(default_factory=dict)


class TaskUpdate(BaseModel):
    status: AiTaskStatus
    result_ref: str | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATUSES


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)


class JobSearchQuery(BaseModel):
    what: str | None = None
    what_exclude: str | None = None
    where: str | None = None
    salary_min: int | None = None
    full_time: Literal[0, 1] | None = None
    permanent: Literal[0, 1] | None = None
    results_per_page: int = 10
    page: int = 1
    sort_by: Literal["date", "salary"] = "date"

    @field_validator("results_per_page")
    @classmethod
    def validate_results_per_page(cls, value: int) -> int:
        if value < 1 or value > 50:
            raise ValueError("results_per_page must be between 1 and 50")
        return value


class JobSearchHit(BaseModel):
    id: str
    title: str
    company: str = ""
    location: str = ""
    description: str = ""
    redirect_url: str = ""


class JobSearchResult(BaseModel):
    count: int = 0
    results: list[JobSearchHit] = Field(default_factory=list)
