from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from klevr.config import Settings, get_settings
from klevr.errors import should_retry
from klevr.llm.prompts import (
    COMPANY_RESEARCH_PROMPT,
    COVER_LETTER_GENERATE_PROMPT,
    EXPLAIN_FIT_PROMPT,
    JOB_PARSE_PROMPT,
    RESUME_GENERATE_PROMPT,
    RESUME_PARSE_PROMPT,
)
from klevr.llm.providers import ProviderPool
from klevr.llm.rate_limit import UserRateLimiter
from klevr.types import (
    CompanyResearch,
    FitScore,
    GeneratedResumeContent,
    ParsedJobDescription,
    ParsedResume,
    ResumeEducation,
    ResumeExperience,
    ResumeProject,
    ResumeSkills,
)

logger = logging.getLogger(__name__)

HEURISTIC_MODEL = "heuristic"

KNOWN_SKILLS = [
    "Python",
    "Java",
    "JavaScript",
    "TypeScript",
    "Rust",
    "C++",
    "C#",
    "Ruby",
    "Kotlin",
    "Swift",
    "SQL",
    "React",
    "Next.js",
    "Node.js",
    "Django",
    "Flask",
    "FastAPI",
    "Vue",
    "Angular",
    "PostgreSQL",
    "MySQL",
    "MongoDB",
    "Redis",
    "Docker",
    "Kubernetes",
    "AWS",
    "GCP",
    "Azure",
    "Terraform",
    "Git",
    "Linux",
    "GraphQL",
    "Pandas",
    "NumPy",
    "PyTorch",
    "TensorFlow",
    "Machine Learning",
    "Excel",
    "Tableau",
]

_LANGUAGES = {"Python", "Java", "JavaScript", "TypeScript", "Rust", "C++", "C#", "Ruby", "Kotlin", "Swift", "SQL"}
_FRAMEWORKS = {
    "React",
    "Next.js",
    "Node.js",
    "Django",
    "Flask",
    "FastAPI",
    "Vue",
    "Angular",
    "Pandas",
    "NumPy",
    "PyTorch",
    "TensorFlow",
}

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PHONE_RE = re.compile(r"\+?\d[\d\s().-]{7,}\d")
_PREFERRED_MARKERS = ("preferred", "nice to have", "bonus", "plus")


class LLMRouter:
    """Entry point for every model call.

    Each call first counts against the caller's moving-window rate limit. Enabled
    providers are tried in order; errors that :func:`should_retry` accepts
    propagate so the background function is retried, anything else falls
    through to the next provider and finally to a deterministic heuristic.
    """

    def __init__(self, settings: Settings | None = None, limiter: UserRateLimiter | None = None):
        self.settings = settings or get_settings()
        self.pool = ProviderPool(self.settings)
        self.limiter = limiter or UserRateLimiter(self.settings.llm_rate_limit)

    def parse_resume(self, *, user_id: str, text: str) -> ParsedResume:
        data, _ = self._call_json(
            user_id=user_id,
            system=RESUME_PARSE_PROMPT,
            prompt=text[:20000],
            model=self.settings.openai_model_extractor,
            temperature=0.1,
        )
        if data:
            try:
                return ParsedResume.model_validate(data)
            except PydanticValidationError:
                logger.warning("Invalid parsed resume payload; falling back to heuristic")
        return heuristic_parse_resume(text)

    def parse_job(self, *, user_id: str, description: str) -> ParsedJobDescription:
        data, _ = self._call_json(
            user_id=user_id,
            system=JOB_PARSE_PROMPT,
            prompt=description[:20000],
            model=self.settings.openai_model_extractor,
            temperature=0.1,
        )
        if data:
            try:
                return ParsedJobDescription.model_validate(data)
            except PydanticValidationError:
                logger.warning("Invalid parsed job payload; falling back to heuristic")
        return heuristic_parse_job(description)

    def explain_fit(self, *, user_id: str, fit: FitScore, job_title: str, major: str | None = None) -> str:
        payload = {
            "fit_bucket": fit.fit_bucket,
            "fit_score": round(fit.fit_score, 3),
            "matching_skills": fit.skills_match.matching_skills,
            "missing_required_skills": fit.skills_match.missing_required_skills,
            "missing_preferred_skills": fit.skills_match.missing_preferred_skills,
            "job_title": job_title,
            "user_major": major,
        }
        text, _ = self._call_text(
            user_id=user_id,
            system=EXPLAIN_FIT_PROMPT,
            prompt=json.dumps(payload),
            model=self.settings.openai_model_extractor,
            temperature=0.7,
        )
        return text.strip() or heuristic_fit_explanation(fit, job_title)

    def generate_resume(
        self,
        *,
        user_id: str,
        resume: ParsedResume,
        job_title: str,
        company: str,
        job_parsed: ParsedJobDescription | None,
        profile_skills: list[str] | None = None,
    ) -> tuple[GeneratedResumeContent, str]:
        """Returns the content and the model id that produced it."""
        payload = {
            "user_resume": resume.model_dump(),
            "job": {
                "title": job_title,
                "company": company,
                "description": job_parsed.model_dump() if job_parsed else None,
            },
            "profile_skills": profile_skills or [],
        }
        data, model = self._call_json(
            user_id=user_id,
            system=RESUME_GENERATE_PROMPT,
            prompt=json.dumps(payload),
            model=self.settings.openai_model_writer,
            temperature=0.7,
        )
        if data:
            try:
                return GeneratedResumeContent.model_validate(data), model
            except PydanticValidationError:
                logger.warning("Invalid generated resume payload; falling back to heuristic")
        return heuristic_resume_content(resume, job_parsed, profile_skills or []), HEURISTIC_MODEL

    def generate_cover_letter(
        self,
        *,
        user_id: str,
        user_name: str,
        resume: ParsedResume,
        job_title: str,
        company: str,
        description: str,
        profile_skills: list[str] | None = None,
    ) -> tuple[str, str]:
        payload = {
            "user_name": user_name,
            "user_resume": resume.model_dump(),
            "job": {"title": job_title, "company": company, "description": description},
            "profile_skills": profile_skills or [],
        }
        text, model = self._call_text(
            user_id=user_id,
            system=COVER_LETTER_GENERATE_PROMPT,
            prompt=json.dumps(payload),
            model=self.settings.openai_model_writer,
            temperature=0.8,
        )
        if text.strip():
            return text.strip(), model
        letter = heuristic_cover_letter(user_name, resume, job_title, company, profile_skills or [])
        return letter, HEURISTIC_MODEL

    def research_company(self, *, user_id: str, company: str, job_title: str, description: str) -> CompanyResearch:
        payload = {"company_name": company, "job_title": job_title, "job_description": description[:500]}
        data, _ = self._call_json(
            user_id=user_id,
            system=COMPANY_RESEARCH_PROMPT,
            prompt=json.dumps(payload),
            model=self.settings.openai_model_extractor,
            temperature=0.5,
        )
        if data:
            try:
                return CompanyResearch.model_validate(data)
            except PydanticValidationError:
                logger.warning("Invalid company research payload; falling back to heuristic")
        return heuristic_company_research(company, job_title)

    def _call_json(
        self, *, user_id: str, system: str, prompt: str, model: str, temperature: float
    ) -> tuple[dict[str, Any], str]:
        self.limiter.acquire(user_id)
        for provider in self.pool.enabled():
            model_name = model if provider.config.name == "openai" else self.settings.local_llm_model
            try:
                data = provider.complete_json(model=model_name, system=system, prompt=prompt, temperature=temperature)
            except Exception as exc:
                if should_retry(exc):
                    raise
                logger.warning("LLM JSON call failed provider=%s error=%s", provider.config.name, exc)
                continue
            if data:
                return data, model_name
        return {}, HEURISTIC_MODEL

    def _call_text(
        self, *, user_id: str, system: str, prompt: str, model: str, temperature: float
    ) -> tuple[str, str]:
        self.limiter.acquire(user_id)
        for provider in self.pool.enabled():
            model_name = model if provider.config.name == "openai" else self.settings.local_llm_model
            try:
                response = provider.complete_text(
                    model=model_name, system=system, prompt=prompt, temperature=temperature
                )
            except Exception as exc:
                if should_retry(exc):
                    raise
                logger.warning("LLM text call failed provider=%s error=%s", provider.config.name, exc)
                continue
            if response.content.strip():
                return response.content, model_name
        return "", HEURISTIC_MODEL


def find_skills(text: str) -> list[str]:
    found = []
    for skill in KNOWN_SKILLS:
        pattern = rf"(?<![\w+#.]){re.escape(skill)}(?![\w+#])"
        if re.search(pattern, text, flags=re.IGNORECASE):
            found.append(skill)
    return found


def heuristic_parse_resume(text: str) -> ParsedResume:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    email = _EMAIL_RE.search(text)
    phone = _PHONE_RE.search(text)
    skills = find_skills(text)

    return ParsedResume.model_validate(
        {
            "personal": {
                "name": lines[0] if lines else None,
                "email": email.group(0) if email else None,
                "phone": phone.group(0).strip() if phone else None,
            },
            "skills": {
                "languages": [skill for skill in skills if skill in _LANGUAGES],
                "frameworks": [skill for skill in skills if skill in _FRAMEWORKS],
                "tools": [skill for skill in skills if skill not in _LANGUAGES and skill not in _FRAMEWORKS],
                "other": [],
            },
        }
    )


def heuristic_parse_job(description: str) -> ParsedJobDescription:
    lines = [line.strip() for line in description.splitlines() if line.strip()]
    preferred_text = "\n".join(
        line for line in lines if any(marker in line.lower() for marker in _PREFERRED_MARKERS)
    )
    preferred = find_skills(preferred_text)
    required = [skill for skill in find_skills(description) if skill not in preferred]

    lowered = description.lower()
    job_type = None
    if "intern" in lowered:
        job_type = "INTERNSHIP"
    elif "part-time" in lowered or "part time" in lowered:
        job_type = "PART_TIME"
    elif "contract" in lowered:
        job_type = "CONTRACT"
    elif "full-time" in lowered or "full time" in lowered:
        job_type = "FULL_TIME"

    level = None
    if "senior" in lowered or "staff" in lowered:
        level = "SENIOR"
    elif "intern" in lowered or "entry" in lowered or "new grad" in lowered:
        level = "ENTRY_LEVEL"

    return ParsedJobDescription(
        required_skills=required,
        preferred_skills=preferred,
        responsibilities=[line for line in lines if "responsib" in line.lower()][:8],
        qualifications=[line for line in lines if "require" in line.lower() or "qualif" in line.lower()][:8],
        job_type=job_type,
        level=level,
    )


def heuristic_fit_explanation(fit: FitScore, job_title: str) -> str:
    match = fit.skills_match
    parts = [f"Your profile is a {fit.fit_bucket.lower()} fit for {job_title or 'this role'}."]
    if match.matching_skills:
        parts.append(f"You already bring {', '.join(match.matching_skills[:5])}.")
    if match.missing_required_skills:
        parts.append(f"Consider building experience with {', '.join(match.missing_required_skills[:3])}.")
    return " ".join(parts)


def heuristic_resume_content(
    resume: ParsedResume,
    job: ParsedJobDescription | None,
    profile_skills: list[str],
) -> GeneratedResumeContent:
    wanted = {skill.lower() for skill in (job.required_skills + job.preferred_skills)} if job else set()
    technical: list[str] = []
    for skill in [*resume.all_skills(), *profile_skills]:
        if skill not in technical:
            technical.append(skill)
    technical.sort(key=lambda skill: skill.lower() not in wanted)

    experience = [
        ResumeExperience(
            title=entry.title,
            company=entry.company,
            location=entry.location,
            dates=" - ".join(
                part for part in [entry.startDate, "Present" if entry.current else entry.endDate] if part
            ),
            bullets=entry.bullets,
        )
        for entry in resume.experience
    ]
    education = [
        ResumeEducation(
            degree=" ".join(part for part in [entry.degree, entry.major] if part),
            school=entry.school,
            graduation=entry.graduationDate or "",
            gpa=entry.gpa,
        )
        for entry in resume.education
    ]
    projects = [
        ResumeProject(name=entry.name, description=entry.description or "", technologies=entry.technologies)
        for entry in resume.projects
    ]

    highlights = ", ".join(technical[:4])
    summary = f"Candidate with hands-on experience in {highlights}." if highlights else ""
    return GeneratedResumeContent(
        summary=summary,
        experience=experience,
        education=education,
        skills=ResumeSkills(technical=technical, other=resume.skills.other),
        projects=projects,
    )


def heuristic_cover_letter(
    user_name: str,
    resume: ParsedResume,
    job_title: str,
    company: str,
    profile_skills: list[str],
) -> str:
    skills = [*resume.all_skills(), *profile_skills][:4]
    paragraphs = [
        f"Dear Hiring Team at {company or 'your company'},",
        f"I am excited to apply for the {job_title or 'open'} position.",
    ]
    if skills:
        paragraphs.append(f"My experience with {', '.join(skills)} prepares me to contribute from day one.")
    if resume.experience:
        latest = resume.experience[0]
        paragraphs.append(f"Most recently I worked as {latest.title} at {latest.company}.")
    paragraphs.extend(["Thank you for your consideration.", f"Sincerely,\n{user_name or 'Candidate'}"])
    return "\n\n".join(paragraphs)


def heuristic_company_research(company: str, job_title: str) -> CompanyResearch:
    return CompanyResearch(
        overview=f"{company} is hiring for {job_title}.",
        talking_points=[
            f"Why the {job_title} role at {company} interests you",
            "A project where you used skills listed in the posting",
        ],
        things_to_research=[
            f"{company}'s main products and customers",
            "Recent news and funding",
            "Team structure for this role",
        ],
    )
