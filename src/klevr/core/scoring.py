from __future__ import annotations

from klevr.types import FitBucket, FitScore, ParsedJobDescription, ParsedResume, SkillsMatchResult

REQUIRED_WEIGHT = 0.8
PREFERRED_WEIGHT = 0.2


def _normalize(skill: str) -> str:
    return skill.strip().lower()


def match_skills(
    user_skills: list[str],
    required_skills: list[str],
    preferred_skills: list[str] | None = None,
) -> SkillsMatchResult:
    preferred_skills = preferred_skills or []
    known = {_normalize(skill) for skill in user_skills}

    matching: list[str] = []
    missing_required: list[str] = []
    missing_preferred: list[str] = []

    for skill in required_skills:
        if _normalize(skill) in known:
            matching.append(skill)
        else:
            missing_required.append(skill)

    for skill in preferred_skills:
        if _normalize(skill) not in known:
            missing_preferred.append(skill)
        elif skill not in matching:
            matching.append(skill)

    required_total = len(required_skills) or 1
    required_hits = len(required_skills) - len(missing_required)
    required_score = required_hits / required_total

    if preferred_skills:
        preferred_score = (len(preferred_skills) - len(missing_preferred)) / len(preferred_skills)
    else:
        preferred_score = 1.0

    return SkillsMatchResult(
        matching_skills=matching,
        missing_required_skills=missing_required,
        missing_preferred_skills=missing_preferred,
        match_score=required_score * REQUIRED_WEIGHT + preferred_score * PREFERRED_WEIGHT,
    )


def bucket_for(score: float) -> FitBucket:
    if score >= 0.8:
        return "EXCELLENT"
    if score >= 0.6:
        return "GOOD"
    if score >= 0.4:
        return "FAIR"
    return "POOR"


def calculate_fit_score(
    resume: ParsedResume,
    job: ParsedJobDescription,
    *,
    job_types: list[str] | None = None,
    preferred_locations: list[str] | None = None,
    job_location: str | None = None,
    profile_skills: list[str] | None = None,
) -> FitScore:
    """Blend skills (max 0.5), experience (max 0.3) and preferences (max 0.2)."""
    job_types = job_types or []
    preferred_locations = preferred_locations or []

    user_skills = resume.all_skills()
    for skill in profile_skills or []:
        if _normalize(skill) not in {_normalize(item) for item in user_skills}:
            user_skills.append(skill)

    skills_match = match_skills(user_skills, job.required_skills, job.preferred_skills)
    skills_score = skills_match.match_score * 0.5

    experience_score = 0.15
    if resume.education:
        wanted = (job.education_required or "").lower()
        if not wanted or any((entry.major or "").lower() in wanted for entry in resume.education):
            experience_score += 0.05
    if resume.experience:
        domain = (job.domain or "").lower()
        if not domain or any(domain in entry.title.lower() for entry in resume.experience):
            experience_score += 0.05
    if resume.projects:
        experience_score += 0.05
    experience_score = min(experience_score, 0.3)

    preference_score = 0.0
    if job.job_type and job.job_type in job_types:
        preference_score += 0.1
    if job_location:
        location = job_location.lower()
        if any(pref.lower() in location or pref.lower() == "remote" for pref in preferred_locations):
            preference_score += 0.1

    total = skills_score + experience_score + preference_score
    return FitScore(
        fit_score=total,
        fit_bucket=bucket_for(total),
        skills_match=skills_match,
        experience_score=experience_score,
        preference_score=preference_score,
        components={
            "skills": skills_score,
            "experience": experience_score,
            "preferences": preference_score,
        },
    )
