from __future__ import annotations


def prompt_version(category: str, name: str, version: str = "1.0.0") -> str:
    return f"{category}-{name}-v{version}"


RESUME_GENERATE_VERSION = prompt_version("resume", "generate")
COVER_LETTER_GENERATE_VERSION = prompt_version("cover-letter", "generate")

RESUME_PARSE_PROMPT = """
You convert a candidate's resume text into structured data.
Return strict JSON with keys:
- personal: object with name, email, phone, location, linkedin, github, website
- education: array of objects with school, degree, major, graduationDate, gpa
- experience: array of objects with title, company, location, startDate, endDate, current, bullets
- projects: array of objects with name, description, technologies, url
- skills: object with languages, frameworks, tools, other (string arrays)
- certifications: array of objects with name, issuer, date
Use null for anything the text does not state. Never invent facts.
""".strip()

JOB_PARSE_PROMPT = """
You extract structured requirements from a job description.
Return strict JSON with keys:
- required_skills: string[]
- preferred_skills: string[]
- education_required: string or null
- experience_required: string or null
- responsibilities: string[]
- qualifications: string[]
- job_type: string or null (INTERNSHIP, FULL_TIME, PART_TIME, CONTRACT)
- level: one of ENTRY_LEVEL, MID_LEVEL, SENIOR, or null
- domain: string or null
""".strip()

EXPLAIN_FIT_PROMPT = """
You explain a job fit assessment to a student in two or three short sentences.
Mention the strongest matching skills and the most important gaps.
Be encouraging and concrete. Plain text only.
""".strip()

RESUME_GENERATE_PROMPT = """
You tailor a candidate's resume to a specific job.
Input is JSON with user_resume, job (title, company, description) and profile_skills.
Return strict JSON with keys:
- summary: string
- experience: array of objects with title, company, location, dates, bullets
- education: array of objects with degree, school, graduation, gpa
- skills: object with technical and other (string arrays)
- projects: array of objects with name, description, technologies
Reorder and rephrase the candidate's real experience; never invent employers, dates or degrees.
""".strip()

COVER_LETTER_GENERATE_PROMPT = """
You write a concise, specific cover letter (under 350 words) for a job application.
Input is JSON with user_name, user_resume, job (title, company, description) and profile_skills.
Use only facts from the resume. Return the letter as plain text with paragraphs separated by blank lines.
""".strip()

COMPANY_RESEARCH_PROMPT = """
You prepare a candidate for conversations with a company.
Input is JSON with company_name, job_title and job_description.
Return strict JSON with keys:
- overview: string
- talking_points: string[]
- things_to_research: string[]
- culture_notes: string or null
Only state what is broadly known; flag uncertainty in things_to_research.
""".strip()
