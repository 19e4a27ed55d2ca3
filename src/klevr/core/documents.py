from __future__ import annotations

from datetime import datetime

from klevr.types import GeneratedResumeContent, PersonalInfo

MARKDOWN_CONTENT_TYPE = "text/markdown; charset=utf-8"
MAX_DISPLAY_NAME_LENGTH = 200


def default_display_name(kind: str, user_name: str | None, job_title: str, company: str, when: datetime) -> str:
    owner = user_name or ("Resume" if kind == "RESUME" else "Cover Letter")
    return f"{owner} {job_title} {company} {when:%b %Y}"[:MAX_DISPLAY_NAME_LENGTH]


def normalize_display_name(name: str | None) -> str:
    """Trimmed name, or ValueError when it is empty or too long."""
    value = (name or "").strip()
    if not value:
        raise ValueError("Name is required")
    if len(value) > MAX_DISPLAY_NAME_LENGTH:
        raise ValueError(f"Name must be at most {MAX_DISPLAY_NAME_LENGTH} characters")
    return value


def render_resume_markdown(content: GeneratedResumeContent, personal: PersonalInfo) -> str:
    lines: list[str] = [f"# {personal.name or 'Candidate'}"]
    contact = [value for value in [personal.email, personal.phone, personal.location, personal.linkedin, personal.github] if value]
    if contact:
        lines.append(" | ".join(contact))

    if content.summary:
        lines += ["", "## Summary", content.summary]

    if content.experience:
        lines += ["", "## Experience"]
        for entry in content.experience:
            heading = f"### {entry.title}, {entry.company}"
            if entry.location:
                heading += f" ({entry.location})"
            lines += ["", heading]
            if entry.dates:
                lines.append(f"_{entry.dates}_")
            lines += [f"- {bullet}" for bullet in entry.bullets]

    if content.projects:
        lines += ["", "## Projects"]
        for project in content.projects:
            line = f"- **{project.name}**"
            if project.description:
                line += f": {project.description}"
            if project.technologies:
                line += f" ({', '.join(project.technologies)})"
            lines.append(line)

    if content.education:
        lines += ["", "## Education"]
        for entry in content.education:
            line = f"- {entry.school}"
            if entry.degree:
                line += f", {entry.degree}"
            if entry.graduation:
                line += f" ({entry.graduation})"
            if entry.gpa:
                line += f", GPA {entry.gpa}"
            lines.append(line)

    if content.skills.technical or content.skills.other:
        lines += ["", "## Skills"]
        if content.skills.technical:
            lines.append(f"**Technical:** {', '.join(content.skills.technical)}")
        if content.skills.other:
            lines.append(f"**Other:** {', '.join(content.skills.other)}")

    return "\n".join(lines) + "\n"


def render_cover_letter_markdown(letter: str, personal: PersonalInfo, job_title: str, company: str) -> str:
    header = [f"# {personal.name or 'Candidate'}"]
    if personal.email:
        header.append(personal.email)
    header += ["", f"**Re:** {job_title} at {company}", ""]
    return "\n".join(header) + letter.strip() + "\n"
