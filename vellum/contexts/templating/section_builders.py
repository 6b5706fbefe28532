"""
Section Builders

Derives one LaTeX text block per template placeholder from an already escaped
content snapshot. Builders never escape: every string they receive has been
through escape_content(), and every string they add is fixed LaTeX markup.

Blocks use a small macro vocabulary that each template defines in its
preamble, so the same block renders under any template:
- \\resumesection{title}
- \\resumeentry{title}{dates}{subtitle}{location}
- resumebullets environment (an itemize list)
- \\resumenote{text}
- \\skillline{category}{skills}

Builders never place user text directly after a line break command and never
emit an empty list environment.
"""

from typing import Callable, Dict, List, Optional

from vellum.contexts.templating.resume_content import (
    Certification,
    Education,
    Project,
    ResumeContent,
    VolunteerExperience,
    WorkExperience,
)

# Every placeholder a template may reference, in document order
PLACEHOLDERS = (
    "full_name",
    "contact_line",
    "links_line",
    "professional_title",
    "professional_summary",
    "work_experience",
    "education",
    "skills",
    "projects",
    "certifications",
    "languages",
    "volunteer_experience",
    "awards",
    "publications",
    "references",
    "hobbies",
    "additional_sections",
)

SEPARATOR = r" $\bullet$ "

# (field, link label) in display order
LINK_FIELDS = (
    ("linkedin_url", "LinkedIn"),
    ("github_url", "GitHub"),
    ("portfolio_url", "Portfolio"),
    ("website_url", "Website"),
)

UNCATEGORIZED_SKILLS = "Other"


def _join(parts: List[str], separator: str = SEPARATOR) -> str:
    return separator.join(part for part in parts if part)


def _capitalize(text: str) -> str:
    """Uppercase only the first character (str.title would touch escaped macros)."""
    return text[:1].upper() + text[1:]


def date_range(start: str, end: str, is_current: bool = False) -> str:
    """
    Format a date range for an entry header.

    Args:
        start: Start date text (escaped)
        end: End date text (escaped)
        is_current: Whether the position is ongoing

    Returns:
        "start -- end", "start -- Present" when ongoing or open-ended, or
        whichever single date is present
    """
    if is_current:
        end = "Present"
    if start and end:
        return f"{start} -- {end}"
    if start:
        return f"{start} -- Present"
    return end


def href(url: str, label: str) -> str:
    """Hyperlink with a fixed label, or "" when there is no URL."""
    if not url:
        return ""
    return rf"\href{{{url}}}{{{label}}}"


def entry_header(title: str, dates: str = "", subtitle: str = "", location: str = "") -> str:
    return rf"\resumeentry{{{title}}}{{{dates}}}{{{subtitle}}}{{{location}}}"


def bullet_list(items: List[str]) -> str:
    """resumebullets environment, or "" when no item has text."""
    items = [item for item in items if item]
    if not items:
        return ""
    lines = [r"\begin{resumebullets}"]
    lines.extend(rf"  \item {item}" for item in items)
    lines.append(r"\end{resumebullets}")
    return "\n".join(lines)


def note(text: str) -> str:
    return rf"\resumenote{{{text}}}" if text else ""


def _entry_block(*parts: str) -> str:
    return "\n".join(part for part in parts if part)


def _sections_block(blocks: List[str]) -> str:
    return "\n\n".join(block for block in blocks if block)


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


def build_full_name(content: ResumeContent) -> str:
    info = content.personal_info
    return _join([info.first_name, info.last_name], " ")


def build_contact_line(content: ResumeContent) -> str:
    info = content.personal_info
    return _join([info.email, info.phone, info.location])


def build_links_line(content: ResumeContent) -> str:
    info = content.personal_info
    return _join([href(getattr(info, name), label) for name, label in LINK_FIELDS])


def build_professional_title(content: ResumeContent) -> str:
    return content.personal_info.professional_title


def build_professional_summary(content: ResumeContent) -> str:
    return content.professional_summary


# ---------------------------------------------------------------------------
# Ordered sections
# ---------------------------------------------------------------------------


def _work_entry(exp: WorkExperience) -> str:
    if not (exp.job_title or exp.company or exp.responsibilities or exp.achievements):
        return ""
    return _entry_block(
        entry_header(
            exp.job_title,
            date_range(exp.start_date, exp.end_date, exp.is_current_job),
            exp.company,
            exp.location,
        ),
        bullet_list(exp.responsibilities + exp.achievements),
    )


def build_work_experience(content: ResumeContent) -> str:
    return _sections_block([_work_entry(exp) for exp in content.work_experience])


def _education_entry(edu: Education) -> str:
    if not (edu.institution or edu.degree or edu.field_of_study):
        return ""
    title = edu.degree
    if edu.degree and edu.field_of_study:
        title = f"{edu.degree} in {edu.field_of_study}"
    elif edu.field_of_study:
        title = edu.field_of_study

    if edu.graduation_date:
        dates = edu.graduation_date
    else:
        dates = date_range(edu.start_date, edu.end_date)

    coursework = ", ".join(course for course in edu.coursework if course)
    return _entry_block(
        entry_header(title, dates, edu.institution, edu.location),
        note(f"GPA: {edu.gpa}" if edu.gpa else ""),
        note(f"Relevant coursework: {coursework}" if coursework else ""),
    )


def build_education(content: ResumeContent) -> str:
    return _sections_block([_education_entry(edu) for edu in content.education])


def _project_entry(project: Project) -> str:
    if not (project.name or project.description):
        return ""
    technologies = ", ".join(tech for tech in project.technologies if tech)
    return _entry_block(
        entry_header(
            project.name,
            date_range(project.start_date, project.end_date),
            technologies,
            href(project.url, "Link"),
        ),
        bullet_list(project.description),
    )


def build_projects(content: ResumeContent) -> str:
    return _sections_block([_project_entry(project) for project in content.projects])


def _volunteer_entry(vol: VolunteerExperience) -> str:
    if not (vol.role or vol.organization):
        return ""
    return _entry_block(
        entry_header(
            vol.role,
            date_range(vol.start_date, vol.end_date, vol.is_current_role),
            vol.organization,
            vol.location,
        ),
        bullet_list([vol.description] + vol.achievements),
    )


def build_volunteer_experience(content: ResumeContent) -> str:
    return _sections_block([_volunteer_entry(vol) for vol in content.volunteer_experience])


def build_awards(content: ResumeContent) -> str:
    return _sections_block(
        [
            _entry_block(entry_header(award.title, award.date, award.issuer), note(award.description))
            for award in content.awards
            if award.title
        ]
    )


def build_publications(content: ResumeContent) -> str:
    return _sections_block(
        [
            _entry_block(
                entry_header(pub.title, pub.publication_date, pub.publisher, href(pub.url, "Link")),
                note(pub.description),
            )
            for pub in content.publications
            if pub.title
        ]
    )


def build_references(content: ResumeContent) -> str:
    blocks = []
    for ref in content.references:
        if not ref.name:
            continue
        subtitle = _join([ref.title, ref.company], ", ")
        blocks.append(
            _entry_block(
                entry_header(ref.name, "", subtitle, ref.relationship),
                note(_join([ref.email, ref.phone])),
            )
        )
    return _sections_block(blocks)


def build_additional_sections(content: ResumeContent) -> str:
    """Each custom section carries its own heading."""
    return _sections_block(
        [
            _entry_block(rf"\resumesection{{{section.title}}}", section.content)
            for section in content.additional_sections
            if section.title and section.content
        ]
    )


# ---------------------------------------------------------------------------
# Canonically ordered sections
# ---------------------------------------------------------------------------


def build_skills(content: ResumeContent) -> str:
    """
    Skills grouped by category, one \\skillline per category.

    Groups appear in the order of the (already canonical) skill list.
    """
    groups: Dict[str, List[str]] = {}
    for skill in content.skills:
        if not skill.name:
            continue
        label = skill.name
        if skill.proficiency_level:
            label = f"{skill.name} ({_capitalize(skill.proficiency_level)})"
        category = _capitalize(skill.category) if skill.category else UNCATEGORIZED_SKILLS
        groups.setdefault(category, []).append(label)

    return "\n".join(rf"\skillline{{{category}}}{{{', '.join(names)}}}" for category, names in groups.items())


def _certification_entry(cert: Certification) -> str:
    if not cert.name:
        return ""
    details = []
    if cert.expiration_date:
        details.append(f"Expires {cert.expiration_date}")
    if cert.credential_id:
        details.append(f"Credential ID {cert.credential_id}")
    return _entry_block(
        entry_header(cert.name, cert.date, cert.issuer, href(cert.url, "Link")),
        note(_join(details)),
    )


def build_certifications(content: ResumeContent) -> str:
    return _sections_block([_certification_entry(cert) for cert in content.certifications])


def build_languages(content: ResumeContent) -> str:
    return ", ".join(
        f"{lang.name} ({_capitalize(lang.proficiency)})" if lang.proficiency else lang.name
        for lang in content.languages
        if lang.name
    )


def build_hobbies(content: ResumeContent) -> str:
    return ", ".join(hobby.name for hobby in content.hobbies if hobby.name)


BUILDERS: Dict[str, Callable[[ResumeContent], str]] = {
    "full_name": build_full_name,
    "contact_line": build_contact_line,
    "links_line": build_links_line,
    "professional_title": build_professional_title,
    "professional_summary": build_professional_summary,
    "work_experience": build_work_experience,
    "education": build_education,
    "skills": build_skills,
    "projects": build_projects,
    "certifications": build_certifications,
    "languages": build_languages,
    "volunteer_experience": build_volunteer_experience,
    "awards": build_awards,
    "publications": build_publications,
    "references": build_references,
    "hobbies": build_hobbies,
    "additional_sections": build_additional_sections,
}


def build_placeholder_blocks(escaped: ResumeContent, names: Optional[List[str]] = None) -> Dict[str, str]:
    """
    Build the LaTeX block for each placeholder.

    Args:
        escaped: Content snapshot that has already been through escape_content()
        names: Placeholders to build (defaults to all of PLACEHOLDERS)

    Returns:
        Dict mapping placeholder name to its block ("" when there is no data)
    """
    selected = PLACEHOLDERS if names is None else names
    return {name: BUILDERS[name](escaped).strip() for name in selected}
