"""Unit tests for placeholder block builders."""

import pytest

from vellum.contexts.templating.latex_escaping import escape_content
from vellum.contexts.templating.resume_content import (
    AdditionalSection,
    Certification,
    Education,
    Language,
    PersonalInfo,
    ResumeContent,
    Skill,
    WorkExperience,
)
from vellum.contexts.templating.section_builders import (
    PLACEHOLDERS,
    build_additional_sections,
    build_certifications,
    build_education,
    build_languages,
    build_links_line,
    build_placeholder_blocks,
    build_skills,
    build_work_experience,
    bullet_list,
    date_range,
    href,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "start,end,is_current,expected",
    [
        ("2020", "2022", False, "2020 -- 2022"),
        ("2020", "", False, "2020 -- Present"),
        ("2020", "2022", True, "2020 -- Present"),
        ("", "2022", False, "2022"),
        ("", "", False, ""),
    ],
)
def test_date_range(start, end, is_current, expected):
    assert date_range(start, end, is_current) == expected


@pytest.mark.unit
def test_bullet_list_never_emits_empty_environment():
    """Test an itemize without items (a LaTeX error) is never produced."""
    assert bullet_list([]) == ""
    assert bullet_list(["", ""]) == ""
    assert bullet_list(["one", "", "two"]) == (
        "\\begin{resumebullets}\n  \\item one\n  \\item two\n\\end{resumebullets}"
    )


@pytest.mark.unit
def test_href_uses_fixed_label():
    assert href("", "LinkedIn") == ""
    assert href("https://x.io", "LinkedIn") == r"\href{https://x.io}{LinkedIn}"


@pytest.mark.unit
def test_links_line_skips_missing_urls():
    content = ResumeContent(personal_info=PersonalInfo(github_url="https://github.com/ada"))
    assert build_links_line(content) == r"\href{https://github.com/ada}{GitHub}"


@pytest.mark.unit
def test_work_experience_entry():
    content = ResumeContent(
        work_experience=[
            WorkExperience(
                job_title="Engineer",
                company="Acme",
                location="Remote",
                start_date="2021",
                is_current_job=True,
                responsibilities=["Built things"],
                achievements=["Shipped it"],
            )
        ]
    )
    block = build_work_experience(content)

    assert block.startswith(r"\resumeentry{Engineer}{2021 -- Present}{Acme}{Remote}")
    assert r"\item Built things" in block
    assert r"\item Shipped it" in block


@pytest.mark.unit
def test_work_experience_without_bullets_has_no_list():
    content = ResumeContent(work_experience=[WorkExperience(job_title="Engineer", company="Acme")])
    block = build_work_experience(content)

    assert "resumebullets" not in block
    assert block == r"\resumeentry{Engineer}{}{Acme}{}"


@pytest.mark.unit
def test_blank_entries_are_skipped():
    content = ResumeContent(work_experience=[WorkExperience(), WorkExperience(job_title="Analyst")])
    assert build_work_experience(content) == r"\resumeentry{Analyst}{}{}{}"


@pytest.mark.unit
def test_education_title_and_notes():
    content = ResumeContent(
        education=[
            Education(
                institution="MIT",
                degree="BSc",
                field_of_study="Physics",
                graduation_date="2019",
                gpa="3.9",
                coursework=["Optics", "Quantum"],
            )
        ]
    )
    block = build_education(content)

    assert block.startswith(r"\resumeentry{BSc in Physics}{2019}{MIT}{}")
    assert r"\resumenote{GPA: 3.9}" in block
    assert r"\resumenote{Relevant coursework: Optics, Quantum}" in block


@pytest.mark.unit
def test_skills_grouped_by_category_in_given_order():
    content = ResumeContent(
        skills=[
            Skill(name="Go", category="languages"),
            Skill(name="Python", category="languages", proficiency_level="expert"),
            Skill(name="Teamwork"),
        ]
    )
    assert build_skills(content) == (
        "\\skillline{Languages}{Go, Python (Expert)}\n\\skillline{Other}{Teamwork}"
    )


@pytest.mark.unit
def test_languages_and_certifications():
    content = ResumeContent(
        languages=[Language(name="French", proficiency="fluent"), Language(name="Latin")],
        certifications=[Certification(name="CKA", issuer="CNCF", date="2023", credential_id="X1")],
    )
    assert build_languages(content) == "French (Fluent), Latin"

    block = build_certifications(content)
    assert block.startswith(r"\resumeentry{CKA}{2023}{CNCF}{}")
    assert r"\resumenote{Credential ID X1}" in block


@pytest.mark.unit
def test_additional_sections_carry_their_own_heading():
    content = ResumeContent(
        additional_sections=[
            AdditionalSection(title="Talks", content="PyCon 2024"),
            AdditionalSection(title="Empty", content=""),
        ]
    )
    assert build_additional_sections(content) == "\\resumesection{Talks}\nPyCon 2024"


@pytest.mark.unit
def test_placeholder_blocks_cover_every_placeholder(ada_content):
    blocks = build_placeholder_blocks(escape_content(ada_content))

    assert set(blocks) == set(PLACEHOLDERS)
    assert blocks["full_name"] == "Ada Lovelace"
    assert blocks["professional_title"] == r"Analyst \& Programmer"
    assert blocks["projects"] == ""
    assert blocks["references"] == ""


@pytest.mark.unit
def test_empty_content_gives_empty_blocks():
    blocks = build_placeholder_blocks(ResumeContent())
    assert all(block == "" for block in blocks.values())


@pytest.mark.unit
def test_placeholder_subset():
    blocks = build_placeholder_blocks(ResumeContent(), names=["full_name", "skills"])
    assert list(blocks) == ["full_name", "skills"]
