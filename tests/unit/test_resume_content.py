"""Unit tests for resume content parsing, canonical form and the editable draft."""

import json

import pytest

from vellum.contexts.templating.resume_content import (
    ResumeContent,
    ResumeDraft,
    Skill,
    WorkExperience,
    canonicalize_content,
    load_resume_content,
    normalize_text,
    to_snake_case,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "key,expected",
    [
        ("professionalSummary", "professional_summary"),
        ("linkedinUrl", "linkedin_url"),
        ("companyName", "company"),
        ("isCurrent", "is_current_job"),
        ("experience", "work_experience"),
        ("first_name", "first_name"),
    ],
)
def test_to_snake_case(key, expected):
    assert to_snake_case(key) == expected


@pytest.mark.unit
def test_load_yaml_fixture(ada_content):
    assert ada_content.personal_info.full_name == "Ada Lovelace"
    assert ada_content.personal_info.professional_title == "Analyst & Programmer"
    assert ada_content.work_experience[0].company == "Analytical Engine Project"
    assert ada_content.work_experience[0].id == "exp-1"
    assert ada_content.work_experience[0].start_date == "1842"
    assert ada_content.skills[0].proficiency_level == "expert"
    assert [h.name for h in ada_content.hobbies] == ["Horse riding", "Music"]


@pytest.mark.unit
def test_load_json(tmp_path):
    path = tmp_path / "resume.json"
    path.write_text(json.dumps({"personalInfo": {"firstName": "Grace"}, "skills": [{"name": "COBOL"}]}))

    content = load_resume_content(path)
    assert content.personal_info.first_name == "Grace"
    assert content.skills == [Skill(name="COBOL")]


@pytest.mark.unit
def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_resume_content(tmp_path / "nope.yaml")


@pytest.mark.unit
def test_from_dict_value_coercion():
    content = ResumeContent.from_dict(
        {
            "workExperience": [
                {
                    "jobTitle": "Engineer",
                    "isCurrentJob": "yes",
                    "responsibilities": "Single bullet",
                    "unknownKey": "ignored",
                    "startDate": 2020,
                    "id": 7,
                }
            ],
            "professionalSummary": None,
        }
    )
    exp = content.work_experience[0]

    assert exp.is_current_job is True
    assert exp.responsibilities == ["Single bullet"]
    assert exp.start_date == "2020"
    assert exp.id == "7"
    assert content.professional_summary == ""


@pytest.mark.unit
def test_from_dict_rejects_wrong_shapes():
    with pytest.raises(TypeError):
        ResumeContent.from_dict({"skills": "Python, Go"})
    with pytest.raises(TypeError):
        ResumeContent.from_dict({"skills": ["Python"]})


@pytest.mark.unit
def test_snapshot_is_detached(ada_content):
    snapshot = ada_content.snapshot()
    ada_content.work_experience[0].responsibilities.append("Later edit")
    assert "Later edit" not in snapshot.work_experience[0].responsibilities


@pytest.mark.unit
def test_normalize_text():
    assert normalize_text("  a \t b\n\nc  ") == "a b c"
    assert normalize_text(None) == ""


@pytest.mark.unit
def test_canonicalize_content_sorts_only_order_insensitive_sections():
    content = ResumeContent(
        work_experience=[WorkExperience(job_title="B"), WorkExperience(job_title="A")],
        skills=[
            Skill(name="Rust", category="technical"),
            Skill(name="Empathy", category="soft"),
            Skill(name="Go", category="technical"),
        ],
    )
    canonical = canonicalize_content(content)

    assert [exp.job_title for exp in canonical.work_experience] == ["B", "A"]
    assert [skill.name for skill in canonical.skills] == ["Empathy", "Go", "Rust"]
    # Input untouched
    assert [skill.name for skill in content.skills] == ["Rust", "Empathy", "Go"]


@pytest.mark.unit
def test_canonicalize_content_keeps_ids_and_normalizes_strings():
    content = ResumeContent(work_experience=[WorkExperience(job_title="  Lead   dev ", id="exp-9")])
    canonical = canonicalize_content(content)

    assert canonical.work_experience[0].job_title == "Lead dev"
    assert canonical.work_experience[0].id == "exp-9"


# ---------------------------------------------------------------------------
# ResumeDraft
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_draft_update_notifies_listeners():
    draft = ResumeDraft()
    changes = []
    unsubscribe = draft.subscribe(changes.append)

    draft.update(personalInfo={"firstName": "Ada"}, skills=[{"name": "Maths"}])
    assert changes == [["personal_info", "skills"]]
    assert draft.snapshot().personal_info.first_name == "Ada"
    assert draft.snapshot().skills == [Skill(name="Maths")]

    unsubscribe()
    draft.update(professionalSummary="Quiet edit")
    assert len(changes) == 1


@pytest.mark.unit
def test_draft_update_unknown_field():
    with pytest.raises(AttributeError):
        ResumeDraft().update(favouriteColor="green")


@pytest.mark.unit
def test_draft_replace_notifies_every_field(ada_content):
    draft = ResumeDraft()
    changes = []
    draft.subscribe(changes.append)

    draft.replace(ada_content)
    assert "work_experience" in changes[0]
    assert draft.snapshot().personal_info.full_name == "Ada Lovelace"


@pytest.mark.unit
def test_render_ready(ada_content):
    draft = ResumeDraft(ada_content)
    assert draft.is_render_ready()
    assert draft.missing_required_fields() == []


@pytest.mark.unit
def test_not_render_ready():
    draft = ResumeDraft()
    assert not draft.is_render_ready()
    assert draft.missing_required_fields() == [
        "first name",
        "last name",
        "email or phone",
        "professional summary",
        "work experience",
    ]

    draft.update(
        personalInfo={"firstName": "Ada", "lastName": "Lovelace", "phone": "555"},
        professionalSummary="x" * 51,
        workExperience=[{"jobTitle": "Analyst", "company": "Engine", "responsibilities": ["Too short"]}],
    )
    assert draft.missing_required_fields() == ["work experience"]
