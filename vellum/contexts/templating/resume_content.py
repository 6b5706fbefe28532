"""
Resume Content Data Structures

Defines the semantic resume aggregate (personal info, summary, experience,
education, skills, ...) consumed by the Templating and Caching contexts, plus
ResumeDraft, the editable owner of that aggregate.

Hashing and rendering never read a draft directly: they operate on
ResumeContent.snapshot(), a detached deep copy taken at request time.
"""

import copy
import json
import re
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from omegaconf import OmegaConf

# Keys used by editors that differ from the field names below
FIELD_ALIASES = {
    "company_name": "company",
    "is_current": "is_current_job",
    "linkedin": "linkedin_url",
    "github": "github_url",
    "portfolio": "portfolio_url",
    "website": "website_url",
    "summary": "professional_summary",
    "experience": "work_experience",
    "volunteer": "volunteer_experience",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def to_snake_case(key: str) -> str:
    """Convert a camelCase key (e.g., 'professionalSummary') to snake_case."""
    snake = _CAMEL_BOUNDARY.sub(r"_\1", key).lower()
    return FIELD_ALIASES.get(snake, snake)


@dataclass
class PersonalInfo:
    """Contact header of the resume."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    linkedin_url: str = ""
    portfolio_url: str = ""
    github_url: str = ""
    website_url: str = ""
    professional_title: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class WorkExperience:
    """
    One position in the work history.

    Attributes:
        responsibilities: Ordered bullet points describing duties
        achievements: Ordered bullet points describing results
        id: Editor bookkeeping identifier (never rendered or hashed)
    """

    job_title: str = ""
    company: str = ""
    location: str = ""
    start_date: str = ""
    end_date: str = ""
    is_current_job: bool = False
    responsibilities: List[str] = field(default_factory=list)
    achievements: List[str] = field(default_factory=list)
    id: Optional[str] = None

    @property
    def description(self) -> str:
        """All bullet text joined, used by the render-ready predicate."""
        return " ".join(self.responsibilities + self.achievements)


@dataclass
class Education:
    institution: str = ""
    degree: str = ""
    field_of_study: str = ""
    graduation_date: str = ""
    start_date: str = ""
    end_date: str = ""
    location: str = ""
    gpa: str = ""
    coursework: List[str] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class Skill:
    """
    A single skill.

    Attributes:
        category: Grouping label (e.g., "technical", "soft", "language")
        proficiency_level: Optional level (beginner, intermediate, advanced, expert)
    """

    name: str = ""
    category: str = ""
    proficiency_level: str = ""
    id: Optional[str] = None


@dataclass
class Project:
    name: str = ""
    description: List[str] = field(default_factory=list)
    technologies: List[str] = field(default_factory=list)
    url: str = ""
    start_date: str = ""
    end_date: str = ""
    id: Optional[str] = None


@dataclass
class Certification:
    name: str = ""
    issuer: str = ""
    date: str = ""
    expiration_date: str = ""
    credential_id: str = ""
    url: str = ""
    id: Optional[str] = None


@dataclass
class Language:
    name: str = ""
    proficiency: str = ""
    id: Optional[str] = None


@dataclass
class VolunteerExperience:
    organization: str = ""
    role: str = ""
    location: str = ""
    start_date: str = ""
    end_date: str = ""
    is_current_role: bool = False
    description: str = ""
    achievements: List[str] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class Award:
    title: str = ""
    issuer: str = ""
    date: str = ""
    description: str = ""
    id: Optional[str] = None


@dataclass
class Publication:
    title: str = ""
    publisher: str = ""
    publication_date: str = ""
    url: str = ""
    description: str = ""
    id: Optional[str] = None


@dataclass
class Reference:
    name: str = ""
    title: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    relationship: str = ""
    id: Optional[str] = None


@dataclass
class Hobby:
    name: str = ""
    description: str = ""
    category: str = ""
    id: Optional[str] = None


@dataclass
class AdditionalSection:
    title: str = ""
    content: str = ""
    id: Optional[str] = None


# Entry type for every list-valued field of ResumeContent
ENTRY_TYPES = {
    "work_experience": WorkExperience,
    "education": Education,
    "skills": Skill,
    "projects": Project,
    "certifications": Certification,
    "languages": Language,
    "volunteer_experience": VolunteerExperience,
    "awards": Award,
    "publications": Publication,
    "references": Reference,
    "hobbies": Hobby,
    "additional_sections": AdditionalSection,
}


def _build_entry(entry_cls, data: Any):
    """
    Build a dataclass entry from a mapping, normalizing keys and value types.

    Unknown keys are ignored. List-of-string fields accept a single string.
    """
    if isinstance(data, entry_cls):
        return data
    if not isinstance(data, dict):
        raise TypeError(f"{entry_cls.__name__} entry must be a mapping, got: {type(data).__name__}")

    normalized = {to_snake_case(str(k)): v for k, v in data.items()}
    kwargs = {}
    for entry_field in fields(entry_cls):
        if entry_field.name not in normalized:
            continue
        value = normalized[entry_field.name]

        if entry_field.default_factory is list:
            if value is None:
                value = []
            elif isinstance(value, str):
                value = [value]
            else:
                value = [str(item) for item in value if item is not None]
        elif isinstance(entry_field.default, bool):
            if isinstance(value, str):
                value = value.strip().lower() in ("true", "yes", "1")
            else:
                value = bool(value)
        elif entry_field.name == "id":
            value = None if value is None else str(value)
        else:
            value = "" if value is None else str(value)

        kwargs[entry_field.name] = value

    return entry_cls(**kwargs)


@dataclass
class ResumeContent:
    """
    Semantic resume aggregate.

    Owned by the editing session and mutated by form collaborators. Use
    snapshot() to obtain the immutable-by-convention copy used for hashing
    and rendering.
    """

    personal_info: PersonalInfo = field(default_factory=PersonalInfo)
    professional_summary: str = ""
    work_experience: List[WorkExperience] = field(default_factory=list)
    education: List[Education] = field(default_factory=list)
    skills: List[Skill] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    certifications: List[Certification] = field(default_factory=list)
    languages: List[Language] = field(default_factory=list)
    volunteer_experience: List[VolunteerExperience] = field(default_factory=list)
    awards: List[Award] = field(default_factory=list)
    publications: List[Publication] = field(default_factory=list)
    references: List[Reference] = field(default_factory=list)
    hobbies: List[Hobby] = field(default_factory=list)
    additional_sections: List[AdditionalSection] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResumeContent":
        """
        Build content from a mapping with camelCase or snake_case keys.

        Args:
            data: Resume mapping (e.g., parsed from YAML/JSON or an editor payload)

        Returns:
            ResumeContent instance

        Raises:
            TypeError: If a section has the wrong shape
        """
        normalized = {to_snake_case(str(k)): v for k, v in (data or {}).items()}
        kwargs: Dict[str, Any] = {}

        if normalized.get("personal_info") is not None:
            kwargs["personal_info"] = _build_entry(PersonalInfo, normalized["personal_info"])

        if normalized.get("professional_summary") is not None:
            kwargs["professional_summary"] = str(normalized["professional_summary"])

        for name, entry_cls in ENTRY_TYPES.items():
            entries = normalized.get(name)
            if entries is None:
                continue
            if isinstance(entries, (str, bytes, dict)):
                raise TypeError(f"Section '{name}' must be a list of entries")
            kwargs[name] = [_build_entry(entry_cls, entry) for entry in entries]

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain nested dict with snake_case keys."""
        return asdict(self)

    def snapshot(self) -> "ResumeContent":
        """Detached deep copy; later edits to self do not affect it."""
        return copy.deepcopy(self)


def load_resume_content(path: Path) -> ResumeContent:
    """
    Load resume content from a YAML or JSON file.

    Args:
        path: File path

    Returns:
        ResumeContent instance

    Raises:
        FileNotFoundError: If path does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Resume content not found: {path}")

    data = OmegaConf.to_container(OmegaConf.load(path), resolve=True)
    return ResumeContent.from_dict(data)


ContentListener = Callable[[List[str]], None]


class ResumeDraft:
    """
    Editable resume content with change notifications.

    Plays the content-collaborator role for a Session: form editors mutate the
    draft through update(), listeners learn which fields changed, and the
    session takes snapshots when a render is requested.

    Example:
        >>> draft = ResumeDraft()
        >>> draft.update(personal_info={"firstName": "Ada", "lastName": "Lovelace"})
        >>> draft.snapshot().personal_info.full_name
        'Ada Lovelace'
    """

    MIN_SUMMARY_CHARS = 50
    MIN_EXPERIENCE_DESCRIPTION_CHARS = 20

    def __init__(self, content: Optional[ResumeContent] = None):
        self._content = content if content is not None else ResumeContent()
        self._listeners: List[ContentListener] = []

    def snapshot(self) -> ResumeContent:
        """Detached copy of the current content."""
        return self._content.snapshot()

    def update(self, **changes: Any) -> None:
        """
        Replace top-level fields and notify listeners.

        Values may be dataclass instances or plain mappings/lists as accepted
        by ResumeContent.from_dict().

        Raises:
            AttributeError: If a field name is not part of ResumeContent
        """
        valid_names = {f.name for f in fields(ResumeContent)}
        changed = []
        for raw_name, value in changes.items():
            name = to_snake_case(raw_name)
            if name not in valid_names:
                raise AttributeError(f"ResumeContent has no field '{raw_name}'")

            if name == "personal_info":
                value = _build_entry(PersonalInfo, value)
            elif name == "professional_summary":
                value = "" if value is None else str(value)
            else:
                value = [_build_entry(ENTRY_TYPES[name], entry) for entry in (value or [])]

            setattr(self._content, name, value)
            changed.append(name)

        if changed:
            self._notify(changed)

    def replace(self, content: ResumeContent) -> None:
        """Replace the whole content and notify listeners of every field."""
        self._content = content.snapshot()
        self._notify([f.name for f in fields(ResumeContent)])

    def subscribe(self, listener: ContentListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changed: List[str]) -> None:
        for listener in list(self._listeners):
            listener(changed)

    def missing_required_fields(self) -> List[str]:
        """Names of mandatory fields that are empty or too short."""
        content = self._content
        info = content.personal_info
        missing = []

        if not info.first_name.strip():
            missing.append("first name")
        if not info.last_name.strip():
            missing.append("last name")
        if not (info.email.strip() or info.phone.strip()):
            missing.append("email or phone")
        if len(content.professional_summary.strip()) <= self.MIN_SUMMARY_CHARS:
            missing.append("professional summary")

        has_experience = any(
            exp.job_title.strip()
            and exp.company.strip()
            and len(exp.description.strip()) > self.MIN_EXPERIENCE_DESCRIPTION_CHARS
            for exp in content.work_experience
        )
        if not has_experience:
            missing.append("work experience")

        return missing

    def is_render_ready(self) -> bool:
        """True when every mandatory field is filled."""
        return not self.missing_required_fields()


# Sections whose entry order is meaningful and preserved when rendering/hashing
ORDER_SENSITIVE_SECTIONS = (
    "work_experience",
    "education",
    "projects",
    "volunteer_experience",
    "awards",
    "publications",
    "references",
    "additional_sections",
)

# Sections rendered in canonical order regardless of editing order
ORDER_INSENSITIVE_SECTIONS = ("skills", "languages", "certifications", "hobbies")


def normalize_text(text: Optional[str]) -> str:
    """Strip and collapse internal whitespace runs to single spaces (None -> "")."""
    if text is None:
        return ""
    return " ".join(str(text).split())


def canonical_form(value: Any) -> Any:
    """
    Reduce a content value to its render-relevant canonical form.

    Strings are whitespace-normalized, `id` fields are dropped, dataclasses
    become dicts, and lists keep their order (callers sort order-insensitive
    sections explicitly).
    """
    if is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: canonical_form(getattr(value, f.name)) for f in fields(value) if f.name != "id"
        }
    if value is None:
        return ""
    if isinstance(value, list):
        return [canonical_form(item) for item in value]
    if isinstance(value, str):
        return normalize_text(value)
    return value


def canonical_sort_key(entry: Any) -> str:
    """Stable sort key for an entry of an order-insensitive section."""
    return json.dumps(canonical_form(entry), sort_keys=True, ensure_ascii=False)


def _normalize_strings(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        changes = {
            f.name: _normalize_strings(getattr(value, f.name)) for f in fields(value) if f.name != "id"
        }
        return replace(value, **changes)
    if value is None:
        return ""
    if isinstance(value, list):
        return [_normalize_strings(item) for item in value]
    if isinstance(value, str):
        return normalize_text(value)
    return value


def canonicalize_content(content: ResumeContent) -> ResumeContent:
    """
    Copy of content in the canonical form used for both hashing and rendering.

    Strings are whitespace-normalized and order-insensitive sections are
    sorted. Skills end up grouped by category (category sorts first in the
    key), then by name.
    """
    ordered = _normalize_strings(content.snapshot())
    for name in ORDER_INSENSITIVE_SECTIONS:
        setattr(ordered, name, sorted(getattr(ordered, name), key=canonical_sort_key))
    return ordered
