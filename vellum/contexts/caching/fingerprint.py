"""
Content Fingerprinting

Deterministic hash of everything that reaches the rendered document: the
canonical content, the template id and the job target. Two inputs with the
same fingerprint produce identical LaTeX source.

Canonicalization (shared with substitution through canonicalize_content):
- strings are stripped and internal whitespace runs collapsed; None == ""
- editor `id` fields are dropped
- order-sensitive sections keep their order; skills, languages,
  certifications and hobbies are sorted by their canonical JSON
- job_target.optimized_at is excluded
"""

import hashlib
import json
from typing import Any, Dict, Optional

from vellum.contexts.caching.artifact_data_structure import JobTargetContext
from vellum.contexts.templating.resume_content import (
    ResumeContent,
    canonical_form,
    canonicalize_content,
    normalize_text,
)

FINGERPRINT_LENGTH = 16


def fingerprint_payload(
    content: ResumeContent, template_id: str, job_target: Optional[JobTargetContext] = None
) -> Dict[str, Any]:
    """
    Canonical, JSON-serializable view of the fingerprint inputs.

    Args:
        content: Content snapshot
        template_id: Resolved template id
        job_target: Optional job targeting metadata

    Returns:
        Dict with "content", "template_id" and "job_target" keys
    """
    job = None
    if job_target is not None:
        job = {name: normalize_text(value) for name, value in job_target.fingerprint_fields().items()}
        if not any(job.values()):
            job = None

    return {
        "content": canonical_form(canonicalize_content(content)),
        "template_id": normalize_text(template_id),
        "job_target": job,
    }


def compute_fingerprint(
    content: ResumeContent, template_id: str, job_target: Optional[JobTargetContext] = None
) -> str:
    """
    Compute the cache fingerprint of a render request.

    Args:
        content: Content snapshot
        template_id: Resolved template id
        job_target: Optional job targeting metadata

    Returns:
        First 16 hex characters of the SHA-256 of the canonical payload

    Examples:
        >>> compute_fingerprint(ResumeContent(), "classic") == compute_fingerprint(ResumeContent(), "classic")
        True
    """
    canonical = json.dumps(
        fingerprint_payload(content, template_id, job_target),
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
