from __future__ import annotations

from typing import Iterable, List

from surveyflow.core.config import AttachmentPolicy, settings
from surveyflow.models.survey import AttachmentData, ValidationError


def normalise_content_types(content_types: Iterable[str] | None) -> frozenset[str]:
    return frozenset((item or "").strip().lower() for item in content_types or () if (item or "").strip())


def attachment_errors(
    attachment: AttachmentData,
    allowed_content_types: Iterable[str] | None = None,
    *,
    policy: AttachmentPolicy | None = None,
    field: str = "attachment",
) -> List[ValidationError]:
    """Client-side size and MIME gate for an inline attachment.

    An empty ``allowed_content_types`` accepts any type; only the size limit applies.
    """

    policy = policy or settings.attachments
    errors: List[ValidationError] = []

    size = attachment.size_bytes
    if size > policy.max_bytes:
        limit_mb = policy.max_bytes / (1024 * 1024)
        errors.append(
            ValidationError(
                field=field,
                message=f"File must be {limit_mb:g} MB or smaller (got {size / (1024 * 1024):.2f} MB)",
            )
        )

    allowed = normalise_content_types(allowed_content_types)
    if allowed and attachment.content_type not in allowed:
        errors.append(
            ValidationError(
                field=field,
                message=f"File type {attachment.content_type} is not allowed. Allowed: {', '.join(sorted(allowed))}",
            )
        )
    return errors


__all__ = ["attachment_errors", "normalise_content_types"]
