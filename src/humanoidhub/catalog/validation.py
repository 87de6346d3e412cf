"""Model name validation.

Cheap enough to run on every keystroke: no I/O, one precompiled pattern.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

MAX_NAME_LENGTH = 255

_NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")


class NameIssue(str, Enum):
    """Reasons a candidate model name is rejected."""

    EMPTY_NAME = "empty_name"
    TOO_LONG = "too_long"
    INVALID_CHARACTERS = "invalid_characters"


_MESSAGES = {
    NameIssue.EMPTY_NAME: "Model name is required",
    NameIssue.TOO_LONG: f"Model name must be at most {MAX_NAME_LENGTH} characters",
    NameIssue.INVALID_CHARACTERS: (
        "Model name must start with a letter or digit and contain only "
        "letters, digits, hyphens and underscores"
    ),
}


@dataclass(frozen=True)
class ValidationResult:
    issue: Optional[NameIssue] = None

    @property
    def ok(self) -> bool:
        return self.issue is None

    @property
    def message(self) -> Optional[str]:
        return _MESSAGES[self.issue] if self.issue else None


def validate_model_name(candidate: str) -> ValidationResult:
    """Check a bare model name (without the owner qualifier)."""
    if not candidate:
        return ValidationResult(NameIssue.EMPTY_NAME)
    if len(candidate) > MAX_NAME_LENGTH:
        return ValidationResult(NameIssue.TOO_LONG)
    if not _NAME_PATTERN.fullmatch(candidate):
        return ValidationResult(NameIssue.INVALID_CHARACTERS)
    return ValidationResult()
