"""Shared types for HED validation.

Contains dataclasses used across all validator backends and the issue mapper
to avoid circular imports between validator modules.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from hed_lsp.document.types import Range

_LSP_SEVERITY = {"error": 1, "warning": 2, "information": 3}


@dataclass
class ValidationIssue:
    """Represents a single validation issue (error or warning).

    Attributes:
        code: Public HED issue code (e.g., 'TAG_INVALID')
        level: Severity level ('error' or 'warning')
        message: Human-readable error message
        tag: The problematic tag text (if applicable)
        internal_code: Backend-specific code the public code was derived from
        bounds: In-string (start, end) of the problem, relative to the
            validated string
        char_index: Single character index, when the backend reports one
    """

    code: str
    level: Literal["error", "warning"]
    message: str
    tag: str | None = None
    internal_code: str = ""
    bounds: tuple[int, int] | None = None
    char_index: int | None = None


@dataclass(frozen=True)
class ValidationFlags:
    """Options handed to a validator backend.

    Attributes:
        definitions_allowed: Accept ``(Definition/..., ...)`` groups
        placeholders_allowed: Accept ``#`` value placeholders
        full_validation: Run semantic checks, not just syntax
        definitions: Definition group strings declared elsewhere in the
            document, so ``Def/Name`` references resolve
    """

    definitions_allowed: bool = True
    placeholders_allowed: bool = True
    full_validation: bool = True
    definitions: tuple[str, ...] = ()


class HedValidatorBackend(Protocol):
    """External validator: cleaned string + vocabulary -> (syntax issues, semantic issues).

    ``validate`` may be a plain or an ``async`` method. A backend may also
    offer ``check_definitions(definitions, vocabulary)``, returning one issue
    list per definition group, so broken definitions are reported where
    they are written.
    """

    def validate(self, hed_string: str, vocabulary, flags: ValidationFlags): ...


@dataclass
class Diagnostic:
    """A validation issue resolved to a document range."""

    range: Range
    severity: Literal["error", "warning", "information"]
    message: str
    code: str | None = None
    source: str = "hed"

    def to_dict(self) -> dict:
        """LSP ``Diagnostic``-shaped dict."""
        item = {
            "range": self.range.to_dict(),
            "severity": _LSP_SEVERITY[self.severity],
            "message": self.message,
            "source": self.source,
        }
        if self.code:
            item["code"] = self.code
        return item
