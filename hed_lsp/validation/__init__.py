"""HED validation integration.

This module turns validator output into document diagnostics:

- IssueMapper: validates HED regions and maps issues to document ranges
- HedPythonValidator: validates HED strings using the hedtools Python library
- HedToolsAPIValidator: validates HED strings using the hedtools.org REST API
- get_validator: Factory returning the configured backend

Note: hedtools is imported lazily, only when a string is actually validated.
"""

from typing import TYPE_CHECKING

from hed_lsp.validation.issue_mapper import IssueMapper, normalize_issue_code, resolve_issue_bounds
from hed_lsp.validation.validation_types import (
    Diagnostic,
    ValidationFlags,
    ValidationIssue,
)

if TYPE_CHECKING:
    from hed_lsp.validation.hed_validator import HedPythonValidator
    from hed_lsp.validation.hedtools_validator import HedToolsAPIValidator

__all__ = [
    "Diagnostic",
    "HedPythonValidator",
    "HedToolsAPIValidator",
    "IssueMapper",
    "ValidationFlags",
    "ValidationIssue",
    "get_validator",
    "normalize_issue_code",
    "resolve_issue_bounds",
]


def get_validator(backend: str = "local", **kwargs):
    """Create a validator backend.

    Args:
        backend: "local" (hedtools in-process) or "remote" (hedtools.org)
        **kwargs: Passed to the backend constructor

    Raises:
        ValueError: On an unknown backend name
    """
    if backend == "local":
        from hed_lsp.validation.hed_validator import HedPythonValidator

        return HedPythonValidator(**kwargs)
    if backend == "remote":
        from hed_lsp.validation.hedtools_validator import HedToolsAPIValidator

        return HedToolsAPIValidator(**kwargs)
    raise ValueError(f"Unknown validator backend: {backend!r}")


def __getattr__(name: str) -> object:
    """Lazy import for validator backends."""
    if name == "HedPythonValidator":
        from hed_lsp.validation import hed_validator

        return hed_validator.HedPythonValidator
    if name == "HedToolsAPIValidator":
        from hed_lsp.validation import hedtools_validator

        return hedtools_validator.HedToolsAPIValidator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
