"""Error taxonomy for the HED language engine.

Load-level failures (schema, document parse) abort a single request and are
reported as one explanatory diagnostic. Component-local failures (a single
embedding call, a single issue position) are logged and degrade.
"""

from __future__ import annotations


class HedLspError(Exception):
    """Base class for all hed-lsp errors."""


class SchemaLoadError(HedLspError):
    """A HED schema (vocabulary) could not be built for a version spec.

    Attributes:
        version: Canonical version string that failed to load
    """

    def __init__(self, version: str, message: str) -> None:
        super().__init__(f"Failed to load HED schema {version}: {message}")
        self.version = version
        self.reason = message


class ValidationInternalError(HedLspError):
    """The external validator raised while checking a HED string."""


class PositionResolutionFailure(HedLspError):
    """The precise bounds of a validation issue could not be determined."""


class ModelLoadError(HedLspError):
    """The embedding model failed to initialize.

    Disables the embedding tier only; keyword lookup keeps working.
    """


class DefinitionResolutionMiss(HedLspError):
    """A Def/Def-expand reference names no definition in the document.

    Attributes:
        name: The referenced definition name
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"No definition named '{name}' found in this document")
        self.name = name
