"""HED validation with the hedtools Python library.

Runs ``hed.validator.HedValidator`` in-process against the schema held by a
loaded vocabulary and converts hedtools issue dicts into ``ValidationIssue``.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from hed_lsp.validation.validation_types import ValidationFlags, ValidationIssue

if TYPE_CHECKING:
    from hed_lsp.schema.types import Vocabulary

logger = logging.getLogger(__name__)

# Codes hedtools reports while parsing, before any schema lookup
SYNTAX_CODES = frozenset(
    {
        "CHARACTER_INVALID",
        "COMMA_MISSING",
        "PARENTHESES_MISMATCH",
        "TAG_EMPTY",
        "PLACEHOLDER_INVALID",
    }
)

_QUOTED_TAG = re.compile(r"['\"]([^'\"]+)['\"]")


def _tag_span(tag: Any) -> tuple[int, int] | None:
    span = getattr(tag, "span", None)
    if isinstance(span, (tuple, list)) and len(span) == 2 and all(isinstance(v, int) for v in span):
        return span[0], span[1]
    return None


def convert_issue(issue: dict) -> ValidationIssue:
    """Convert a hedtools issue dict into a ``ValidationIssue``.

    Args:
        issue: Dict with at least 'code' and 'message'; may carry 'severity',
            'sub_code', 'source_tag' (a HedTag with ``span``) and 'char_index'

    Returns:
        ValidationIssue with the code left un-normalized
    """
    from hed.errors import ErrorSeverity

    severity = issue.get("severity", ErrorSeverity.ERROR)
    level = "warning" if severity >= ErrorSeverity.WARNING else "error"

    source_tag = issue.get("source_tag") or issue.get("tag")
    tag_text = str(source_tag) if source_tag is not None else None
    message = str(issue.get("message", "Unknown validation error")).strip()
    if tag_text is None:
        quoted = _QUOTED_TAG.search(message)
        tag_text = quoted.group(1) if quoted else None

    char_index = issue.get("char_index")
    return ValidationIssue(
        code=str(issue.get("code") or ""),
        level=level,
        message=message,
        tag=tag_text,
        internal_code=str(issue.get("sub_code") or issue.get("code") or ""),
        bounds=_tag_span(source_tag) if source_tag is not None else None,
        char_index=char_index if isinstance(char_index, int) else None,
    )


class HedPythonValidator:
    """Validates HED strings using the hedtools Python library.

    The vocabulary's raw hedtools schema is used; a vocabulary without one
    (e.g. built from bare entries) cannot be validated here.
    """

    def validate(
        self,
        hed_string: str,
        vocabulary: Vocabulary,
        flags: ValidationFlags | None = None,
    ) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        """Validate a cleaned HED string.

        Args:
            hed_string: HED string with placeholders already removed
            vocabulary: Loaded vocabulary carrying the hedtools schema
            flags: Validation options and document definitions

        Returns:
            Tuple of (syntax_issues, semantic_issues)

        Raises:
            ValueError: If the vocabulary has no hedtools schema attached
        """
        from hed.models.definition_dict import DefinitionDict
        from hed.models.hed_string import HedString
        from hed.validator.hed_validator import HedValidator

        flags = flags or ValidationFlags()
        schema = vocabulary.schema
        if schema is None:
            raise ValueError(f"Vocabulary {vocabulary.version} has no hedtools schema attached")

        def_dict = None
        if flags.definitions:
            def_dict = DefinitionDict(list(flags.definitions), hed_schema=schema)

        validator = HedValidator(schema, def_dicts=def_dict, definitions_allowed=flags.definitions_allowed)
        raw_issues = validator.validate(HedString(hed_string, schema), allow_placeholders=flags.placeholders_allowed)

        syntax: list[ValidationIssue] = []
        semantic: list[ValidationIssue] = []
        for raw in raw_issues or []:
            issue = convert_issue(raw)
            if issue.code in SYNTAX_CODES:
                syntax.append(issue)
            elif flags.full_validation:
                semantic.append(issue)

        logger.debug(f"hedtools reported {len(syntax)} syntax and {len(semantic)} semantic issues")
        return syntax, semantic

    def check_definitions(self, definitions: list[str], vocabulary: Vocabulary) -> list[list[ValidationIssue]]:
        """Issues hedtools raises while compiling each definition group.

        A definition that fails here is left out of the ``DefinitionDict``
        used by ``validate``, so its references cannot resolve.

        Returns:
            One issue list per definition, bounds relative to that group
        """
        from hed.models.definition_dict import DefinitionDict

        schema = vocabulary.schema
        if schema is None:
            raise ValueError(f"Vocabulary {vocabulary.version} has no hedtools schema attached")

        return [
            [convert_issue(raw) for raw in DefinitionDict([definition], hed_schema=schema).issues]
            for definition in definitions
        ]
