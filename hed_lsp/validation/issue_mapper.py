"""Maps validator issues back onto document ranges.

For each HED region: remove placeholders, run the validator backend on the
cleaned string, normalize issue codes, resolve each issue to precise bounds in
the original string and translate them into document positions.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

from hed_lsp.document.regions import extract_regions
from hed_lsp.document.types import Position, Range
from hed_lsp.errors import PositionResolutionFailure, SchemaLoadError, ValidationInternalError
from hed_lsp.utils.hed_strings import (
    PlaceholderStrip,
    find_definition_locations,
    find_tag_bounds,
    iter_def_references,
    remove_placeholders,
)
from hed_lsp.validation.validation_types import Diagnostic, ValidationFlags, ValidationIssue

if TYPE_CHECKING:
    from hed_lsp.document.types import DefinitionLocation, HedRegion, TextDocument
    from hed_lsp.schema.manager import SchemaManager
    from hed_lsp.schema.types import Vocabulary
    from hed_lsp.validation.validation_types import HedValidatorBackend

logger = logging.getLogger(__name__)

GENERIC_CODES = frozenset({"", "UNKNOWN", "VALIDATION_ERROR", "GENERIC_ERROR"})

# Internal (backend-specific) codes -> public HED codes
INTERNAL_CODE_MAP: dict[str, str] = {
    # hed-javascript style
    "invalidTag": "TAG_INVALID",
    "extraDelimiter": "TAG_EMPTY",
    "extraCommaOrInvalid": "TAG_INVALID",
    "commaMissing": "COMMA_MISSING",
    "parentheses": "PARENTHESES_MISMATCH",
    "unopenedParenthesis": "PARENTHESES_MISMATCH",
    "unclosedParenthesis": "PARENTHESES_MISMATCH",
    "invalidCharacter": "CHARACTER_INVALID",
    "duplicateTag": "TAG_EXPRESSION_REPEATED",
    "extension": "TAG_EXTENDED",
    "childRequired": "TAG_REQUIRES_CHILD",
    "unitClassInvalidUnit": "UNITS_INVALID",
    "invalidValue": "VALUE_INVALID",
    "missingDefinition": "DEF_INVALID",
    "multipleUniqueTags": "TAG_NOT_UNIQUE",
    "invalidPlaceholder": "PLACEHOLDER_INVALID",
    "invalidTopLevelTagGroupTag": "TAG_GROUP_ERROR",
    # hedtools sub-codes
    "NODE_NAME_EMPTY": "TAG_INVALID",
    "HED_GROUP_EMPTY": "TAG_GROUP_ERROR",
    "HED_TAG_REPEATED": "TAG_EXPRESSION_REPEATED",
    "HED_UNITS_INVALID": "UNITS_INVALID",
    "HED_DEF_UNMATCHED": "DEF_INVALID",
    "HED_DEF_VALUE_MISSING": "DEF_INVALID",
    "HED_DEF_VALUE_EXTRA": "DEF_INVALID",
    "HED_DEF_EXPAND_UNMATCHED": "DEF_EXPAND_INVALID",
    "INVALID_TAG_CHARACTER": "CHARACTER_INVALID",
}

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"
SCHEMA_LOAD_CODE = "SCHEMA_LOAD_FAILED"
DEF_VALUE_MISSING = "DEF_VALUE_MISSING"
DEF_VALUE_EXTRA = "DEF_VALUE_EXTRA"


def normalize_issue_code(issue: ValidationIssue) -> str:
    """Public code for an issue.

    A missing or generic code is replaced through the internal-code table,
    falling back to the internal code itself.
    """
    if issue.code not in GENERIC_CODES:
        return issue.code
    return INTERNAL_CODE_MAP.get(issue.internal_code, issue.internal_code or issue.code or "UNKNOWN")


def resolve_issue_bounds(issue: ValidationIssue, strip: PlaceholderStrip, original: str) -> tuple[int, int]:
    """In-string bounds of an issue in the original (uncleaned) string.

    Priority: explicit bounds, single character index, named-tag lookup.

    Raises:
        PositionResolutionFailure: If none of them yields a position
    """
    if issue.bounds is not None:
        start, end = issue.bounds
        return strip.original_bounds(start, max(start, end))
    if issue.char_index is not None:
        index = strip.to_original(issue.char_index)
        return index, min(index + 1, len(original))
    if issue.tag:
        found = find_tag_bounds(original, issue.tag)
        if found is not None:
            return found
    raise PositionResolutionFailure(f"No position for {issue.code}: {issue.message}")


class IssueMapper:
    """Validates HED regions and maps issues to document diagnostics.

    Example:
        >>> mapper = IssueMapper(SchemaManager(), HedPythonValidator())
        >>> diagnostics = await mapper.validate_document(document)
    """

    def __init__(self, schema_manager: SchemaManager, validator: HedValidatorBackend | None = None) -> None:
        """Initialize the mapper.

        Args:
            schema_manager: Vocabulary source
            validator: Validator backend (defaults to the in-process hedtools validator)
        """
        if validator is None:
            from hed_lsp.validation.hed_validator import HedPythonValidator

            validator = HedPythonValidator()
        self.schema_manager = schema_manager
        self.validator = validator

    async def _run_validator(
        self, hed_string: str, vocabulary: Vocabulary, flags: ValidationFlags
    ) -> list[ValidationIssue]:
        try:
            result = self.validator.validate(hed_string, vocabulary, flags)
            if inspect.isawaitable(result):
                result = await result
            syntax_issues, semantic_issues = result
        except Exception as e:
            raise ValidationInternalError(str(e)) from e
        return [*syntax_issues, *semantic_issues]

    async def validate_region(
        self,
        region: HedRegion,
        vocabulary: Vocabulary,
        document: TextDocument,
        definitions: list[DefinitionLocation] | None = None,
    ) -> list[Diagnostic]:
        """Validate one region.

        Args:
            region: Region to validate
            vocabulary: Loaded vocabulary
            document: Text snapshot the region came from
            definitions: Definitions declared anywhere in the document

        Returns:
            Diagnostics for this region (empty for placeholder-only strings)
        """
        content = region.content
        if not content.strip():
            return []
        strip = remove_placeholders(content)
        if strip.is_empty:
            return []

        definitions = definitions or []
        flags = ValidationFlags(definitions=tuple(d.content for d in definitions))

        try:
            issues = await self._run_validator(strip.text, vocabulary, flags)
        except ValidationInternalError as e:
            logger.error(f"Validator failed on {region.path}: {e}")
            return [
                Diagnostic(
                    range=region.range,
                    severity="error",
                    message=f"Validation error: {e}",
                    code=INTERNAL_ERROR_CODE,
                )
            ]

        diagnostics = []
        reported_starts: set[int] = set()
        for issue in issues:
            code = normalize_issue_code(issue)
            try:
                start, end = resolve_issue_bounds(issue, strip, content)
                issue_range = region.content_range(document, start, end)
                if code.startswith("DEF"):
                    reported_starts.add(start)
            except PositionResolutionFailure as e:
                logger.debug(f"{e}; highlighting the whole region")
                issue_range = region.range
            diagnostics.append(Diagnostic(range=issue_range, severity=issue.level, message=issue.message, code=code))

        diagnostics.extend(self._check_def_references(region, document, definitions, reported_starts))
        return diagnostics

    def _check_def_references(
        self,
        region: HedRegion,
        document: TextDocument,
        definitions: list[DefinitionLocation],
        skip_starts: set[int],
    ) -> list[Diagnostic]:
        """Warn on Def references whose value does not fit the definition."""
        by_name = {d.name.lower(): d for d in definitions}
        diagnostics = []
        for reference in iter_def_references(region.content):
            definition = by_name.get(reference.name.lower())
            if definition is None or reference.start in skip_starts:
                continue
            written = f"{reference.marker}/{reference.name}"
            if definition.has_placeholder and not reference.has_value:
                message = f"Definition '{definition.name}' requires a value: use {written}/value"
                code = DEF_VALUE_MISSING
            elif not definition.has_placeholder and reference.has_value:
                message = f"Definition '{definition.name}' does not take a value: use {written}"
                code = DEF_VALUE_EXTRA
            else:
                continue
            diagnostics.append(
                Diagnostic(
                    range=region.content_range(document, reference.start, reference.end),
                    severity="warning",
                    message=message,
                    code=code,
                )
            )
        return diagnostics

    async def check_definitions(
        self,
        vocabulary: Vocabulary,
        document: TextDocument,
        definitions: list[DefinitionLocation],
    ) -> list[tuple[DefinitionLocation, Diagnostic]]:
        """Diagnostics for definition groups the backend cannot compile.

        Backends without ``check_definitions`` report nothing here. Issues
        without a position cover the whole definition group.
        """
        check = getattr(self.validator, "check_definitions", None)
        if check is None or not definitions:
            return []

        strips = [remove_placeholders(location.content) for location in definitions]
        try:
            results = check([strip.text for strip in strips], vocabulary)
            if inspect.isawaitable(results):
                results = await results
        except Exception as e:
            logger.error(f"Definition check failed on {document.uri}: {e}")
            return [
                (
                    location,
                    Diagnostic(
                        range=location.region.content_range(document, location.start, location.end),
                        severity="error",
                        message=f"Validation error: {e}",
                        code=INTERNAL_ERROR_CODE,
                    ),
                )
                for location in definitions
            ]

        found = []
        for location, strip, issues in zip(definitions, strips, results):
            for issue in issues:
                try:
                    start, end = resolve_issue_bounds(issue, strip, location.content)
                except PositionResolutionFailure:
                    start, end = 0, len(location.content)
                issue_range = location.region.content_range(document, location.start + start, location.start + end)
                diagnostic = Diagnostic(
                    range=issue_range, severity=issue.level, message=issue.message, code=normalize_issue_code(issue)
                )
                found.append((location, diagnostic))
        return found

    async def validate_document(
        self,
        document: TextDocument,
        regions: list[HedRegion] | None = None,
        version: str | None = None,
    ) -> list[Diagnostic]:
        """Validate every HED region in a document.

        A schema load failure produces a single document-level diagnostic at
        the start of the document.

        Args:
            document: Text snapshot
            regions: Pre-extracted regions (extracted from the snapshot if None)
            version: Schema version (defaults to the manager's current version)

        Returns:
            Diagnostics in region order
        """
        if regions is None:
            regions = extract_regions(document)
        if not regions:
            return []

        try:
            vocabulary = await self.schema_manager.load(version)
        except SchemaLoadError as e:
            origin = Position(0, 0)
            return [Diagnostic(range=Range(origin, origin), severity="error", message=str(e), code=SCHEMA_LOAD_CODE)]

        definitions = find_definition_locations(regions)
        definition_diagnostics = await self.check_definitions(vocabulary, document, definitions)
        diagnostics: list[Diagnostic] = []
        for region in regions:
            region_diagnostics = await self.validate_region(region, vocabulary, document, definitions)
            reported = {(d.range, d.code) for d in region_diagnostics}
            region_diagnostics.extend(
                diagnostic
                for location, diagnostic in definition_diagnostics
                if location.region is region and (diagnostic.range, diagnostic.code) not in reported
            )
            diagnostics.extend(region_diagnostics)

        logger.debug(f"{document.uri}: {len(diagnostics)} diagnostics in {len(regions)} regions")
        return diagnostics
