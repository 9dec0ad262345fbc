"""Schema-aware completion for HED strings.

Classifies the cursor position inside a HED string into a completion context
and assembles ranked candidates from the vocabulary, the document's own
definitions and semantic search.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from hed_lsp.document.regions import extract_regions, region_at, tag_at_offset
from hed_lsp.errors import SchemaLoadError
from hed_lsp.schema.manager import child_tags, find_extensible_parents, search_containing, top_level_tags
from hed_lsp.utils.hed_strings import extract_definitions, is_inside_placeholder

if TYPE_CHECKING:
    from hed_lsp.document.types import DefinitionInfo, HedRegion, Position, TextDocument
    from hed_lsp.schema.manager import SchemaManager
    from hed_lsp.schema.types import TagEntry, Vocabulary
    from hed_lsp.utils.semantic_search import SemanticSearchManager, TagMatch

logger = logging.getLogger(__name__)

TIER_DEFINITION = 1
TIER_DIRECT = 2
TIER_EXTENSION = 3
TIER_SEMANTIC = 4
TIER_HINT = 9

SIMILARITY_THRESHOLD = 0.3
SEMANTIC_TOP_K = 5
# Below this many direct matches, extension suggestions are added
EXTENSION_TRIGGER = 5

DEFINITION_MARKERS = ("def", "def-expand")
_PARENT_BEFORE_SLASH = re.compile(r"([A-Za-z0-9_:-]+)\s*/\s*$")

# LSP CompletionItemKind values
_LSP_KINDS = {"tag": 12, "reference": 18, "extension": 15, "semantic": 18, "hint": 1}

CompletionKind = Literal["tag", "reference", "extension", "semantic", "hint"]


@dataclass(frozen=True)
class CompletionContext:
    """What kind of suggestion the cursor position calls for.

    Attributes:
        type: "top-level", "child" or "partial"
        parent_tag: Parent for child completions (may be a path)
        prefix: Text typed so far, used to filter
        after_separator: Cursor follows a separator (",", "(" or "/")
        needs_leading_space: Character right before the cursor is a comma
    """

    type: Literal["top-level", "child", "partial"]
    parent_tag: str | None = None
    prefix: str | None = None
    after_separator: bool = False
    needs_leading_space: bool = False

    @property
    def is_definition_reference(self) -> bool:
        """Completing the name after ``Def/`` or ``Def-expand/``."""
        if self.type != "child" or not self.parent_tag:
            return False
        return self.parent_tag.rstrip("/").split("/")[-1].strip().lower() in DEFINITION_MARKERS


@dataclass
class CompletionCandidate:
    """A ranked completion suggestion."""

    label: str
    kind: CompletionKind
    insert_text: str
    tier: int
    sort_text: str
    detail: str = ""
    documentation: str = ""
    is_snippet: bool = False
    score: float = 0.0
    filter_text: str | None = None
    tag: TagEntry | None = field(default=None, repr=False)

    def to_dict(self) -> dict:
        """LSP ``CompletionItem``-shaped dict."""
        item = {
            "label": self.label,
            "kind": _LSP_KINDS[self.kind],
            "detail": self.detail,
            "documentation": {"kind": "markdown", "value": self.documentation},
            "insertText": self.insert_text,
            "insertTextFormat": 2 if self.is_snippet else 1,
            "sortText": self.sort_text,
        }
        if self.filter_text is not None:
            item["filterText"] = self.filter_text
        return item


def analyze_completion_context(content: str, offset: int) -> CompletionContext:
    """Classify the cursor position inside a HED string.

    1. "/" right before the cursor -> child of the token before the slash
    2. "," or "(" right before the cursor -> top-level
    3. Token being typed with a "/" -> child, prefix after the last slash
    4. Token being typed without "/" -> partial
    5. Nothing typed -> top-level
    """
    offset = max(0, min(offset, len(content)))
    before = content[:offset]
    trimmed = before.rstrip()
    last_char = trimmed[-1] if trimmed else ""
    needs_space = before.endswith(",")

    if last_char == "/":
        match = _PARENT_BEFORE_SLASH.search(before)
        if match:
            return CompletionContext(type="child", parent_tag=match.group(1), after_separator=True)

    if last_char in (",", "("):
        return CompletionContext(type="top-level", after_separator=True, needs_leading_space=needs_space)

    token = tag_at_offset(content, offset)
    if token is not None:
        slash = token.text.rfind("/")
        if slash > 0:
            return CompletionContext(
                type="child",
                parent_tag=token.text[:slash],
                prefix=token.text[slash + 1 :],
            )
        return CompletionContext(type="partial", prefix=token.text)

    return CompletionContext(type="top-level")


def _matches_prefix(name: str, prefix: str | None) -> bool:
    return not prefix or name.lower().startswith(prefix.lower())


def format_tag_documentation(tag: TagEntry) -> str:
    """Markdown documentation for a vocabulary tag."""
    lines = []
    if tag.description:
        lines.append(tag.description)
    lines.append("")
    lines.append(f"**Path:** {tag.long_form}")
    if tag.prefix:
        lines.append(f"**Library:** `{tag.prefix}`")
    if tag.attributes.takes_value:
        lines.append("**Takes value:** Yes")
        if tag.attributes.unit_class:
            lines.append(f"**Units:** {', '.join(tag.attributes.unit_class)}")
    if tag.attributes.extension_allowed:
        lines.append("**Extension allowed:** Yes")
    if tag.attributes.suggested_tag:
        lines.append(f"**Suggested tags:** {', '.join(tag.attributes.suggested_tag)}")
    if tag.attributes.related_tag:
        lines.append(f"**Related tags:** {', '.join(tag.attributes.related_tag)}")
    return "\n".join(lines)


def tag_candidate(tag: TagEntry, leading_space: bool = False, tier: int = TIER_DIRECT, rank: int | None = None) -> CompletionCandidate:
    label = tag.prefixed_name
    order = f"{rank:05d}-" if rank is not None else ""
    return CompletionCandidate(
        label=label,
        kind="tag",
        insert_text=f" {label}" if leading_space else label,
        tier=tier,
        sort_text=f"{tier}-{order}{label.lower()}",
        detail=tag.long_form,
        documentation=format_tag_documentation(tag),
        tag=tag,
    )


def definition_candidate(definition: DefinitionInfo, marker: str) -> CompletionCandidate:
    """Candidate for a definition name after ``Def/`` or ``Def-expand/``.

    Placeholder definitions are inserted as a snippet with a value slot.
    """
    name = definition.name
    lines = [f"**Reference to `Definition/{name}{'/#' if definition.has_placeholder else ''}`**", ""]
    if definition.has_placeholder:
        lines.append(f"This definition requires a value: `{marker}/{name}/value`")
        lines.append("")
        lines.append("The value replaces the `#` placeholder in the definition content.")
    else:
        lines.append(f"Use `{marker}/{name}` to reference this definition.")
    if marker == "Def":
        lines.append("")
        lines.append("**Tip:** Use with `Onset`/`Offset` tags for temporal scope.")

    return CompletionCandidate(
        label=f"{name}/…" if definition.has_placeholder else name,
        kind="reference",
        insert_text=f"{name}/${{1:value}}" if definition.has_placeholder else name,
        is_snippet=definition.has_placeholder,
        tier=TIER_DEFINITION,
        sort_text=f"{TIER_DEFINITION}-{name.lower()}",
        detail=f"{marker}/{name}/value (requires value)" if definition.has_placeholder else f"{marker}/{name}",
        documentation="\n".join(lines),
    )


def extension_candidate(parent: TagEntry, term: str, rank: int) -> CompletionCandidate:
    """Suggest ``Parent/Term`` for an extension-allowed parent."""
    extension = term[:1].upper() + term[1:].lower()
    label = f"{parent.short_form}/{extension}"
    lines = [
        f'**"{term}" is not in the HED schema**',
        "",
        f"Consider extending `{parent.short_form}` to create `{parent.short_form}/{term}`",
        "",
    ]
    if parent.description:
        lines += [f"**{parent.short_form}:** {parent.description}", ""]
    lines += [f"**Path:** {parent.long_form}", "", "**Note:** Extensions should keep the is-a relationship with the parent tag."]
    return CompletionCandidate(
        label=label,
        kind="extension",
        insert_text=label,
        tier=TIER_EXTENSION,
        sort_text=f"{TIER_EXTENSION}-{rank:05d}-{parent.short_form.lower()}",
        detail=f'Extend {parent.short_form} with "{extension}"',
        documentation="\n".join(lines),
        filter_text=term,
        tag=parent,
    )


def semantic_candidate(match: TagMatch, term: str) -> CompletionCandidate:
    percent = round(match.score * 100)
    label = match.prefixed_tag
    return CompletionCandidate(
        label=label,
        kind="semantic",
        insert_text=label,
        tier=TIER_SEMANTIC,
        sort_text=f"{TIER_SEMANTIC}-{100 - percent:03d}-{label.lower()}",
        detail=f'{percent}% similar to "{term}"',
        documentation="\n".join(
            [
                f"**Semantic match: `{label}`**",
                "",
                f'The term "{term}" is similar to this HED tag ({percent}% match, {match.source}).',
                "",
                f"**Path:** {match.long_form}",
            ]
        ),
        score=match.score,
        filter_text=term,
    )


def no_match_hint(term: str) -> CompletionCandidate:
    return CompletionCandidate(
        label=f'"{term}" - not found',
        kind="hint",
        insert_text="",
        tier=TIER_HINT,
        sort_text=f"{TIER_HINT}-not-found",
        detail="No matching HED tags found",
        documentation="\n".join(
            [
                f'**"{term}" is not in the HED schema**',
                "",
                "Suggestions:",
                "- Check for typos in the tag name",
                "- Browse the HED schema for similar tags",
                "- If needed, extend an existing tag using Parent/Extension syntax",
            ]
        ),
    )


class CompletionEngine:
    """Assembles completion candidates for a cursor position.

    Example:
        >>> engine = CompletionEngine(SchemaManager(), SemanticSearchManager())
        >>> items = await engine.provide_completions(document, Position(3, 20))
    """

    def __init__(
        self,
        schema_manager: SchemaManager,
        semantic_search: SemanticSearchManager | None = None,
    ) -> None:
        self.schema_manager = schema_manager
        self.semantic_search = semantic_search

    async def provide_completions(
        self,
        document: TextDocument,
        position: Position,
        version: str | None = None,
    ) -> list[CompletionCandidate]:
        """Completion candidates at ``position``, ranked by tier.

        Args:
            document: Text snapshot
            position: Cursor position
            version: Schema version for this document (defaults to the
                manager's current version)

        Returns:
            Candidates sorted by tier, then by their tier-internal order
        """
        regions = extract_regions(document)
        region = region_at(regions, position)
        if region is None:
            logger.debug("No HED region at cursor")
            return []

        offset = region.to_content_offset(document.offset_at(position))
        if is_inside_placeholder(region.content, offset):
            return []

        context = analyze_completion_context(region.content, offset)
        logger.debug(
            "Completion context: type=%s, parent=%s, prefix=%s", context.type, context.parent_tag, context.prefix
        )
        return await self.complete(context, regions, version)

    async def complete(
        self,
        context: CompletionContext,
        regions: list[HedRegion],
        version: str | None = None,
    ) -> list[CompletionCandidate]:
        if context.is_definition_reference:
            marker = "Def-expand" if context.parent_tag.split("/")[-1].strip().lower() == "def-expand" else "Def"
            return [
                definition_candidate(definition, marker)
                for definition in extract_definitions(regions)
                if _matches_prefix(definition.name, context.prefix)
            ]

        try:
            vocabulary = await self.schema_manager.load(version)
        except SchemaLoadError as e:
            logger.warning(f"No completions, schema unavailable: {e}")
            return []

        if context.type == "top-level":
            candidates = [tag_candidate(tag, context.needs_leading_space) for tag in top_level_tags(vocabulary)]
        elif context.type == "child":
            candidates = [
                tag_candidate(tag)
                for tag in child_tags(vocabulary, context.parent_tag or "")
                if _matches_prefix(tag.short_form, context.prefix)
            ]
        else:
            candidates = await self._partial(vocabulary, context.prefix or "")

        candidates.sort(key=lambda c: (c.tier, c.sort_text))
        return candidates

    async def _partial(self, vocabulary: Vocabulary, term: str) -> list[CompletionCandidate]:
        if not term:
            return []

        direct = search_containing(vocabulary, term)
        candidates = [tag_candidate(tag, rank=rank) for rank, tag in enumerate(direct)]
        seen = {c.label.lower() for c in candidates}

        for match in await self._semantic_matches(term):
            if match.prefixed_tag.lower() not in seen:
                candidates.append(semantic_candidate(match, term))
                seen.add(match.prefixed_tag.lower())

        if len(direct) < EXTENSION_TRIGGER:
            for rank, parent in enumerate(find_extensible_parents(vocabulary, term)):
                if parent.prefixed_name.lower() not in seen:
                    candidates.append(extension_candidate(parent, term, rank))

        if not candidates:
            candidates.append(no_match_hint(term))
        return candidates

    async def _semantic_matches(self, term: str) -> list[TagMatch]:
        if self.semantic_search is None:
            return []
        try:
            matches = await self.semantic_search.find_similar(term, SEMANTIC_TOP_K)
        except Exception as e:
            logger.warning(f"Semantic search failed for '{term}': {e}")
            return []
        return [m for m in matches if m.score >= SIMILARITY_THRESHOLD]
