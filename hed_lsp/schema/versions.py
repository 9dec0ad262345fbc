"""HED schema version specifiers.

A version spec is an ordered set of (namespace prefix, version) pairs such as
``8.4.0,sc:score_2.1.0,la:lang_1.1.0``. Equal specs must canonicalize to the
same string so they can be used as cache keys.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_SCHEMA_VERSION = "8.4.0"


def _split_parts(value: str | list[str] | tuple[str, ...]) -> list[str]:
    if isinstance(value, str):
        raw = value.split(",")
    else:
        raw = [piece for item in value for piece in str(item).split(",")]
    return [part.strip() for part in raw if part and part.strip()]


@dataclass(frozen=True)
class VersionSpec:
    """Ordered, de-duplicated (prefix, version) pairs.

    Attributes:
        parts: Tuple of (prefix, version); prefix is "" for the base schema
            and e.g. "sc" for a library loaded under the ``sc:`` namespace
    """

    parts: tuple[tuple[str, str], ...]

    @classmethod
    def parse(cls, value: str | list[str] | tuple[str, ...]) -> VersionSpec:
        """Parse a comma-separated string or a list of version strings.

        Args:
            value: e.g. "8.4.0, sc:score_2.1.0" or ["8.4.0", "sc:score_2.1.0"]

        Returns:
            VersionSpec with whitespace trimmed and duplicates removed
        """
        seen: set[tuple[str, str]] = set()
        parts: list[tuple[str, str]] = []
        for part in _split_parts(value):
            # An empty prefix names no namespace: "::8.4.0" is "8.4.0"
            while part.startswith(":"):
                part = part[1:].strip()
            prefix, sep, version = part.partition(":")
            if sep:
                pair = (prefix.strip(), version.strip())
            else:
                pair = ("", part)
            if not pair[1] or pair in seen:
                continue
            seen.add(pair)
            parts.append(pair)
        return cls(tuple(parts))

    @property
    def canonical(self) -> str:
        """Comma-joined, prefix-qualified form used as the cache key."""
        return ",".join(f"{prefix}:{version}" if prefix else version for prefix, version in self.parts)

    @property
    def prefixes(self) -> list[str]:
        """Namespace prefixes in spec order, rendered with their colon."""
        return [f"{prefix}:" if prefix else "" for prefix, _version in self.parts]

    def as_list(self) -> list[str]:
        """Version strings as accepted by ``hed.load_schema_version``."""
        return [f"{prefix}:{version}" if prefix else version for prefix, version in self.parts]

    def __bool__(self) -> bool:
        return bool(self.parts)

    def __str__(self) -> str:
        return self.canonical


def normalize_version(value: str | list[str] | None) -> str:
    """Normalize a HED version specifier to its canonical string.

    Idempotent: ``normalize_version(normalize_version(s)) == normalize_version(s)``.

    Args:
        value: Version string (possibly comma separated) or list of strings

    Returns:
        Canonical version string ("" for empty input)
    """
    if not value:
        return ""
    return VersionSpec.parse(value).canonical
