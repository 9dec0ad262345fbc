"""Configuration for the HED language service.

Settings are read, lowest to highest precedence, from defaults, a YAML file in
the user config directory, environment variables and explicit overrides (the
client's settings object or CLI flags). Option names follow the client-side
camelCase spelling; snake_case names are accepted too.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from platformdirs import user_config_dir
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hed_lsp.schema.versions import DEFAULT_SCHEMA_VERSION
from hed_lsp.utils.semantic_search import DEFAULT_MODEL_ID

logger = logging.getLogger(__name__)

# Linux: ~/.config/hed-lsp
# macOS: ~/Library/Application Support/hed-lsp
# Windows: C:\\Users\\<user>\\AppData\\Local\\hed-lsp
CONFIG_DIR = Path(user_config_dir("hed-lsp", appauthor=False))
CONFIG_FILE = CONFIG_DIR / "config.yaml"


class HedLspSettings(BaseModel):
    """Session settings."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    schema_version: str = Field(
        default=DEFAULT_SCHEMA_VERSION,
        alias="schemaVersion",
        description="HED schema version used when no dataset_description.json is found",
    )
    max_number_of_problems: int = Field(
        default=100, ge=1, alias="maxNumberOfProblems", description="Max diagnostics per document"
    )
    validate_on_change: bool = Field(
        default=True, alias="validateOnChange", description="Validate while typing (debounced)"
    )
    debounce_ms: int = Field(default=300, ge=0, alias="debounceMs", description="Validation debounce delay")
    enable_semantic_search: bool = Field(
        default=False, alias="enableSemanticSearch", description="Use the embedding model for completions"
    )
    embeddings_path: str | None = Field(
        default=None, alias="embeddingsPath", description="Precomputed embeddings file or directory"
    )
    model_id: str = Field(default=DEFAULT_MODEL_ID, alias="modelId", description="Embedding model")
    validator_backend: Literal["local", "remote"] = Field(
        default="local",
        alias="validatorBackend",
        description="'local' (hedtools in-process) or 'remote' (hedtools.org)",
    )
    descriptor_search_depth: int = Field(
        default=10, ge=0, alias="descriptorSearchDepth", description="Directories searched for the descriptor"
    )

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def to_client_dict(self) -> dict[str, Any]:
        """Settings keyed by their camelCase names."""
        return self.model_dump(by_alias=True)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    raise ValueError(value)


# Environment variable -> (field, parser)
ENV_VARIABLES: dict[str, tuple[str, Any]] = {
    "HED_SCHEMA_VERSION": ("schema_version", str),
    "HED_LSP_USE_SEMANTIC": ("enable_semantic_search", _parse_bool),
    "HED_LSP_MAX_PROBLEMS": ("max_number_of_problems", int),
    "HED_LSP_DEBOUNCE_MS": ("debounce_ms", int),
    "HED_LSP_EMBEDDINGS_PATH": ("embeddings_path", str),
    "HED_LSP_VALIDATOR": ("validator_backend", str),
}


def load_file_settings(path: Path | None = None) -> dict[str, Any]:
    """Raw settings from the YAML config file (empty if missing or unreadable)."""
    path = path or CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not read config file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: expected a mapping")
        return {}
    return data


def load_env_settings(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Settings from environment variables; invalid values are skipped with a warning."""
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for name, (field, parse) in ENV_VARIABLES.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            value = parse(raw)
            HedLspSettings.model_validate({field: value})
        except (ValueError, ValidationError):
            logger.warning(f"Invalid {name} value '{raw}', using default")
            continue
        values[field] = value
    return values


def normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase aliases to field names so layers merge on one key."""
    aliases = {f.alias: name for name, f in HedLspSettings.model_fields.items() if f.alias}
    return {aliases.get(key, key): value for key, value in data.items()}


def load_settings(
    overrides: dict[str, Any] | None = None,
    config_file: Path | None = None,
    environ: dict[str, str] | None = None,
) -> HedLspSettings:
    """Effective settings: defaults < config file < environment < overrides.

    Args:
        overrides: Explicit values (camelCase or snake_case), e.g. the
            client's settings object or CLI flags; None values are ignored
        config_file: Alternative YAML file
        environ: Alternative environment mapping

    Raises:
        pydantic.ValidationError: If an override is invalid
    """
    merged: dict[str, Any] = {}

    file_values = normalize_keys(load_file_settings(config_file))
    try:
        HedLspSettings.model_validate(file_values)
        merged.update(file_values)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid config file values: {e}")

    merged.update(load_env_settings(environ))
    if overrides:
        merged.update({k: v for k, v in normalize_keys(overrides).items() if v is not None})

    return HedLspSettings.model_validate(merged)


def save_settings(settings: HedLspSettings, path: Path | None = None) -> None:
    """Write settings to the YAML config file."""
    path = path or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(settings.to_client_dict(), f, default_flow_style=False)
