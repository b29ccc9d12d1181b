"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./cocoagpt.yaml (working directory)
3. ~/.cocoagpt/config.yaml (user home)

Environment variables override YAML: COCOAGPT_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
With no config file, defaults apply (plus any env overrides).
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from src.catalog.metadata import DEFAULT_ENUM_MAX_DISTINCT
from src.llm.config import LLMConfig, SimilarityConfig
from src.pipeline.compiler import DEFAULT_DISPLAY_LIMIT
from src.pipeline.models.filter import DEFAULT_MIN_SIMILARITY
from src.pipeline.prompts import load_prompt_template
from src.pipeline.session import SessionSettings

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
ENV_PREFIX = "COCOAGPT_"


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class FiltersConfig(BaseModel):
    """Filter defaults."""

    default_min_similarity: float = Field(default=DEFAULT_MIN_SIMILARITY, ge=0.0, le=1.0)


class CatalogConfig(BaseModel):
    """Column catalog settings."""

    enum_max_distinct: int = DEFAULT_ENUM_MAX_DISTINCT
    overrides_table: str | None = "metadata"


class QueryConfig(BaseModel):
    """Query and intersection settings."""

    intersection_display_limit: int = DEFAULT_DISPLAY_LIMIT
    exclude_single_key_tables: bool = True
    preview_rows: int = 10


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: Literal["debug", "info", "warning", "error"] = "warning"


class CocoaGPTConfig(BaseModel):
    """Top-level configuration for the CocoaGPT CLI."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    similarity: SimilarityConfig = Field(default_factory=SimilarityConfig)
    filters: FiltersConfig = FiltersConfig()
    catalog: CatalogConfig = CatalogConfig()
    query: QueryConfig = QueryConfig()
    logging: LoggingConfig = LoggingConfig()
    prompt_file: str | None = None

    def session_settings(self) -> SessionSettings:
        """Build session tunables, reading the custom prompt if configured."""
        return SessionSettings(
            model=self.llm.model,
            default_min_similarity=self.filters.default_min_similarity,
            enum_max_distinct=self.catalog.enum_max_distinct,
            overrides_table=self.catalog.overrides_table,
            intersection_display_limit=self.query.intersection_display_limit,
            exclude_single_key_tables=self.query.exclude_single_key_tables,
            prompt_template=load_prompt_template(self.prompt_file),
        )


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "cocoagpt.yaml",
        Path.cwd() / "cocoagpt.yml",
        Path.home() / ".cocoagpt" / "config.yaml",
        Path.home() / ".cocoagpt" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply COCOAGPT_<SECTION>_<KEY> env var overrides to config data.

    Sections are matched by prefix, longest first. Values stay strings;
    Pydantic coerces them to the field types. ``COCOAGPT_PROMPT_FILE``
    sets the top-level prompt file.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    sections = [
        name
        for name, info in CocoaGPTConfig.model_fields.items()
        if isinstance(info.annotation, type) and issubclass(info.annotation, BaseModel)
    ]
    sections.sort(key=len, reverse=True)

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX):].lower()
        if suffix == "prompt_file":
            data["prompt_file"] = value
            continue
        for section in sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix) and len(suffix) > len(section_prefix):
                section_data = data.setdefault(section, {})
                if isinstance(section_data, dict):
                    section_data[suffix[len(section_prefix):]] = value
                break
    return data


def load_config(config_path: str | None = None) -> CocoaGPTConfig:
    """Load configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.cocoagpt/).

    Returns:
        Parsed and validated CocoaGPTConfig (defaults if no file found).

    Raises:
        FileNotFoundError: If an explicit config path does not exist.
    """
    data: dict[str, Any] = {}
    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}
        data = _resolve_env_vars_recursive(raw_data)

    data = _apply_env_overrides(data)
    return CocoaGPTConfig(**data)
