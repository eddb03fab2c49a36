"""Centralized configuration for the tool vector index."""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

import yaml

OFFICIAL_OPENAI_HOST = "openai.com"
DEFAULT_API_BASE_URL = "https://api.openai.com/v1"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse a boolean flag from an environment string."""
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def normalize_base_url(base_url: str) -> str:
    """Strip a single trailing slash so "<base>/embeddings" stays well-formed."""
    return base_url[:-1] if base_url.endswith("/") else base_url


class Config:
    """
    Tool vector configuration with environment variable overrides.

    Static knobs live here as class attributes. Per-operation routing
    settings (enabled flag, API credentials, model) are read fresh through
    RoutingSettings so they can be toggled without a restart.
    """

    # ========================================================================
    # Embedding Generation
    # ========================================================================
    EMBEDDING_MAX_CHARS: int = int(os.getenv("EMBEDDING_MAX_CHARS", "8000"))
    EMBEDDING_RANGE_TOLERANCE: float = float(os.getenv("EMBEDDING_RANGE_TOLERANCE", "1.1"))
    EMBEDDING_TIMEOUT: float = float(os.getenv("EMBEDDING_TIMEOUT", "30"))
    PROBE_TEXT: str = "test"

    # ========================================================================
    # Vector Storage
    # ========================================================================
    VECTOR_TABLE: str = os.getenv("VECTOR_TABLE", "vector_embeddings")
    VECTOR_COLUMN: str = os.getenv("VECTOR_COLUMN", "embedding")
    LIST_ALL_LIMIT: int = 1000

    # ========================================================================
    # Reconciliation Lease
    # ========================================================================
    VECTOR_LOCK_BACKEND: str = os.getenv("VECTOR_LOCK_BACKEND", "memory")
    VECTOR_LOCK_TTL: int = int(os.getenv("VECTOR_LOCK_TTL", "120"))
    VECTOR_LOCK_WAIT: float = float(os.getenv("VECTOR_LOCK_WAIT", "60"))
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        if cls.EMBEDDING_MAX_CHARS <= 0:
            errors.append(f"EMBEDDING_MAX_CHARS must be > 0, got {cls.EMBEDDING_MAX_CHARS}")
        if cls.EMBEDDING_RANGE_TOLERANCE < 1.0:
            errors.append(
                "EMBEDDING_RANGE_TOLERANCE must be >= 1.0, "
                f"got {cls.EMBEDDING_RANGE_TOLERANCE}"
            )
        if cls.EMBEDDING_TIMEOUT <= 0:
            errors.append(f"EMBEDDING_TIMEOUT must be > 0, got {cls.EMBEDDING_TIMEOUT}")
        if cls.VECTOR_LOCK_BACKEND not in {"memory", "redis"}:
            errors.append(
                f"VECTOR_LOCK_BACKEND must be 'memory' or 'redis', got {cls.VECTOR_LOCK_BACKEND!r}"
            )
        if cls.VECTOR_LOCK_TTL <= 0:
            errors.append(f"VECTOR_LOCK_TTL must be > 0, got {cls.VECTOR_LOCK_TTL}")
        if not cls.VECTOR_TABLE.isidentifier() or not cls.VECTOR_COLUMN.isidentifier():
            errors.append("VECTOR_TABLE and VECTOR_COLUMN must be plain SQL identifiers")

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True


@dataclass(frozen=True)
class RoutingSettings:
    """
    Snapshot of the smart routing settings for one operation.

    Fetched once per public call and passed down explicitly, so a single
    save batch never sees the model change halfway through.
    """

    enabled: bool = False
    api_key: str = ""
    api_base_url: str = DEFAULT_API_BASE_URL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    db_url: str = ""

    def __post_init__(self):
        object.__setattr__(self, "api_base_url", normalize_base_url(self.api_base_url))

    @property
    def is_official_api(self) -> bool:
        """True when requests go to the vendor endpoint with a key configured."""
        return bool(self.api_key) and OFFICIAL_OPENAI_HOST in self.api_base_url

    @property
    def embeddings_url(self) -> str:
        return f"{self.api_base_url}/embeddings"

    @classmethod
    def from_env(cls) -> "RoutingSettings":
        """Build settings from environment variables."""
        return cls(
            enabled=_parse_bool(os.getenv("SMART_ROUTING_ENABLED"), default=False),
            api_key=os.getenv("OPENAI_API_KEY", ""),
            api_base_url=os.getenv("OPENAI_API_BASE_URL", DEFAULT_API_BASE_URL),
            embedding_model=os.getenv("OPENAI_API_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            db_url=os.getenv("DB_URL", ""),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "RoutingSettings":
        """
        Load settings from the ``smartRouting`` section of a YAML file.

        Keys missing from the file keep their environment defaults.

        Args:
            yaml_path: Path to the settings file

        Returns:
            RoutingSettings instance

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the smartRouting section is not a mapping
        """
        settings_file = Path(yaml_path)
        if not settings_file.exists():
            raise FileNotFoundError(f"Settings YAML not found: {yaml_path}")

        with open(settings_file) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Invalid YAML structure: expected dict, got {type(data).__name__}")

        section: Any = data.get("smartRouting", {}) or {}
        if not isinstance(section, dict):
            raise ValueError("'smartRouting' must be a mapping")

        overrides: dict[str, Any] = {}
        if "enabled" in section:
            overrides["enabled"] = bool(section["enabled"])
        if section.get("openaiApiKey"):
            overrides["api_key"] = str(section["openaiApiKey"])
        if section.get("openaiApiBaseUrl"):
            overrides["api_base_url"] = str(section["openaiApiBaseUrl"])
        if section.get("openaiApiEmbeddingModel"):
            overrides["embedding_model"] = str(section["openaiApiEmbeddingModel"])
        if section.get("dbUrl"):
            overrides["db_url"] = str(section["dbUrl"])

        return replace(cls.from_env(), **overrides)
