# Copyright 2025 Creator Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Configuration management for Creator."""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from creator.config.orchestrator_constants import COMPRESSION_DEFAULTS, LOOP_LIMITS
from creator.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Global config directory (~/.creator unless overridden)
GLOBAL_CREATOR_DIR = Path(os.getenv("CREATOR_HOME", str(Path.home() / ".creator")))


class RoadmapPolicy(str, Enum):
    """What the orchestrator does when the AI proposes a roadmap."""

    CONFIRM = "confirm"  # Return the roadmap and wait for the user
    AUTO_EXECUTE = "auto_execute"  # Start executing step 1 right away


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CREATOR_",
        env_file=".env" if not os.getenv("CREATOR_SKIP_ENV_FILE") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AI proxy
    proxy_url: str = "https://creator-ai-proxy.web.app"
    site_token: Optional[str] = None
    site_url: str = "http://localhost"
    default_model: str = "gemini"
    request_timeout: float = Field(120.0, gt=0)
    docs_timeout: float = Field(60.0, gt=0)

    # Execution engine
    executor_url: Optional[str] = None
    executor_timeout: float = Field(30.0, gt=0)

    # Orchestration loop
    max_loop_iterations: int = LOOP_LIMITS.max_loop_iterations
    max_retry_attempts: int = LOOP_LIMITS.max_retry_attempts
    roadmap_policy: RoadmapPolicy = RoadmapPolicy.CONFIRM
    stream_roadmap_policy: RoadmapPolicy = RoadmapPolicy.AUTO_EXECUTE
    history_limit: int = LOOP_LIMITS.history_limit
    preserve_last_messages: int = COMPRESSION_DEFAULTS.preserve_last_messages

    # Storage
    db_path: Path = GLOBAL_CREATOR_DIR / "conversations.db"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator("max_loop_iterations", "history_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Loop and history limits must allow at least one entry."""
        if v < 1:
            raise ValueError(f"must be positive, got {v}")
        return v

    @field_validator("max_retry_attempts", "preserve_last_messages")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Retry and preservation counts may be zero but not negative."""
        if v < 0:
            raise ValueError(f"must not be negative, got {v}")
        return v

    @field_validator("proxy_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def has_site_token(self) -> bool:
        """Whether the proxy can be called at all."""
        return bool(self.site_token)


def _expand_env(value: Any) -> Any:
    """Expand ``${VAR}`` references in YAML string values."""
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        return os.getenv(value[2:-1])
    return value


def load_yaml_overrides(config_file: Union[str, Path]) -> Dict[str, Any]:
    """Read settings overrides from a YAML file.

    The file may either hold the settings at top level or under a
    ``creator:`` key.

    Raises:
        ConfigurationError: If the file is missing or not a mapping
    """
    path = Path(config_file)
    if not path.exists():
        raise ConfigurationError(
            f"Config file not found: {path}", config_key=str(path)
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in {path}: {e}", config_key=str(path), cause=e
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping", config_key=str(path)
        )

    section = data.get("creator", data)
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"'creator' section in {path} must be a mapping", config_key="creator"
        )
    return {key: _expand_env(value) for key, value in section.items()}


def load_settings(config_file: Optional[Union[str, Path]] = None) -> Settings:
    """Load application settings.

    Environment variables (``CREATOR_*``) and ``.env`` are read first;
    values from ``config_file`` take precedence over them.

    Returns:
        Settings instance
    """
    if config_file is None:
        return Settings()

    overrides = load_yaml_overrides(config_file)
    logger.debug(f"Loaded {len(overrides)} setting overrides from {config_file}")
    return Settings(**overrides)
