"""Loading and validation of ``tdd.yaml``."""

from __future__ import annotations

import copy
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .roles import Role

DEFAULT_CONFIG_NAME = "tdd.yaml"
DEFAULT_MAX_STEPS = 10
DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_TEMPERATURE = 0.2
DEFAULT_COPILOT_API_VERSION = "2023-12-01"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "workspace": {
        "kata_file": "kata.md",
        "plan_dir": ".tdd/plan",
        "log_dir": ".tdd/logs",
        "max_steps": DEFAULT_MAX_STEPS,
        "max_attempts_per_agent": DEFAULT_MAX_ATTEMPTS,
    },
    "roles": {
        "tester": {"model": "gpt-4o-mini", "temperature": 0.1},
        "implementor": {"model": "gpt-4o-mini", "temperature": 0.2},
        "refactorer": {"model": "gpt-4o-mini", "temperature": 0.15},
    },
    "llm": {
        "provider": "openai",
        "base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
        "timeout_seconds": 120,
    },
    "ci": {
        "fmt": ["ruff", "format", "."],
        "check": ["ruff", "check", "."],
        "test": ["pytest", "-q"],
        "timeout_seconds": 600,
    },
    "commit_author": {
        "name": "TDD Machine",
        "email": "tdd-machine@example.com",
    },
}


class ConfigError(ValueError):
    """Raised when ``tdd.yaml`` cannot be read, parsed or validated."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field

    @classmethod
    def invalid(cls, field: str, reason: str) -> "ConfigError":
        return cls(f"invalid configuration at {field}: {reason}", field=field)


class ConfigModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False)


def _non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value.strip()


class WorkspaceConfig(ConfigModel):
    kata_file: str = "kata.md"
    plan_dir: str = ".tdd/plan"
    log_dir: str = ".tdd/logs"
    max_steps: int = Field(default=DEFAULT_MAX_STEPS, ge=0)
    max_attempts_per_agent: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=0)

    check_paths = field_validator("kata_file", "plan_dir", "log_dir")(_non_blank)

    @field_validator("max_steps")
    @classmethod
    def default_steps(cls, value: int) -> int:
        return value or DEFAULT_MAX_STEPS

    @field_validator("max_attempts_per_agent")
    @classmethod
    def default_attempts(cls, value: int) -> int:
        return value or DEFAULT_MAX_ATTEMPTS


class RoleModelConfig(ConfigModel):
    model: str
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)

    check_model = field_validator("model")(_non_blank)


class RolesConfig(ConfigModel):
    tester: RoleModelConfig
    implementor: RoleModelConfig
    refactorer: RoleModelConfig

    def for_role(self, role: Role) -> RoleModelConfig:
        return getattr(self, role.value)


class LLMProvider(str, Enum):
    OPENAI = "openai"
    GITHUB_COPILOT = "github_copilot"


class LLMConfig(ConfigModel):
    provider: LLMProvider = LLMProvider.OPENAI
    base_url: str
    api_key_env: str
    api_version: Optional[str] = None
    timeout_seconds: float = Field(default=120.0, gt=0)

    check_strings = field_validator("base_url", "api_key_env")(_non_blank)

    def effective_api_version(self) -> Optional[str]:
        if self.api_version and self.api_version.strip():
            return self.api_version.strip()
        if self.provider is LLMProvider.GITHUB_COPILOT:
            return DEFAULT_COPILOT_API_VERSION
        return None


class CIConfig(ConfigModel):
    fmt: List[str]
    check: List[str]
    test: List[str]
    timeout_seconds: float = Field(default=600.0, gt=0)

    @field_validator("fmt", "check", "test")
    @classmethod
    def non_empty_command(cls, value: List[str]) -> List[str]:
        if not value or not value[0].strip():
            raise ValueError("command must not be empty")
        return value


class CommitAuthorConfig(ConfigModel):
    name: str
    email: str

    check_fields = field_validator("name", "email")(_non_blank)


class TddConfig(ConfigModel):
    """Validated contents of ``tdd.yaml``."""

    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    roles: RolesConfig
    llm: LLMConfig
    ci: CIConfig
    commit_author: CommitAuthorConfig

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "TddConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as error:
            first = error.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "config"
            reason = str(first.get("msg", "invalid value"))
            if reason.startswith("Value error, "):
                reason = reason[len("Value error, ") :]
            raise ConfigError.invalid(field, reason) from error


def default_config_data() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def load_config(config_path: Path | str) -> TddConfig:
    """Load YAML configuration from disk and validate it."""
    path = Path(config_path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as error:
        raise ConfigError(f"failed to read configuration {path}: {error}") from error
    except yaml.YAMLError as error:
        raise ConfigError(f"failed to parse configuration {path}: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")

    return TddConfig.from_mapping(data)


def write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False)


__all__ = [
    "CIConfig",
    "CommitAuthorConfig",
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "LLMConfig",
    "LLMProvider",
    "RoleModelConfig",
    "RolesConfig",
    "TddConfig",
    "WorkspaceConfig",
    "default_config_data",
    "load_config",
    "write_config",
]
