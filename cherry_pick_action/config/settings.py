"""
Configuration system using Pydantic for type-safe settings management.

Settings are read from GitHub Action inputs, which the runner exposes as
``INPUT_<NAME>`` environment variables, or from a YAML file for local runs.
Blank inputs fall back to their defaults.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from cherry_pick_action.enums import ConflictStrategy, LogFormat
from cherry_pick_action.exceptions import ConfigurationError
from cherry_pick_action.utils.logging_config import parse_level

DEFAULT_LABEL_PREFIX = "cherry-pick/"
DEFAULT_GIT_USER_NAME = "Cherry-Pick Bot"
DEFAULT_GIT_USER_EMAIL = "no-reply@cherry-pick.invalid"

_BRANCH_SEPARATORS = re.compile(r"[,\r\n]")


def parse_branch_list(raw: str) -> list[str]:
    """Split a comma or newline separated branch list, dropping blanks."""
    return [part.strip() for part in _BRANCH_SEPARATORS.split(raw) if part.strip()]


class ActionSettings(BaseSettings):
    """Runtime options for a cherry-pick run.

    Every field maps to ``INPUT_<FIELD>``; the token additionally falls back
    to ``GITHUB_TOKEN``.
    """

    model_config = SettingsConfigDict(
        env_prefix="INPUT_",
        case_sensitive=False,
        env_ignore_empty=True,
        populate_by_name=True,
    )

    github_token: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("INPUT_GITHUB_TOKEN", "GITHUB_TOKEN", "github_token"),
        description="Token used for the REST API and git over HTTPS",
    )
    github_base_url: str = Field(default="", description="GitHub Enterprise API base URL")
    github_upload_url: str = Field(default="", description="GitHub Enterprise upload URL")
    label_prefix: str = Field(default=DEFAULT_LABEL_PREFIX, description="Prefix of target labels")
    dry_run: bool = Field(default=False, description="Evaluate targets without mutating anything")
    verbose: bool = Field(default=False, description="Shorthand for log_level=debug")
    log_level: str = Field(default="info", description="debug, info, warn or error")
    log_format: LogFormat = Field(default=LogFormat.TEXT)
    conflict_strategy: ConflictStrategy = Field(default=ConflictStrategy.FAIL)
    target_branches: Annotated[list[str], NoDecode] = Field(
        default_factory=list, description="Extra target branches, comma or newline separated"
    )
    git_user_name: str = Field(default=DEFAULT_GIT_USER_NAME)
    git_user_email: str = Field(default=DEFAULT_GIT_USER_EMAIL)
    git_signing_key: SecretStr | None = Field(default=None, description="GPG private key")
    git_signing_passphrase: SecretStr | None = Field(default=None)
    require_org_membership: bool = Field(
        default=False, description="Only run for actors in the repository owner organization"
    )

    @field_validator(
        "github_base_url", "github_upload_url", "git_user_name", "git_user_email", mode="before"
    )
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("dry_run", "verbose", "require_org_membership", mode="before")
    @classmethod
    def _strip_flag(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or False
        return value

    @field_validator("github_token", "git_signing_key", "git_signing_passphrase", mode="before")
    @classmethod
    def _strip_secret(cls, value: Any) -> Any:
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        if isinstance(value, str):
            value = value.strip()
        return value

    @field_validator("label_prefix", mode="before")
    @classmethod
    def _default_label_prefix(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_LABEL_PREFIX
        if isinstance(value, str):
            return value.strip() or DEFAULT_LABEL_PREFIX
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> Any:
        if value is None:
            return "info"
        if isinstance(value, str):
            value = value.strip().lower() or "info"
            try:
                parse_level(value)
            except ConfigurationError as e:
                raise ValueError(e.message) from None
        return value

    @field_validator("log_format", mode="before")
    @classmethod
    def _normalize_log_format(cls, value: Any) -> Any:
        if value is None:
            return LogFormat.TEXT
        if isinstance(value, str):
            value = value.strip().lower() or LogFormat.TEXT.value
            if value not in {f.value for f in LogFormat}:
                raise ValueError(f"unsupported log format {value!r}")
        return value

    @field_validator("conflict_strategy", mode="before")
    @classmethod
    def _normalize_conflict_strategy(cls, value: Any) -> Any:
        if value is None:
            return ConflictStrategy.FAIL
        if isinstance(value, str):
            value = value.strip().lower() or ConflictStrategy.FAIL.value
            if value not in {s.value for s in ConflictStrategy}:
                raise ValueError(f"unsupported conflict strategy {value!r}")
        return value

    @field_validator("target_branches", mode="before")
    @classmethod
    def _split_target_branches(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return parse_branch_list(value)
        if isinstance(value, list | tuple):
            return [str(v).strip() for v in value if str(v).strip()]
        return value

    @model_validator(mode="after")
    def _validate(self) -> ActionSettings:
        if not self.github_token.get_secret_value():
            raise ValueError("github token is required (set INPUT_GITHUB_TOKEN or GITHUB_TOKEN)")

        if bool(self.github_base_url) != bool(self.github_upload_url):
            raise ValueError(
                "INPUT_GITHUB_BASE_URL and INPUT_GITHUB_UPLOAD_URL must both be set for GitHub Enterprise"
            )

        if not self.git_user_name:
            self.git_user_name = DEFAULT_GIT_USER_NAME
        if not self.git_user_email:
            self.git_user_email = DEFAULT_GIT_USER_EMAIL

        if self.dry_run and self.conflict_strategy is ConflictStrategy.PLACEHOLDER_PR:
            raise ValueError(
                f"conflict strategy {self.conflict_strategy.value!r} cannot be used when dry run is enabled"
            )

        if self.verbose:
            self.log_level = "debug"

        return self

    @property
    def token(self) -> str:
        """Plain-text GitHub token."""
        return self.github_token.get_secret_value()

    @property
    def signing_key(self) -> str:
        """Plain-text signing key, empty when signing is disabled."""
        return self.git_signing_key.get_secret_value() if self.git_signing_key else ""

    @property
    def signing_passphrase(self) -> str:
        """Plain-text signing passphrase, may be empty."""
        return self.git_signing_passphrase.get_secret_value() if self.git_signing_passphrase else ""

    @classmethod
    def from_env(cls, **overrides: Any) -> ActionSettings:
        """Load settings from the environment.

        Args:
            **overrides: Field values taking precedence over the environment

        Raises:
            ConfigurationError: If any value is missing or invalid
        """
        try:
            return cls(**overrides)
        except ValidationError as e:
            raise ConfigurationError(_format_validation_error(e)) from e

    @classmethod
    def from_yaml(cls, config_path: str | Path, **overrides: Any) -> ActionSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax. Values missing
        from the file are still read from the environment.

        Args:
            config_path: Path to YAML configuration file
            **overrides: Field values taking precedence over the file

        Returns:
            ActionSettings instance

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        config_dict.update(overrides)
        return cls.from_env(**config_dict)

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Raises:
            ValueError: If a required environment variable is not set

        Note:
            YAML comment lines (starting with #) are preserved unchanged.
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        message = str(item.get("msg", "")).removeprefix("Value error, ")
        location = ".".join(str(part) for part in item.get("loc", ()))
        problems.append(f"{location}: {message}" if location else message)
    return "; ".join(problems) or str(error)
