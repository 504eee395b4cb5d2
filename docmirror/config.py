"""Run configuration.

Settings are resolved once at startup, lowest precedence first: built-in
defaults, an optional YAML file, environment variables (a ``.env`` file is
loaded first without overriding the real environment), then explicit
overrides from the command line.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from docmirror.errors import ConfigError

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_MAX_OUTPUT_TOKENS = 8192
DEFAULT_REQUEST_TIMEOUT = 60.0

# field name -> environment variable
ENV_VARS: dict[str, str] = {
    "owner": "GITHUB_OWNER",
    "repo": "GITHUB_REPOSITORY",
    "target_path": "TARGET_DIRECTORY_PATH",
    "extension": "TARGET_FILE_EXTENSION",
    "hash_file": "HASH_FILE_PATH",
    "project_id": "VERTEX_AI_PROJECT_ID",
    "location": "VERTEX_AI_LOCATION",
    "model": "VERTEX_AI_MODEL",
    "prompt_url": "PROMPT_URL",
    "github_token": "GH_ACCESS_TOKEN",
    "output_dir": "OUTPUT_DIR",
    "max_output_tokens": "MAX_OUTPUT_TOKENS",
    "request_timeout": "REQUEST_TIMEOUT",
    "workers": "SYNC_WORKERS",
    "github_api_url": "GITHUB_API_URL",
}

REQUIRED_FIELDS = (
    "owner",
    "repo",
    "target_path",
    "extension",
    "hash_file",
    "project_id",
    "location",
    "model",
    "prompt_url",
)

CONFIG_PATH_ENV = "DOCMIRROR_CONFIG"

_INT_FIELDS = {"max_output_tokens", "workers"}
_FLOAT_FIELDS = {"request_timeout"}


@dataclass(frozen=True)
class SyncConfig:
    """Resolved settings for one synchronization run."""

    owner: str = ""
    repo: str = ""
    target_path: str = ""
    extension: str = ""
    hash_file: str = ""
    project_id: str = ""
    location: str = ""
    model: str = ""
    prompt_url: str = ""
    github_token: str = ""
    output_dir: str = "."
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    workers: int = 1
    github_api_url: str = DEFAULT_GITHUB_API_URL

    def __post_init__(self) -> None:
        # GITHUB_REPOSITORY is "owner/repo" inside GitHub Actions.
        if "/" in self.repo:
            owner, _, name = self.repo.partition("/")
            object.__setattr__(self, "repo", name)
            if not self.owner:
                object.__setattr__(self, "owner", owner)

    # -- construction --------------------------------------------------------

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        config_path: str | Path | None = None,
        env_file: str | Path | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> "SyncConfig":
        """Build a configuration from YAML, the environment and overrides.

        Args:
            environ: Environment mapping; defaults to ``os.environ`` after
                loading ``env_file`` (or ``./.env``) with python-dotenv.
            config_path: Optional YAML file. Falls back to ``$DOCMIRROR_CONFIG``.
            env_file: Optional dotenv file to load before reading the environment.
            overrides: Values that win over everything else. ``None`` values
                are ignored.

        Raises:
            ConfigError: If the YAML file is unreadable or a numeric value
                cannot be parsed.
        """
        if environ is None:
            load_dotenv(env_file or Path.cwd() / ".env", override=False)
            environ = os.environ

        values: dict[str, Any] = {}

        config_path = config_path or environ.get(CONFIG_PATH_ENV) or None
        if config_path:
            values.update(_load_yaml(Path(config_path)))

        for name, var in ENV_VARS.items():
            raw = environ.get(var)
            if raw is not None and raw != "":
                values[name] = raw

        for name, value in (overrides or {}).items():
            if value is not None:
                values[name] = value

        return cls(**_coerce(values))

    # -- validation ----------------------------------------------------------

    def validate(self) -> "SyncConfig":
        """Check that every required setting is present and sane.

        Raises:
            ConfigError: Listing every problem found.
        """
        problems = [
            f"{name} is not set ({ENV_VARS[name]})"
            for name in REQUIRED_FIELDS
            if not str(getattr(self, name)).strip()
        ]
        if self.max_output_tokens <= 0:
            problems.append("max_output_tokens must be positive")
        if self.request_timeout <= 0:
            problems.append("request_timeout must be positive")
        if self.workers < 1:
            problems.append("workers must be at least 1")
        if self.model.strip().lower().startswith("gemini"):
            problems.append(
                f"model {self.model!r} is a Gemini model; VERTEX_AI_MODEL must be a Claude model id on Vertex AI"
            )
        if problems:
            raise ConfigError(problems)
        return self

    def redacted(self) -> dict[str, Any]:
        """Return the settings as a dict with the access token masked."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if data["github_token"]:
            data["github_token"] = "****" + data["github_token"][-4:]
        return data


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError([f"cannot read config file {path}: {e}"]) from e

    if not isinstance(data, dict):
        raise ConfigError([f"config file {path} must contain a mapping"])

    known = {f.name for f in fields(SyncConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError([f"unknown key(s) in {path}: {', '.join(unknown)}"])
    return data


def _coerce(values: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    problems: list[str] = []
    for name, value in values.items():
        # an empty YAML value means "not set"
        if value is None:
            continue
        try:
            if name in _INT_FIELDS:
                out[name] = int(value)
            elif name in _FLOAT_FIELDS:
                out[name] = float(value)
            else:
                out[name] = str(value)
        except (TypeError, ValueError):
            problems.append(f"{name} must be a number, got {value!r}")
    if problems:
        raise ConfigError(problems)
    return out
