"""Central configuration, constants, field presets, and environment settings."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import pytz

from .errors import ConfigLoadError

# =============================================================================
# Jira Connection Settings
# =============================================================================
DEFAULT_API_VERSION = "2"
DEFAULT_TIMEOUT_SECONDS: float = 30.0
DEFAULT_MAX_TICKETS: int = 1000
TIMEZONE = "UTC"

REQUIRED_ENV_VARS: Sequence[str] = ("JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN")

# =============================================================================
# Field Configuration
# =============================================================================
# Semantic keys present on every ticket regardless of the requested selection
GUARANTEED_FIELD_KEYS: Sequence[str] = ("key", "summary", "status")

# Jira fields always requested from the search endpoint
STANDARD_JIRA_FIELDS: Sequence[str] = (
    "summary",
    "description",
    "status",
    "priority",
    "assignee",
    "reporter",
    "created",
    "updated",
    "issuetype",
)

# Sprint custom field id (Jira Software default on Cloud)
SPRINT_FIELD_ID = "customfield_10021"

DEFAULT_MAPPINGS_PATH = Path(__file__).resolve().parent.parent / "field_mappings.yaml"

DEFAULT_PRESET = "basic"

# Fixed field groupings offered to the operator; not user-configurable
FIELD_PRESETS: Mapping[str, Sequence[str]] = {
    "sprint": ("storyPoints", "team", "status", "assignee", "sprint", "issueType", "priority"),
    "bugs": ("priority", "severity", "reporter", "rootCause", "status", "assignee", "issueType"),
    "features": (
        "epic",
        "parentTask",
        "subtasks",
        "acceptanceCriteria",
        "progress",
        "status",
        "issueType",
    ),
    "basic": ("status", "priority", "assignee", "reporter", "team", "issueType"),
}

# =============================================================================
# Output Layout
# =============================================================================
RAW_DATA_DIR = Path("data") / "raw"
HISTORY_DIR = Path("data") / "history"
PROMPTS_DIR = Path("prompts")


def _env_flag(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigLoadError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigLoadError(f"{name} must be positive, got {value}")
    return value


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ConfigLoadError(f"{name} must be a number, got {raw!r}") from exc


def _env_str(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(slots=True)
class AppSettings:
    base_url: str
    email: str
    api_token: str
    max_tickets: int = DEFAULT_MAX_TICKETS
    debug: bool = False
    verify_ssl: bool = True
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    api_version: str = DEFAULT_API_VERSION
    sprint_field: str = SPRINT_FIELD_ID
    mappings_path: Path = DEFAULT_MAPPINGS_PATH
    output_dir: Path = Path(".")
    timezone: str = TIMEZONE
    # Overrides that bypass interactive prompts
    jql: str | None = None
    fields: str | None = None
    preset: str | None = None
    analysis_question: str | None = None

    @property
    def non_interactive(self) -> bool:
        return self.jql is not None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppSettings:
        """Build settings from environment variables.

        Raises ``ConfigLoadError`` when a required variable is missing or a
        numeric value does not parse.
        """
        env = os.environ if environ is None else environ
        missing = [name for name in REQUIRED_ENV_VARS if not _env_str(env, name)]
        if missing:
            raise ConfigLoadError(f"Missing required environment variables: {', '.join(missing)}")

        api_version = _env_str(env, "JIRA_API_VERSION") or DEFAULT_API_VERSION
        if api_version not in {"2", "3"}:
            raise ConfigLoadError(f"JIRA_API_VERSION must be 2 or 3, got {api_version!r}")

        timezone = _env_str(env, "TIMEZONE") or TIMEZONE
        if timezone not in pytz.all_timezones_set:
            raise ConfigLoadError(f"Unknown TIMEZONE {timezone!r}")

        mappings = _env_str(env, "FIELD_MAPPINGS_PATH")
        output_dir = _env_str(env, "OUTPUT_DIR")
        return cls(
            base_url=env["JIRA_BASE_URL"].strip().rstrip("/"),
            email=env["JIRA_EMAIL"].strip(),
            api_token=env["JIRA_API_TOKEN"].strip(),
            max_tickets=_env_int(env, "MAX_TICKETS", DEFAULT_MAX_TICKETS),
            debug=_env_flag(env.get("DEBUG"), False),
            verify_ssl=_env_flag(env.get("JIRA_VERIFY_SSL"), True),
            timeout=_env_float(env, "JIRA_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
            api_version=api_version,
            sprint_field=_env_str(env, "JIRA_SPRINT_FIELD") or SPRINT_FIELD_ID,
            mappings_path=Path(mappings) if mappings else DEFAULT_MAPPINGS_PATH,
            output_dir=Path(output_dir) if output_dir else Path("."),
            timezone=timezone,
            jql=_env_str(env, "JQL_QUERY"),
            fields=_env_str(env, "FIELDS"),
            preset=_env_str(env, "FIELD_PRESET"),
            analysis_question=_env_str(env, "ANALYSIS_QUESTION"),
        )
