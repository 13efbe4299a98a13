"""Load the semantic field mapping table from YAML and expose lookups and presets.

The registry is built once at startup and handed to the normalizer and the
extraction service. The table is read lazily on first access and cached on
the instance; it is never re-read or mutated afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .config import DEFAULT_MAPPINGS_PATH, FIELD_PRESETS, GUARANTEED_FIELD_KEYS, SPRINT_FIELD_ID
from .errors import ConfigLoadError, InvalidFieldSelectionError

logger = logging.getLogger(__name__)

FIELD_TYPES: frozenset[str] = frozenset({"number", "string", "date", "object", "array", "boolean"})


class FieldKind(str, Enum):
    """How a raw Jira value is turned into a ticket value."""

    NAME = "name"  # {"name": ...} -> name
    DISPLAY_NAME = "display_name"  # user object -> displayName
    SUBTASKS = "subtasks"  # list of issues -> [{key, summary}]
    SPRINT = "sprint"  # sprint object/list/string -> Sprint | str | None
    RAW = "raw"


FIELD_KIND_BY_JIRA_FIELD: Mapping[str, FieldKind] = MappingProxyType(
    {
        "status": FieldKind.NAME,
        "priority": FieldKind.NAME,
        "issuetype": FieldKind.NAME,
        "assignee": FieldKind.DISPLAY_NAME,
        "reporter": FieldKind.DISPLAY_NAME,
        "subtasks": FieldKind.SUBTASKS,
    }
)


def resolve_field_kind(jira_field: str, sprint_field: str = SPRINT_FIELD_ID) -> FieldKind:
    if jira_field == sprint_field:
        return FieldKind.SPRINT
    return FIELD_KIND_BY_JIRA_FIELD.get(jira_field, FieldKind.RAW)


@dataclass(slots=True, frozen=True)
class FieldMapping:
    jira_field: str
    type: str
    description: str
    nullable: bool = False
    values: tuple[str, ...] | None = None
    kind: FieldKind = FieldKind.RAW


def _parse_entry(key: str, entry: Any, sprint_field: str) -> FieldMapping:
    if not isinstance(entry, dict):
        raise ConfigLoadError(f"Field mapping '{key}' must be a mapping, got {type(entry).__name__}")
    jira_field = entry.get("jira_field") or entry.get("jiraField")
    if not jira_field or not isinstance(jira_field, str):
        raise ConfigLoadError(f"Field mapping '{key}' has no jira_field")
    field_type = str(entry.get("type") or "string")
    if field_type not in FIELD_TYPES:
        # Type is informational; keep it but surface the typo
        logger.warning("Field mapping '%s' declares unknown type %r", key, field_type)
    values = entry.get("values")
    if values is not None:
        if not isinstance(values, list):
            raise ConfigLoadError(f"Field mapping '{key}' values must be a list")
        values = tuple(str(v) for v in values) or None
    return FieldMapping(
        jira_field=jira_field,
        type=field_type,
        description=str(entry.get("description") or ""),
        nullable=bool(entry.get("nullable", False)),
        values=values,
        kind=resolve_field_kind(jira_field, sprint_field),
    )


class FieldMappingRegistry:
    def __init__(self, path: str | Path | None = None, *, sprint_field: str = SPRINT_FIELD_ID):
        self.path = Path(path) if path else DEFAULT_MAPPINGS_PATH
        self.sprint_field = sprint_field
        self._mappings: Mapping[str, FieldMapping] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, sprint_field: str = SPRINT_FIELD_ID) -> FieldMappingRegistry:
        """Build an already-loaded registry from an in-memory table."""
        registry = cls(sprint_field=sprint_field)
        registry._mappings = MappingProxyType(
            {key: _parse_entry(key, entry, sprint_field) for key, entry in data.items()}
        )
        return registry

    # ------------------ Loading ------------------
    def load(self) -> Mapping[str, FieldMapping]:
        if self._mappings is not None:
            return self._mappings
        if not self.path.exists():
            raise ConfigLoadError(f"Field mappings file not found at {self.path}")
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigLoadError(f"Failed to parse field mappings at {self.path}: {exc}") from exc
        if not isinstance(data, dict) or not data:
            raise ConfigLoadError(f"Field mappings at {self.path} must be a non-empty mapping")
        parsed = {str(key): _parse_entry(str(key), entry, self.sprint_field) for key, entry in data.items()}
        self._mappings = MappingProxyType(parsed)
        logger.info("Loaded field mappings: %d fields from %s", len(parsed), self.path)
        return self._mappings

    @property
    def loaded(self) -> bool:
        return self._mappings is not None

    # ------------------ Lookups ------------------
    def lookup(self, key: str) -> FieldMapping | None:
        return self.load().get(key)

    def exists(self, key: str) -> bool:
        return key in self.load()

    def available_fields(self) -> list[str]:
        return list(self.load())

    def list_by_type(self, field_type: str) -> list[str]:
        return [key for key, mapping in self.load().items() if mapping.type == field_type]

    def list_enumerated(self) -> dict[str, list[str]]:
        return {key: list(mapping.values) for key, mapping in self.load().items() if mapping.values}

    def describe(self, key: str) -> str:
        mapping = self.lookup(key)
        if mapping is None:
            return ""
        text = f"**{key}** ({mapping.type}): {mapping.description}"
        if mapping.values:
            text += f" | Possible values: {', '.join(mapping.values)}"
        if mapping.nullable:
            text += " [nullable]"
        return text

    def schema_markdown(self, fields: Iterable[str] | None = None) -> str:
        """Render the data schema section embedded in generated prompts.

        Keys without a mapping (including the guaranteed base keys) are skipped.
        """
        mappings = self.load()
        keys = list(fields) if fields is not None else list(mappings)
        lines = ["## Data Schema", "", "Each ticket contains the following fields:", ""]
        for key in keys:
            mapping = mappings.get(key)
            if mapping is None:
                continue
            line = f"- **{key}** (`{mapping.type}`): {mapping.description}"
            if mapping.nullable:
                line += " _(nullable)_"
            if mapping.values:
                line += f"\n  - Values: {', '.join(mapping.values)}"
            lines.append(line)
        return "\n".join(lines) + "\n"

    # ------------------ Presets ------------------
    @staticmethod
    def presets() -> dict[str, list[str]]:
        return {name: list(keys) for name, keys in FIELD_PRESETS.items()}

    @staticmethod
    def preset_exists(name: str) -> bool:
        return name in FIELD_PRESETS

    @staticmethod
    def preset_fields(name: str) -> list[str]:
        return list(FIELD_PRESETS.get(name, ()))

    # ------------------ Validation ------------------
    def validate_fields(self, keys: Sequence[str]) -> list[str]:
        """Return ``keys`` unchanged if every key is known, else raise.

        A key is known if it is mapped or one of the guaranteed base keys.
        """
        invalid = [k for k in keys if k not in GUARANTEED_FIELD_KEYS and not self.exists(k)]
        if invalid:
            raise InvalidFieldSelectionError(invalid)
        return list(keys)
