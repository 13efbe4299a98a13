"""Mapping raw Jira issue JSON into Ticket instances via the field mapping registry."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

import pandas as pd

from .config import GUARANTEED_FIELD_KEYS, STANDARD_JIRA_FIELDS
from .field_mappings import FieldKind, FieldMappingRegistry
from .models import Sprint, SprintValue, Subtask, Ticket


def _nested(value: Any, attr: str) -> Any:
    if isinstance(value, dict):
        return value.get(attr)
    return None


def extract_name(raw: Any) -> str | None:
    return _nested(raw, "name")


def extract_display_name(raw: Any) -> str | None:
    return _nested(raw, "displayName")


def project_subtasks(raw: Any) -> list[Subtask]:
    if not isinstance(raw, list):
        return []
    out: list[Subtask] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        out.append(Subtask(key=item.get("key"), summary=(item.get("fields") or {}).get("summary") or ""))
    return out


def normalize_sprint(raw: Any) -> SprintValue:
    """Reduce a sprint field to a single sprint.

    Lists keep only their first element. Some Jira deployments return the
    legacy ``com.atlassian.greenhopper...Sprint@...[name=...]`` string; that is
    passed through untouched.
    """
    if not raw:
        return None
    sprint = raw[0] if isinstance(raw, list) else raw
    if not sprint:
        return None
    if isinstance(sprint, str):
        return sprint
    if not isinstance(sprint, dict):
        return None
    return Sprint(
        name=sprint.get("name") or None,
        state=sprint.get("state") or None,
        start_date=sprint.get("startDate") or None,
        end_date=sprint.get("endDate") or None,
    )


def _passthrough(raw: Any) -> Any:
    return raw


TRANSFORMS: Mapping[FieldKind, Callable[[Any], Any]] = {
    FieldKind.NAME: extract_name,
    FieldKind.DISPLAY_NAME: extract_display_name,
    FieldKind.SUBTASKS: project_subtasks,
    FieldKind.SPRINT: normalize_sprint,
    FieldKind.RAW: _passthrough,
}


class TicketNormalizer:
    def __init__(self, registry: FieldMappingRegistry):
        self.registry = registry

    def jira_fields_for(self, field_keys: Iterable[str]) -> set[str]:
        """Jira field ids to request for ``field_keys`` (order not significant)."""
        fields = set(STANDARD_JIRA_FIELDS)
        for key in field_keys:
            mapping = self.registry.lookup(key)
            if mapping is not None:
                fields.add(mapping.jira_field)
        return fields

    def normalize(self, raw: Mapping[str, Any], field_keys: Iterable[str]) -> Ticket:
        fields = raw.get("fields") or {}
        extra: dict[str, Any] = {}
        for key in field_keys:
            if key in GUARANTEED_FIELD_KEYS:
                continue
            mapping = self.registry.lookup(key)
            # Unmapped keys are dropped, not reported
            if mapping is None:
                continue
            extra[key] = TRANSFORMS[mapping.kind](fields.get(mapping.jira_field))

        return Ticket(
            key=str(raw.get("key") or ""),
            summary=fields.get("summary") or "",
            description=fields.get("description") or "",
            status=extract_name(fields.get("status")) or "Unknown",
            priority=extract_name(fields.get("priority")) or "Unknown",
            assignee=extract_display_name(fields.get("assignee")) or None,
            reporter=extract_display_name(fields.get("reporter")) or "Unknown",
            created=fields.get("created") or "",
            updated=fields.get("updated") or "",
            extra=extra,
        )


def tickets_to_dataframe(tickets: Iterable[Ticket]) -> pd.DataFrame:
    rows = []
    for t in tickets:
        row = t.to_dict()
        row["assignee"] = row.get("assignee") or "Unassigned"
        rows.append(row)
    df = pd.DataFrame(rows)
    for col in ("created", "updated"):
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], utc=True, errors="coerce")
    return df
