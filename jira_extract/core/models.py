"""Domain data models for normalized tickets and extraction results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(slots=True, frozen=True)
class Sprint:
    name: str | None
    state: str | None
    start_date: str | None
    end_date: str | None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "state": self.state,
            "startDate": self.start_date,
            "endDate": self.end_date,
        }


# Structured sprint, a bare sprint string from older deployments, or no sprint
SprintValue = Union[Sprint, str, None]


@dataclass(slots=True, frozen=True)
class Subtask:
    key: str | None
    summary: str

    def to_dict(self) -> dict[str, str | None]:
        return {"key": self.key, "summary": self.summary}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (Sprint, Subtask)):
        return value.to_dict()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


@dataclass(slots=True, frozen=True)
class Ticket:
    key: str
    summary: str
    # Plain text on REST v2, an Atlassian Document Format dict on v3
    description: Any
    status: str
    priority: str
    assignee: str | None
    reporter: str
    created: str
    updated: str
    extra: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        if name in self.extra:
            return self.extra[name]
        if name in BASE_TICKET_FIELDS:
            return getattr(self, name)
        return default

    def to_dict(self) -> dict[str, Any]:
        """Flatten base and extra fields; extras win on name clashes."""
        out: dict[str, Any] = {name: getattr(self, name) for name in BASE_TICKET_FIELDS}
        for name, value in self.extra.items():
            out[name] = _jsonable(value)
        return out


BASE_TICKET_FIELDS: tuple[str, ...] = (
    "key",
    "summary",
    "description",
    "status",
    "priority",
    "assignee",
    "reporter",
    "created",
    "updated",
)


@dataclass(slots=True, frozen=True)
class ExtractionResult:
    timestamp: str
    query: str
    total_tickets: int
    extracted_at: str
    max_results: int
    tickets: tuple[Ticket, ...] = ()
    fields_used: tuple[str, ...] = ()
    field_mappings_used: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "query": self.query,
            "totalTickets": self.total_tickets,
            "extractedAt": self.extracted_at,
            "maxResults": self.max_results,
            "tickets": [t.to_dict() for t in self.tickets],
            "fieldsUsed": list(self.fields_used),
            "fieldMappingsUsed": list(self.field_mappings_used),
        }
