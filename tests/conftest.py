"""Test configuration ensuring local package import when editable install not active.

If users invoke `pytest` outside the project's virtualenv, we still add the project
root to sys.path so `import jira_extract` works.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jira_extract.core.field_mappings import FieldMappingRegistry  # noqa: E402

MAPPING_TABLE = {
    "priority": {"jira_field": "priority", "type": "string", "description": "Ticket priority", "nullable": True},
    "issueType": {
        "jira_field": "issuetype",
        "type": "string",
        "description": "Issue type",
        "values": ["Bug", "Story", "Task"],
    },
    "assignee": {"jira_field": "assignee", "type": "string", "description": "Assignee", "nullable": True},
    "reporter": {"jira_field": "reporter", "type": "string", "description": "Reporter"},
    "storyPoints": {
        "jira_field": "customfield_10016",
        "type": "number",
        "description": "Story points",
        "nullable": True,
    },
    "sprint": {"jira_field": "customfield_10021", "type": "object", "description": "Sprint", "nullable": True},
    "subtasks": {"jira_field": "subtasks", "type": "array", "description": "Sub-tasks"},
    "labels": {"jira_field": "labels", "type": "array", "description": "Labels"},
    "severity": {
        "jira_field": "customfield_10035",
        "type": "string",
        "description": "Bug severity",
        "nullable": True,
        "values": ["Critical", "Major", "Minor"],
    },
}


@pytest.fixture
def registry() -> FieldMappingRegistry:
    return FieldMappingRegistry.from_dict(MAPPING_TABLE)


def _make_issue(key: str = "ABC-1", **fields) -> dict:
    base = {
        "summary": "Login page crashes",
        "description": "Steps to reproduce",
        "status": {"name": "In Progress"},
        "priority": {"name": "High"},
        "assignee": {"displayName": "Alice"},
        "reporter": {"displayName": "Bob"},
        "created": "2024-09-01T10:00:00.000+0000",
        "updated": "2024-09-02T10:00:00.000+0000",
        "issuetype": {"name": "Bug"},
    }
    base.update(fields)
    return {"key": key, "fields": base}


@pytest.fixture
def make_issue():
    """Factory for raw Jira issue payloads; keyword arguments override fields."""
    return _make_issue
