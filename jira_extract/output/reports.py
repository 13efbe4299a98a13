"""Markdown prompt and response-template documents built from an extraction."""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import datetime

import pandas as pd
import pytz

from jira_extract.core.field_mappings import FieldMappingRegistry
from jira_extract.core.mappers import tickets_to_dataframe
from jira_extract.core.models import ExtractionResult, Ticket

SUMMARY_COLUMNS = ("status", "priority", "assignee")
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


def format_local(iso_value: str, tz: pytz.BaseTzInfo) -> str:
    """Render an ISO timestamp in ``tz``; unparsable input is returned as-is."""
    ts = pd.to_datetime(iso_value, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return iso_value
    return ts.tz_convert(tz).strftime(DISPLAY_FORMAT)


def distribution_summary(tickets: Iterable[Ticket], columns: Iterable[str] = SUMMARY_COLUMNS) -> str:
    df = tickets_to_dataframe(tickets)
    if df.empty:
        return "_No tickets extracted._\n"
    sections = []
    for col in columns:
        if col not in df.columns:
            continue
        counts = df[col].fillna("None").astype(str).value_counts()
        lines = [f"**By {col}**"]
        lines += [f"- {name}: {count}" for name, count in counts.items()]
        sections.append("\n".join(lines))
    return "\n\n".join(sections) + "\n"


def build_prompt(
    result: ExtractionResult,
    analysis_question: str,
    registry: FieldMappingRegistry,
    tz: pytz.BaseTzInfo = pytz.UTC,
) -> str:
    tickets_json = json.dumps([t.to_dict() for t in result.tickets], indent=2, ensure_ascii=False)
    return f"""# Jira Ticket Analysis - {result.timestamp}

## Context
{analysis_question}

## Executed JQL Query
```
{result.query}
```

## Data Summary
- **Total tickets found**: {result.total_tickets}
- **Tickets extracted**: {len(result.tickets)}
- **Extraction date**: {format_local(result.extracted_at, tz)}

{registry.schema_markdown(result.fields_used)}
## Distribution
{distribution_summary(result.tickets)}
## Extracted Data
```json
{tickets_json}
```

## Request
Analyze the data above and provide insights on: **{analysis_question}**

Structure your answer as:
1. **Executive Summary**
2. **Key Findings**
3. **Recommendations**
4. **Next Steps**

Consider the following aspects in your analysis:
- Distribution by status, priority and assignee
- Temporal patterns (creation vs update)
- Bottlenecks or anomalies
- Practical, actionable suggestions
"""


def build_response_template(
    result: ExtractionResult,
    tz: pytz.BaseTzInfo = pytz.UTC,
    now: datetime | None = None,
) -> str:
    generated = (now or datetime.now(pytz.UTC)).astimezone(tz).strftime(DISPLAY_FORMAT)
    return f"""# Jira Analysis - {result.timestamp}

## Executive Summary
<!-- Fill in a 2-3 line summary of the main insights -->

## Key Findings
<!-- List the 3-5 most important findings -->

## Recommendations
<!-- Provide practical, actionable recommendations -->

## Next Steps
<!-- Suggest concrete next steps -->

---
**Analyzed data**: {len(result.tickets)} tickets
**Query**: `{result.query}`
*Template generated on {generated}*
"""
