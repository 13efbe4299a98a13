"""ExtractionService: orchestrates field resolution, search, and normalization."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from .config import DEFAULT_PRESET, GUARANTEED_FIELD_KEYS
from .field_mappings import FieldMappingRegistry
from .jira_client import JiraAPI
from .mappers import TicketNormalizer
from .models import ExtractionResult

ProgressCallback = Callable[[str, int | None, int | None], None]

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def file_timestamp(moment: datetime) -> str:
    """Filesystem-safe stamp, e.g. ``2024-09-01T10-00-00``."""
    return moment.strftime("%Y-%m-%dT%H-%M-%S")


class ExtractionService:
    def __init__(
        self,
        api: JiraAPI,
        registry: FieldMappingRegistry,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.api = api
        self.registry = registry
        self.normalizer = TicketNormalizer(registry)
        self._clock = clock

    def resolve_fields(self, requested: Sequence[str] | None) -> list[str]:
        """Effective key list: guaranteed keys first, then the selection (or basic preset)."""
        selection = list(requested) if requested else self.registry.preset_fields(DEFAULT_PRESET)
        return list(dict.fromkeys([*GUARANTEED_FIELD_KEYS, *selection]))

    def extract(
        self,
        jql: str,
        max_results: int,
        requested_fields: Sequence[str] | None = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> ExtractionResult:
        started = self._clock()
        field_keys = self.resolve_fields(requested_fields)
        jira_fields = self.normalizer.jira_fields_for(field_keys)
        logger.debug("Requesting Jira fields: %s", ", ".join(sorted(jira_fields)))

        if progress:
            progress("Querying Jira", None, None)
        response = self.api.search(jql, max_results, sorted(jira_fields))
        raw_issues = response.get("issues") or []

        total = len(raw_issues)
        logger.info("Processing %d tickets", total)
        tickets = []
        for idx, raw in enumerate(raw_issues, start=1):
            tickets.append(self.normalizer.normalize(raw, field_keys))
            if progress:
                progress("Normalizing tickets", idx, total)

        mapped = tuple(
            key for key in field_keys if key not in GUARANTEED_FIELD_KEYS and self.registry.exists(key)
        )
        result = ExtractionResult(
            timestamp=file_timestamp(started),
            query=jql,
            total_tickets=int(response.get("total") or 0),
            extracted_at=started.isoformat(),
            max_results=max_results,
            tickets=tuple(tickets),
            fields_used=tuple(field_keys),
            field_mappings_used=mapped,
        )
        logger.info("Data extraction completed - %d tickets processed", len(tickets))
        return result
