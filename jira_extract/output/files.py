"""Write extraction data, prompt documents, and the per-day history log."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import pytz

from jira_extract.core.config import HISTORY_DIR, PROMPTS_DIR, RAW_DATA_DIR, TIMEZONE
from jira_extract.core.field_mappings import FieldMappingRegistry
from jira_extract.core.models import ExtractionResult

from .reports import build_prompt, build_response_template

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SavedFiles:
    data: Path
    prompt: Path
    template: Path
    history: Path


class FileManager:
    def __init__(self, base_dir: str | Path = ".", timezone: str = TIMEZONE):
        self.base_dir = Path(base_dir)
        self._tz = pytz.timezone(timezone)

    @property
    def raw_dir(self) -> Path:
        return self.base_dir / RAW_DATA_DIR

    @property
    def prompts_dir(self) -> Path:
        return self.base_dir / PROMPTS_DIR

    @property
    def history_dir(self) -> Path:
        return self.base_dir / HISTORY_DIR

    def ensure_directories(self) -> None:
        for directory in (self.raw_dir, self.prompts_dir, self.history_dir):
            directory.mkdir(parents=True, exist_ok=True)

    # ------------------ Writers ------------------
    def save_extracted_data(self, result: ExtractionResult) -> Path:
        self.ensure_directories()
        path = self.raw_dir / f"jira-data-{result.timestamp}.json"
        logger.info("Saving extracted data to %s", path)
        path.write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Data saved successfully - %d tickets", len(result.tickets))
        return path

    def save_prompt_file(
        self, result: ExtractionResult, analysis_question: str, registry: FieldMappingRegistry
    ) -> Path:
        self.ensure_directories()
        path = self.prompts_dir / f"analysis-prompt-{result.timestamp}.md"
        logger.info("Generating analysis prompt %s", path)
        path.write_text(build_prompt(result, analysis_question, registry, self._tz), encoding="utf-8")
        return path

    def save_response_template(self, result: ExtractionResult) -> Path:
        self.ensure_directories()
        path = self.prompts_dir / f"analysis-response-{result.timestamp}.md"
        logger.info("Generating response template %s", path)
        path.write_text(build_response_template(result, self._tz), encoding="utf-8")
        return path

    def append_history(
        self,
        result: ExtractionResult,
        analysis_question: str,
        files: dict[str, Path],
        *,
        now: datetime | None = None,
    ) -> Path:
        """Append one entry to today's history file (a JSON list)."""
        self.ensure_directories()
        moment = (now or datetime.now(pytz.UTC)).astimezone(self._tz)
        path = self.history_dir / f"history-{moment.strftime('%Y-%m-%d')}.json"
        entries = self._load_history(path, moment)
        entries.append(
            {
                "timestamp": result.timestamp,
                "recordedAt": moment.isoformat(),
                "query": result.query,
                "fields": list(result.fields_used),
                "ticketCount": len(result.tickets),
                "totalTickets": result.total_tickets,
                "analysisQuestion": analysis_question,
                "files": {name: str(p) for name, p in files.items()},
            }
        )
        path.write_text(json.dumps(entries, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("History entry appended to %s", path)
        return path

    @staticmethod
    def _load_history(path: Path, moment: datetime) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            loaded, reason = None, str(exc)
        else:
            reason = f"expected a JSON list, got {type(loaded).__name__}"
        if isinstance(loaded, list):
            return loaded
        # Keep the unreadable log next to the new one instead of overwriting it
        backup = path.with_name(f"{path.stem}.corrupt-{moment.strftime('%H-%M-%S')}{path.suffix}")
        path.replace(backup)
        logger.warning("History file %s is unreadable (%s); moved to %s", path, reason, backup)
        return []

    def save_all(
        self, result: ExtractionResult, analysis_question: str, registry: FieldMappingRegistry
    ) -> SavedFiles:
        data = self.save_extracted_data(result)
        prompt = self.save_prompt_file(result, analysis_question, registry)
        template = self.save_response_template(result)
        history = self.append_history(
            result, analysis_question, {"data": data, "prompt": prompt, "template": template}
        )
        return SavedFiles(data=data, prompt=prompt, template=template, history=history)
