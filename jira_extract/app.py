"""Command line entry point: one-shot extraction or interactive menu loop."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable, Sequence
from dataclasses import replace
from pathlib import Path
from typing import TypeVar

from dotenv import find_dotenv, load_dotenv

from jira_extract.cli.prompter import Prompter, parse_field_list
from jira_extract.core.config import DEFAULT_MAPPINGS_PATH, SPRINT_FIELD_ID, AppSettings
from jira_extract.core.errors import (
    ConfigLoadError,
    InvalidFieldSelectionError,
    JiraExtractError,
    QuerySyntaxError,
)
from jira_extract.core.field_mappings import FieldMappingRegistry
from jira_extract.core.jira_client import JiraAPI
from jira_extract.core.models import ExtractionResult
from jira_extract.core.service import ExtractionService
from jira_extract.output.files import FileManager, SavedFiles

logger = logging.getLogger("jira_extract")

T = TypeVar("T")

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
DEFAULT_ANALYSIS_QUESTION = "Summarize the extracted tickets and highlight risks and bottlenecks"

MENU_EXTRACT = "New extraction"
MENU_PRESETS = "List presets"
MENU_FIELDS = "List fields"
MENU_EXIT = "Exit"
MENU_CHOICES: Sequence[str] = (MENU_EXTRACT, MENU_PRESETS, MENU_FIELDS, MENU_EXIT)

FIELDS_DEFAULT = "Default (basic preset)"
FIELDS_PRESET = "Choose a preset"
FIELDS_CUSTOM = "Custom field list"


def resolve_selection(registry: FieldMappingRegistry, fields: str | None, preset: str | None) -> list[str]:
    """Turn a field list or preset name into semantic keys; empty means default preset."""
    if fields:
        return registry.validate_fields(parse_field_list(fields))
    if preset:
        if not registry.preset_exists(preset):
            raise InvalidFieldSelectionError([preset], "Unknown preset")
        return registry.preset_fields(preset)
    return []


def print_presets(registry: FieldMappingRegistry, out: Callable[[str], None] = print) -> None:
    for name, keys in registry.presets().items():
        out(f"{name}: {', '.join(keys)}")


def print_fields(registry: FieldMappingRegistry, out: Callable[[str], None] = print) -> None:
    for key in registry.available_fields():
        out(f"- {registry.describe(key)}")


def _log_progress(message: str, done: int | None, total: int | None) -> None:
    if done is None or total is None:
        logger.info("%s", message)
    elif done == total:
        logger.debug("%s: %d/%d", message, done, total)


class ExtractionRunner:
    def __init__(
        self,
        service: ExtractionService,
        files: FileManager,
        settings: AppSettings,
        prompter: Prompter | None = None,
        out: Callable[[str], None] = print,
    ):
        self.service = service
        self.registry = service.registry
        self.files = files
        self.settings = settings
        self.prompter = prompter or Prompter()
        self.out = out

    # ------------------ Shared ------------------
    def execute(self, jql: str, fields: Sequence[str], question: str) -> tuple[ExtractionResult, SavedFiles]:
        result = self.service.extract(jql, self.settings.max_tickets, fields, progress=_log_progress)
        saved = self.files.save_all(result, question, self.registry)
        self._report(result, saved)
        return result, saved

    def _report(self, result: ExtractionResult, saved: SavedFiles) -> None:
        self.out(f"\nExtraction completed: {len(result.tickets)} of {result.total_tickets} tickets")
        self.out("Files generated:")
        self.out(f"  Data:              {saved.data}")
        self.out(f"  Analysis prompt:   {saved.prompt}")
        self.out(f"  Response template: {saved.template}")
        self.out(f"  History:           {saved.history}")

    def show_presets(self) -> None:
        print_presets(self.registry, self.out)

    def show_fields(self) -> None:
        print_fields(self.registry, self.out)

    # ------------------ One-shot ------------------
    def run_once(self) -> tuple[ExtractionResult, SavedFiles]:
        jql = self.settings.jql or ""
        fields = resolve_selection(self.registry, self.settings.fields, self.settings.preset)
        question = self.settings.analysis_question or DEFAULT_ANALYSIS_QUESTION
        return self.execute(jql, fields, question)

    # ------------------ Interactive ------------------
    def _until_valid(self, ask: Callable[[], T]) -> T:
        while True:
            try:
                return ask()
            except JiraExtractError as exc:
                if not exc.recoverable:
                    raise
                logger.warning("%s", exc)

    def _ask_fields(self) -> list[str]:
        if self.settings.fields or self.settings.preset:
            try:
                return resolve_selection(self.registry, self.settings.fields, self.settings.preset)
            except InvalidFieldSelectionError as exc:
                # The environment cannot be re-entered; drop the override and ask instead
                logger.warning("Ignoring FIELDS/FIELD_PRESET override: %s", exc)
                self.settings = replace(self.settings, fields=None, preset=None)
        choice = self.prompter.select("Which fields should be extracted?", [FIELDS_DEFAULT, FIELDS_PRESET, FIELDS_CUSTOM])
        if choice == FIELDS_PRESET:
            preset = self.prompter.select("Preset:", list(self.registry.presets()))
            return resolve_selection(self.registry, None, preset)
        if choice == FIELDS_CUSTOM:
            text = self.prompter.required_text("Fields (comma separated):", "Field list")
            return resolve_selection(self.registry, text, None)
        return []

    def interactive_extraction(self) -> tuple[ExtractionResult, SavedFiles]:
        jql = self._until_valid(self.prompter.ask_jql)
        fields = self._until_valid(self._ask_fields)
        question = self.settings.analysis_question or self._until_valid(self.prompter.ask_analysis_question)
        self.out(f"\nJQL: {jql}\nFields: {', '.join(self.service.resolve_fields(fields))}")
        self.out(f"Analysis: {question}\nMax tickets: {self.settings.max_tickets}")
        while True:
            try:
                return self.execute(jql, fields, question)
            except QuerySyntaxError as exc:
                logger.error("%s", exc)
                jql = self._until_valid(self.prompter.ask_jql)

    def menu_loop(self) -> None:
        while True:
            choice = self.prompter.select("What do you want to do?", MENU_CHOICES)
            if choice == MENU_EXTRACT:
                self.interactive_extraction()
            elif choice == MENU_PRESETS:
                self.show_presets()
            elif choice == MENU_FIELDS:
                self.show_fields()
            else:
                return


# ------------------ Entry point ------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jira-extract",
        description="Extract Jira tickets with JQL and generate analysis prompts.",
    )
    parser.add_argument("--jql", help="JQL query; runs once without prompts")
    parser.add_argument("--fields", help="Comma separated semantic field keys")
    parser.add_argument("--preset", help="Field preset name (sprint, bugs, features, basic)")
    parser.add_argument("--question", help="Analysis question embedded in the prompt")
    parser.add_argument("--max-results", type=int, help="Maximum tickets to fetch")
    parser.add_argument("--mappings", type=Path, help="Path to the field mappings YAML file")
    parser.add_argument("--output-dir", type=Path, help="Directory that receives data/ and prompts/")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--list-fields", action="store_true", help="Print mapped fields and exit")
    parser.add_argument("--list-presets", action="store_true", help="Print field presets and exit")
    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)
    # urllib3/jira chatter only helps when debugging HTTP itself
    for noisy in ("urllib3", "jira"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def apply_args(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    overrides = {}
    if args.jql:
        overrides["jql"] = args.jql.strip()
    if args.fields:
        overrides["fields"] = args.fields
    if args.preset:
        overrides["preset"] = args.preset
    if args.question:
        overrides["analysis_question"] = args.question
    if args.max_results is not None:
        if args.max_results <= 0:
            raise ConfigLoadError(f"--max-results must be positive, got {args.max_results}")
        overrides["max_tickets"] = args.max_results
    if args.mappings:
        overrides["mappings_path"] = args.mappings
    if args.output_dir:
        overrides["output_dir"] = args.output_dir
    if args.debug:
        overrides["debug"] = True
    return replace(settings, **overrides)


def _list_only(args: argparse.Namespace) -> int:
    path = args.mappings or os.environ.get("FIELD_MAPPINGS_PATH") or DEFAULT_MAPPINGS_PATH
    registry = FieldMappingRegistry(path, sprint_field=os.environ.get("JIRA_SPRINT_FIELD") or SPRINT_FIELD_ID)
    if args.list_presets:
        print_presets(registry)
    if args.list_fields:
        print_fields(registry)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(find_dotenv(usecwd=True))
    configure_logging(args.debug or os.environ.get("DEBUG", "").lower() == "true")

    try:
        if args.list_fields or args.list_presets:
            return _list_only(args)

        settings = apply_args(AppSettings.from_env(), args)
        if settings.debug:
            logging.getLogger().setLevel(logging.DEBUG)
            logger.debug("Debug mode enabled - max tickets: %d", settings.max_tickets)

        registry = FieldMappingRegistry(settings.mappings_path, sprint_field=settings.sprint_field)
        registry.load()

        api = JiraAPI(
            settings.base_url,
            settings.email,
            settings.api_token,
            verify_ssl=settings.verify_ssl,
            timeout=settings.timeout,
            api_version=settings.api_version,
        )
        api.validate_connection()

        runner = ExtractionRunner(
            ExtractionService(api, registry),
            FileManager(settings.output_dir, settings.timezone),
            settings,
        )
        if settings.non_interactive:
            runner.run_once()
        else:
            runner.menu_loop()
    except JiraExtractError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
