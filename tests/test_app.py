import json
from datetime import UTC, datetime

import pytest

from jira_extract import app
from jira_extract.app import (
    FIELDS_CUSTOM,
    FIELDS_DEFAULT,
    FIELDS_PRESET,
    MENU_EXIT,
    MENU_EXTRACT,
    MENU_PRESETS,
    ExtractionRunner,
    apply_args,
    build_parser,
    resolve_selection,
)
from jira_extract.cli.prompter import Prompter, parse_field_list
from jira_extract.core.config import DEFAULT_MAX_TICKETS, AppSettings
from jira_extract.core.errors import (
    AuthenticationError,
    ConfigLoadError,
    InvalidFieldSelectionError,
    QuerySyntaxError,
)
from jira_extract.core.jira_client import JiraAPI
from jira_extract.core.service import ExtractionService
from jira_extract.output.files import FileManager

OVERRIDE_VARS = ("JQL_QUERY", "FIELDS", "FIELD_PRESET", "ANALYSIS_QUESTION", "DEBUG", "OUTPUT_DIR", "MAX_TICKETS")


class ScriptedPrompter(Prompter):
    def __init__(self, answers):
        self.answers = list(answers)

    def text(self, message, *, instruction=None):
        return self.answers.pop(0).strip()

    def select(self, message, choices):
        answer = self.answers.pop(0)
        assert answer in choices, (answer, choices)
        return answer


class DummyAPI(JiraAPI):
    def __init__(self, issues, errors=()):
        self.server = "https://example.atlassian.net"
        self.issues = issues
        self.errors = list(errors)
        self.queries = []

    def search(self, jql, max_results, fields):
        self.queries.append(jql)
        if self.errors:
            raise self.errors.pop(0)
        return {"total": len(self.issues), "issues": self.issues[:max_results]}


def _settings(**kwargs):
    return AppSettings(base_url="https://example.atlassian.net", email="me", api_token="tok", **kwargs)


def _runner(tmp_path, registry, api, prompter=None, **settings):
    lines = []
    service = ExtractionService(api, registry, clock=lambda: datetime(2024, 9, 3, 14, 5, 9, tzinfo=UTC))
    runner = ExtractionRunner(service, FileManager(tmp_path), _settings(**settings), prompter, out=lines.append)
    return runner, lines


def test_parse_field_list():
    assert parse_field_list(" priority, ,team,priority ") == ["priority", "team"]


def test_resolve_selection(registry):
    assert resolve_selection(registry, "priority, storyPoints", None) == ["priority", "storyPoints"]
    assert resolve_selection(registry, None, "bugs")[0] == "priority"
    assert resolve_selection(registry, None, None) == []
    with pytest.raises(InvalidFieldSelectionError) as excinfo:
        resolve_selection(registry, "priority,team,bogus", None)
    assert excinfo.value.invalid == ["team", "bogus"]
    with pytest.raises(InvalidFieldSelectionError, match="Unknown preset: nope"):
        resolve_selection(registry, None, "nope")


def test_run_once_uses_overrides(tmp_path, registry, make_issue):
    api = DummyAPI([make_issue("ABC-1")])
    runner, lines = _runner(tmp_path, registry, api, jql="project = ABC", fields="storyPoints")
    result, saved = runner.run_once()
    assert api.queries == ["project = ABC"]
    assert result.fields_used == ("key", "summary", "status", "storyPoints")
    assert saved.data.exists() and saved.prompt.exists() and saved.template.exists()
    assert any("1 of 1 tickets" in line for line in lines)


def test_run_once_invalid_fields_writes_nothing(tmp_path, registry, make_issue):
    api = DummyAPI([make_issue()])
    runner, _ = _runner(tmp_path, registry, api, jql="x", fields="team")
    with pytest.raises(InvalidFieldSelectionError):
        runner.run_once()
    assert api.queries == []
    assert not (tmp_path / "data").exists()


def test_failed_fetch_writes_nothing(tmp_path, registry):
    api = DummyAPI([], errors=[AuthenticationError()])
    runner, _ = _runner(tmp_path, registry, api, jql="x")
    with pytest.raises(AuthenticationError):
        runner.run_once()
    assert not (tmp_path / "data").exists()


def test_menu_loop_recovers_from_operator_errors(tmp_path, registry, make_issue):
    api = DummyAPI([make_issue("ABC-1")], errors=[QuerySyntaxError(["Field 'foo' does not exist"])])
    prompter = ScriptedPrompter(
        [
            MENU_EXTRACT,
            "foo = 1",
            FIELDS_CUSTOM,
            "priority, team",
            FIELDS_PRESET,
            "bugs",
            "",
            "Review bug patterns",
            "project = ABC",
            MENU_PRESETS,
            MENU_EXIT,
        ]
    )
    runner, lines = _runner(tmp_path, registry, api, prompter)
    runner.menu_loop()

    assert prompter.answers == []
    assert api.queries == ["foo = 1", "project = ABC"]
    data_files = list((tmp_path / "data" / "raw").glob("*.json"))
    assert len(data_files) == 1
    data = json.loads(data_files[0].read_text(encoding="utf-8"))
    assert data["query"] == "project = ABC"
    assert "severity" in data["fieldMappingsUsed"]
    assert any(line.startswith("bugs: ") for line in lines)


def test_interactive_default_fields(tmp_path, registry, make_issue):
    api = DummyAPI([make_issue()])
    prompter = ScriptedPrompter(["project = ABC", FIELDS_DEFAULT, "Workload"])
    runner, _ = _runner(tmp_path, registry, api, prompter)
    result, _ = runner.interactive_extraction()
    assert result.fields_used == ("key", "summary", "status", "priority", "assignee", "reporter", "team", "issueType")


def test_interactive_skips_prompts_with_overrides(tmp_path, registry, make_issue):
    api = DummyAPI([make_issue()])
    prompter = ScriptedPrompter(["project = ABC"])
    runner, _ = _runner(tmp_path, registry, api, prompter, preset="sprint", analysis_question="Velocity")
    result, _ = runner.interactive_extraction()
    assert "sprint" in result.fields_used
    assert prompter.answers == []


def test_interactive_invalid_override_falls_back_to_prompt(tmp_path, registry, make_issue):
    api = DummyAPI([make_issue()])
    prompter = ScriptedPrompter(["project = ABC", FIELDS_PRESET, "bugs", "Workload"])
    runner, _ = _runner(tmp_path, registry, api, prompter, fields="bogus")
    result, _ = runner.interactive_extraction()
    assert "severity" in result.fields_used
    assert prompter.answers == []
    assert runner.settings.fields is None


# ------------------ main() ------------------
@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in OVERRIDE_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JIRA_BASE_URL", "https://example.atlassian.net")
    monkeypatch.setenv("JIRA_EMAIL", "me@example.com")
    monkeypatch.setenv("JIRA_API_TOKEN", "tok")
    return monkeypatch


def _fake_api_class(make_issue, validate_error=None):
    class FakeAPI(DummyAPI):
        def __init__(self, server, email, token, **kwargs):
            super().__init__([make_issue("ABC-1"), make_issue("ABC-2")])

        def validate_connection(self):
            if validate_error:
                raise validate_error
            return {"displayName": "Me", "active": True}

    return FakeAPI


def test_main_list_presets(clean_env, capsys):
    assert app.main(["--list-presets"]) == 0
    out = capsys.readouterr().out
    assert "bugs: priority, severity" in out


def test_main_missing_settings(clean_env):
    clean_env.delenv("JIRA_API_TOKEN")
    assert app.main(["--jql", "x"]) == 1


def test_main_one_shot(clean_env, tmp_path, make_issue):
    clean_env.setattr(app, "JiraAPI", _fake_api_class(make_issue))
    code = app.main(["--jql", "project = ABC", "--preset", "bugs", "--output-dir", str(tmp_path / "out")])
    assert code == 0
    data_files = list((tmp_path / "out" / "data" / "raw").glob("jira-data-*.json"))
    assert len(data_files) == 1
    data = json.loads(data_files[0].read_text(encoding="utf-8"))
    assert len(data["tickets"]) == 2
    assert list((tmp_path / "out" / "prompts").glob("analysis-prompt-*.md"))


def test_main_auth_failure(clean_env, make_issue):
    clean_env.setattr(app, "JiraAPI", _fake_api_class(make_issue, AuthenticationError()))
    assert app.main(["--jql", "project = ABC"]) == 1


def test_main_unknown_preset(clean_env, tmp_path, make_issue):
    clean_env.setattr(app, "JiraAPI", _fake_api_class(make_issue))
    assert app.main(["--jql", "x", "--preset", "nope", "--output-dir", str(tmp_path)]) == 1
    assert not (tmp_path / "data").exists()


def test_apply_args_max_results():
    parser = build_parser()
    assert apply_args(_settings(), parser.parse_args(["--max-results", "5"])).max_tickets == 5
    assert apply_args(_settings(), parser.parse_args([])).max_tickets == DEFAULT_MAX_TICKETS
    for value in ("0", "-3"):
        with pytest.raises(ConfigLoadError, match="must be positive"):
            apply_args(_settings(), parser.parse_args(["--max-results", value]))


def test_main_rejects_zero_max_results(clean_env, tmp_path, make_issue):
    clean_env.setattr(app, "JiraAPI", _fake_api_class(make_issue))
    assert app.main(["--jql", "x", "--max-results", "0", "--output-dir", str(tmp_path)]) == 1
    assert not (tmp_path / "data").exists()
