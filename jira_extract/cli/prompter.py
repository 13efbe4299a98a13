"""Interactive operator prompts (questionary) for queries, fields, and questions."""

from __future__ import annotations

from collections.abc import Sequence

import questionary

from jira_extract.core.errors import EmptyInputError

JQL_EXAMPLES: Sequence[str] = (
    "assignee = currentUser()",
    'project = "MYPROJECT" AND status = "In Progress"',
    "created >= -30d AND priority = High",
)

QUESTION_EXAMPLES: Sequence[str] = (
    "Analyze sprint performance and identify bottlenecks",
    "Review bug patterns and suggest improvements",
    "Evaluate team workload distribution",
)


def parse_field_list(text: str) -> list[str]:
    """Split a comma separated field list, dropping blanks and duplicates."""
    return list(dict.fromkeys(part.strip() for part in text.split(",") if part.strip()))


class Prompter:
    """Thin wrapper over questionary so the menu loop can be scripted in tests."""

    def text(self, message: str, *, instruction: str | None = None) -> str:
        # unsafe_ask lets Ctrl-C propagate as KeyboardInterrupt
        answer = questionary.text(message, instruction=instruction).unsafe_ask()
        return (answer or "").strip()

    def select(self, message: str, choices: Sequence[str]) -> str:
        return questionary.select(message, choices=list(choices)).unsafe_ask()

    def confirm(self, message: str, default: bool = True) -> bool:
        return bool(questionary.confirm(message, default=default).unsafe_ask())

    # ------------------ Required answers ------------------
    def required_text(self, message: str, what: str, examples: Sequence[str] = ()) -> str:
        instruction = None
        if examples:
            instruction = "e.g. " + " | ".join(examples)
        answer = self.text(message, instruction=instruction)
        if not answer:
            raise EmptyInputError(what)
        return answer

    def ask_jql(self) -> str:
        return self.required_text("JQL query:", "JQL query", JQL_EXAMPLES)

    def ask_analysis_question(self) -> str:
        return self.required_text("Analysis question:", "Analysis question", QUESTION_EXAMPLES)
