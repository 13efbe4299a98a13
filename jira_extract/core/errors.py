"""Error taxonomy for configuration, Jira access, and operator input."""

from __future__ import annotations

from collections.abc import Sequence


class JiraExtractError(Exception):
    """Base class for every error the extractor reports to the operator."""

    #: Whether the interactive loop may re-prompt instead of exiting.
    recoverable: bool = False


class ConfigLoadError(JiraExtractError):
    """Field mapping source or required settings missing or unparsable."""


class ExtractionError(JiraExtractError):
    """Upstream search failed; no result is produced."""


class AuthenticationError(ExtractionError):
    def __init__(self, message: str = "JIRA authentication failed - check JIRA_EMAIL and JIRA_API_TOKEN"):
        super().__init__(message)


class AuthorizationError(ExtractionError):
    def __init__(self, message: str = "JIRA access denied - insufficient permissions"):
        super().__init__(message)


class QuerySyntaxError(ExtractionError):
    recoverable = True

    def __init__(self, messages: Sequence[str]):
        self.messages = list(messages) or ["Invalid JQL syntax"]
        super().__init__(f"Invalid JQL query: {', '.join(self.messages)}")


class TransportError(ExtractionError):
    def __init__(self, server: str, detail: str):
        self.server = server
        super().__init__(f"Could not reach JIRA at {server} ({detail}) - check JIRA_BASE_URL")


class InvalidFieldSelectionError(JiraExtractError):
    recoverable = True

    def __init__(self, invalid: Sequence[str], message: str = "Unknown fields"):
        self.invalid = list(invalid)
        super().__init__(f"{message}: {', '.join(self.invalid)}")


class EmptyInputError(JiraExtractError):
    recoverable = True

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"{what} cannot be empty")
