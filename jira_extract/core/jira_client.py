"""Jira API client wrapper (single-page JQL search on REST v2 or v3)."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, NoReturn

import requests
from jira import JIRA, JIRAError

from .config import DEFAULT_API_VERSION, DEFAULT_TIMEOUT_SECONDS
from .errors import (
    AuthenticationError,
    AuthorizationError,
    ExtractionError,
    QuerySyntaxError,
    TransportError,
)

logger = logging.getLogger(__name__)


def _error_payload(response: Any) -> dict[str, Any]:
    if response is None:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class JiraAPI:
    def __init__(
        self,
        server: str,
        email: str,
        token: str,
        *,
        verify_ssl: bool = True,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        api_version: str = DEFAULT_API_VERSION,
    ):
        self.server = server.rstrip("/")
        self.api_version = api_version
        if not verify_ssl:
            logger.warning("TLS certificate verification is disabled for %s", self.server)
        # No retries: a failed call ends the extraction attempt
        self.client = JIRA(
            basic_auth=(email, token),
            options={"server": self.server, "rest_api_version": api_version, "verify": verify_ssl},
            timeout=timeout,
            max_retries=0,
            get_server_info=False,
        )

    # ------------------ Public API ------------------
    def validate_connection(self) -> dict[str, Any]:
        """Return the authenticated user's profile; raise if the account is unusable."""
        logger.info("Validating JIRA credentials against %s", self.server)
        user = self._request("GET", f"/rest/api/{self.api_version}/myself")
        if not user.get("active", True):
            raise AuthenticationError("JIRA user is not active")
        logger.info(
            "JIRA connection successful - user: %s (%s)",
            user.get("displayName"),
            user.get("emailAddress"),
        )
        return user

    def search(self, jql: str, max_results: int, fields: Iterable[str]) -> dict[str, Any]:
        """Run ``jql`` and return ``{"total": int, "issues": [...]}`` for the first page only."""
        logger.info("Executing JQL: %s", jql)
        logger.debug("Max results: %d", max_results)
        params: dict[str, Any] = {"jql": jql, "maxResults": max_results}
        field_list = sorted(set(fields))
        if field_list:
            params["fields"] = ",".join(field_list)

        if self.api_version == "3":
            data = self._request("GET", "/rest/api/3/search/jql", params=params)
            total = data.get("total")
            if total is None:
                # Enhanced search omits totals; ask for an approximate count instead
                total = self._approximate_count(jql)
        else:
            params["startAt"] = 0
            data = self._request("GET", "/rest/api/2/search", params=params)
            total = data.get("total")

        issues = list(data.get("issues") or [])
        if not isinstance(total, int):
            total = len(issues)
        logger.info("JQL executed successfully - found %d tickets", total)
        return {"total": total, "issues": issues}

    # ------------------ Internal Helpers ------------------
    def _approximate_count(self, jql: str) -> int | None:
        data = self._request("POST", "/rest/api/3/search/approximate-count", json={"jql": jql})
        count = data.get("count")
        return count if isinstance(count, int) else None

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        session = getattr(self.client, "_session", None)
        if session is None:
            raise RuntimeError("JIRA session unavailable")
        url = f"{self.server}{path}"
        try:
            resp = session.request(method, url, **kwargs)
        except JIRAError as exc:
            self._raise_for_status(exc.status_code, exc.response, exc.text)
        except requests.exceptions.RequestException as exc:
            raise TransportError(self.server, type(exc).__name__) from exc
        if resp.status_code >= 400:
            self._raise_for_status(resp.status_code, resp, resp.text)
        try:
            data = resp.json()
        except ValueError as exc:
            raise ExtractionError(f"JIRA returned a non-JSON response for {path}") from exc
        if not isinstance(data, dict):
            raise ExtractionError(f"Unexpected JIRA payload type for {path}: {type(data)!r}")
        return data

    @staticmethod
    def _raise_for_status(status: int | None, response: Any, text: str | None) -> NoReturn:
        if status == 400:
            payload = _error_payload(response)
            messages = [str(m) for m in payload.get("errorMessages") or []]
            messages += [f"{k}: {v}" for k, v in (payload.get("errors") or {}).items()]
            raise QuerySyntaxError(messages)
        if status == 401:
            raise AuthenticationError()
        if status == 403:
            raise AuthorizationError()
        raise ExtractionError(f"JIRA API error {status}: {(text or '')[:200]}")
