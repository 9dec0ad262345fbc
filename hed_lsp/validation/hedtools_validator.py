"""HED validation via the hedtools.org REST API.

Remote backend for environments without a local hedtools schema cache. Uses
the hedtools.org services endpoint, which is protected by a session cookie and
a CSRF token that are fetched once and reused for a few minutes.
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING

import httpx

from hed_lsp.validation.validation_types import ValidationFlags, ValidationIssue

if TYPE_CHECKING:
    from hed_lsp.schema.types import Vocabulary

logger = logging.getLogger(__name__)

HEDTOOLS_BASE_URL = "https://hedtools.org/hed"
_SESSION_TTL = 300  # seconds; CSRF tokens expire

# Codes that hedtools.org reports but that are not failures
_WARNING_CODES = frozenset({"TAG_EXTENDED", "SUGGESTION"})
_QUOTED_TAG = re.compile(r"'([^']+)'")
_CODE_LINE = re.compile(r"([A-Z_]+):\s*(.*)")
_CSRF_FIELD = re.compile(r'name="csrf_token"\s+value="([^"]+)"')


def _transport_issue(code: str, message: str) -> list[ValidationIssue]:
    return [ValidationIssue(code=code, level="error", message=message, internal_code=code)]


class HedToolsAPIValidator:
    """Validates HED strings against hedtools.org.

    The remote service returns message text only, so issues carry no bounds;
    the tag quoted in the message is kept for the named-tag position lookup.
    """

    def __init__(
        self,
        base_url: str = HEDTOOLS_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the hedtools.org API validator.

        Args:
            base_url: Base URL for hedtools.org (without trailing slash)
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (used for testing)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._session_cookie: str | None = None
        self._csrf_token: str | None = None
        self._session_timestamp: float = 0.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self._transport)

    def _session_valid(self) -> bool:
        return bool(
            self._session_cookie
            and self._csrf_token
            and (time.monotonic() - self._session_timestamp) < _SESSION_TTL
        )

    async def _get_session_info(self, client: httpx.AsyncClient) -> tuple[str, str]:
        """Obtain (and cache) the session cookie and CSRF token.

        Raises:
            httpx.HTTPError: If the request to hedtools.org fails
            ValueError: If cookie or CSRF token cannot be extracted
        """
        if self._session_valid():
            return self._session_cookie, self._csrf_token

        response = await client.get(f"{self.base_url}/services")
        response.raise_for_status()

        cookie = response.cookies.get("session")
        if not cookie:
            match = re.search(r"session=([^;]+)", response.headers.get("set-cookie", ""))
            cookie = match.group(1) if match else None
        if not cookie:
            raise ValueError("no session cookie in hedtools.org response")

        csrf_match = _CSRF_FIELD.search(response.text)
        if not csrf_match:
            raise ValueError("no CSRF token in hedtools.org response")

        self._session_cookie = cookie
        self._csrf_token = csrf_match.group(1)
        self._session_timestamp = time.monotonic()
        return self._session_cookie, self._csrf_token

    def _reset_session(self) -> None:
        self._session_cookie = None
        self._csrf_token = None

    async def validate(
        self,
        hed_string: str,
        vocabulary: Vocabulary,
        flags: ValidationFlags | None = None,
    ) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        """Validate a cleaned HED string remotely.

        Transport and session failures come back as a single error issue
        instead of raising.

        Returns:
            Tuple of (syntax_issues, semantic_issues); hedtools.org does not
            separate them, so everything is reported as semantic
        """
        flags = flags or ValidationFlags()
        payload = {
            "service": "strings_validate",
            "schema_version": vocabulary.spec.as_list() if len(vocabulary.spec.parts) > 1 else vocabulary.version,
            "string_list": [hed_string],
            "check_for_warnings": True,
        }
        if flags.definitions:
            payload["definition_string"] = ",".join(flags.definitions)

        try:
            async with self._client() as client:
                cookie, csrf_token = await self._get_session_info(client)
                response = await client.post(
                    f"{self.base_url}/services_submit",
                    json=payload,
                    headers={
                        "X-CSRFToken": csrf_token,
                        "Cookie": f"session={cookie}",
                        "Accept": "application/json",
                    },
                )
                response.raise_for_status()
                result = response.json()
        except httpx.TimeoutException:
            logger.warning("hedtools.org validation timed out after %.1fs", self.timeout)
            return [], _transport_issue("TIMEOUT", "hedtools.org validation timed out")
        except httpx.HTTPError as e:
            logger.warning("hedtools.org HTTP error: %s", e)
            return [], _transport_issue("HTTP_ERROR", f"hedtools.org request failed: {e}")
        except ValueError as e:
            logger.warning("hedtools.org session error: %s", e)
            self._reset_session()
            return [], _transport_issue("SESSION_ERROR", f"hedtools.org authentication failed: {e}")

        return [], self._parse_response(result)

    def _parse_response(self, result: dict) -> list[ValidationIssue]:
        results = result.get("results", {})
        if results.get("msg_category", "error") == "success":
            return []
        return self._parse_error_data(results.get("data", "Unknown validation error"))

    def _parse_error_data(self, error_data: str | list) -> list[ValidationIssue]:
        """Parse hedtools.org error text into issues.

        Each line looks like ``CODE: message``; lines without a code become
        ``VALIDATION_ERROR``.
        """
        if isinstance(error_data, list):
            lines = [str(line) for line in error_data]
        elif isinstance(error_data, str):
            lines = error_data.split("\n")
        else:
            return [ValidationIssue(code="PARSE_ERROR", level="error", message=str(error_data))]

        issues = []
        for line in lines:
            text = line.strip()
            if not text:
                continue
            match = _CODE_LINE.match(text)
            code, message = (match.group(1), match.group(2) or text) if match else ("VALIDATION_ERROR", text)
            quoted = _QUOTED_TAG.search(message)
            issues.append(
                ValidationIssue(
                    code=code,
                    level="warning" if code in _WARNING_CODES else "error",
                    message=message,
                    tag=quoted.group(1) if quoted else None,
                    internal_code=code,
                )
            )
        return issues
