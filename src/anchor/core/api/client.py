"""HTTP client for the care log API.

Implements ``DraftRepository`` over the REST endpoints with a bearer token.
Transport failures become ``RepositoryConnectionError``; non-2xx answers
become ``RepositoryResponseError`` subclasses keyed on status code.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from anchor.domains.care_log.engine.repository import (
    RepositoryAuthError,
    RepositoryConflictError,
    RepositoryConnectionError,
    RepositoryNotFoundError,
    RepositoryResponseError,
)

logger = logging.getLogger(__name__)


class HttpDraftRepository:
    """Care log repository backed by the remote API.

    Usage::

        repo = HttpDraftRepository("https://api.example.org/api", token="...")
        document = await repo.get_today()
        await repo.aclose()

    Tests pass their own ``httpx.AsyncClient`` (typically with a
    ``MockTransport``) via ``client``. A client the repository built itself
    is rebuilt on the next request after ``aclose``, so the server can close
    it at the end of each lifespan.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._base_url = base_url.rstrip("/")
        self._headers = headers
        self._timeout = timeout
        self._owns_client = client is None
        if client is None:
            client = self._build_client()
        else:
            client.headers.update(headers)
        self._client = client

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self._base_url, headers=self._headers, timeout=self._timeout)

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed HTTP client for %s", self._base_url)

    # ------------------------------------------------------------------
    # DraftRepository
    # ------------------------------------------------------------------

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        document = await self._request("POST", "/care-logs", json=payload)
        if not isinstance(document, dict) or not document.get("id"):
            raise RepositoryResponseError("Create response did not include an id")
        return document

    async def update(self, log_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        document = await self._request("PATCH", f"/care-logs/{log_id}", json=payload)
        return document if isinstance(document, dict) else {}

    async def get_today(self) -> dict[str, Any] | None:
        try:
            document = await self._request("GET", "/care-logs/caregiver/today")
        except RepositoryNotFoundError:
            return None
        return document or None

    async def get_by_recipient_date(
        self, care_recipient_id: str, log_date: str
    ) -> dict[str, Any] | None:
        try:
            document = await self._request(
                "GET", f"/care-logs/recipient/{care_recipient_id}/date/{log_date}"
            )
        except RepositoryNotFoundError:
            return None
        return document or None

    async def submit(self, log_id: str) -> dict[str, Any]:
        result = await self._request("POST", f"/care-logs/{log_id}/submit")
        return result if isinstance(result, dict) else {}

    async def submit_section(self, log_id: str, section: str) -> dict[str, Any]:
        result = await self._request(
            "POST", f"/care-logs/{log_id}/submit-section", json={"section": section}
        )
        if not isinstance(result, dict):
            raise RepositoryResponseError("Submit-section response was not an object")
        completed = result.get("completedSections", result)
        if not isinstance(completed, dict):
            raise RepositoryResponseError("completedSections was not an object")
        return completed

    async def history(self, log_id: str) -> list[dict[str, Any]]:
        result = await self._request("GET", f"/care-logs/{log_id}/history")
        if isinstance(result, dict):
            result = result.get("history", [])
        return list(result or [])

    async def invalidate(
        self, log_id: str, reason: str, *, invalidated_by: str = ""
    ) -> dict[str, Any]:
        """Family admin action: hand a submitted log back to the caregiver.

        The server takes the acting user from the token; ``invalidated_by``
        is accepted for parity with the local repository.
        """
        result = await self._request(
            "POST", f"/care-logs/{log_id}/invalidate", json={"reason": reason}
        )
        return result if isinstance(result, dict) else {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        logger.debug("%s %s", method, path)
        if self._owns_client and self._client.is_closed:
            self._client = self._build_client()
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.warning("Care log API unreachable (%s %s): %s", method, path, exc)
            raise RepositoryConnectionError(
                f"Could not reach the care log API for {method} {path}"
            ) from exc

        status = response.status_code
        if status in (401, 403):
            raise RepositoryAuthError(_error_message(response), status_code=status)
        if status == 404:
            raise RepositoryNotFoundError(_error_message(response), status_code=status)
        if status in (400, 409):
            raise RepositoryConflictError(_error_message(response), status_code=status)
        if status >= 400:
            raise RepositoryResponseError(_error_message(response), status_code=status)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RepositoryResponseError(
                f"Invalid JSON from {method} {path}: {exc}", status_code=status
            ) from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return f"HTTP {response.status_code}: {body['error']}"
    return f"HTTP {response.status_code}: {response.text[:200]}"
