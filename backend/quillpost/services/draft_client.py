"""
Quillpost Backend — Remote Draft API Client (Primary Tier)
===========================================================

What:  Async HTTP client for the /api/drafts endpoints, used by the editing
       side to persist snapshots on the server.
How:   httpx.AsyncClient for transport; tenacity retries transport-level
       failures (connection refused, timeouts) with exponential backoff and
       jitter. HTTP error statuses are never retried; they are translated into
       the application exception hierarchy.
Who:   TieredDraftWriter (primary tier), AutoSaveController via the writer.

Status Mapping:
    2xx      → parsed response model
    401/403  → UnauthorizedError
    404      → NotFoundError
    other    → PersistenceError (retryable for 5xx)
    transport failure after all attempts → PersistenceError(retryable=True)
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from quillpost.config import settings
from quillpost.exceptions import NotFoundError, PersistenceError, UnauthorizedError
from quillpost.schemas.draft import (
    CurrentUser,
    DeleteResponse,
    Document,
    DraftListResponse,
    DraftSnapshot,
)
from quillpost.services.draft_store_base import DraftStore

logger = logging.getLogger(__name__)

DRAFTS_PATH = "/api/drafts"


class DraftApiClient(DraftStore):
    """
    Client for the drafts API acting on behalf of one user.

    Usage:
        async with DraftApiClient(user=CurrentUser(id="u1")) as client:
            snapshot = await client.save(document)

    A preconfigured httpx.AsyncClient may be passed in (tests pass one backed
    by httpx.MockTransport); the client then does not own it.
    """

    name = "server"

    def __init__(
        self,
        user: Optional[CurrentUser] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_attempts: Optional[int] = None,
        retry_min_wait: Optional[float] = None,
        retry_max_wait: Optional[float] = None,
    ):
        self.user = user
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url or settings.draft_api_url,
            timeout=timeout or settings.draft_api_timeout,
        )
        self.retry_attempts = retry_attempts or settings.retry_max_attempts
        self.retry_min_wait = settings.retry_min_wait if retry_min_wait is None else retry_min_wait
        self.retry_max_wait = settings.retry_max_wait if retry_max_wait is None else retry_max_wait

    async def __aenter__(self) -> "DraftApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.user is not None:
            headers["X-User-Id"] = self.user.id
            if self.user.name:
                headers["X-User-Name"] = self.user.name
        return headers

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry_min_wait,
                max=self.retry_max_wait,
                jitter=self.retry_min_wait,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TransportError as e:
            logger.error("Drafts API unreachable after %d attempts: %s", self.retry_attempts, str(e))
            raise PersistenceError(
                message="The drafts service is unreachable.",
                retryable=True,
                context={"method": method, "url": url, "error_type": type(e).__name__},
            )

        self._raise_for_status(response, method, url)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, url: str) -> None:
        if response.is_success:
            return

        try:
            message = response.json().get("message")
        except ValueError:
            message = None
        context = {"method": method, "url": url, "status": response.status_code}

        if response.status_code in (401, 403):
            raise UnauthorizedError(message=message or "Not allowed to access this draft", context=context)
        if response.status_code == 404:
            raise NotFoundError(resource="draft", resource_id=url.rsplit("/", 1)[-1], context=context)

        logger.warning("Drafts API %s %s failed with %d", method, url, response.status_code)
        raise PersistenceError(
            message=message or "The drafts service rejected the request.",
            retryable=response.status_code >= 500,
            context=context,
        )

    @staticmethod
    def _parse(model, response: httpx.Response):
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise PersistenceError(
                message="The drafts service returned an unexpected response.",
                context={"error": str(e)},
            )

    # ── Operations ────────────────────────────────────────────────────────

    async def save(self, document: Document) -> DraftSnapshot:
        payload = document.model_dump(mode="json", by_alias=True)
        payload["content"] = document.serialized_content()
        response = await self._request("POST", DRAFTS_PATH, json=payload)
        return self._parse(DraftSnapshot, response)

    async def list(self, post_id: Optional[str], limit: Optional[int] = None) -> List[DraftSnapshot]:
        params: Dict[str, Any] = {"limit": limit or settings.draft_list_limit}
        if post_id:
            params["post_id"] = post_id
        response = await self._request("GET", DRAFTS_PATH, params=params)
        return self._parse(DraftListResponse, response).drafts

    async def get(self, draft_id: str) -> DraftSnapshot:
        response = await self._request("GET", f"{DRAFTS_PATH}/{draft_id}")
        return self._parse(DraftSnapshot, response)

    async def delete(self, draft_id: str) -> bool:
        response = await self._request("DELETE", f"{DRAFTS_PATH}/{draft_id}")
        return self._parse(DeleteResponse, response).deleted
