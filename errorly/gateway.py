"""
Sync Gateway: async REST client for the Errorly backend.

Every call is a single request/response. Transport problems surface as
NetworkFailure; a bad status, a non-JSON body or a response without the
expected entity surfaces as ServerRejection.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from errorly.config import API_BASE_URL, REQUEST_TIMEOUT_SECONDS, read_access_token
from errorly.errors import NetworkFailure, ServerRejection
from errorly.models import (
    Comment,
    CommentEnvelope,
    CommentsEnvelope,
    Post,
    PostEnvelope,
    PostsEnvelope,
    TargetKind,
    VoteEnvelope,
    VoteOperation,
    VoteRecord,
    VotesEnvelope,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)


class SyncGateway:
    """Thin async wrapper around the backend's REST endpoints."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token_provider: Callable[[], Optional[str]] = read_access_token,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def __aenter__(self) -> "SyncGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        allow_empty: bool = False,
    ) -> Dict[str, Any]:
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"{method} {path} timed out") from e
        except httpx.RequestError as e:
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

        if allow_empty and not response.content:
            payload: Any = {}
        else:
            try:
                payload = response.json()
            except ValueError as e:
                raise ServerRejection(
                    f"{method} {path} returned a non-JSON body", response.status_code
                ) from e
        if not isinstance(payload, dict):
            raise ServerRejection(f"{method} {path} returned an unexpected body", response.status_code)

        if not response.is_success:
            message = payload.get("message") or "Unknown error"
            raise ServerRejection(message, response.status_code)
        return payload

    @staticmethod
    def _unwrap(payload: Dict[str, Any], envelope: Type[E], key: str, what: str) -> Any:
        try:
            parsed = envelope.model_validate(payload)
        except ValidationError as e:
            raise ServerRejection(f"Malformed {what} response: {e.error_count()} invalid field(s)") from e
        value = getattr(parsed, key)
        if value is None:
            raise ServerRejection(parsed.message or f"Response did not include {key}")
        return value

    # Posts
    async def list_posts(self) -> List[Post]:
        payload = await self._request("GET", "/posts")
        return self._unwrap(payload, PostsEnvelope, "posts", "posts")

    async def create_post(self, title: str, content: str, tags: List[str]) -> Post:
        body = {"post": {"title": title, "content": content}, "tags": list(tags)}
        payload = await self._request("POST", "/posts", json=body)
        return self._unwrap(payload, PostEnvelope, "post", "post")

    async def update_post(self, post_id: int, title: str, content: str, tags: List[str]) -> Post:
        body = {"post": {"title": title, "content": content}, "tags": list(tags)}
        payload = await self._request("PUT", f"/posts/{post_id}", json=body)
        return self._unwrap(payload, PostEnvelope, "post", "post")

    async def delete_post(self, post_id: int) -> Optional[str]:
        payload = await self._request("DELETE", f"/posts/{post_id}", allow_empty=True)
        return payload.get("message")

    # Comments
    async def list_comments(self, post_id: int) -> List[Comment]:
        payload = await self._request("GET", "/comments", params={"post_id": post_id})
        comments = self._unwrap(payload, CommentsEnvelope, "comments", "comments")
        return [
            c if c.post_id is not None else c.model_copy(update={"post_id": post_id})
            for c in comments
        ]

    async def create_comment(
        self, post_id: int, content: str, parent_comment_id: Optional[int] = None
    ) -> Comment:
        body: Dict[str, Any] = {"post_id": post_id, "content": content}
        if parent_comment_id is not None:
            body["parent_comment_id"] = parent_comment_id
        payload = await self._request("POST", "/comments", json=body)
        return self._unwrap(payload, CommentEnvelope, "comment", "comment")

    async def update_comment(self, comment_id: int, content: str) -> Comment:
        payload = await self._request("PUT", f"/comments/{comment_id}", json={"content": content})
        return self._unwrap(payload, CommentEnvelope, "comment", "comment")

    async def delete_comment(self, comment_id: int) -> Optional[str]:
        payload = await self._request("DELETE", f"/comments/{comment_id}", allow_empty=True)
        return payload.get("message")

    # Votes
    async def list_votes(self) -> List[VoteRecord]:
        payload = await self._request("GET", "/votes")
        return self._unwrap(payload, VotesEnvelope, "votes", "votes")

    async def send_vote(
        self,
        operation: VoteOperation,
        kind: TargetKind,
        target_id: int,
        positive: bool,
    ) -> Union[Post, Comment]:
        """
        Send a vote mutation and return the target as the backend now sees it.

        The direction is omitted for deletes; removal is direction-agnostic.
        """
        body: Dict[str, Any] = {f"{kind.value}_id": target_id}
        if operation is not VoteOperation.delete:
            body["positive"] = positive
        payload = await self._request(operation.http_method, "/votes", json=body)
        return self._unwrap(payload, VoteEnvelope, kind.value, "vote")
