# tests/test_gateway.py
"""Wire-level tests for the Sync Gateway."""

import json

import httpx
import pytest

from errorly.errors import NetworkFailure, ServerRejection
from errorly.gateway import SyncGateway
from errorly.models import Post, TargetKind, VoteOperation

POST_JSON = {
    "id": 7,
    "user_id": "user-1",
    "title": "Segfault",
    "content": "It crashes",
    "tags": None,
    "score": 4,
    "created_at": "2024-01-01T12:00:00",
    "last_updated": "2024-01-01T12:00:00",
}

COMMENT_JSON = {
    "id": 3,
    "user_id": "user-1",
    "parent_comment_id": None,
    "content": "Try -g",
    "score": 1,
    "created_at": "2024-01-01T12:05:00",
    "last_updated": "2024-01-01T12:05:00",
}


def make_gateway(handler, token="secret"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SyncGateway(base_url="http://api.test/", token_provider=lambda: token, client=client)


class Recorder:
    """MockTransport handler that records requests and replies from a script."""

    def __init__(self, status=200, body=None, raw=None):
        self.status = status
        self.body = body
        self.raw = raw
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw is not None:
            return httpx.Response(self.status, content=self.raw)
        return httpx.Response(self.status, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


class TestRequests:

    @pytest.mark.asyncio
    async def test_bearer_header_and_url(self):
        recorder = Recorder(body={"posts": [POST_JSON]})
        gateway = make_gateway(recorder)

        posts = await gateway.list_posts()

        request = recorder.requests[0]
        assert request.method == "GET"
        assert str(request.url) == "http://api.test/posts"
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["Content-Type"] == "application/json"
        assert isinstance(posts[0], Post)
        assert posts[0].tags == []

    @pytest.mark.asyncio
    async def test_no_token_no_header(self):
        recorder = Recorder(body={"posts": []})
        gateway = make_gateway(recorder, token=None)

        await gateway.list_posts()

        assert "Authorization" not in recorder.requests[0].headers

    @pytest.mark.asyncio
    async def test_create_post_body(self):
        recorder = Recorder(status=201, body={"message": "created", "post": POST_JSON})
        gateway = make_gateway(recorder)

        post = await gateway.create_post("Segfault", "It crashes", ["c"])

        assert recorder.requests[0].method == "POST"
        assert recorder.last_json == {"post": {"title": "Segfault", "content": "It crashes"}, "tags": ["c"]}
        assert post.id == 7

    @pytest.mark.asyncio
    async def test_update_post_path(self):
        recorder = Recorder(body={"post": POST_JSON})
        gateway = make_gateway(recorder)

        await gateway.update_post(7, "t", "c", [])

        assert recorder.requests[0].method == "PUT"
        assert recorder.requests[0].url.path == "/posts/7"

    @pytest.mark.asyncio
    async def test_list_comments_stamps_post_id(self):
        recorder = Recorder(body={"comments": [COMMENT_JSON]})
        gateway = make_gateway(recorder)

        comments = await gateway.list_comments(7)

        assert recorder.requests[0].url.params["post_id"] == "7"
        assert comments[0].post_id == 7

    @pytest.mark.asyncio
    async def test_reply_body_includes_parent(self):
        recorder = Recorder(body={"comment": {**COMMENT_JSON, "post_id": 7, "parent_comment_id": 2}})
        gateway = make_gateway(recorder)

        await gateway.create_comment(7, "Try -g", parent_comment_id=2)

        assert recorder.last_json == {"post_id": 7, "content": "Try -g", "parent_comment_id": 2}

    @pytest.mark.asyncio
    async def test_top_level_comment_body_has_no_parent(self):
        recorder = Recorder(body={"comment": {**COMMENT_JSON, "post_id": 7}})
        gateway = make_gateway(recorder)

        await gateway.create_comment(7, "Try -g")

        assert recorder.last_json == {"post_id": 7, "content": "Try -g"}

    @pytest.mark.asyncio
    async def test_delete_comment_accepts_empty_body(self):
        recorder = Recorder(status=204, raw=b"")
        gateway = make_gateway(recorder)

        assert await gateway.delete_comment(3) is None
        assert recorder.requests[0].method == "DELETE"


class TestVoteRequests:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation, method", [
        (VoteOperation.create, "POST"),
        (VoteOperation.update, "PUT"),
    ])
    async def test_create_and_update_send_direction(self, operation, method):
        recorder = Recorder(body={"post": POST_JSON})
        gateway = make_gateway(recorder)

        updated = await gateway.send_vote(operation, TargetKind.post, 7, False)

        assert recorder.requests[0].method == method
        assert recorder.requests[0].url.path == "/votes"
        assert recorder.last_json == {"post_id": 7, "positive": False}
        assert updated.score == 4

    @pytest.mark.asyncio
    async def test_delete_omits_direction(self):
        recorder = Recorder(body={"comment": {**COMMENT_JSON, "post_id": 7}})
        gateway = make_gateway(recorder)

        await gateway.send_vote(VoteOperation.delete, TargetKind.comment, 3, True)

        assert recorder.requests[0].method == "DELETE"
        assert recorder.last_json == {"comment_id": 3}

    @pytest.mark.asyncio
    async def test_vote_response_without_target_is_rejected(self):
        recorder = Recorder(body={"message": "ok", "comment": {**COMMENT_JSON, "post_id": 7}})
        gateway = make_gateway(recorder)

        with pytest.raises(ServerRejection):
            await gateway.send_vote(VoteOperation.create, TargetKind.post, 7, True)


class TestFailures:

    @pytest.mark.asyncio
    async def test_status_not_ok_carries_message(self):
        gateway = make_gateway(Recorder(status=403, body={"message": "Not your post"}))

        with pytest.raises(ServerRejection) as exc_info:
            await gateway.delete_post(7)

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Not your post"
        assert "HTTP 403" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_ok_without_payload_is_rejected(self):
        gateway = make_gateway(Recorder(body={"message": "nothing here"}))

        with pytest.raises(ServerRejection, match="nothing here"):
            await gateway.list_posts()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        gateway = make_gateway(Recorder(status=502, raw=b"<html>Bad gateway</html>"))

        with pytest.raises(ServerRejection) as exc_info:
            await gateway.list_votes()

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_malformed_entity(self):
        gateway = make_gateway(Recorder(body={"post": {"id": "not-a-number"}}))

        with pytest.raises(ServerRejection, match="Malformed"):
            await gateway.update_post(7, "t", "c", [])

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        gateway = make_gateway(handler)

        with pytest.raises(NetworkFailure):
            await gateway.list_posts()

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        gateway = make_gateway(handler)

        with pytest.raises(NetworkFailure, match="timed out"):
            await gateway.list_comments(1)


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        async with SyncGateway(base_url="http://api.test", token_provider=lambda: None) as gateway:
            client = gateway._client
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(Recorder(body={})))
        async with SyncGateway(base_url="http://api.test", client=client):
            pass
        assert not client.is_closed
        await client.aclose()
