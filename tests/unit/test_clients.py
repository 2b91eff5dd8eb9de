"""
Unit tests for the reasoning service and code host clients.
"""

import base64
import json

import httpx
import pytest

from helpdesk_jobs.clients.code_host import (
    BitbucketClient,
    GitHubClient,
    check_code_host_config,
    create_code_host,
    encode_path,
    filter_files_by_keyword,
)
from helpdesk_jobs.clients.reasoning import (
    ReasoningClient,
    create_reasoning_client,
    extract_json_array,
    extract_json_object,
)
from helpdesk_jobs.exceptions import CodeHostConfigError, ExternalServiceError


class TestJsonExtraction:
    def test_object_in_prose(self):
        assert extract_json_object('Sure! {"a": 1} Hope this helps.') == {"a": 1}

    def test_object_missing(self):
        assert extract_json_object("no braces here") is None

    def test_object_rejects_array(self):
        assert extract_json_object("[1, 2]") is None

    def test_array_in_prose(self):
        assert extract_json_array('Result: [{"a": 1}]') == [{"a": 1}]

    def test_array_missing(self):
        assert extract_json_array('{"a": 1}') is None


class TestReasoningClient:
    """Tests for ReasoningClient against a mock transport."""

    async def test_complete_returns_first_text_block(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={"content": [{"type": "text", "text": '{"is_complete": true}'}]},
            )

        client = ReasoningClient(
            api_key="test-key",
            model="claude-sonnet-4-5",
            transport=httpx.MockTransport(handler),
        )
        try:
            text = await client.complete("Review this ticket", max_tokens=512)
        finally:
            await client.aclose()

        assert text == '{"is_complete": true}'
        request = requests[0]
        assert request.url.path == "/v1/messages"
        assert request.headers["x-api-key"] == "test-key"
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(request.content)
        assert body["model"] == "claude-sonnet-4-5"
        assert body["max_tokens"] == 512
        assert body["messages"] == [{"role": "user", "content": "Review this ticket"}]

    async def test_non_text_block_returns_empty(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"content": [{"type": "tool_use"}]})
        )
        client = ReasoningClient(api_key="k", model="m", transport=transport)
        try:
            assert await client.complete("p", max_tokens=10) == ""
        finally:
            await client.aclose()

    async def test_error_status_raises(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(529, text="overloaded")
        )
        client = ReasoningClient(api_key="k", model="m", transport=transport)
        try:
            with pytest.raises(ExternalServiceError, match="HTTP 529") as exc_info:
                await client.complete("p", max_tokens=10)
        finally:
            await client.aclose()

        assert exc_info.value.details["status_code"] == 529

    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = ReasoningClient(api_key="k", model="m", transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(ExternalServiceError, match="request failed"):
                await client.complete("p", max_tokens=10)
        finally:
            await client.aclose()

    def test_no_api_key_disables_client(self, test_settings):
        assert create_reasoning_client(test_settings) is None

    async def test_api_key_builds_client(self, test_settings):
        settings = test_settings.model_copy(update={"anthropic_api_key": "test-key"})

        client = create_reasoning_client(settings)

        assert isinstance(client, ReasoningClient)
        assert client.model == settings.anthropic_model
        await client.aclose()


class TestCodeHostHelpers:
    def test_encode_path_keeps_separators(self):
        assert encode_path("src/auth/login feature.ts") == "src/auth/login%20feature.ts"

    def test_filter_files_by_keyword(self):
        files = ["src/Auth/Login.ts", "src/billing.ts"]

        assert filter_files_by_keyword(files, "auth") == ["src/Auth/Login.ts"]


class TestBitbucketClient:
    """Tests for BitbucketClient against a mock transport."""

    def make_client(self, handler) -> BitbucketClient:
        return BitbucketClient(
            token="bb-token",
            workspace="acme",
            repo="helpdesk",
            transport=httpx.MockTransport(handler),
        )

    async def test_list_files_follows_pagination(self):
        next_url = "https://api.bitbucket.org/2.0/repositories/acme/helpdesk/src?pagelen=100&page=2"
        pages = {
            "1": {
                "values": [
                    {"type": "commit_file", "path": "src/auth/login.ts"},
                    {"type": "commit_directory", "path": "src/auth"},
                ],
                "next": next_url,
            },
            "2": {"values": [{"type": "commit_file", "path": "README.md"}]},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer bb-token"
            assert request.url.path == "/2.0/repositories/acme/helpdesk/src"
            return httpx.Response(200, json=pages[request.url.params.get("page", "1")])

        client = self.make_client(handler)
        try:
            files = await client.list_files()
        finally:
            await client.aclose()

        assert files == ["src/auth/login.ts", "README.md"]

    async def test_list_files_bounded(self):
        values = [{"type": "commit_file", "path": f"f{i}.py"} for i in range(5)]
        client = self.make_client(lambda request: httpx.Response(200, json={"values": values}))
        try:
            files = await client.list_files(max_files=3)
        finally:
            await client.aclose()

        assert files == ["f0.py", "f1.py", "f2.py"]

    async def test_get_file_content(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.raw_path == (
                b"/2.0/repositories/acme/helpdesk/src/HEAD/src/login%20feature.ts"
            )
            return httpx.Response(200, text="export {}")

        client = self.make_client(handler)
        try:
            assert await client.get_file_content("src/login feature.ts") == "export {}"
        finally:
            await client.aclose()

    async def test_error_status_raises(self):
        client = self.make_client(lambda request: httpx.Response(404, text="not found"))
        try:
            with pytest.raises(ExternalServiceError, match="Bitbucket: API error: 404"):
                await client.get_file_content("missing.ts")
        finally:
            await client.aclose()

    async def test_deep_link(self):
        client = self.make_client(lambda request: httpx.Response(200))
        try:
            link = client.build_deep_link("src/auth/login.ts", 10, 24)
        finally:
            await client.aclose()

        assert link == "https://bitbucket.org/acme/helpdesk/src/HEAD/src/auth/login.ts#lines-10:24"


class TestGitHubClient:
    """Tests for GitHubClient against a mock transport."""

    def make_client(self, handler) -> GitHubClient:
        return GitHubClient(
            token="gh-token",
            owner="acme",
            repo="helpdesk",
            transport=httpx.MockTransport(handler),
        )

    async def test_list_files_keeps_blobs(self):
        tree = {
            "tree": [
                {"type": "tree", "path": "src"},
                {"type": "blob", "path": "src/app.py"},
                {"type": "blob", "path": "README.md"},
            ]
        }

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/repos/acme/helpdesk/git/trees/HEAD"
            assert request.url.params["recursive"] == "1"
            assert request.headers["Authorization"] == "Bearer gh-token"
            return httpx.Response(200, json=tree)

        client = self.make_client(handler)
        try:
            files = await client.list_files()
        finally:
            await client.aclose()

        assert files == ["src/app.py", "README.md"]

    async def test_get_file_content_decodes_base64(self):
        encoded = base64.b64encode(b"print('hi')\n").decode()

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/repos/acme/helpdesk/contents/src/app.py"
            return httpx.Response(200, json={"content": encoded, "encoding": "base64"})

        client = self.make_client(handler)
        try:
            assert await client.get_file_content("src/app.py") == "print('hi')\n"
        finally:
            await client.aclose()

    async def test_deep_link(self):
        client = self.make_client(lambda request: httpx.Response(200))
        try:
            link = client.build_deep_link("src/app.py", 3, 9)
        finally:
            await client.aclose()

        assert link == "https://github.com/acme/helpdesk/blob/HEAD/src/app.py#L3-L9"


class TestCodeHostConfig:
    def test_bitbucket_missing_settings(self, test_settings):
        with pytest.raises(CodeHostConfigError) as exc_info:
            check_code_host_config(test_settings)

        assert exc_info.value.missing == [
            "BITBUCKET_TOKEN",
            "BITBUCKET_WORKSPACE",
            "BITBUCKET_REPO",
        ]
        assert "Missing Bitbucket env vars" in str(exc_info.value)

    def test_github_partial_settings(self, test_settings):
        settings = test_settings.model_copy(
            update={"code_host": "github", "github_token": "t", "github_repo": "r"}
        )

        with pytest.raises(CodeHostConfigError) as exc_info:
            check_code_host_config(settings)

        assert exc_info.value.missing == ["GITHUB_OWNER"]

    async def test_create_selected_host(self, test_settings):
        settings = test_settings.model_copy(
            update={"bitbucket_token": "t", "bitbucket_workspace": "w", "bitbucket_repo": "r"}
        )

        client = create_code_host(settings)

        assert isinstance(client, BitbucketClient)
        await client.aclose()

    async def test_create_github_host(self, test_settings):
        settings = test_settings.model_copy(
            update={
                "code_host": "github",
                "github_token": "t",
                "github_owner": "o",
                "github_repo": "r",
            }
        )

        client = create_code_host(settings)

        assert isinstance(client, GitHubClient)
        await client.aclose()
