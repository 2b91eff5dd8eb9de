"""
Source repository clients.

List the files of the configured repository and fetch raw file text for the
code analysis handler. Bitbucket Cloud (REST 2.0) and GitHub (REST v3) are
supported; both authenticate with a bearer token.
"""

import base64
import logging
from typing import Protocol
from urllib.parse import quote

import httpx

from helpdesk_jobs.config import Settings
from helpdesk_jobs.exceptions import CodeHostConfigError, ExternalServiceError

logger = logging.getLogger(__name__)


class CodeHostClient(Protocol):
    """What the code analysis handler needs from a repository host."""

    async def list_files(self, max_files: int) -> list[str]: ...

    async def get_file_content(self, file_path: str) -> str: ...

    def build_deep_link(self, file_path: str, start_line: int, end_line: int) -> str: ...

    async def aclose(self) -> None: ...


def encode_path(file_path: str) -> str:
    """
    Encode each path segment, keeping the "/" separators.

    "src/auth/login feature.ts" -> "src/auth/login%20feature.ts"
    """
    return "/".join(quote(segment, safe="") for segment in file_path.split("/"))


def filter_files_by_keyword(files: list[str], keyword: str) -> list[str]:
    """Case-insensitive substring match of keyword against each path."""
    kw = keyword.lower()
    return [f for f in files if kw in f.lower()]


class BitbucketClient:
    """Bitbucket Cloud REST API 2.0 client."""

    service = "Bitbucket"
    base_url = "https://api.bitbucket.org/2.0"

    def __init__(
        self,
        token: str,
        workspace: str,
        repo: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.workspace = workspace
        self.repo = repo
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise ExternalServiceError(self.service, f"request failed: {e}") from e
        if not response.is_success:
            raise ExternalServiceError(
                self.service,
                f"API error: {response.status_code} {response.text[:500]}",
                {"status_code": response.status_code, "url": str(response.url)},
            )
        return response

    async def list_files(self, max_files: int = 500) -> list[str]:
        """
        List repository files, following pagination.

        Returns:
            At most max_files paths.
        """
        files: list[str] = []
        url: str | None = f"/repositories/{self.workspace}/{self.repo}/src?pagelen=100"

        while url and len(files) < max_files:
            data = (await self._get(url)).json()
            for item in data.get("values", []):
                if item.get("type") == "commit_file":
                    files.append(item["path"])
            url = data.get("next")

        return files[:max_files]

    async def get_file_content(self, file_path: str) -> str:
        """Fetch the raw content of a file at HEAD."""
        url = f"/repositories/{self.workspace}/{self.repo}/src/HEAD/{encode_path(file_path)}"
        return (await self._get(url)).text

    def build_deep_link(self, file_path: str, start_line: int, end_line: int) -> str:
        return (
            f"https://bitbucket.org/{self.workspace}/{self.repo}/src/HEAD/"
            f"{encode_path(file_path)}#lines-{start_line}:{end_line}"
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class GitHubClient:
    """GitHub REST API v3 client."""

    service = "GitHub"
    base_url = "https://api.github.com"

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.owner = owner
        self.repo = repo
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
        )

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise ExternalServiceError(self.service, f"request failed: {e}") from e
        if not response.is_success:
            raise ExternalServiceError(
                self.service,
                f"API error: {response.status_code} {response.text[:500]}",
                {"status_code": response.status_code, "url": str(response.url)},
            )
        return response

    async def list_files(self, max_files: int = 500) -> list[str]:
        """
        List repository files from the recursive git tree of HEAD.

        Returns:
            At most max_files paths.
        """
        url = f"/repos/{self.owner}/{self.repo}/git/trees/HEAD?recursive=1"
        data = (await self._get(url)).json()
        files = [item["path"] for item in data.get("tree", []) if item.get("type") == "blob"]
        return files[:max_files]

    async def get_file_content(self, file_path: str) -> str:
        """Fetch a file at HEAD; GitHub returns it base64 encoded."""
        url = f"/repos/{self.owner}/{self.repo}/contents/{encode_path(file_path)}"
        data = (await self._get(url)).json()
        return base64.b64decode(data.get("content", "")).decode("utf-8")

    def build_deep_link(self, file_path: str, start_line: int, end_line: int) -> str:
        return (
            f"https://github.com/{self.owner}/{self.repo}/blob/HEAD/"
            f"{encode_path(file_path)}#L{start_line}-L{end_line}"
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def check_code_host_config(settings: Settings) -> None:
    """
    Verify the selected code host has all of its settings.

    Raises:
        CodeHostConfigError: Naming every missing environment variable.
    """
    if settings.code_host == "github":
        service = GitHubClient.service
        required = {
            "GITHUB_TOKEN": settings.github_token,
            "GITHUB_OWNER": settings.github_owner,
            "GITHUB_REPO": settings.github_repo,
        }
    else:
        service = BitbucketClient.service
        required = {
            "BITBUCKET_TOKEN": settings.bitbucket_token,
            "BITBUCKET_WORKSPACE": settings.bitbucket_workspace,
            "BITBUCKET_REPO": settings.bitbucket_repo,
        }

    missing = [name for name, value in required.items() if not value]
    if missing:
        raise CodeHostConfigError(service, missing)


def create_code_host(settings: Settings) -> CodeHostClient:
    """
    Build the configured code host client.

    Raises:
        CodeHostConfigError: If any required setting is missing.
    """
    check_code_host_config(settings)

    if settings.code_host == "github":
        return GitHubClient(
            token=settings.github_token,
            owner=settings.github_owner,
            repo=settings.github_repo,
            timeout=settings.code_host_timeout_seconds,
        )

    return BitbucketClient(
        token=settings.bitbucket_token,
        workspace=settings.bitbucket_workspace,
        repo=settings.bitbucket_repo,
        timeout=settings.code_host_timeout_seconds,
    )
