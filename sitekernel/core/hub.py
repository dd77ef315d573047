"""
Hugging Face Hub transport.

Thin async wrapper over the Hub HTTP API: identity, Space creation,
multi-file commits, Space lookups and the OAuth endpoints. Publishing
rules live in PublishWorkflow.
"""

import base64
import json
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict

from sitekernel.models.config import HubConfig
from sitekernel.utils.logging import get_logger


logger = get_logger("hub")


class HubError(Exception):
    """Hub API error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class HubFile(BaseModel):
    """A text file to commit to a repository."""

    path: str
    content: str


class SpaceInfo(BaseModel):
    id: str
    author: str | None = None
    sdk: str | None = None
    private: bool = False


class UserInfo(BaseModel):
    """Subset of the OAuth userinfo document; unknown claims are kept."""

    model_config = ConfigDict(extra="allow")

    sub: str | None = None
    name: str | None = None
    preferred_username: str | None = None
    picture: str | None = None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"Hub returned {response.status_code}"
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return response.text


class HubClient:
    """Async client for the Hugging Face Hub."""

    def __init__(self, config: HubConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout_sec),
                limits=httpx.Limits(max_connections=self.config.max_connections),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        token: str | None = None,
        **kwargs,
    ) -> httpx.Response:
        client = await self._get_client()

        headers = dict(kwargs.pop("headers", {}))
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Request error: {e}")
            raise HubError(f"Request failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"Hub {method} {url} failed ({response.status_code}): {message}")
            raise HubError(message, status_code=response.status_code)

        return response

    # ── Identity ──

    async def whoami(self, token: str) -> str:
        """Resolve the account name that owns `token`."""
        response = await self._request("GET", "/api/whoami-v2", token=token)
        name = response.json().get("name")
        if not name:
            raise HubError("Hub did not return an account name")
        return name

    async def userinfo(self, token: str) -> UserInfo:
        response = await self._request("GET", "/oauth/userinfo", token=token)
        return UserInfo.model_validate(response.json())

    # ── Repositories ──

    async def create_space(self, token: str, repo_id: str, sdk: str = "static") -> None:
        organization, name = repo_id.split("/", 1)
        await self._request(
            "POST",
            "/api/repos/create",
            token=token,
            json={
                "type": "space",
                "name": name,
                "organization": organization,
                "sdk": sdk,
            },
        )
        logger.info(f"Created space {repo_id}")

    async def upload_files(
        self,
        token: str,
        repo_id: str,
        files: list[HubFile],
        summary: str = "Upload files",
    ) -> None:
        """Commit all `files` to the Space's main branch in a single commit."""
        operations = [{"key": "header", "value": {"summary": summary, "description": ""}}]
        for file in files:
            operations.append({
                "key": "file",
                "value": {
                    "path": file.path,
                    "content": base64.b64encode(file.content.encode("utf-8")).decode("ascii"),
                    "encoding": "base64",
                },
            })

        await self._request(
            "POST",
            f"/api/spaces/{repo_id}/commit/main",
            token=token,
            headers={"Content-Type": "application/x-ndjson"},
            content="\n".join(json.dumps(op) for op in operations),
        )
        logger.info(f"Committed {len(files)} files to {repo_id}")

    async def space_info(self, repo_id: str, token: str | None = None) -> SpaceInfo | None:
        """Space metadata, or None when the Space does not exist."""
        try:
            response = await self._request("GET", f"/api/spaces/{repo_id}", token=token)
        except HubError as e:
            if e.status_code in (401, 404):
                return None
            raise
        return SpaceInfo.model_validate(response.json())

    async def fetch_space_file(self, repo_id: str, filename: str = "index.html") -> str | None:
        """Raw content of a file on the Space's main branch, None if missing."""
        try:
            response = await self._request("GET", f"/spaces/{repo_id}/raw/main/{filename}")
        except HubError as e:
            if e.status_code == 404:
                return None
            raise
        return response.text

    # ── OAuth ──

    def authorize_url(self, state: str) -> str:
        query = urlencode({
            "client_id": self.config.oauth_client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": self.config.oauth_scope,
            "prompt": "consent",
            "state": state,
        })
        return f"{self.config.base_url}/oauth/authorize?{query}"

    async def exchange_code(self, code: str) -> str | None:
        """Trade an authorization code for an access token."""
        response = await self._request(
            "POST",
            "/oauth/token",
            auth=(self.config.oauth_client_id, self.config.oauth_client_secret),
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.config.redirect_uri,
            },
        )
        return response.json().get("access_token")
