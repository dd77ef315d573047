"""
Dependency injection for FastAPI routes.

Services are created in the app lifespan; tests swap them through
`app.dependency_overrides`.
"""

from typing import Annotated

from fastapi import Cookie, Depends, Request

from sitekernel.core.admission import AdmissionController
from sitekernel.core.completion import CompletionClient
from sitekernel.core.hub import HubClient
from sitekernel.core.publish import PublishWorkflow
from sitekernel.models.config import AppConfig
from sitekernel.server.app import (
    get_admission,
    get_app_config,
    get_completion_client,
    get_hub_client,
    get_publish_workflow,
)
from sitekernel.server.errors import ApiError
from sitekernel.utils.config import get_server_hub_token


HUB_TOKEN_COOKIE = "hf_token"


def client_identity(request: Request) -> str:
    """First forwarded hop when behind a proxy, otherwise the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def require_hub_token(hf_token: Annotated[str | None, Cookie()] = None) -> str:
    """Token to act on the Hub with; a server-side HF_TOKEN wins over the cookie."""
    token = get_server_hub_token() or hf_token
    if not token:
        raise ApiError(401, "Unauthorized")
    return token


AppConfigDep = Annotated[AppConfig, Depends(get_app_config)]
CompletionClientDep = Annotated[CompletionClient, Depends(get_completion_client)]
HubClientDep = Annotated[HubClient, Depends(get_hub_client)]
PublishWorkflowDep = Annotated[PublishWorkflow, Depends(get_publish_workflow)]
AdmissionDep = Annotated[AdmissionController, Depends(get_admission)]
ClientIdDep = Annotated[str, Depends(client_identity)]
HubTokenDep = Annotated[str, Depends(require_hub_token)]
