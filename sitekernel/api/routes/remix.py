from typing import Annotated

from fastapi import APIRouter, Cookie

from sitekernel.api.dependencies import AppConfigDep, HubClientDep
from sitekernel.core.hub import HubError
from sitekernel.core.publish import strip_attribution
from sitekernel.models.responses import RemixResponse
from sitekernel.server.errors import ApiError
from sitekernel.utils.config import get_default_hub_token, get_server_hub_token
from sitekernel.utils.logging import get_logger


logger = get_logger("routes.remix")
router = APIRouter(tags=["remix"])


@router.get("/remix/{username}/{repo}", response_model=RemixResponse)
async def remix(
    username: str,
    repo: str,
    hub: HubClientDep,
    config: AppConfigDep,
    hf_token: Annotated[str | None, Cookie()] = None,
) -> RemixResponse:
    """Load a published static Space back into the editor."""
    repo_id = f"{username}/{repo}"
    token = get_server_hub_token() or hf_token or get_default_hub_token()

    try:
        space = await hub.space_info(repo_id, token=token)
        if space is None or space.sdk != "static" or space.private:
            raise ApiError(404, "Space not found")

        html = await hub.fetch_space_file(repo_id)
        if html is None:
            raise ApiError(404, "Space not found")

        is_owner = False
        if hf_token:
            try:
                user = await hub.userinfo(hf_token)
                is_owner = space.author is not None and space.author == user.preferred_username
            except HubError as e:
                logger.warning(f"Could not resolve remixing user: {e}")

    except HubError as e:
        raise ApiError(500, str(e)) from e

    return RemixResponse(
        html=strip_attribution(html, repo_id, config.hub.app_url),
        is_owner=is_owner,
        path=repo_id,
    )
