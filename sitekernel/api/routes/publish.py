from fastapi import APIRouter

from sitekernel.api.dependencies import HubTokenDep, PublishWorkflowDep
from sitekernel.core.publish import PublishError
from sitekernel.models.requests import PublishRequest
from sitekernel.models.responses import PublishResponse
from sitekernel.server.errors import ApiError
from sitekernel.utils.logging import get_logger


logger = get_logger("routes.publish")
router = APIRouter(tags=["publish"])


@router.post("/deploy", response_model=PublishResponse)
async def deploy(
    body: PublishRequest,
    token: HubTokenDep,
    workflow: PublishWorkflowDep,
) -> PublishResponse:
    """Publish a page to a new or existing Space."""
    try:
        path = await workflow.publish(
            token=token,
            html=body.html,
            prompts=body.prompts,
            title=body.title,
            path=body.path,
        )
    except PublishError as e:
        logger.error(f"Publish failed: {e}")
        raise ApiError(e.status_code, str(e)) from e

    return PublishResponse(path=path)
