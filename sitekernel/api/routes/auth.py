"""Hugging Face OAuth login, logout and current-user routes."""

import secrets
from typing import Annotated

from fastapi import APIRouter, Cookie
from fastapi.responses import JSONResponse, RedirectResponse

from sitekernel.api.dependencies import (
    HUB_TOKEN_COOKIE,
    AppConfigDep,
    HubClientDep,
    HubTokenDep,
)
from sitekernel.core.hub import HubError
from sitekernel.models.responses import LoginResponse
from sitekernel.server.errors import error_response
from sitekernel.utils.config import get_server_hub_token
from sitekernel.utils.logging import get_logger


logger = get_logger("routes.auth")

router = APIRouter(tags=["auth"])
oauth_router = APIRouter(prefix="/auth", tags=["auth"])

STATE_COOKIE = "hf_oauth_state"
COOKIE_OPTIONS = {"httponly": False, "secure": True, "samesite": "none"}


@router.get("/login")
async def login(hub: HubClientDep) -> JSONResponse:
    """Start the OAuth flow; the client navigates to `redirectUrl`."""
    state = secrets.token_urlsafe(16)
    body = LoginResponse(redirect_url=hub.authorize_url(state))
    response = JSONResponse(body.model_dump(by_alias=True))
    response.set_cookie(STATE_COOKIE, state, max_age=600, httponly=True, secure=True, samesite="lax")
    return response


@oauth_router.get("/login")
async def oauth_callback(
    hub: HubClientDep,
    config: AppConfigDep,
    code: str | None = None,
    state: str | None = None,
    hf_oauth_state: Annotated[str | None, Cookie()] = None,
) -> RedirectResponse:
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(STATE_COOKIE, secure=True, httponly=True, samesite="lax")

    if not code:
        return response

    if not hf_oauth_state or state != hf_oauth_state:
        logger.warning("OAuth state missing or mismatched, ignoring callback")
        return response

    try:
        access_token = await hub.exchange_code(code)
    except HubError as e:
        logger.error(f"OAuth code exchange failed: {e}")
        return response

    if not access_token:
        return response

    response.set_cookie(
        HUB_TOKEN_COOKIE,
        access_token,
        max_age=config.hub.cookie_max_age_days * 24 * 60 * 60,
        **COOKIE_OPTIONS,
    )
    return response


@oauth_router.get("/logout")
async def logout() -> RedirectResponse:
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(HUB_TOKEN_COOKIE, **COOKIE_OPTIONS)
    return response


@router.get("/@me")
async def me(token: HubTokenDep, hub: HubClientDep) -> JSONResponse:
    if get_server_hub_token():
        return JSONResponse({"preferred_username": "local-use", "isLocalUse": True})

    try:
        user = await hub.userinfo(token)
    except HubError as e:
        response = error_response(401, str(e))
        response.delete_cookie(HUB_TOKEN_COOKIE, **COOKIE_OPTIONS)
        return response

    return JSONResponse(user.model_dump(exclude_none=True))
