from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error response."""

    ok: Literal[False] = False
    message: str


class PublishResponse(BaseModel):
    ok: Literal[True] = True
    path: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: Literal[True] = True
    redirect_url: str = Field(alias="redirectUrl")


class RemixResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: Literal[True] = True
    html: str
    is_owner: bool = Field(alias="isOwner")
    path: str
