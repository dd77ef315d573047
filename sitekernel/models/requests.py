from pydantic import BaseModel, ConfigDict, Field


class GenerationRequest(BaseModel):
    """Site generation request from the browser."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(default="", description="New instruction for the page")
    html: str | None = Field(default=None, description="Current page, if revising one")
    previous_prompt: str | None = Field(default=None, alias="previousPrompt")
    provider: str | None = Field(default=None, description="Model id, or 'auto' for the default")


class PublishRequest(BaseModel):
    """Request to publish a page to a Space."""

    html: str = ""
    title: str | None = None
    path: str | None = None
    prompts: list[str] = Field(default_factory=list)
