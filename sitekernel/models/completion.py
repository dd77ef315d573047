from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Single message in chat completion request."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class ChatCompletionRequest(BaseModel):
    """Request to the /chat/completions endpoint."""

    model: str
    messages: list[ChatMessage]
    stream: bool = True
    max_tokens: int | None = None
    temperature: float | None = None


class StreamDelta(BaseModel):
    """Delta content in streaming response."""

    role: str | None = None
    content: str | None = None


class StreamChoice(BaseModel):
    """Choice in streaming response."""

    index: int = 0
    delta: StreamDelta = Field(default_factory=StreamDelta)
    finish_reason: str | None = None


class StreamChunk(BaseModel):
    """Single chunk in streaming response."""

    id: str = ""
    object: str = "chat.completion.chunk"
    created: int = 0
    model: str = ""
    choices: list[StreamChoice] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Content of the first choice, empty when the chunk carries none."""
        if not self.choices:
            return ""
        return self.choices[0].delta.content or ""

