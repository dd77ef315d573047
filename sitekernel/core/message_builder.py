from sitekernel.models.completion import ChatCompletionRequest, ChatMessage
from sitekernel.models.config import DefaultsConfig
from sitekernel.models.requests import GenerationRequest


SYSTEM_PROMPT = (
    "ONLY USE HTML, CSS AND JAVASCRIPT. If you want to use ICON make sure to import "
    "the library first. Try to create the best UI possible by using only HTML, CSS "
    "and JAVASCRIPT. Use as much as you can TailwindCSS for the CSS, if you can't do "
    "something with TailwindCSS, then use custom CSS (make sure to import "
    '<script src="https://cdn.tailwindcss.com"></script> in the head). Also, try to '
    "elaborate as much as you can, to create something unique. ALWAYS GIVE THE "
    "RESPONSE INTO A SINGLE HTML FILE"
)

AUTO_MODEL = "auto"


def build_messages(request: GenerationRequest) -> tuple[ChatMessage, ...]:
    """
    Build the conversation sent to the model for one generation request.

    Order is fixed: system contract, previous prompt, current page, new
    prompt. Absent optional fields drop exactly their own message.

    Args:
        request: Validated generation request with a non-empty prompt

    Returns:
        Immutable message sequence
    """
    messages: list[ChatMessage] = [
        ChatMessage(role="system", content=SYSTEM_PROMPT),
    ]

    if request.previous_prompt:
        messages.append(
            ChatMessage(role="user", content=request.previous_prompt)
        )

    if request.html:
        messages.append(
            ChatMessage(role="assistant", content=f"The current code is: {request.html}.")
        )

    messages.append(
        ChatMessage(role="user", content=request.prompt)
    )

    return tuple(messages)


def resolve_model(request: GenerationRequest, defaults: DefaultsConfig) -> str:
    """Model requested by the client, or the configured default for 'auto'."""
    if request.provider and request.provider != AUTO_MODEL:
        return request.provider
    return defaults.model


def build_chat_request(
    request: GenerationRequest,
    defaults: DefaultsConfig,
) -> ChatCompletionRequest:
    """Build the streaming ChatCompletionRequest for a generation request."""
    return ChatCompletionRequest(
        model=resolve_model(request, defaults),
        messages=list(build_messages(request)),
        stream=True,
        max_tokens=defaults.max_tokens,
    )
