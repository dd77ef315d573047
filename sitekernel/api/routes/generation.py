from fastapi import APIRouter

from sitekernel.api.dependencies import (
    AdmissionDep,
    AppConfigDep,
    ClientIdDep,
    CompletionClientDep,
)
from sitekernel.core.admission import AdmissionRejected
from sitekernel.core.completion import CompletionError
from sitekernel.core.message_builder import build_chat_request
from sitekernel.models.requests import GenerationRequest
from sitekernel.server.errors import ApiError
from sitekernel.server.relay import RelayResponse, StreamRelay, closing_marker
from sitekernel.utils.logging import get_logger


logger = get_logger("generation")
router = APIRouter(tags=["generation"])


@router.post("/ask-ai")
async def ask_ai(
    body: GenerationRequest,
    client: CompletionClientDep,
    admission: AdmissionDep,
    config: AppConfigDep,
    client_id: ClientIdDep,
) -> RelayResponse:
    """
    Stream a generated page as plain text.

    The body carries no end sentinel: the client treats the connection
    close as the end and checks the text ends with `</html>`.
    """
    if not body.prompt:
        raise ApiError(400, "Missing required fields")

    if not client.is_configured:
        raise ApiError(500, "OpenAI API key not configured.")

    chat_request = build_chat_request(body, config.defaults)

    try:
        admission.acquire(client_id)
    except AdmissionRejected as e:
        raise ApiError(429, str(e)) from e

    logger.info(
        f"Generation for {client_id}: model={chat_request.model}, "
        f"messages={len(chat_request.messages)}"
    )

    relay = StreamRelay(
        stop_when=closing_marker(config.defaults.closing_marker),
        max_duration_sec=config.completion.max_stream_sec,
        on_finish=lambda: admission.release(client_id),
    )

    try:
        await relay.open(client.open_stream(chat_request))
    except CompletionError as e:
        raise ApiError(500, str(e) or "An error occurred while processing your request.") from e

    return RelayResponse(relay)
