"""
Streaming relay between a completion stream and a chunked HTTP response.

The relay owns the artifact for one request. Deltas are forwarded one by
one in arrival order and the artifact always equals what was written.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum

import anyio
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from sitekernel.core.completion import CompletionError, DeltaStream
from sitekernel.utils.logging import get_logger


logger = get_logger("relay")

# Given the artifact so far, return the length to keep when the document is
# complete, or None to keep streaming.
StopCondition = Callable[[str], int | None]

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class RelayState(str, Enum):
    IDLE = "idle"
    STREAM_OPENING = "stream_opening"
    STREAMING = "streaming"
    COMPLETED = "completed"
    EARLY_STOPPED = "early_stopped"
    FAILED_BEFORE_BYTES = "failed_before_bytes"
    FAILED_MID_STREAM = "failed_mid_stream"


def closing_marker(marker: str = "</html>") -> StopCondition:
    """Stop right after the first occurrence of `marker`."""

    def condition(artifact: str) -> int | None:
        index = artifact.find(marker)
        if index < 0:
            return None
        return index + len(marker)

    return condition


class StreamRelay:
    """Pumps one DeltaStream into an HTTP response body."""

    def __init__(
        self,
        stop_when: StopCondition,
        max_duration_sec: float | None = None,
        on_finish: Callable[[], None] | None = None,
    ):
        self.stop_when = stop_when
        self.max_duration_sec = max_duration_sec
        self.state = RelayState.IDLE
        self._artifact = ""
        self._stream: DeltaStream | None = None
        self._deltas: AsyncIterator[str] | None = None
        self._closed = False
        self._on_finish = on_finish
        self._finished = False

    @property
    def artifact(self) -> str:
        return self._artifact

    async def open(self, opening: Awaitable[DeltaStream]) -> None:
        """
        Wait for the upstream stream to be established.

        Raises:
            CompletionError: The stream could not be opened; nothing was
                written and the caller can still answer with an error
        """
        if self.state is not RelayState.IDLE:
            raise RuntimeError(f"Relay cannot open from state {self.state.value}")

        self.state = RelayState.STREAM_OPENING
        try:
            self._stream = await opening
        except BaseException as e:
            self.state = RelayState.FAILED_BEFORE_BYTES
            logger.error(f"Failed to open completion stream: {e}")
            self._finish()
            raise
        self.state = RelayState.STREAMING

    async def pump(self) -> AsyncIterator[str]:
        """Yield deltas for the response body until a terminal state is reached."""
        if self.state is not RelayState.STREAMING or self._stream is None:
            raise RuntimeError("Relay stream is not open")

        deltas = self._deltas = aiter(self._stream)
        deadline = None
        if self.max_duration_sec:
            deadline = asyncio.get_running_loop().time() + self.max_duration_sec

        try:
            while True:
                try:
                    delta = await self._next_delta(deltas, deadline)
                except StopAsyncIteration:
                    self.state = RelayState.COMPLETED
                    break
                except CompletionError as e:
                    self.state = RelayState.FAILED_MID_STREAM
                    logger.error(f"Stream failed after {len(self._artifact)} chars: {e}")
                    break
                except asyncio.TimeoutError:
                    self.state = RelayState.FAILED_MID_STREAM
                    logger.error(f"Stream exceeded {self.max_duration_sec}s, dropping it")
                    break

                if not delta:
                    continue

                cut = self.stop_when(self._artifact + delta)
                if cut is not None:
                    delta = delta[:max(cut - len(self._artifact), 0)]
                    if delta:
                        self._artifact += delta
                        yield delta
                    self.state = RelayState.EARLY_STOPPED
                    break

                self._artifact += delta
                yield delta

        finally:
            await self.close()

    @staticmethod
    async def _next_delta(deltas: AsyncIterator[str], deadline: float | None) -> str:
        if deadline is None:
            return await deltas.__anext__()

        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise asyncio.TimeoutError
        return await asyncio.wait_for(deltas.__anext__(), remaining)

    async def close(self) -> None:
        """
        Release the upstream stream and the request's resources.

        Safe to call any number of times and whether or not `pump` ever
        started; a relay still streaming ends in FAILED_MID_STREAM.
        """
        if self._closed:
            return
        self._closed = True

        if self.state is RelayState.STREAMING:
            self.state = RelayState.FAILED_MID_STREAM
            logger.info(f"Client went away after {len(self._artifact)} chars")

        try:
            with anyio.CancelScope(shield=True):
                aclose = getattr(self._deltas, "aclose", None)
                if aclose is not None:
                    await aclose()
                if self._stream is not None:
                    await self._stream.aclose()
        finally:
            logger.info(f"Relay finished: {self.state.value}, {len(self._artifact)} chars")
            self._finish()

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        if self._on_finish is not None:
            self._on_finish()


class RelayResponse(StreamingResponse):
    """Plain-text streaming response that always closes its relay."""

    def __init__(self, relay: StreamRelay):
        super().__init__(relay.pump(), media_type="text/plain", headers=STREAM_HEADERS)
        self.relay = relay

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.relay.close()
