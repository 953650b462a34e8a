"""Relay of an upstream token stream onto an HTTP response body.

The relay task produces into a bounded :class:`ResponseChannel`; the response
body drains it. Either side can end the exchange: the relay closes the channel
when upstream is exhausted or fails, the body abandons it when the client goes
away, which makes every later ``send`` return ``False`` and stops the relay.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, AsyncIterator, Callable, List, Optional, Set

from ..domain.generation_models import ArtifactType
from ..infrastructure.session_store import SessionStore
from ..observability.metrics import record_stream
from .model_gateway import aclose_quietly


LOG = logging.getLogger("relay.stream")

ERROR_MARKER = "\n\nError: Stream processing was interrupted. "

_EOF = object()

# Strong references to in-flight relay tasks; the loop only keeps weak ones.
_RELAY_TASKS: Set["asyncio.Task[Any]"] = set()


class ResponseChannel:
    """Bounded hand-off between the relay task and the response body."""

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=max(1, maxsize))
        self._closed = False
        self._abandoned = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    async def send(self, text: str) -> bool:
        """Queue ``text`` for the client; ``False`` once nobody will read it.

        Waits while the buffer is full. Never raises.
        """
        if self._closed:
            return False
        await self._queue.put(text)
        return not self._abandoned

    def close(self) -> None:
        """Mark the end of the stream. Idempotent, never raises."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_EOF)
        except asyncio.QueueFull:
            # drain() stops on its own once the buffer empties
            pass

    def abandon(self) -> None:
        """Consumer side went away: drop buffered text and release a blocked sender."""
        if self._abandoned:
            return
        self._abandoned = True
        self._closed = True
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break

    async def drain(self) -> AsyncIterator[str]:
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _EOF:
                return
            yield item


class PassThrough:
    def feed(self, chunk: str) -> str:
        return chunk

    def finish(self) -> str:
        return ""


class FenceStripper:
    """Remove a Markdown code fence wrapped around the whole stream.

    Chunk boundaries are arbitrary, so the opening of the stream is buffered
    until the first newline (or ``lookahead`` characters) before deciding
    whether it starts with a fence, and trailing whitespace/backticks are held
    back until more text arrives or the stream ends.
    """

    _FENCE_CHARS = " \t\r\n`"

    def __init__(self, lookahead: int = 64) -> None:
        self._lookahead = lookahead
        self._head: Optional[str] = ""
        self._tail = ""

    def _head_ready(self, buf: str) -> bool:
        if len(buf) >= self._lookahead:
            return True
        stripped = buf.lstrip()
        if not stripped:
            return False
        if stripped.startswith("```"):
            return "\n" in stripped
        return not "```".startswith(stripped)

    @staticmethod
    def _strip_opening(buf: str) -> str:
        stripped = buf.lstrip()
        if not stripped.startswith("```"):
            return buf
        line, sep, rest = stripped[3:].partition("\n")
        tag = line.strip()
        if tag and not all(ch.isalnum() or ch in "+-._" for ch in tag):
            return buf
        return rest if sep else buf

    def _hold_tail(self, text: str) -> str:
        combined = self._tail + text
        cut = len(combined.rstrip(self._FENCE_CHARS))
        self._tail = combined[cut:]
        return combined[:cut]

    def feed(self, chunk: str) -> str:
        if self._head is not None:
            self._head += chunk
            if not self._head_ready(self._head):
                return ""
            chunk = self._strip_opening(self._head)
            self._head = None
        return self._hold_tail(chunk)

    def finish(self) -> str:
        pending = ""
        if self._head is not None:
            pending = self._strip_opening(self._head)
            self._head = None
        text = self._tail + pending
        self._tail = ""
        body = text.rstrip()
        if body.endswith("```"):
            return body[:-3].rstrip()
        return text


def transform_for(artifact: ArtifactType) -> Any:
    if artifact is ArtifactType.TASKS:
        return FenceStripper()
    return PassThrough()


class RelayState(str, Enum):
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED_BY_CONSUMER = "aborted_by_consumer"
    ABORTED_BY_ERROR = "aborted_by_error"


class StreamRelay:
    """Forward one upstream stream to one client and record the exchange."""

    def __init__(
        self,
        artifact: ArtifactType,
        session_id: str,
        prompt: str,
        store: SessionStore,
        channel: ResponseChannel,
        progress_interval: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.artifact = artifact
        self.session_id = session_id
        self.prompt = prompt
        self.store = store
        self.channel = channel
        self.transform = transform_for(artifact)
        self.state = RelayState.STREAMING
        self.chunk_count = 0
        self.total_bytes = 0
        self._parts: List[str] = []
        self._progress_interval = progress_interval
        self._clock = clock

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def _log_progress(self, started: float, last_log: float) -> float:
        n = self.chunk_count
        if n in (1, 10, 50) or n % 100 == 0:
            LOG.debug(
                "stream_chunk_sent",
                extra={"artifact": self.artifact.value, "chunk": n, "bytes": self.total_bytes},
            )
        now = self._clock()
        if now - last_log >= self._progress_interval:
            LOG.info(
                "stream_progress",
                extra={
                    "artifact": self.artifact.value,
                    "elapsed_s": int(now - started),
                    "chunks": n,
                    "bytes": self.total_bytes,
                },
            )
            return now
        return last_log

    async def _forward(self, piece: str) -> bool:
        if not piece:
            return True
        self._parts.append(piece)
        self.total_bytes += len(piece.encode("utf-8"))
        return await self.channel.send(piece)

    async def run(self, upstream: AsyncIterator[str]) -> RelayState:
        self.store.append(self.session_id, self.prompt, role="user")
        started = last_log = self._clock()
        LOG.info("stream_started", extra={"artifact": self.artifact.value, "session_id": self.session_id})
        try:
            async for chunk in upstream:
                self.chunk_count += 1
                delivered = await self._forward(self.transform.feed(chunk))
                last_log = self._log_progress(started, last_log)
                if not delivered:
                    self.state = RelayState.ABORTED_BY_CONSUMER
                    LOG.info(
                        "stream_consumer_gone",
                        extra={"artifact": self.artifact.value, "chunk": self.chunk_count},
                    )
                    break
            else:
                if await self._forward(self.transform.finish()):
                    self.state = RelayState.COMPLETED
                else:
                    self.state = RelayState.ABORTED_BY_CONSUMER
        except asyncio.CancelledError:
            self.state = RelayState.ABORTED_BY_CONSUMER
            raise
        except Exception as exc:
            self.state = RelayState.ABORTED_BY_ERROR
            LOG.exception(
                "stream_interrupted",
                extra={"artifact": self.artifact.value, "chunks": self.chunk_count},
            )
            if not self.channel.closed:
                await self._forward(self.transform.finish())
                await self._forward(f"{ERROR_MARKER}{exc}")
        finally:
            if self.state is RelayState.ABORTED_BY_CONSUMER:
                await aclose_quietly(upstream)
            self.channel.close()
            self.store.append(self.session_id, self.text, role="model")
            record_stream(self.artifact.value, self.state.value, self.chunk_count, self.total_bytes)
            LOG.info(
                "stream_finished",
                extra={
                    "artifact": self.artifact.value,
                    "state": self.state.value,
                    "chunks": self.chunk_count,
                    "bytes": self.total_bytes,
                    "elapsed_s": round(self._clock() - started, 3),
                },
            )
        return self.state


async def relay_response_body(relay: StreamRelay, upstream: AsyncIterator[str]) -> AsyncIterator[str]:
    """Response body for one generation: runs the relay and drains its channel."""
    task = asyncio.create_task(relay.run(upstream))
    _RELAY_TASKS.add(task)
    task.add_done_callback(_RELAY_TASKS.discard)
    finished = False
    try:
        async for piece in relay.channel.drain():
            yield piece
        finished = True
    finally:
        if finished:
            await task
        else:
            relay.channel.abandon()
            if not task.done():
                task.cancel()
