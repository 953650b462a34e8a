from __future__ import annotations

from typing import AsyncIterator, List, Optional, Sequence

from src.relay.domain.generation_models import ModelConfig, Turn


class ScriptedGateway:
    """Gateway double that streams canned chunks and records what it was sent."""

    def __init__(
        self,
        chunks: Optional[Sequence[str]] = None,
        open_error: Optional[BaseException] = None,
        fail_after: Optional[int] = None,
        stream_error: Optional[BaseException] = None,
    ) -> None:
        self.chunks = list(chunks if chunks is not None else ["Generated ", "document"])
        self.open_error = open_error
        self.fail_after = fail_after
        self.stream_error = stream_error or RuntimeError("upstream connection reset")
        self.calls: List[List[Turn]] = []
        self.configs: List[ModelConfig] = []
        self.pulled = 0
        self.closed = False

    async def open(self, turns: Sequence[Turn], config: ModelConfig) -> AsyncIterator[str]:
        self.calls.append(list(turns))
        self.configs.append(config)
        if self.open_error is not None:
            raise self.open_error
        return self._stream()

    async def _stream(self) -> AsyncIterator[str]:
        try:
            for idx, chunk in enumerate(self.chunks):
                if self.fail_after is not None and idx >= self.fail_after:
                    raise self.stream_error
                self.pulled += 1
                yield chunk
            if self.fail_after is not None and self.fail_after >= len(self.chunks):
                raise self.stream_error
        finally:
            self.closed = True


async def iterate(items: Sequence[str]) -> AsyncIterator[str]:
    for item in items:
        yield item
