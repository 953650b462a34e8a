"""Exceptions raised before a generation stream starts.

Anything raised after the first byte was written is reported inside the
response body by the stream relay instead.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for failures surfaced to the client as a JSON error."""


class InvalidRequestError(GenerationError):
    pass


class UnknownArtifactError(InvalidRequestError):
    def __init__(self, artifact: str) -> None:
        super().__init__(f"Unknown artifact type: {artifact}")
        self.artifact = artifact


class PromptError(GenerationError):
    pass


class ConfigurationError(GenerationError):
    pass


class RateLimitedError(GenerationError):
    def __init__(self, message: str = "Upstream rate limit exceeded") -> None:
        super().__init__(message)


class UpstreamFailure(GenerationError):
    pass
