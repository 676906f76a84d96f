"""
Error taxonomy for source resolution and session control.

Every error here is user-visible: the command dispatcher renders its
message as an error notice. Playback failures are not raised; they are
reported as a pipeline outcome.
"""

from typing import Optional


class VoicecastError(Exception):
    """Base class for errors reported back to the control channel."""


class ResolverError(VoicecastError):
    """Error during source resolution."""

    def __init__(
        self,
        message: str,
        is_retryable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.is_retryable = is_retryable
        self.original_error = original_error


class SourceNotFound(ResolverError):
    """A catalog token matched no entry."""


class ExtractionFailed(ResolverError):
    """A platform or network lookup could not produce a playable locator."""


class SessionError(VoicecastError):
    """Error raised by the session controller."""


class AlreadyActive(SessionError):
    """A play request arrived while a session is not idle."""

    def __init__(self, message: str = "Already playing a video, end it first."):
        super().__init__(message)


class NotActive(SessionError):
    """A stop request arrived while no session is running."""

    def __init__(self, message: str = "Already Stopped!"):
        super().__init__(message)


class JoinFailed(SessionError):
    """The voice transport could not be acquired."""


class InvalidTransition(SessionError):
    """A phase change outside the session lifecycle was attempted."""
