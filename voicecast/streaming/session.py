"""
Session state for the single active transmission.

One SessionState instance exists per controller. It is passed to the
controller explicitly, never reached through a module global.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from voicecast.streaming.errors import InvalidTransition

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    """Session lifecycle phases."""

    IDLE = "idle"
    JOINING = "joining"
    ACTIVE = "active"
    STOPPING = "stopping"


# The only legal forward transitions. Forced resets to IDLE bypass this.
_TRANSITIONS: dict[SessionPhase, SessionPhase] = {
    SessionPhase.IDLE: SessionPhase.JOINING,
    SessionPhase.JOINING: SessionPhase.ACTIVE,
    SessionPhase.ACTIVE: SessionPhase.STOPPING,
    SessionPhase.STOPPING: SessionPhase.IDLE,
}


@dataclass(frozen=True)
class ChannelInfo:
    """Where the session streams and where it reports."""

    guild_id: str
    channel_id: str
    command_channel_id: str


@dataclass(frozen=True)
class SessionStatus:
    """Snapshot reported by the status command."""

    phase: SessionPhase
    joined: bool
    playing: bool
    title: Optional[str] = None


PhaseListener = Callable[[SessionPhase, SessionPhase], None]


@dataclass
class SessionState:
    """
    Mutable state of the one transmission session.

    Attributes:
        phase: Current lifecycle phase
        channel_info: Target and reporting channels while not idle
        joined_confirmed: Voice membership in the target channel was observed
        title: Title of the source being played
        stop_requested: A stop arrived while joining
        listeners: Called with (old, new) on every phase change
    """

    phase: SessionPhase = SessionPhase.IDLE
    channel_info: Optional[ChannelInfo] = None
    joined_confirmed: bool = False
    title: Optional[str] = None
    stop_requested: bool = False
    listeners: list[PhaseListener] = field(default_factory=list)

    @property
    def is_idle(self) -> bool:
        return self.phase == SessionPhase.IDLE

    def transition(self, new_phase: SessionPhase) -> None:
        """
        Advance along IDLE -> JOINING -> ACTIVE -> STOPPING -> IDLE.

        Raises:
            InvalidTransition: For any other change
        """
        if _TRANSITIONS[self.phase] != new_phase:
            raise InvalidTransition(
                f"Cannot go from {self.phase.value} to {new_phase.value}"
            )
        self._set_phase(new_phase)

    def reset(self) -> None:
        """Force IDLE from any phase and clear everything."""
        self.clear()
        if self.phase != SessionPhase.IDLE:
            self._set_phase(SessionPhase.IDLE)

    def clear(self) -> None:
        self.channel_info = None
        self.joined_confirmed = False
        self.title = None
        self.stop_requested = False

    def status(self) -> SessionStatus:
        return SessionStatus(
            phase=self.phase,
            joined=self.phase != SessionPhase.IDLE,
            playing=self.phase == SessionPhase.ACTIVE,
            title=self.title,
        )

    def _set_phase(self, new_phase: SessionPhase) -> None:
        old_phase = self.phase
        self.phase = new_phase
        logger.debug(f"Session phase {old_phase.value} -> {new_phase.value}")
        for listener in self.listeners:
            listener(old_phase, new_phase)
