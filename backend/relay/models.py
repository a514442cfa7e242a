"""Pydantic models for relay sessions."""

from enum import Enum

from pydantic import BaseModel


class SessionState(str, Enum):
    """States of a (source, viewer) stream. An absent session is idle."""
    IDLE = "idle"
    REQUESTED = "requested"
    STREAMING = "streaming"
    STOPPED = "stopped"


ACTIVE_STATES = (SessionState.REQUESTED, SessionState.STREAMING)


class RelaySession(BaseModel):
    """One logical stream from a source to a viewer."""
    source_identity: str
    viewer_id: str
    state: SessionState = SessionState.IDLE
    frames_relayed: int = 0
    last_frame_number: int | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.source_identity, self.viewer_id)

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES
