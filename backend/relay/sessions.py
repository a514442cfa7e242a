"""
Relay manager: per (source, viewer) stream sessions.

Instructs sources to start and stop producing frames for a viewer and
forwards each frame to the addressed viewer as soon as it arrives.
Frames are never buffered, reordered or retried.
"""

import asyncio
import logging

from registry.connections import ConnectionRegistry
from registry.errors import SourceUnavailableError
from relay.models import RelaySession, SessionState

logger = logging.getLogger(__name__)


class RelayManager:
    """Owns the stream sessions and forwards frames through the hub.

    ``hub`` is anything with ``async send_to(session_id, event, data) -> bool``.
    """

    def __init__(self, registry: ConnectionRegistry, hub) -> None:
        self._registry = registry
        self._hub = hub
        self._sessions: dict[tuple[str, str], RelaySession] = {}
        self._lock = asyncio.Lock()

    def get(self, source_identity: str, viewer_id: str) -> RelaySession | None:
        return self._sessions.get((source_identity, viewer_id))

    def sessions(self) -> list[RelaySession]:
        """Snapshot of the open sessions."""
        return [s.model_copy() for s in self._sessions.values()]

    async def request_stream(self, viewer_id: str, source_identity: str) -> str:
        """Open a session and ask the source to start; returns its display name."""
        async with self._lock:
            source = self._registry.get_live(source_identity)
            if source is None:
                logger.info(f"Viewer {viewer_id} requested unavailable computer {source_identity}")
                raise SourceUnavailableError(source_identity)

            key = (source_identity, viewer_id)
            session = self._sessions.get(key)
            if session is None or not session.is_active:
                session = RelaySession(
                    source_identity=source_identity,
                    viewer_id=viewer_id,
                    state=SessionState.REQUESTED,
                )
                self._sessions[key] = session
            source_session = source.session_id

        logger.info(f"Stream requested: {source.display_name} -> viewer {viewer_id}")
        await self._hub.send_to(source_session, "start-stream", {"viewerId": viewer_id})
        return source.display_name

    async def frame(
        self,
        source_identity: str,
        viewer_id: str,
        payload: str,
        timestamp: float | None = None,
        frame_number: int | None = None,
    ) -> bool:
        """Forward one frame to the viewer; returns whether it was sent on."""
        self._registry.touch(source_identity)

        session = self._sessions.get((source_identity, viewer_id))
        if session is None or not session.is_active:
            logger.debug(f"Dropping frame from {source_identity} for viewer {viewer_id}: no open session")
            return False

        if session.state is SessionState.REQUESTED:
            session.state = SessionState.STREAMING
            logger.info(f"Streaming: {source_identity} -> viewer {viewer_id}")
        session.frames_relayed += 1
        session.last_frame_number = frame_number

        await self._hub.send_to(viewer_id, "webcam-frame", {
            "frame": payload,
            "computerId": source_identity,
            "timestamp": timestamp,
            "frameNumber": frame_number,
        })
        return True

    async def acknowledge(self, source_identity: str, viewer_id: str, status: str) -> None:
        """Pass a source's stream acknowledgement on to the viewer."""
        session = self._sessions.get((source_identity, viewer_id))
        if session is None or not session.is_active:
            return
        await self._hub.send_to(viewer_id, "stream-ack", {
            "computerId": source_identity,
            "status": status,
        })

    async def stop_stream(
        self, viewer_id: str, source_identity: str, initiated_by_source: bool = False
    ) -> None:
        """Stop a session and tell the other party. Stopping twice is a no-op."""
        async with self._lock:
            session = self._sessions.pop((source_identity, viewer_id), None)
            if session is None:
                return
            session.state = SessionState.STOPPED

        logger.info(
            f"Stream stopped by {'computer' if initiated_by_source else 'viewer'}: "
            f"{source_identity} -> viewer {viewer_id} "
            f"({session.frames_relayed} frames relayed)"
        )
        if initiated_by_source:
            await self._hub.send_to(viewer_id, "stop-stream", {"computerId": source_identity})
        else:
            source_session = self._registry.session_for(source_identity)
            if source_session is not None:
                await self._hub.send_to(source_session, "stop-stream", {"viewerId": viewer_id})

    async def drop_participant(self, session_id: str | None, identity: str | None = None) -> int:
        """Stop every session a departed viewer or source took part in.

        ``session_id`` is matched against viewers, ``identity`` against sources;
        either may be None.
        Returns the number of sessions stopped.
        """
        async with self._lock:
            as_viewer = [
                s for s in self._sessions.values()
                if s.is_active and session_id is not None and s.viewer_id == session_id
            ]
            as_source = [
                s for s in self._sessions.values()
                if s.is_active and identity is not None and s.source_identity == identity
            ]
            for session in as_viewer + as_source:
                session.state = SessionState.STOPPED
                self._sessions.pop(session.key, None)

        for session in as_viewer:
            source_session = self._registry.session_for(session.source_identity)
            if source_session is not None:
                await self._hub.send_to(source_session, "stop-stream", {"viewerId": session.viewer_id})
        for session in as_source:
            await self._hub.send_to(session.viewer_id, "stop-stream", {"computerId": session.source_identity})

        stopped = len(as_viewer) + len(as_source)
        if stopped:
            logger.info(f"Stopped {stopped} stream(s) after {session_id or identity} left")
        return stopped

    async def resume_source(self, identity: str) -> int:
        """Re-send start-stream for sessions still open on ``identity``.

        Used after a new transport session supersedes the previous one.
        """
        source_session = self._registry.session_for(identity)
        if source_session is None:
            return 0
        active = [
            s for s in self._sessions.values()
            if s.is_active and s.source_identity == identity
        ]
        for session in active:
            await self._hub.send_to(source_session, "start-stream", {"viewerId": session.viewer_id})
        if active:
            logger.info(f"Resumed {len(active)} stream(s) on {identity}")
        return len(active)
