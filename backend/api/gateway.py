"""
Gateway protocol: dispatches inbound WebSocket events to the registry and
the relay, and puts their results and errors back on the wire.
"""

import logging

from pydantic import ValidationError as PayloadError

from api.messages import (
    Heartbeat,
    PairComputer,
    RegisterComputer,
    RequestStream,
    StopStream,
    StreamAck,
    WebcamFrame,
)
from api.websocket import ConnectionManager
from registry.connections import ConnectionRegistry
from registry.errors import RelayError
from relay.sessions import RelayManager

logger = logging.getLogger(__name__)

# Reply event used when a request fails, per inbound event
ERROR_EVENTS = {
    "pair-computer": "pair-error",
    "request-stream": "stream-error",
}


class GatewayProtocol:
    """Binds one WebSocket connection per source or viewer to the services."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        relay: RelayManager,
        hub: ConnectionManager,
    ) -> None:
        self._registry = registry
        self._relay = relay
        self._hub = hub
        self._handlers = {
            "register-computer": self._on_register,
            "pair-computer": self._on_pair,
            "request-stream": self._on_request_stream,
            "stop-stream": self._on_stop_stream,
            "stream-ack": self._on_stream_ack,
            "webcam-frame": self._on_frame,
            "heartbeat": self._on_heartbeat,
        }

    async def dispatch(self, session_id: str, message: dict, address: str = "") -> None:
        """Handle one ``{"event": ..., "data": ...}`` message from a connection."""
        event = message.get("event") if isinstance(message, dict) else None
        data = message.get("data") if isinstance(message, dict) else None
        if not isinstance(data, dict):
            data = {}

        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event {event!r} from {session_id}")
            await self._hub.send_to(session_id, "error", {"message": f"Unknown event: {event}"})
            return

        try:
            await handler(session_id, data, address)
        except PayloadError as e:
            if event == "webcam-frame":
                logger.debug(f"Dropping malformed frame from {session_id}: {e}")
                return
            logger.warning(f"Malformed {event} from {session_id}: {e.errors()}")
            await self._hub.send_to(
                session_id,
                ERROR_EVENTS.get(event, "error"),
                {"message": f"Invalid {event} payload"},
            )
        except RelayError as e:
            logger.info(f"{event} from {session_id} failed: {e.message}")
            await self._hub.send_to(
                session_id, ERROR_EVENTS.get(event, "error"), {"message": e.message}
            )

    async def on_disconnect(self, session_id: str) -> None:
        """Clean up registry and relay state for a closed connection."""
        source = await self._registry.remove(session_id)
        await self._relay.drop_participant(
            session_id, source.identity if source else None
        )

    # --- Handlers ---

    async def _on_register(self, session_id: str, data: dict, address: str) -> None:
        msg = RegisterComputer.model_validate(data)
        previous = self._registry.identity_for_session(session_id)
        identity = await self._registry.register(
            session_id,
            msg.name,
            capabilities=msg.capabilities,
            pairing_code=msg.connection_code,
            address=address,
            system_info=msg.system_info,
        )
        if previous is not None and previous != identity:
            # Streams addressed to the old identity cannot reach this computer any more
            await self._relay.drop_participant(None, previous)
        source = self._registry.get_live(identity)
        await self._hub.send_to(session_id, "registered", {
            "id": identity,
            "name": source.display_name if source else msg.name,
        })
        await self._relay.resume_source(identity)

    async def _on_pair(self, session_id: str, data: dict, address: str) -> None:
        msg = PairComputer.model_validate(data)
        durable_id = await self._registry.pair(msg.connection_code)
        logger.info(f"Viewer {session_id} paired with {durable_id}")
        await self._hub.send_to(session_id, "computer-paired", {"computerId": durable_id})

    async def _on_request_stream(self, session_id: str, data: dict, address: str) -> None:
        msg = RequestStream.model_validate(data)
        name = await self._relay.request_stream(session_id, msg.computer_id)
        await self._hub.send_to(session_id, "stream-ready", {"computerName": name})

    async def _on_stop_stream(self, session_id: str, data: dict, address: str) -> None:
        msg = StopStream.model_validate(data)
        if msg.computer_id:
            await self._relay.stop_stream(session_id, msg.computer_id)
            return

        identity = self._registry.identity_for_session(session_id)
        if msg.viewer_id and identity:
            await self._relay.stop_stream(msg.viewer_id, identity, initiated_by_source=True)

    async def _on_stream_ack(self, session_id: str, data: dict, address: str) -> None:
        msg = StreamAck.model_validate(data)
        identity = self._registry.identity_for_session(session_id)
        if identity:
            await self._relay.acknowledge(identity, msg.viewer_id, msg.status)

    async def _on_frame(self, session_id: str, data: dict, address: str) -> None:
        identity = self._registry.identity_for_session(session_id)
        if identity is None:
            logger.debug(f"Frame from unregistered connection {session_id}")
            return
        # A frame refreshes liveness even when its payload is unusable
        self._registry.touch(identity)
        msg = WebcamFrame.model_validate(data)
        await self._relay.frame(
            identity, msg.viewer_id, msg.frame, msg.timestamp, msg.frame_number
        )

    async def _on_heartbeat(self, session_id: str, data: dict, address: str) -> None:
        # Liveness first; the rest of the payload is informational
        self._registry.touch_session(session_id)
        try:
            msg = Heartbeat.model_validate(data)
        except PayloadError as e:
            logger.debug(f"Malformed heartbeat from {session_id}: {e}")
            return
        logger.debug(
            f"Heartbeat from {msg.computer_name or session_id}: "
            f"{len(msg.active_streams)} active stream(s)"
        )
