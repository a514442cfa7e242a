"""
Connection registry.

Tracks the sources that currently hold a live transport session and the
durable records created through explicit registration, and reconciles the
two through pairing codes.
"""

import asyncio
import logging
import time
import uuid

from registry.errors import UnknownCodeError, ValidationError
from registry.models import (
    ConnectedSource,
    RegisteredSource,
    RegistryEntry,
    SourceStatus,
)
from registry.pairing import PairingDirectory

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Owns live and durable source records.

    Every mutation runs under a single ``asyncio.Lock``. ``touch`` never
    awaits, so it is atomic on the event loop without taking the lock.
    """

    def __init__(self, clock=time.time) -> None:
        self._live: dict[str, ConnectedSource] = {}  # identity -> source
        self._sessions: dict[str, str] = {}  # session id -> identity
        self._registered: dict[str, RegisteredSource] = {}  # durable id -> record
        self._pairing = PairingDirectory()
        self._lock = asyncio.Lock()
        self._on_change: list = []  # callbacks: async def fn()
        self._clock = clock

    def on_change(self, callback) -> None:
        """Register a callback for "registry changed" notifications."""
        self._on_change.append(callback)

    async def _notify(self) -> None:
        for cb in self._on_change:
            try:
                await cb()
            except Exception as e:
                logger.error(f"Registry change callback error: {e}")

    # --- Live sources ---

    async def register(
        self,
        session_id: str,
        display_name: str,
        capabilities: dict[str, bool] | None = None,
        pairing_code: str | None = None,
        address: str = "",
        system_info: dict[str, str] | None = None,
    ) -> str:
        """Register a live source and return the identity it is addressed by."""
        async with self._lock:
            identity = session_id
            name = display_name
            record = None

            pairing_code = (pairing_code or "").strip() or None
            if pairing_code:
                try:
                    durable_id = self._pairing.resolve(pairing_code)
                except UnknownCodeError:
                    logger.warning(
                        f"Unknown connection code from {display_name!r}; "
                        f"registering as ephemeral {session_id}"
                    )
                else:
                    record = self._registered[durable_id]
                    identity = durable_id
                    # The durable name is authoritative once reconciled
                    name = record.display_name

            # Re-registration on the same session may switch identity
            previous = self._sessions.get(session_id)
            if previous is not None and previous != identity:
                self._drop_live(session_id)

            superseded = self._live.get(identity)
            if superseded is not None and superseded.session_id != session_id:
                self._sessions.pop(superseded.session_id, None)
                logger.info(
                    f"Session {session_id} supersedes {superseded.session_id} "
                    f"for {identity}"
                )

            now = self._clock()
            self._live[identity] = ConnectedSource(
                identity=identity,
                session_id=session_id,
                display_name=name,
                address=address,
                last_seen=now,
                capabilities=capabilities or {},
                system_info=system_info or {},
                pairing_code=pairing_code if record else None,
            )
            self._sessions[session_id] = identity

            if record is not None:
                record.status = SourceStatus.ONLINE
                record.last_seen = now

        logger.info(f"Computer registered: {name} ({identity})")
        await self._notify()
        return identity

    def touch(self, identity: str) -> None:
        """Refresh liveness of a live source; unknown identities are ignored."""
        source = self._live.get(identity)
        if source is not None:
            source.last_seen = self._clock()

    def touch_session(self, session_id: str) -> None:
        identity = self._sessions.get(session_id)
        if identity is not None:
            self.touch(identity)

    async def remove(self, session_id: str) -> ConnectedSource | None:
        """Drop the live source bound to a disconnected transport session."""
        async with self._lock:
            source = self._drop_live(session_id)

        if source is None:
            return None

        logger.info(f"Computer disconnected: {source.display_name} ({source.identity})")
        await self._notify()
        return source

    async def evict_stale(self, window: float) -> list[ConnectedSource]:
        """Evict every source silent for longer than ``window`` seconds.

        Emits at most one change notification for the whole sweep.
        """
        async with self._lock:
            now = self._clock()
            stale = [
                source for source in self._live.values()
                if now - source.last_seen > window
            ]
            for source in stale:
                self._drop_live(source.session_id)

        for source in stale:
            logger.info(f"Computer connection timed out: {source.display_name}")
        if stale:
            await self._notify()
        return stale

    def _drop_live(self, session_id: str) -> ConnectedSource | None:
        # Caller holds the lock
        identity = self._sessions.pop(session_id, None)
        if identity is None:
            return None
        source = self._live.pop(identity, None)
        if source is None:
            return None

        record = self._registered.get(identity)
        if record is not None:
            record.status = SourceStatus.OFFLINE
            record.last_seen = self._clock()
        return source

    # --- Durable records ---

    async def register_durable(self, display_name: str | None, pairing_code: str | None) -> str:
        """Create an offline durable record bound to ``pairing_code``."""
        name = (display_name or "").strip()
        code = (pairing_code or "").strip()
        if not name or not code:
            raise ValidationError("Name and connection code are required")

        async with self._lock:
            durable_id = str(uuid.uuid4())
            self._pairing.bind(code, durable_id)
            self._registered[durable_id] = RegisteredSource(
                durable_id=durable_id,
                display_name=name,
                pairing_code=code,
            )

        logger.info(f"Registered computer {name} as {durable_id}")
        await self._notify()
        return durable_id

    async def pair(self, pairing_code: str | None) -> str:
        """Resolve a human-shared pairing code to an addressable identity."""
        async with self._lock:
            return self._pairing.resolve((pairing_code or "").strip())

    # --- Reads ---

    async def list_all(self) -> list[RegistryEntry]:
        """Snapshot of durable records (with live overlay) and ephemeral sources."""
        async with self._lock:
            live = [source.model_copy() for source in self._live.values()]
            registered = [record.model_copy() for record in self._registered.values()]

        live_by_id = {source.identity: source for source in live}
        entries = []
        for record in registered:
            source = live_by_id.pop(record.durable_id, None)
            if source is not None:
                entries.append(RegistryEntry.from_live(source))
            else:
                entries.append(RegistryEntry.from_registered(record))
        entries.extend(RegistryEntry.from_live(source) for source in live_by_id.values())
        return entries

    def get_live(self, identity: str) -> ConnectedSource | None:
        return self._live.get(identity)

    def identity_for_session(self, session_id: str) -> str | None:
        return self._sessions.get(session_id)

    def session_for(self, identity: str) -> str | None:
        source = self._live.get(identity)
        return source.session_id if source else None

    @property
    def online_count(self) -> int:
        return len(self._live)

    @property
    def registered_count(self) -> int:
        return len(self._registered)
