"""Pydantic models for connected and registered sources."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SourceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectedSource(BaseModel):
    """A source with a live transport session."""
    identity: str  # durable id when paired, otherwise the session id
    session_id: str
    display_name: str
    address: str = ""
    last_seen: float  # Unix timestamp
    capabilities: dict[str, bool] = {}
    system_info: dict[str, str] = {}
    pairing_code: str | None = None

    @property
    def is_durable(self) -> bool:
        return self.identity != self.session_id


class RegisteredSource(BaseModel):
    """The durable record of a source, kept for the process lifetime."""
    durable_id: str
    display_name: str
    pairing_code: str
    status: SourceStatus = SourceStatus.OFFLINE
    last_seen: float | None = None


class RegistryEntry(BaseModel):
    """One row of the computer listing, serialized with wire names."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    ip: str = ""
    status: SourceStatus
    last_seen: datetime | None = Field(default=None, alias="lastSeen")
    capabilities: dict[str, bool] = {}

    @classmethod
    def from_live(cls, source: ConnectedSource) -> "RegistryEntry":
        return cls(
            id=source.identity,
            name=source.display_name,
            ip=source.address,
            status=SourceStatus.ONLINE,
            last_seen=_to_datetime(source.last_seen),
            capabilities=source.capabilities,
        )

    @classmethod
    def from_registered(cls, record: RegisteredSource) -> "RegistryEntry":
        return cls(
            id=record.durable_id,
            name=record.display_name,
            status=record.status,
            last_seen=_to_datetime(record.last_seen),
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def _to_datetime(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)
