"""Pydantic models for inbound WebSocket event payloads (camelCase on the wire)."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegisterComputer(_Message):
    name: str = Field(min_length=1)
    capabilities: dict[str, bool] = {}
    connection_code: str | None = Field(default=None, alias="connectionCode")
    system_info: dict[str, str] = Field(default={}, alias="systemInfo")

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class PairComputer(_Message):
    connection_code: str = Field(alias="connectionCode")


class RequestStream(_Message):
    computer_id: str = Field(alias="computerId")


class StopStream(_Message):
    """Viewers send ``computerId``; computers send ``viewerId``."""
    computer_id: str | None = Field(default=None, alias="computerId")
    viewer_id: str | None = Field(default=None, alias="viewerId")


class StreamAck(_Message):
    viewer_id: str = Field(alias="viewerId")
    status: str = "starting"


class WebcamFrame(_Message):
    viewer_id: str = Field(alias="viewerId")
    frame: str
    timestamp: float | None = None
    frame_number: int | None = Field(default=None, alias="frameNumber")


class Heartbeat(_Message):
    computer_name: str | None = Field(default=None, alias="computerName")
    timestamp: float | None = None
    active_streams: list[str] = Field(default=[], alias="activeStreams")
