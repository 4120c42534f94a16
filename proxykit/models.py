"""
Data records exchanged with the proxy app's loopback API.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Status(str, Enum):
    """Status of the proxy's network extension."""
    STOPPED = "stopped"
    STARTING = "starting"
    STARTED = "started"


class StatusInfo(BaseModel):
    """Proxy status and metadata, as answered by GET /info and GET /poll/."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: Status
    name: Optional[str] = Field(default=None, description="Name of the network extension")
    version: Optional[str] = Field(default=None, description="Semantic version of the proxy app")
    build: Optional[str] = Field(default=None, description="Build ID of the proxy app")
    onion_only: bool = Field(default=False, alias="onion-only")
    # Only revealed to tokens which were granted the bypass feature
    bypass_port: Optional[int] = Field(default=None, alias="bypass-port", ge=0, le=65535)

    @classmethod
    def synthesize(cls, status: Status) -> "StatusInfo":
        """Placeholder for when the proxy can't answer for itself."""
        return cls(status=status)

    @property
    def needs_proxy_configured_to_bypass(self) -> bool:
        """
        Whether the host must route its own traffic through `bypass_port`.

        Only when the proxy is running and not in onion-only mode. Otherwise
        nobody is listening on that port.
        """
        return not self.onion_only and self.status != Status.STOPPED

    def __str__(self) -> str:
        def show(value):
            return "(none)" if value is None else value

        return (
            f"[{type(self).__name__} status={self.status.value}, name={show(self.name)}, "
            f"version={show(self.version)}, build={show(self.build)}, "
            f"onion_only={self.onion_only}, bypass_port={show(self.bypass_port)}]"
        )


class Node(BaseModel):
    """A relay on a circuit's path."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    fingerprint: Optional[str] = None
    nick_name: Optional[str] = None
    ipv4_address: Optional[str] = None
    ipv6_address: Optional[str] = None
    country_code: Optional[str] = None
    localized_country_name: Optional[str] = None


class Circuit(BaseModel):
    """Metadata of a built circuit."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    raw: Optional[str] = None
    circuit_id: Optional[str] = None
    status: Optional[str] = None
    nodes: List[Node] = Field(default_factory=list)
    build_flags: List[str] = Field(default_factory=list)
    purpose: Optional[str] = None
    hs_state: Optional[str] = None
    # Onion address this circuit was used for, minus the ".onion" suffix
    rend_query: Optional[str] = None
    time_created: Optional[datetime] = None
    reason: Optional[str] = None
    remote_reason: Optional[str] = None
    socks_username: Optional[str] = None
    socks_password: Optional[str] = None

    @field_validator("nodes", "build_flags", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return [] if value is None else value

    @field_validator("time_created", mode="before")
    @classmethod
    def _from_epoch_millis(cls, value):
        # The wire format is milliseconds since 1970, regardless of magnitude
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        return value
