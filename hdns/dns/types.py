"""
DNS type definitions for the DNS module
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional


@dataclass(frozen=True)
class Resolution:
    """Result of one DNS query against one server"""

    server: str
    addresses: tuple[str, ...] = ()
    response_time_ms: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class ProviderRecord:
    """DNS record as stored by the DNS provider"""

    zone_id: str
    type: str
    name: str
    value: str
    ttl: int
    id: str = ""

    def to_payload(self) -> dict:
        payload = {
            "zone_id": self.zone_id,
            "type": self.type,
            "name": self.name,
            "value": self.value,
            "ttl": self.ttl,
        }
        if self.id:
            payload["id"] = self.id
        return payload


class Zone(NamedTuple):
    """DNS zone visible to a provider token"""

    id: str
    name: str
    records_count: int = 0


class RecordOutcome(str, Enum):
    """Result of reconciling one record"""

    UP_TO_DATE = "up_to_date"
    UPDATED = "updated"
    FAILED = "failed"
