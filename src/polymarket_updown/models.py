from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class EventStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    EXPIRED = "expired"


class DataSource(str, Enum):
    CHAINLINK = "chainlink"


@dataclass(frozen=True)
class EventDescriptor:
    slug: str
    title: str
    start_time: datetime      # tz-aware, UTC
    end_time: datetime
    condition_id: str | None = None
    question_id: str | None = None
    clob_token_ids: tuple[str, ...] = ()

    def status_at(self, now: datetime) -> EventStatus:
        if now < self.start_time:
            return EventStatus.UPCOMING
        if now < self.end_time:
            return EventStatus.ACTIVE
        return EventStatus.EXPIRED


@dataclass(frozen=True)
class EventView:
    """A descriptor paired with the status derived at access time."""

    event: EventDescriptor
    status: EventStatus

    @property
    def slug(self) -> str:
        return self.event.slug


@dataclass(frozen=True)
class PriceTick:
    value: float
    timestamp: datetime


@dataclass(frozen=True)
class PricePoint:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class ConnectionState:
    connected: bool
    error: str | None = None


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool = False
    source: DataSource | None = None
    last_update: datetime | None = None
    error: str | None = None
