"""Data models for guest list export."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


PLACEHOLDER = '-'


@dataclass(frozen=True)
class EventReference:
    """Event identifier resolved from an event page."""
    event_id: str
    ticket_key: Optional[str] = None

    def __post_init__(self):
        if not self.event_id or not self.event_id.strip():
            raise ValueError("event_id must be a non-empty string")


@dataclass(frozen=True)
class NormalizedGuest:
    """Guest record in display/export column order."""
    name: str
    twitter: str
    linkedin: str
    instagram: str
    bio: str

    def as_row(self) -> Tuple[str, str, str, str, str]:
        """Return field values in export column order."""
        return (self.name, self.twitter, self.linkedin, self.instagram, self.bio)


GuestCollection = Tuple[NormalizedGuest, ...]


class SessionState(Enum):
    """States of a single fetch session."""
    IDLE = 'idle'
    RESOLVING = 'resolving'
    FETCHING = 'fetching'
    READY = 'ready'
    FAILED = 'failed'


class FailureKind(Enum):
    """Why a fetch session ended in FAILED."""
    IDENTIFIER_NOT_FOUND = 'identifier_not_found'
    API_ERROR = 'api_error'
    MALFORMED_RESPONSE = 'malformed_response'
    NETWORK_ERROR = 'network_error'
    UNSUPPORTED_HOST = 'unsupported_host'
    CANCELLED = 'cancelled'
    UNEXPECTED = 'unexpected'


@dataclass
class SessionResult:
    """Outcome of a fetch session handed to presentation."""
    state: SessionState
    event_ref: Optional[EventReference] = None
    guests: GuestCollection = ()
    failure_kind: Optional[FailureKind] = None
    message: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def is_empty(self) -> bool:
        return self.state == SessionState.READY and not self.guests
