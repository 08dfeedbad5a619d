import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

logger = logging.getLogger("uvicorn.error")


class RelayState(str, Enum):
    """Lifecycle of one relay request."""

    CONNECTING = "connecting"
    AWAITING_HEADERS = "awaiting_headers"
    STREAMING = "streaming"
    CLOSED = "closed"


_TRANSITIONS = {
    RelayState.CONNECTING: {RelayState.AWAITING_HEADERS, RelayState.CLOSED},
    RelayState.AWAITING_HEADERS: {
        RelayState.CONNECTING,
        RelayState.STREAMING,
        RelayState.CLOSED,
    },
    RelayState.STREAMING: {RelayState.CLOSED},
    RelayState.CLOSED: set(),
}


class InvalidTransition(RuntimeError):
    pass


@dataclass(frozen=True)
class UpstreamAttempt:
    """One outbound request in a redirect chain."""

    url: str
    depth: int = 0

    def follow(self, location: str) -> "UpstreamAttempt":
        return UpstreamAttempt(url=location, depth=self.depth + 1)


@dataclass
class RelaySession:
    """
    Tracks the state of a single relay request.

    Attributes:
        target_url: The URL the caller asked for
        state: Current lifecycle state
        attempt: The upstream attempt currently in flight (or promoted to terminal)
        history: Every state entered, in order
        close_reason: Why the session ended, once CLOSED
        bytes_relayed: Body bytes handed to the caller so far
    """

    target_url: str
    state: RelayState = RelayState.CONNECTING
    attempt: Optional[UpstreamAttempt] = None
    history: List[RelayState] = field(default_factory=list)
    close_reason: Optional[str] = None
    bytes_relayed: int = 0

    def __post_init__(self):
        if self.attempt is None:
            self.attempt = UpstreamAttempt(self.target_url)
        self.history.append(self.state)

    @property
    def depth(self) -> int:
        return self.attempt.depth

    @property
    def closed(self) -> bool:
        return self.state is RelayState.CLOSED

    def transition(self, new_state: RelayState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def sent(self) -> None:
        self.transition(RelayState.AWAITING_HEADERS)

    def redirected(self, location: str) -> UpstreamAttempt:
        self.transition(RelayState.CONNECTING)
        self.attempt = self.attempt.follow(location)
        return self.attempt

    def streaming(self) -> None:
        self.transition(RelayState.STREAMING)

    def close(self, reason: str) -> None:
        # Closing twice is harmless: disconnect and body end can race.
        if self.closed:
            return
        self.transition(RelayState.CLOSED)
        self.close_reason = reason
        logger.debug(f"[Relay] Session for {self.target_url} closed: {reason}")
