"""Base protocol and event types for agent backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Union


@dataclass(frozen=True)
class SessionAnnounced:
    """The backend reported the session id this query runs under."""

    session_id: str


@dataclass(frozen=True)
class ContentDelta:
    """A fragment of assistant response text."""

    text: str


@dataclass(frozen=True)
class QueryCompleted:
    """The query finished. Statistics are for logging only.

    Attributes:
        session_id: Session id reported with the result, if any
        total_cost_usd: Reported cost of the query
        num_turns: Agent turns used
        duration_ms: Wall-clock duration reported by the backend
    """

    session_id: Optional[str] = None
    total_cost_usd: Optional[float] = None
    num_turns: Optional[int] = None
    duration_ms: Optional[int] = None


AgentEvent = Union[SessionAnnounced, ContentDelta, QueryCompleted]


class AgentBackend(ABC):
    """Abstract base class for conversational agent backends.

    Implementations must:
    - Yield events lazily as the backend produces them
    - Raise StaleSessionError when a resume id is not recognized
    - Raise AgentQueryError for any other backend failure
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., 'claude-agent-sdk')."""
        ...

    @abstractmethod
    def query(
        self, prompt: str, resume_session_id: Optional[str] = None
    ) -> AsyncIterator[AgentEvent]:
        """Run one query.

        Args:
            prompt: Cleaned user message
            resume_session_id: Agent session to continue, or None for a new one

        Returns:
            Async iterator of agent events, ending after QueryCompleted

        Raises:
            StaleSessionError: resume_session_id is unknown to the backend
            AgentQueryError: Any other backend failure
        """
        ...
