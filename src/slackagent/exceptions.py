"""Custom exceptions for the Slack agent."""

from typing import Optional


class AgentQueryError(Exception):
    """Raised when the agent backend fails a query for an unclassified reason."""

    def __init__(self, message: str, stderr: Optional[str] = None):
        self.stderr = stderr
        super().__init__(message)


class StaleSessionError(AgentQueryError):
    """Raised when the agent backend no longer recognizes a resume session id."""

    def __init__(self, session_id: Optional[str], stderr: Optional[str] = None):
        self.session_id = session_id
        super().__init__(f"Agent session {session_id} not found", stderr=stderr)


class MessagingError(Exception):
    """Raised when a chat platform call (post/update/lookup) fails."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Slack {operation} failed: {reason}")
