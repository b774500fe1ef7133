"""Claude Agent SDK backend implementation."""

import logging
import re
import time
from typing import AsyncIterator, Callable, Optional

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolUseBlock,
    query,
)
from claude_agent_sdk.types import StreamEvent

from slackagent.agent.base import (
    AgentBackend,
    AgentEvent,
    ContentDelta,
    QueryCompleted,
    SessionAnnounced,
)
from slackagent.config import Settings
from slackagent.exceptions import AgentQueryError, StaleSessionError

logger = logging.getLogger(__name__)
stderr_logger = logging.getLogger("slackagent.agent.stderr")

# Messages the CLI emits when asked to resume a session it does not know
STALE_SESSION_PATTERNS = [
    re.compile(r"no conversation found", re.IGNORECASE),
    re.compile(r"session\b.*\bnot found", re.IGNORECASE),
    re.compile(r"invalid session id", re.IGNORECASE),
]


def log_stderr_line(line: str) -> None:
    """Default stderr sink: forward CLI stderr to a dedicated logger."""
    stderr_logger.warning(line.rstrip())


def is_stale_session_message(text: str) -> bool:
    """Check whether backend error text says the resume session is unknown."""
    return any(pattern.search(text) for pattern in STALE_SESSION_PATTERNS)


def classify_agent_error(
    error: BaseException,
    resume_session_id: Optional[str],
    stderr_lines: Optional[list[str]] = None,
) -> AgentQueryError:
    """
    Map a raw backend failure onto the agent error taxonomy.

    Args:
        error: Exception raised by the SDK
        resume_session_id: Session id the query tried to resume
        stderr_lines: CLI stderr captured during the query

    Returns:
        StaleSessionError if a resume was attempted and the error text names an
        unknown session, otherwise AgentQueryError
    """
    if isinstance(error, AgentQueryError):
        return error

    stderr = "\n".join(stderr_lines or [])
    details = " ".join(
        part for part in (str(error), getattr(error, "stderr", None) or "", stderr) if part
    )

    if resume_session_id and is_stale_session_message(details):
        return StaleSessionError(resume_session_id, stderr=stderr or None)
    return AgentQueryError(f"Failed to query Claude: {error}", stderr=stderr or None)


class ClaudeAgentBackend(AgentBackend):
    """Agent backend that drives the Claude Code CLI through claude-agent-sdk."""

    def __init__(
        self,
        api_key: str,
        cwd: str,
        model: Optional[str] = None,
        max_turns: int = 10,
        system_prompt_append: str = "",
        disallowed_tools: Optional[list[str]] = None,
        include_partial_messages: bool = True,
        stderr_sink: Callable[[str], None] = log_stderr_line,
    ):
        """Initialize the Claude backend.

        Args:
            api_key: Anthropic API key passed to the CLI environment
            cwd: Working directory for the agent process
            model: Model override (None = CLI default)
            max_turns: Upper bound on agent turns per query
            system_prompt_append: Text appended to the claude_code preset prompt
            disallowed_tools: Tools the agent may not call
            include_partial_messages: Stream text deltas instead of whole messages
            stderr_sink: Receives each line the CLI writes to stderr
        """
        if not api_key:
            raise ValueError("Anthropic API key is required")

        self._api_key = api_key
        self.cwd = cwd
        self.model = model
        self.max_turns = max_turns
        self.system_prompt_append = system_prompt_append
        self.disallowed_tools = list(disallowed_tools or [])
        self.include_partial_messages = include_partial_messages
        self._stderr_sink = stderr_sink

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        stderr_sink: Callable[[str], None] = log_stderr_line,
    ) -> "ClaudeAgentBackend":
        """Build a backend from application settings."""
        return cls(
            api_key=settings.anthropic_api_key,
            cwd=settings.session_data_dir,
            model=settings.agent_model or None,
            max_turns=settings.agent_max_turns,
            system_prompt_append=settings.agent_system_prompt_append,
            disallowed_tools=settings.agent_disallowed_tools,
            include_partial_messages=settings.agent_include_partial_messages,
            stderr_sink=stderr_sink,
        )

    @property
    def backend_name(self) -> str:
        return "claude-agent-sdk"

    def build_options(
        self,
        resume_session_id: Optional[str],
        stderr: Callable[[str], None],
    ) -> ClaudeAgentOptions:
        """Build SDK options for one query."""
        return ClaudeAgentOptions(
            resume=resume_session_id,
            model=self.model,
            max_turns=self.max_turns,
            permission_mode="bypassPermissions",
            system_prompt={
                "type": "preset",
                "preset": "claude_code",
                "append": self.system_prompt_append,
            },
            setting_sources=[],
            cwd=self.cwd,
            disallowed_tools=self.disallowed_tools,
            include_partial_messages=self.include_partial_messages,
            env={"ANTHROPIC_API_KEY": self._api_key},
            stderr=stderr,
        )

    async def query(
        self, prompt: str, resume_session_id: Optional[str] = None
    ) -> AsyncIterator[AgentEvent]:
        stderr_lines: list[str] = []

        def capture_stderr(line: str) -> None:
            stderr_lines.append(line)
            self._stderr_sink(line)

        options = self.build_options(resume_session_id, capture_stderr)
        logger.info(
            f"Querying Claude (session: {resume_session_id or 'new'}, "
            f"prompt: {prompt[:50]!r})"
        )

        start_time = time.time()
        try:
            async for message in query(prompt=prompt, options=options):
                for event in self._translate(message, resume_session_id, stderr_lines):
                    yield event
        except AgentQueryError:
            raise
        except Exception as e:
            raise classify_agent_error(e, resume_session_id, stderr_lines) from e

        logger.debug(f"Claude stream closed after {(time.time() - start_time):.1f}s")

    def _translate(
        self,
        message: object,
        resume_session_id: Optional[str],
        stderr_lines: Optional[list[str]] = None,
    ) -> list[AgentEvent]:
        """Convert one SDK message into zero or more agent events."""
        if isinstance(message, SystemMessage):
            session_id = message.data.get("session_id")
            if message.subtype == "init" and session_id:
                logger.info(f"Agent session id: {session_id}")
                return [SessionAnnounced(session_id)]
            return []

        if isinstance(message, StreamEvent):
            if not self.include_partial_messages:
                return []
            event = message.event
            delta = event.get("delta") or {}
            if event.get("type") == "content_block_delta" and delta.get("type") == "text_delta":
                text = delta.get("text", "")
                return [ContentDelta(text)] if text else []
            return []

        if isinstance(message, AssistantMessage):
            events: list[AgentEvent] = []
            for block in message.content:
                if isinstance(block, ToolUseBlock):
                    logger.info(f"Tool used: {block.name}")
                elif isinstance(block, TextBlock) and not self.include_partial_messages:
                    if block.text:
                        events.append(ContentDelta(block.text))
            return events

        if isinstance(message, ResultMessage):
            if message.is_error:
                detail = message.result or message.subtype
                raise classify_agent_error(
                    RuntimeError(f"Claude query ended with error: {detail}"),
                    resume_session_id,
                    stderr_lines,
                )
            return [
                QueryCompleted(
                    session_id=message.session_id,
                    total_cost_usd=message.total_cost_usd,
                    num_turns=message.num_turns,
                    duration_ms=message.duration_ms,
                )
            ]

        return []
