"""
Session-aware query orchestrator.

Drives one Slack message through the agent:

    RESOLVING_SESSION -> QUERYING -> SUCCESS
                                  -> FAILURE
                                  -> SESSION_STALE -> RETRYING -> SUCCESS | FAILURE

A stale agent session (the backend no longer knows the stored id) is deleted
and the query is retried exactly once without a resume id, so the user just
sees the answer. Timeouts and other failures are terminal and reported in the
thread. Nothing raised while handling a turn escapes handle_message, since a
failed Slack event handler would make Slack redeliver the event.
"""

import asyncio
import enum
import logging
import time
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Optional

from slackagent.agent.base import (
    AgentBackend,
    ContentDelta,
    QueryCompleted,
    SessionAnnounced,
)
from slackagent.config import Settings
from slackagent.exceptions import AgentQueryError, StaleSessionError
from slackagent.messaging import ChatMessenger, MessageHandle
from slackagent.sessions.store import SessionMetadata, SessionStore
from slackagent.slack.text import is_direct_message
from slackagent.streaming.progress import ProgressReporter, status_text_for
from slackagent.streaming.relay import RelayStats, StreamingRelay

logger = logging.getLogger(__name__)

TIMEOUT_TEXT = (
    "⏱️ Sorry, that query timed out. "
    "Please try a simpler question or break it into smaller parts."
)
STALE_SESSION_TEXT = (
    "Sorry, I couldn't continue this conversation. "
    "Please start a new thread and try again."
)
GENERIC_ERROR_TEXT = (
    "Sorry, I encountered an unexpected error. "
    "Please try again or start a new conversation."
)


class TurnState(str, enum.Enum):
    """Lifecycle of one inbound message."""

    RESOLVING_SESSION = "resolving_session"
    QUERYING = "querying"
    SESSION_STALE = "session_stale"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class MessageContext:
    """A normalized inbound Slack message.

    Attributes:
        text: Prompt text, already stripped of the bot mention
        user_id: Sender
        channel_id: Channel or DM id
        thread_ts: Root of the thread replies go to
        ts: Timestamp of the message itself
        team_id: Workspace id
    """

    text: str
    user_id: str
    channel_id: str
    thread_ts: str
    ts: str
    team_id: str


def derive_session_key(context: MessageContext) -> str:
    """
    Map a message to its conversation key.

    Direct messages share one conversation per user; channel conversations
    are scoped to the thread.
    """
    if is_direct_message(context.channel_id):
        return f"{context.team_id}-{context.user_id}-dm"
    return f"{context.team_id}-{context.channel_id}-{context.thread_ts}"


@dataclass
class TurnResult:
    """Outcome of handle_message, for logging and tests."""

    session_key: str
    state: TurnState
    attempts: int = 0
    agent_session_id: Optional[str] = None
    relay_stats: Optional[RelayStats] = None


@dataclass
class _Attempt:
    """Per-attempt state owned by one turn."""

    resume_session_id: Optional[str]
    reporter: ProgressReporter
    relay: StreamingRelay
    latest_session_id: Optional[str] = None
    completion: Optional[QueryCompleted] = None


class KeyedLocks:
    """One asyncio lock per key, dropped when nobody holds or waits for it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class _InFlight:
    count: int = 0
    idle: asyncio.Event = field(default_factory=asyncio.Event)


class QueryOrchestrator:
    """Runs agent queries for Slack messages with session reuse and recovery."""

    def __init__(
        self,
        store: SessionStore,
        backend: AgentBackend,
        messenger: ChatMessenger,
        *,
        query_timeout_seconds: float = 110,
        streaming_update_interval_ms: int = 3000,
        streaming_max_length: int = 3900,
        progress_update_interval_ms: int = 5000,
        serialize_same_thread: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Session store (the only state shared between turns)
            backend: Agent backend to query
            messenger: Chat platform capability
            query_timeout_seconds: Hard limit on one query stream
            streaming_update_interval_ms: Minimum gap between relay edits
            streaming_max_length: Longest single Slack message
            progress_update_interval_ms: Gap between progress status edits
            serialize_same_thread: Run turns for the same session key one at a time
            clock: Monotonic clock for relay and reporter
        """
        self.store = store
        self.backend = backend
        self.messenger = messenger
        self.query_timeout_seconds = query_timeout_seconds
        self.streaming_update_interval_ms = streaming_update_interval_ms
        self.streaming_max_length = streaming_max_length
        self.progress_update_interval_ms = progress_update_interval_ms
        self.serialize_same_thread = serialize_same_thread
        self._clock = clock
        self._locks = KeyedLocks()
        self._in_flight = _InFlight()
        self._in_flight.idle.set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: SessionStore,
        backend: AgentBackend,
        messenger: ChatMessenger,
    ) -> "QueryOrchestrator":
        return cls(
            store,
            backend,
            messenger,
            query_timeout_seconds=settings.agent_query_timeout_seconds,
            streaming_update_interval_ms=settings.streaming_update_interval_ms,
            streaming_max_length=settings.streaming_max_length,
            progress_update_interval_ms=settings.progress_update_interval_ms,
            serialize_same_thread=settings.serialize_same_thread,
        )

    @property
    def active_turns(self) -> int:
        return self._in_flight.count

    async def handle_message(self, context: MessageContext) -> TurnResult:
        """
        Process one inbound message end to end.

        Never raises; every failure is logged and reported in the thread.
        """
        session_key = derive_session_key(context)
        self._in_flight.count += 1
        self._in_flight.idle.clear()
        try:
            guard = (
                self._locks.hold(session_key)
                if self.serialize_same_thread
                else nullcontext()
            )
            async with guard:
                return await self._run_turn(context, session_key)
        except Exception as e:
            logger.error(
                f"Unhandled error processing message for session {session_key}: {e}",
                exc_info=True,
            )
            await self._report_failure(context, None, GENERIC_ERROR_TEXT)
            return TurnResult(session_key=session_key, state=TurnState.FAILURE)
        finally:
            self._in_flight.count -= 1
            if self._in_flight.count == 0:
                self._in_flight.idle.set()

    async def drain(self, timeout: float) -> bool:
        """
        Wait for in-flight turns to finish.

        Returns:
            True if all turns finished within the timeout
        """
        if self._in_flight.count == 0:
            return True
        logger.info(f"Waiting up to {timeout}s for {self._in_flight.count} in-flight turn(s)")
        try:
            await asyncio.wait_for(self._in_flight.idle.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Shutdown grace period expired with {self._in_flight.count} turn(s) in flight"
            )
            return False

    async def _run_turn(self, context: MessageContext, session_key: str) -> TurnResult:
        logger.info(f"Processing message for session {session_key} [{TurnState.RESOLVING_SESSION.value}]")
        metadata = SessionMetadata(
            team_id=context.team_id,
            user_id=context.user_id,
            channel_id=context.channel_id,
            thread_ts=context.thread_ts,
        )
        resolved_session_id = await asyncio.to_thread(
            self.store.get_or_create, session_key, metadata
        )
        logger.info(f"Agent session for {session_key}: {resolved_session_id or 'new session'}")

        placeholder = await self.messenger.post_message(
            context.channel_id, context.thread_ts, status_text_for(0)
        )

        result = TurnResult(session_key=session_key, state=TurnState.QUERYING)
        resume_session_id = resolved_session_id

        while True:
            result.attempts += 1
            attempt = self._new_attempt(placeholder, resume_session_id)
            try:
                await self._run_attempt(context.text, attempt)
                break
            except asyncio.TimeoutError:
                logger.warning(
                    f"Query timed out after {self.query_timeout_seconds}s "
                    f"for session {session_key}"
                )
                await self._report_failure(context, attempt, TIMEOUT_TEXT)
                return await self._fail(result, attempt, session_key)
            except StaleSessionError as e:
                if result.state == TurnState.RETRYING:
                    logger.error(
                        f"Agent session still rejected after retry for {session_key}: {e}"
                    )
                    await self._report_failure(context, attempt, STALE_SESSION_TEXT)
                    return await self._fail(result, attempt, session_key)

                result.state = TurnState.SESSION_STALE
                logger.warning(
                    f"Stored agent session {resume_session_id} is stale for "
                    f"{session_key}; starting a new session"
                )
                await asyncio.to_thread(self.store.delete, session_key)
                await asyncio.to_thread(self.store.get_or_create, session_key, metadata)
                resume_session_id = None
                result.state = TurnState.RETRYING
            except AgentQueryError as e:
                logger.error(
                    f"Agent query failed for session {session_key}: {e}"
                    + (f"\nstderr: {e.stderr}" if e.stderr else "")
                )
                await self._report_failure(context, attempt, GENERIC_ERROR_TEXT)
                return await self._fail(result, attempt, session_key)
            except Exception as e:
                logger.error(
                    f"Unexpected error querying agent for session {session_key}: {e}",
                    exc_info=True,
                )
                await self._report_failure(context, attempt, GENERIC_ERROR_TEXT)
                return await self._fail(result, attempt, session_key)
            finally:
                attempt.reporter.stop()

        result.state = TurnState.SUCCESS
        result.agent_session_id = attempt.latest_session_id
        result.relay_stats = attempt.relay.get_stats()

        try:
            if attempt.latest_session_id and attempt.latest_session_id != resolved_session_id:
                await asyncio.to_thread(
                    self.store.update_session_id, session_key, attempt.latest_session_id
                )
            else:
                await asyncio.to_thread(self.store.touch_activity, session_key)
        except Exception as e:
            logger.error(
                f"Reply sent but session {session_key} could not be saved: {e}",
                exc_info=True,
            )

        logger.info(
            f"Successfully processed message for session {session_key} "
            f"(attempts={result.attempts}, edits={result.relay_stats.update_count}, "
            f"chars={result.relay_stats.content_length})"
        )
        return result

    def _new_attempt(
        self, placeholder: MessageHandle, resume_session_id: Optional[str]
    ) -> _Attempt:
        return _Attempt(
            resume_session_id=resume_session_id,
            latest_session_id=resume_session_id,
            reporter=ProgressReporter(
                self.messenger,
                placeholder,
                update_interval_ms=self.progress_update_interval_ms,
                clock=self._clock,
            ),
            relay=StreamingRelay(
                self.messenger,
                placeholder,
                update_interval_ms=self.streaming_update_interval_ms,
                max_length=self.streaming_max_length,
                clock=self._clock,
            ),
        )

    async def _run_attempt(self, prompt: str, attempt: _Attempt) -> None:
        await attempt.reporter.start()
        await asyncio.wait_for(
            self._consume(prompt, attempt), timeout=self.query_timeout_seconds
        )

    async def _consume(self, prompt: str, attempt: _Attempt) -> None:
        received_content = False
        async for event in self.backend.query(prompt, attempt.resume_session_id):
            if isinstance(event, SessionAnnounced):
                attempt.latest_session_id = event.session_id
            elif isinstance(event, ContentDelta):
                if not received_content:
                    # The relay owns the message from here on
                    attempt.reporter.stop()
                    received_content = True
                await attempt.relay.add_content(event.text)
            elif isinstance(event, QueryCompleted):
                attempt.completion = event
                if event.session_id:
                    attempt.latest_session_id = event.session_id
                self._log_completion(event, attempt)

        attempt.reporter.stop()
        await attempt.relay.finalize()

    def _log_completion(self, event: QueryCompleted, attempt: _Attempt) -> None:
        cost = f"${event.total_cost_usd:.6f}" if event.total_cost_usd is not None else "n/a"
        logger.info(
            f"Query completed: session={attempt.latest_session_id}, cost={cost}, "
            f"turns={event.num_turns}, duration_ms={event.duration_ms}, "
            f"elapsed={attempt.reporter.get_elapsed_seconds()}s"
        )

    async def _fail(
        self, result: TurnResult, attempt: _Attempt, session_key: str
    ) -> TurnResult:
        result.state = TurnState.FAILURE
        result.relay_stats = attempt.relay.get_stats()
        try:
            await asyncio.to_thread(self.store.touch_activity, session_key)
        except Exception as e:
            logger.error(f"Could not record activity for {session_key}: {e}")
        return result

    async def _report_failure(
        self,
        context: MessageContext,
        attempt: Optional[_Attempt],
        text: str,
    ) -> None:
        """
        Tell the user a turn failed.

        Replaces the placeholder while it still shows only progress text;
        otherwise (or if the edit fails) posts a new reply in the thread.
        """
        if attempt is not None and not attempt.relay.text:
            try:
                await self.messenger.update_message(attempt.relay.handle, text)
                return
            except Exception as e:
                logger.error(f"Failed to update placeholder with error message: {e}")

        try:
            await self.messenger.post_message(context.channel_id, context.thread_ts, text)
        except Exception as e:
            logger.error(f"Failed to post error message to {context.channel_id}: {e}")
