"""
Slack Agent FastAPI application.

Receives Slack Events API callbacks on /slack/events and exposes health and
readiness probes. Everything stateful (session store, cleanup worker,
orchestrator) is created in the lifespan and hung off app.state.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slack_bolt.adapter.fastapi.async_handler import AsyncSlackRequestHandler

from slackagent import __version__
from slackagent.agent.base import AgentBackend
from slackagent.agent.claude import ClaudeAgentBackend
from slackagent.config import Settings
from slackagent.logging_config import setup_logging
from slackagent.orchestrator import QueryOrchestrator
from slackagent.sessions import SessionCleanupWorker, SessionStore
from slackagent.slack.app import SlackEventRouter, create_slack_app, register_listeners
from slackagent.slack.messenger import SlackMessenger
from slackagent.startup import run_all_startup_checks

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[AgentBackend] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (loaded from the environment if omitted)
        backend: Agent backend override (Claude Agent SDK by default)
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Run startup checks, start the cleanup worker and wire Slack to the
        orchestrator; on shutdown let in-flight turns finish before closing
        the store.
        """
        setup_logging(settings, context="api")

        logger.info("Running startup checks...")
        store = SessionStore.from_settings(settings)
        app.state.startup_metrics = run_all_startup_checks(settings, store)
        store.initialize()
        logger.info("✓ Startup checks passed")

        cleanup_worker = SessionCleanupWorker(
            store, interval_seconds=settings.session_cleanup_interval_seconds
        )
        cleanup_worker.start()

        slack_app = create_slack_app(settings)
        messenger = SlackMessenger(slack_app.client)
        orchestrator = QueryOrchestrator.from_settings(
            settings,
            store,
            backend or ClaudeAgentBackend.from_settings(settings),
            messenger,
        )
        register_listeners(slack_app, SlackEventRouter(orchestrator, store, messenger))

        app.state.store = store
        app.state.cleanup_worker = cleanup_worker
        app.state.orchestrator = orchestrator
        app.state.slack_handler = AsyncSlackRequestHandler(slack_app)
        logger.info("Application startup complete")

        yield

        logger.info("Application shutdown initiated...")
        try:
            await orchestrator.drain(settings.shutdown_grace_seconds)
            cleanup_worker.stop(timeout=5)
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)
        finally:
            store.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        lifespan=lifespan,
        title="Slack Agent",
        description="Slack bot backed by the Claude Agent SDK",
        version=__version__,
    )
    app.state.settings = settings

    @app.post("/slack/events")
    async def slack_events(request: Request):
        """Slack Events API endpoint (signature checked by Bolt)."""
        return await request.app.state.slack_handler.handle(request)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {
            "status": "ok",
            "message": "Slack Agent is running",
            "version": __version__,
        }

    @app.get("/health")
    async def health(request: Request) -> dict:
        """Health check endpoint with session store statistics."""
        store: SessionStore = request.app.state.store
        db_ok = await asyncio.to_thread(store.check_connection)

        result: dict = {
            "status": "healthy" if db_ok else "degraded",
            "database": "healthy" if db_ok else "unhealthy",
            "active_turns": request.app.state.orchestrator.active_turns,
            "cleanup_worker": request.app.state.cleanup_worker.get_stats(),
        }
        if db_ok:
            stats = await asyncio.to_thread(store.get_stats)
            result["sessions"] = {
                "total": stats.total_sessions,
                "active": stats.active_sessions,
            }
        return result

    @app.get("/ready")
    async def ready(request: Request):
        """
        Readiness probe for load balancers.

        Returns 200 once startup checks passed and the store answers,
        503 Service Unavailable otherwise.
        """
        metrics = request.app.state.startup_metrics
        db_ok = await asyncio.to_thread(request.app.state.store.check_connection)
        details = {
            "ready": metrics.checks_passed and db_ok,
            "database": "healthy" if db_ok else "unhealthy",
            "startup_completed": metrics.checks_passed,
            "startup_duration_ms": metrics.total_duration_ms,
        }
        if not details["ready"]:
            return JSONResponse(
                content=details, status_code=status.HTTP_503_SERVICE_UNAVAILABLE
            )
        return details

    return app
