"""FastAPI application initialization."""

import asyncio
import os
from contextlib import asynccontextmanager

import logfire
import sentry_sdk
from fastapi import FastAPI
from sentry_sdk.integrations.fastapi import FastApiIntegration

from messenger_adapter.api import health, webhook
from messenger_adapter.config import get_settings
from messenger_adapter.constants import (
    DEFAULT_WEBHOOK_PATH,
    GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS,
)
from messenger_adapter.logging_config import setup_logfire
from messenger_adapter.services.messenger_bot import MessengerBot, get_messenger_bot

APP_TITLE = "Facebook Messenger Adapter"
APP_VERSION = "0.3.0"


async def drain_pending_updates(
    bot: MessengerBot,
    timeout: float = GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS,
) -> None:
    """Wait for in-flight update dispatch tasks, cancelling stragglers."""
    pending_tasks = bot.pending_tasks
    if not pending_tasks:
        logfire.info("No pending update dispatch tasks during shutdown")
        return

    logfire.info(
        "Waiting for pending update dispatch tasks to complete",
        task_count=len(pending_tasks),
        timeout_seconds=timeout,
    )
    done, pending = await asyncio.wait(
        pending_tasks,
        timeout=timeout,
        return_when=asyncio.ALL_COMPLETED,
    )

    if pending:
        logfire.warning(
            "Cancelling remaining dispatch tasks after timeout",
            completed_count=len(done),
            cancelled_count=len(pending),
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
    else:
        logfire.info(
            "All dispatch tasks completed successfully",
            completed_count=len(done),
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager with graceful shutdown support."""
    settings = get_settings()

    setup_logfire(app, settings)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            send_default_pii=False,
            integrations=[FastApiIntegration()],
        )

    # Fail at startup, not on the first webhook, if credentials are inconsistent
    bot = get_messenger_bot()
    app.state.messenger_bot = bot

    logfire.info(
        "Application startup complete",
        environment=settings.env,
        graph_api_version=settings.graph_api_version,
        multi_page=bot.credentials.is_multi_page,
        bot_id=bot.id,
    )

    yield

    logfire.info("Application shutdown initiated")
    await drain_pending_updates(bot)
    logfire.info("Application shutdown complete")


def create_app(webhook_path: str = DEFAULT_WEBHOOK_PATH) -> FastAPI:
    """Build the FastAPI application with the webhook mounted at ``webhook_path``."""
    app = FastAPI(
        title=APP_TITLE,
        description="Facebook Messenger webhook receiver and Graph API adapter",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.include_router(health.router, tags=["health"])
    app.include_router(webhook.router, prefix=webhook_path, tags=["webhook"])

    @app.get("/")
    def root():
        """Root endpoint."""
        return {
            "message": APP_TITLE,
            "webhook_path": webhook_path,
            "version": APP_VERSION,
        }

    return app


# The mount point has to be known before settings are loaded
app = create_app(os.getenv("WEBHOOK_PATH", DEFAULT_WEBHOOK_PATH))


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "messenger_adapter.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "local",
    )
