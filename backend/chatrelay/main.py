"""Chat Relay Backend Application.

This is the main entry point for the chat relay service. Browser clients
connect over a WebSocket, get a random display name, and can chat with
everyone or open a private room with another connected client.

Modules:
    - chat: WebSocket transport, sessions, global history and private rooms
    - config: YAML settings
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay import __version__
from chatrelay.chat.manager import BroadcastRouter, set_relay
from chatrelay.chat.router import router as chat_router
from chatrelay.config import get_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in relay.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    set_relay(BroadcastRouter.from_settings(
        history_limit=config.chat.history_limit,
        name_suffix_limit=config.chat.name_suffix_limit,
    ))
    logger.info(
        f"Chat relay ready on {config.server.host}:{config.server.port} "
        f"(history_limit={config.chat.history_limit})"
    )

    yield  # Application runs here

    # Shutdown
    set_relay(None)
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Chat Relay API",
    description="Real-time global and private chat between browser clients",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_methods=["GET", "POST"],
)

app.include_router(chat_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
