from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from constants import CORS_ALLOW_ORIGINS, KEEPALIVE_DEAD_FACTOR, KEEPALIVE_INTERVAL, LOG_FILE, LOG_LEVEL, SHUTDOWN_DRAIN_TIMEOUT
from keepalive import KeepaliveSupervisor
from lifecycle import ConnectionCoordinator
from logging_config import get_logger, setup_logging
from message_router import MessageRouter
from registry import RoomRegistry
from routers.signaling import signaling_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Room state lives exactly as long as the process serves requests
    registry = RoomRegistry()
    supervisor = KeepaliveSupervisor(registry, interval=KEEPALIVE_INTERVAL, dead_factor=KEEPALIVE_DEAD_FACTOR)
    router = MessageRouter(registry, clock=supervisor.clock)
    coordinator = ConnectionCoordinator(registry, supervisor, router, drain_timeout=SHUTDOWN_DRAIN_TIMEOUT)

    app.state.registry = registry
    app.state.coordinator = coordinator
    logger.info(f"Signaling relay started (keepalive every {KEEPALIVE_INTERVAL}s)")
    try:
        yield
    finally:
        await coordinator.shutdown()
        logger.info("Signaling relay stopped")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(signaling_router)

logger.info("FastAPI application initialized")
