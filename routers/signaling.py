from fastapi import APIRouter, Request, WebSocket

import constants
from logging_config import get_logger
from schemas.messages import HealthResponse
from transport import WebSocketTransport

logger = get_logger(__name__)

signaling_router = APIRouter(tags=["signaling"])


def resolve_locality(websocket: WebSocket) -> str:
    """Room key for a connection: the client's address as the server sees it."""
    host = ""
    if constants.TRUST_PROXY_HEADERS:
        forwarded = websocket.headers.get("x-forwarded-for", "")
        host = forwarded.split(",")[0].strip()
    if not host and websocket.client:
        host = websocket.client.host or ""
    return normalize_address(host)


def normalize_address(host: str) -> str:
    if host == "::1":
        return "127.0.0.1"
    if host.startswith("::ffff:"):
        return host[len("::ffff:"):]
    return host


@signaling_router.websocket("/ws")
@signaling_router.websocket("/server/webrtc")
async def signaling_endpoint(websocket: WebSocket):
    """Signaling socket. Peers behind the same address see each other."""
    locality = resolve_locality(websocket)
    if not locality:
        logger.warning("WebSocket connection rejected: client address unknown")
        await websocket.close(code=1008, reason="Client address unknown")
        return

    user_agent = websocket.headers.get("user-agent", "")
    logger.info(f"WebSocket connection attempt on {websocket.url.path} from {locality}")

    coordinator = websocket.app.state.coordinator
    try:
        await coordinator.handle(WebSocketTransport(websocket), locality, user_agent)
    except Exception as e:
        logger.error(f"Error during WebSocket connection from {locality}: {e}", exc_info=True)


@signaling_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    registry = request.app.state.registry
    coordinator = request.app.state.coordinator
    return HealthResponse(
        status="draining" if coordinator.shutting_down else "ok",
        rooms=registry.room_count,
        peers=registry.peer_count,
        connections=coordinator.active_count,
    )
