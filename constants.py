import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Ping every KEEPALIVE_INTERVAL seconds, evict after INTERVAL * DEAD_FACTOR without a pong
KEEPALIVE_INTERVAL = float(os.getenv("KEEPALIVE_INTERVAL", 30))
KEEPALIVE_DEAD_FACTOR = float(os.getenv("KEEPALIVE_DEAD_FACTOR", 2))

# Documents queued per peer before further ones are dropped
PEER_OUTBOX_SIZE = int(os.getenv("PEER_OUTBOX_SIZE", 256))

SHUTDOWN_DRAIN_TIMEOUT = float(os.getenv("SHUTDOWN_DRAIN_TIMEOUT", 10))

TRUST_PROXY_HEADERS = os.getenv("TRUST_PROXY_HEADERS", "false").lower() in ("1", "true", "yes")

CORS_ALLOW_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()]
