import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "helius-rpc-proxy")
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

HELIUS_API_KEY = os.environ.get("HELIUS_API_KEY", "")
HELIUS_BASE_URL = os.environ.get("HELIUS_BASE_URL", "")
HELIUS_WS_URL = os.environ.get("HELIUS_WS_URL", "")

# Empty allow-list means every origin is allowed
CORS_ALLOW_ORIGIN_RAW = os.getenv("CORS_ALLOW_ORIGIN", "")
CORS_ALLOW_ORIGIN = [o.strip() for o in CORS_ALLOW_ORIGIN_RAW.split(",") if o.strip()]

PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))  # 5 minutes default
