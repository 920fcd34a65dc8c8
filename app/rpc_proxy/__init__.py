from .config import ProxyConfig
from .route import (
    router,
    handle_request,
    compute_cors_headers,
    build_upstream_url,
    build_ws_upstream_url,
)

__all__ = [
    "ProxyConfig",
    "router",
    "handle_request",
    "compute_cors_headers",
    "build_upstream_url",
    "build_ws_upstream_url",
]
