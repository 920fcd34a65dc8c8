import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from app import vars as env

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class ProxyConfig:
    """Process-wide proxy settings, loaded once and never mutated."""

    base_url: str
    ws_url: str
    api_key: str
    allowed_origins: Tuple[str, ...] = field(default_factory=tuple)
    timeout: float = 300.0

    @classmethod
    def create(
        cls,
        base_url: str,
        ws_url: str,
        api_key: str,
        allowed_origins: Optional[Iterable[str]] = None,
        timeout: float = 300.0,
    ) -> "ProxyConfig":
        return cls(
            base_url=base_url,
            ws_url=ws_url,
            api_key=api_key,
            allowed_origins=tuple(allowed_origins or ()),
            timeout=timeout,
        )

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        config = cls.create(
            base_url=env.HELIUS_BASE_URL,
            ws_url=env.HELIUS_WS_URL,
            api_key=env.HELIUS_API_KEY,
            allowed_origins=env.CORS_ALLOW_ORIGIN,
            timeout=env.PROXY_TIMEOUT,
        )
        if not config.base_url:
            logger.warning("HELIUS_BASE_URL is not set; HTTP requests will fail")
        if not config.api_key:
            logger.warning("HELIUS_API_KEY is not set; upstream will reject calls")
        if not config.ws_url:
            logger.warning("HELIUS_WS_URL is not set; WebSocket relay is unavailable")
        if env.CORS_ALLOW_ORIGIN_RAW.strip() and not config.allowed_origins:
            logger.warning(
                f"CORS_ALLOW_ORIGIN={env.CORS_ALLOW_ORIGIN_RAW!r} contains no origins; "
                "allowing all origins"
            )
        return config
