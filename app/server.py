import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from app.vars import SERVICE_NAME, HOST, PORT, LOG_LEVEL
from app.rpc_proxy import ProxyConfig, router

logger = logging.getLogger("uvicorn.error")


def create_app(config: Optional[ProxyConfig] = None) -> FastAPI:
    # Docs routes would shadow upstream paths
    app = FastAPI(title=SERVICE_NAME, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.proxy_config = config or ProxyConfig.from_env()
    app.include_router(router)

    logger.info(
        f"{SERVICE_NAME} forwarding to {app.state.proxy_config.base_url or '<unset>'}"
    )
    return app


app = create_app()


def main():
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL)


if __name__ == "__main__":
    main()
