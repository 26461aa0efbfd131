import contextlib
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.status import (
    HTTP_204_NO_CONTENT,
    HTTP_405_METHOD_NOT_ALLOWED,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from fitai_gateway import __version__
from fitai_gateway.di import Container
from fitai_gateway.errors import GatewayError, RateLimitError
from fitai_gateway.gateway import AIGateway

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_container() -> Container:
    """Create the container and load `config.yml` (with `.env` applied)."""
    load_dotenv()
    container = Container()
    container.config.from_yaml(Path(__file__).parent / "config.yml")
    return container


async def health(_request: Request) -> JSONResponse:
    """Health check endpoint.
    Args:
        _request: The incoming request (unused).
    Returns:
        A JSON response with status "ok" and the package version.
    """
    return JSONResponse({"status": "ok", "version": __version__})


@contextlib.asynccontextmanager
async def lifespan(app: Starlette):  # type: ignore
    """Initialize the application and its components."""

    uvicorn_logger = logging.getLogger("uvicorn")
    root_logger = logging.getLogger()
    for handler in uvicorn_logger.handlers:
        root_logger.addHandler(handler)

    if getattr(app.state, "container", None) is None:
        app.state.container = build_container()
    container: Container = app.state.container

    log_level = (container.config.log_level() or "INFO").upper()
    root_logger.setLevel(log_level)
    logger.info(
        f"Starting FitAI gateway {__version__} with log level {log_level}..."
    )

    gateway: AIGateway = container.gateway()
    logger.info("Configured gateway: %s", gateway)
    logger.info("Configured rate limiter: %s", gateway.rate_limiter)
    logger.info("Configured quota ledger: %s", gateway.quota_ledger)
    for name, client in gateway.model_clients.items():
        logger.info("Configured model client: %s: %s", name, client)

    yield

    logger.info("Shutting down FitAI gateway...")
    for client in gateway.model_clients.values():
        await client.close()
    close_verifier = getattr(gateway.identity_verifier, "close", None)
    if close_verifier is not None:
        await close_verifier()


async def ai_proxy(request: Request) -> Response:
    """AI gateway endpoint."""
    if request.method == "OPTIONS":
        return Response(status_code=HTTP_204_NO_CONTENT, headers=CORS_HEADERS)

    if request.method != "POST":
        return JSONResponse(
            {"error": "Method not allowed"},
            status_code=HTTP_405_METHOD_NOT_ALLOWED,
            headers=CORS_HEADERS,
        )

    container: Container = request.app.state.container
    credential = container.bearer_token_extractor()(request)

    try:
        body = await request.json()
    except ValueError:
        body = None

    gateway: AIGateway = container.gateway()
    try:
        result = await gateway.handle(credential, body)
    except GatewayError as e:
        if e.status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("AI gateway error (%s): %s", type(e).__name__, e.message)
        headers = dict(CORS_HEADERS)
        if isinstance(e, RateLimitError):
            headers["Retry-After"] = str(e.retry_after)
        return JSONResponse(e.to_body(), status_code=e.status_code, headers=headers)
    except Exception:
        logger.exception("Unhandled AI gateway error")
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            headers=CORS_HEADERS,
        )

    return JSONResponse({"success": True, "result": result}, headers=CORS_HEADERS)


routes: List[Route] = [
    Route("/health", endpoint=health),
    Route("/", endpoint=ai_proxy, methods=ALL_METHODS),
    Route("/aiProxy", endpoint=ai_proxy, methods=ALL_METHODS),
]


def create_app(container: Optional[Container] = None) -> Starlette:
    """
    Create the Starlette application.

    Args:
        container: Preconfigured container, built from `config.yml` at
            startup when omitted
    """
    application = Starlette(routes=routes, lifespan=lifespan)
    application.state.container = container
    return application


app: Starlette = create_app()

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, access_log=False)
