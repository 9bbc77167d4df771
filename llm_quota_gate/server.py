import asyncio
import contextlib
import json
import logging
import os
from pathlib import Path
from typing import List, Tuple

from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_429_TOO_MANY_REQUESTS,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from llm_quota_gate import __version__
from llm_quota_gate.di import Container
from llm_quota_gate.errors import (
    AuthenticationInvalid,
    AuthenticationMissing,
    InvalidRequestBody,
    QuotaExceeded,
)
from llm_quota_gate.service.license_validator.base import LicenseValidation

logger = logging.getLogger(__name__)


async def health(_request: Request) -> JSONResponse:
    """Health check endpoint.
    Args:
        _request: The incoming request (unused).
    Returns:
        A JSON response with status "ok".
    """
    return JSONResponse({"status": "ok", "version": __version__})


@contextlib.asynccontextmanager
async def lifespan(app: Starlette):  # type: ignore
    """Initialize the application and its components."""

    uvicorn_logger = logging.getLogger("uvicorn")
    root_logger = logging.getLogger()
    for handler in uvicorn_logger.handlers:
        root_logger.addHandler(handler)

    container: Container | None = getattr(app.state, "container", None)
    if container is None:
        load_dotenv()
        container = Container()
        container.config.from_yaml(Path(__file__).parent / "config.yml")
        app.state.container = container

    log_level = (container.config.log_level() or "INFO").upper()
    root_logger.setLevel(log_level)
    logger.info(f"Starting LLM Quota Gate server with log level {log_level}...")

    # Instantiating every component here makes configuration errors fail start-up.
    components = [
        container.tier_limits(),
        container.quota_ledger(),
        container.license_validator(),
        container.secret_provider(),
        container.completion_forwarder(),
    ]
    for component in components:
        logger.info("Configured component: %s", component)

    for name, extractor_provider in container.extractors.providers.items():
        logger.info("Configured extractor: %s: %s", name, extractor_provider())

    yield

    logger.info("Shutting down LLM Quota Gate server...")
    await container.license_validator().close()
    await container.secret_provider().close()
    await container.completion_forwarder().close()
    await container.quota_store().close()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def authenticate(request: Request) -> Tuple[str, LicenseValidation, int]:
    """Identify the caller and resolve the quota limit of their license.

    Returns:
        The user id, the license validation and the monthly limit of its tier.

    Raises:
        AuthenticationMissing: If the token or user id header is absent.
        AuthenticationInvalid: If the license token is not valid.
    """
    container: Container = request.app.state.container

    token_extractor = container.extractors.providers["license-token"]()
    user_id_extractor = container.extractors.providers["user-id"]()
    token, user_id = await asyncio.gather(
        token_extractor(request),
        user_id_extractor(request),
    )
    if not token or not user_id:
        raise AuthenticationMissing("license token or user id header missing")

    validation = await container.license_validator()(token)
    if not validation.is_valid:
        raise AuthenticationInvalid(f"license rejected for user {user_id}")

    limit = container.tier_limits().resolve(validation.tier)
    if validation.quota_limit is not None and validation.quota_limit != limit:
        logger.debug(
            "License advertises limit %d for tier %s, applying %d",
            validation.quota_limit,
            validation.tier,
            limit,
        )
    return user_id, validation, limit


async def read_completion_body(request: Request) -> bytes:
    """Return the raw request body after checking it holds a JSON object."""
    body = await request.body()
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise InvalidRequestBody("request body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise InvalidRequestBody("request body must be a JSON object")
    return body


async def completion(request: Request) -> Response:
    """Gate a completion request and relay it upstream once admitted."""
    container: Container = request.app.state.container

    try:
        user_id, validation, limit = await authenticate(request)
        body = await read_completion_body(request)

        result = await container.quota_ledger().admit(user_id, validation.tier, limit)
        if not result.allowed:
            raise QuotaExceeded(user_id, result.period, limit, result.new_count)

        secret_name = container.config.secrets.name() or "AnthropicKey"
        credential = await container.secret_provider().get_secret(secret_name)
        upstream = await container.completion_forwarder().forward(body, credential)

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            media_type=upstream.media_type,
            headers={
                "X-Quota-Limit": str(limit),
                "X-Quota-Used": str(result.new_count),
                "X-Quota-Period": result.period,
            },
        )
    except AuthenticationMissing:
        return _error(HTTP_401_UNAUTHORIZED, "Missing authentication headers")
    except AuthenticationInvalid as e:
        logger.info("%s", str(e))
        return _error(HTTP_401_UNAUTHORIZED, "Invalid or expired license")
    except InvalidRequestBody as e:
        return _error(HTTP_400_BAD_REQUEST, str(e))
    except QuotaExceeded as e:
        logger.info("%s", str(e))
        response = _error(HTTP_429_TOO_MANY_REQUESTS, "Monthly quota exceeded")
        response.headers["X-Quota-Limit"] = str(e.limit)
        response.headers["X-Quota-Period"] = e.period
        return response
    except Exception:
        logger.exception("Error processing completion request")
        return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


async def usage(request: Request) -> Response:
    """Report the caller's usage in the current billing period."""
    container: Container = request.app.state.container

    try:
        user_id, validation, limit = await authenticate(request)
        snapshot = await container.quota_ledger().usage(user_id, limit)
        return JSONResponse(
            {
                "period": snapshot.period,
                "tier": validation.tier,
                "count": snapshot.count,
                "limit": snapshot.limit,
                "remaining": snapshot.remaining,
            }
        )
    except AuthenticationMissing:
        return _error(HTTP_401_UNAUTHORIZED, "Missing authentication headers")
    except AuthenticationInvalid:
        return _error(HTTP_401_UNAUTHORIZED, "Invalid or expired license")
    except Exception:
        logger.exception("Error processing usage request")
        return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


routes: List[Route] = [
    Route("/health", endpoint=health),
    Route("/api/completion", endpoint=completion, methods=["POST"]),
    Route("/api/usage", endpoint=usage, methods=["GET"]),
]


def create_app() -> Starlette:
    """Build the Starlette application."""
    return Starlette(routes=routes, lifespan=lifespan)


app: Starlette = create_app()

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, access_log=False)
