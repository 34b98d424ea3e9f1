"""Pushover-compatible message endpoint.

Lets existing Pushover clients post here by using a topic's API key as
their application token.
"""

import logging
from typing import Annotated, Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from pushrelay.api.dependencies import get_client_ip, get_push_service
from pushrelay.config import get_settings
from pushrelay.exceptions import PushRelayError, TopicNotFoundError, ValidationError
from pushrelay.schemas.push import PushoverResponse
from pushrelay.services.ingestion import is_json_content_type
from pushrelay.services.push_service import PushService
from pushrelay.services.rate_limiter import RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pushover"])


async def read_pushover_params(request: Request) -> dict[str, Any]:
    """Read parameters from form, multipart, JSON or bare urlencoded bodies."""
    content_type = request.headers.get("content-type", "")

    if "application/x-www-form-urlencoded" in content_type or (
        "multipart/form-data" in content_type
    ):
        form = await request.form()
        # Uploaded files (attachments) are not supported
        return {key: value for key, value in form.items() if isinstance(value, str)}

    if is_json_content_type(content_type):
        try:
            data = await request.json()
        except ValueError as e:
            raise ValidationError("Invalid request format") from e
        if not isinstance(data, dict):
            raise ValidationError("Invalid request format")
        return data

    text = (await request.body()).decode("utf-8", errors="replace")
    return dict(parse_qsl(text))


def _error_response(
    message: str, status_code: int, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": 0, "errors": [message]},
        headers=headers,
    )


@router.post("/pushover", response_model=PushoverResponse)
@router.post("/1/messages.json", response_model=PushoverResponse)
async def pushover_message(
    request: Request,
    service: Annotated[PushService, Depends(get_push_service)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
):
    """Accept a message in Pushover API format."""
    settings = get_settings()
    try:
        await limiter.enforce(
            f"pushover:{get_client_ip(request)}",
            settings.pushover_rate_limit,
            settings.rate_limit_window_ms,
        )
        params = await read_pushover_params(request)
        result = await service.pushover(params)
    except TopicNotFoundError:
        # Pushover reports an unknown application token as a bad request
        return _error_response(
            "Invalid token or topic not found. Use your topic API key as the token.", 400
        )
    except PushRelayError as e:
        if e.status_code >= 500:
            logger.error(f"Pushover request failed: {e.message}")
        return _error_response(e.message, e.status_code, e.headers)

    return PushoverResponse(request=result.message_id)


@router.get("/pushover")
async def pushover_info() -> dict:
    """Describe the endpoint for clients probing it."""
    return {
        "status": 1,
        "info": "Pushover-compatible endpoint. POST messages here using the Pushover API format, "
        "with a topic API key as the token.",
    }
