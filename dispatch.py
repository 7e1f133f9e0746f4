import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

import httpx
from fastapi import HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, ValidationError

from http_client import describe_status_error
from response_builder import build_error

logger = logging.getLogger(__name__)

Operation = Callable[[Dict[str, Any], str], Awaitable[Response]]
ModelT = TypeVar("ModelT", bound=BaseModel)


def bearer_token(request: Request) -> str:
    """Returns the Authorization header without its 'Bearer ' prefix ('' when absent)."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):].strip()
    return auth_header.strip()


async def read_json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Request body is not valid JSON: {e}")
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    logger.debug(f"Received raw request data: {body}")
    return body


def parse_body(model: Type[ModelT], body: Dict[str, Any]) -> ModelT:
    """Validates body against model, turning validation errors into a 400."""
    try:
        return model.model_validate(body)
    except ValidationError as e:
        logger.warning(f"Request validation failed: {e}")
        raise HTTPException(status_code=400, detail={"message": "Invalid request body", "details": str(e)})


async def run_operation(
    provider: str,
    operation: Operation,
    request: Request,
    credential: str,
) -> Response:
    """
    Reads the body, runs one adapter operation and converts whatever it raises
    into the error envelope. Nothing escapes this function.
    """
    try:
        body = await read_json_body(request)
        return await operation(body, credential)
    except HTTPException as e:
        logger.info(f"{provider} request rejected: {e.detail} (status: {e.status_code})")
        if isinstance(e.detail, dict):
            return build_error(str(e.detail.get("message")), e.status_code, e.detail.get("details"))
        return build_error(str(e.detail), e.status_code)
    except httpx.HTTPStatusError as e:
        logger.error(f"{provider} upstream returned error {e.response.status_code}: {e.response.text[:500]}")
        return build_error(f"Error processing {provider} request", 500, describe_status_error(e))
    except httpx.RequestError as e:
        logger.error(f"Error contacting {provider} upstream: {e!r}")
        return build_error(f"Error processing {provider} request", 500, str(e) or repr(e))
    except Exception as e:
        logger.exception(f"Unexpected error in {provider} request: {e}")
        return build_error(f"Error processing {provider} request", 500, str(e) or repr(e))


async def dispatch(
    provider: str,
    routes: Dict[str, Operation],
    request: Request,
    path: str,
    credential: Optional[str],
    missing_credential_message: str,
) -> Response:
    """Credential check, then exact-path lookup in routes, then the operation."""
    if not credential:
        logger.warning(f"{provider} request to {path} without credential")
        return build_error(missing_credential_message, 401)

    operation = routes.get(path)
    if operation is None:
        logger.warning(f"Unknown {provider} endpoint: {path}")
        return build_error(f"Invalid {provider} endpoint", 400)

    logger.info(f"Dispatching {path} to {provider} operation '{operation.__name__}'")
    return await run_operation(provider, operation, request, credential)
