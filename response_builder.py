from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse, Response

from models import ErrorEnvelope

CREDENTIAL_HEADER = "X-Gemini-API-Key"

# Permissive CORS set attached to every response, error paths included
CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, Authorization, {CREDENTIAL_HEADER}",
    "Access-Control-Max-Age": "86400",
}


def build_response(payload: Any, status: int = 200) -> JSONResponse:
    """Serializes payload to JSON with the CORS headers attached."""
    return JSONResponse(content=payload, status_code=status, headers=dict(CORS_HEADERS))


def build_error(
    message: str,
    status: int = 500,
    details: Any = None,
    extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Builds the {"error": ..., "details"?: ...} envelope.
    'details' is omitted when empty; 'extra' keys are merged at the top level.
    """
    envelope = ErrorEnvelope(error=message, details=details or None)
    content = envelope.model_dump(exclude_none=True)
    if extra:
        content.update(extra)
    return build_response(content, status)


def preflight_response() -> Response:
    return Response(status_code=200, headers=dict(CORS_HEADERS))
