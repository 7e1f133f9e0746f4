import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from dispatch import bearer_token
from gemini import GEMINI_ROUTES, handle_gemini_request
from models import OpenAIModel, OpenAIModelList
from qwen import QWEN_CHAT_PATH, QWEN_ROUTES, handle_qwen_request
from response_builder import build_error, build_response, preflight_response
from veo import VEO_ROUTES, handle_veo_request

# --- Logging Setup ---
# Map string level names to logging constants
log_level_str = settings.LOG_LEVEL.upper()
log_level_map = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
    "NONE": logging.CRITICAL + 1, # Effectively disable logging
}
log_level = log_level_map.get(log_level_str, logging.INFO) # Default to INFO if invalid

logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True
)
logger = logging.getLogger(__name__)
logger.info(f"Logging configured with level: {logging.getLevelName(log_level)}")
# --- End Logging Setup ---


app = FastAPI(
    title="Qwen / Gemini / Veo API Bridge",
    description="Translates OpenAI-style requests into Qwen, Gemini and Veo calls.",
    version="0.1.0",
)

COMPAT_CHAT_PATH = "/v1/chat/completions"

CAPABILITIES = {
    "qwen": list(QWEN_ROUTES),
    "gemini": list(GEMINI_ROUTES),
    "veo": list(VEO_ROUTES),
    "compat": ["/v1/models", COMPAT_CHAT_PATH],
}

MODEL_LIST = OpenAIModelList(
    data=[
        OpenAIModel(id="qwen-max", owned_by="aliyun"),
        OpenAIModel(id="qwen-plus", owned_by="aliyun"),
        OpenAIModel(id="qwen-turbo", owned_by="aliyun"),
        OpenAIModel(id="gemini-pro", owned_by="google"),
    ]
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unrouted paths and wrong methods still answer with the envelope and CORS headers."""
    if exc.status_code == 404:
        logger.warning(f"No route for {request.method} {request.url.path}")
        return build_error("Endpoint not found", 404, extra={"available_endpoints": CAPABILITIES})
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.detail} (status: {exc.status_code})")
    return build_error(str(exc.detail), exc.status_code)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error handling {request.url.path}: {exc}")
    return build_error("Error processing request", 500, str(exc))


@app.middleware("http")
async def cors_preflight(request: Request, call_next):
    """Answers CORS preflight for every path before routing."""
    if request.method == "OPTIONS":
        return preflight_response()
    return await call_next(request)


@app.get("/")
async def capabilities() -> JSONResponse:
    return build_response({
        "status": "ok",
        "message": "API Bridge for Qwen, Gemini and Veo running",
        "endpoints": CAPABILITIES,
    })


@app.get("/health")
async def health_check() -> JSONResponse:
    """Basic health check endpoint."""
    return build_response({"status": "ok"})


@app.get("/v1/models")
async def get_models() -> JSONResponse:
    """Static model list in the OpenAI /v1/models format."""
    return build_response(MODEL_LIST.model_dump())


@app.post(COMPAT_CHAT_PATH)
async def chat_completions(request: Request) -> Response:
    """OpenAI-compatible alias of the Qwen chat operation."""
    if not bearer_token(request):
        return build_error("Authorization required", 401)
    logger.info(f"Rewriting {COMPAT_CHAT_PATH} to {QWEN_CHAT_PATH}")
    return await handle_qwen_request(request, QWEN_CHAT_PATH)


# GET is routed as well so the credential check answers for any method
@app.api_route("/qwen/{endpoint:path}", methods=["GET", "POST"])
async def qwen_endpoint(request: Request, endpoint: str) -> Response:
    return await handle_qwen_request(request, request.url.path)


@app.api_route("/gemini/{endpoint:path}", methods=["GET", "POST"])
async def gemini_endpoint(request: Request, endpoint: str) -> Response:
    return await handle_gemini_request(request, request.url.path)


@app.api_route("/veo/{endpoint:path}", methods=["GET", "POST"])
async def veo_endpoint(request: Request, endpoint: str) -> Response:
    return await handle_veo_request(request, request.url.path)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
