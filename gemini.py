import json
import logging
from typing import Any, Dict

from fastapi import HTTPException, Request
from fastapi.responses import Response

import http_client
from config import settings
from dispatch import Operation, dispatch, parse_body
from models import (
    ChatCompletionResponse,
    ChatMessage,
    GeminiChatRequest,
    GeminiEmbedRequest,
    GeminiGenerateRequest,
    Usage,
)
from response_builder import CREDENTIAL_HEADER, build_response

logger = logging.getLogger(__name__)

GEMINI_CHAT_MODEL = "gemini-pro"
NO_RESPONSE_PLACEHOLDER = "No response"


def google_headers(token: str) -> Dict[str, str]:
    """Headers shared by Gemini and Veo: the credential travels as the session cookie."""
    return {
        "Content-Type": "application/json",
        "Cookie": f"__Secure-1PSID={token}",
    }


def to_gemini_content(message: ChatMessage) -> Dict[str, Any]:
    if isinstance(message.content, str):
        text = message.content
    else:
        text = json.dumps(message.content, separators=(",", ":"), ensure_ascii=False)
    return {
        "role": "user" if message.role == "user" else "model",
        "parts": [{"text": text}],
    }


def transform_gemini_response_to_openai(gemini_data: Any) -> Dict[str, Any]:
    """Wraps a Gemini chat reply into the chat.completion shape."""
    if not isinstance(gemini_data, dict):
        gemini_data = {}

    text = None
    candidates = gemini_data.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if isinstance(parts, list) and parts and isinstance(parts[0], dict):
            text = parts[0].get("text")
    if not text:
        logger.warning("Gemini response carried no candidate text")
        text = NO_RESPONSE_PLACEHOLDER

    usage_metadata = gemini_data.get("usageMetadata")
    if not isinstance(usage_metadata, dict):
        usage_metadata = {}
    usage = Usage.from_counts(
        usage_metadata.get("promptTokenCount"),
        usage_metadata.get("candidatesTokenCount"),
    )
    return ChatCompletionResponse.single(GEMINI_CHAT_MODEL, str(text), usage).model_dump()


async def handle_gemini_generate(body: Dict[str, Any], token: str) -> Response:
    """Single-turn text generation. The provider reply is returned unmodified."""
    generate_request = parse_body(GeminiGenerateRequest, body)
    if not generate_request.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")

    payload = {"prompt": {"text": generate_request.prompt}}
    payload.update(generate_request.generationConfig.with_defaults())

    response_data = await http_client.post_json(
        f"{settings.GEMINI_API_BASE}/generate", payload, google_headers(token)
    )
    return build_response(response_data)


async def handle_gemini_chat(body: Dict[str, Any], token: str) -> Response:
    chat_request = parse_body(GeminiChatRequest, body)
    if not chat_request.messages:
        raise HTTPException(status_code=400, detail="Messages array is required")

    payload = {
        "contents": [to_gemini_content(message) for message in chat_request.messages],
        "generationConfig": chat_request.generationConfig.with_defaults(),
    }
    logger.info(f"Gemini chat with {len(payload['contents'])} messages")

    response_data = await http_client.post_json(
        f"{settings.GEMINI_API_BASE}/chat", payload, google_headers(token)
    )
    return build_response(transform_gemini_response_to_openai(response_data))


async def handle_gemini_embed(body: Dict[str, Any], token: str) -> Response:
    embed_request = parse_body(GeminiEmbedRequest, body)
    text_to_embed = embed_request.text or embed_request.content or ""
    if not text_to_embed:
        raise HTTPException(status_code=400, detail="Text content is required")

    response_data = await http_client.post_json(
        f"{settings.GEMINI_API_BASE}/embedding", {"text": text_to_embed}, google_headers(token)
    )
    return build_response(response_data)


GEMINI_ROUTES: Dict[str, Operation] = {
    "/gemini/generate": handle_gemini_generate,
    "/gemini/chat": handle_gemini_chat,
    "/gemini/embeddingContent": handle_gemini_embed,
    "/gemini/generateEmbed": handle_gemini_embed,
}


async def handle_gemini_request(request: Request, path: str) -> Response:
    return await dispatch(
        "Gemini",
        GEMINI_ROUTES,
        request,
        path,
        request.headers.get(CREDENTIAL_HEADER),
        f"{CREDENTIAL_HEADER} header is required",
    )
