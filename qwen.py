import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from starlette.background import BackgroundTask

import http_client
from config import settings
from dispatch import Operation, bearer_token, dispatch, parse_body
from models import (
    AnalysisResponse,
    ChatCompletionResponse,
    ChatMessage,
    ImageData,
    ImageGenerationResponse,
    QwenChatRequest,
    QwenDocumentAnalysisRequest,
    QwenImageAnalysisRequest,
    QwenImageGenerationRequest,
)
from response_builder import CORS_HEADERS, build_response
from sse_parser import extract_assistant_text, extract_image_urls

logger = logging.getLogger(__name__)

QWEN_CHAT_MODEL = "qwen"
IMAGE_TRIGGER_CHAR = "画"
IMAGE_TRIGGER_PREFIX = "请画："
DEFAULT_DOCUMENT_QUESTION = "Por favor analiza este documento"
DEFAULT_IMAGE_QUESTION = "¿Qué hay en esta imagen?"

QWEN_BROWSER_HEADERS = {
    "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
    "Cache-Control": "no-cache",
    "Content-Type": "application/json",
    "Pragma": "no-cache",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "X-Platform": "pc_tongyi",
}

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def generate_qwen_cookie(ticket: str) -> str:
    # NOTE: the cookie name is guessed from the ticket length (long tickets are
    # treated as Aliyun login tickets). Nothing validates the guess.
    name = "login_aliyunid_ticket" if len(ticket) > 100 else "tongyi_sso_ticket"
    return "; ".join([f"{name}={ticket}", "aliyun_choice=intl", "_samesite_flag_=true"])


def qwen_headers(token: str, accept: str = "text/event-stream") -> Dict[str, str]:
    headers = {"Accept": accept}
    headers.update(QWEN_BROWSER_HEADERS)
    headers["Cookie"] = generate_qwen_cookie(token)
    return headers


def qwen_content(content_type: str, content: Any, **extra: Any) -> Dict[str, Any]:
    item = {"role": "user", "contentType": content_type, "content": content}
    item.update(extra)
    return item


def build_conversation_payload(
    contents: List[Dict[str, Any]],
    session_id: str = "",
    parent_msg_id: str = "",
    params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Body of one /dialog/conversation turn."""
    conversation_params = {"fileUploadBatchId": str(uuid.uuid4())}
    if params:
        conversation_params.update(params)
    return {
        "mode": "chat",
        "model": "",
        "action": "next",
        "userAction": "chat",
        "requestId": str(uuid.uuid4()),
        "sessionId": session_id,
        "sessionType": "text_chat",
        "parentMsgId": parent_msg_id,
        "params": conversation_params,
        "contents": contents,
    }


def last_message_text(messages: List[ChatMessage]) -> str:
    """Text of the final message; structured content keeps only its text parts."""
    if not messages:
        return ""
    content = messages[-1].content
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return " ".join(
            str(part.get("text", ""))
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def split_conversation_id(conversation_id: Optional[str]) -> Tuple[str, str]:
    """'<sessionId>-<parentMsgId>' -> (sessionId, parentMsgId)."""
    if not conversation_id:
        return "", ""
    parts = conversation_id.split("-")
    return parts[0], parts[1] if len(parts) > 1 else ""


def conversation_url() -> str:
    return f"{settings.QWEN_API_BASE}/dialog/conversation"


async def handle_qwen_chat(body: Dict[str, Any], token: str) -> Response:
    """
    Chat turn built from the last message only.

    With ``stream`` the upstream event stream is relayed as it arrives;
    otherwise it is buffered and folded into a chat.completion object.
    """
    chat_request = parse_body(QwenChatRequest, body)
    if not chat_request.messages:
        raise HTTPException(status_code=400, detail="Messages array is required")

    session_id, parent_msg_id = split_conversation_id(chat_request.conversation_id)
    payload = build_conversation_payload(
        [qwen_content("text", last_message_text(chat_request.messages))],
        session_id=session_id,
        parent_msg_id=parent_msg_id,
        params={"searchType": ""},
    )
    logger.info(f"Qwen chat request. Streaming: {chat_request.stream}")

    if chat_request.stream:
        headers = qwen_headers(token, accept="text/event-stream")
        client, upstream_response = await http_client.open_stream(conversation_url(), payload, headers)

        async def close_upstream() -> None:
            await upstream_response.aclose()
            await client.aclose()
            logger.info("Qwen stream relay finished")

        relay_headers = dict(STREAM_HEADERS)
        relay_headers.update(CORS_HEADERS)
        return StreamingResponse(
            upstream_response.aiter_bytes(),
            media_type="text/event-stream",
            headers=relay_headers,
            background=BackgroundTask(close_upstream),
        )

    text = await http_client.post_text(
        conversation_url(), payload, qwen_headers(token, accept="application/json")
    )
    # Qwen does not report token counts, usage stays at zero
    completion = ChatCompletionResponse.single(QWEN_CHAT_MODEL, extract_assistant_text(text))
    return build_response(completion.model_dump())


async def handle_qwen_image_generation(body: Dict[str, Any], token: str) -> Response:
    generation_request = parse_body(QwenImageGenerationRequest, body)
    prompt = generation_request.prompt
    if not prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")
    if IMAGE_TRIGGER_CHAR not in prompt:
        prompt = f"{IMAGE_TRIGGER_PREFIX}{prompt}"

    payload = build_conversation_payload([qwen_content("text", prompt)])
    text = await http_client.post_text(conversation_url(), payload, qwen_headers(token))

    urls = extract_image_urls(text, settings.QWEN_IMAGE_DOMAIN)
    logger.info(f"Qwen image generation produced {len(urls)} images")
    images = ImageGenerationResponse(data=[ImageData(url=url) for url in urls])
    return build_response(images.model_dump())


async def _analyze(contents: List[Dict[str, Any]], token: str) -> Response:
    payload = build_conversation_payload(contents)
    text = await http_client.post_text(conversation_url(), payload, qwen_headers(token))
    return build_response(AnalysisResponse(analysis=extract_assistant_text(text)).model_dump())


async def handle_qwen_document_analysis(body: Dict[str, Any], token: str) -> Response:
    analysis_request = parse_body(QwenDocumentAnalysisRequest, body)
    if not analysis_request.file_url:
        raise HTTPException(status_code=400, detail="file_url is required")
    return await _analyze(
        [
            qwen_content("file", analysis_request.file_url, ext={"fileSize": 0}),
            qwen_content("text", analysis_request.question or DEFAULT_DOCUMENT_QUESTION),
        ],
        token,
    )


async def handle_qwen_image_analysis(body: Dict[str, Any], token: str) -> Response:
    analysis_request = parse_body(QwenImageAnalysisRequest, body)
    if not analysis_request.image_url:
        raise HTTPException(status_code=400, detail="image_url is required")
    return await _analyze(
        [
            qwen_content("image", analysis_request.image_url),
            qwen_content("text", analysis_request.question or DEFAULT_IMAGE_QUESTION),
        ],
        token,
    )


QWEN_CHAT_PATH = "/qwen/chat/completions"

QWEN_ROUTES: Dict[str, Operation] = {
    QWEN_CHAT_PATH: handle_qwen_chat,
    "/qwen/analyze/document": handle_qwen_document_analysis,
    "/qwen/analyze/image": handle_qwen_image_analysis,
    "/qwen/images/generations": handle_qwen_image_generation,
}


async def handle_qwen_request(request: Request, path: str) -> Response:
    return await dispatch(
        "Qwen",
        QWEN_ROUTES,
        request,
        path,
        bearer_token(request),
        "Authorization header is required",
    )
