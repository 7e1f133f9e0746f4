import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.responses import Response

import http_client
from config import settings
from dispatch import Operation, dispatch, parse_body
from gemini import google_headers
from images import FetchError, ImagePayload, resolve_image
from models import (
    VeoGenerateRequest,
    VeoGenerateV2Request,
    VeoVideoRequest,
    VideoGenerationResponse,
    VideoJobData,
    VideoJobResponse,
    VideoStatusData,
    parse_veo_analyze_input,
)
from response_builder import CREDENTIAL_HEADER, build_error, build_response

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_PROMPT = "Create a video from this image"


def _get(data: Any, key: str) -> Any:
    return data.get(key) if isinstance(data, dict) else None


async def handle_veo_analyze(body: Dict[str, Any], token: str) -> Response:
    analyze_input = parse_veo_analyze_input(body)
    logger.info(f"Veo analyze input resolved as '{analyze_input.kind}'")
    response_data = await http_client.post_json(
        f"{settings.VEO_API_BASE}/analyze", analyze_input.to_payload(), google_headers(token)
    )
    return build_response(response_data)


async def _forward_video_operation(body: Dict[str, Any], token: str, operation: str) -> Response:
    video_request = parse_body(VeoVideoRequest, body)
    if not video_request.videoUri:
        raise HTTPException(status_code=400, detail="videoUri is required")
    response_data = await http_client.post_json(
        f"{settings.VEO_API_BASE}/{operation}", body, google_headers(token)
    )
    return build_response(response_data)


async def handle_veo_annotate(body: Dict[str, Any], token: str) -> Response:
    return await _forward_video_operation(body, token, "annotate")


async def handle_veo_detect(body: Dict[str, Any], token: str) -> Response:
    return await _forward_video_operation(body, token, "detect")


async def handle_veo_generate(body: Dict[str, Any], token: str) -> Response:
    """Veo v1 generation from a prompt, an image, or both."""
    generate_request = parse_body(VeoGenerateRequest, body)
    if not generate_request.prompt and not generate_request.image_url:
        raise HTTPException(status_code=400, detail="prompt or image_url is required")

    image_data: Optional[str] = None
    if generate_request.image_url:
        try:
            image_data = (await resolve_image(generate_request.image_url)).data
        except FetchError as e:
            # Caller-supplied input, so this is a client error
            logger.warning(f"Could not process image {generate_request.image_url[:100]}: {e}")
            return build_error("Error processing image", 400, str(e))

    payload = {
        "prompt": generate_request.prompt or DEFAULT_VIDEO_PROMPT,
        "input_type": "image" if generate_request.image_url else "text",
        "image_data": image_data,
        "output_type": "video",
        "duration": generate_request.duration or 5,
        "style": generate_request.style or "cinematic",
    }
    response_data = await http_client.post_json(
        f"{settings.VEO_API_BASE}/generate", payload, google_headers(token)
    )

    video = _get(response_data, "video")
    normalized = VideoGenerationResponse(
        data=VideoStatusData(
            url=_get(video, "url") or None,
            status=_get(response_data, "status") or "processing",
        ),
        original_response=response_data,
    )
    return build_response(normalized.model_dump())


async def _process_images(images: List[Any]) -> List[ImagePayload]:
    """Resolves every image; failures are logged and the image is dropped."""
    processed: List[ImagePayload] = []
    for index, image in enumerate(images):
        try:
            processed.append(await resolve_image(image))
        except FetchError as e:
            logger.error(f"Dropping image {index} from batch: {e}")
    return processed


async def handle_veo_generate_v2(body: Dict[str, Any], token: str) -> Response:
    """Veo 2 generation from a prompt and/or a batch of images."""
    generate_request = parse_body(VeoGenerateV2Request, body)
    if not generate_request.prompt and not generate_request.images:
        raise HTTPException(status_code=400, detail="prompt or images array is required")

    payload: Dict[str, Any] = {
        "generation_config": generate_request.generationConfig.with_defaults(),
    }
    if generate_request.prompt:
        payload["text_prompt"] = generate_request.prompt

    if generate_request.images:
        processed = await _process_images(generate_request.images)
        if not processed:
            raise HTTPException(status_code=400, detail="No valid images could be processed")
        logger.info(f"Processed {len(processed)} of {len(generate_request.images)} images")
        payload["images"] = [{"data": image.data, "type": image.content_type} for image in processed]

    response_data = await http_client.post_json(
        f"{settings.VEO2_API_BASE}/generate", payload, google_headers(token)
    )

    normalized = VideoJobResponse(
        status=_get(response_data, "status") or "processing",
        data=VideoJobData(
            video_id=_get(response_data, "video_id") or None,
            url=_get(response_data, "url") or None,
            preview_url=_get(response_data, "preview_url") or None,
            eta_seconds=_get(response_data, "eta_seconds") or 60,
        ),
        original_response=response_data,
    )
    return build_response(normalized.model_dump())


VEO_ROUTES: Dict[str, Operation] = {
    "/veo/analyze": handle_veo_analyze,
    "/veo/annotate": handle_veo_annotate,
    "/veo/detect": handle_veo_detect,
    "/veo/generate": handle_veo_generate,
    "/veo/generate/v1": handle_veo_generate,
    "/veo/generate/v2": handle_veo_generate_v2,
}


async def handle_veo_request(request: Request, path: str) -> Response:
    # Veo shares the Gemini credential header
    return await dispatch(
        "Veo",
        VEO_ROUTES,
        request,
        path,
        request.headers.get(CREDENTIAL_HEADER),
        f"{CREDENTIAL_HEADER} header is required",
    )
