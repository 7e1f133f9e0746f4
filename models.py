import time
import uuid
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> int:
    return int(time.time())


# --- Inbound Message Definitions ---
class ChatMessage(BaseModel):
    """A single conversation turn as sent by the caller."""

    model_config = ConfigDict(extra="allow")

    role: str = Field("user", description="Author of the message (user, assistant, model, system...).")
    content: Any = Field(None, description="Plain string or a structured content array.")


class GenerationConfig(BaseModel):
    """Sampling parameters forwarded to Gemini. Absent values take the bridge defaults."""

    model_config = ConfigDict(extra="allow")

    temperature: Optional[float] = None
    maxOutputTokens: Optional[int] = None
    topK: Optional[int] = None
    topP: Optional[float] = None

    def with_defaults(self) -> Dict[str, Any]:
        return {
            "temperature": 0.7 if self.temperature is None else self.temperature,
            "maxOutputTokens": 1024 if self.maxOutputTokens is None else self.maxOutputTokens,
            "topK": 40 if self.topK is None else self.topK,
            "topP": 0.95 if self.topP is None else self.topP,
        }


# --- Gemini Request Definitions ---
class GeminiGenerateRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    prompt: Optional[str] = None
    generationConfig: GenerationConfig = Field(default_factory=GenerationConfig)


class GeminiChatRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    messages: Optional[List[ChatMessage]] = None
    generationConfig: GenerationConfig = Field(default_factory=GenerationConfig)


class GeminiEmbedRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: Optional[str] = None
    content: Optional[str] = None


# --- Qwen Request Definitions ---
class QwenChatRequest(BaseModel):
    """Represents the request body for /qwen/chat/completions (OpenAI chat shape)."""

    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    messages: Optional[List[ChatMessage]] = None
    stream: bool = False
    conversation_id: Optional[str] = Field(
        None, description="'<sessionId>-<parentMsgId>' of a previous Qwen exchange."
    )


class QwenImageGenerationRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    prompt: Optional[str] = None


class QwenDocumentAnalysisRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    file_url: Optional[str] = None
    question: Optional[str] = None


class QwenImageAnalysisRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    image_url: Optional[str] = None
    question: Optional[str] = None


# --- Veo Request Definitions ---
DEFAULT_VEO_ANALYZE_PROMPT = "Describe what's happening in this video."


class VeoAnalyzeShorthand(BaseModel):
    """Simplified analyze body that still has to be wrapped in a 'request' envelope."""

    kind: Literal["shorthand"] = "shorthand"
    prompt: Optional[str] = None
    videoUri: Optional[str] = None
    content: Any = None

    def to_payload(self) -> Dict[str, Any]:
        request: Dict[str, Any] = {"prompt": self.prompt or DEFAULT_VEO_ANALYZE_PROMPT}
        if self.videoUri is not None:
            request["videoUri"] = self.videoUri
        if self.content is not None:
            request["content"] = self.content
        return {"request": request}


class VeoAnalyzePassthrough(BaseModel):
    """Analyze body already in Veo's native shape (or unrecognised); forwarded unchanged."""

    kind: Literal["passthrough"] = "passthrough"
    body: Dict[str, Any]

    def to_payload(self) -> Dict[str, Any]:
        return self.body


VeoAnalyzeInput = Union[VeoAnalyzeShorthand, VeoAnalyzePassthrough]


def parse_veo_analyze_input(body: Dict[str, Any]) -> VeoAnalyzeInput:
    """Resolves an analyze body into exactly one input variant."""
    if body.get("request"):
        return VeoAnalyzePassthrough(body=body)
    if body.get("videoUri") or body.get("content") or body.get("prompt"):
        return VeoAnalyzeShorthand(
            prompt=body.get("prompt"),
            videoUri=body.get("videoUri"),
            content=body.get("content"),
        )
    return VeoAnalyzePassthrough(body=body)


class VeoVideoRequest(BaseModel):
    """Body for /veo/annotate and /veo/detect; everything is forwarded as is."""

    model_config = ConfigDict(extra="allow")

    videoUri: Optional[str] = None


class VeoGenerateRequest(BaseModel):
    """Represents the request body for /veo/generate (v1)."""

    model_config = ConfigDict(extra="allow")

    prompt: Optional[str] = None
    image_url: Optional[str] = None
    # Not enumerated: forwarded to Veo as given
    duration: Any = None
    style: Any = None


class VideoGenerationConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    duration: Any = None
    resolution: Any = None
    fps: Any = None
    style: Any = None

    def with_defaults(self) -> Dict[str, Any]:
        return {
            "duration": self.duration or "15s",
            "resolution": self.resolution or "1080p",
            "fps": self.fps or 30,
            "style": self.style or "cinematic",
        }


class VeoGenerateV2Request(BaseModel):
    """Represents the request body for /veo/generate/v2."""

    model_config = ConfigDict(extra="allow")

    prompt: Optional[str] = None
    images: Optional[List[Any]] = Field(None, description="Data URIs or remote image URLs; entries that are not strings are dropped.")
    generationConfig: VideoGenerationConfig = Field(default_factory=VideoGenerationConfig)


# --- OpenAI Model Definition ---
class OpenAIModel(BaseModel):
    """Represents the structure of a model object in OpenAI's /v1/models format."""

    id: str = Field(..., description="The model identifier, which can be referenced in the API endpoints.")
    object: str = Field(default="model", description="The object type, which is always 'model'.")
    created: int = Field(default=1686935002, description="The Unix timestamp (in seconds) when the model was created.")
    owned_by: str = Field(..., description="The organization that owns the model.")


class OpenAIModelList(BaseModel):
    """Represents the structure of the list returned by OpenAI's /v1/models endpoint."""

    object: str = Field("list", description="The object type, which is always 'list'.")
    data: List[OpenAIModel] = Field(..., description="A list of model objects.")


# --- OpenAI Chat Completion Definitions ---
class ChatCompletionMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str


class ChatCompletionChoice(BaseModel):
    index: int = 0
    message: ChatCompletionMessage
    finish_reason: str = "stop"


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(cls, prompt_tokens: Optional[int], completion_tokens: Optional[int]) -> "Usage":
        prompt_tokens = prompt_tokens or 0
        completion_tokens = completion_tokens or 0
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )


class ChatCompletionResponse(BaseModel):
    """The chat.completion envelope returned by every chat-like operation."""

    id: str = Field(default_factory=_new_id)
    object: str = "chat.completion"
    created: int = Field(default_factory=_now)
    model: str
    choices: List[ChatCompletionChoice]
    usage: Usage = Field(default_factory=Usage)

    @classmethod
    def single(cls, model: str, content: str, usage: Optional[Usage] = None) -> "ChatCompletionResponse":
        return cls(
            model=model,
            choices=[ChatCompletionChoice(message=ChatCompletionMessage(content=content))],
            usage=usage or Usage(),
        )


# --- Image Generation Definitions (DALL-E shape) ---
class ImageData(BaseModel):
    url: str


class ImageGenerationResponse(BaseModel):
    created: int = Field(default_factory=_now, description="The timestamp for when the images were created.")
    data: List[ImageData] = Field(default_factory=list)


# --- Analysis / Video Generation Definitions ---
class AnalysisResponse(BaseModel):
    """Wraps the text Qwen produced for a document or image analysis."""

    id: str = Field(default_factory=_new_id)
    created: int = Field(default_factory=_now)
    analysis: str


class VideoStatusData(BaseModel):
    url: Any = None
    status: Any = "processing"


class VideoGenerationResponse(BaseModel):
    """Normalized reply of /veo/generate (v1)."""

    id: str = Field(default_factory=_new_id)
    created: int = Field(default_factory=_now)
    data: VideoStatusData
    original_response: Any = None


class VideoJobData(BaseModel):
    video_id: Optional[Any] = None
    url: Any = None
    preview_url: Any = None
    eta_seconds: Any = 60


class VideoJobResponse(BaseModel):
    """Normalized reply of /veo/generate/v2."""

    id: str = Field(default_factory=_new_id)
    created: int = Field(default_factory=_now)
    status: Any = "processing"
    data: VideoJobData
    original_response: Any = None


# --- Error Definition ---
class ErrorEnvelope(BaseModel):
    error: str
    details: Optional[Any] = None
