"""Gemini provider adapter using the google.genai unified SDK."""

import base64
from typing import Any, Dict, List, Optional, Tuple

import httpx
from google import genai
from google.genai import types as genai_types

from genplan.utils.logger import get_logger

from .base import (
    Attachment,
    BaseProvider,
    FinishReason,
    GenerationRequest,
    GenerationResponse,
    GroundingSource,
    ModelTier,
    OperationHandle,
    ProviderError,
    ProviderNotInitializedError,
    SafetyFeedback,
    SafetyRating,
)

logger = get_logger(__name__)


def _enum_name(value: Any) -> Optional[str]:
    """Return the wire name of an SDK enum value (or the string itself)."""
    if value is None:
        return None
    name = str(getattr(value, "value", value))
    return name.rsplit(".", 1)[-1] if "." in name else name


class GeminiProvider(BaseProvider):
    """Gemini model service adapter."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.client: Optional[Any] = None
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def api_key(self) -> Optional[str]:
        return self.config.get("api_key")

    async def initialize(self) -> None:
        """Initialize the Gemini client."""
        if not self.api_key:
            raise ProviderError(
                "Gemini API key not provided; set GEMINI_API_KEY (or API_KEY)"
            )
        self.client = genai.Client(api_key=self.api_key)
        self._http = httpx.AsyncClient(
            timeout=self.config.get("download_timeout", 120.0),
            follow_redirects=True,
        )
        logger.info(
            f"Initialized Gemini provider with models: {self.config.get('models', {})}"
        )

    async def shutdown(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        self.client = None

    def _require_client(self) -> Any:
        if self.client is None:
            raise ProviderNotInitializedError("Provider not initialized")
        return self.client

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_parts(self, request: GenerationRequest) -> List[Any]:
        parts = [genai_types.Part.from_text(text=request.instructions)]
        for attachment in request.attachments:
            parts.append(self._attachment_to_part(attachment))
        return parts

    @staticmethod
    def _attachment_to_part(attachment: Attachment) -> Any:
        if attachment.is_text:
            return genai_types.Part.from_text(text=attachment.text)
        return genai_types.Part.from_bytes(
            data=attachment.data, mime_type=attachment.mime_type
        )

    def _build_config(self, request: GenerationRequest) -> Any:
        config: Dict[str, Any] = {}
        if request.max_output_tokens is not None:
            config["max_output_tokens"] = request.max_output_tokens
        if request.thinking_budget is not None:
            config["thinking_config"] = genai_types.ThinkingConfig(
                thinking_budget=request.thinking_budget
            )
        if request.response_modalities:
            config["response_modalities"] = list(request.response_modalities)
        if request.voice_name:
            config["speech_config"] = genai_types.SpeechConfig(
                voice_config=genai_types.VoiceConfig(
                    prebuilt_voice_config=genai_types.PrebuiltVoiceConfig(
                        voice_name=request.voice_name
                    )
                )
            )
        if request.use_search:
            config["tools"] = [genai_types.Tool(google_search=genai_types.GoogleSearch())]
        if request.schema is not None:
            config["response_mime_type"] = "application/json"
            config["response_schema"] = request.schema.to_gemini()
        return genai_types.GenerateContentConfig(**config)

    # ------------------------------------------------------------------
    # Synchronous generation
    # ------------------------------------------------------------------

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        client = self._require_client()
        model = self.model_for(request.tier)
        logger.debug(
            f"Calling {model} (json={request.expects_json}, "
            f"attachments={len(request.attachments)}, max_output_tokens={request.max_output_tokens})"
        )
        response = await client.aio.models.generate_content(
            model=model,
            contents=self._build_parts(request),
            config=self._build_config(request),
        )
        return self._convert_response(response)

    def _convert_response(self, response: Any) -> GenerationResponse:
        candidates = list(getattr(response, "candidates", None) or [])
        first = candidates[0] if candidates else None

        text_parts: List[str] = []
        media: List[Attachment] = []
        if first is not None:
            content = getattr(first, "content", None)
            for part in list(getattr(content, "parts", None) or []):
                if getattr(part, "thought", False):
                    continue
                text = getattr(part, "text", None)
                if text:
                    text_parts.append(text)
                    continue
                inline = getattr(part, "inline_data", None)
                if inline is not None and getattr(inline, "data", None):
                    data = inline.data
                    if isinstance(data, str):
                        data = base64.b64decode(data)
                    media.append(Attachment.from_bytes(data, inline.mime_type))

        return GenerationResponse(
            text="".join(text_parts) or None,
            finish_reason=FinishReason.from_service(getattr(first, "finish_reason", None))
            if first is not None
            else None,
            safety=self._extract_safety(response),
            candidate_count=len(candidates),
            usage=self._extract_usage(response),
            media=tuple(media),
            sources=self._extract_sources(first),
        )

    @staticmethod
    def _extract_sources(candidate: Any) -> Tuple[GroundingSource, ...]:
        metadata = getattr(candidate, "grounding_metadata", None)
        sources: List[GroundingSource] = []
        for chunk in list(getattr(metadata, "grounding_chunks", None) or []):
            web = getattr(chunk, "web", None)
            uri = getattr(web, "uri", None)
            if uri:
                sources.append(GroundingSource(uri=uri, title=getattr(web, "title", None)))
        return tuple(sources)

    @staticmethod
    def _extract_safety(response: Any) -> Optional[SafetyFeedback]:
        feedback = getattr(response, "prompt_feedback", None)
        if feedback is None:
            return None
        ratings = tuple(
            SafetyRating(
                category=_enum_name(getattr(rating, "category", None)) or "UNKNOWN",
                probability=_enum_name(getattr(rating, "probability", None)) or "UNKNOWN",
            )
            for rating in list(getattr(feedback, "safety_ratings", None) or [])
        )
        return SafetyFeedback(
            block_reason=_enum_name(getattr(feedback, "block_reason", None)),
            ratings=ratings,
        )

    @staticmethod
    def _extract_usage(response: Any) -> Dict[str, int]:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return {}
        return {
            "prompt_tokens": getattr(usage, "prompt_token_count", None) or 0,
            "completion_tokens": getattr(usage, "candidates_token_count", None) or 0,
            "thinking_tokens": getattr(usage, "thoughts_token_count", None) or 0,
            "total_tokens": getattr(usage, "total_token_count", None) or 0,
        }

    # ------------------------------------------------------------------
    # Image generation
    # ------------------------------------------------------------------

    async def generate_images(
        self, prompt: str, aspect_ratio: str = "1:1", count: int = 1
    ) -> Tuple[Attachment, ...]:
        client = self._require_client()
        response = await client.aio.models.generate_images(
            model=self.config.get("imagen_model"),
            prompt=prompt,
            config=genai_types.GenerateImagesConfig(
                number_of_images=count,
                output_mime_type="image/jpeg",
                aspect_ratio=aspect_ratio,
            ),
        )
        images: List[Attachment] = []
        for generated in list(getattr(response, "generated_images", None) or []):
            image = getattr(generated, "image", None)
            data = getattr(image, "image_bytes", None)
            if data:
                images.append(
                    Attachment.from_bytes(data, getattr(image, "mime_type", None) or "image/jpeg")
                )
        logger.info(f"Generated {len(images)} image(s)")
        return tuple(images)

    # ------------------------------------------------------------------
    # Asynchronous video generation
    # ------------------------------------------------------------------

    async def start_video_generation(
        self,
        prompt: str,
        image: Optional[Attachment] = None,
        aspect_ratio: str = "16:9",
        resolution: str = "720p",
    ) -> OperationHandle:
        client = self._require_client()
        kwargs: Dict[str, Any] = {
            "model": self.config.get("video_model"),
            "prompt": prompt,
            "config": genai_types.GenerateVideosConfig(
                number_of_videos=1,
                aspect_ratio=aspect_ratio,
                resolution=resolution,
            ),
        }
        if image is not None:
            if image.is_text:
                raise ProviderError("Seed image must be binary image data")
            kwargs["image"] = genai_types.Image(
                image_bytes=image.data, mime_type=image.mime_type
            )
        operation = await client.aio.models.generate_videos(**kwargs)
        logger.info(f"Started video generation operation {getattr(operation, 'name', '?')}")
        return self._to_handle(operation)

    async def refresh_operation(self, handle: OperationHandle) -> OperationHandle:
        client = self._require_client()
        operation = await client.aio.operations.get(handle.raw)
        return self._to_handle(operation)

    @staticmethod
    def _to_handle(operation: Any) -> OperationHandle:
        uri = None
        result = getattr(operation, "response", None) or getattr(operation, "result", None)
        videos = list(getattr(result, "generated_videos", None) or [])
        if videos:
            video = getattr(videos[0], "video", None)
            uri = getattr(video, "uri", None)

        error = getattr(operation, "error", None)
        if isinstance(error, dict):
            error = error.get("message") or str(error)

        return OperationHandle(
            name=getattr(operation, "name", None) or "",
            done=bool(getattr(operation, "done", False)),
            result_uri=uri,
            error=str(error) if error else None,
            raw=operation,
        )

    async def download(self, uri: str) -> bytes:
        if self._http is None:
            raise ProviderNotInitializedError("Provider not initialized")
        response = await self._http.get(uri, params={"key": self.api_key})
        response.raise_for_status()
        logger.info(f"Downloaded {len(response.content)} bytes of generated media")
        return response.content

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def create_chat(self, system_instruction: str, tier: ModelTier) -> Any:
        client = self._require_client()
        return client.aio.chats.create(
            model=self.model_for(tier),
            config=genai_types.GenerateContentConfig(
                system_instruction=system_instruction
            ),
        )

    async def send_chat_message(self, chat: Any, message: str) -> GenerationResponse:
        response = await chat.send_message(message)
        return self._convert_response(response)
