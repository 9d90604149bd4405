"""Single-call generation helpers: text, images, speech, grounded research and video."""

import io
import wave
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from genplan.ai_providers.base import (
    Attachment,
    BaseProvider,
    GenerationRequest,
    GenerationResponse,
    GroundingSource,
    ModelTier,
)
from genplan.ai_providers.schema import SchemaNode
from genplan.config.settings import CoreSettings
from genplan.utils.logger import get_logger

from .errors import ErrorKind, GenerationError
from .interpreter import check_safety, interpret, interpret_text
from .invoker import ModelInvoker
from .poller import OperationPoller

logger = get_logger(__name__)

BACKGROUND_REMOVAL_INSTRUCTIONS = (
    "Please remove the background from this image, leaving only the main subject. "
    "The new background should be a clean, solid white."
)

VIDEO_ASPECT_RATIOS = ("16:9", "9:16")
VIDEO_RESOLUTIONS = ("720p", "1080p")
IMAGE_ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4")

DEFAULT_VOICE = "Kore"
# Speech models return raw 16-bit mono PCM
SPEECH_SAMPLE_RATE = 24000

RESEARCH_PROMPT = (
    "Please format your response using clear Markdown. Use double newlines to separate "
    "paragraphs, headings, and list items for maximum readability. "
    "Here is my research query:\n\n\"{query}\""
)


@dataclass(frozen=True)
class ResearchResult:
    """A search-grounded answer and the web pages it cites."""

    text: str
    sources: Tuple[GroundingSource, ...] = ()


def pcm_to_wav(pcm: bytes, sample_rate: int = SPEECH_SAMPLE_RATE) -> bytes:
    """Wrap raw 16-bit mono PCM samples in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


class MediaGenerator:
    """Single-call generation helpers that raise ``GenerationError`` on failure."""

    def __init__(
        self,
        provider: BaseProvider,
        invoker: Optional[ModelInvoker] = None,
        poller: Optional[OperationPoller] = None,
    ):
        self.provider = provider
        self.invoker = invoker or ModelInvoker()
        self.poller = poller or OperationPoller(provider, self.invoker)

    @classmethod
    def from_settings(cls, provider: BaseProvider, settings: CoreSettings) -> "MediaGenerator":
        invoker = ModelInvoker.from_settings(settings)
        return cls(provider, invoker, OperationPoller.from_settings(provider, settings, invoker))

    async def _generate(self, request: GenerationRequest, context: str) -> GenerationResponse:
        return await self.invoker.call(lambda: self.provider.generate(request), context)

    async def generate_structured(
        self,
        prompt: str,
        schema: SchemaNode,
        attachments: Sequence[Attachment] = (),
        tier: ModelTier = ModelTier.pro,
        context: str = "Structured Content Generation",
    ) -> Any:
        """Single schema-constrained call returning the parsed JSON document."""
        request = GenerationRequest(
            instructions=prompt, attachments=tuple(attachments), schema=schema, tier=tier
        )
        response = await self._generate(request, context)
        return interpret(response).unwrap()

    async def generate_text(self, prompt: str, tier: ModelTier = ModelTier.pro) -> str:
        response = await self._generate(
            GenerationRequest(instructions=prompt, tier=tier), "Generic Content Generation"
        )
        return interpret_text(response).unwrap()

    async def analyze_image(self, image: Attachment, prompt: str) -> str:
        response = await self._generate(
            GenerationRequest(instructions=prompt, attachments=(image,), tier=ModelTier.flash),
            "Image Analysis",
        )
        return interpret_text(response).unwrap()

    async def edit_image(
        self, instructions: str, image: Attachment, context: str = "Image Editing"
    ) -> Attachment:
        """
        Apply an instruction to an image and return the edited image.

        Raises:
            GenerationError: EMPTY_RESPONSE when the service returns no inline image
        """
        if image.is_text:
            raise ValueError("edit_image needs a binary image attachment")
        request = GenerationRequest(
            instructions=instructions,
            attachments=(image,),
            tier=ModelTier.image,
            response_modalities=("IMAGE",),
        )
        response = await self._generate(request, context)

        blocked = check_safety(response)
        if blocked is not None:
            raise GenerationError(blocked)

        for media in response.media:
            if media.mime_type and media.mime_type.startswith("image/"):
                logger.info(f"{context}: received {len(media.data)} bytes ({media.mime_type})")
                return media

        raise GenerationError.of(
            ErrorKind.EMPTY_RESPONSE,
            f"{context} failed: The API returned an empty response.",
            context=context,
        )

    async def remove_background(self, image: Attachment) -> Attachment:
        return await self.edit_image(
            BACKGROUND_REMOVAL_INSTRUCTIONS, image, context="Background Removal"
        )

    async def generate_video(
        self,
        prompt: str,
        image: Optional[Attachment] = None,
        aspect_ratio: str = "16:9",
        resolution: str = "720p",
    ) -> bytes:
        """Start a video job (text- or image-seeded), wait for it and return the video bytes."""
        if aspect_ratio not in VIDEO_ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of {VIDEO_ASPECT_RATIOS}")
        if resolution not in VIDEO_RESOLUTIONS:
            raise ValueError(f"resolution must be one of {VIDEO_RESOLUTIONS}")

        context = "Image-to-Video Generation" if image is not None else "Text-to-Video Generation"
        handle = await self.invoker.call(
            lambda: self.provider.start_video_generation(
                prompt, image=image, aspect_ratio=aspect_ratio, resolution=resolution
            ),
            f"{context} (Initiate)",
        )
        return await self.poller.run_until_done(handle, context=context)

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> Attachment:
        """Generate one JPEG image from a text prompt.

        Raises:
            ValueError: If the aspect ratio is not supported
            GenerationError: EMPTY_RESPONSE when no image comes back
        """
        if aspect_ratio not in IMAGE_ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of {IMAGE_ASPECT_RATIOS}")

        context = "Image Generation"
        images = await self.invoker.call(
            lambda: self.provider.generate_images(prompt, aspect_ratio=aspect_ratio, count=1),
            context,
        )
        if not images:
            raise GenerationError.of(
                ErrorKind.EMPTY_RESPONSE,
                f"{context} failed: The API returned an empty response.",
                context=context,
            )
        return images[0]

    async def generate_speech(self, text: str, voice: str = DEFAULT_VOICE) -> Attachment:
        """Read text aloud with a prebuilt voice and return it as a WAV attachment."""
        context = "Speech Generation"
        request = GenerationRequest(
            instructions=text,
            tier=ModelTier.speech,
            response_modalities=("AUDIO",),
            voice_name=voice,
        )
        response = await self._generate(request, context)

        blocked = check_safety(response)
        if blocked is not None:
            raise GenerationError(blocked)

        for media in response.media:
            if not (media.mime_type and media.mime_type.startswith("audio/")):
                continue
            if media.mime_type == "audio/wav":
                return media
            logger.info(f"{context}: received {len(media.data)} bytes of PCM audio")
            return Attachment.from_bytes(pcm_to_wav(media.data), "audio/wav")

        raise GenerationError.of(
            ErrorKind.EMPTY_RESPONSE,
            f"{context} failed: The API returned no audio data.",
            context=context,
        )

    async def research(self, query: str) -> ResearchResult:
        """Answer a query with Google Search grounding, keeping the cited sources."""
        context = "Google Search Research"
        request = GenerationRequest(
            instructions=RESEARCH_PROMPT.format(query=query),
            tier=ModelTier.flash,
            use_search=True,
        )
        response = await self._generate(request, context)
        text = interpret_text(response).unwrap()
        logger.info(f"{context}: answer cites {len(response.sources)} source(s)")
        return ResearchResult(text=text, sources=response.sources)
