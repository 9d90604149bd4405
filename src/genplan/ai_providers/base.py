"""Provider interface and the data exchanged with the generative model service."""

import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from genplan.ai_providers.schema import SchemaNode
from genplan.utils.logger import get_logger

logger = get_logger(__name__)


class ModelTier(Enum):
    """Model selector, mapped to concrete model ids by configuration."""

    pro = "pro"
    flash = "flash"
    flash_lite = "flash_lite"
    image = "image"
    speech = "speech"


class FinishReason(Enum):
    """Why a single generation call stopped producing output."""

    COMPLETE = "COMPLETE"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    OTHER = "OTHER"

    @classmethod
    def from_service(cls, value: Any) -> Optional["FinishReason"]:
        """Map a service-reported finish reason (enum or string) onto this enum."""
        if value is None:
            return None
        name = str(getattr(value, "value", value)).upper()
        if "." in name:
            name = name.rsplit(".", 1)[-1]
        if name in ("STOP", "COMPLETE", "FINISH_REASON_STOP"):
            return cls.COMPLETE
        if name == "MAX_TOKENS":
            return cls.MAX_TOKENS
        if name in ("SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"):
            return cls.SAFETY
        return cls.OTHER


@dataclass(frozen=True)
class Attachment:
    """Input attached to a request: inline bytes with a media type, or plain text."""

    data: Optional[bytes] = None
    mime_type: Optional[str] = None
    text: Optional[str] = None

    def __post_init__(self):
        if (self.data is None) == (self.text is None):
            raise ValueError("Attachment needs exactly one of 'data' or 'text'")
        if self.data is not None and not self.mime_type:
            raise ValueError("Binary attachments need a mime_type")

    @property
    def is_text(self) -> bool:
        return self.text is not None

    @classmethod
    def from_text(cls, text: str) -> "Attachment":
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "Attachment":
        return cls(data=data, mime_type=mime_type)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Attachment":
        """Load a file, sending text files as text and everything else inline."""
        file_path = Path(path)
        mime_type, _ = mimetypes.guess_type(file_path.name)
        if mime_type is None:
            mime_type = "application/octet-stream"
        if mime_type.startswith("text/") or file_path.suffix.lower() in (".md", ".json"):
            return cls.from_text(file_path.read_text(encoding="utf-8"))
        return cls.from_bytes(file_path.read_bytes(), mime_type)


@dataclass(frozen=True)
class GenerationRequest:
    """Everything needed for one call to the model service. Immutable once built."""

    instructions: str
    attachments: Tuple[Attachment, ...] = ()
    schema: Optional[SchemaNode] = None
    tier: ModelTier = ModelTier.pro
    max_output_tokens: Optional[int] = None
    thinking_budget: Optional[int] = None
    response_modalities: Tuple[str, ...] = ()
    voice_name: Optional[str] = None
    use_search: bool = False

    @property
    def expects_json(self) -> bool:
        return self.schema is not None


@dataclass(frozen=True)
class SafetyRating:
    category: str
    probability: str


@dataclass(frozen=True)
class SafetyFeedback:
    """Prompt-level safety feedback; ``block_reason`` is set when the service refused."""

    block_reason: Optional[str] = None
    ratings: Tuple[SafetyRating, ...] = ()


@dataclass(frozen=True)
class GroundingSource:
    """A web page the service cited for a search-grounded answer."""

    uri: str
    title: Optional[str] = None


@dataclass(frozen=True)
class GenerationResponse:
    """Result of one generation call. Produced once per call and never mutated."""

    text: Optional[str]
    finish_reason: Optional[FinishReason] = None
    safety: Optional[SafetyFeedback] = None
    candidate_count: int = 0
    usage: Dict[str, int] = field(default_factory=dict)
    media: Tuple[Attachment, ...] = ()
    sources: Tuple[GroundingSource, ...] = ()


@dataclass(frozen=True)
class OperationHandle:
    """Reference to an in-progress asynchronous generation job."""

    name: str
    done: bool = False
    result_uri: Optional[str] = None
    error: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)


class ProviderError(Exception):
    """Base exception for provider errors."""


class ProviderNotInitializedError(ProviderError):
    """Raised when a provider is used before ``initialize()``."""


class BaseProvider(ABC):
    """Abstract base class for generative model services."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the provider connection."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Cleanup provider resources."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Run one synchronous generation call (structured, text or media editing)."""

    @abstractmethod
    async def generate_images(
        self, prompt: str, aspect_ratio: str = "1:1", count: int = 1
    ) -> Tuple[Attachment, ...]:
        """Generate images from a text prompt with the dedicated image model."""

    @abstractmethod
    async def start_video_generation(
        self,
        prompt: str,
        image: Optional[Attachment] = None,
        aspect_ratio: str = "16:9",
        resolution: str = "720p",
    ) -> OperationHandle:
        """Start an asynchronous video job and return its operation handle."""

    @abstractmethod
    async def refresh_operation(self, handle: OperationHandle) -> OperationHandle:
        """Fetch the current state of an asynchronous job."""

    @abstractmethod
    async def download(self, uri: str) -> bytes:
        """Fetch a generated resource by URI using the service credential."""

    @abstractmethod
    async def create_chat(self, system_instruction: str, tier: ModelTier) -> Any:
        """Create a conversational session on the service side."""

    @abstractmethod
    async def send_chat_message(self, chat: Any, message: str) -> GenerationResponse:
        """Send one message within a chat created by ``create_chat``."""

    def model_for(self, tier: ModelTier) -> str:
        """Resolve a model tier to the configured model id."""
        models = self.config.get("models", {})
        try:
            return models[tier.value]
        except KeyError:
            raise ProviderError(f"No model configured for tier '{tier.value}'") from None
