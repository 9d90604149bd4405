"""Generative model service adapters and the data they exchange."""

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
    SafetyFeedback,
    SafetyRating,
)
from .factory import create_provider, get_provider_config
from .schema import SchemaNode

__all__ = [
    "create_provider",
    "get_provider_config",
    "BaseProvider",
    "Attachment",
    "FinishReason",
    "GenerationRequest",
    "GenerationResponse",
    "GroundingSource",
    "ModelTier",
    "OperationHandle",
    "ProviderError",
    "SafetyFeedback",
    "SafetyRating",
    "SchemaNode",
]
