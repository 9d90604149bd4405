"""Provider factory."""

from typing import Any, Dict

from genplan.config.settings import CoreSettings
from genplan.utils.logger import get_logger

from .base import BaseProvider, ModelTier
from .gemini import GeminiProvider

logger = get_logger(__name__)


def get_provider_config(settings: CoreSettings) -> Dict[str, Any]:
    """Build provider config from settings."""
    config = {
        "api_key": settings.gemini_api_key,
        "models": {
            ModelTier.pro.value: settings.ai_model_pro,
            ModelTier.flash.value: settings.ai_model_flash,
            ModelTier.flash_lite.value: settings.ai_model_flash_lite,
            ModelTier.image.value: settings.ai_model_image,
            ModelTier.speech.value: settings.ai_model_speech,
        },
        "video_model": settings.ai_model_video,
        "imagen_model": settings.ai_model_imagen,
        "download_timeout": settings.download_timeout_seconds,
    }
    logger.debug(f"Created provider config with models {config['models']}")
    return config


def create_provider(settings: CoreSettings) -> BaseProvider:
    """Create the model service provider from settings."""
    return GeminiProvider(get_provider_config(settings))
