"""Translation inference core: model handles, registry, guards and service."""

from romance_mt.services.guard import InferenceGuard
from romance_mt.services.model_handle import ModelHandle
from romance_mt.services.registry import DirectionRegistry
from romance_mt.services.translation_service import (
    TranslationRequest,
    TranslationResult,
    TranslationService,
)

__all__ = [
    "DirectionRegistry",
    "InferenceGuard",
    "ModelHandle",
    "TranslationRequest",
    "TranslationResult",
    "TranslationService",
]
