from __future__ import annotations

from .client import (
    LLMClient,
    MediaPart,
    ModelReply,
    ModelServiceError,
    ToolCall,
    ToolSpec,
    get_default_client,
)
from .models import (
    DEFAULT_ALIAS,
    MODEL_REGISTRY,
    ModelConfig,
    all_models,
    get_model,
)

__all__ = [
    "ModelConfig",
    "MODEL_REGISTRY",
    "DEFAULT_ALIAS",
    "get_model",
    "all_models",
    "LLMClient",
    "MediaPart",
    "ModelReply",
    "ModelServiceError",
    "ToolCall",
    "ToolSpec",
    "get_default_client",
]
