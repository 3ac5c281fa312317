# -----------------------------------------------------------------------------
# In-process model registry used by the LLM client.
#
# Call Sage talks to two kinds of model:
#   - a *reviewer* that listens to (or reads) a whole call and returns a
#     schema-shaped JSON review; it must accept inline audio, so it defaults to
#     a Gemini Pro model;
#   - a *chat* model that discusses an existing review and may call the
#     `amend_review` tool; a fast Gemini Flash model is enough.
#
# Application code refers to these aliases, never to provider model IDs, so
# deployments can repoint an alias (CALLSAGE_REVIEW_MODEL / CALLSAGE_CHAT_MODEL)
# without code changes.
# -----------------------------------------------------------------------------
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_BASE_URL = "https://api.openai.com/v1"


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """Configuration for a single LLM model.

    Parameters
    ----------
    name:
        Provider-specific model identifier, e.g. ``"gemini-2.5-pro"``.
    provider:
        ``"google"`` (Gemini ``generateContent``) or ``"openai"`` (any
        OpenAI-compatible Chat Completions endpoint).
    base_url:
        Base URL for the API endpoint; may be overridden per provider through
        environment variables.
    max_tokens:
        Default cap on generated tokens.
    temperature:
        Default sampling temperature. Reviews should be close to deterministic.
    supports_audio:
        Whether the model accepts inline audio parts.
    """

    name: str
    provider: str = "google"
    base_url: str = GEMINI_BASE_URL
    max_tokens: int = 8192
    temperature: float = 0.2
    supports_audio: bool = True


# --------------------------------------------------------------------------- #
# Registry
# --------------------------------------------------------------------------- #

MODEL_REGISTRY: dict[str, ModelConfig] = {
    # Review generation: long context, native audio understanding.
    "reviewer": ModelConfig(
        name="gemini-2.5-pro",
        provider="google",
        base_url=GEMINI_BASE_URL,
        max_tokens=16384,
        temperature=0.2,
    ),
    # Review chat: quick, low-temperature answers grounded in the context block.
    "chat": ModelConfig(
        name="gemini-2.0-flash",
        provider="google",
        base_url=GEMINI_BASE_URL,
        max_tokens=4096,
        temperature=0.1,
    ),
    # Cheaper reviewer for bulk transcript-only runs.
    "fast": ModelConfig(
        name="gemini-2.0-flash",
        provider="google",
        base_url=GEMINI_BASE_URL,
        max_tokens=8192,
        temperature=0.2,
    ),
    # OpenAI-compatible alternative for transcript-only reviews.
    "openai-reviewer": ModelConfig(
        name="gpt-4o",
        provider="openai",
        base_url=OPENAI_BASE_URL,
        max_tokens=8192,
        temperature=0.2,
        supports_audio=False,
    ),
}

#: Alias used when callers do not name a model.
DEFAULT_ALIAS = "reviewer"


def get_model(alias_or_name: str) -> ModelConfig:
    """Resolve a logical alias (or concrete model ID) to a :class:`ModelConfig`.

    Unknown names are treated as concrete Gemini model IDs with default
    parameters, so ``CALLSAGE_REVIEW_MODEL=gemini-2.5-flash`` works without a
    registry entry.
    """
    if alias_or_name in MODEL_REGISTRY:
        return MODEL_REGISTRY[alias_or_name]
    if alias_or_name.startswith(("gpt-", "o1", "o3", "o4")):
        return ModelConfig(
            name=alias_or_name,
            provider="openai",
            base_url=OPENAI_BASE_URL,
            supports_audio=False,
        )
    return ModelConfig(name=alias_or_name)


def all_models() -> Mapping[str, ModelConfig]:
    """Return a shallow copy of the registry (for diagnostics and tests)."""
    return dict(MODEL_REGISTRY)


__all__ = ["ModelConfig", "MODEL_REGISTRY", "DEFAULT_ALIAS", "get_model", "all_models"]
