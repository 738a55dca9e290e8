"""Model provider selection for draft generation.

Priority:
  1. ANTHROPIC_API_KEY set → use Anthropic API directly
  2. Otherwise → use Vertex AI (litellm reads GOOGLE_CLOUD_PROJECT / VERTEXAI_LOCATION)

Usage:
    from model_config import get_llm_model
    response = await litellm.acompletion(model=get_llm_model(), ...)
"""
import logging
import os

import litellm

logger = logging.getLogger(__name__)

# Model identifiers
ANTHROPIC_MODEL = "anthropic/claude-sonnet-4-6"
VERTEX_MODEL = "vertex_ai/claude-sonnet-4-5@20250929"


def get_llm_model() -> str:
    """Return the litellm model id for the active provider."""
    if os.environ.get("ANTHROPIC_API_KEY"):
        return ANTHROPIC_MODEL
    return VERTEX_MODEL


def active_provider() -> str:
    """Return 'anthropic' or 'vertex_ai' depending on which is active."""
    return "anthropic" if os.environ.get("ANTHROPIC_API_KEY") else "vertex_ai"


def init_llm_callbacks() -> None:
    """Log the active provider and enable Langfuse tracing when keys are present."""
    logger.info("LLM provider: %s (%s)", active_provider(), get_llm_model())
    if os.environ.get("LANGFUSE_PUBLIC_KEY"):
        litellm.success_callback = ["langfuse"]
        litellm.failure_callback = ["langfuse"]
