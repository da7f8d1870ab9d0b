from __future__ import annotations

from .base import (
    LLMClientError,
    LLMConnectionError,
    LLMInvalidResponseError,
    LLMModelUnavailableError,
    LLMRateLimitError,
    LLMRetryableError,
    ModelGateway,
)
from .gateway_state import GatewayState, KnowledgeCache, normalize_knowledge_key
from .gemini_client import GeminiClient, is_knowledge_prompt
from .json_repair import extract_json_block

__all__ = [
    "LLMClientError",
    "LLMConnectionError",
    "LLMInvalidResponseError",
    "LLMModelUnavailableError",
    "LLMRateLimitError",
    "LLMRetryableError",
    "ModelGateway",
    "GatewayState",
    "KnowledgeCache",
    "normalize_knowledge_key",
    "GeminiClient",
    "is_knowledge_prompt",
    "extract_json_block",
]
