"""Language model services for extraction and enrichment."""

from wine_pipeline.services.ai.client import (
    AIClient,
    AIProvider,
    CompletionResult,
    create_ai_client_from_env,
    get_ai_client,
)

__all__ = [
    "AIClient",
    "AIProvider",
    "CompletionResult",
    "create_ai_client_from_env",
    "get_ai_client",
]
