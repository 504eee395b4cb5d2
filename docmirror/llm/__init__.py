"""docmirror generative-service integration.

Provides a thin wrapper around Anthropic models served from Vertex AI and
the template used to combine a prompt with file content.
"""

from docmirror.llm.client import GenerationResult, GenerativeClient
from docmirror.llm.prompts import build_request

__all__ = [
    "GenerationResult",
    "GenerativeClient",
    "build_request",
]
