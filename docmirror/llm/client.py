"""Generative client wrapper for docmirror.

Runs Anthropic models hosted on Google Cloud Vertex AI and normalises the
reply into candidates made of text parts.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import anthropic
import google.auth
from google.auth.exceptions import DefaultCredentialsError

from docmirror.config import DEFAULT_MAX_OUTPUT_TOKENS, DEFAULT_REQUEST_TIMEOUT
from docmirror.errors import ConfigError

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


# ---------------------------------------------------------------------------
# Response dataclass
# ---------------------------------------------------------------------------


@dataclass
class GenerationResult:
    """Structured response from one generation call.

    ``candidates`` holds one list of text parts per candidate completion.
    """

    candidates: list[list[str]] = field(default_factory=list)
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0

    @property
    def text(self) -> str:
        """All text parts of all candidates, joined in response order."""
        return "".join(part for candidate in self.candidates for part in candidate)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class GenerativeClient:
    """Thin wrapper around the Anthropic SDK's Vertex AI client.

    Parameters
    ----------
    project_id : str
        Google Cloud project hosting the model.
    location : str
        Vertex AI region, e.g. ``us-east5``.
    model : str
        Model identifier as published on Vertex AI.
    timeout : float
        Per-request timeout in seconds.
    client : anthropic.AnthropicVertex | None
        Pre-built SDK client; one is created from the other arguments when
        *None*.
    """

    def __init__(
        self,
        project_id: str,
        location: str,
        model: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: anthropic.AnthropicVertex | None = None,
    ) -> None:
        self.project_id = project_id
        self.location = location
        self.model = model
        self._owns_client = client is None
        self._client = client or anthropic.AnthropicVertex(
            project_id=project_id,
            region=location,
            timeout=timeout,
            max_retries=2,
        )

    def check_credentials(self) -> None:
        """Make sure Application Default Credentials can be found.

        Skipped for an injected SDK client, which carries its own auth.

        Raises:
            ConfigError: If no Google Cloud credentials are available.
        """
        if not self._owns_client:
            return
        try:
            google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        except DefaultCredentialsError as e:
            raise ConfigError([f"Google Cloud credentials not found: {e}"]) from e

    def generate(
        self,
        prompt: str,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> GenerationResult:
        """Send one user message and return the normalised result.

        A reply without any text block yields no candidates.

        Raises:
            anthropic.APIError: On transport, timeout or API failures.
        """
        start = time.monotonic()
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_output_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        latency_ms = int((time.monotonic() - start) * 1000)

        parts = [b.text for b in response.content or [] if getattr(b, "type", "") == "text"]
        candidates = [parts] if parts else []

        usage = getattr(response, "usage", None)
        return GenerationResult(
            candidates=candidates,
            model=self.model,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            latency_ms=latency_ms,
        )
