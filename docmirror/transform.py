"""Content transformer — turn one remote file into its transformed text."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import anthropic
import httpx
from google.auth.exceptions import DefaultCredentialsError, RefreshError, TransportError

from docmirror.config import DEFAULT_MAX_OUTPUT_TOKENS
from docmirror.errors import ConfigError, TransformError
from docmirror.llm.client import GenerationResult
from docmirror.llm.prompts import build_request
from docmirror.models import FileDescriptor

logger = logging.getLogger("docmirror.transform")


class Generator(Protocol):
    def check_credentials(self) -> None: ...

    def generate(self, prompt: str, max_output_tokens: int = ...) -> GenerationResult: ...


class ContentTransformer:
    """Fetches file content, prepends the prompt and asks the generator.

    Parameters
    ----------
    http : httpx.Client
        Client used for the prompt and raw-content downloads.
    generator : Generator
        Anything with a ``generate(prompt, max_output_tokens)`` method,
        normally :class:`docmirror.llm.GenerativeClient`.
    prompt_location : str
        ``http(s)`` URL or local file path of the transformation prompt.
    max_output_tokens : int
        Upper bound on the size of each generated reply.
    """

    def __init__(
        self,
        http: httpx.Client,
        generator: Generator,
        prompt_location: str,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> None:
        self.http = http
        self.generator = generator
        self.prompt_location = prompt_location
        self.max_output_tokens = max_output_tokens
        self._prompt: str | None = None

    def prepare(self) -> None:
        """Load the prompt and check the generator's credentials before any file is processed.

        Raises:
            TransformError: If the prompt cannot be fetched.
            ConfigError: If the generative service has no credentials.
        """
        self.load_prompt()
        self.generator.check_credentials()

    # -- prompt --------------------------------------------------------------

    def load_prompt(self) -> str:
        """Fetch the prompt once and cache it for the rest of the run.

        Raises:
            TransformError: If the prompt cannot be fetched.
        """
        if self._prompt is None:
            if self.prompt_location.startswith(("http://", "https://")):
                self._prompt = self._fetch_text(self.prompt_location, self.prompt_location)
            else:
                try:
                    self._prompt = Path(self.prompt_location).read_text(encoding="utf-8")
                except OSError as e:
                    raise TransformError(self.prompt_location, f"cannot read prompt: {e}") from e
            logger.debug("Loaded prompt from %s (%d chars)", self.prompt_location, len(self._prompt))
        return self._prompt

    # -- transformation ------------------------------------------------------

    def transform(self, descriptor: FileDescriptor) -> str | None:
        """Return the transformed text, or *None* when the service gave no candidates.

        Raises:
            TransformError: If the content download or the generation call fails.
            ConfigError: If the generative service has no credentials.
        """
        prompt = self.load_prompt()
        content = self._fetch_text(descriptor.content_ref, descriptor.path)

        try:
            result = self.generator.generate(
                build_request(prompt, content),
                max_output_tokens=self.max_output_tokens,
            )
        except DefaultCredentialsError as e:
            raise ConfigError([f"Google Cloud credentials not found: {e}"]) from e
        except (anthropic.APIError, httpx.HTTPError, RefreshError, TransportError) as e:
            raise TransformError(descriptor.path, f"generation failed: {e}") from e

        if not result.candidates:
            return None

        logger.debug(
            "Generated %s: %d candidate(s), %d output tokens in %dms",
            descriptor.path, len(result.candidates), result.output_tokens, result.latency_ms,
        )
        return result.text

    # -- helpers -------------------------------------------------------------

    def _fetch_text(self, url: str, label: str) -> str:
        try:
            resp = self.http.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise TransformError(label, f"download of {url} failed: {e}") from e
        resp.encoding = "utf-8"
        return resp.text
