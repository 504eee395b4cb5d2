"""Request templates for the generative service.

The transformation prompt itself is fetched at runtime from the configured
prompt location; this module only defines how it is combined with content.
"""

# ---------------------------------------------------------------------------
# File transformation
# ---------------------------------------------------------------------------

TRANSFORM_REQUEST = "{prompt}\n{content}"


def build_request(prompt: str, content: str) -> str:
    """Return the prompt followed by the file content on the next line."""
    return TRANSFORM_REQUEST.format(prompt=prompt, content=content)
