"""Text extraction from generative model response envelopes.

Responses arrive in one of several shapes depending on the provider
and API used. Each shape is classified into an envelope type that
knows how to yield its text; unknown shapes fall through to an empty
envelope. Both SDK objects and plain dictionaries are accepted.
"""

import logging
from dataclasses import dataclass
from typing import Any, Union

logger = logging.getLogger(__name__)


def _field(obj: Any, name: str) -> Any:
    """Read a field from either a mapping or an object attribute."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _chunk_text(chunk: Any) -> str:
    """Return the text of a content chunk, unwrapping ``text.value``."""
    text = _field(chunk, "text")
    if text is None:
        return ""
    if isinstance(text, str):
        return text
    value = _field(text, "value")
    return value if isinstance(value, str) else ""


def _join(parts: list[str]) -> str:
    return "\n".join(part for part in parts if part).strip()


@dataclass(frozen=True)
class ResponsesEnvelope:
    """Responses API shape: output nodes, each holding content chunks."""

    output: list

    def text(self) -> str:
        parts = []
        for node in self.output:
            for chunk in _as_list(_field(node, "content")):
                parts.append(_chunk_text(chunk))
        return _join(parts)


@dataclass(frozen=True)
class ChoicesEnvelope:
    """Chat completions shape: choices, each with a message."""

    choices: list

    def text(self) -> str:
        parts = []
        for choice in self.choices:
            content = _field(_field(choice, "message"), "content")
            parts.append(content if isinstance(content, str) else "")
        return _join(parts)


@dataclass(frozen=True)
class MessageEnvelope:
    """Anthropic Messages shape: a flat list of content blocks."""

    content: list

    def text(self) -> str:
        return _join([_chunk_text(block) for block in self.content])


@dataclass(frozen=True)
class EmptyEnvelope:
    """Fallback for responses with no recognizable text."""

    def text(self) -> str:
        return ""


Envelope = Union[ResponsesEnvelope, ChoicesEnvelope, MessageEnvelope, EmptyEnvelope]


def classify_envelope(response: Any) -> Envelope:
    """Classify a raw response into one of the known envelope shapes.

    Shapes are tried in order: Responses output nodes, chat choices,
    then Messages content blocks.

    Args:
        response: The raw response object or dictionary.

    Returns:
        The matching envelope, or EmptyEnvelope if none match.
    """
    output = _field(response, "output")
    if isinstance(output, (list, tuple)):
        return ResponsesEnvelope(output=list(output))

    choices = _field(response, "choices")
    if isinstance(choices, (list, tuple)):
        return ChoicesEnvelope(choices=list(choices))

    content = _field(response, "content")
    if isinstance(content, (list, tuple)):
        return MessageEnvelope(content=list(content))

    return EmptyEnvelope()


def extract_text(response: Any) -> str:
    """Extract the concatenated text content from a model response.

    Never raises. An empty string means the response carried no text;
    callers must treat that as a failure of the request.

    Args:
        response: The raw response object or dictionary.

    Returns:
        The stripped response text, or an empty string.
    """
    try:
        envelope = classify_envelope(response)
        text = envelope.text()
    except Exception as e:
        logger.warning("Could not read text from response: %s", e)
        return ""
    logger.debug("Extracted %d chars from %s", len(text), type(envelope).__name__)
    return text
