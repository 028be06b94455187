"""PlantUML validation through a PlantUML server's text renderer.

The diagram is encoded into the request path and rendered as plain
text. The server reports syntax problems inside the rendered text, so
the response is scanned for known error markers. The marker set is
configurable because it depends on the server's output format.
"""

import base64
import logging
import re
import zlib
from typing import Optional

import httpx

from diagramdoc.diagrams.validation import DiagramValidator, ValidationOutcome
from diagramdoc.utils.config import PlantUMLConfig

logger = logging.getLogger(__name__)

EMPTY_DEFINITION_ERROR = "Empty PlantUML definition"
GENERIC_SYNTAX_ERROR = "PlantUML syntax error detected"

_BASE64_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/="
_PLANTUML_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_0"
_TO_PLANTUML = str.maketrans(_BASE64_ALPHABET, _PLANTUML_ALPHABET)


def encode_plantuml(text: str) -> str:
    """Encode diagram text for a PlantUML server URL.

    Raw deflate at maximum compression followed by base64 in
    PlantUML's URL-safe alphabet.
    """
    compressed = zlib.compress(text.encode("utf-8"), 9)[2:-4]
    return base64.b64encode(compressed).decode("ascii").translate(_TO_PLANTUML)


class PlantUMLValidator(DiagramValidator):
    """Validates PlantUML diagrams against a remote PlantUML server.

    A false negative is possible when the server reports an error in a
    form none of the configured indicators match.
    """

    def __init__(
        self,
        config: Optional[PlantUMLConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the validator.

        Args:
            config: Server URL, timeout and error markers.
            client: Optional shared HTTP client. When omitted a client
                is opened per request.
        """
        self.config = config or PlantUMLConfig()
        self._client = client
        self._error_pattern = re.compile(self.config.error_pattern, re.IGNORECASE)

    def text_url(self, definition: str) -> str:
        """URL of the text rendering for a definition."""
        base = self.config.server_url.rstrip("/")
        return f"{base}/txt/{encode_plantuml(definition)}"

    async def validate(self, definition: str) -> ValidationOutcome:
        """Validate a PlantUML definition.

        Args:
            definition: PlantUML source text.

        Returns:
            A valid outcome, or an invalid one describing the HTTP
            failure or the error found in the rendered text.
        """
        trimmed = definition.strip()
        if not trimmed:
            return ValidationOutcome.failure(EMPTY_DEFINITION_ERROR)

        try:
            url = self.text_url(trimmed)
        except UnicodeError as e:
            logger.warning("PlantUML definition cannot be encoded: %s", e)
            return ValidationOutcome.failure(str(e))

        try:
            response = await self._get(url)
        except httpx.HTTPError as e:
            logger.warning("PlantUML server request failed: %s", e)
            return ValidationOutcome.failure(str(e) or type(e).__name__)

        if not response.is_success:
            message = f"HTTP {response.status_code}: {response.reason_phrase}"
            diagram_error = response.headers.get("X-PlantUML-Diagram-Error")
            if diagram_error:
                message = f"{message} ({diagram_error})"
            return ValidationOutcome.failure(message)

        return self.scan_rendered_text(response.text)

    def scan_rendered_text(self, text: str) -> ValidationOutcome:
        """Look for error markers in rendered PlantUML text.

        Args:
            text: The server's text rendering of a diagram.

        Returns:
            Invalid with the first matching error fragment (or a generic
            message) if any indicator is present, else valid.
        """
        if not any(indicator in text for indicator in self.config.error_indicators):
            return ValidationOutcome.ok()
        match = self._error_pattern.search(text)
        if match and match.group(0).strip():
            return ValidationOutcome.failure(match.group(0).strip())
        return ValidationOutcome.failure(GENERIC_SYNTAX_ERROR)

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, timeout=self.config.timeout)
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            return await client.get(url)
