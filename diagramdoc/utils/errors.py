"""Exception hierarchy for the diagram documentation pipeline.

Only document-level failures are raised. Diagram validation and repair
failures are recorded on the diagrams themselves and never abort a run.
"""

from typing import Any, Optional

_RAW_TEXT_PREVIEW = 500


class DiagramDocError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Operator-facing description of the failure.
        details: Extra diagnostic context for logs.
        public_message: Caller-safe text that hides internals.
        exit_code: Process exit code used by the CLI.
    """

    public_message = "Failed to process code file."
    exit_code = 1

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(DiagramDocError, ValueError):
    """Raised when a credential or provider setting is missing or invalid."""

    public_message = "Generative model is not configured on this machine."
    exit_code = 2


class ExtractionError(DiagramDocError):
    """Raised when the model response carries no usable text."""

    public_message = "No response returned from the model."
    exit_code = 3


class ParseError(DiagramDocError):
    """Raised when the model output cannot be turned into a document.

    Attributes:
        raw_text: The full text that failed to parse.
    """

    public_message = "Invalid response from the model."
    exit_code = 3

    def __init__(
        self,
        message: str,
        raw_text: str = "",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.raw_text = raw_text
        merged = dict(details or {})
        if raw_text:
            merged.setdefault("raw_text", raw_text[:_RAW_TEXT_PREVIEW])
        super().__init__(message, merged)
