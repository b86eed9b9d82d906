"""
Shared exceptions for AI service modules.
"""


class AIServiceError(Exception):
    """Raised when AI service operations fail."""

    pass


class EmptyInputError(AIServiceError):
    """Raised when extraction is requested without any page images."""

    pass


class ExtractionFailedError(AIServiceError):
    """Raised when the remote extraction fails (network, auth, malformed reply)."""

    pass


class SchemaViolationError(ExtractionFailedError):
    """Raised when the model reply does not have the expected record shape."""

    pass
