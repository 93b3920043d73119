"""
Shared exceptions for AI service modules.
"""


class AIServiceError(Exception):
    """Raised when AI service operations fail."""

    pass


class MalformedResponse(AIServiceError):
    """Raised when the model output contains no isolable, parseable JSON object."""

    pass


class TransportError(AIServiceError):
    """Raised when the provider cannot be reached or answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PricingUnavailable(AIServiceError):
    """Raised when the selected model is missing from the catalog or lacks numeric pricing."""

    pass
