"""Exception hierarchy for the Gladly to Enterpret import pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base exception for all import pipeline errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(PipelineError):
    """Raised when a required setting is missing or unusable."""


class ApiConnectionError(PipelineError):
    """Raised when the pre-flight check against a platform fails."""

    def __init__(self, platform: str, reason: str):
        super().__init__(f"Failed to connect to {platform} API: {reason}")
        self.platform = platform
        self.reason = reason


class FetchError(PipelineError):
    """Raised when listing conversations from the source fails."""


class EnrichmentError(PipelineError):
    """Raised when conversation items or a customer profile cannot be fetched."""


class TransformError(PipelineError):
    """Raised when a conversation cannot be converted into a feedback record."""

    def __init__(self, conversation_id: Optional[str], reason: str):
        super().__init__(f"Failed to transform conversation {conversation_id}: {reason}")
        self.conversation_id = conversation_id
        self.reason = reason


class DeliveryError(PipelineError):
    """Raised when a feedback record cannot be delivered to the destination."""

    def __init__(self, record_id: Optional[str], reason: str):
        super().__init__(f"Failed to import feedback {record_id}: {reason}")
        self.record_id = record_id
        self.reason = reason


class FeedbackValidationError(DeliveryError):
    """Raised when a feedback payload fails local validation. Never sent over the network."""


class StateWriteError(PipelineError):
    """Raised when the import state file cannot be written."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to write import state to {path}: {reason}")
        self.path = path
        self.reason = reason
