from fastapi import status

class BaseAppException(Exception):
    """Base exception for application"""
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self):
        """Return error response as dictionary with error code"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code
        }

class ItemNotFoundException(BaseAppException):
    """Raised when a catalog item (or its embedding) is not found"""
    error_code = "ITEM_NOT_FOUND"

    def __init__(self, message: str = "Item not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class FeedbackNotFoundException(BaseAppException):
    """Raised when there is no feedback event for a (user, item) pair"""
    error_code = "FEEDBACK_NOT_FOUND"

    def __init__(self, message: str = "Feedback not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class MoodNotFoundException(BaseAppException):
    """Raised when an unknown mood preset is requested"""
    error_code = "MOOD_NOT_FOUND"

    def __init__(self, message: str = "Mood preset not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class InsufficientDataException(BaseAppException):
    """Raised when no owned item contributed weight to the preference vector.

    The client can recover by lowering the playtime threshold or syncing more items.
    """
    error_code = "INSUFFICIENT_DATA"

    def __init__(self, message: str = "Not enough played items to build a preference vector"):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)

class PremiumRequiredException(BaseAppException):
    """Raised when a non-entitled user calls a premium operation"""
    error_code = "PREMIUM_REQUIRED"

    def __init__(self, message: str = "Premium subscription required"):
        super().__init__(message, status.HTTP_403_FORBIDDEN)

class PreferenceVectorMissingException(BaseAppException):
    """Raised when a user has no preference vector yet"""
    error_code = "PREFERENCE_VECTOR_MISSING"

    def __init__(self, message: str = "No preference vector yet. Sync your library first."):
        super().__init__(message, status.HTTP_409_CONFLICT)

class InvalidFeedbackLabelException(BaseAppException):
    """Raised when a feedback label is not one of the supported values"""
    error_code = "INVALID_FEEDBACK_LABEL"

    def __init__(self, message: str = "Invalid feedback label"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)

class InvalidItemMetadataException(BaseAppException):
    """Raised when item metadata fails validation at ingestion"""
    error_code = "INVALID_ITEM_METADATA"

    def __init__(self, message: str = "Invalid item metadata"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)

class VectorStoreException(BaseAppException):
    """Raised when the vector store query fails after a retry"""
    error_code = "VECTOR_STORE_ERROR"

    def __init__(self, message: str = "Vector store query failed"):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)

class UpstreamServiceException(BaseAppException):
    """Raised when the upstream library provider cannot be reached"""
    error_code = "UPSTREAM_ERROR"

    def __init__(self, message: str = "Upstream service error"):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)

class RefinementLimitException(BaseAppException):
    """Raised when a conversation is refined past its maximum round count"""
    error_code = "REFINEMENT_LIMIT_REACHED"

    def __init__(self, message: str = "Maximum refinement rounds reached. Start a new search."):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)

class VectorDimensionError(Exception):
    """Configuration error: a vector does not match the deployment's dimensionality.

    Raised at startup or ingestion, never translated into a per-request response.
    """
    def __init__(self, expected: int, actual: int, context: str = "vector"):
        self.expected = expected
        self.actual = actual
        self.context = context
        super().__init__(f"{context} has dimension {actual}, expected {expected}")
