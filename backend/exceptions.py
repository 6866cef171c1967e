# =============================================================================
# BODY MANUAL BACKEND - EXCEPTIONS
# =============================================================================
"""
Exception hierarchy for the progress and achievement services.

Each exception carries a human-readable message, an error code and
optional details for debugging.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes for consistent error reporting."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_FOUND = "NOT_FOUND"
    DATABASE_ERROR = "DATABASE_ERROR"
    INVALID_CRITERIA = "INVALID_CRITERIA"


class BodyManualError(Exception):
    """
    Base exception for all Body Manual backend errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a serializable dictionary."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


class StorageError(BodyManualError):
    """Raised when an underlying store operation fails."""

    def __init__(self, operation: str, cause: Optional[Exception] = None) -> None:
        details: Dict[str, Any] = {"operation": operation}
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(
            message=f"Storage operation failed: {operation}",
            code=ErrorCode.DATABASE_ERROR,
            details=details,
        )


class AchievementNotFoundError(BodyManualError):
    """Raised when an achievement definition does not exist."""

    def __init__(self, achievement_id: str) -> None:
        super().__init__(
            message="Achievement not found",
            code=ErrorCode.NOT_FOUND,
            details={"achievement_id": achievement_id},
        )


class InvalidCriteriaError(BodyManualError):
    """Raised when a persisted criteria descriptor cannot be decoded."""

    def __init__(self, achievement_id: str, reason: str) -> None:
        super().__init__(
            message=f"Invalid criteria for achievement {achievement_id}",
            code=ErrorCode.INVALID_CRITERIA,
            details={"achievement_id": achievement_id, "reason": reason},
        )
