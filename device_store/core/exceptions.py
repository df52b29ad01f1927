# device_store/core/exceptions.py

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


# Engine Exceptions
class DeviceStoreException(Exception):
    """Base class for errors raised by the registration engine."""
    def __init__(self, message: str, code: str = "DEVICE_STORE_ERROR", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}

class PermissionDeniedException(DeviceStoreException):
    """Raised when the user declines the notification permission prompt."""
    def __init__(self, message="Notification permission denied", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PERMISSION_DENIED", details=details)

class TokenFetchFailedException(DeviceStoreException):
    """Raised when the push service cannot supply a token."""
    def __init__(self, message="Push token could not be fetched", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="TOKEN_FETCH_FAILED", details=details)

class TransactionFailedException(DeviceStoreException):
    """Raised when a document transaction exhausts its retries or hits a non-retryable error."""
    def __init__(self, message="Document transaction failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="TRANSACTION_FAILED", details=details)


# Base API Exception
class BaseAPIException(HTTPException):
    """Base class for all custom API exceptions."""
    def __init__(self, status_code: int, detail: str, headers: dict = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


# Authentication & Authorization Exceptions
class InvalidTokenException(BaseAPIException):
    """Exception raised when a token is invalid or expired."""
    def __init__(self, detail="Invalid token"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
