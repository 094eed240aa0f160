"""
Application Exception Hierarchy

Every error the service raises on purpose derives from PizzaServiceError
and carries the HTTP status the API answers with. The exception handlers
in main.py turn them into ``{"message": ...}`` JSON bodies.
"""

from typing import Any, Optional


class PizzaServiceError(Exception):
    """Base application error with an HTTP status and structured context."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses."""
        return {"message": self.message}


class ValidationError(PizzaServiceError):
    """A request is missing required fields or carries bad values."""

    status_code = 400


class UnauthenticatedError(PizzaServiceError):
    """Missing, invalid or revoked token, or bad credentials."""

    status_code = 401

    def __init__(self, message: str = "unauthorized", **kwargs: Any):
        super().__init__(message, **kwargs)


class ForbiddenError(PizzaServiceError):
    """The caller is authenticated but lacks the required role or ownership."""

    status_code = 403


class NotFoundError(PizzaServiceError):
    """A referenced entity (franchise, admin email, menu item...) does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.key = key
        self.value = value
        if key is not None:
            self.details.setdefault("key", key)
            self.details.setdefault("value", value)


class UpstreamFailureError(PizzaServiceError):
    """The pizza factory declined (or never answered) a submitted order."""

    status_code = 500

    def __init__(
        self,
        message: str = "Failed to fulfill order at factory",
        report_url: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.report_url = report_url

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "followLinkToEndChaos": self.report_url}


class DatabaseNotReadyError(PizzaServiceError):
    """A data operation ran before DB.initialize() completed."""

    status_code = 503

    def __init__(self, message: str = "database not initialized", **kwargs: Any):
        super().__init__(message, **kwargs)
