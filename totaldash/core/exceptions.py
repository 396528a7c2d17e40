"""Shared exceptions module.

Every error the billing engine raises on purpose derives from TotalDashException.
The API layer maps each class to one HTTP status in totaldash.api.middleware.
"""

from typing import Optional

from pydantic import ValidationError


class TotalDashException(Exception):
    """Base exception for TotalDash services."""

    def __init__(self, message: Optional[str] = "An error occurred"):
        """Create a new TotalDashException instance.

        Args:
        ----
            message (str, optional): Short, human-readable reason.

        """
        self.message = message
        super().__init__(self.message)


class AuthenticationError(TotalDashException):
    """Raised when a caller credential is missing or invalid."""

    def __init__(self, message: Optional[str] = "Authentication required"):
        """Create a new AuthenticationError instance."""
        super().__init__(message)


class WebhookSignatureError(AuthenticationError):
    """Raised when a provider webhook fails signature verification."""

    def __init__(self, message: Optional[str] = "Webhook signature verification failed"):
        """Create a new WebhookSignatureError instance."""
        super().__init__(message)


class AuthorizationError(TotalDashException):
    """Raised when the caller lacks the privilege for an operation."""

    def __init__(
        self,
        message: Optional[str] = "User does not have the right to perform this action",
    ):
        """Create a new AuthorizationError instance."""
        super().__init__(message)


class DataValidationError(TotalDashException):
    """Raised when a required field is missing from a request or provider payload.

    Retrying cannot fix a missing field, so webhook handlers log this and
    acknowledge the event.
    """

    def __init__(self, message: Optional[str] = "Invalid data", field_name: Optional[str] = None):
        """Create a new DataValidationError instance.

        Args:
        ----
            message (str, optional): The error message.
            field_name (str, optional): The offending field, when known.

        """
        self.field_name = field_name
        super().__init__(message)


class NotFoundException(TotalDashException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance."""
        super().__init__(message)


class ConflictError(TotalDashException):
    """Raised when an operation is illegal for the current subscription state.

    Fails closed: the stored record is left untouched.
    """

    def __init__(self, message: Optional[str] = "Operation conflicts with current state"):
        """Create a new ConflictError instance."""
        super().__init__(message)


class ProviderError(TotalDashException):
    """Raised when the billing provider fails, times out or rejects a call."""

    def __init__(
        self,
        message: Optional[str] = "Billing provider request failed",
        service_name: str = "Stripe",
        retryable: bool = True,
    ):
        """Create a new ProviderError instance.

        Args:
        ----
            message (str, optional): The error message.
            service_name (str): The name of the external service.
            retryable (bool): Whether the caller may retry the operation.

        """
        self.service_name = service_name
        self.retryable = retryable
        super().__init__(f"{service_name}: {message}")


class NotificationError(TotalDashException):
    """Raised when the notification collaborator cannot accept a request.

    Never fatal: callers log it and carry on.
    """

    def __init__(self, template_key: str, message: Optional[str] = "Notification failed"):
        """Create a new NotificationError instance.

        Args:
        ----
            template_key (str): The notification template that failed.
            message (str, optional): The error message.

        """
        self.template_key = template_key
        super().__init__(f"{template_key}: {message}")


def unpack_validation_error(exc: ValidationError) -> dict:
    """Unpack a Pydantic validation error into a dictionary.

    Args:
    ----
        exc (ValidationError): The Pydantic validation error.

    Returns:
    -------
        dict: The dictionary representation of the validation error.

    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        error_messages.append({field: error["msg"]})

    return {"errors": error_messages}
