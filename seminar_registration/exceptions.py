"""
Custom Exceptions for the Seminar Registration Application

This module defines the exception classes raised by the registration,
payment, check-in and storage layers. Each carries an error code so the
HTTP layer can map it to a status without string matching.
"""

from typing import Optional


class SeminarRegistrationException(Exception):
    """
    Base exception for the seminar registration application

    All custom exceptions in the system inherit from this class
    for consistent error handling.
    """

    def __init__(self, message: str, error_code: str = None):
        """
        Initialize seminar registration exception

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self) -> str:
        """String representation of the exception"""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(SeminarRegistrationException):
    """
    Raised when a required secret or setting is missing

    Fatal for the request; nothing external is contacted.
    """

    def __init__(self, setting: str, details: str = None):
        message = details or f"{setting} is not configured"
        super().__init__(message, "CONFIGURATION_ERROR")
        self.setting = setting


class InvalidInputException(SeminarRegistrationException):
    """
    Raised when request data fails validation

    Thrown at the boundary before any external call is made.
    """

    def __init__(self, field_name: str, validation_error: str):
        """
        Initialize invalid input exception

        Args:
            field_name: Name of the field that failed validation
            validation_error: Description of the validation error
        """
        message = f"Validation error in field '{field_name}': {validation_error}"
        super().__init__(message, "INVALID_INPUT")
        self.field_name = field_name
        self.validation_error = validation_error


class SignatureMismatchException(SeminarRegistrationException):
    """Raised when a payment confirmation signature cannot be verified"""

    def __init__(self, order_id: str, reason: str = "signature does not match"):
        message = f"Payment verification failed for order '{order_id}': {reason}"
        super().__init__(message, "SIGNATURE_MISMATCH")
        self.order_id = order_id
        self.reason = reason


class ParticipantNotFoundException(SeminarRegistrationException):
    """
    Raised when a participant is not found in the store

    Thrown when scanning, checking in or deleting an ID
    that was never registered.
    """

    def __init__(self, participant_id: str):
        """
        Initialize participant not found exception

        Args:
            participant_id: The ID of the participant that was not found
        """
        message = f"Participant with ID '{participant_id}' not found"
        super().__init__(message, "PARTICIPANT_NOT_FOUND")
        self.participant_id = participant_id


class StorageFailureException(SeminarRegistrationException):
    """
    Raised when participant storage operations fail

    Covers the JSON file on disk as well as the spreadsheet mirror.
    """

    def __init__(self, operation: str, details: str):
        """
        Initialize storage failure exception

        Args:
            operation: The operation that failed (e.g., 'read', 'write')
            details: Detailed error information
        """
        message = f"Storage error during {operation}: {details}"
        super().__init__(message, "STORAGE_FAILURE")
        self.operation = operation
        self.details = details


class UploadFailureException(SeminarRegistrationException):
    """Raised when a photo cannot be uploaded to object storage"""

    def __init__(self, key: str, details: str):
        message = f"Upload of '{key}' failed: {details}"
        super().__init__(message, "UPLOAD_FAILURE")
        self.key = key
        self.details = details


class GatewayException(SeminarRegistrationException):
    """
    Raised when the payment gateway rejects a request

    Args:
        description: Description reported by the gateway, if any
        status_code: HTTP status returned by the gateway (None for network errors)
    """

    def __init__(self, description: str, status_code: Optional[int] = None):
        super().__init__(description, "GATEWAY_ERROR")
        self.description = description
        self.status_code = status_code

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401


class AuthenticationFailedException(SeminarRegistrationException):
    """
    Raised when admin authentication fails

    This exception is thrown when the admin passphrase is wrong
    or no passphrase has been configured.
    """

    def __init__(self, reason: str = None):
        message = reason or "Authentication failed - invalid passphrase"
        super().__init__(message, "AUTH_FAILED")
