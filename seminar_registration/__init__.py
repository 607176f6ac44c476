"""
Seminar Registration Package

A registration and check-in system for a paid seminar, built with Flask.
Attendees register and pay through Razorpay, receive a QR credential,
and are checked in at the venue by scanning it.

Main Components:
- models: Participant, Order and check-in result models, fee table
- repositories: Participant stores (JSON file, Google Sheets mirror, memory)
- services: Order, registration, check-in, admin and authentication logic
- gateway: Razorpay order client and payment signature verification
- storage: Photo upload to S3-compatible object storage
- qr: QR credential payloads and images
- exceptions: Custom exception classes for error handling
- app: Flask application class

Usage:
    from seminar_registration import create_app

    app = create_app()
    app.run()
"""

__version__ = "1.0.0"

from .app import create_app, create_wsgi_app, SeminarRegistrationApp
from .config import AppConfig
from .fees import compute_amount
from .models import Participant, Address, Order, Designation, CheckInStatus, CheckInResult
from .services import (
    AuthenticationService,
    OrderService,
    RegistrationService,
    CheckInService,
    ParticipantService,
)
from .repositories import RepositoryFactory
from .exceptions import (
    SeminarRegistrationException,
    ConfigurationError,
    InvalidInputException,
    SignatureMismatchException,
    ParticipantNotFoundException,
    StorageFailureException,
    UploadFailureException,
    GatewayException,
    AuthenticationFailedException,
)

__all__ = [
    # App factory functions
    'create_app',
    'create_wsgi_app',
    'SeminarRegistrationApp',
    'AppConfig',

    # Data models
    'Participant',
    'Address',
    'Order',
    'Designation',
    'CheckInStatus',
    'CheckInResult',
    'compute_amount',

    # Services
    'AuthenticationService',
    'OrderService',
    'RegistrationService',
    'CheckInService',
    'ParticipantService',

    # Repository factory
    'RepositoryFactory',

    # Exceptions
    'SeminarRegistrationException',
    'ConfigurationError',
    'InvalidInputException',
    'SignatureMismatchException',
    'ParticipantNotFoundException',
    'StorageFailureException',
    'UploadFailureException',
    'GatewayException',
    'AuthenticationFailedException',
]
