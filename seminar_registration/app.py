"""
Main Application Module for Seminar Registration

This module contains the Flask application class that wires the
configuration, repository and services together and exposes them as a
JSON API: order creation, payment verification, QR check-in and the
admin endpoints.
"""

import logging
from datetime import date, timedelta
from functools import wraps
from typing import Optional

from flask import Flask, Response, jsonify, request, session

from .config import AppConfig
from .exceptions import (
    AuthenticationFailedException,
    ConfigurationError,
    GatewayException,
    InvalidInputException,
    ParticipantNotFoundException,
    SeminarRegistrationException,
    SignatureMismatchException,
    StorageFailureException,
)
from .gateway import RazorpayGateway
from .repositories import ParticipantRepository, RepositoryFactory
from .services import (
    AuthenticationService,
    CheckInService,
    OrderService,
    ParticipantService,
    RegistrationService,
)
from .storage import PhotoStorage


logger = logging.getLogger(__name__)


def admin_required(view):
    """Reject admin endpoints without an authenticated session"""
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.get("admin"):
            return jsonify({"error": "Authentication required"}), 401
        return view(*args, **kwargs)
    return wrapper


class SeminarRegistrationApp:
    """
    Main Flask application class for seminar registration

    This class builds the services from one AppConfig and handles the
    HTTP interface of the registration, check-in and admin flows.
    """

    def __init__(self, config: Optional[AppConfig] = None,
                 repository: Optional[ParticipantRepository] = None,
                 gateway: Optional[RazorpayGateway] = None,
                 photo_storage: Optional[PhotoStorage] = None):
        """
        Initialize the application

        Args:
            config: Application configuration (read from the environment if omitted)
            repository: Participant store (selected from config if omitted)
            gateway: Payment gateway client (built from config if omitted)
            photo_storage: Photo uploader (built from config if omitted)
        """
        self.config = config or AppConfig.from_env()

        # Initialize Flask app
        self.app = Flask(__name__)
        self._configure_app()

        # Initialize collaborators
        self.repository = repository or RepositoryFactory.create_from_config(self.config)
        self.gateway = gateway or RazorpayGateway(self.config)
        if photo_storage is None:
            photo_storage = PhotoStorage.from_config(self.config)

        # Initialize services
        self.auth_service = AuthenticationService(self.config.admin_passphrase)
        self.order_service = OrderService(self.gateway, self.config.currency)
        self.registration_service = RegistrationService(
            self.repository, self.config.razorpay_key_secret, photo_storage
        )
        self.check_in_service = CheckInService(self.repository)
        self.participant_service = ParticipantService(self.repository)

        # Register routes
        self._register_routes()

        # Register error handlers
        self._register_error_handlers()

    def _configure_app(self) -> None:
        """Apply configuration to Flask"""
        self.app.secret_key = self.config.secret_key
        self.app.permanent_session_lifetime = timedelta(hours=8)
        self.app.config['DEBUG'] = self.config.debug
        self.app.json.sort_keys = False

    def _register_routes(self) -> None:
        """Register all Flask routes"""
        self.app.add_url_rule("/api/order/create", "create_order", self.create_order, methods=["POST"])
        self.app.add_url_rule("/api/order/verify", "verify_order", self.verify_order, methods=["POST"])
        self.app.add_url_rule("/api/check-in", "check_in", self.check_in, methods=["POST"])
        self.app.add_url_rule("/api/check-in/stats", "check_in_stats", self.check_in_stats)
        self.app.add_url_rule("/api/verify-qr", "verify_qr", self.verify_qr, methods=["POST"])

        # Admin
        self.app.add_url_rule("/api/admin/login", "admin_login", self.admin_login, methods=["POST"])
        self.app.add_url_rule("/api/admin/logout", "admin_logout", self.admin_logout, methods=["POST"])
        self.app.add_url_rule("/api/participants", "list_participants",
                              admin_required(self.list_participants))
        self.app.add_url_rule("/api/participants/summary", "participants_summary",
                              admin_required(self.participants_summary))
        self.app.add_url_rule("/api/participants/export", "export_participants",
                              admin_required(self.export_participants))
        self.app.add_url_rule("/api/participants/delete", "delete_participant",
                              admin_required(self.delete_participant), methods=["POST"])

    def _register_error_handlers(self) -> None:
        """Register a fallback handler for uncaught application exceptions"""

        @self.app.errorhandler(SeminarRegistrationException)
        def handle_seminar_registration_exception(e):
            logger.exception("Unhandled application error: %s", e)
            return jsonify({"error": "Internal server error"}), 500

    @staticmethod
    def _json_body() -> dict:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}

    def create_order(self):
        """
        Create a payment order for the submitted designation

        Returns:
            JSON {orderId, amount, currency} or {error}
        """
        body = self._json_body()
        try:
            order = self.order_service.create_order(
                body.get("designation"), body.get("paperSubmission")
            )
            return jsonify(order.to_dict())

        except InvalidInputException as e:
            if e.field_name == "designation":
                return jsonify({"error": "Invalid designation"}), 400
            return jsonify({"error": e.validation_error}), 400
        except ConfigurationError as e:
            logger.error("Order creation error: %s", e)
            return jsonify({"error": "Failed to create order"}), 500
        except GatewayException as e:
            logger.error("Order creation error: %s (status %s)", e.description, e.status_code)
            return jsonify({"error": e.description}), (401 if e.is_unauthorized else 500)

    def verify_order(self):
        """
        Verify a completed checkout and register the participant

        Returns:
            JSON {success, participantId, qrCode, participant} or {error}
        """
        body = self._json_body()
        try:
            participant = self.registration_service.verify_and_register(
                body.get("orderId"),
                body.get("paymentId"),
                body.get("signature"),
                body.get("formData"),
            )
            return jsonify({
                "success": True,
                "participantId": participant.id,
                "qrCode": participant.qr_code,
                "participant": {
                    "id": participant.id,
                    "fullName": participant.full_name,
                    "email": participant.email,
                    "amount": participant.amount,
                },
            })

        except InvalidInputException as e:
            return jsonify({"error": e.message}), 400
        except SignatureMismatchException as e:
            logger.warning("Verification error: %s", e)
            return jsonify({"error": "Payment verification failed"}), 400
        except StorageFailureException as e:
            logger.error("Verification error: %s", e)
            return jsonify({"error": "Payment verification failed"}), 500

    def check_in(self):
        """
        Check in the participant identified by a scanned QR credential

        Accepts {"id": ...} or the raw scanned text as {"payload": ...}.

        Returns:
            JSON check-in result or {valid: false, error}
        """
        body = self._json_body()
        try:
            if body.get("id"):
                result = self.check_in_service.check_in(str(body["id"]))
            else:
                result = self.check_in_service.check_in_scanned(body.get("payload"))
            return jsonify(result.to_dict())

        except InvalidInputException as e:
            return jsonify({"valid": False, "error": e.validation_error}), 400
        except ParticipantNotFoundException:
            return jsonify({
                "valid": False,
                "error": "Participant not found in registration list",
            }), 404
        except StorageFailureException as e:
            logger.error("Check-in error: %s", e)
            return jsonify({"valid": False, "error": "Failed to process check-in"}), 500

    def check_in_stats(self):
        """Totals shown on the scanner screen"""
        try:
            return jsonify(self.check_in_service.get_stats())
        except StorageFailureException as e:
            logger.error("Stats error: %s", e)
            return jsonify({"error": "Failed to load stats"}), 500

    def verify_qr(self):
        """
        Read-only lookup of a scanned participant

        Returns:
            JSON {valid, participant} or {valid: false, error}
        """
        body = self._json_body()
        try:
            summary = self.participant_service.verify_qr(body.get("id"))
            return jsonify({"valid": True, "participant": summary})

        except InvalidInputException:
            return jsonify({"valid": False, "error": "Missing participant ID"}), 400
        except ParticipantNotFoundException:
            return jsonify({"valid": False, "error": "Participant not found"}), 404
        except StorageFailureException as e:
            logger.error("QR verification error: %s", e)
            return jsonify({"valid": False, "error": "Verification failed"}), 500

    def admin_login(self):
        """Start an admin session with the shared passphrase"""
        body = self._json_body()
        try:
            self.auth_service.authenticate(body.get("passphrase"))
        except AuthenticationFailedException as e:
            logger.warning("Admin login failed: %s", e.message)
            return jsonify({"error": "Invalid passphrase"}), 401

        session.permanent = True
        session["admin"] = True
        return jsonify({"success": True})

    def admin_logout(self):
        session.pop("admin", None)
        return jsonify({"success": True})

    def list_participants(self):
        """All participant records as a JSON array"""
        try:
            participants = self.participant_service.list_all()
            return jsonify([p.to_dict() for p in participants])
        except StorageFailureException as e:
            logger.error("List error: %s", e)
            return jsonify({"error": "Failed to load participants"}), 500

    def participants_summary(self):
        try:
            return jsonify(self.participant_service.get_summary())
        except StorageFailureException as e:
            logger.error("Summary error: %s", e)
            return jsonify({"error": "Failed to load participants"}), 500

    def export_participants(self):
        """
        Export all participants as a CSV download

        Returns:
            text/csv response or {error}
        """
        try:
            content = self.participant_service.export_csv()
        except StorageFailureException as e:
            logger.error("Export error: %s", e)
            return jsonify({"error": "Failed to export participants"}), 500

        filename = f"seminar-participants-{date.today().isoformat()}.csv"
        return Response(
            content,
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    def delete_participant(self):
        """
        Delete a participant by ID

        Returns:
            JSON {success, message} or {error}
        """
        body = self._json_body()
        try:
            self.participant_service.delete_by_id(body.get("id"))
            return jsonify({"success": True, "message": "Participant deleted successfully"})

        except InvalidInputException:
            return jsonify({"error": "Missing participant ID"}), 400
        except ParticipantNotFoundException as e:
            return jsonify({"error": e.message}), 404
        except StorageFailureException as e:
            logger.error("Delete error: %s", e)
            return jsonify({"error": f"Failed to delete participant: {e.details}"}), 500

    def run(self, host: str = '127.0.0.1', port: int = 5000, debug: bool = None) -> None:
        """
        Run the Flask development server

        Args:
            host: Host address to bind to
            port: Port number to listen on
            debug: Debug mode (overrides config if provided)
        """
        if debug is None:
            debug = self.config.debug
        self.app.run(host=host, port=port, debug=debug)


def create_app(config: Optional[AppConfig] = None, **collaborators) -> SeminarRegistrationApp:
    """
    Factory function to create and configure the application

    Args:
        config: Optional configuration; read from the environment if omitted
        **collaborators: Optional repository, gateway or photo_storage overrides

    Returns:
        Configured SeminarRegistrationApp instance
    """
    return SeminarRegistrationApp(config, **collaborators)


def create_wsgi_app() -> Flask:
    """WSGI entry point, e.g. gunicorn 'seminar_registration.app:create_wsgi_app()'"""
    return create_app().app
