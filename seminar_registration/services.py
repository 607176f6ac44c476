"""
Business Logic Services for the Seminar Registration Application

This module contains the service classes that implement registration,
payment verification, check-in and the admin queries. Services receive
their collaborators (repository, gateway, photo storage) at construction
and raise the exceptions in exceptions.py; the Flask layer maps those to
HTTP responses.
"""

import csv
import hmac
import io
import logging
import re
import uuid
from typing import Dict, List, Optional

from .exceptions import (
    AuthenticationFailedException,
    InvalidInputException,
    ParticipantNotFoundException,
    SignatureMismatchException,
    UploadFailureException,
)
from .fees import compute_amount, minor_units, parse_designation, parse_paper_submission
from .gateway import RazorpayGateway, make_receipt, verify_payment_signature
from .models import (
    Address,
    CheckInResult,
    CheckInStatus,
    NAME_PREFIXES,
    Order,
    Participant,
    utc_now_iso,
)
from .qr import build_qr_payload, parse_scanned_payload, render_qr_data_url
from .repositories import ParticipantRepository
from .storage import PhotoStorage


logger = logging.getLogger(__name__)

REQUIRED_FORM_FIELDS = ("fullName", "email", "phone", "designation", "institution")

CSV_HEADERS = [
    "ID", "Full Name", "Email", "Phone", "Gender", "Photo", "Designation",
    "Institution", "Street Address", "City", "State/Province", "Postal Code",
    "Country", "Paper Submission", "Amount", "Payment ID", "Order ID",
    "Paid At", "Created At",
]


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email.strip()) is not None


def _require(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputException(field_name, "This field is required")
    return str(value).strip()


class AuthenticationService:
    """
    Checks the shared admin passphrase

    There are no individual admin accounts; one passphrase from
    configuration unlocks the admin endpoints.
    """

    def __init__(self, admin_passphrase: Optional[str]):
        self._passphrase = admin_passphrase
        if not admin_passphrase:
            logger.warning("ADMIN_PASSPHRASE not set, admin login is disabled")

    def authenticate(self, passphrase: Optional[str]) -> bool:
        """
        Verify the admin passphrase

        Raises:
            AuthenticationFailedException: If it is wrong or none is configured
        """
        if not self._passphrase:
            raise AuthenticationFailedException("Admin login is not configured")
        if not passphrase or not hmac.compare_digest(passphrase.encode(), self._passphrase.encode()):
            raise AuthenticationFailedException()
        return True


class OrderService:
    """Creates gateway orders for the computed registration fee"""

    def __init__(self, gateway: RazorpayGateway, currency: str = "INR"):
        self.gateway = gateway
        self.currency = currency

    def create_order(self, designation: str, paper_submission: Optional[bool]) -> Order:
        """
        Create a payment order for a registration

        Args:
            designation: Attendee category
            paper_submission: Whether a paper is being submitted

        Returns:
            Order with the amount in whole currency units

        Raises:
            InvalidInputException: If the designation is unknown or the paper flag is not a boolean
            ConfigurationError: If gateway credentials are missing
            GatewayException: If the gateway rejects the order
        """
        amount = compute_amount(parse_designation(designation), parse_paper_submission(paper_submission))
        self.gateway.ensure_configured()

        order = self.gateway.create_order(minor_units(amount), self.currency, make_receipt())
        logger.info("Created order %s for %s (%d %s)", order.order_id, designation,
                    amount, self.currency)
        return Order(order_id=order.order_id, amount=amount,
                     currency=self.currency, receipt=order.receipt)


class RegistrationService:
    """
    Verifies checkout confirmations and registers participants

    The signature check is the only proof of payment; a participant
    record is never created before it passes.
    """

    def __init__(self, repository: ParticipantRepository, key_secret: Optional[str],
                 photo_storage: Optional[PhotoStorage] = None):
        self.repository = repository
        self.key_secret = key_secret
        self.photo_storage = photo_storage

    @staticmethod
    def _validate_form(form_data: Optional[Dict]) -> Dict:
        if not isinstance(form_data, dict):
            raise InvalidInputException("formData", "Missing registration data")

        for field_name in REQUIRED_FORM_FIELDS:
            _require(form_data.get(field_name), field_name)

        if not is_valid_email(str(form_data.get("email"))):
            raise InvalidInputException("email", "Invalid email address")

        prefix = form_data.get("namePrefix")
        if prefix and str(prefix).rstrip(".") not in NAME_PREFIXES:
            raise InvalidInputException("namePrefix", f"Unknown prefix '{prefix}'")

        address = form_data.get("address")
        if address is not None and not isinstance(address, dict):
            raise InvalidInputException("address", "Address must be an object")

        parse_designation(form_data.get("designation"))
        parse_paper_submission(form_data.get("paperSubmission"))
        return form_data

    def _resolve_photo(self, participant_id: str, form_data: Dict) -> Dict[str, Optional[str]]:
        photo_base64 = form_data.get("photoBase64") or None
        if not photo_base64:
            return {"photo_url": form_data.get("photoUrl") or None, "photo_base64": None}

        if self.photo_storage is None:
            return {"photo_url": None, "photo_base64": photo_base64}

        try:
            url = self.photo_storage.upload_photo(participant_id, photo_base64)
            return {"photo_url": url, "photo_base64": None}
        except UploadFailureException as e:
            logger.warning("Photo upload failed, storing inline: %s", e)
            return {"photo_url": None, "photo_base64": photo_base64}

    def verify_and_register(self, order_id: str, payment_id: str, signature: str,
                            form_data: Dict) -> Participant:
        """
        Verify a payment confirmation and create the participant

        Args:
            order_id: Gateway order ID
            payment_id: Gateway payment ID
            signature: Signature returned by the checkout
            form_data: Registration form fields (camelCase)

        Returns:
            The persisted Participant

        Raises:
            InvalidInputException: If IDs or form fields are missing or invalid
            SignatureMismatchException: If the signature does not verify
            StorageFailureException: If the participant cannot be persisted
        """
        order_id = _require(order_id, "orderId")
        payment_id = _require(payment_id, "paymentId")
        signature = _require(signature, "signature")
        form_data = self._validate_form(form_data)

        if not self.key_secret:
            logger.error("RAZORPAY_KEY_SECRET not set, cannot verify payment %s", payment_id)
            raise SignatureMismatchException(order_id, "payment secret is not configured")
        if not verify_payment_signature(order_id, payment_id, signature, self.key_secret):
            logger.warning("Payment verification failed for order %s", order_id)
            raise SignatureMismatchException(order_id)

        participant_id = str(uuid.uuid4())
        now = utc_now_iso()
        email = str(form_data["email"]).strip()
        designation = parse_designation(form_data["designation"])
        paper_submission = parse_paper_submission(form_data.get("paperSubmission"))

        qr_payload = build_qr_payload(participant_id, email, now)
        photo = self._resolve_photo(participant_id, form_data)

        participant = Participant(
            id=participant_id,
            name_prefix=str(form_data.get("namePrefix") or "").rstrip(".") or None,
            full_name=str(form_data["fullName"]).strip(),
            email=email,
            phone=str(form_data["phone"]).strip(),
            gender=str(form_data.get("gender") or "").strip().lower() or None,
            designation=designation,
            institution=str(form_data["institution"]).strip(),
            address=Address.from_dict(form_data.get("address")),
            paper_submission=paper_submission,
            amount=compute_amount(designation, paper_submission),
            order_id=order_id,
            payment_id=payment_id,
            qr_code=render_qr_data_url(qr_payload),
            qr_payload=qr_payload,
            paid_at=now,
            created_at=now,
            **photo,
        )

        self.repository.add(participant)
        logger.info("Registered participant %s (%s), order %s", participant.id,
                    participant.email, order_id)
        return participant


class CheckInService:
    """
    Venue check-in

    Registered -> CheckedIn happens once; later scans of the same
    credential report the original time and change nothing.
    """

    def __init__(self, repository: ParticipantRepository):
        self.repository = repository

    def check_in(self, participant_id: Optional[str]) -> CheckInResult:
        """
        Check a participant in

        Args:
            participant_id: ID decoded from the QR credential

        Returns:
            CheckInResult with status checked_in or already_checked_in

        Raises:
            InvalidInputException: If the ID is missing
            ParticipantNotFoundException: If the ID is not registered
        """
        participant_id = _require(participant_id, "id")
        now = utc_now_iso()

        def stamp(current: Participant) -> Optional[Participant]:
            if current.is_checked_in:
                return None
            return current.with_check_in(now)

        participant, changed = self.repository.update(participant_id, stamp)
        if not changed:
            logger.info("Participant %s already checked in at %s", participant_id,
                        participant.checked_in_at)
            return CheckInResult(CheckInStatus.ALREADY_CHECKED_IN, participant)

        logger.info("Checked in participant %s", participant_id)
        return CheckInResult(CheckInStatus.CHECKED_IN, participant)

    def check_in_scanned(self, scanned: Optional[str]) -> CheckInResult:
        """Check in from the raw text read off a QR credential"""
        return self.check_in(parse_scanned_payload(scanned))

    def get_stats(self) -> Dict[str, int]:
        participants = self.repository.list_all()
        return {
            'total': len(participants),
            'checkedIn': sum(1 for p in participants if p.is_checked_in),
        }


class ParticipantService:
    """
    Admin queries over registered participants

    Listing, CSV export, deletion, and the read-only QR lookup.
    """

    def __init__(self, repository: ParticipantRepository):
        self.repository = repository

    def list_all(self) -> List[Participant]:
        return self.repository.list_all()

    def get_participant_or_raise(self, participant_id: Optional[str]) -> Participant:
        """
        Get participant by ID or raise exception if not found

        Raises:
            InvalidInputException: If the ID is missing
            ParticipantNotFoundException: If participant not found
        """
        participant_id = _require(participant_id, "id")
        participant = self.repository.get(participant_id)
        if participant is None:
            raise ParticipantNotFoundException(participant_id)
        return participant

    def verify_qr(self, participant_id: Optional[str]) -> Dict:
        """Read-only lookup for a scanned credential"""
        return self.get_participant_or_raise(participant_id).public_summary()

    def delete_by_id(self, participant_id: Optional[str]) -> None:
        """
        Delete a participant

        Raises:
            InvalidInputException: If the ID is missing
            ParticipantNotFoundException: If the ID is unknown
            StorageFailureException: If the primary store cannot be written
        """
        participant_id = _require(participant_id, "id")
        self.repository.delete(participant_id)
        logger.info("Deleted participant %s", participant_id)

    @staticmethod
    def _csv_row(participant: Participant) -> List:
        address = participant.address or Address()
        if participant.photo_url:
            photo = participant.photo_url
        else:
            photo = "Yes" if participant.photo_base64 else "No"
        return [
            participant.id,
            participant.full_name,
            participant.email,
            participant.phone,
            (participant.gender or "").capitalize(),
            photo,
            participant.designation.value,
            participant.institution,
            address.street,
            address.city,
            address.state,
            address.postal_code,
            address.country,
            "Yes" if participant.paper_submission else "No",
            participant.amount,
            participant.payment_id,
            participant.order_id,
            participant.paid_at,
            participant.created_at,
        ]

    def export_csv(self) -> str:
        """
        Render all participants as CSV

        Fields containing a comma, quote or newline are quoted and
        embedded quotes are doubled.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for participant in self.list_all():
            writer.writerow(self._csv_row(participant))
        return buffer.getvalue()

    def get_summary(self) -> Dict:
        participants = self.list_all()
        return {
            'total': len(participants),
            'checkedIn': sum(1 for p in participants if p.is_checked_in),
            'totalRevenue': sum(p.amount for p in participants),
        }
