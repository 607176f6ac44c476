"""
Data Models for the Seminar Registration Application

This module contains the data model classes for participants, payment
orders and check-in results. Records are persisted with camelCase keys,
so each model converts to and from that dictionary form.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class Designation(Enum):
    """Attendee category determining the base fee"""
    STUDENT = "student"
    FACULTY = "faculty"
    PROFESSIONAL = "professional"


class CheckInStatus(Enum):
    """Outcome of a check-in attempt"""
    CHECKED_IN = "checked_in"
    ALREADY_CHECKED_IN = "already_checked_in"


# Whole rupees: base fee plus paper surcharge per designation
FEE_STRUCTURE: Dict[Designation, Dict[str, int]] = {
    Designation.STUDENT: {"base": 250, "paper": 1000},
    Designation.FACULTY: {"base": 350, "paper": 1000},
    Designation.PROFESSIONAL: {"base": 400, "paper": 1000},
}

NAME_PREFIXES = ("Mr", "Ms", "Mrs", "Dr", "Prof")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Address:
    """Optional postal address attached to a registration"""
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional['Address']:
        if not data:
            return None
        return cls(
            street=data.get('street') or "",
            city=data.get('city') or "",
            state=data.get('state') or "",
            postal_code=data.get('postalCode') or "",
            country=data.get('country') or "",
        )

    def to_dict(self) -> Dict:
        return {
            'street': self.street,
            'city': self.city,
            'state': self.state,
            'postalCode': self.postal_code,
            'country': self.country,
        }


@dataclass
class Participant:
    """
    Data model for a registered participant

    Created only after the payment signature has been verified. The
    identifier is assigned server-side and never changes; the check-in
    timestamp is written once.
    """
    id: str
    full_name: str
    email: str
    phone: str
    designation: Designation
    institution: str
    amount: int
    order_id: str
    payment_id: str
    qr_code: str
    paid_at: str
    created_at: str
    name_prefix: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[Address] = None
    paper_submission: bool = False
    qr_payload: Optional[str] = None
    photo_url: Optional[str] = None
    photo_base64: Optional[str] = None
    checked_in_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'Participant':
        """
        Create Participant instance from its persisted dictionary form

        Args:
            data: Dictionary with camelCase keys

        Returns:
            Participant instance

        Raises:
            KeyError: If a required key is missing
            ValueError: If the designation is not recognized
        """
        return cls(
            id=data['id'],
            full_name=data['fullName'],
            email=data['email'],
            phone=data.get('phone') or "",
            designation=Designation(data['designation']),
            institution=data.get('institution') or "",
            amount=int(data['amount']),
            order_id=data.get('orderId') or "",
            payment_id=data.get('paymentId') or "",
            qr_code=data.get('qrCode') or "",
            paid_at=data.get('paidAt') or "",
            created_at=data.get('createdAt') or "",
            name_prefix=data.get('namePrefix') or None,
            gender=data.get('gender') or None,
            address=Address.from_dict(data.get('address')),
            paper_submission=bool(data.get('paperSubmission', False)),
            qr_payload=data.get('qrPayload') or None,
            photo_url=data.get('photoUrl') or None,
            photo_base64=data.get('photoBase64') or None,
            checked_in_at=data.get('checkedInAt') or None,
        )

    def to_dict(self) -> Dict:
        """
        Convert participant to dictionary for JSON serialization

        Optional fields that are unset are left out.

        Returns:
            Dictionary representation of the participant
        """
        data = {
            'id': self.id,
            'namePrefix': self.name_prefix,
            'fullName': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'gender': self.gender,
            'designation': self.designation.value,
            'institution': self.institution,
            'address': self.address.to_dict() if self.address else None,
            'paperSubmission': self.paper_submission,
            'amount': self.amount,
            'orderId': self.order_id,
            'paymentId': self.payment_id,
            'qrCode': self.qr_code,
            'qrPayload': self.qr_payload,
            'photoUrl': self.photo_url,
            'photoBase64': self.photo_base64,
            'paidAt': self.paid_at,
            'createdAt': self.created_at,
            'checkedInAt': self.checked_in_at,
        }
        return {key: value for key, value in data.items() if value is not None}

    @property
    def display_name(self) -> str:
        if self.name_prefix:
            return f"{self.name_prefix}. {self.full_name}"
        return self.full_name

    @property
    def is_checked_in(self) -> bool:
        return self.checked_in_at is not None

    def with_check_in(self, timestamp: str) -> 'Participant':
        return replace(self, checked_in_at=timestamp)

    def public_summary(self) -> Dict:
        """Fields shown to the scanning volunteer"""
        return {
            'fullName': self.full_name,
            'email': self.email,
            'designation': self.designation.value,
            'institution': self.institution,
        }


@dataclass
class Order:
    """Payment order handle returned by the gateway; not persisted"""
    order_id: str
    amount: int
    currency: str
    receipt: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'orderId': self.order_id,
            'amount': self.amount,
            'currency': self.currency,
        }


@dataclass
class CheckInResult:
    """Result of a check-in: the new state and the participant record"""
    status: CheckInStatus
    participant: Participant

    @property
    def message(self) -> str:
        if self.status == CheckInStatus.ALREADY_CHECKED_IN:
            checked_in_at = self.participant.checked_in_at
            try:
                checked_in_at = datetime.fromisoformat(checked_in_at).strftime('%H:%M:%S')
            except ValueError:
                pass
            return f"{self.participant.full_name} already checked in at {checked_in_at}"
        return f"Welcome {self.participant.full_name}! You have been checked in."

    def to_dict(self) -> Dict:
        return {
            'valid': True,
            'status': self.status.value,
            'message': self.message,
            'participant': {
                'id': self.participant.id,
                'fullName': self.participant.full_name,
                'email': self.participant.email,
                'designation': self.participant.designation.value,
                'institution': self.participant.institution,
                'checkedInAt': self.participant.checked_in_at,
            },
        }
