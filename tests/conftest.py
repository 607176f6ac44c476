"""
Pytest configuration and fixtures.
"""
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest

from seminar_registration.app import create_app
from seminar_registration.config import AppConfig
from seminar_registration.gateway import RazorpayGateway, payment_signature
from seminar_registration.models import Address, Designation, Order, Participant
from seminar_registration.repositories import InMemoryParticipantRepository


KEY_SECRET = "test_key_secret"
ADMIN_PASSPHRASE = "seminar-admin"


class FakeWorksheet:
    """Stand-in for gspread.Worksheet holding rows as lists of strings."""

    def __init__(self, rows: List[List[Any]] = None):
        self.rows: List[List[str]] = [[str(v) for v in row] for row in (rows or [])]
        self.fail_with: Exception = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def get_all_values(self) -> List[List[str]]:
        self._maybe_fail()
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None) -> None:
        self._maybe_fail()
        self.rows.append([str(v) for v in values])

    def update(self, range_name=None, values=None, value_input_option=None) -> None:
        self._maybe_fail()
        row_number = int(range_name.lstrip("A"))
        self.rows[row_number - 1] = [str(v) for v in values[0]]

    def delete_rows(self, index: int) -> None:
        self._maybe_fail()
        del self.rows[index - 1]


def make_participant(**overrides: Any) -> Participant:
    data: Dict[str, Any] = dict(
        id="p-1",
        full_name="Asha Verma",
        email="asha@example.com",
        phone="9876543210",
        designation=Designation.STUDENT,
        institution="Mata Sushila Institute",
        amount=250,
        order_id="order_1",
        payment_id="pay_1",
        qr_code="data:image/png;base64,AAAA",
        paid_at="2026-02-01T10:00:00+00:00",
        created_at="2026-02-01T10:00:00+00:00",
    )
    data.update(overrides)
    return Participant(**data)


def registration_form(**overrides: Any) -> Dict[str, Any]:
    form = {
        "namePrefix": "Ms",
        "fullName": "Asha Verma",
        "email": "asha@example.com",
        "phone": "9876543210",
        "gender": "female",
        "designation": "student",
        "institution": "Mata Sushila Institute",
        "paperSubmission": True,
        "address": {
            "street": "12 MG Road",
            "city": "Delhi",
            "state": "Delhi",
            "postalCode": "110001",
            "country": "India",
        },
    }
    form.update(overrides)
    return form


def sign(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    return payment_signature(order_id, payment_id, secret)


@pytest.fixture
def test_config() -> AppConfig:
    """Configuration with fake secrets and in-memory storage."""
    return AppConfig(
        secret_key="test-secret-key",
        storage_backend="memory",
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret=KEY_SECRET,
        admin_passphrase=ADMIN_PASSPHRASE,
    )


@pytest.fixture
def repository() -> InMemoryParticipantRepository:
    return InMemoryParticipantRepository()


@pytest.fixture
def fake_worksheet() -> FakeWorksheet:
    return FakeWorksheet()


@pytest.fixture
def mock_gateway() -> MagicMock:
    gateway = MagicMock(spec=RazorpayGateway)
    gateway.create_order.return_value = Order(
        order_id="order_test_123", amount=1250, currency="INR", receipt="seminar_1"
    )
    return gateway


@pytest.fixture
def seminar_app(test_config: AppConfig, repository, mock_gateway):
    return create_app(test_config, repository=repository, gateway=mock_gateway)


@pytest.fixture
def client(seminar_app):
    seminar_app.app.config["TESTING"] = True
    return seminar_app.app.test_client()


@pytest.fixture
def admin_client(client):
    response = client.post("/api/admin/login", json={"passphrase": ADMIN_PASSPHRASE})
    assert response.status_code == 200
    return client


@pytest.fixture
def sample_address() -> Address:
    return Address(street="12 MG Road, Block \"B\"", city="Delhi", state="Delhi",
                   postal_code="110001", country="India")
