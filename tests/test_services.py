"""
Unit tests for the registration, check-in and admin services.
"""
import csv
import io
import json
from unittest.mock import MagicMock

import pytest

from conftest import KEY_SECRET, make_participant, registration_form, sign
from seminar_registration.exceptions import (
    AuthenticationFailedException,
    ConfigurationError,
    InvalidInputException,
    ParticipantNotFoundException,
    SignatureMismatchException,
    StorageFailureException,
    UploadFailureException,
)
from seminar_registration.models import Address, CheckInStatus, Designation
from seminar_registration.services import (
    CSV_HEADERS,
    AuthenticationService,
    CheckInService,
    OrderService,
    ParticipantService,
    RegistrationService,
)
from seminar_registration.storage import PhotoStorage


class TestOrderService:
    """Test suite for OrderService."""

    def test_create_order_sends_minor_units(self, mock_gateway) -> None:
        service = OrderService(mock_gateway, "INR")

        order = service.create_order("student", True)

        assert order.amount == 1250
        assert order.currency == "INR"
        assert order.order_id == "order_test_123"
        amount_minor, currency, receipt = mock_gateway.create_order.call_args[0]
        assert amount_minor == 125000
        assert currency == "INR"
        assert receipt.startswith("seminar_")

    def test_invalid_designation_rejected_before_gateway(self, mock_gateway) -> None:
        service = OrderService(mock_gateway)

        with pytest.raises(InvalidInputException):
            service.create_order("visitor", False)

        mock_gateway.ensure_configured.assert_not_called()
        mock_gateway.create_order.assert_not_called()

    def test_missing_credentials_surface_before_order(self, mock_gateway) -> None:
        mock_gateway.ensure_configured.side_effect = ConfigurationError("RAZORPAY_KEY_ID")
        service = OrderService(mock_gateway)

        with pytest.raises(ConfigurationError):
            service.create_order("faculty", False)

        mock_gateway.create_order.assert_not_called()


class TestRegistrationService:
    """Test suite for payment verification and registration."""

    @pytest.fixture
    def service(self, repository) -> RegistrationService:
        return RegistrationService(repository, KEY_SECRET)

    def test_valid_signature_registers_participant(self, service, repository) -> None:
        participant = service.verify_and_register(
            "order_1", "pay_1", sign("order_1", "pay_1"), registration_form()
        )

        assert repository.get(participant.id) == participant
        assert participant.amount == 1250
        assert participant.designation is Designation.STUDENT
        assert participant.name_prefix == "Ms"
        assert participant.display_name == "Ms. Asha Verma"
        assert participant.address == Address("12 MG Road", "Delhi", "Delhi", "110001", "India")
        assert participant.paid_at == participant.created_at
        assert participant.checked_in_at is None
        assert participant.qr_code.startswith("data:image/png;base64,")

    def test_qr_payload_holds_id_email_and_paid_at(self, service) -> None:
        participant = service.verify_and_register(
            "order_1", "pay_1", sign("order_1", "pay_1"), registration_form()
        )

        payload = json.loads(participant.qr_payload)
        assert payload == {"id": participant.id, "email": "asha@example.com",
                           "paidAt": participant.paid_at}
        assert " " not in participant.qr_payload

    def test_client_amount_is_ignored(self, service) -> None:
        form = registration_form(designation="faculty", paperSubmission=False, amount=1)

        participant = service.verify_and_register("order_1", "pay_1", sign("order_1", "pay_1"), form)

        assert participant.amount == 350

    def test_string_paper_flag_rejected(self, service, repository) -> None:
        form = registration_form(paperSubmission="false")

        with pytest.raises(InvalidInputException) as exc_info:
            service.verify_and_register("order_1", "pay_1", sign("order_1", "pay_1"), form)

        assert exc_info.value.field_name == "paperSubmission"
        assert repository.list_all() == []

    def test_each_registration_gets_a_new_id(self, service) -> None:
        first = service.verify_and_register("o1", "p1", sign("o1", "p1"), registration_form())
        second = service.verify_and_register("o2", "p2", sign("o2", "p2"), registration_form())
        assert first.id != second.id

    def test_bad_signature_refused_and_nothing_stored(self, service, repository) -> None:
        with pytest.raises(SignatureMismatchException):
            service.verify_and_register("order_1", "pay_1", sign("order_1", "pay_2"), registration_form())

        assert repository.list_all() == []

    def test_missing_secret_refuses_registration(self, repository) -> None:
        service = RegistrationService(repository, None)

        with pytest.raises(SignatureMismatchException):
            service.verify_and_register("order_1", "pay_1", sign("order_1", "pay_1"), registration_form())

        assert repository.list_all() == []

    @pytest.mark.parametrize("order_id,payment_id,signature", [
        ("", "pay_1", "sig"),
        ("order_1", None, "sig"),
        ("order_1", "pay_1", "  "),
    ])
    def test_missing_payment_fields(self, service, order_id, payment_id, signature) -> None:
        with pytest.raises(InvalidInputException):
            service.verify_and_register(order_id, payment_id, signature, registration_form())

    @pytest.mark.parametrize("overrides", [
        {"fullName": ""},
        {"email": "not-an-email"},
        {"designation": "visitor"},
        {"namePrefix": "Sir"},
        {"address": "12 MG Road"},
    ])
    def test_invalid_form_rejected(self, service, overrides) -> None:
        with pytest.raises(InvalidInputException):
            service.verify_and_register("order_1", "pay_1", sign("order_1", "pay_1"),
                                        registration_form(**overrides))

    def test_missing_form_rejected(self, service) -> None:
        with pytest.raises(InvalidInputException):
            service.verify_and_register("order_1", "pay_1", sign("order_1", "pay_1"), None)

    def test_photo_uploaded_when_storage_configured(self, repository) -> None:
        storage = MagicMock(spec=PhotoStorage)
        storage.upload_photo.return_value = "https://cdn.example.com/participants/x.jpg"
        service = RegistrationService(repository, KEY_SECRET, storage)

        participant = service.verify_and_register(
            "order_1", "pay_1", sign("order_1", "pay_1"),
            registration_form(photoBase64="data:image/jpeg;base64,/9j/AAAA"),
        )

        storage.upload_photo.assert_called_once_with(participant.id, "data:image/jpeg;base64,/9j/AAAA")
        assert participant.photo_url == "https://cdn.example.com/participants/x.jpg"
        assert participant.photo_base64 is None

    def test_upload_failure_falls_back_to_inline_photo(self, repository) -> None:
        storage = MagicMock(spec=PhotoStorage)
        storage.upload_photo.side_effect = UploadFailureException("participants/x.jpg", "denied")
        service = RegistrationService(repository, KEY_SECRET, storage)

        participant = service.verify_and_register(
            "order_1", "pay_1", sign("order_1", "pay_1"),
            registration_form(photoBase64="/9j/AAAA"),
        )

        assert participant.photo_url is None
        assert participant.photo_base64 == "/9j/AAAA"
        assert repository.get(participant.id) is not None

    def test_inline_photo_kept_without_storage(self, service) -> None:
        participant = service.verify_and_register(
            "order_1", "pay_1", sign("order_1", "pay_1"),
            registration_form(photoBase64="/9j/AAAA", photoUrl="https://elsewhere/p.jpg"),
        )

        assert participant.photo_base64 == "/9j/AAAA"
        assert participant.photo_url is None

    def test_storage_failure_propagates(self) -> None:
        repository = MagicMock()
        repository.add.side_effect = StorageFailureException("write", "disk full")
        service = RegistrationService(repository, KEY_SECRET)

        with pytest.raises(StorageFailureException):
            service.verify_and_register("order_1", "pay_1", sign("order_1", "pay_1"), registration_form())

        repository.add.assert_called_once()


class TestCheckInService:
    """Test suite for the check-in state transition."""

    @pytest.fixture
    def service(self, repository) -> CheckInService:
        repository.add(make_participant(id="p-1"))
        return CheckInService(repository)

    def test_check_in_is_idempotent(self, service, repository) -> None:
        first = service.check_in("p-1")
        second = service.check_in("p-1")

        assert first.status is CheckInStatus.CHECKED_IN
        assert second.status is CheckInStatus.ALREADY_CHECKED_IN
        assert first.participant.checked_in_at is not None
        assert second.participant.checked_in_at == first.participant.checked_in_at
        assert repository.get("p-1").checked_in_at == first.participant.checked_in_at

    def test_messages(self, service) -> None:
        first = service.check_in("p-1")
        second = service.check_in("p-1")

        assert first.message == "Welcome Asha Verma! You have been checked in."
        assert second.message.startswith("Asha Verma already checked in at ")

    def test_result_dict_shape(self, service) -> None:
        data = service.check_in("p-1").to_dict()

        assert data["valid"] is True
        assert data["status"] == "checked_in"
        assert set(data["participant"]) == {"id", "fullName", "email", "designation",
                                            "institution", "checkedInAt"}

    def test_unknown_participant(self, service) -> None:
        with pytest.raises(ParticipantNotFoundException):
            service.check_in("nobody")

    def test_missing_id(self, service) -> None:
        with pytest.raises(InvalidInputException):
            service.check_in("")

    def test_scanned_json_payload(self, service) -> None:
        result = service.check_in_scanned('{"id":"p-1","email":"asha@example.com","paidAt":"x"}')
        assert result.status is CheckInStatus.CHECKED_IN

    def test_scanned_bare_id(self, service) -> None:
        assert service.check_in_scanned("  p-1 ").participant.id == "p-1"

    @pytest.mark.parametrize("scanned", ["{broken", '{"email":"a@b.c"}', "", None])
    def test_unreadable_scan(self, service, scanned) -> None:
        with pytest.raises(InvalidInputException):
            service.check_in_scanned(scanned)

    def test_stats(self, service, repository) -> None:
        repository.add(make_participant(id="p-2"))
        service.check_in("p-1")

        assert service.get_stats() == {"total": 2, "checkedIn": 1}


class TestParticipantService:
    """Test suite for admin queries, export and delete."""

    @pytest.fixture
    def service(self, repository) -> ParticipantService:
        return ParticipantService(repository)

    def test_export_header_has_nineteen_columns(self, service) -> None:
        header = service.export_csv().split("\n")[0]
        assert header.split(",") == CSV_HEADERS
        assert len(CSV_HEADERS) == 19

    def test_export_round_trips_awkward_values(self, service, repository) -> None:
        awkward = 'Institute of "Education", Delhi\nCampus 2'
        repository.add(make_participant(institution=awkward, gender="female",
                                        address=Address(street="1, Main St")))

        rows = list(csv.reader(io.StringIO(service.export_csv())))

        assert rows[1][CSV_HEADERS.index("Institution")] == awkward
        assert rows[1][CSV_HEADERS.index("Street Address")] == "1, Main St"
        assert rows[1][CSV_HEADERS.index("Gender")] == "Female"
        assert rows[1][CSV_HEADERS.index("Paper Submission")] == "No"
        assert rows[1][CSV_HEADERS.index("Amount")] == "250"

    def test_export_quotes_only_when_needed(self, service, repository) -> None:
        repository.add(make_participant(full_name='Ravi "RK" Kumar'))

        line = service.export_csv().split("\n")[1]

        assert '"Ravi ""RK"" Kumar"' in line
        assert line.startswith("p-1,")

    def test_export_photo_column(self, service, repository) -> None:
        repository.add(make_participant(id="a", photo_url="https://cdn/a.jpg"))
        repository.add(make_participant(id="b", photo_base64="AAAA"))
        repository.add(make_participant(id="c"))

        rows = list(csv.reader(io.StringIO(service.export_csv())))
        photos = {row[0]: row[CSV_HEADERS.index("Photo")] for row in rows[1:]}

        assert photos == {"a": "https://cdn/a.jpg", "b": "Yes", "c": "No"}

    def test_verify_qr_returns_public_fields(self, service, repository) -> None:
        repository.add(make_participant())

        assert service.verify_qr("p-1") == {
            "fullName": "Asha Verma",
            "email": "asha@example.com",
            "designation": "student",
            "institution": "Mata Sushila Institute",
        }

    def test_verify_qr_unknown(self, service) -> None:
        with pytest.raises(ParticipantNotFoundException):
            service.verify_qr("nobody")

    def test_delete(self, service, repository) -> None:
        repository.add(make_participant())

        service.delete_by_id("p-1")

        assert service.list_all() == []

    def test_delete_requires_id(self, service) -> None:
        with pytest.raises(InvalidInputException):
            service.delete_by_id(None)

    def test_summary(self, service, repository) -> None:
        repository.add(make_participant(id="a", amount=1250, checked_in_at="t"))
        repository.add(make_participant(id="b", amount=350))

        assert service.get_summary() == {"total": 2, "checkedIn": 1, "totalRevenue": 1600}


class TestAuthenticationService:
    """Test suite for the admin passphrase check."""

    def test_correct_passphrase(self) -> None:
        assert AuthenticationService("open-sesame").authenticate("open-sesame")

    @pytest.mark.parametrize("attempt", ["wrong", "", None])
    def test_wrong_passphrase(self, attempt) -> None:
        with pytest.raises(AuthenticationFailedException):
            AuthenticationService("open-sesame").authenticate(attempt)

    def test_unconfigured_passphrase_denies_everyone(self) -> None:
        with pytest.raises(AuthenticationFailedException):
            AuthenticationService(None).authenticate("")
