"""
Participant Repository Classes for the Seminar Registration Application

This module implements the Repository pattern for participant storage.
The services only talk to ParticipantRepository; which implementation
backs it (JSON file, Google Sheet, both, or memory) is decided once at
startup by RepositoryFactory.

Every mutation runs under the repository's lock, so a read-modify-write
such as a check-in cannot interleave with another write in this process.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

import gspread
import requests

from .config import AppConfig
from .exceptions import (
    ConfigurationError,
    ParticipantNotFoundException,
    StorageFailureException,
)
from .models import Address, Participant


logger = logging.getLogger(__name__)

# Returns the updated participant, or None to leave the record untouched
Mutator = Callable[[Participant], Optional[Participant]]


class ParticipantRepository(ABC):
    """
    Abstract base class for participant repositories

    This class defines the interface that all participant stores
    must implement.
    """

    @abstractmethod
    def list_all(self) -> List[Participant]:
        """
        Load every participant

        Raises:
            StorageFailureException: If reading fails
        """
        pass

    @abstractmethod
    def add(self, participant: Participant) -> None:
        """
        Persist a new participant

        Raises:
            StorageFailureException: If writing fails
        """
        pass

    @abstractmethod
    def update(self, participant_id: str, mutator: Mutator) -> Tuple[Participant, bool]:
        """
        Apply mutator to one participant atomically

        Args:
            participant_id: ID of the record to change
            mutator: Receives the current record, returns the new one
                or None for no change

        Returns:
            (resulting participant, whether anything was written)

        Raises:
            ParticipantNotFoundException: If the ID is unknown
            StorageFailureException: If reading or writing fails
        """
        pass

    @abstractmethod
    def delete(self, participant_id: str) -> None:
        """
        Remove a participant

        Raises:
            ParticipantNotFoundException: If the ID is unknown
            StorageFailureException: If writing fails
        """
        pass

    def get(self, participant_id: str) -> Optional[Participant]:
        for participant in self.list_all():
            if participant.id == participant_id:
                return participant
        return None


class JSONParticipantRepository(ParticipantRepository):
    """
    JSON file-based repository implementation

    Participants are stored as a JSON array. The file is rewritten
    through a temporary file and os.replace so readers never see a
    partial write.
    """

    def __init__(self, file_path: str):
        """
        Initialize JSON repository

        Args:
            file_path: Path to the JSON file
        """
        self.file_path = file_path
        self._lock = threading.RLock()

    def _load(self) -> List[Participant]:
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except json.JSONDecodeError as e:
            raise StorageFailureException(
                "read",
                f"Invalid JSON in {self.file_path}: {str(e)}"
            )
        except OSError as e:
            raise StorageFailureException(
                "read",
                f"Cannot read {self.file_path}: {str(e)}"
            )

        if not isinstance(data, list):
            raise StorageFailureException(
                "read",
                f"Expected a JSON array in {self.file_path}"
            )
        try:
            return [Participant.from_dict(item) for item in data]
        except (KeyError, ValueError, TypeError) as e:
            raise StorageFailureException(
                "read",
                f"Invalid participant record in {self.file_path}: {str(e)}"
            )

    def _save(self, participants: List[Participant]) -> None:
        directory = os.path.dirname(os.path.abspath(self.file_path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump([p.to_dict() for p in participants], f,
                              indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.file_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise StorageFailureException(
                "write",
                f"Cannot write {self.file_path}: {str(e)}"
            )

    def list_all(self) -> List[Participant]:
        with self._lock:
            return self._load()

    def add(self, participant: Participant) -> None:
        with self._lock:
            participants = self._load()
            participants.append(participant)
            self._save(participants)

    def update(self, participant_id: str, mutator: Mutator) -> Tuple[Participant, bool]:
        with self._lock:
            participants = self._load()
            for index, current in enumerate(participants):
                if current.id != participant_id:
                    continue
                updated = mutator(current)
                if updated is None:
                    return current, False
                participants[index] = updated
                self._save(participants)
                return updated, True
            raise ParticipantNotFoundException(participant_id)

    def delete(self, participant_id: str) -> None:
        with self._lock:
            participants = self._load()
            remaining = [p for p in participants if p.id != participant_id]
            if len(remaining) == len(participants):
                raise ParticipantNotFoundException(participant_id)
            self._save(remaining)


# Column order of the mirrored worksheet
SHEET_COLUMNS = [
    "ID", "Name Prefix", "Full Name", "Email", "Phone", "Gender", "Photo",
    "Designation", "Institution", "Street Address", "City", "State/Province",
    "Postal Code", "Country", "Paper Submission", "Amount", "Payment ID",
    "Order ID", "Paid At", "Created At", "Checked In At", "QR Code",
]


def participant_to_row(participant: Participant) -> List:
    address = participant.address or Address()
    if participant.photo_url:
        photo = participant.photo_url
    else:
        photo = "Yes" if participant.photo_base64 else "No"
    return [
        participant.id,
        participant.name_prefix or "",
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
        participant.checked_in_at or "",
        participant.qr_code,
    ]


def row_to_participant(row: List) -> Participant:
    """
    Rebuild a participant from a worksheet row

    Inline photos are not mirrored, so they come back as absent.
    """
    values = {name: (row[i] if i < len(row) else "") for i, name in enumerate(SHEET_COLUMNS)}
    photo = str(values["Photo"])
    address_fields = [values[c] for c in
                      ("Street Address", "City", "State/Province", "Postal Code", "Country")]
    data = {
        'id': values["ID"],
        'namePrefix': values["Name Prefix"],
        'fullName': values["Full Name"],
        'email': values["Email"],
        'phone': str(values["Phone"]),
        'gender': str(values["Gender"]).lower(),
        'designation': values["Designation"],
        'institution': values["Institution"],
        'paperSubmission': values["Paper Submission"] == "Yes",
        'amount': values["Amount"] or 0,
        'paymentId': values["Payment ID"],
        'orderId': values["Order ID"],
        'paidAt': values["Paid At"],
        'createdAt': values["Created At"],
        'checkedInAt': values["Checked In At"],
        'qrCode': values["QR Code"],
        'photoUrl': photo if photo.startswith("http") else None,
    }
    if any(address_fields):
        data['address'] = {
            'street': address_fields[0],
            'city': address_fields[1],
            'state': address_fields[2],
            'postalCode': address_fields[3],
            'country': address_fields[4],
        }
    return Participant.from_dict(data)


def sheets_error_hint(error: Exception) -> Optional[str]:
    text = str(error)
    if "403" in text or "permission" in text.lower():
        return ("Share the Google Sheet with the service account email (as Editor). "
                "Check client_email in your credentials JSON.")
    if "404" in text or "not found" in text.lower():
        return ("Check GOOGLE_SHEET_ID is correct "
                "(from URL: docs.google.com/spreadsheets/d/SHEET_ID/edit)")
    return None


class GoogleSheetsParticipantRepository(ParticipantRepository):
    """
    Google Sheets repository implementation

    One participant per row in a fixed column layout. Used as the
    mirror of the JSON file, or as the only store where no writable
    disk is available.
    """

    def __init__(self, worksheet: 'gspread.Worksheet'):
        """
        Args:
            worksheet: The worksheet holding participant rows
        """
        self.worksheet = worksheet
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: AppConfig) -> 'GoogleSheetsParticipantRepository':
        """
        Open the configured spreadsheet with service account credentials

        Raises:
            ConfigurationError: If the sheet ID or credentials are missing
            StorageFailureException: If the spreadsheet cannot be opened
        """
        if not config.google_sheet_id:
            raise ConfigurationError("GOOGLE_SHEET_ID")
        info = config.sheets_credentials_info()
        try:
            client = gspread.service_account_from_dict(info)
            worksheet = client.open_by_key(config.google_sheet_id).sheet1
        except (gspread.exceptions.GSpreadException, requests.exceptions.RequestException, ValueError) as e:
            hint = sheets_error_hint(e)
            if hint:
                logger.error("Google Sheets: %s", hint)
            raise StorageFailureException("open", f"Cannot open Google Sheet: {str(e)}")
        return cls(worksheet)

    def _call(self, operation: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (gspread.exceptions.GSpreadException, requests.exceptions.RequestException) as e:
            hint = sheets_error_hint(e)
            if hint:
                logger.error("Google Sheets %s failed. %s", operation, hint)
            raise StorageFailureException(operation, f"Google Sheets error: {str(e)}")

    def _data_rows(self) -> List[Tuple[int, List]]:
        """(1-based sheet row number, values) for every participant row"""
        rows = self._call("read", self.worksheet.get_all_values)
        result = []
        for index, row in enumerate(rows, start=1):
            if not row or not row[0] or row[0] == SHEET_COLUMNS[0]:
                continue
            result.append((index, row))
        return result

    def _find_row(self, participant_id: str) -> Tuple[int, List]:
        for row_number, row in self._data_rows():
            if row[0] == participant_id:
                return row_number, row
        raise ParticipantNotFoundException(participant_id)

    def list_all(self) -> List[Participant]:
        participants = []
        for row_number, row in self._data_rows():
            try:
                participants.append(row_to_participant(row))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping unreadable sheet row %d: %s", row_number, e)
        return participants

    def add(self, participant: Participant) -> None:
        with self._lock:
            self._call("append", self.worksheet.append_row,
                       participant_to_row(participant),
                       value_input_option="USER_ENTERED")

    def update(self, participant_id: str, mutator: Mutator) -> Tuple[Participant, bool]:
        with self._lock:
            row_number, row = self._find_row(participant_id)
            current = row_to_participant(row)
            updated = mutator(current)
            if updated is None:
                return current, False
            self._call("update", self.worksheet.update,
                       range_name=f"A{row_number}",
                       values=[participant_to_row(updated)],
                       value_input_option="USER_ENTERED")
            return updated, True

    def delete(self, participant_id: str) -> None:
        with self._lock:
            row_number, _ = self._find_row(participant_id)
            self._call("delete", self.worksheet.delete_rows, row_number)


class InMemoryParticipantRepository(ParticipantRepository):
    """
    In-memory repository implementation

    Useful for unit testing and for STORAGE_BACKEND=memory in development.
    """

    def __init__(self, initial_data: Optional[List[Participant]] = None):
        self._participants: Dict[str, Participant] = {
            p.id: p for p in (initial_data or [])
        }
        self._lock = threading.RLock()

    def list_all(self) -> List[Participant]:
        with self._lock:
            return list(self._participants.values())

    def add(self, participant: Participant) -> None:
        with self._lock:
            self._participants[participant.id] = participant

    def update(self, participant_id: str, mutator: Mutator) -> Tuple[Participant, bool]:
        with self._lock:
            current = self._participants.get(participant_id)
            if current is None:
                raise ParticipantNotFoundException(participant_id)
            updated = mutator(current)
            if updated is None:
                return current, False
            self._participants[participant_id] = updated
            return updated, True

    def delete(self, participant_id: str) -> None:
        with self._lock:
            if self._participants.pop(participant_id, None) is None:
                raise ParticipantNotFoundException(participant_id)

    def clear(self) -> None:
        """Clear all data from memory"""
        with self._lock:
            self._participants.clear()


class MirroredParticipantRepository(ParticipantRepository):
    """
    Primary store with a best-effort mirror

    Reads come from the primary; the mirror is read only when the
    primary holds no records or cannot be read, and the two are never
    merged. Writes go to both. A failed mirror write is logged unless
    the primary failed as well, in which case the operation fails.
    """

    def __init__(self, primary: ParticipantRepository, mirror: ParticipantRepository):
        self.primary = primary
        self.mirror = mirror

    def _serving_from_mirror(self) -> bool:
        """True when reads fall through to the mirror"""
        try:
            return not self.primary.list_all()
        except StorageFailureException:
            return True

    @staticmethod
    def _both_failed(operation: str, primary_error: StorageFailureException,
                     mirror_error: StorageFailureException) -> StorageFailureException:
        return StorageFailureException(
            operation,
            f"primary and mirror both failed ({primary_error.details}; {mirror_error.details})"
        )

    def list_all(self) -> List[Participant]:
        try:
            participants = self.primary.list_all()
        except StorageFailureException as primary_error:
            logger.warning("Primary store read failed, falling back to mirror: %s", primary_error)
            try:
                return self.mirror.list_all()
            except StorageFailureException as e:
                raise self._both_failed("read", primary_error, e)

        if participants:
            return participants
        try:
            return self.mirror.list_all()
        except StorageFailureException as e:
            logger.warning("Mirror read failed, returning empty primary: %s", e)
            return []

    def add(self, participant: Participant) -> None:
        primary_error = None
        try:
            self.primary.add(participant)
        except StorageFailureException as e:
            primary_error = e
            logger.error("Primary store write failed for %s: %s", participant.id, e)

        try:
            self.mirror.add(participant)
            logger.info("Mirror sync successful for %s", participant.email)
        except StorageFailureException as e:
            if primary_error is not None:
                raise self._both_failed("write", primary_error, e)
            logger.error("Mirror sync failed for %s: %s", participant.email, e)

    def update(self, participant_id: str, mutator: Mutator) -> Tuple[Participant, bool]:
        try:
            result = self.primary.update(participant_id, mutator)
        except StorageFailureException as primary_error:
            logger.warning("Primary store update failed for %s, using mirror: %s",
                           participant_id, primary_error)
            try:
                return self.mirror.update(participant_id, mutator)
            except StorageFailureException as e:
                raise self._both_failed("update", primary_error, e)
        except ParticipantNotFoundException:
            if not self._serving_from_mirror():
                raise
            return self.mirror.update(participant_id, mutator)

        updated, changed = result
        if changed:
            try:
                self.mirror.update(participant_id, lambda _current: updated)
            except (StorageFailureException, ParticipantNotFoundException) as e:
                logger.error("Mirror update failed for %s: %s", participant_id, e)
        return result

    def delete(self, participant_id: str) -> None:
        try:
            self.primary.delete(participant_id)
        except StorageFailureException as primary_error:
            logger.warning("Primary store delete failed for %s, using mirror: %s",
                           participant_id, primary_error)
            try:
                self.mirror.delete(participant_id)
            except StorageFailureException as e:
                raise self._both_failed("delete", primary_error, e)
            return
        except ParticipantNotFoundException:
            if not self._serving_from_mirror():
                raise
            self.mirror.delete(participant_id)
            return

        try:
            self.mirror.delete(participant_id)
        except (StorageFailureException, ParticipantNotFoundException) as e:
            logger.error("Mirror delete failed for %s: %s", participant_id, e)


class RepositoryFactory:
    """
    Factory class for creating repository instances

    This class provides a centralized way to create the participant
    store selected by configuration.
    """

    @staticmethod
    def create_json_repository(file_path: str) -> JSONParticipantRepository:
        return JSONParticipantRepository(file_path)

    @staticmethod
    def create_memory_repository(initial_data: Optional[List[Participant]] = None) -> InMemoryParticipantRepository:
        return InMemoryParticipantRepository(initial_data)

    @staticmethod
    def create_sheets_repository(config: AppConfig) -> GoogleSheetsParticipantRepository:
        return GoogleSheetsParticipantRepository.from_config(config)

    @staticmethod
    def create_from_config(config: AppConfig) -> ParticipantRepository:
        """
        Create the participant store selected by configuration

        Args:
            config: Application configuration

        Returns:
            ParticipantRepository instance

        Raises:
            ConfigurationError: If the backend needs settings that are missing
        """
        backend = config.storage_backend

        if backend == "memory":
            return RepositoryFactory.create_memory_repository()

        if backend == "sheets":
            if not config.sheets_configured:
                raise ConfigurationError(
                    "GOOGLE_SHEETS_CREDENTIALS",
                    "STORAGE_BACKEND=sheets requires GOOGLE_SHEETS_CREDENTIALS and GOOGLE_SHEET_ID"
                )
            return RepositoryFactory.create_sheets_repository(config)

        if backend == "file":
            primary = RepositoryFactory.create_json_repository(config.data_file)
            if not config.sheets_configured:
                if not config.google_sheets_credentials:
                    logger.info("Google Sheets: GOOGLE_SHEETS_CREDENTIALS not set, skipping mirror")
                if not config.google_sheet_id:
                    logger.info("Google Sheets: GOOGLE_SHEET_ID not set, skipping mirror")
                return primary
            return MirroredParticipantRepository(
                primary,
                RepositoryFactory.create_sheets_repository(config),
            )

        raise ConfigurationError("STORAGE_BACKEND", f"Unsupported storage backend: {backend}")
