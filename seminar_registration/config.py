"""
Configuration for the Seminar Registration Application

Settings are read from the environment (and a local .env file) once at
process start and passed explicitly to the application and its services.
"""

import json
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError


STORAGE_BACKENDS = ("file", "sheets", "memory")


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppConfig:
    """
    Application configuration

    Built once by from_env() and handed to the app factory. Secrets that
    are absent stay None; each service checks what it needs.
    """
    secret_key: str = "dev-secret-key-change-in-production"
    debug: bool = False
    log_level: str = "INFO"
    storage_backend: str = "file"
    data_file: str = os.path.join("data", "participants.json")

    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    razorpay_api_url: str = "https://api.razorpay.com/v1"
    razorpay_timeout: float = 15.0
    currency: str = "INR"

    google_sheets_credentials: Optional[str] = None
    google_sheet_id: Optional[str] = None

    r2_account_id: Optional[str] = None
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None
    r2_bucket_name: Optional[str] = None
    r2_public_url: Optional[str] = None

    admin_passphrase: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 dotenv_path: Optional[str] = None) -> 'AppConfig':
        """
        Build configuration from environment variables

        Args:
            environ: Mapping to read from (defaults to os.environ after
                loading .env)
            dotenv_path: Optional explicit .env file

        Returns:
            AppConfig instance

        Raises:
            ConfigurationError: If STORAGE_BACKEND is not recognized
        """
        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ

        def get(name: str) -> Optional[str]:
            value = environ.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        backend = (get("STORAGE_BACKEND") or "file").lower()
        if backend not in STORAGE_BACKENDS:
            raise ConfigurationError(
                "STORAGE_BACKEND",
                f"Unsupported storage backend '{backend}', expected one of {', '.join(STORAGE_BACKENDS)}"
            )

        defaults = cls()
        return cls(
            secret_key=get("SECRET_KEY") or defaults.secret_key,
            debug=_env_flag(get("FLASK_DEBUG")),
            log_level=(get("LOG_LEVEL") or defaults.log_level).upper(),
            storage_backend=backend,
            data_file=get("DATA_FILE") or defaults.data_file,
            razorpay_key_id=get("RAZORPAY_KEY_ID"),
            razorpay_key_secret=get("RAZORPAY_KEY_SECRET"),
            razorpay_api_url=(get("RAZORPAY_API_URL") or defaults.razorpay_api_url).rstrip("/"),
            razorpay_timeout=float(get("RAZORPAY_TIMEOUT") or defaults.razorpay_timeout),
            currency=get("PAYMENT_CURRENCY") or defaults.currency,
            google_sheets_credentials=get("GOOGLE_SHEETS_CREDENTIALS"),
            google_sheet_id=get("GOOGLE_SHEET_ID"),
            r2_account_id=get("R2_ACCOUNT_ID"),
            r2_access_key_id=get("R2_ACCESS_KEY_ID"),
            r2_secret_access_key=get("R2_SECRET_ACCESS_KEY"),
            r2_bucket_name=get("R2_BUCKET_NAME"),
            r2_public_url=get("R2_PUBLIC_URL"),
            admin_passphrase=get("ADMIN_PASSPHRASE"),
        )

    @property
    def gateway_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def sheets_configured(self) -> bool:
        return bool(self.google_sheets_credentials and self.google_sheet_id)

    @property
    def photo_storage_configured(self) -> bool:
        return all((
            self.r2_account_id,
            self.r2_access_key_id,
            self.r2_secret_access_key,
            self.r2_bucket_name,
            self.r2_public_url,
        ))

    def sheets_credentials_info(self) -> Dict:
        """
        Parse the service account JSON held in GOOGLE_SHEETS_CREDENTIALS

        Raises:
            ConfigurationError: If the value is missing or not valid JSON
        """
        if not self.google_sheets_credentials:
            raise ConfigurationError("GOOGLE_SHEETS_CREDENTIALS")
        try:
            info = json.loads(self.google_sheets_credentials)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                "GOOGLE_SHEETS_CREDENTIALS",
                "Invalid GOOGLE_SHEETS_CREDENTIALS: must be valid JSON "
                f"(minify to a single line): {e}"
            )
        if "private_key" in info:
            info["private_key"] = info["private_key"].replace("\\n", "\n")
        return info
