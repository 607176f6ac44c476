"""
Photo upload to S3-compatible object storage (Cloudflare R2, AWS S3)
"""

import base64
import binascii
import logging
import re
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import AppConfig
from .exceptions import ConfigurationError, UploadFailureException


logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")


def decode_photo(photo_base64: str) -> bytes:
    """
    Decode an inline photo, with or without a data URL prefix

    Raises:
        ValueError: If the payload is not valid base64
    """
    data = DATA_URL_PREFIX.sub("", photo_base64.strip())
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Photo is not valid base64: {e}")


class PhotoStorage:
    """Uploads participant photos and returns their public URL"""

    def __init__(self, config: AppConfig, client=None):
        if not config.photo_storage_configured:
            raise ConfigurationError(
                "R2_BUCKET_NAME",
                "Cloud storage not configured. Set R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, "
                "R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME, and R2_PUBLIC_URL."
            )
        self.bucket_name = config.r2_bucket_name
        self.public_url = config.r2_public_url
        self.client = client or boto3.client(
            "s3",
            endpoint_url=f"https://{config.r2_account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=config.r2_access_key_id,
            aws_secret_access_key=config.r2_secret_access_key,
            region_name="auto",
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> Optional['PhotoStorage']:
        """PhotoStorage when all R2 settings are present, else None"""
        if not config.photo_storage_configured:
            return None
        return cls(config)

    def upload_photo(self, participant_id: str, photo_base64: str) -> str:
        """
        Upload a participant photo

        Args:
            participant_id: Used to build the object key
            photo_base64: Inline photo, optionally a data URL

        Returns:
            Public URL of the uploaded object

        Raises:
            UploadFailureException: If decoding or the upload fails
        """
        key = f"participants/{participant_id}.jpg"
        try:
            body = decode_photo(photo_base64)
        except ValueError as e:
            raise UploadFailureException(key, str(e))

        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=body,
                ContentType="image/jpeg",
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadFailureException(key, str(e))

        if self.public_url.endswith("/"):
            return self.public_url + key
        return f"{self.public_url}/{key}"
