"""
Object storage for design images (Amazon S3 via boto3).

Objects are written under `Aari/<uuid>.<extension>` and addressed by their
virtual-hosted-style public URL.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from errors import Internal

logger = logging.getLogger(__name__)

KEY_PREFIX = "Aari"
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/jpg")
MAX_FILE_SIZE = 20 * 1024 * 1024

_EXTENSIONS = {"image/jpeg": "jpeg", "image/jpg": "jpg", "image/png": "png"}


@dataclass
class DesignFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        if "." in self.filename:
            return self.filename.rsplit(".", 1)[-1]
        return _EXTENSIONS.get(self.content_type, "bin")


def object_key(file: DesignFile) -> str:
    return f"{KEY_PREFIX}/{uuid.uuid4()}.{file.extension}"


class S3Storage:
    def __init__(self, bucket: str, region: str, client=None,
                 access_key_id: Optional[str] = None, secret_access_key: Optional[str] = None):
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload(self, file: DesignFile) -> str:
        """Store one design and return its URL."""
        key = object_key(file)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=file.data, ContentType=file.content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload {file.filename} to s3://{self.bucket}/{key}: {e}")
            raise Internal("Failed to upload design", original_error=e) from e
        url = self.url_for(key)
        logger.info(f"Design uploaded: {url}")
        return url

    def close(self) -> None:
        self.client.close()
