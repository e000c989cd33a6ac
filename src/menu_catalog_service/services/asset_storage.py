"""Image storage on S3 for restaurant logos, item photos and owner profile pictures.

Only the resulting URL and object key are stored on catalog records; image
bytes never touch the database.
"""

import logging
import mimetypes
import secrets
import time
from pathlib import PurePath
from typing import Any

from botocore.exceptions import ClientError
from pydantic import BaseModel

from menu_catalog_service.exceptions import InvalidInputError
from menu_catalog_service.observability import traced
from menu_catalog_service.observability.metrics import record_asset_upload

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_FOLDER = "restaurant_assets"


class StoredAsset(BaseModel):
    """Uploaded image location."""

    url: str
    file_id: str
    name: str
    size: int


class AssetStorage:
    """Uploads images to an S3 bucket and returns their public URLs."""

    def __init__(
        self,
        s3_client: Any,
        bucket: str,
        public_base_url: str | None = None,
        max_bytes: int = MAX_IMAGE_BYTES,
    ) -> None:
        """Initialize asset storage.

        Args:
            s3_client: Boto3 S3 client
            bucket: Target bucket name
            public_base_url: CDN or bucket origin used to build URLs; defaults to
                the bucket's virtual-hosted S3 URL
            max_bytes: Largest accepted file size
        """
        self.s3_client = s3_client
        self.bucket = bucket
        self.public_base_url = (public_base_url or f"https://{bucket}.s3.amazonaws.com").rstrip("/")
        self.max_bytes = max_bytes

    def public_url(self, key: str) -> str:
        """Public URL of a stored object."""
        return f"{self.public_base_url}/{key}"

    @traced("assets.upload_image")
    def upload_image(
        self,
        data: bytes,
        filename: str | None,
        content_type: str | None,
        folder: str = DEFAULT_FOLDER,
        max_bytes: int | None = None,
    ) -> StoredAsset | None:
        """Upload an image under a unique name.

        Args:
            data: File content
            filename: Original file name, used for the extension
            content_type: MIME type reported by the client; must be ``image/*``
            folder: Key prefix inside the bucket
            max_bytes: Size limit for this upload; defaults to the storage-wide limit

        Returns:
            StoredAsset if the upload succeeded, None if S3 rejected it

        Raises:
            InvalidInputError: If the file is empty, not an image, or too large
        """
        limit = self.max_bytes if max_bytes is None else max_bytes
        if not data:
            raise InvalidInputError("No file provided", field="file")
        if not content_type or not content_type.startswith("image/"):
            raise InvalidInputError("Invalid file type. Only images are allowed.", field="file")
        if len(data) > limit:
            raise InvalidInputError(
                f"File size too large. Maximum {limit // (1024 * 1024)}MB allowed.",
                field="file",
            )

        extension = PurePath(filename or "").suffix.lower() or mimetypes.guess_extension(content_type) or ""
        name = f"{int(time.time() * 1000)}_{secrets.token_hex(6)}{extension}"
        key = f"{folder.strip('/')}/{name}"

        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            logger.error(f"Failed to upload {key} to bucket {self.bucket}: {e}")
            return None

        record_asset_upload(len(data), content_type)
        logger.info(f"Uploaded {key} ({len(data)} bytes)")
        return StoredAsset(url=self.public_url(key), file_id=key, name=name, size=len(data))

    @traced("assets.delete_image")
    def delete_image(self, file_id: str) -> bool:
        """Delete a stored image by its object key.

        Args:
            file_id: Key returned as ``file_id`` by ``upload_image``

        Returns:
            True if S3 accepted the delete, False otherwise
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=file_id)
        except ClientError as e:
            logger.error(f"Failed to delete {file_id} from bucket {self.bucket}: {e}")
            return False

        logger.info(f"Deleted {file_id}")
        return True
