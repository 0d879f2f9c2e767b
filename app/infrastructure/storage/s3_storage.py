import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...config import settings
from ...exceptions import StorageError, StorageErrorCode

logger = logging.getLogger(__name__)


class S3BlobStorage:
    """Blob backend on an S3 bucket; objects are addressed by public virtual-hosted URLs."""

    provider = "s3"

    def __init__(self, bucket: str = None, region: str = None, endpoint_domain: str = None,
                 client: Optional[Any] = None) -> None:
        self.bucket = bucket or settings.S3_BUCKET
        self.region = region or settings.S3_REGION
        self.endpoint_domain = endpoint_domain or settings.S3_ENDPOINT_DOMAIN
        if not self.bucket:
            raise StorageError("S3_BUCKET is not configured", StorageErrorCode.STORAGE_UNAVAILABLE)
        self.client = client or boto3.client(
            "s3",
            region_name=self.region,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            config=Config(
                retries={"max_attempts": 3, "mode": "standard"},
                connect_timeout=5,
                read_timeout=30,
            ),
        )

    @property
    def url_prefix(self) -> str:
        return f"https://{self.bucket}.s3.{self.region}.{self.endpoint_domain}/"

    def write(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageError(f"Failed to upload {key} to S3", StorageErrorCode.UPLOAD_FAILED, e)
        logger.info(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{key}")
        return f"{self.url_prefix}{key}"

    def read(self, url: str) -> bytes:
        if not url.startswith(self.url_prefix):
            raise StorageError(f"URL does not belong to bucket {self.bucket}: {url}", StorageErrorCode.FILE_NOT_FOUND)
        key = url[len(self.url_prefix):]
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404"):
                raise StorageError(f"File not found: {key}", StorageErrorCode.FILE_NOT_FOUND, e)
            raise StorageError(f"Failed to read {key} from S3", StorageErrorCode.STORAGE_UNAVAILABLE, e)
        except BotoCoreError as e:
            raise StorageError(f"Failed to read {key} from S3", StorageErrorCode.STORAGE_UNAVAILABLE, e)
