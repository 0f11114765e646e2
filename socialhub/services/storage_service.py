import base64
import mimetypes
import os
import time
import uuid
from typing import Any, Optional

import boto3

from socialhub.utils.logger import logger


def create_s3_client(region: Optional[str] = None, endpoint: Optional[str] = None) -> Any:
    """Build an S3 client from the environment. Called once at startup."""
    return boto3.client(
        "s3",
        region_name=region or os.getenv("AWS_REGION", "ap-south-1"),
        aws_access_key_id=os.getenv("S3ACCESSKEYID"),
        aws_secret_access_key=os.getenv("S3ACCESSKEY"),
        endpoint_url=endpoint or os.getenv("S3_ENDPOINT") or None,
    )


class MediaStorage:
    """Uploads post media to an S3-compatible bucket and returns public URLs."""

    def __init__(self, client: Any, bucket: str, public_base_url: Optional[str] = None, region: str = "ap-south-1"):
        self.client = client
        self.bucket = bucket
        self.public_base_url = (public_base_url or f"https://{bucket}.s3.{region}.amazonaws.com").rstrip("/")

    @classmethod
    def from_env(cls, client: Any = None) -> "MediaStorage":
        region = os.getenv("AWS_REGION", "ap-south-1")
        return cls(
            client or create_s3_client(region=region),
            bucket=os.getenv("BUCKETNAME", ""),
            public_base_url=os.getenv("S3_ENDPOINT"),
            region=region,
        )

    def object_key(self, folder: str, filename: Optional[str] = None, content_type: Optional[str] = None) -> str:
        ext = ""
        if filename and "." in filename:
            ext = filename.rsplit(".", 1)[1].lower()
        elif content_type:
            ext = (mimetypes.guess_extension(content_type) or "").lstrip(".")
        key = f"{folder}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        return f"{key}.{ext}" if ext else key

    def upload(self, data: bytes, folder: str, filename: Optional[str] = None, content_type: Optional[str] = None) -> str:
        key = self.object_key(folder, filename, content_type)
        extra = {"ContentType": content_type} if content_type else {}
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        url = f"{self.public_base_url}/{key}"
        logger.info(f"Uploaded {len(data)} bytes to {url}")
        return url

    def upload_base64(self, data_url: str, folder: str) -> str:
        """Upload a `data:<mime>;base64,<payload>` string."""
        header, encoded = data_url.split(",", 1)
        content_type = header.split(";", 1)[0].split(":", 1)[1]
        return self.upload(base64.b64decode(encoded), folder, content_type=content_type)
