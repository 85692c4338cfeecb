import logging
import os
import time
import uuid
from typing import Optional, Dict

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from allevapp.config import settings
from allevapp.errors import IntegrationError

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "local/"


def get_s3_client():
    return boto3.client(
        's3',
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region
    )


def s3_configured() -> bool:
    return bool(settings.aws_access_key_id and settings.aws_secret_access_key)


def build_storage_key(prefix: str, filename: str) -> str:
    """
    Unique object key under ``prefix``: ``{prefix}/{timestamp}-{random}.{ext}``

    Example: ``report/12/1718000000000-3f9a1c2b.pdf``
    """
    ext = ""
    if "." in filename:
        ext = "." + filename.rsplit(".", 1)[-1].lower()
    return f"{prefix.strip('/')}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"


def _local_path(key: str) -> str:
    return os.path.join(settings.local_storage_dir, key[len(LOCAL_PREFIX):] if key.startswith(LOCAL_PREFIX) else key)


def _save_local(key: str, data: bytes) -> str:
    path = _local_path(key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    return f"{LOCAL_PREFIX}{key}"


def upload_file(key: str, data: bytes, content_type: Optional[str] = None) -> str:
    """
    Store ``data`` under ``key`` and return the stored key.

    Goes to S3 when credentials are configured; otherwise, or when the upload
    fails, the file is written to local storage and the returned key is
    prefixed with ``local/``.
    """
    if s3_configured():
        try:
            s3_client = get_s3_client()
            s3_client.put_object(
                Bucket=settings.s3_bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream"
            )
            return key
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"S3 upload failed for {key}, using local storage: {e}")

    try:
        return _save_local(key, data)
    except OSError as e:
        logger.error(f"Local storage failed for {key}: {e}")
        raise IntegrationError(f"Could not store {key}", original_error=e)


def generate_presigned_url(s3_key: str, expiration: int = 3600) -> Optional[str]:
    """
    Generate a pre-signed URL for accessing S3 objects
    """
    try:
        s3_client = get_s3_client()
        return s3_client.generate_presigned_url(
            'get_object',
            Params={'Bucket': settings.s3_bucket, 'Key': s3_key},
            ExpiresIn=expiration
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error generating pre-signed URL for {s3_key}: {e}")
        return None


def get_file_url(key: str, expiration: int = 3600) -> Dict[str, Optional[str]]:
    """Viewable URL for a stored key"""
    if key.startswith(LOCAL_PREFIX):
        return {"url": f"/uploads/{key[len(LOCAL_PREFIX):]}", "type": "local"}
    return {"url": generate_presigned_url(key, expiration=expiration), "type": "s3"}


def read_file(key: str) -> Optional[bytes]:
    if key.startswith(LOCAL_PREFIX):
        path = _local_path(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return f.read()
    try:
        response = get_s3_client().get_object(Bucket=settings.s3_bucket, Key=key)
        return response['Body'].read()
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error downloading {key} from S3: {e}")
        return None


def delete_file(key: str) -> bool:
    """Delete a stored file; returns False when the backend refused"""
    if key.startswith(LOCAL_PREFIX):
        path = _local_path(key)
        if os.path.exists(path):
            os.remove(path)
        return True
    try:
        get_s3_client().delete_object(Bucket=settings.s3_bucket, Key=key)
        return True
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error deleting {key} from S3: {e}")
        return False
