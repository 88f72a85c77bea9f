import datetime
from typing import Optional

from google.cloud import storage as gcs_storage

from app.config import get_settings

_client: Optional[gcs_storage.Client] = None


def get_storage_client():
    global _client
    if _client is None:
        _client = gcs_storage.Client(project=get_settings().GCP_PROJECT_ID or None)
    return _client


def get_bucket():
    client = get_storage_client()
    return client.bucket(get_settings().GCS_BUCKET_NAME)


def upload_file(path: str, file_bytes: bytes, content_type: str = "application/octet-stream") -> str:
    """Upload file to GCS bucket. Returns the object key."""
    bucket = get_bucket()
    blob = bucket.blob(path)
    blob.upload_from_string(file_bytes, content_type=content_type)
    return path


def generate_signed_url(path: str, expiry_seconds: Optional[int] = None) -> str:
    """Generate a V4 signed GET URL for temporary access to a GCS object."""
    if expiry_seconds is None:
        expiry_seconds = get_settings().PHOTO_URL_EXPIRY_SECONDS
    bucket = get_bucket()
    blob = bucket.blob(path)
    url = blob.generate_signed_url(
        version="v4",
        expiration=datetime.timedelta(seconds=expiry_seconds),
        method="GET",
    )
    return url


def delete_file(path: str) -> None:
    """Delete a file from GCS bucket."""
    bucket = get_bucket()
    blob = bucket.blob(path)
    blob.delete()
