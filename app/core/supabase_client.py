"""Supabase client for storage operations."""
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def get_supabase_admin_client():
    """
    Get Supabase client with service role key for admin operations.

    This client can:
    - Read uploaded royalty spreadsheets from Storage
    - Bypass Row Level Security
    """
    from supabase import create_client

    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise ValueError("SUPABASE_SERVICE_ROLE_KEY not configured")

    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY
    )


def download_upload(path: str, bucket: str | None = None) -> bytes:
    """
    Download an already-uploaded file from Supabase Storage.

    Args:
        path: Object path inside the bucket (e.g. "artist-id/q1-2024.csv")
        bucket: Storage bucket, defaults to SUPABASE_UPLOADS_BUCKET

    Returns:
        Raw file bytes
    """
    bucket = bucket or settings.SUPABASE_UPLOADS_BUCKET
    client = get_supabase_admin_client()
    logger.info(f"Downloading {bucket}/{path} from storage")
    return client.storage.from_(bucket).download(path)
