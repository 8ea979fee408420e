"""
Unified storage handler for B-Sphere uploads.

- Uses Supabase Storage (REST API) in production or when forced
- Falls back to the local UPLOAD_FOLDER in development and tests

Storage paths are organized by purpose:
    announcements/{filename}
    photos/{uniqueId}/{filename}
    residents/{uniqueId}/{filename}
    registrations/{uniqueId}/{filename}
    {folderPath}/{uniqueId}/{filename}      (generic admin uploads)

Usage:
    from apps.bsphere.utils.storage_handler import save_file, StorageError
    stored = save_file(request.files['file'], 'announcements', ALLOWED_IMAGE_EXTENSIONS, max_size_mb=5)
    stored.url, stored.path
"""
from __future__ import annotations

import logging
import os
import uuid
from collections import namedtuple
from typing import BinaryIO, Optional, Union

import requests
from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from apps.bsphere.utils.time import utc_now
from apps.bsphere.utils.security import (
    ALLOWED_IMAGE_MIMES,
    ALLOWED_DOCUMENT_MIMES,
    MIME_TYPE_MAP,
    validate_file_mime_type,
)
from apps.bsphere.utils.validators import (
    ValidationError,
    validate_file_size,
    validate_file_extension,
    ALLOWED_IMAGE_EXTENSIONS,
)

logger = logging.getLogger(__name__)

STORAGE_BUCKET = 'bsphere-files'

StoredFile = namedtuple('StoredFile', ['path', 'url', 'filename', 'content_type'])


class StorageError(Exception):
    """Raised when a file cannot be validated or stored."""
    pass


def _supabase_config():
    supabase_url = (current_app.config.get('SUPABASE_URL') or '').rstrip('/')
    service_key = current_app.config.get('SUPABASE_SERVICE_KEY')
    if not supabase_url or not service_key:
        raise StorageError(
            "Supabase credentials not configured. "
            "Set SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables."
        )
    return supabase_url, service_key


def _bucket() -> str:
    return current_app.config.get('SUPABASE_STORAGE_BUCKET') or STORAGE_BUCKET


def _headers(service_key: str, content_type: Optional[str] = None) -> dict:
    headers = {
        'Authorization': f'Bearer {service_key}',
        'apikey': service_key,
    }
    if content_type:
        headers['Content-Type'] = content_type
    return headers


def use_supabase_storage() -> bool:
    """Production always uploads to Supabase; elsewhere only when forced."""
    if current_app.config.get('FLASK_ENV') == 'production':
        return True
    if str(current_app.config.get('FORCE_SUPABASE_STORAGE', '')).lower() == 'true':
        return bool(current_app.config.get('SUPABASE_URL') and current_app.config.get('SUPABASE_SERVICE_KEY'))
    return False


def generate_unique_filename(original_filename: str, prefix: str = '') -> str:
    """Timestamp plus short uuid, keeping the extension."""
    _, ext = os.path.splitext(original_filename)
    stamp = utc_now().strftime('%Y%m%d_%H%M%S')
    short_id = uuid.uuid4().hex[:8]
    if prefix:
        return f"{prefix}_{stamp}_{short_id}{ext.lower()}"
    return f"{stamp}_{short_id}{ext.lower()}"


def build_storage_path(folder: str, filename: str, owner: Optional[str] = None) -> str:
    parts = [p.strip('/') for p in (folder, owner, filename) if p]
    return '/'.join(parts)


def _content_type_for(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower().lstrip('.')
    return next(iter(sorted(MIME_TYPE_MAP.get(ext, {'application/octet-stream'}))))


def get_file_url(storage_path: str) -> str:
    """Public URL for a stored path (Supabase public URL or /uploads/...)."""
    if not storage_path:
        return storage_path
    if storage_path.startswith(('http://', 'https://')):
        return storage_path
    if use_supabase_storage():
        supabase_url, _ = _supabase_config()
        return f"{supabase_url}/storage/v1/object/public/{_bucket()}/{storage_path}"
    return f"/uploads/{storage_path}"


def _upload_to_supabase(storage_path: str, content: bytes, content_type: str) -> None:
    supabase_url, service_key = _supabase_config()
    upload_url = f"{supabase_url}/storage/v1/object/{_bucket()}/{storage_path}"
    try:
        response = requests.post(
            upload_url,
            headers=_headers(service_key, content_type),
            data=content,
            timeout=60,
        )
    except requests.exceptions.RequestException as e:
        logger.error("Supabase upload request failed: %s", e)
        raise StorageError(f"Upload failed: {e}") from e

    if response.status_code not in (200, 201):
        raise StorageError(f"Upload failed: {response.status_code} - {response.text[:200]}")
    logger.info("File uploaded to Supabase Storage: %s", storage_path)


def _write_to_filesystem(storage_path: str, content: bytes) -> None:
    upload_dir = str(current_app.config.get('UPLOAD_FOLDER', 'uploads'))
    file_path = os.path.join(upload_dir, *storage_path.split('/'))
    os.makedirs(os.path.dirname(file_path), exist_ok=True)
    with open(file_path, 'wb') as f:
        f.write(content)
    logger.info("File saved to filesystem: %s", storage_path)


def save_bytes(data: bytes, folder: str, filename: str, owner: Optional[str] = None,
               content_type: Optional[str] = None) -> StoredFile:
    """Store raw bytes under folder[/owner]/<unique filename>."""
    unique_filename = generate_unique_filename(secure_filename(filename) or 'file')
    storage_path = build_storage_path(folder, unique_filename, owner)
    content_type = content_type or _content_type_for(unique_filename)

    if use_supabase_storage():
        _upload_to_supabase(storage_path, data, content_type)
    else:
        try:
            _write_to_filesystem(storage_path, data)
        except OSError as e:
            logger.error("Filesystem write failed for %s: %s", storage_path, e)
            raise StorageError(f"Failed to save file: {e}") from e

    return StoredFile(storage_path, get_file_url(storage_path), unique_filename, content_type)


def save_file(
    file: Union[FileStorage, BinaryIO],
    folder: str,
    allowed_extensions: set,
    max_size_mb: int = 5,
    owner: Optional[str] = None,
    allowed_mimes: Optional[set] = None,
) -> StoredFile:
    """
    Validate and store an uploaded file.

    Args:
        file: Uploaded FileStorage (or file-like object with .filename)
        folder: Top-level storage folder
        allowed_extensions: Extensions accepted, without dots
        max_size_mb: Size limit in megabytes
        owner: Optional sub-folder, usually a resident unique ID
        allowed_mimes: Accepted sniffed content types (derived from extensions when omitted)

    Raises:
        StorageError: If validation or the upload fails
    """
    if not file:
        raise StorageError('No file provided')

    original_filename = getattr(file, 'filename', None) or ''
    safe_filename = secure_filename(original_filename)
    if not safe_filename:
        raise StorageError('No filename provided')

    try:
        ext = validate_file_extension(safe_filename, allowed_extensions)

        file.seek(0, os.SEEK_END)
        validate_file_size(file.tell(), max_size_mb)
        file.seek(0)

        if allowed_mimes is None:
            allowed_mimes = ALLOWED_IMAGE_MIMES if allowed_extensions <= ALLOWED_IMAGE_EXTENSIONS else ALLOWED_DOCUMENT_MIMES
        content_type = validate_file_mime_type(file, allowed_mimes, ext)
    except ValidationError as e:
        raise StorageError(str(e)) from e

    content = file.read()
    file.seek(0)
    return save_bytes(content, folder, safe_filename, owner=owner, content_type=content_type)


def delete_file(storage_path: str) -> bool:
    """Remove a stored file; returns False when nothing was deleted."""
    if not storage_path:
        return False

    if use_supabase_storage():
        supabase_url, service_key = _supabase_config()
        url = f"{supabase_url}/storage/v1/object/{_bucket()}/{storage_path}"
        try:
            response = requests.delete(url, headers=_headers(service_key), timeout=30)
        except requests.exceptions.RequestException as e:
            logger.warning("Supabase delete failed for %s: %s", storage_path, e)
            return False
        return response.status_code in (200, 204)

    upload_dir = str(current_app.config.get('UPLOAD_FOLDER', 'uploads'))
    file_path = os.path.join(upload_dir, *storage_path.split('/'))
    if os.path.exists(file_path):
        os.remove(file_path)
        return True
    return False
