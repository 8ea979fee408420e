"""Upload content-type checks.

Uploaded files are identified by libmagic; the declared extension must
agree with what the content turns out to be.
"""
import logging
from typing import Dict, Set

import magic


logger = logging.getLogger(__name__)

MIME_TYPE_MAP: Dict[str, Set[str]] = {
    'jpg': {'image/jpeg', 'image/pjpeg', 'image/jpg'},
    'jpeg': {'image/jpeg', 'image/pjpeg', 'image/jpg'},
    'png': {'image/png', 'image/x-png'},
    'pdf': {'application/pdf'},
    'doc': {'application/msword'},
    'docx': {'application/vnd.openxmlformats-officedocument.wordprocessingml.document'},
    'xlsx': {'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'},
}

ALLOWED_IMAGE_MIMES = {'image/jpeg', 'image/png'}

ALLOWED_DOCUMENT_MIMES = {
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'image/jpeg',
    'image/png',
}

# libmagic answers for content it could not identify
_UNKNOWN_MIMES = ('application/octet-stream', 'binary/octet-stream')

# What libmagic may report for an Office Open XML file read from its first bytes
_ZIP_MIMES = ('application/zip', 'application/x-zip-compressed')

HEADER_BYTES = 2048


def detect_mime_type(header: bytes, extension: str = None) -> str:
    """Content type of ``header`` as libmagic sees it.

    Office Open XML files are zip archives, so a ``PK`` header is resolved
    through the declared extension. Unidentified content falls back to the
    extension's type.
    """
    detected = magic.from_buffer(header, mime=True)

    if header.startswith(b'PK\x03\x04') and extension in ('docx', 'xlsx'):
        if detected in _ZIP_MIMES + _UNKNOWN_MIMES:
            return next(iter(MIME_TYPE_MAP[extension]))

    if detected in _UNKNOWN_MIMES and extension in MIME_TYPE_MAP:
        fallback = sorted(MIME_TYPE_MAP[extension])[0]
        logger.info("MIME detection fallback for .%s: using %s", extension, fallback)
        return fallback

    return detected


def validate_file_mime_type(file, allowed_mimes: Set[str], extension: str = None) -> str:
    """
    Validate file content against the allowed set and the declared extension.

    Raises:
        ValidationError: If the content type is not allowed or does not match
    """
    from apps.bsphere.utils.validators import ValidationError

    normalized_ext = (extension or '').lower().strip().lstrip('.') or None

    file.seek(0)
    header = file.read(HEADER_BYTES)
    file.seek(0)
    if not header:
        raise ValidationError('file', 'File is empty')
    detected = detect_mime_type(header, normalized_ext)

    if detected not in allowed_mimes:
        raise ValidationError(
            'file',
            f'File type not allowed. Detected: {detected}. '
            f'Allowed: {", ".join(sorted(allowed_mimes))}'
        )

    if normalized_ext:
        expected = MIME_TYPE_MAP.get(normalized_ext, set())
        if expected and detected not in expected:
            raise ValidationError(
                'file',
                f'File content does not match extension .{normalized_ext}. Detected: {detected}'
            )
    return detected
