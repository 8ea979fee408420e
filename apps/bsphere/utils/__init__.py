"""Utility functions for the API."""

from .validators import (
    validate_email,
    validate_password,
    validate_phone,
    validate_required_fields,
    validate_minimum_age,
    validate_file_size,
    validate_file_extension,
    parse_birthdate,
    parse_bool,
    sanitize_string,
    clean_contact_number,
    ValidationError,
)

from .auth import (
    hash_password,
    verify_password,
    admin_required,
    check_admin_request,
    get_current_admin,
    is_well_formed_token,
)

# Storage handler - uses Supabase Storage in production, filesystem in development
from .storage_handler import (
    save_file as save_uploaded_file,
    save_bytes,
    delete_file,
    get_file_url,
    StorageError as FileUploadError,
)

from .identity import (
    next_resident_id,
    next_household_id,
    next_complaint_id,
    generate_identity_keys,
    check_duplicate_residents,
    validate_duplicate_check,
)

from .time import utc_now

__all__ = [
    # Validators
    'validate_email',
    'validate_password',
    'validate_phone',
    'validate_required_fields',
    'validate_minimum_age',
    'validate_file_size',
    'validate_file_extension',
    'parse_birthdate',
    'parse_bool',
    'sanitize_string',
    'clean_contact_number',
    'ValidationError',

    # Auth
    'hash_password',
    'verify_password',
    'admin_required',
    'check_admin_request',
    'get_current_admin',
    'is_well_formed_token',

    # Storage
    'save_uploaded_file',
    'save_bytes',
    'delete_file',
    'get_file_url',
    'FileUploadError',

    # Identity
    'next_resident_id',
    'next_household_id',
    'next_complaint_id',
    'generate_identity_keys',
    'check_duplicate_residents',
    'validate_duplicate_check',

    'utc_now',
]
