"""Helpers for creating in-app notifications."""
from __future__ import annotations

from typing import Any, Dict

from apps.bsphere import db
from apps.bsphere.models.notification import Notification


NOTIFICATION_TYPES = (
    'resident_registration',
    'document_request',
    'document_status',
    'announcement',
    'complaint',
    'system',
)

PRIORITIES = ('low', 'normal', 'high')


def create_notification(
    type: str,
    title: str,
    message: str,
    target_role: str = 'admin',
    target_user_id: str | None = None,
    priority: str = 'normal',
    data: Dict[str, Any] | None = None,
) -> Notification:
    """Add a notification to the session; the caller commits."""
    entry = Notification(
        type=type,
        title=title,
        message=message,
        target_role=target_role or 'admin',
        target_user_id=str(target_user_id) if target_user_id is not None else None,
        priority=priority if priority in PRIORITIES else 'normal',
        status='unread',
        data=data or {},
        read=False,
        seen=False,
    )
    db.session.add(entry)
    return entry


def notify_resident_registration(resident) -> Notification:
    """Tell admins a self-registered resident is waiting for verification."""
    return create_notification(
        type='resident_registration',
        title='New resident registration',
        message=f'{resident.full_name} ({resident.unique_id}) submitted documents for verification.',
        target_role='admin',
        priority='high',
        data={
            'residentId': resident.unique_id,
            'residentName': resident.full_name,
            'email': resident.email,
        },
    )


def notify_document_status(document_request) -> Notification:
    """Inbox entry for the resident who owns a document request."""
    status = (document_request.status or '').lower()
    return create_notification(
        type='document_status',
        title=f'{document_request.document_type} {status}',
        message=f'Your request {document_request.control_id} is now {status}.',
        target_role='resident',
        target_user_id=document_request.resident_id,
        data={
            'controlId': document_request.control_id,
            'documentType': document_request.document_type,
            'status': status,
        },
    )
