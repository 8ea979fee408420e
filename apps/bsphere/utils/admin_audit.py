"""Admin audit logging utility.

Writes AuditLog rows for logins and for create/update/delete actions on
residents, households, documents, announcements, complaints, officials and
admin accounts.
"""
from flask import request, current_app, has_request_context

from apps.bsphere import db
from apps.bsphere.models.audit import AuditLog, AuditAction
from apps.bsphere.models.admin import AdminAccount


def _request_origin(req):
    """Best-effort client IP and user agent for the current request."""
    if req is None:
        return None, None
    ip_address = req.headers.get('X-Forwarded-For', '').split(',')[0].strip()
    if not ip_address:
        ip_address = req.headers.get('X-Real-IP') or req.remote_addr
    return ip_address, req.headers.get('User-Agent')


def log_admin_action(
    admin_id: int = None,
    admin_email: str = None,
    action: str = None,
    entity_type: str = None,
    entity_id=None,
    details: dict = None,
    req=None,
    commit: bool = True,
) -> AuditLog:
    """
    Log an admin action to the audit trail.

    Args:
        admin_id: The ID of the admin performing the action (optional for failed logins)
        admin_email: The email of the admin (looked up from admin_id when omitted)
        action: The action being performed (use AuditAction constants)
        entity_type: The type of record being acted upon (optional)
        entity_id: The record's identifier, numeric or SF/HH/CMP id (optional)
        details: Additional details as a dict (optional)
        req: The Flask request object (uses the global request when available)
        commit: Commit immediately; pass False to ride on the caller's transaction

    Returns:
        The created AuditLog instance
    """
    if not action:
        raise ValueError("action is required")

    if not admin_email and admin_id:
        admin = db.session.get(AdminAccount, admin_id)
        if admin:
            admin_email = admin.email

    if not admin_email:
        admin_email = 'unknown'

    r = req if req is not None else (request if has_request_context() else None)
    ip_address, user_agent = _request_origin(r)

    log_entry = AuditLog(
        admin_id=admin_id,
        admin_email=admin_email,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip_address=ip_address,
        user_agent=user_agent,
        details=details or {},
    )
    db.session.add(log_entry)

    if commit:
        try:
            db.session.commit()
        except Exception as e:
            current_app.logger.error("Failed to create audit log: %s", e)
            db.session.rollback()
            raise

    current_app.logger.info("Audit: %s by %s on %s:%s", action, admin_email, entity_type, entity_id)
    return log_entry


def log_current_admin_action(action: str, entity_type: str = None, entity_id=None, details: dict = None, commit: bool = True):
    """Log an action for the admin identified by the verified JWT."""
    from flask_jwt_extended import get_jwt, get_jwt_identity

    claims = get_jwt() or {}
    try:
        admin_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        admin_id = None
    return log_admin_action(
        admin_id=admin_id,
        admin_email=claims.get('email'),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        commit=commit,
    )


def log_login_attempt(email: str, success: bool = True, admin_id: int = None, error_reason: str = None):
    """Log an admin login attempt."""
    details = {'error': error_reason} if (not success and error_reason) else None
    return log_admin_action(
        admin_id=admin_id if success else None,
        admin_email=email,
        action=AuditAction.LOGIN_SUCCESS if success else AuditAction.LOGIN_FAILED,
        entity_type='admin',
        entity_id=admin_id,
        details=details,
    )


__all__ = [
    'log_admin_action',
    'log_current_admin_action',
    'log_login_attempt',
    'AuditAction',
]
