"""Admin audit trail.

Records who did what to which record: logins, admin account changes,
resident edits, document issuance, announcement and complaint updates.
"""
from apps.bsphere import db
from apps.bsphere.utils.time import utc_now

from sqlalchemy import Index


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)

    # Null for failed logins before the account is known
    admin_id = db.Column(db.Integer, db.ForeignKey('admins.id', ondelete='SET NULL'), nullable=True)
    admin_email = db.Column(db.String(255), nullable=False)

    action = db.Column(db.String(100), nullable=False)

    # 'resident', 'household', 'document_request', 'announcement', 'complaint', 'official', 'admin'
    entity_type = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.String(64), nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)

    details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    admin = db.relationship('AdminAccount', backref=db.backref('audit_logs', lazy='dynamic', passive_deletes=True))

    __table_args__ = (
        Index('idx_audit_admin', 'admin_id'),
        Index('idx_audit_action', 'action'),
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
        Index('idx_audit_created_at', 'created_at'),
    )

    def __repr__(self):
        return f'<AuditLog {self.id}: {self.action} by {self.admin_email}>'

    def to_dict(self):
        return {
            'id': self.id,
            'adminId': self.admin_id,
            'adminEmail': self.admin_email,
            'action': self.action,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'ipAddress': self.ip_address,
            'userAgent': self.user_agent,
            'details': self.details,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class AuditAction:
    """Constants for audit log actions."""

    LOGIN_SUCCESS = 'login_success'
    LOGIN_FAILED = 'login_failed'
    LOGOUT = 'logout'
    PASSWORD_RESET_REQUESTED = 'password_reset_requested'
    PASSWORD_RESET_COMPLETED = 'password_reset_completed'

    ADMIN_CREATED = 'admin_created'
    ADMIN_UPDATED = 'admin_updated'
    ADMIN_DELETED = 'admin_deleted'

    RESIDENT_CREATED = 'resident_created'
    RESIDENT_UPDATED = 'resident_updated'
    RESIDENT_DELETED = 'resident_deleted'
    RESIDENTS_IMPORTED = 'residents_imported'

    HOUSEHOLD_CREATED = 'household_created'
    HOUSEHOLD_UPDATED = 'household_updated'
    HOUSEHOLD_DELETED = 'household_deleted'

    DOCUMENT_STATUS_CHANGED = 'document_status_changed'
    DOCUMENT_GENERATED = 'document_generated'
    DOCUMENT_DELETED = 'document_deleted'

    ANNOUNCEMENT_CREATED = 'announcement_created'
    ANNOUNCEMENT_EDITED = 'announcement_edited'
    ANNOUNCEMENT_DELETED = 'announcement_deleted'
    ANNOUNCEMENTS_AUTO_MANAGED = 'announcements_auto_managed'

    COMPLAINT_UPDATED = 'complaint_updated'

    OFFICIAL_ASSIGNED = 'official_assigned'
    OFFICIAL_UPDATED = 'official_updated'
    OFFICIAL_REMOVED = 'official_removed'
