"""In-app notification model for admin and resident inboxes."""
from apps.bsphere.utils.time import utc_now
from apps.bsphere import db


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(50), nullable=False)  # resident_registration, document_request, ...
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    target_role = db.Column(db.String(20), nullable=False, default='admin')  # admin | resident
    target_user_id = db.Column(db.String(50), nullable=True)  # resident unique ID or admin id
    priority = db.Column(db.String(20), nullable=False, default='normal')
    status = db.Column(db.String(20), nullable=False, default='unread')
    data = db.Column(db.JSON, nullable=True)
    read = db.Column(db.Boolean, nullable=False, default=False)
    seen = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        db.Index('ix_notifications_target', 'target_role', 'target_user_id'),
        db.Index('ix_notifications_type', 'type'),
        db.Index('ix_notifications_created', 'created_at'),
    )

    def mark_read(self):
        self.read = True
        self.seen = True
        self.status = 'read'
        self.read_at = utc_now()

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'targetRole': self.target_role,
            'targetUserId': self.target_user_id,
            'priority': self.priority,
            'status': self.status,
            'data': self.data or {},
            'read': bool(self.read),
            'seen': bool(self.seen),
            'readAt': self.read_at.isoformat() if self.read_at else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
