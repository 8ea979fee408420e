"""Password reset token model (single-use, short-lived)."""
from apps.bsphere.utils.time import utc_now
from apps.bsphere import db

from sqlalchemy import Index


class PasswordResetToken(db.Model):
    __tablename__ = 'password_reset_tokens'

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey('admins.id', ondelete='CASCADE'), nullable=False)

    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime, nullable=True)

    request_ip = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    admin = db.relationship('AdminAccount', backref=db.backref('password_reset_tokens', lazy='dynamic', cascade='all, delete-orphan'))

    __table_args__ = (
        Index('idx_password_reset_admin', 'admin_id'),
        Index('idx_password_reset_expires', 'expires_at'),
    )

    def is_expired(self) -> bool:
        return utc_now() > self.expires_at

    def mark_used(self):
        self.used_at = utc_now()
