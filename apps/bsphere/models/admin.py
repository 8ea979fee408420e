"""Admin accounts for the barangay staff portal."""
import re

from sqlalchemy import Index

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now


def normalize_role(role: str) -> str:
    """'Sub Admin1' -> 'sub-admin1'."""
    return re.sub(r'\s+', '-', (role or '').strip().lower())


class AdminAccount(db.Model):
    __tablename__ = 'admins'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(100), nullable=False)
    middle_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    birthdate = db.Column(db.String(10), nullable=True)

    role = db.Column(db.String(30), nullable=False, default='admin')  # admin, sub-admin1, ...
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    last_login = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_admin_role', 'role'),
        Index('idx_admin_created', 'created_at'),
    )

    def __repr__(self):
        return f'<AdminAccount {self.email}>'

    @property
    def full_name(self):
        return ' '.join(p for p in (self.first_name, self.middle_name, self.last_name) if p)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'middleName': self.middle_name,
            'lastName': self.last_name,
            'fullName': self.full_name,
            'phone': self.phone,
            'birthdate': self.birthdate,
            'role': self.role,
            'isActive': bool(self.is_active),
            'emailVerified': bool(self.email_verified),
            'lastLogin': self.last_login.isoformat() if self.last_login else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
