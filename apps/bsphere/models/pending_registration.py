"""Resident self-registration data held between signup step 1 and step 2."""
from datetime import timedelta

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now


class PendingRegistration(db.Model):
    __tablename__ = 'pending_registrations'

    id = db.Column(db.Integer, primary_key=True)
    temp_id = db.Column(db.String(64), unique=True, nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    middle_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=False)
    suffix = db.Column(db.String(20), nullable=True)
    birthdate = db.Column(db.String(10), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    contact_number = db.Column(db.String(20), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    identity_key = db.Column(db.String(300), nullable=False)
    full_name_key = db.Column(db.String(300), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, default=lambda: utc_now() + timedelta(hours=24))
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f'<PendingRegistration {self.temp_id}>'

    def is_expired(self) -> bool:
        return utc_now() > self.expires_at
