"""Email one-time password model.

Used for:
- Admin signup email verification
- Resident self-registration (signup step 2)
"""
from datetime import timedelta
import secrets

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now

from sqlalchemy import Index


PURPOSE_ADMIN_SIGNUP = 'admin_signup'
PURPOSE_RESIDENT_SIGNUP = 'resident_signup'


class EmailVerificationCode(db.Model):
    __tablename__ = 'email_verification_codes'

    id = db.Column(db.Integer, primary_key=True)

    # Client-held registration id (tempId); one live code per session
    session_id = db.Column(db.String(64), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=False)

    code = db.Column(db.String(6), nullable=False)
    purpose = db.Column(db.String(50), nullable=False)

    expires_at = db.Column(db.DateTime, nullable=False)
    used = db.Column(db.Boolean, default=False, nullable=False)
    verified_at = db.Column(db.DateTime, nullable=True)

    attempts = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_verification_code_session', 'session_id'),
        Index('idx_verification_code_email', 'email'),
    )

    def __repr__(self):
        return f'<EmailVerificationCode {self.id} for {self.session_id}>'

    def is_expired(self) -> bool:
        return utc_now() > self.expires_at

    def to_dict(self):
        """Serialize without the code itself."""
        return {
            'id': self.id,
            'session_id': self.session_id,
            'email': self.email,
            'purpose': self.purpose,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'used': self.used,
            'attempts': self.attempts,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @staticmethod
    def generate_code() -> str:
        """Generate a cryptographically secure 6-digit code."""
        return ''.join([str(secrets.randbelow(10)) for _ in range(6)])

    @staticmethod
    def generate_session_id() -> str:
        return secrets.token_hex(16)

    @classmethod
    def create_for_session(
        cls,
        session_id: str,
        email: str,
        purpose: str,
        expiry_minutes: int = 10
    ) -> 'EmailVerificationCode':
        """
        Issue a fresh code for a registration session, replacing any earlier one.

        Args:
            session_id: The tempId the client carries between steps
            email: Address the code is sent to
            purpose: PURPOSE_ADMIN_SIGNUP or PURPOSE_RESIDENT_SIGNUP
            expiry_minutes: How many minutes until the code expires
        """
        cls.query.filter_by(session_id=session_id).delete()
        db.session.flush()

        code = cls(
            session_id=session_id,
            email=email,
            code=cls.generate_code(),
            purpose=purpose,
            expires_at=utc_now() + timedelta(minutes=expiry_minutes)
        )
        db.session.add(code)
        db.session.commit()
        return code

    @classmethod
    def verify(
        cls,
        session_id: str,
        code: str,
        purpose: str,
        max_attempts: int = 3
    ) -> tuple[bool, str, 'EmailVerificationCode | None']:
        """
        Verify a code for a registration session.

        Expired codes and codes that ran out of attempts are deleted.

        Returns:
            Tuple of (success, error_message, verification_code_instance)
        """
        verification = cls.query.filter_by(session_id=session_id, purpose=purpose).first()

        if not verification:
            return False, 'Invalid or expired OTP', None

        if verification.is_expired():
            db.session.delete(verification)
            db.session.commit()
            return False, 'OTP has expired', None

        if verification.used:
            return False, 'OTP already used', None

        if verification.attempts >= max_attempts:
            db.session.delete(verification)
            db.session.commit()
            return False, 'Too many failed attempts', None

        if verification.code != str(code).strip():
            verification.attempts += 1
            db.session.commit()
            return False, 'Invalid OTP code', None

        verification.used = True
        verification.verified_at = utc_now()
        db.session.commit()
        return True, '', verification

    @classmethod
    def is_verified(cls, session_id: str, email: str, purpose: str) -> bool:
        """True when the session's code was consumed for this email."""
        verification = cls.query.filter_by(session_id=session_id, purpose=purpose).first()
        return bool(
            verification
            and verification.used
            and verification.verified_at
            and verification.email.lower() == (email or '').lower()
        )
