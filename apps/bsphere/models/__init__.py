"""
B-Sphere - Database Models
Import all models here for Flask-Migrate to detect them
"""
from apps.bsphere import db

# Base model will be imported by other models
Base = db.Model

# Import all models to register them with SQLAlchemy
from .admin import AdminAccount
from .resident import Resident, ResidentDocument
from .household import Household, HouseholdMember
from .document import DocumentCounter, DocumentRequest
from .announcement import Announcement
from .complaint import Complaint
from .official import Official
from .notification import Notification
from .token_blacklist import TokenBlacklist
from .audit import AuditLog, AuditAction
from .email_verification_code import EmailVerificationCode
from .password_reset_token import PasswordResetToken
from .pending_registration import PendingRegistration

__all__ = [
    'AdminAccount',
    'Resident',
    'ResidentDocument',
    'Household',
    'HouseholdMember',
    'DocumentCounter',
    'DocumentRequest',
    'Announcement',
    'Complaint',
    'Official',
    'Notification',
    'TokenBlacklist',
    'AuditLog',
    'AuditAction',
    'EmailVerificationCode',
    'PasswordResetToken',
    'PendingRegistration',
]
