"""API Routes - Import all blueprints here."""

from .auth import auth_bp
from .admins import admins_bp
from .residents import residents_bp
from .households import households_bp
from .documents import document_requests_bp
from .announcements import announcements_bp
from .complaints import complaints_bp
from .officials import officials_bp
from .notifications import notifications_bp
from .exports import exports_bp
from .uploads import uploads_bp

__all__ = [
    'auth_bp',
    'admins_bp',
    'residents_bp',
    'households_bp',
    'document_requests_bp',
    'announcements_bp',
    'complaints_bp',
    'officials_bp',
    'notifications_bp',
    'exports_bp',
    'uploads_bp',
]
