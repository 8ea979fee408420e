"""Password hashing and admin JWT enforcement helpers."""
from functools import wraps

import bcrypt
from flask import request, jsonify, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt, get_jwt_identity
from flask_jwt_extended.exceptions import NoAuthorizationError, InvalidHeaderError, RevokedTokenError
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from werkzeug.security import check_password_hash

from apps.bsphere import db


ADMIN_USER_TYPE = 'admin'


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash, supporting both bcrypt and Werkzeug formats."""
    if not password_hash or password is None:
        return False

    # Check if it's a Werkzeug hash (scrypt, pbkdf2, etc.)
    if password_hash.startswith(('scrypt:', 'pbkdf2:', 'sha256:', 'sha512:')):
        return check_password_hash(password_hash, password)

    # Otherwise try bcrypt
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def is_well_formed_token(token) -> bool:
    """Cheap shape check: three non-empty dot-separated segments."""
    if not token or not isinstance(token, str):
        return False
    parts = token.split('.')
    return len(parts) == 3 and all(parts)


def check_admin_request():
    """Verify the request carries a live admin token.

    Returns None when access is allowed, otherwise an error response tuple.
    Skips OPTIONS preflight requests to allow CORS to work properly.
    """
    if request.method == 'OPTIONS':
        return None

    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer ') and not is_well_formed_token(header[len('Bearer '):].strip()):
        return jsonify({'error': 'Invalid token', 'code': 'INVALID_TOKEN'}), 401

    try:
        verify_jwt_in_request()
        claims = get_jwt() or {}
        if claims.get('userType') != ADMIN_USER_TYPE:
            current_app.logger.warning("Admin access denied: userType=%s", claims.get('userType'))
            return jsonify({'error': 'Forbidden', 'code': 'ROLE_MISMATCH'}), 403
    except NoAuthorizationError:
        return jsonify({'error': 'Authorization required', 'code': 'NO_AUTH'}), 401
    except InvalidHeaderError as e:
        current_app.logger.warning("Invalid auth header: %s", e)
        return jsonify({'error': 'Invalid authorization header', 'code': 'INVALID_HEADER'}), 401
    except ExpiredSignatureError:
        return jsonify({'error': 'Token has expired', 'code': 'TOKEN_EXPIRED'}), 401
    except RevokedTokenError:
        return jsonify({'error': 'Token has been revoked', 'code': 'INVALID_TOKEN'}), 401
    except InvalidTokenError as e:
        current_app.logger.warning("Invalid token: %s", e)
        return jsonify({'error': 'Invalid token', 'code': 'INVALID_TOKEN'}), 401
    except Exception as e:
        # Never fall through to the handler on an unexpected failure
        current_app.logger.error("Unexpected auth error: %s: %s", type(e).__name__, e)
        return jsonify({'error': 'Authentication failed', 'code': 'AUTH_ERROR'}), 401
    return None


def admin_required(fn):
    """Decorator form of check_admin_request for individual routes."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        denied = check_admin_request()
        if denied is not None:
            return denied
        return fn(*args, **kwargs)
    return wrapper


def get_current_admin():
    """Return the AdminAccount for the verified token, or None."""
    from apps.bsphere.models.admin import AdminAccount

    identity = get_jwt_identity()
    try:
        admin_id = int(identity)
    except (TypeError, ValueError):
        current_app.logger.debug("Invalid JWT identity: %s", identity)
        return None
    return db.session.get(AdminAccount, admin_id)
