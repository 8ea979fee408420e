"""
B-Sphere - Authentication Routes
Admin signup/login, email OTPs, password reset and resident self-registration

Security: Critical endpoints have rate limiting applied to prevent:
- Brute force attacks on login and OTP verification
- Spam account creation
- Password reset email abuse
"""
from datetime import datetime, timedelta, timezone
import hashlib
import secrets

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    get_jwt,
    get_jwt_identity,
    set_access_cookies,
    unset_jwt_cookies,
    verify_jwt_in_request,
)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy import func

from apps.bsphere import db, limiter
from apps.bsphere.models.admin import AdminAccount, normalize_role
from apps.bsphere.models.audit import AuditAction
from apps.bsphere.models.email_verification_code import (
    EmailVerificationCode,
    PURPOSE_ADMIN_SIGNUP,
    PURPOSE_RESIDENT_SIGNUP,
)
from apps.bsphere.models.password_reset_token import PasswordResetToken
from apps.bsphere.models.pending_registration import PendingRegistration
from apps.bsphere.models.resident import Resident, ResidentDocument
from apps.bsphere.models.token_blacklist import TokenBlacklist
from apps.bsphere.utils.admin_audit import log_admin_action, log_login_attempt
from apps.bsphere.utils.auth import (
    ADMIN_USER_TYPE,
    check_admin_request,
    get_current_admin,
    hash_password,
    verify_password,
)
from apps.bsphere.utils.email_sender import (
    send_otp_email,
    send_password_reset_email,
    send_registration_received_email,
)
from apps.bsphere.utils.identity import (
    check_duplicate_residents,
    next_resident_id,
    validate_duplicate_check,
)
from apps.bsphere.utils.notifications import notify_resident_registration
from apps.bsphere.utils.storage_handler import save_file, StorageError
from apps.bsphere.utils.time import utc_now
from apps.bsphere.utils.validators import (
    ALLOWED_DOCUMENT_EXTENSIONS,
    ValidationError,
    sanitize_string,
    validate_email,
    validate_minimum_age,
    validate_password,
    validate_phone,
    validate_required_fields,
)


auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


# Rate limiting helper - applies limiter if available
def _limit(limit_string):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


def _limit_with_key(limit_value, key_func):
    """Apply rate limit with custom key function if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_value, key_func=key_func)(f)
        return f
    return decorator


def _password_reset_email_key() -> str:
    """Rate limit key based on normalized email for password reset requests."""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    return f"pwreset:{email or request.remote_addr}"


def _hash_password_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _find_admin_by_email(email: str):
    return AdminAccount.query.filter(func.lower(AdminAccount.email) == (email or '').strip().lower()).first()


# ---------------------------------------------------------------------------
# Admin accounts
# ---------------------------------------------------------------------------

@auth_bp.route('/admin-signup', methods=['POST'])
@_limit("5 per hour")
def admin_signup():
    """Create an admin account.

    The first account can be created freely; after that the caller must be
    a signed-in admin. When a ``tempId`` is sent, its email OTP must have
    been verified for the same address.
    """
    try:
        if AdminAccount.query.count() > 0:
            denied = check_admin_request()
            if denied is not None:
                return denied

        data = request.get_json(silent=True) or {}
        validate_required_fields(
            data,
            ['firstName', 'lastName', 'birthdate', 'email', 'contactNumber', 'password', 'role'],
            message='All fields are required',
        )

        email = validate_email(data.get('email')).lower()
        phone = validate_phone(data.get('contactNumber'))
        password = validate_password(data.get('password'))
        birthdate = validate_minimum_age(data.get('birthdate'), 18, label='Admin')

        temp_id = (data.get('tempId') or '').strip()
        if temp_id and not EmailVerificationCode.is_verified(temp_id, email, PURPOSE_ADMIN_SIGNUP):
            return jsonify({'error': 'Email has not been verified'}), 400

        if _find_admin_by_email(email):
            return jsonify({'error': 'An account with this email already exists'}), 409

        admin = AdminAccount(
            email=email,
            password_hash=hash_password(password),
            first_name=sanitize_string(data.get('firstName'), upper=True),
            middle_name=sanitize_string(data.get('middleName'), upper=True),
            last_name=sanitize_string(data.get('lastName'), upper=True),
            phone=phone,
            birthdate=birthdate.isoformat(),
            role=normalize_role(data.get('role')),
            email_verified=bool(temp_id),
        )
        db.session.add(admin)
        db.session.flush()

        creator_id = None
        creator_email = email
        claims = _optional_claims()
        if claims:
            creator_id = int(claims['sub']) if str(claims.get('sub', '')).isdigit() else None
            creator_email = claims.get('email') or email

        log_admin_action(
            admin_id=creator_id,
            admin_email=creator_email,
            action=AuditAction.ADMIN_CREATED,
            entity_type='admin',
            entity_id=admin.id,
            details={'email': admin.email, 'role': admin.role},
            commit=False,
        )
        if temp_id:
            EmailVerificationCode.query.filter_by(session_id=temp_id).delete()
        db.session.commit()

        current_app.logger.info("Admin account created id=%s role=%s", admin.id, admin.role)
        return jsonify({
            'success': True,
            'message': 'Admin account created successfully',
            'id': admin.id,
            'user': {
                'id': admin.id,
                'firstName': admin.first_name,
                'lastName': admin.last_name,
                'email': admin.email,
                'role': admin.role,
            },
        }), 201

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Admin signup error: %s", e)
        return jsonify({'error': 'Internal server error', 'details': str(e)}), 500


def _optional_claims():
    """Claims of a valid token on the request, or None."""
    try:
        verify_jwt_in_request(optional=True)
    except (JWTExtendedException, PyJWTError) as e:
        current_app.logger.debug("Ignoring unusable token: %s", e)
        return None
    return get_jwt() or None


@auth_bp.route('/admin-otp', methods=['POST'])
@_limit("10 per minute")
def admin_otp():
    """Send or verify the email OTP used during admin signup."""
    try:
        data = request.get_json(silent=True) or {}
        action = data.get('action')

        if action == 'send_email_otp':
            temp_id = (data.get('tempId') or '').strip()
            email = (data.get('email') or '').strip()
            if not temp_id or not email:
                return jsonify({'error': 'Missing required fields'}), 400
            email = validate_email(email).lower()

            ttl = int(current_app.config.get('ADMIN_OTP_TTL_MINUTES', 5))
            otp = EmailVerificationCode.create_for_session(temp_id, email, PURPOSE_ADMIN_SIGNUP, expiry_minutes=ttl)
            try:
                send_otp_email(email, otp.code, ttl, subject='Admin Verification Code')
            except RuntimeError as e:
                current_app.logger.error("Admin OTP email to %s failed: %s", email, e)
                return jsonify({'error': 'Failed to send OTP email'}), 500

            return jsonify({'success': True, 'message': 'OTP sent successfully'}), 200

        if action == 'verify_email_otp':
            temp_id = (data.get('tempId') or '').strip()
            code = str(data.get('otp') or '').strip()
            if not temp_id or not code:
                return jsonify({'error': 'Missing required fields'}), 400

            ok, message, _ = EmailVerificationCode.verify(
                temp_id,
                code,
                PURPOSE_ADMIN_SIGNUP,
                max_attempts=int(current_app.config.get('ADMIN_OTP_MAX_ATTEMPTS', 5)),
            )
            if not ok:
                return jsonify({'error': message}), 400
            return jsonify({'success': True, 'message': 'OTP verified'}), 200

        return jsonify({'error': 'Invalid action'}), 400

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Admin OTP error: %s", e)
        return jsonify({'error': 'Internal server error', 'details': str(e)}), 500


@auth_bp.route('/login', methods=['POST'])
@_limit("10 per minute")  # Critical: prevent brute force attacks
def login():
    """Login and get a 24 hour access token (also set as the ``token`` cookie)."""
    try:
        data = request.get_json(silent=True) or {}
        email = (data.get('email') or '').strip()
        password = data.get('password')
        user_type = data.get('userType')

        if not email or not password or not user_type:
            return jsonify({'error': 'Email, password, and user type are required'}), 400

        if user_type == 'resident':
            return jsonify({'error': 'Resident login not implemented yet'}), 501
        if user_type != ADMIN_USER_TYPE:
            return jsonify({'error': 'Invalid user type'}), 400

        admin = _find_admin_by_email(email)
        if not admin or not verify_password(password, admin.password_hash):
            log_login_attempt(email.lower(), success=False, error_reason='invalid_credentials')
            return jsonify({'error': 'Invalid credentials'}), 401

        if not admin.is_active:
            log_login_attempt(admin.email, success=False, error_reason='inactive')
            return jsonify({'error': 'Account is deactivated'}), 403

        admin.last_login = utc_now()
        db.session.commit()

        token = create_access_token(
            identity=str(admin.id),
            additional_claims={
                'email': admin.email,
                'role': admin.role,
                'userType': ADMIN_USER_TYPE,
            },
        )
        log_login_attempt(admin.email, success=True, admin_id=admin.id)

        resp = jsonify({
            'success': True,
            'message': 'Login successful',
            'token': token,
            'user': admin.to_dict(),
            'userType': ADMIN_USER_TYPE,
        })
        set_access_cookies(resp, token)
        return resp, 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Login error: %s", e)
        return jsonify({'error': 'Internal server error', 'details': str(e)}), 500


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Clear the token cookie and revoke the presented token, if any."""
    try:
        claims = _optional_claims()
        if claims and claims.get('jti'):
            exp = claims.get('exp')
            if exp:
                expires_at = datetime.fromtimestamp(exp, timezone.utc).replace(tzinfo=None)
            else:
                expires_at = utc_now() + current_app.config.get('JWT_ACCESS_TOKEN_EXPIRES', timedelta(hours=24))
            admin_id = get_jwt_identity()
            TokenBlacklist.purge_expired()
            TokenBlacklist.add_token_to_blacklist(claims['jti'], claims.get('type', 'access'), admin_id, expires_at)
            log_admin_action(
                admin_id=int(admin_id) if str(admin_id).isdigit() else None,
                admin_email=claims.get('email'),
                action=AuditAction.LOGOUT,
                entity_type='admin',
                entity_id=admin_id,
            )

        resp = jsonify({'success': True, 'message': 'Logged out successfully'})
        unset_jwt_cookies(resp)
        return resp, 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Logout error: %s", e)
        return jsonify({'error': 'Logout failed', 'details': str(e)}), 500


@auth_bp.route('/verify-token', methods=['GET'])
def verify_token():
    """Validate the Bearer token and return the admin it belongs to."""
    denied = check_admin_request()
    if denied is not None:
        return denied

    admin = get_current_admin()
    if not admin:
        return jsonify({'error': 'Admin not found'}), 404
    if not admin.is_active:
        return jsonify({'error': 'Account is deactivated'}), 401

    return jsonify({'success': True, 'user': admin.to_dict()}), 200


@auth_bp.route('/verify-password', methods=['POST'])
@_limit("10 per minute")
def verify_current_password():
    """Re-check the signed-in admin's password before a sensitive action."""
    denied = check_admin_request()
    if denied is not None:
        return denied

    data = request.get_json(silent=True) or {}
    password = data.get('password')
    if not password:
        return jsonify({'error': 'Password is required'}), 400

    admin = get_current_admin()
    if not admin or not verify_password(password, admin.password_hash):
        return jsonify({'error': 'Invalid password'}), 401
    return jsonify({'success': True}), 200


@auth_bp.route('/reset-password', methods=['POST'])
@_limit("20 per 15 minutes")  # IP-based rate limit
@_limit_with_key("5 per 15 minutes", _password_reset_email_key)  # Per-email rate limit
def reset_password():
    """Email a single-use password reset link to an admin."""
    try:
        data = request.get_json(silent=True) or {}
        if not (data.get('email') or '').strip():
            return jsonify({'error': 'Email is required'}), 400
        email = validate_email(data.get('email'))

        admin = _find_admin_by_email(email)
        if not admin or not admin.is_active:
            return jsonify({'error': 'No account found with this email address'}), 404

        # Invalidate any existing active tokens for this admin
        PasswordResetToken.query.filter_by(admin_id=admin.id, used_at=None).update({'used_at': utc_now()})

        ttl_minutes = int(current_app.config.get('PASSWORD_RESET_TOKEN_TTL_MINUTES', 30))
        raw_token = secrets.token_urlsafe(32)
        db.session.add(PasswordResetToken(
            admin_id=admin.id,
            token_hash=_hash_password_reset_token(raw_token),
            expires_at=utc_now() + timedelta(minutes=ttl_minutes),
            request_ip=request.remote_addr,
        ))
        log_admin_action(
            admin_id=admin.id,
            admin_email=admin.email,
            action=AuditAction.PASSWORD_RESET_REQUESTED,
            entity_type='admin',
            entity_id=admin.id,
            commit=False,
        )
        db.session.commit()

        reset_link = f"{current_app.config.get('ADMIN_URL', 'http://localhost:3000')}/reset-password?token={raw_token}"
        try:
            send_password_reset_email(admin.email, reset_link, ttl_minutes)
        except RuntimeError as e:
            current_app.logger.error("Password reset email failed for admin_id=%s: %s", admin.id, e)
            return jsonify({'error': 'Failed to send password reset email'}), 500

        current_app.logger.info("Password reset email sent admin_id=%s", admin.id)
        return jsonify({
            'success': True,
            'message': 'Password reset email sent successfully. Please check your email.',
        }), 200

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Password reset request error: %s", e)
        return jsonify({'error': 'Internal server error', 'details': str(e)}), 500


@auth_bp.route('/reset-password/confirm', methods=['POST'])
@_limit("10 per 15 minutes")
def reset_password_confirm():
    """Confirm password reset and set a new password."""
    try:
        data = request.get_json(silent=True) or {}
        token = (data.get('token') or '').strip()
        new_password = data.get('newPassword') or data.get('new_password')
        confirm_password = data.get('confirmPassword', data.get('confirm_password'))

        if not token or not new_password:
            return jsonify({'error': 'Token and new password are required'}), 400
        if confirm_password is not None and new_password != confirm_password:
            return jsonify({'error': 'Passwords do not match'}), 400

        reset = PasswordResetToken.query.filter_by(
            token_hash=_hash_password_reset_token(token),
            used_at=None,
        ).first()
        if not reset:
            return jsonify({'error': 'Invalid or expired token'}), 400

        if reset.is_expired():
            reset.mark_used()
            db.session.commit()
            return jsonify({'error': 'Invalid or expired token'}), 400

        admin = reset.admin
        if not admin or not admin.is_active:
            reset.mark_used()
            db.session.commit()
            return jsonify({'error': 'Invalid or expired token'}), 400

        admin.password_hash = hash_password(validate_password(new_password))
        admin.updated_at = utc_now()
        reset.mark_used()
        log_admin_action(
            admin_id=admin.id,
            admin_email=admin.email,
            action=AuditAction.PASSWORD_RESET_COMPLETED,
            entity_type='admin',
            entity_id=admin.id,
            commit=False,
        )
        db.session.commit()

        current_app.logger.info("Password reset completed admin_id=%s", admin.id)
        return jsonify({'success': True, 'message': 'Password updated successfully'}), 200

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Password reset confirm error: %s", e)
        return jsonify({'error': 'Failed to reset password', 'details': str(e)}), 500


# ---------------------------------------------------------------------------
# Resident self-registration
# ---------------------------------------------------------------------------

@auth_bp.route('/signup/step1', methods=['POST'])
@_limit("10 per hour")
def signup_step1():
    """Validate personal details and hold them until the email is verified."""
    try:
        data = request.get_json(silent=True) or {}
        validate_required_fields(
            data,
            ['firstName', 'lastName', 'email', 'contactNumber', 'birthdate', 'password'],
            message='All fields are required',
        )

        email = validate_email(data.get('email')).lower()
        phone = validate_phone(data.get('contactNumber'))
        password = validate_password(data.get('password'))
        birthdate = validate_minimum_age(data.get('birthdate'), 13, label='You').isoformat()

        if Resident.query.filter(func.lower(Resident.email) == email).first():
            return jsonify({'error': 'An account with this email already exists'}), 409
        if Resident.query.filter(Resident.contact_number == phone).first():
            return jsonify({'error': 'An account with this phone number already exists'}), 409

        first_name = sanitize_string(data.get('firstName'), upper=True)
        middle_name = sanitize_string(data.get('middleName'), upper=True)
        last_name = sanitize_string(data.get('lastName'), upper=True)

        duplicates = check_duplicate_residents(first_name, last_name, middle_name, birthdate)
        ok, message = validate_duplicate_check(duplicates)
        if not ok:
            return jsonify({'error': message}), 409

        temp_id = f"temp_{EmailVerificationCode.generate_session_id()}"
        db.session.add(PendingRegistration(
            temp_id=temp_id,
            first_name=first_name,
            middle_name=middle_name,
            last_name=last_name,
            suffix=sanitize_string(data.get('suffix'), upper=True),
            birthdate=birthdate,
            email=email,
            contact_number=phone,
            password_hash=hash_password(password),
            identity_key=duplicates['identity_key'],
            full_name_key=duplicates['full_name_key'],
        ))
        db.session.commit()

        return jsonify({
            'message': 'Step 1 completed successfully',
            'tempId': temp_id,
            'nextStep': 2,
        }), 200

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Signup step 1 error: %s", e)
        return jsonify({'error': 'Internal server error. Please try again later.', 'details': str(e)}), 500


def _pending_registration(temp_id):
    """Return (pending, error_response)."""
    pending = PendingRegistration.query.filter_by(temp_id=temp_id).first()
    if not pending:
        return None, (jsonify({'error': 'Registration data not found'}), 404)
    if pending.is_expired():
        db.session.delete(pending)
        db.session.commit()
        return None, (jsonify({'error': 'Registration session has expired. Please start again.'}), 400)
    return pending, None


@auth_bp.route('/signup/step2', methods=['POST'])
@_limit("10 per minute")
def signup_step2():
    """Send the email OTP, or verify it and create the resident record."""
    try:
        data = request.get_json(silent=True) or {}
        action = data.get('action')
        temp_id = (data.get('tempId') or '').strip()

        if action in ('send_otp', 'send_email_otp'):
            if not temp_id:
                return jsonify({'error': 'Missing required fields'}), 400
            pending, error = _pending_registration(temp_id)
            if error:
                return error

            ttl = int(current_app.config.get('SIGNUP_OTP_TTL_MINUTES', 10))
            otp = EmailVerificationCode.create_for_session(temp_id, pending.email, PURPOSE_RESIDENT_SIGNUP, expiry_minutes=ttl)
            try:
                send_otp_email(pending.email, otp.code, ttl)
            except RuntimeError as e:
                current_app.logger.error("Signup OTP email failed for %s: %s", temp_id, e)
                return jsonify({'error': 'Failed to send email OTP'}), 500

            return jsonify({'success': True, 'message': 'OTP sent to your email successfully'}), 200

        if action in ('verify_otp', 'verify_email_otp'):
            code = str(data.get('otp') or '').strip()
            if not temp_id or not code:
                return jsonify({'error': 'Missing required fields'}), 400

            ok, message, _ = EmailVerificationCode.verify(
                temp_id,
                code,
                PURPOSE_RESIDENT_SIGNUP,
                max_attempts=int(current_app.config.get('SIGNUP_OTP_MAX_ATTEMPTS', 3)),
            )
            if not ok:
                return jsonify({'error': message}), 400

            pending, error = _pending_registration(temp_id)
            if error:
                return error

            if Resident.query.filter(func.lower(Resident.email) == pending.email.lower()).first():
                return jsonify({'error': 'An account with this email already exists'}), 409

            resident = Resident(
                unique_id=next_resident_id(),
                first_name=pending.first_name,
                middle_name=pending.middle_name,
                last_name=pending.last_name,
                suffix=pending.suffix,
                birthdate=pending.birthdate,
                email=pending.email,
                contact_number=pending.contact_number,
                password_hash=pending.password_hash,
                identity_key=pending.identity_key,
                full_name_key=pending.full_name_key,
                role='resident',
                account_status='pending_verification',
                uploaded_files=[],
            )
            db.session.add(resident)
            db.session.delete(pending)
            EmailVerificationCode.query.filter_by(session_id=temp_id).delete()
            db.session.commit()

            current_app.logger.info("Self-registration verified: %s", resident.unique_id)
            return jsonify({
                'message': 'Email verification completed successfully',
                'uniqueId': resident.unique_id,
                'nextStep': 3,
            }), 200

        return jsonify({'error': 'Invalid action'}), 400

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Signup step 2 error: %s", e)
        return jsonify({'error': 'Verification failed', 'details': str(e)}), 500


@auth_bp.route('/signup/step3', methods=['POST'])
@_limit("10 per hour")
def signup_step3():
    """Complete the profile, store supporting files and queue the resident for verification."""
    try:
        data = request.form.to_dict() if request.form else (request.get_json(silent=True) or {})

        unique_id = (data.get('uniqueId') or '').strip()
        if not unique_id:
            return jsonify({'error': 'Missing required fields'}), 400

        for field, label in (
            ('address', 'Address'),
            ('gender', 'Gender'),
            ('citizenship', 'Citizenship'),
            ('voterStatus', 'Voter status'),
            ('maritalStatus', 'Marital status'),
        ):
            if not (data.get(field) or '').strip():
                return jsonify({'error': f'{label} is required'}), 400

        resident = Resident.query.filter_by(unique_id=unique_id).first()
        if not resident:
            return jsonify({'error': 'Resident not found'}), 404
        if resident.account_status == 'approved':
            return jsonify({'error': 'Registration already completed'}), 400

        max_mb = int(current_app.config.get('RESIDENT_FILE_MAX_MB', 5))
        processed_files = []
        for field_name, upload in request.files.items(multi=True):
            if not upload or not upload.filename:
                continue
            try:
                stored = save_file(upload, 'registrations', ALLOWED_DOCUMENT_EXTENSIONS, max_size_mb=max_mb, owner=unique_id)
            except StorageError as e:
                db.session.rollback()
                return jsonify({'error': f'{upload.filename}: {e}'}), 400
            doc_type = field_name if field_name not in ('file', 'files') else 'supporting'
            db.session.add(ResidentDocument(
                resident_id=resident.id,
                name=upload.filename,
                type=doc_type,
                url=stored.url,
                path=stored.path,
            ))
            processed_files.append({
                'fileName': stored.path,
                'originalName': upload.filename,
                'type': doc_type,
                'downloadURL': stored.url,
                'uploadedAt': utc_now().isoformat(),
            })

        resident.suffix = sanitize_string(data.get('suffix'), upper=True) or resident.suffix
        resident.birthplace = sanitize_string(data.get('birthplace'), upper=True)
        resident.address = sanitize_string(data.get('address'), upper=True)
        resident.citizenship = sanitize_string(data.get('citizenship'), upper=True)
        resident.marital_status = sanitize_string(data.get('maritalStatus'))
        resident.gender = sanitize_string(data.get('gender'))
        resident.voter_status = sanitize_string(data.get('voterStatus'))
        resident.employment_status = sanitize_string(data.get('employmentStatus'))
        resident.educational_attainment = sanitize_string(data.get('educationalAttainment'))
        resident.occupation = sanitize_string(data.get('occupation'), upper=True)
        resident.uploaded_files = list(resident.uploaded_files or []) + processed_files
        resident.account_status = 'for_verification'
        resident.updated_at = utc_now()

        notify_resident_registration(resident)
        db.session.commit()

        if resident.email:
            send_registration_received_email(resident.email, resident.unique_id)

        return jsonify({
            'message': 'Registration completed successfully. Your account is pending verification.',
            'uniqueId': resident.unique_id,
            'accountStatus': resident.account_status,
            'uploadedFiles': processed_files,
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Signup step 3 error: %s", e)
        return jsonify({'error': 'Internal server error', 'details': str(e)}), 500
