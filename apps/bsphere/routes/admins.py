"""
B-Sphere - Admin Account Routes
Listing and managing staff accounts, plus the admin audit trail.
New accounts are created through /api/auth/admin-signup.
"""
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import get_jwt_identity
from sqlalchemy import or_, desc

from apps.bsphere import db
from apps.bsphere.models.admin import AdminAccount, normalize_role
from apps.bsphere.models.audit import AuditLog, AuditAction
from apps.bsphere.models.document import DocumentRequest
from apps.bsphere.utils.admin_audit import log_current_admin_action
from apps.bsphere.utils.auth import check_admin_request
from apps.bsphere.utils.time import parse_datetime
from apps.bsphere.utils.validators import (
    ValidationError,
    parse_bool,
    sanitize_string,
    validate_phone,
)


admins_bp = Blueprint('admins', __name__, url_prefix='/api/admins')


@admins_bp.before_request
def enforce_admin():
    """Middleware: require an admin JWT for every /api/admins route."""
    return check_admin_request()


def _current_admin_id():
    try:
        return int(get_jwt_identity())
    except (TypeError, ValueError):
        return None


def _other_active_admins(admin_id):
    return AdminAccount.query.filter(AdminAccount.id != admin_id, AdminAccount.is_active.is_(True)).count()


@admins_bp.route('', methods=['GET'])
def list_admins():
    try:
        admins = AdminAccount.query.order_by(AdminAccount.created_at.desc(), AdminAccount.id.desc()).all()
        return jsonify({'admins': [a.to_dict() for a in admins], 'total': len(admins)}), 200
    except Exception as e:
        current_app.logger.error("Error fetching admins: %s", e)
        return jsonify({'error': 'Failed to fetch admins', 'details': str(e)}), 500


@admins_bp.route('/<int:admin_id>', methods=['GET'])
def get_admin(admin_id):
    admin = db.session.get(AdminAccount, admin_id)
    if not admin:
        return jsonify({'error': 'Admin not found'}), 404
    return jsonify({'admin': admin.to_dict()}), 200


@admins_bp.route('/<int:admin_id>', methods=['PUT'])
def update_admin(admin_id):
    """Update role, active flag or profile fields of an admin account."""
    try:
        admin = db.session.get(AdminAccount, admin_id)
        if not admin:
            return jsonify({'error': 'Admin not found'}), 404

        data = request.get_json(silent=True) or {}
        changes = {}

        if 'role' in data:
            role = normalize_role(data.get('role'))
            if not role:
                raise ValidationError('role', 'Role cannot be empty')
            changes['role'] = [admin.role, role]
            admin.role = role

        if 'isActive' in data:
            is_active = parse_bool(data.get('isActive'), default=True)
            if not is_active and admin.is_active:
                if admin.id == _current_admin_id():
                    return jsonify({'error': 'You cannot deactivate your own account'}), 400
                if _other_active_admins(admin.id) == 0:
                    return jsonify({'error': 'At least one active admin is required'}), 400
            changes['isActive'] = [bool(admin.is_active), is_active]
            admin.is_active = is_active

        for key, column in (('firstName', 'first_name'), ('middleName', 'middle_name'), ('lastName', 'last_name')):
            if key in data:
                value = sanitize_string(data.get(key), upper=True)
                if column != 'middle_name' and not value:
                    raise ValidationError(key, f'{key} cannot be empty')
                setattr(admin, column, value)
                changes[key] = value

        if 'phone' in data:
            admin.phone = validate_phone(data.get('phone'))
            changes['phone'] = admin.phone

        log_current_admin_action(
            AuditAction.ADMIN_UPDATED,
            entity_type='admin',
            entity_id=admin.id,
            details={'target_email': admin.email, 'changes': changes},
            commit=False,
        )
        db.session.commit()

        current_app.logger.info("Admin %s updated: %s", admin.email, sorted(changes))
        return jsonify({'success': True, 'message': 'Admin updated successfully', 'admin': admin.to_dict()}), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error updating admin %s: %s", admin_id, e)
        return jsonify({'error': 'Failed to update admin', 'details': str(e)}), 500


@admins_bp.route('/<int:admin_id>', methods=['DELETE'])
def delete_admin(admin_id):
    try:
        admin = db.session.get(AdminAccount, admin_id)
        if not admin:
            return jsonify({'error': 'Admin not found'}), 404
        if admin.id == _current_admin_id():
            return jsonify({'error': 'You cannot delete your own account'}), 400
        if admin.is_active and _other_active_admins(admin.id) == 0:
            return jsonify({'error': 'At least one active admin is required'}), 400

        email = admin.email
        # Keep processed requests, drop the reference
        DocumentRequest.query.filter_by(processed_by=admin.id).update(
            {DocumentRequest.processed_by: None}, synchronize_session=False
        )
        AuditLog.query.filter_by(admin_id=admin.id).update(
            {AuditLog.admin_id: None}, synchronize_session=False
        )
        db.session.delete(admin)
        log_current_admin_action(
            AuditAction.ADMIN_DELETED,
            entity_type='admin',
            entity_id=admin_id,
            details={'target_email': email},
            commit=False,
        )
        db.session.commit()

        current_app.logger.info("Admin %s deleted", email)
        return jsonify({'success': True, 'message': 'Admin deleted successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error deleting admin %s: %s", admin_id, e)
        return jsonify({'error': 'Failed to delete admin', 'details': str(e)}), 500


@admins_bp.route('/logs', methods=['GET'])
def get_audit_logs():
    """
    Admin audit trail, newest first.

    Query parameters:
        - page: Page number (default: 1)
        - per_page: Items per page (default: 50, max: 100)
        - action: Filter by action type (optional)
        - entity_type: Filter by entity type (optional)
        - admin_id: Filter by acting admin (optional)
        - start_date / end_date: ISO timestamps (optional)
        - search: Match admin email or entity id (optional)
    """
    try:
        page = max(request.args.get('page', 1, type=int) or 1, 1)
        per_page = request.args.get('per_page', 50, type=int) or 50
        per_page = min(max(per_page, 1), 100)

        query = AuditLog.query

        action = (request.args.get('action') or '').strip()
        if action:
            query = query.filter(AuditLog.action == action)

        entity_type = (request.args.get('entity_type') or '').strip()
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)

        admin_id = request.args.get('admin_id', type=int)
        if admin_id:
            query = query.filter(AuditLog.admin_id == admin_id)

        for arg, op in (('start_date', '>='), ('end_date', '<=')):
            raw = (request.args.get(arg) or '').strip()
            if not raw:
                continue
            try:
                moment = parse_datetime(raw)
            except ValueError:
                return jsonify({'error': f'Invalid {arg}'}), 400
            query = query.filter(AuditLog.created_at >= moment if op == '>=' else AuditLog.created_at <= moment)

        search = (request.args.get('search') or '').strip()
        if search:
            pattern = f'%{search}%'
            query = query.filter(or_(AuditLog.admin_email.ilike(pattern), AuditLog.entity_id.ilike(pattern)))

        pagination = query.order_by(desc(AuditLog.created_at), desc(AuditLog.id)).paginate(
            page=page, per_page=per_page, error_out=False
        )

        return jsonify({
            'logs': [log.to_dict() for log in pagination.items],
            'pagination': {
                'page': pagination.page,
                'per_page': pagination.per_page,
                'total': pagination.total,
                'pages': pagination.pages,
                'has_next': pagination.has_next,
                'has_prev': pagination.has_prev,
            },
        }), 200

    except Exception as e:
        current_app.logger.error("Error fetching audit logs: %s", e)
        return jsonify({'error': 'Failed to fetch audit logs', 'details': str(e)}), 500


@admins_bp.route('/logs/actions', methods=['GET'])
def get_audit_actions():
    """Distinct action names present in the audit trail."""
    actions = db.session.query(AuditLog.action).distinct().all()
    return jsonify({'actions': sorted(a[0] for a in actions if a[0])}), 200
