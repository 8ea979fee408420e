"""
B-Sphere - Complaint Routes
Blotter entries filed at the barangay hall. Complaints can be filed and
updated but are never deleted.
"""
from flask import Blueprint, request, jsonify, current_app

from apps.bsphere import db, limiter
from apps.bsphere.models.audit import AuditAction
from apps.bsphere.models.complaint import Complaint
from apps.bsphere.utils.admin_audit import log_current_admin_action
from apps.bsphere.utils.auth import admin_required
from apps.bsphere.utils.identity import next_complaint_id
from apps.bsphere.utils.notifications import create_notification
from apps.bsphere.utils.validators import ValidationError, sanitize_string, validate_required_fields


complaints_bp = Blueprint('complaints', __name__, url_prefix='/api/complaints')

REQUIRED_FIELDS = ['type', 'respondent', 'complainant', 'dateFiled', 'officer', 'status']

# Request key -> column
EDITABLE_FIELDS = {
    'type': 'type',
    'nature': 'nature',
    'respondent': 'respondent',
    'respondentAddress': 'respondent_address',
    'complainant': 'complainant',
    'complainantAddress': 'complainant_address',
    'dateFiled': 'date_filed',
    'officer': 'officer',
    'status': 'status',
    'resolutionDate': 'resolution_date',
}


def _limit(limit_string):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


def _get_complaint(complaint_id):
    complaint = Complaint.query.filter_by(complaint_id=complaint_id).first()
    if complaint is None and str(complaint_id).isdigit():
        complaint = db.session.get(Complaint, int(complaint_id))
    return complaint


@complaints_bp.route('', methods=['GET'])
@admin_required
def list_complaints():
    try:
        complaints = Complaint.query.order_by(Complaint.date_filed.desc(), Complaint.id.desc()).all()
        return jsonify({'complaints': [c.to_dict() for c in complaints]}), 200
    except Exception as e:
        current_app.logger.error("Error fetching complaints: %s", e)
        return jsonify({'error': 'Failed to fetch complaints', 'details': str(e)}), 500


@complaints_bp.route('', methods=['POST'])
@_limit("20 per hour")
def create_complaint():
    try:
        data = request.get_json(silent=True) or {}
        validate_required_fields(data, REQUIRED_FIELDS, 'Missing required fields')

        complaint = Complaint(complaint_id=next_complaint_id())
        for key, column in EDITABLE_FIELDS.items():
            setattr(complaint, column, sanitize_string(data.get(key)) or '')

        db.session.add(complaint)
        create_notification(
            type='complaint',
            title='New complaint filed',
            message=f'{complaint.complainant} filed a {complaint.type} complaint ({complaint.complaint_id}).',
            target_role='admin',
            data={'complaintId': complaint.complaint_id},
        )
        db.session.commit()

        current_app.logger.info("Complaint %s filed", complaint.complaint_id)
        return jsonify(complaint.to_dict()), 201

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error creating complaint: %s", e)
        return jsonify({'error': 'Failed to create complaint', 'details': str(e)}), 500


@complaints_bp.route('', methods=['PUT'])
@complaints_bp.route('/<complaint_id>', methods=['PUT'])
@admin_required
def update_complaint(complaint_id=None):
    """Update a complaint; the id comes from the path or the body's ``id``."""
    try:
        data = request.get_json(silent=True) or {}
        complaint_id = complaint_id or data.get('id') or data.get('complaintId')
        if not complaint_id:
            return jsonify({'error': 'Complaint ID is required'}), 400

        complaint = _get_complaint(str(complaint_id).strip())
        if not complaint:
            return jsonify({'error': 'Complaint not found'}), 404

        changed = {}
        for key, column in EDITABLE_FIELDS.items():
            if key not in data:
                continue
            value = sanitize_string(data.get(key))
            if key in REQUIRED_FIELDS and not value:
                raise ValidationError(key, f'{key} cannot be empty')
            if getattr(complaint, column) != (value or ''):
                changed[key] = value
            setattr(complaint, column, value or '')

        log_current_admin_action(
            AuditAction.COMPLAINT_UPDATED,
            entity_type='complaint',
            entity_id=complaint.complaint_id,
            details={'changed': sorted(changed)},
            commit=False,
        )
        db.session.commit()
        return jsonify(complaint.to_dict()), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error updating complaint %s: %s", complaint_id, e)
        return jsonify({'error': 'Failed to update complaint', 'details': str(e)}), 500
