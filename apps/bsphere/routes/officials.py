"""
B-Sphere - Official Routes
Barangay officials are residents assigned to a position. Captain, Secretary,
Treasurer and SK Chairman may each have only one Active holder.
"""
from flask import Blueprint, request, jsonify, current_app

from apps.bsphere import db
from apps.bsphere.models.audit import AuditAction
from apps.bsphere.models.official import Official, UNIQUE_POSITIONS
from apps.bsphere.models.resident import Resident
from apps.bsphere.utils.admin_audit import log_current_admin_action
from apps.bsphere.utils.auth import admin_required
from apps.bsphere.utils.validators import ValidationError, parse_birthdate, sanitize_string


officials_bp = Blueprint('officials', __name__, url_prefix='/api/officials')

OFFICIAL_STATUSES = ('Active', 'Inactive')


def _find_resident(resident_id):
    resident_id = str(resident_id or '').strip()
    resident = Resident.query.filter_by(unique_id=resident_id).first()
    if resident is None and resident_id.isdigit():
        resident = db.session.get(Resident, int(resident_id))
    return resident


def _term_date(value, field):
    if value in (None, ''):
        return None
    try:
        return parse_birthdate(str(value)[:10]).isoformat()
    except ValidationError:
        raise ValidationError(field, f'Invalid date for {field}')


def _status(value):
    status = str(value or 'Active').strip().capitalize()
    if status not in OFFICIAL_STATUSES:
        raise ValidationError('status', f"Status must be one of: {', '.join(OFFICIAL_STATUSES)}")
    return status


def _position_conflict(position, status, exclude_id=None):
    """Return a 409 response when a unique position already has an Active holder."""
    if position not in UNIQUE_POSITIONS or status != 'Active':
        return None
    query = Official.query.filter_by(position=position, status='Active')
    if exclude_id is not None:
        query = query.filter(Official.id != exclude_id)
    holder = query.first()
    if holder is None:
        return None

    resident = holder.resident
    name = f"{resident.first_name} {resident.last_name}" if resident else 'Unknown Resident'
    return jsonify({
        'error': 'Position already taken',
        'message': (
            f'The position of {position} is currently occupied by {name}. '
            'Only one person can hold this position at a time. Please set the current official '
            'to inactive or remove them before assigning this position to another resident.'
        ),
    }), 409


@officials_bp.route('', methods=['GET'])
def list_officials():
    try:
        officials = Official.query.order_by(Official.position.asc(), Official.id.asc()).all()
        payload = []
        for official in officials:
            item = official.to_dict()
            item['resident'] = official.resident.to_summary() if official.resident else None
            payload.append(item)
        return jsonify(payload), 200
    except Exception as e:
        current_app.logger.error("Error fetching officials: %s", e)
        return jsonify({'error': 'Failed to fetch officials', 'details': str(e)}), 500


@officials_bp.route('', methods=['POST'])
@admin_required
def create_official():
    try:
        data = request.get_json(silent=True) or {}
        if not data.get('residentId'):
            return jsonify({'error': 'Resident ID is required'}), 400
        position = sanitize_string(data.get('position'))
        if not position:
            return jsonify({'error': 'Position is required'}), 400

        resident = _find_resident(data.get('residentId'))
        if not resident:
            return jsonify({'error': 'Resident not found'}), 404
        if Official.query.filter_by(resident_id=resident.id).first():
            return jsonify({'error': 'Resident is already an official'}), 400

        status = _status(data.get('status'))
        conflict = _position_conflict(position, status)
        if conflict is not None:
            return conflict

        official = Official(
            resident_id=resident.id,
            position=position,
            term_start=_term_date(data.get('termStart'), 'termStart'),
            term_end=_term_date(data.get('termEnd'), 'termEnd'),
            chairmanship=sanitize_string(data.get('chairmanship')),
            status=status,
        )
        db.session.add(official)
        db.session.flush()
        log_current_admin_action(
            AuditAction.OFFICIAL_ASSIGNED,
            entity_type='official',
            entity_id=resident.unique_id,
            details={'position': position},
            commit=False,
        )
        db.session.commit()

        item = official.to_dict()
        item['resident'] = resident.to_summary()
        return jsonify(item), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error creating official: %s", e)
        return jsonify({'error': 'Failed to create official', 'details': str(e)}), 500


@officials_bp.route('', methods=['PUT'])
@officials_bp.route('/<resident_id>', methods=['PUT'])
@admin_required
def update_official(resident_id=None):
    try:
        data = request.get_json(silent=True) or {}
        resident_id = resident_id or data.get('residentId')
        if not resident_id:
            return jsonify({'error': 'Resident ID is required for update'}), 400

        resident = _find_resident(resident_id)
        official = Official.query.filter_by(resident_id=resident.id).first() if resident else None
        if not official:
            return jsonify({'error': 'Official not found'}), 404

        position = sanitize_string(data.get('position')) or official.position
        status = _status(data.get('status') or official.status)
        conflict = _position_conflict(position, status, exclude_id=official.id)
        if conflict is not None:
            return conflict

        official.position = position
        official.status = status
        if 'termStart' in data:
            official.term_start = _term_date(data.get('termStart'), 'termStart')
        if 'termEnd' in data:
            official.term_end = _term_date(data.get('termEnd'), 'termEnd')
        if 'chairmanship' in data:
            official.chairmanship = sanitize_string(data.get('chairmanship'))

        log_current_admin_action(
            AuditAction.OFFICIAL_UPDATED,
            entity_type='official',
            entity_id=resident.unique_id,
            details={'position': position, 'status': status},
            commit=False,
        )
        db.session.commit()

        item = official.to_dict()
        item['resident'] = resident.to_summary()
        return jsonify(item), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error updating official %s: %s", resident_id, e)
        return jsonify({'error': 'Failed to update official', 'details': str(e)}), 500


@officials_bp.route('', methods=['DELETE'])
@admin_required
def delete_official():
    """Remove an official by ``?residentId=``; the resident record stays."""
    try:
        resident_id = (request.args.get('residentId') or '').strip()
        if not resident_id:
            return jsonify({'error': 'Official Resident ID is required'}), 400

        resident = _find_resident(resident_id)
        official = Official.query.filter_by(resident_id=resident.id).first() if resident else None
        if not official:
            return jsonify({'error': 'Official not found'}), 404

        position = official.position
        db.session.delete(official)
        log_current_admin_action(
            AuditAction.OFFICIAL_REMOVED,
            entity_type='official',
            entity_id=resident.unique_id,
            details={'position': position},
            commit=False,
        )
        db.session.commit()
        return jsonify({'message': 'Official deleted successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error deleting official %s: %s", request.args.get('residentId'), e)
        return jsonify({'error': 'Failed to delete official', 'details': str(e)}), 500
