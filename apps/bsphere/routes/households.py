"""
B-Sphere - Household Routes
Households group residents under one head; a resident can sit in only one
household. Resident roles (head/member) are kept in step with membership.
"""
from flask import Blueprint, request, jsonify, current_app

from apps.bsphere import db
from apps.bsphere.models.audit import AuditAction
from apps.bsphere.models.household import Household, HouseholdMember
from apps.bsphere.models.resident import Resident
from apps.bsphere.utils.admin_audit import log_current_admin_action
from apps.bsphere.utils.auth import check_admin_request
from apps.bsphere.utils.household_membership import find_household_for, clear_household_roles
from apps.bsphere.utils.identity import next_household_id
from apps.bsphere.utils.time import utc_now
from apps.bsphere.utils.validators import ValidationError, clean_contact_number, sanitize_string


households_bp = Blueprint('households', __name__, url_prefix='/api/households')


@households_bp.before_request
def enforce_admin():
    """Middleware: require an admin JWT for every /api/households route."""
    return check_admin_request()


class _Conflict(Exception):
    """A resident is already placed in another household."""
    pass


def _resident_by_unique_id(unique_id):
    resident = Resident.query.filter_by(unique_id=str(unique_id or '').strip()).first()
    if not resident:
        raise ValidationError('resident', f'Resident {unique_id} not found')
    return resident


def _member_ids(data):
    members = data.get('members') or []
    if not isinstance(members, list):
        raise ValidationError('members', 'members must be a list of resident IDs')
    # Keep order, drop repeats and blanks
    return list(dict.fromkeys(str(m).strip() for m in members if str(m or '').strip()))


def _ensure_free(resident, household=None, is_head=False):
    """Raise _Conflict when the resident already belongs to a different household."""
    current, role = find_household_for(resident)
    if current is None or (household is not None and current.id == household.id):
        return
    if is_head:
        raise _Conflict(
            f'This resident is already a {role} in household {current.household_id} and cannot be added again.'
        )
    raise _Conflict(
        f'Resident {resident.unique_id} is already a {role} in household {current.household_id} '
        'and cannot be added again.'
    )


def _get_household(household_id):
    return Household.query.filter_by(household_id=household_id).first()


@households_bp.route('', methods=['GET'])
def list_households():
    """All households, newest first, with head and member records embedded."""
    try:
        households = Household.query.order_by(Household.created_at.desc(), Household.id.desc()).all()
        return jsonify([h.to_dict(embed=True) for h in households]), 200
    except Exception as e:
        current_app.logger.error("Error fetching households: %s", e)
        return jsonify({'error': 'Failed to fetch households', 'details': str(e)}), 500


@households_bp.route('/<household_id>', methods=['GET'])
def get_household(household_id):
    household = _get_household(household_id)
    if not household:
        return jsonify({'error': 'Household not found'}), 404
    return jsonify(household.to_dict(embed=True)), 200


@households_bp.route('', methods=['POST'])
def create_household():
    try:
        data = request.get_json(silent=True) or {}
        head_uid = str(data.get('headOfHousehold') or '').strip()
        if not head_uid:
            return jsonify({'error': 'Head of household is required'}), 400

        member_uids = _member_ids(data)
        if head_uid in member_uids:
            return jsonify({'error': 'The head of household cannot also be listed as a member'}), 400

        head = _resident_by_unique_id(head_uid)
        _ensure_free(head, is_head=True)
        members = [_resident_by_unique_id(uid) for uid in member_uids]
        for member in members:
            _ensure_free(member)

        household = Household(
            household_id=next_household_id(),
            head_id=head.id,
            contact_number=clean_contact_number(data.get('contactNumber')),
            address=sanitize_string(data.get('address'), upper=True) or head.address,
            notes=sanitize_string(data.get('notes')),
        )
        db.session.add(household)
        head.role = 'head'
        for member in members:
            household.memberships.append(HouseholdMember(resident_id=member.id))
            member.role = 'member'
        db.session.flush()

        log_current_admin_action(
            AuditAction.HOUSEHOLD_CREATED,
            entity_type='household',
            entity_id=household.household_id,
            details={'head': head.unique_id, 'members': member_uids},
            commit=False,
        )
        db.session.commit()

        current_app.logger.info("Household created: %s", household.household_id)
        return jsonify(household.to_dict(embed=True)), 201

    except _Conflict as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error creating household: %s", e)
        return jsonify({'error': 'Failed to create household', 'details': str(e)}), 500


@households_bp.route('/<household_id>', methods=['PUT'])
def update_household(household_id):
    """Update head, members and details; roles follow the new membership."""
    try:
        household = _get_household(household_id)
        if not household:
            return jsonify({'error': 'Household not found'}), 404

        data = request.get_json(silent=True) or {}
        old_head = household.head
        head_uid = str(data.get('headOfHousehold') or (old_head.unique_id if old_head else '')).strip()
        new_head = _resident_by_unique_id(head_uid)
        if new_head.id != household.head_id:
            _ensure_free(new_head, household, is_head=True)

        if 'members' in data:
            member_uids = _member_ids(data)
        else:
            member_uids = [r.unique_id for r in household.members]
        member_uids = [uid for uid in member_uids if uid != new_head.unique_id]

        current_ids = {m.resident_id for m in household.memberships}
        new_members = [_resident_by_unique_id(uid) for uid in member_uids]
        for member in new_members:
            if member.id not in current_ids and member.id != household.head_id:
                _ensure_free(member, household)

        new_member_ids = {m.id for m in new_members}

        # Head change: old head loses the role unless kept as a member
        if old_head is not None and old_head.id != new_head.id:
            old_head.role = 'member' if old_head.id in new_member_ids else None
        household.head_id = new_head.id
        household.head = new_head
        new_head.role = 'head'

        removed = []
        for membership in list(household.memberships):
            if membership.resident_id not in new_member_ids:
                if membership.resident and membership.resident_id != new_head.id:
                    membership.resident.role = None
                removed.append(membership.resident.unique_id if membership.resident else membership.resident_id)
                household.memberships.remove(membership)
        # Release unique membership rows before re-adding
        db.session.flush()

        added = []
        kept_ids = {m.resident_id for m in household.memberships}
        for member in new_members:
            member.role = 'member'
            if member.id not in kept_ids:
                household.memberships.append(HouseholdMember(resident_id=member.id))
                added.append(member.unique_id)

        if 'contactNumber' in data:
            household.contact_number = clean_contact_number(data.get('contactNumber'))
        if 'address' in data:
            household.address = sanitize_string(data.get('address'), upper=True)
        if 'notes' in data:
            household.notes = sanitize_string(data.get('notes'))
        household.updated_at = utc_now()

        log_current_admin_action(
            AuditAction.HOUSEHOLD_UPDATED,
            entity_type='household',
            entity_id=household.household_id,
            details={'head': new_head.unique_id, 'added': added, 'removed': removed},
            commit=False,
        )
        db.session.commit()
        return jsonify(household.to_dict(embed=True)), 200

    except _Conflict as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error updating household %s: %s", household_id, e)
        return jsonify({'error': 'Failed to update household', 'details': str(e)}), 500


@households_bp.route('/<household_id>', methods=['DELETE'])
def delete_household(household_id):
    try:
        household = _get_household(household_id)
        if not household:
            return jsonify({'error': 'Household not found'}), 404

        clear_household_roles(household)
        db.session.delete(household)
        log_current_admin_action(
            AuditAction.HOUSEHOLD_DELETED,
            entity_type='household',
            entity_id=household_id,
            commit=False,
        )
        db.session.commit()
        return jsonify({'message': 'Household deleted successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error deleting household %s: %s", household_id, e)
        return jsonify({'error': 'Failed to delete household', 'details': str(e)}), 500
