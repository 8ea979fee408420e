"""
B-Sphere - Resident Routes
Resident registry: listing/filters, creation (single, batch and Excel upload),
updates, search, household status and supporting documents.

All routes require an admin token.
"""
from datetime import date
from io import BytesIO

from flask import Blueprint, request, jsonify, current_app, send_file
from sqlalchemy import false, or_, func

from apps.bsphere import db, limiter
from apps.bsphere.models.audit import AuditAction
from apps.bsphere.models.resident import Resident, ResidentDocument
from apps.bsphere.utils.admin_audit import log_current_admin_action
from apps.bsphere.utils.auth import check_admin_request
from apps.bsphere.utils.batch_import import parse_resident_workbook, WorkbookError
from apps.bsphere.utils.household_membership import find_household_for, detach_resident
from apps.bsphere.utils.identity import (
    check_duplicate_residents,
    generate_identity_keys,
    next_resident_id,
    resident_id_sequence,
    validate_duplicate_check,
)
from apps.bsphere.utils.reports import build_resident_template, XLSX_MIMETYPE
from apps.bsphere.utils.storage_handler import save_file, delete_file, StorageError
from apps.bsphere.utils.time import utc_now, utc_today
from apps.bsphere.utils.validators import (
    ALLOWED_DOCUMENT_EXTENSIONS,
    ALLOWED_SPREADSHEET_EXTENSIONS,
    ValidationError,
    clean_contact_number,
    parse_birthdate,
    parse_bool,
    sanitize_string,
    validate_file_extension,
    validate_required_fields,
)


residents_bp = Blueprint('residents', __name__, url_prefix='/api/residents')

REQUIRED_FIELDS = [
    'firstName', 'lastName', 'birthdate', 'maritalStatus', 'gender',
    'voterStatus', 'address', 'birthplace', 'citizenship',
]

PROGRAM_COLUMNS = {
    'PWD': Resident.is_pwd,
    '4Ps': Resident.is_4ps,
    'TUPAD': Resident.is_tupad,
    'Solo Parent': Resident.is_solo_parent,
}


def _limit(limit_string):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


@residents_bp.before_request
def enforce_admin():
    """Middleware: require an admin JWT for every /api/residents route."""
    return check_admin_request()


def _get_resident(identifier):
    """Look a resident up by numeric key or SF unique ID."""
    identifier = str(identifier or '').strip()
    if identifier.isdigit():
        resident = db.session.get(Resident, int(identifier))
        if resident:
            return resident
    return Resident.query.filter_by(unique_id=identifier).first()


def _years_ago(years: int, today: date = None) -> str:
    today = today or utc_today()
    try:
        cutoff = today.replace(year=today.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        cutoff = today.replace(year=today.year - years, day=28)
    return cutoff.isoformat()


def _normalize_address(value):
    """Join an address object as 'street, barangay, city, province, zipCode'."""
    if isinstance(value, dict):
        parts = [
            str(value.get(key)).strip()
            for key in ('street', 'barangay', 'city', 'province', 'zipCode')
            if value.get(key) and str(value.get(key)).strip()
        ]
        return ', '.join(parts).upper() if parts else None
    return sanitize_string(value, upper=True)


def _build_resident(payload: dict, unique_id: str) -> Resident:
    """New approved resident from a camelCase payload (names uppercased, email kept)."""
    first_name = sanitize_string(payload.get('firstName'), upper=True)
    middle_name = sanitize_string(payload.get('middleName'), upper=True)
    last_name = sanitize_string(payload.get('lastName'), upper=True)
    birthdate = parse_birthdate(payload.get('birthdate')).isoformat()
    keys = generate_identity_keys(first_name, last_name, middle_name, birthdate)

    return Resident(
        unique_id=unique_id,
        first_name=first_name,
        middle_name=middle_name,
        last_name=last_name,
        suffix=sanitize_string(payload.get('suffix'), upper=True),
        address=_normalize_address(payload.get('address')),
        birthdate=birthdate,
        birthplace=sanitize_string(payload.get('birthplace'), upper=True),
        citizenship=sanitize_string(payload.get('citizenship'), upper=True),
        marital_status=sanitize_string(payload.get('maritalStatus')),
        gender=sanitize_string(payload.get('gender')),
        voter_status=sanitize_string(payload.get('voterStatus')),
        employment_status=sanitize_string(payload.get('employmentStatus')),
        educational_attainment=sanitize_string(payload.get('educationalAttainment')),
        occupation=sanitize_string(payload.get('occupation'), upper=True),
        contact_number=clean_contact_number(payload.get('contactNumber')),
        email=sanitize_string(payload.get('email')),
        is_tupad=parse_bool(payload.get('isTUPAD')),
        is_pwd=parse_bool(payload.get('isPWD')),
        is_4ps=parse_bool(payload.get('is4Ps')),
        is_solo_parent=parse_bool(payload.get('isSoloParent')),
        role='resident',
        account_status='approved',
        uploaded_files=[],
        identity_key=keys['identity_key'],
        full_name_key=keys['full_name_key'],
    )


def _create_batch(rows):
    """Insert residents with consecutive SF ids; the caller commits."""
    for index, row in enumerate(rows, start=1):
        if not (row.get('firstName') and row.get('lastName') and row.get('birthdate')):
            raise ValidationError('batch', f'Entry {index}: firstName, lastName and birthdate are required')

    created = []
    for unique_id, row in zip(resident_id_sequence(len(rows)), rows):
        resident = _build_resident(row, unique_id)
        db.session.add(resident)
        created.append(resident)
    db.session.flush()
    return created


@residents_bp.route('', methods=['GET'])
def list_residents():
    """Paginated, filtered resident list ordered by unique ID."""
    try:
        page = max(request.args.get('page', 1, type=int) or 1, 1)
        page_size = min(max(request.args.get('pageSize', 10, type=int) or 10, 1), 500)
        search = (request.args.get('search') or '').strip()
        age_range = (request.args.get('ageRange') or '').strip()
        gender = (request.args.get('gender') or '').strip()
        voter_status = (request.args.get('voterStatus') or '').strip()
        marital_status = (request.args.get('maritalStatus') or '').strip()
        programs = (request.args.get('programs') or '').strip()

        query = Resident.query

        if search:
            like = f'%{search}%'
            full_name = (
                func.coalesce(Resident.first_name, '') + ' '
                + func.coalesce(Resident.middle_name, '') + ' '
                + func.coalesce(Resident.last_name, '')
            )
            query = query.filter(or_(
                full_name.ilike(like),
                Resident.address.ilike(like),
                Resident.unique_id.ilike(like),
                Resident.email.ilike(like),
                Resident.occupation.ilike(like),
                Resident.birthplace.ilike(like),
                Resident.citizenship.ilike(like),
            ))

        # Birthdates are ISO strings, so age bounds compare lexically
        if age_range == '0-17':
            query = query.filter(Resident.birthdate > _years_ago(18))
        elif age_range == '18-59':
            query = query.filter(Resident.birthdate <= _years_ago(18), Resident.birthdate > _years_ago(60))
        elif age_range == '60+':
            query = query.filter(Resident.birthdate <= _years_ago(60))

        if gender:
            query = query.filter(Resident.gender == gender)
        if voter_status:
            query = query.filter(Resident.voter_status == voter_status)
        if marital_status:
            query = query.filter(Resident.marital_status == marital_status)

        if programs:
            flags = [PROGRAM_COLUMNS[p.strip()] for p in programs.split(',') if p.strip() in PROGRAM_COLUMNS]
            query = query.filter(or_(*[flag.is_(True) for flag in flags])) if flags else query.filter(false())

        total = query.count()
        residents = (
            query.order_by(Resident.unique_id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return jsonify({
            'data': [r.to_dict() for r in residents],
            'total': total,
            'page': page,
            'pageSize': page_size,
            'hasFilters': bool(search or age_range or gender or voter_status or marital_status or programs),
        }), 200

    except Exception as e:
        current_app.logger.error("Error fetching residents: %s", e)
        return jsonify({'error': 'Failed to fetch residents', 'details': str(e)}), 500


@residents_bp.route('', methods=['POST'])
def create_resident():
    """Create one resident, or many with ``{"batch": [...]}``."""
    try:
        data = request.get_json(silent=True) or {}

        if isinstance(data.get('batch'), list):
            created = _create_batch(data['batch'])
            log_current_admin_action(
                AuditAction.RESIDENTS_IMPORTED,
                entity_type='resident',
                details={'count': len(created), 'source': 'batch'},
                commit=False,
            )
            db.session.commit()
            return jsonify([r.to_dict() for r in created]), 201

        validate_required_fields(data, REQUIRED_FIELDS, message='Missing required fields')

        first_name = sanitize_string(data.get('firstName'), upper=True)
        last_name = sanitize_string(data.get('lastName'), upper=True)
        birthdate = parse_birthdate(data.get('birthdate')).isoformat()

        existing = Resident.query.filter_by(first_name=first_name, last_name=last_name, birthdate=birthdate).first()
        if existing:
            return jsonify({
                'error': 'Duplicate resident found',
                'details': {
                    'firstName': existing.first_name,
                    'middleName': existing.middle_name,
                    'lastName': existing.last_name,
                    'birthdate': existing.birthdate,
                },
            }), 409

        resident = _build_resident(data, next_resident_id())
        db.session.add(resident)
        db.session.flush()
        log_current_admin_action(
            AuditAction.RESIDENT_CREATED,
            entity_type='resident',
            entity_id=resident.unique_id,
            details={'name': resident.full_name},
            commit=False,
        )
        db.session.commit()

        current_app.logger.info("Resident created: %s", resident.unique_id)
        return jsonify(resident.to_dict()), 201

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error creating resident: %s", e)
        return jsonify({'error': 'Failed to create resident', 'details': str(e)}), 500


@residents_bp.route('/<identifier>', methods=['GET'])
def get_resident(identifier):
    resident = _get_resident(identifier)
    if not resident:
        return jsonify({'error': 'Resident not found'}), 404
    return jsonify(resident.to_dict()), 200


# camelCase payload key -> (column, uppercase)
_UPDATABLE_FIELDS = {
    'firstName': ('first_name', True),
    'middleName': ('middle_name', True),
    'lastName': ('last_name', True),
    'suffix': ('suffix', True),
    'birthplace': ('birthplace', True),
    'citizenship': ('citizenship', True),
    'occupation': ('occupation', True),
    'maritalStatus': ('marital_status', False),
    'gender': ('gender', False),
    'voterStatus': ('voter_status', False),
    'employmentStatus': ('employment_status', False),
    'educationalAttainment': ('educational_attainment', False),
    'email': ('email', False),
    'accountStatus': ('account_status', False),
}

_PROGRAM_FIELDS = {
    'isTUPAD': 'is_tupad',
    'isPWD': 'is_pwd',
    'is4Ps': 'is_4ps',
    'isSoloParent': 'is_solo_parent',
}


@residents_bp.route('/<identifier>', methods=['PUT'])
def update_resident(identifier):
    """Update a resident; identity keys are re-checked and recomputed."""
    try:
        resident = _get_resident(identifier)
        if not resident:
            return jsonify({'error': 'Resident not found'}), 404

        data = request.get_json(silent=True) or {}
        changed = []

        for key, (column, upper) in _UPDATABLE_FIELDS.items():
            if key in data:
                setattr(resident, column, sanitize_string(data.get(key), upper=upper))
                changed.append(key)

        for key, column in _PROGRAM_FIELDS.items():
            if key in data:
                setattr(resident, column, parse_bool(data.get(key)))
                changed.append(key)

        if 'address' in data:
            address = _normalize_address(data.get('address'))
            if address:
                resident.address = address
                changed.append('address')

        contact = data.get('contactNumber', data.get('phone'))
        if contact is not None:
            resident.contact_number = clean_contact_number(contact)
            changed.append('contactNumber')

        if data.get('birthdate'):
            resident.birthdate = parse_birthdate(data.get('birthdate')).isoformat()
            changed.append('birthdate')

        if not resident.first_name or not resident.last_name:
            raise ValidationError('name', 'First name and last name are required')

        if {'firstName', 'middleName', 'lastName', 'birthdate'} & set(changed):
            duplicates = check_duplicate_residents(
                resident.first_name,
                resident.last_name,
                resident.middle_name,
                resident.birthdate,
                exclude_id=resident.id,
            )
            if duplicates['hasExactDuplicate']:
                _, message = validate_duplicate_check(duplicates)
                db.session.rollback()
                return jsonify({'error': message}), 409
            resident.identity_key = duplicates['identity_key']
            resident.full_name_key = duplicates['full_name_key']

        resident.updated_at = utc_now()
        log_current_admin_action(
            AuditAction.RESIDENT_UPDATED,
            entity_type='resident',
            entity_id=resident.unique_id,
            details={'fields': changed},
            commit=False,
        )
        db.session.commit()
        return jsonify(resident.to_dict()), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error updating resident %s: %s", identifier, e)
        return jsonify({'error': 'Failed to update resident', 'details': str(e)}), 500


@residents_bp.route('/<identifier>', methods=['DELETE'])
def delete_resident(identifier):
    """Delete a resident after taking them out of their household."""
    try:
        resident = _get_resident(identifier)
        if not resident:
            return jsonify({'error': 'Resident not found'}), 404

        unique_id = resident.unique_id
        household_id, role = detach_resident(resident)
        if resident.official is not None:
            db.session.delete(resident.official)

        db.session.delete(resident)
        log_current_admin_action(
            AuditAction.RESIDENT_DELETED,
            entity_type='resident',
            entity_id=unique_id,
            details={'householdId': household_id, 'householdRole': role},
            commit=False,
        )
        db.session.commit()
        return jsonify({'message': 'Resident deleted successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error deleting resident %s: %s", identifier, e)
        return jsonify({'error': 'Failed to delete resident', 'details': str(e)}), 500


@residents_bp.route('/search', methods=['GET'])
def search_residents():
    """Field search (uniqueId, names, birthdate) or keyword ``q``."""
    try:
        keyword = (request.args.get('q') or '').strip()
        fields = {
            'uniqueId': Resident.unique_id,
            'firstName': Resident.first_name,
            'middleName': Resident.middle_name,
            'lastName': Resident.last_name,
        }
        params = {k: (request.args.get(k) or '').strip() for k in list(fields) + ['birthdate']}

        query = Resident.query.order_by(Resident.last_name.asc(), Resident.first_name.asc())

        if any(params.values()):
            for key, column in fields.items():
                if params[key]:
                    query = query.filter(column.ilike(f"%{params[key]}%"))
            if params['birthdate']:
                query = query.filter(Resident.birthdate == params['birthdate'][:10])
            residents = query.all()
        elif keyword:
            like = f'%{keyword}%'
            residents = query.filter(or_(
                Resident.first_name.ilike(like),
                Resident.middle_name.ilike(like),
                Resident.last_name.ilike(like),
                Resident.suffix.ilike(like),
                Resident.unique_id.ilike(like),
                Resident.address.ilike(like),
            )).all()
        else:
            residents = query.limit(50).all()

        return jsonify({
            'residents': [r.to_dict() for r in residents],
            'total': len(residents),
        }), 200

    except Exception as e:
        current_app.logger.error("Error searching residents: %s", e)
        return jsonify({'error': 'Failed to search residents', 'details': str(e)}), 500


@residents_bp.route('/household-status', methods=['GET'])
def household_status():
    unique_id = (request.args.get('uniqueId') or '').strip()
    if not unique_id:
        return jsonify({'error': 'uniqueId is required'}), 400

    resident = Resident.query.filter_by(unique_id=unique_id).first()
    household, role = find_household_for(resident)
    if household is None:
        return jsonify({
            'isInHousehold': False,
            'role': None,
            'householdId': None,
            'householdData': None,
        }), 200

    return jsonify({
        'isInHousehold': True,
        'role': role,
        'householdId': household.household_id,
        'householdData': household.to_dict(embed=False),
    }), 200


@residents_bp.route('/batch-upload', methods=['POST'])
@_limit("10 per hour")
def batch_upload():
    """Create residents from a filled-in template workbook.

    Every row is validated first; a single bad row rejects the whole file.
    """
    try:
        upload = request.files.get('file')
        if not upload or not upload.filename:
            return jsonify({'error': 'No file provided'}), 400
        try:
            validate_file_extension(upload.filename, ALLOWED_SPREADSHEET_EXTENSIONS)
        except ValidationError:
            return jsonify({'error': 'Please upload an Excel file (.xlsx)'}), 400

        try:
            rows, errors = parse_resident_workbook(upload.read())
        except WorkbookError as e:
            return jsonify({'error': str(e)}), 400

        if errors:
            return jsonify({
                'error': 'Validation errors found',
                'details': errors,
                'processed': 0,
                'total': len(rows) + len(errors),
            }), 400

        if not rows:
            return jsonify({'error': 'No valid data found in the Excel file'}), 400

        created = _create_batch(rows)
        log_current_admin_action(
            AuditAction.RESIDENTS_IMPORTED,
            entity_type='resident',
            details={'count': len(created), 'source': 'excel', 'filename': upload.filename},
            commit=False,
        )
        db.session.commit()

        current_app.logger.info("Batch upload created %d residents", len(created))
        return jsonify({
            'success': True,
            'message': f'Successfully uploaded {len(created)} residents',
            'count': len(created),
            'residents': [r.to_dict() for r in created],
        }), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Batch upload error: %s", e)
        return jsonify({'error': 'Failed to process batch upload', 'details': str(e)}), 500


@residents_bp.route('/template', methods=['GET'])
def download_template():
    content = build_resident_template()
    return send_file(
        BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name='residents-template.xlsx',
    )


@residents_bp.route('/<identifier>/documents', methods=['GET'])
def list_documents(identifier):
    resident = _get_resident(identifier)
    if not resident:
        return jsonify({'error': 'Resident not found'}), 404
    documents = resident.documents.order_by(ResidentDocument.created_at.desc()).all()
    return jsonify({'documents': [d.to_dict() for d in documents]}), 200


@residents_bp.route('/<identifier>/documents', methods=['POST'])
@_limit("30 per hour")
def upload_document(identifier):
    """Attach a supporting file; ``type=photo`` also becomes the resident photo."""
    try:
        resident = _get_resident(identifier)
        if not resident:
            return jsonify({'error': 'Resident not found'}), 404

        upload = request.files.get('file')
        doc_type = (request.form.get('type') or '').strip()
        if not upload or not doc_type:
            return jsonify({'error': 'Missing required fields'}), 400

        folder = 'photos' if doc_type == 'photo' else 'residents'
        try:
            stored = save_file(
                upload,
                folder,
                ALLOWED_DOCUMENT_EXTENSIONS,
                max_size_mb=int(current_app.config.get('RESIDENT_FILE_MAX_MB', 5)),
                owner=resident.unique_id,
            )
        except StorageError as e:
            return jsonify({'error': str(e)}), 400

        document = ResidentDocument(
            resident_id=resident.id,
            name=upload.filename,
            type=doc_type,
            url=stored.url,
            path=stored.path,
        )
        db.session.add(document)
        if doc_type == 'photo':
            resident.photo = stored.url
        db.session.commit()

        return jsonify(document.to_dict()), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error uploading resident document: %s", e)
        return jsonify({'error': 'Failed to upload document', 'details': str(e)}), 500


@residents_bp.route('/<identifier>/documents/<int:document_id>', methods=['DELETE'])
def delete_document(identifier, document_id):
    try:
        resident = _get_resident(identifier)
        document = db.session.get(ResidentDocument, document_id)
        if not resident or not document or document.resident_id != resident.id:
            return jsonify({'error': 'Document not found'}), 404

        if document.type == 'photo' and resident.photo == document.url:
            resident.photo = None
        storage_path = document.path
        db.session.delete(document)
        db.session.commit()

        if storage_path and not delete_file(storage_path):
            current_app.logger.warning("Stored file already missing: %s", storage_path)
        return jsonify({'message': 'Document deleted successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error deleting resident document: %s", e)
        return jsonify({'error': 'Failed to delete document', 'details': str(e)}), 500
