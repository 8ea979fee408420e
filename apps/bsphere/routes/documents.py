"""Document request routes.

Residents file requests for barangay certificates, clearances, indigency
papers, IDs and business permits. Each request gets the next control number
for its type. Admins review requests and render the printable document.
"""
from io import BytesIO

from flask import Blueprint, jsonify, request, current_app, send_file

from apps.bsphere import db, limiter
from apps.bsphere.models.audit import AuditAction
from apps.bsphere.models.document import DocumentRequest, DOCUMENT_PREFIXES, BUSINESS_PERMIT
from apps.bsphere.models.resident import Resident
from apps.bsphere.utils.admin_audit import log_current_admin_action
from apps.bsphere.utils.auth import admin_required, get_current_admin
from apps.bsphere.utils.document_generator import generate_document, DocumentGenerationError
from apps.bsphere.utils.email_sender import send_document_status_email
from apps.bsphere.utils.identity import reserve_control_number, peek_control_number, peek_sequence
from apps.bsphere.utils.notifications import create_notification, notify_document_status
from apps.bsphere.utils.time import utc_now
from apps.bsphere.utils.validators import (
    ValidationError,
    clean_contact_number,
    sanitize_string,
    validate_required_fields,
)


document_requests_bp = Blueprint('document_requests', __name__, url_prefix='/api/document-requests')

REQUIRED_FIELDS = ['documentType', 'residentId', 'fullName', 'purpose']

# Status values accepted from the admin dashboard
STATUS_ALIASES = {
    'PENDING': 'pending',
    'APPROVED': 'approved',
    'REJECT': 'rejected',
    'REJECTED': 'rejected',
}


def _limit(limit_string):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


def _get_request(request_id):
    """Look a request up by control number or numeric key."""
    request_id = str(request_id or '').strip()
    doc = DocumentRequest.query.filter_by(control_id=request_id).first()
    if doc is None and request_id.isdigit():
        doc = db.session.get(DocumentRequest, int(request_id))
    return doc


def _render_payload(doc: DocumentRequest) -> dict:
    data = doc.to_dict()
    data['requestedAt'] = doc.requested_at
    data['issueDate'] = doc.issued_at or doc.requested_at
    return data


def _resident_email(doc: DocumentRequest):
    if doc.email:
        return doc.email
    resident = Resident.query.filter_by(unique_id=doc.resident_id).first()
    return resident.email if resident else None


def _document_response(content: bytes, mimetype: str, filename: str):
    return send_file(
        BytesIO(content),
        mimetype=mimetype,
        as_attachment=True,
        download_name=filename,
    )


@document_requests_bp.route('', methods=['POST'])
@_limit("20 per hour")
def create_document_request():
    """File a new request; the control number is reserved in the same transaction."""
    try:
        data = request.get_json(silent=True) or {}
        validate_required_fields(data, REQUIRED_FIELDS, 'Missing required fields')

        document_type = str(data.get('documentType')).strip()
        if document_type not in DOCUMENT_PREFIXES:
            return jsonify({'error': f'Invalid document type: {document_type}'}), 400

        control_id, sequence = reserve_control_number(document_type)
        doc = DocumentRequest(
            control_id=control_id,
            sequence=sequence,
            document_type=document_type,
            resident_id=str(data.get('residentId')).strip(),
            full_name=sanitize_string(data.get('fullName'), upper=True),
            purpose=sanitize_string(data.get('purpose'), upper=True),
            age=str(data['age']) if data.get('age') not in (None, '') else None,
            address=sanitize_string(data.get('address'), upper=True),
            contact_number=clean_contact_number(data.get('contactNumber')),
            email=sanitize_string(data.get('email')),
            status='pending',
        )
        if document_type == BUSINESS_PERMIT:
            doc.business_name = sanitize_string(data.get('businessName'), upper=True)
            doc.business_type = sanitize_string(data.get('businessType'), upper=True)
            doc.business_address = sanitize_string(data.get('businessAddress'), upper=True)
            doc.ctc_number = sanitize_string(data.get('ctcNumber'))
            doc.or_number = sanitize_string(data.get('orNumber'))
            doc.permit_no = sanitize_string(data.get('permitNo'))

        db.session.add(doc)
        create_notification(
            type='document_request',
            title=f'New {document_type} request',
            message=f'{doc.full_name} requested a {document_type} ({control_id}).',
            target_role='admin',
            data={'controlId': control_id, 'residentId': doc.resident_id},
        )
        db.session.commit()

        current_app.logger.info("Document request %s created for %s", control_id, doc.resident_id)
        return jsonify({
            'success': True,
            'requestId': control_id,
            'data': doc.to_dict(),
            'message': 'Document request created successfully',
        }), 201

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error creating document request: %s", e)
        return jsonify({'error': 'Failed to create document request', 'details': str(e)}), 500


@document_requests_bp.route('', methods=['GET'])
def list_document_requests():
    try:
        query = DocumentRequest.query
        status = (request.args.get('status') or '').strip()
        resident_id = (request.args.get('residentId') or '').strip()
        if status:
            query = query.filter(DocumentRequest.status == STATUS_ALIASES.get(status.upper(), status.lower()))
        if resident_id:
            query = query.filter(DocumentRequest.resident_id == resident_id)

        requests_ = query.order_by(DocumentRequest.requested_at.desc(), DocumentRequest.id.desc()).all()
        return jsonify({'data': [r.to_dict() for r in requests_]}), 200
    except Exception as e:
        current_app.logger.error("Error fetching document requests: %s", e)
        return jsonify({'error': 'Failed to fetch document requests', 'details': str(e)}), 500


@document_requests_bp.route('/<request_id>', methods=['GET'])
@admin_required
def get_document_request(request_id):
    doc = _get_request(request_id)
    if not doc:
        return jsonify({'error': 'Document not found'}), 404
    return jsonify({'success': True, 'data': doc.to_dict()}), 200


@document_requests_bp.route('/<request_id>', methods=['PUT'])
@admin_required
def update_document_request(request_id):
    """Change a request's status (PENDING, APPROVED or REJECT) and optionally its purpose."""
    try:
        data = request.get_json(silent=True) or {}
        raw_status = str(data.get('status') or '').strip()
        if not raw_status:
            return jsonify({'error': 'Status is required'}), 400
        status = STATUS_ALIASES.get(raw_status.upper())
        if status is None:
            return jsonify({'error': 'Invalid status value'}), 400

        doc = _get_request(request_id)
        if not doc:
            return jsonify({'error': 'Document not found'}), 404

        previous = doc.status
        doc.status = status
        if data.get('purpose'):
            doc.purpose = sanitize_string(data.get('purpose'), upper=True)
        if status == 'approved':
            doc.issued_at = utc_now()

        admin = get_current_admin()
        if admin:
            doc.processed_by = admin.id

        if status != previous:
            notify_document_status(doc)
        log_current_admin_action(
            AuditAction.DOCUMENT_STATUS_CHANGED,
            entity_type='document_request',
            entity_id=doc.control_id,
            details={'from': previous, 'to': status},
            commit=False,
        )
        db.session.commit()

        if status in ('approved', 'rejected') and status != previous:
            email = _resident_email(doc)
            if email:
                # Delivery failures are logged by the email helper
                send_document_status_email(
                    email,
                    doc.document_type,
                    doc.control_id,
                    approved=status == 'approved',
                    requested_at=doc.requested_at.strftime('%B %d, %Y') if doc.requested_at else None,
                )

        return jsonify({
            'success': True,
            'data': doc.to_dict(),
            'message': 'Document updated successfully',
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error updating document request %s: %s", request_id, e)
        return jsonify({'error': 'Failed to update document request', 'details': str(e)}), 500


@document_requests_bp.route('/<request_id>', methods=['DELETE'])
@admin_required
def delete_document_request(request_id):
    try:
        doc = _get_request(request_id)
        if not doc:
            return jsonify({'error': 'Document not found'}), 404

        control_id = doc.control_id
        db.session.delete(doc)
        log_current_admin_action(
            AuditAction.DOCUMENT_DELETED,
            entity_type='document_request',
            entity_id=control_id,
            commit=False,
        )
        db.session.commit()
        return jsonify({'success': True, 'message': 'Document deleted successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error deleting document request %s: %s", request_id, e)
        return jsonify({'error': 'Failed to delete document request', 'details': str(e)}), 500


@document_requests_bp.route('/<request_id>/generate', methods=['POST', 'GET'])
@admin_required
def generate_request_document(request_id):
    """Render the printable document (DOCX, or PDF with ?format=pdf)."""
    try:
        doc = _get_request(request_id)
        if not doc:
            return jsonify({'error': 'Document request not found'}), 404

        fmt = (request.args.get('format') or 'docx').lower()
        content, mimetype, filename = generate_document(
            doc.document_type,
            _render_payload(doc),
            doc.control_id,
            sequence=doc.sequence,
            fmt=fmt,
        )
        log_current_admin_action(
            AuditAction.DOCUMENT_GENERATED,
            entity_type='document_request',
            entity_id=doc.control_id,
            details={'format': fmt},
        )
        return _document_response(content, mimetype, filename)

    except DocumentGenerationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error("Error generating document %s: %s", request_id, e)
        return jsonify({'error': 'Failed to generate document', 'details': str(e)}), 500


@document_requests_bp.route('/<request_id>/preview', methods=['POST', 'GET'])
@admin_required
def preview_request_document(request_id):
    try:
        doc = _get_request(request_id)
        if not doc:
            return jsonify({'error': 'Document request not found'}), 404

        content, mimetype, filename = generate_document(
            doc.document_type,
            _render_payload(doc),
            doc.control_id,
            sequence=doc.sequence,
            fmt=(request.args.get('format') or 'docx').lower(),
            preview=True,
        )
        return _document_response(content, mimetype, filename)

    except DocumentGenerationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error("Error previewing document %s: %s", request_id, e)
        return jsonify({'error': 'Failed to generate preview', 'details': str(e)}), 500


@document_requests_bp.route('/preview', methods=['POST'])
@admin_required
def preview_unsaved_document():
    """Preview a document from form data without reserving a control number."""
    try:
        data = request.get_json(silent=True) or {}
        document_type = str(data.get('documentType') or '').strip()
        if not document_type:
            return jsonify({'error': 'Document type is required'}), 400
        if document_type not in DOCUMENT_PREFIXES:
            return jsonify({'error': f'Invalid document type: {document_type}'}), 400

        control_id = data.get('controlId') or peek_control_number(document_type)
        content, mimetype, filename = generate_document(
            document_type,
            data,
            control_id,
            sequence=peek_sequence(document_type),
            fmt=(request.args.get('format') or data.get('format') or 'docx').lower(),
            preview=True,
        )
        return _document_response(content, mimetype, filename)

    except DocumentGenerationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error("Error previewing unsaved document: %s", e)
        return jsonify({'error': 'Failed to generate preview', 'details': str(e)}), 500
