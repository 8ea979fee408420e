"""Report export routes (Excel and PDF).

The dashboard posts the rows it is showing; when it sends neither
``residents`` nor ``complaints``, ``?type=`` exports the whole table.
"""
from io import BytesIO

from flask import Blueprint, jsonify, request, current_app, send_file

from apps.bsphere import limiter
from apps.bsphere.models.complaint import Complaint
from apps.bsphere.models.resident import Resident
from apps.bsphere.utils.auth import check_admin_request
from apps.bsphere.utils.reports import build_export_workbook, build_export_pdf, XLSX_MIMETYPE
from apps.bsphere.utils.validators import ValidationError


exports_bp = Blueprint('exports', __name__, url_prefix='/api/export')

EXPORT_KINDS = ('residents', 'complaints')


def _limit(limit_string):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


@exports_bp.before_request
def enforce_admin():
    return check_admin_request()


def _export_rows():
    """Return ``(kind, rows)`` from the request body or the database."""
    body = request.get_json(silent=True) or {}
    if isinstance(body.get('residents'), list):
        return 'residents', body['residents']
    if isinstance(body.get('complaints'), list):
        return 'complaints', body['complaints']

    kind = (request.args.get('type') or body.get('type') or '').strip().lower()
    if kind not in EXPORT_KINDS:
        raise ValidationError('type', 'Provide residents or complaints to export')
    if kind == 'residents':
        return kind, [r.to_dict() for r in Resident.query.order_by(Resident.unique_id.asc()).all()]
    return kind, [c.to_dict() for c in Complaint.query.order_by(Complaint.date_filed.desc()).all()]


@exports_bp.route('/excel', methods=['POST'])
@_limit("30 per hour")
def export_excel():
    try:
        kind, rows = _export_rows()
        content = build_export_workbook(rows, kind)
        current_app.logger.info("Excel export: %s (%d rows)", kind, len(rows))
        return send_file(
            BytesIO(content),
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=f'{kind}-report.xlsx',
        )
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error("Error generating Excel export: %s", e)
        return jsonify({'error': 'Failed to generate Excel file', 'details': str(e)}), 500


@exports_bp.route('/pdf', methods=['POST'])
@_limit("30 per hour")
def export_pdf():
    try:
        kind, rows = _export_rows()
        content = build_export_pdf(rows, kind)
        current_app.logger.info("PDF export: %s (%d rows)", kind, len(rows))
        return send_file(
            BytesIO(content),
            mimetype='application/pdf',
            as_attachment=True,
            download_name=f'{kind}-report.pdf',
        )
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error("Error generating PDF export: %s", e)
        return jsonify({'error': 'Failed to generate PDF', 'details': str(e)}), 500
