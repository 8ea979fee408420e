"""Generic admin file upload (JPEG, PNG or PDF up to 5 MB)."""
from flask import Blueprint, jsonify, request, current_app
from werkzeug.utils import secure_filename

from apps.bsphere import limiter
from apps.bsphere.utils.auth import admin_required
from apps.bsphere.utils.storage_handler import save_file, StorageError


uploads_bp = Blueprint('uploads', __name__, url_prefix='/api/upload')

UPLOAD_EXTENSIONS = {'jpg', 'jpeg', 'png', 'pdf'}
UPLOAD_MIMES = {'image/jpeg', 'image/png', 'application/pdf'}
UPLOAD_MAX_MB = 5


def _limit(limit_string):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


def _clean_folder(folder_path: str) -> str:
    """'residents/../x' -> 'residents/x'; each segment is made filesystem safe."""
    segments = [secure_filename(part) for part in str(folder_path or '').replace('\\', '/').split('/')]
    return '/'.join(s for s in segments if s and s not in ('.', '..'))


@uploads_bp.route('', methods=['POST'])
@admin_required
@_limit("60 per hour")
def upload_file():
    try:
        file = request.files.get('file')
        folder = _clean_folder(request.form.get('folderPath'))
        unique_id = secure_filename(request.form.get('uniqueId') or '')

        if not file or not folder or not unique_id:
            return jsonify({'error': 'Missing required fields'}), 400

        stored = save_file(
            file,
            folder,
            UPLOAD_EXTENSIONS,
            max_size_mb=UPLOAD_MAX_MB,
            owner=unique_id,
            allowed_mimes=UPLOAD_MIMES,
        )
        current_app.logger.info("Uploaded %s", stored.path)
        return jsonify({'url': stored.url, 'path': stored.path}), 200

    except StorageError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error("Error uploading file: %s", e)
        return jsonify({'error': 'Failed to upload file', 'details': str(e)}), 500
