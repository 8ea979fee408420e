"""Announcement routes.

Anyone may read announcements; creating, editing, deleting and the
scheduled publish/archive run need an admin token.
"""
from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import get_jwt
from werkzeug.utils import secure_filename

from apps.bsphere import db, limiter
from apps.bsphere.models.announcement import Announcement, ANNOUNCEMENT_STATUSES
from apps.bsphere.models.audit import AuditAction
from apps.bsphere.utils.admin_audit import log_current_admin_action
from apps.bsphere.utils.announcement_schedule import auto_manage_announcements
from apps.bsphere.utils.auth import admin_required
from apps.bsphere.utils.storage_handler import save_file, StorageError
from apps.bsphere.utils.time import parse_datetime
from apps.bsphere.utils.validators import (
    ALLOWED_IMAGE_EXTENSIONS,
    ValidationError,
    parse_bool,
    validate_required_fields,
)


announcements_bp = Blueprint('announcements', __name__, url_prefix='/api/announcements')

DEFAULT_LIMIT = 10


def _limit(limit_string):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


def _parse_schedule(value, field):
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(field, f'Invalid date for {field}')


def _parse_status(value):
    status = str(value or 'draft').strip().lower()
    if status not in ANNOUNCEMENT_STATUSES:
        raise ValidationError('status', f"Status must be one of: {', '.join(ANNOUNCEMENT_STATUSES)}")
    return status


def _brief(announcement):
    return {
        'id': announcement.id,
        'title': announcement.title,
        'autoPublishDate': announcement.auto_publish_date.isoformat() if announcement.auto_publish_date else None,
        'autoArchiveDate': announcement.auto_archive_date.isoformat() if announcement.auto_archive_date else None,
    }


@announcements_bp.route('', methods=['GET'])
def list_announcements():
    """Newest first, optionally filtered by status; ``limit`` defaults to 10."""
    try:
        query = Announcement.query
        status = (request.args.get('status') or '').strip().lower()
        if status:
            query = query.filter(Announcement.status == status)

        try:
            limit = int(request.args.get('limit') or DEFAULT_LIMIT)
        except ValueError:
            limit = DEFAULT_LIMIT
        limit = max(1, limit)

        total = query.count()
        items = query.order_by(Announcement.created_at.desc(), Announcement.id.desc()).limit(limit).all()
        return jsonify({
            'success': True,
            'data': [a.to_dict() for a in items],
            'total': total,
        }), 200
    except Exception as e:
        current_app.logger.error("Error fetching announcements: %s", e)
        return jsonify({'success': False, 'error': 'Failed to fetch announcements', 'details': str(e)}), 500


@announcements_bp.route('', methods=['POST'])
@admin_required
def create_announcement():
    try:
        data = request.get_json(silent=True) or {}
        validate_required_fields(
            data, ['title', 'description', 'category'],
            'Title, description, and category are required',
        )

        announcement = Announcement(
            title=str(data['title']).strip(),
            description=str(data['description']).strip(),
            category=str(data['category']).strip(),
            status=_parse_status(data.get('status')),
            color=(data.get('color') or 'blue').strip(),
            image_url=data.get('imageUrl') or None,
            auto_publish_date=_parse_schedule(data.get('autoPublishDate'), 'autoPublishDate'),
            auto_archive_date=_parse_schedule(data.get('autoArchiveDate'), 'autoArchiveDate'),
            views=0,
            is_active=True,
            created_by=(get_jwt() or {}).get('email') or 'admin',
        )
        if announcement.status == 'published':
            announcement.publish()

        db.session.add(announcement)
        db.session.flush()
        log_current_admin_action(
            AuditAction.ANNOUNCEMENT_CREATED,
            entity_type='announcement',
            entity_id=announcement.id,
            details={'title': announcement.title, 'status': announcement.status},
            commit=False,
        )
        db.session.commit()

        return jsonify({
            'success': True,
            'data': announcement.to_dict(),
            'message': 'Announcement created successfully',
        }), 201

    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error creating announcement: %s", e)
        return jsonify({'success': False, 'error': 'Failed to create announcement', 'details': str(e)}), 500


@announcements_bp.route('/<int:announcement_id>', methods=['GET'])
def get_announcement(announcement_id):
    announcement = db.session.get(Announcement, announcement_id)
    if not announcement:
        return jsonify({'success': False, 'error': 'Announcement not found'}), 404
    return jsonify({'success': True, 'data': announcement.to_dict()}), 200


@announcements_bp.route('/<int:announcement_id>', methods=['PUT'])
@admin_required
def update_announcement(announcement_id):
    try:
        announcement = db.session.get(Announcement, announcement_id)
        if not announcement:
            return jsonify({'success': False, 'error': 'Announcement not found'}), 404

        data = request.get_json(silent=True) or {}
        validate_required_fields(
            data, ['title', 'description', 'category'],
            'Title, description, and category are required',
        )

        previous_status = announcement.status
        announcement.title = str(data['title']).strip()
        announcement.description = str(data['description']).strip()
        announcement.category = str(data['category']).strip()
        if 'color' in data:
            announcement.color = (data.get('color') or 'blue').strip()
        if 'imageUrl' in data:
            announcement.image_url = data.get('imageUrl') or None
        if 'autoPublishDate' in data:
            announcement.auto_publish_date = _parse_schedule(data.get('autoPublishDate'), 'autoPublishDate')
        if 'autoArchiveDate' in data:
            announcement.auto_archive_date = _parse_schedule(data.get('autoArchiveDate'), 'autoArchiveDate')
        if 'isActive' in data:
            announcement.is_active = parse_bool(data.get('isActive'), default=True)
        if 'status' in data:
            status = _parse_status(data.get('status'))
            if status != previous_status:
                if status == 'published':
                    announcement.publish()
                elif status == 'archived':
                    announcement.archive()
                else:
                    announcement.status = status

        log_current_admin_action(
            AuditAction.ANNOUNCEMENT_EDITED,
            entity_type='announcement',
            entity_id=announcement.id,
            details={'title': announcement.title, 'status': announcement.status},
            commit=False,
        )
        db.session.commit()

        return jsonify({
            'success': True,
            'data': announcement.to_dict(),
            'message': 'Announcement updated successfully',
        }), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error updating announcement %s: %s", announcement_id, e)
        return jsonify({'success': False, 'error': 'Failed to update announcement', 'details': str(e)}), 500


@announcements_bp.route('/<int:announcement_id>', methods=['DELETE'])
@admin_required
def delete_announcement(announcement_id):
    try:
        announcement = db.session.get(Announcement, announcement_id)
        if not announcement:
            return jsonify({'success': False, 'error': 'Announcement not found'}), 404

        title = announcement.title
        db.session.delete(announcement)
        log_current_admin_action(
            AuditAction.ANNOUNCEMENT_DELETED,
            entity_type='announcement',
            entity_id=announcement_id,
            details={'title': title},
            commit=False,
        )
        db.session.commit()
        return jsonify({'success': True, 'message': 'Announcement deleted successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error deleting announcement %s: %s", announcement_id, e)
        return jsonify({'success': False, 'error': 'Failed to delete announcement', 'details': str(e)}), 500


@announcements_bp.route('/<int:announcement_id>/increment-views', methods=['POST'])
@_limit("60 per minute")
def increment_views(announcement_id):
    try:
        announcement = db.session.get(Announcement, announcement_id)
        if not announcement:
            return jsonify({'success': False, 'error': 'Announcement not found'}), 404

        # Atomic increment in SQL
        Announcement.query.filter_by(id=announcement_id).update(
            {Announcement.views: Announcement.views + 1},
            synchronize_session=False,
        )
        db.session.commit()
        return jsonify({'success': True, 'message': 'Views incremented successfully'}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error incrementing views for %s: %s", announcement_id, e)
        return jsonify({'success': False, 'error': 'Failed to increment views', 'details': str(e)}), 500


@announcements_bp.route('/auto-manage', methods=['GET'])
@admin_required
def auto_manage_status():
    """Preview which announcements the next run would publish or archive."""
    try:
        due = auto_manage_announcements(apply=False)
        return jsonify({
            'success': True,
            'toPublish': len(due['published']),
            'toArchive': len(due['archived']),
            'publishList': [_brief(a) for a in due['published']],
            'archiveList': [_brief(a) for a in due['archived']],
        }), 200
    except Exception as e:
        current_app.logger.error("Error checking auto-management status: %s", e)
        return jsonify({'success': False, 'error': 'Failed to check auto-management status', 'details': str(e)}), 500


@announcements_bp.route('/auto-manage', methods=['POST'])
@admin_required
def auto_manage():
    try:
        result = auto_manage_announcements()
        published = len(result['published'])
        archived = len(result['archived'])
        if published or archived:
            log_current_admin_action(
                AuditAction.ANNOUNCEMENTS_AUTO_MANAGED,
                entity_type='announcement',
                details={
                    'published': [a.id for a in result['published']],
                    'archived': [a.id for a in result['archived']],
                },
            )
        return jsonify({
            'success': True,
            'published': published,
            'archived': archived,
            'message': f'Auto-managed {published} published and {archived} archived announcements',
        }), 200
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error auto-managing announcements: %s", e)
        return jsonify({'success': False, 'error': 'Failed to auto-manage announcements', 'details': str(e)}), 500


@announcements_bp.route('/upload', methods=['POST'])
@admin_required
@_limit("30 per hour")
def upload_announcement_image():
    """Store an announcement image (JPEG/PNG, 5 MB) and return its public URL."""
    try:
        file = request.files.get('file')
        if not file:
            return jsonify({'error': 'No file provided'}), 400

        owner = secure_filename(request.form.get('uniqueId') or '') or None
        stored = save_file(file, 'announcements', ALLOWED_IMAGE_EXTENSIONS, max_size_mb=5, owner=owner)
        return jsonify({
            'success': True,
            'url': stored.url,
            'path': stored.path,
            'fileName': stored.filename,
        }), 200

    except StorageError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error("Error uploading announcement image: %s", e)
        return jsonify({'error': 'Failed to upload image', 'details': str(e)}), 500
