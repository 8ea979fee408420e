"""Notification inbox routes.

Admin notifications need an admin token. A resident's own inbox is read and
marked by passing ``residentId``, which limits the query to notifications
targeted at that resident.
"""
from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import func

from apps.bsphere import db
from apps.bsphere.models.notification import Notification
from apps.bsphere.utils.auth import check_admin_request, admin_required
from apps.bsphere.utils.notifications import create_notification, PRIORITIES
from apps.bsphere.utils.validators import ValidationError, parse_bool, validate_required_fields


notifications_bp = Blueprint('notifications', __name__, url_prefix='/api/notifications')

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def _int_arg(name, default, minimum=0, maximum=None):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    value = max(minimum, value)
    return min(value, maximum) if maximum else value


def _scoped_query(target_role, resident_id):
    """Base query for an inbox; None target role with no resident means all."""
    query = Notification.query
    if target_role == 'resident' or (resident_id and target_role != 'admin'):
        query = query.filter(
            Notification.target_role == 'resident',
            Notification.target_user_id == resident_id,
        )
    elif target_role == 'admin':
        query = query.filter(Notification.target_role == 'admin')
    return query


def _is_resident_scope(target_role, resident_id):
    return bool(resident_id) and target_role in (None, '', 'resident')


@notifications_bp.route('', methods=['GET'])
def list_notifications():
    """Paginated inbox with an unread count for the same filters."""
    target_role = (request.args.get('targetRole') or '').strip().lower() or None
    resident_id = (request.args.get('residentId') or '').strip() or None

    if not _is_resident_scope(target_role, resident_id):
        denied = check_admin_request()
        if denied is not None:
            return denied

    try:
        limit = _int_arg('limit', DEFAULT_LIMIT, minimum=1, maximum=MAX_LIMIT)
        offset = _int_arg('offset', 0)
        unread_only = parse_bool(request.args.get('unreadOnly'))
        types = [t.strip() for t in (request.args.get('type') or '').split(',') if t.strip()]

        query = _scoped_query(target_role, resident_id)
        if types:
            query = query.filter(Notification.type.in_(types))

        unread_count = query.filter(Notification.seen.is_(False)).count()
        if unread_only:
            query = query.filter(Notification.seen.is_(False))

        total = query.count()
        items = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return jsonify({
            'notifications': [n.to_dict() for n in items],
            'pagination': {
                'total': total,
                'limit': limit,
                'offset': offset,
                'hasMore': offset + limit < total,
            },
            'unreadCount': unread_count,
        }), 200

    except Exception as e:
        current_app.logger.error("Error fetching notifications: %s", e)
        return jsonify({'error': 'Failed to fetch notifications', 'details': str(e)}), 500


@notifications_bp.route('', methods=['POST'])
@admin_required
def post_notification():
    try:
        data = request.get_json(silent=True) or {}
        validate_required_fields(
            data, ['type', 'title', 'message'],
            'Type, title, message, and targetRole are required',
        )
        target_role = (data.get('targetRole') or 'admin').strip().lower()
        if target_role not in ('admin', 'resident'):
            raise ValidationError('targetRole', 'targetRole must be admin or resident')
        if target_role == 'resident' and not data.get('targetUserId'):
            raise ValidationError('targetUserId', 'targetUserId is required for resident notifications')

        priority = (data.get('priority') or 'normal').strip().lower()
        if priority not in PRIORITIES:
            priority = 'normal'

        payload = data.get('data') if isinstance(data.get('data'), dict) else {}
        for key in ('requestId', 'relatedDocType', 'actionRequired'):
            if key in data:
                payload[key] = data[key]

        notification = create_notification(
            type=str(data['type']).strip(),
            title=str(data['title']).strip(),
            message=str(data['message']).strip(),
            target_role=target_role,
            target_user_id=data.get('targetUserId'),
            priority=priority,
            data=payload,
        )
        db.session.commit()
        return jsonify(notification.to_dict()), 201

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error creating notification: %s", e)
        return jsonify({'error': 'Failed to create notification', 'details': str(e)}), 500


@notifications_bp.route('', methods=['PUT', 'PATCH'])
def mark_notifications_read():
    """Mark notifications read, either by ``ids`` or ``markAllRead`` for an inbox."""
    data = request.get_json(silent=True) or {}
    target_role = (data.get('targetRole') or '').strip().lower() or None
    resident_id = str(data.get('residentId') or '').strip() or None

    resident_scope = _is_resident_scope(target_role, resident_id)
    if not resident_scope:
        denied = check_admin_request()
        if denied is not None:
            return denied

    try:
        query = _scoped_query(target_role, resident_id).filter(Notification.seen.is_(False))
        ids = data.get('ids') or ([data['id']] if data.get('id') else [])
        if ids:
            try:
                ids = [int(i) for i in ids]
            except (TypeError, ValueError):
                return jsonify({'error': 'ids must be a list of notification IDs'}), 400
            query = query.filter(Notification.id.in_(ids))
        elif not parse_bool(data.get('markAllRead')):
            return jsonify({'error': 'Provide ids or markAllRead'}), 400

        notifications = query.all()
        for notification in notifications:
            notification.mark_read()
        db.session.commit()

        return jsonify({
            'success': True,
            'updated': len(notifications),
            'message': f'{len(notifications)} notification(s) marked as read',
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error updating notifications: %s", e)
        return jsonify({'error': 'Failed to update notifications', 'details': str(e)}), 500


@notifications_bp.route('/<int:notification_id>', methods=['DELETE'])
@admin_required
def delete_notification(notification_id):
    try:
        notification = db.session.get(Notification, notification_id)
        if not notification:
            return jsonify({'error': 'Notification not found'}), 404
        db.session.delete(notification)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Notification deleted successfully'}), 200
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Error deleting notification %s: %s", notification_id, e)
        return jsonify({'error': 'Failed to delete notification', 'details': str(e)}), 500


@notifications_bp.route('/unread-count', methods=['GET'])
def unread_count():
    target_role = (request.args.get('targetRole') or '').strip().lower() or None
    resident_id = (request.args.get('residentId') or '').strip() or None
    if not _is_resident_scope(target_role, resident_id):
        denied = check_admin_request()
        if denied is not None:
            return denied

    count = (
        _scoped_query(target_role, resident_id)
        .with_entities(func.count(Notification.id))
        .filter(Notification.seen.is_(False))
        .scalar()
    )
    return jsonify({'unreadCount': count or 0}), 200
