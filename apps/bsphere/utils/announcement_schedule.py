"""Scheduled publish/archive of announcements.

Drafts whose auto_publish_date has passed become published; published
announcements whose auto_archive_date has passed become archived. Run from
the auto-manage endpoint or from scripts/auto_manage_announcements.py.
"""
import logging

from apps.bsphere import db
from apps.bsphere.models.announcement import Announcement
from apps.bsphere.utils.time import utc_now, to_naive_utc

logger = logging.getLogger(__name__)


def due_for_publish(now=None):
    now = to_naive_utc(now) or utc_now()
    return (
        Announcement.query
        .filter(Announcement.status == 'draft')
        .filter(Announcement.auto_publish_date.isnot(None))
        .filter(Announcement.auto_publish_date <= now)
        .order_by(Announcement.auto_publish_date.asc())
        .all()
    )


def due_for_archive(now=None):
    now = to_naive_utc(now) or utc_now()
    return (
        Announcement.query
        .filter(Announcement.status == 'published')
        .filter(Announcement.auto_archive_date.isnot(None))
        .filter(Announcement.auto_archive_date <= now)
        .order_by(Announcement.auto_archive_date.asc())
        .all()
    )


def auto_manage_announcements(now=None, apply: bool = True) -> dict:
    """Find (and unless ``apply`` is False, update) announcements that are due.

    Returns:
        Dict with ``published`` and ``archived`` lists of announcements
    """
    now = to_naive_utc(now) or utc_now()
    to_publish = due_for_publish(now)
    to_archive = due_for_archive(now)

    if apply and (to_publish or to_archive):
        for announcement in to_publish:
            announcement.publish(now)
            announcement.updated_at = now
        for announcement in to_archive:
            announcement.archive(now)
            announcement.updated_at = now
        db.session.commit()
        logger.info(
            "Auto-managed announcements: %d published, %d archived",
            len(to_publish), len(to_archive),
        )

    return {'published': to_publish, 'archived': to_archive}
