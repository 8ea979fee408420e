"""B-Sphere - Announcement Model
Barangay announcements with optional scheduled publish/archive dates.
"""
from sqlalchemy import Index

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now, to_naive_utc


ANNOUNCEMENT_STATUSES = ('draft', 'published', 'archived')


class Announcement(db.Model):
    """Announcement shown on the resident portal once published."""

    __tablename__ = 'announcements'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='draft')  # draft, published, archived
    color = db.Column(db.String(20), nullable=False, default='blue')
    image_url = db.Column(db.String(500), nullable=True)
    auto_publish_date = db.Column(db.DateTime, nullable=True)
    auto_archive_date = db.Column(db.DateTime, nullable=True)
    views = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_by = db.Column(db.String(255), nullable=True)  # admin email
    published_at = db.Column(db.DateTime, nullable=True)
    archived_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_announcement_status', 'status'),
        Index('idx_announcement_auto_publish', 'auto_publish_date'),
        Index('idx_announcement_auto_archive', 'auto_archive_date'),
        Index('idx_announcement_created', 'created_at'),
    )

    def __repr__(self):
        return f'<Announcement {self.title}>'

    def publish(self, now=None):
        self.status = 'published'
        self.published_at = now or utc_now()

    def archive(self, now=None):
        self.status = 'archived'
        self.archived_at = now or utc_now()

    def to_dict(self):
        auto_publish = to_naive_utc(self.auto_publish_date)
        auto_archive = to_naive_utc(self.auto_archive_date)
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'status': (self.status or 'draft').lower(),
            'color': self.color,
            'imageUrl': self.image_url,
            'autoPublishDate': auto_publish.isoformat() if auto_publish else None,
            'autoArchiveDate': auto_archive.isoformat() if auto_archive else None,
            'views': self.views or 0,
            'isActive': bool(self.is_active),
            'createdBy': self.created_by,
            'publishedAt': self.published_at.isoformat() if self.published_at else None,
            'archivedAt': self.archived_at.isoformat() if self.archived_at else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
