"""Barangay officials (elected/appointed positions held by residents)."""
from sqlalchemy import Index

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now


# Positions that may only have one Active holder at a time
UNIQUE_POSITIONS = (
    'Barangay Captain',
    'Barangay Secretary',
    'Barangay Treasurer',
    'SK Chairman',
)


class Official(db.Model):
    __tablename__ = 'officials'

    id = db.Column(db.Integer, primary_key=True)
    resident_id = db.Column(db.Integer, db.ForeignKey('residents.id', ondelete='CASCADE'), nullable=False, unique=True)
    position = db.Column(db.String(100), nullable=False)
    term_start = db.Column(db.String(10), nullable=True)
    term_end = db.Column(db.String(10), nullable=True)
    chairmanship = db.Column(db.String(200), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='Active')
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    resident = db.relationship('Resident', backref=db.backref('official', uselist=False))

    __table_args__ = (
        Index('idx_official_position', 'position'),
        Index('idx_official_status', 'status'),
    )

    def __repr__(self):
        return f'<Official {self.position}>'

    def to_dict(self):
        resident = self.resident
        return {
            'id': self.id,
            'residentId': resident.unique_id if resident else None,
            'name': resident.full_name if resident else None,
            'firstName': resident.first_name if resident else None,
            'lastName': resident.last_name if resident else None,
            'photo': resident.photo if resident else None,
            'position': self.position,
            'termStart': self.term_start,
            'termEnd': self.term_end,
            'chairmanship': self.chairmanship,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
