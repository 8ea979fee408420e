"""Complaint (blotter) records filed at the barangay hall."""
from sqlalchemy import Index

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now


class Complaint(db.Model):
    __tablename__ = 'complaints'

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(db.String(20), unique=True, nullable=False)  # CMP-001
    type = db.Column(db.String(100), nullable=False)
    nature = db.Column(db.Text, nullable=True)
    respondent = db.Column(db.String(200), nullable=False)
    respondent_address = db.Column(db.String(500), nullable=True)
    complainant = db.Column(db.String(200), nullable=False)
    complainant_address = db.Column(db.String(500), nullable=True)
    date_filed = db.Column(db.String(30), nullable=False)
    officer = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(30), nullable=False)
    resolution_date = db.Column(db.String(30), nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_complaint_date_filed', 'date_filed'),
        Index('idx_complaint_status', 'status'),
    )

    def __repr__(self):
        return f'<Complaint {self.complaint_id}>'

    def to_dict(self):
        return {
            'id': self.complaint_id,
            'complaintId': self.complaint_id,
            'type': self.type,
            'nature': self.nature,
            'respondent': self.respondent,
            'respondentAddress': self.respondent_address,
            'complainant': self.complainant,
            'complainantAddress': self.complainant_address,
            'dateFiled': self.date_filed,
            'officer': self.officer,
            'assignedOfficer': self.officer,
            'status': self.status,
            'resolutionDate': self.resolution_date,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
