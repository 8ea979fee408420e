"""Document request and control-number counter models."""
from apps.bsphere.utils.time import utc_now
from apps.bsphere import db
from sqlalchemy import Index


DOCUMENT_PREFIXES = {
    'Barangay Certificate': 'CRT',
    'Barangay Clearance': 'CLR',
    'Barangay Indigency': 'IND',
    'Barangay ID': 'BID',
    'Business Permit': 'BBP',
}

BUSINESS_PERMIT = 'Business Permit'

REQUEST_STATUSES = ('pending', 'approved', 'rejected')


class DocumentCounter(db.Model):
    """Per document type issuance counter."""

    __tablename__ = 'document_counters'

    document_type = db.Column(db.String(50), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    last_generated_id = db.Column(db.String(30), nullable=True)
    last_updated = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f'<DocumentCounter {self.document_type}={self.count}>'


class DocumentRequest(db.Model):
    __tablename__ = 'document_requests'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)
    control_id = db.Column(db.String(30), unique=True, nullable=False)
    sequence = db.Column(db.Integer, nullable=False)  # counter value at issuance

    # Request Details
    document_type = db.Column(db.String(50), nullable=False)
    resident_id = db.Column(db.String(20), nullable=False)  # resident unique ID (SF-...)
    full_name = db.Column(db.String(300), nullable=False)
    purpose = db.Column(db.Text, nullable=False)
    age = db.Column(db.String(10), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    contact_number = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    # Business permit details
    business_name = db.Column(db.String(200), nullable=True)
    business_type = db.Column(db.String(200), nullable=True)
    business_address = db.Column(db.String(500), nullable=True)
    ctc_number = db.Column(db.String(50), nullable=True)
    or_number = db.Column(db.String(50), nullable=True)
    permit_no = db.Column(db.String(20), nullable=True)

    # Status
    status = db.Column(db.String(20), nullable=False, default='pending')
    processed_by = db.Column(db.Integer, db.ForeignKey('admins.id', ondelete='SET NULL'), nullable=True)

    # Timestamps
    requested_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    issued_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_document_request_status', 'status'),
        Index('idx_document_request_resident', 'resident_id'),
        Index('idx_document_request_type', 'document_type'),
        Index('idx_document_request_requested', 'requested_at'),
    )

    def __repr__(self):
        return f'<DocumentRequest {self.control_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'controlId': self.control_id,
            'documentType': self.document_type,
            'residentId': self.resident_id,
            'fullName': self.full_name,
            'purpose': self.purpose,
            'age': self.age,
            'address': self.address,
            'contactNumber': self.contact_number,
            'email': self.email,
            'businessName': self.business_name,
            'businessType': self.business_type,
            'businessAddress': self.business_address,
            'ctcNumber': self.ctc_number,
            'orNumber': self.or_number,
            'permitNo': self.permit_no,
            'status': self.status,
            'processedBy': self.processed_by,
            'requestedAt': self.requested_at.isoformat() if self.requested_at else None,
            'issuedAt': self.issued_at.isoformat() if self.issued_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
