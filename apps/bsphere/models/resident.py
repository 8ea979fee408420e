"""B-Sphere - Resident Model
Registered barangay residents, their program flags and uploaded documents.
"""
from sqlalchemy import Index

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now, age_on
from apps.bsphere.utils.validators import parse_birthdate, ValidationError


ACCOUNT_STATUSES = ('approved', 'pending_verification', 'for_verification')
HOUSEHOLD_ROLES = ('head', 'member')


class Resident(db.Model):
    __tablename__ = 'residents'

    id = db.Column(db.Integer, primary_key=True)
    unique_id = db.Column(db.String(20), unique=True, nullable=False)  # SF-000001

    first_name = db.Column(db.String(100), nullable=False)
    middle_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=False)
    suffix = db.Column(db.String(20), nullable=True)

    address = db.Column(db.String(500), nullable=True)
    birthdate = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    birthplace = db.Column(db.String(200), nullable=True)
    citizenship = db.Column(db.String(100), nullable=True)
    marital_status = db.Column(db.String(20), nullable=True)
    gender = db.Column(db.String(20), nullable=True)
    voter_status = db.Column(db.String(30), nullable=True)
    employment_status = db.Column(db.String(50), nullable=True)
    educational_attainment = db.Column(db.String(100), nullable=True)
    occupation = db.Column(db.String(100), nullable=True)
    contact_number = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    is_tupad = db.Column(db.Boolean, default=False, nullable=False)
    is_pwd = db.Column(db.Boolean, default=False, nullable=False)
    is_4ps = db.Column(db.Boolean, default=False, nullable=False)
    is_solo_parent = db.Column(db.Boolean, default=False, nullable=False)

    role = db.Column(db.String(20), nullable=True, default='resident')  # resident, head, member
    account_status = db.Column(db.String(30), nullable=False, default='approved')
    password_hash = db.Column(db.String(255), nullable=True)  # set by self-registration
    photo = db.Column(db.String(500), nullable=True)
    uploaded_files = db.Column(db.JSON, nullable=True)

    identity_key = db.Column(db.String(300), nullable=True)
    full_name_key = db.Column(db.String(300), nullable=True)

    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    documents = db.relationship(
        'ResidentDocument',
        backref='resident',
        lazy='dynamic',
        cascade='all, delete-orphan',
    )

    __table_args__ = (
        Index('idx_resident_last_name', 'last_name'),
        Index('idx_resident_identity_key', 'identity_key'),
        Index('idx_resident_full_name_key', 'full_name_key'),
        Index('idx_resident_email', 'email'),
        Index('idx_resident_status', 'account_status'),
    )

    def __repr__(self):
        return f'<Resident {self.unique_id}>'

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name, self.suffix]
        return ' '.join(p for p in parts if p)

    @property
    def age(self):
        try:
            return age_on(parse_birthdate(self.birthdate))
        except ValidationError:
            return None

    def to_summary(self):
        return {
            'id': self.id,
            'uniqueId': self.unique_id,
            'firstName': self.first_name,
            'middleName': self.middle_name,
            'lastName': self.last_name,
            'suffix': self.suffix,
            'fullName': self.full_name,
            'address': self.address,
            'contactNumber': self.contact_number,
            'role': self.role,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'uniqueId': self.unique_id,
            'firstName': self.first_name,
            'middleName': self.middle_name,
            'lastName': self.last_name,
            'suffix': self.suffix,
            'address': self.address,
            'birthdate': self.birthdate,
            'age': self.age,
            'birthplace': self.birthplace,
            'citizenship': self.citizenship,
            'maritalStatus': self.marital_status,
            'gender': self.gender,
            'voterStatus': self.voter_status,
            'employmentStatus': self.employment_status,
            'educationalAttainment': self.educational_attainment,
            'occupation': self.occupation,
            'contactNumber': self.contact_number,
            'email': self.email,
            'isTUPAD': bool(self.is_tupad),
            'isPWD': bool(self.is_pwd),
            'is4Ps': bool(self.is_4ps),
            'isSoloParent': bool(self.is_solo_parent),
            'role': self.role,
            'accountStatus': self.account_status,
            'photo': self.photo,
            'uploadedFiles': self.uploaded_files or [],
            'identityKey': self.identity_key,
            'fullNameKey': self.full_name_key,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


class ResidentDocument(db.Model):
    """Supporting file (ID, photo, proof of residency) attached to a resident."""

    __tablename__ = 'resident_documents'

    id = db.Column(db.Integer, primary_key=True)
    resident_id = db.Column(db.Integer, db.ForeignKey('residents.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(50), nullable=False)
    url = db.Column(db.String(500), nullable=False)
    path = db.Column(db.String(500), nullable=True)  # storage path, used for deletion
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index('idx_resident_document_resident', 'resident_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'residentId': self.resident.unique_id if self.resident else None,
            'name': self.name,
            'type': self.type,
            'url': self.url,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
