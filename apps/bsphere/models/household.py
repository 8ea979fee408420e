"""Household model: one head plus member residents."""
from sqlalchemy import Index

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now


class HouseholdMember(db.Model):
    __tablename__ = 'household_members'

    id = db.Column(db.Integer, primary_key=True)
    household_id = db.Column(db.Integer, db.ForeignKey('households.id', ondelete='CASCADE'), nullable=False)
    # A resident can be a member of one household only
    resident_id = db.Column(db.Integer, db.ForeignKey('residents.id', ondelete='CASCADE'), nullable=False, unique=True)
    added_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    resident = db.relationship('Resident')

    __table_args__ = (
        Index('idx_household_member_household', 'household_id'),
    )


class Household(db.Model):
    __tablename__ = 'households'

    id = db.Column(db.Integer, primary_key=True)
    household_id = db.Column(db.String(20), unique=True, nullable=False)  # HH-000001
    head_id = db.Column(db.Integer, db.ForeignKey('residents.id'), nullable=False, unique=True)
    contact_number = db.Column(db.String(20), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    head = db.relationship('Resident', foreign_keys=[head_id])
    memberships = db.relationship(
        'HouseholdMember',
        backref='household',
        cascade='all, delete-orphan',
        order_by='HouseholdMember.id',
    )

    def __repr__(self):
        return f'<Household {self.household_id}>'

    @property
    def members(self):
        return [m.resident for m in self.memberships if m.resident]

    def to_dict(self, embed: bool = True):
        data = {
            'id': self.household_id,
            'householdId': self.household_id,
            'headOfHousehold': self.head.unique_id if self.head else None,
            'members': [r.unique_id for r in self.members],
            'contactNumber': self.contact_number,
            'address': self.address,
            'notes': self.notes,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
        if embed:
            data['headDetails'] = self.head.to_summary() if self.head else None
            data['memberDetails'] = [r.to_summary() for r in self.members]
        return data
