"""Lookups shared by the resident and household routes.

A resident belongs to at most one household, either as its head or as a
member; ``Resident.role`` mirrors that placement.
"""
from apps.bsphere import db
from apps.bsphere.models.household import Household, HouseholdMember


def find_household_for(resident):
    """Return ``(household, role)`` for a resident, or ``(None, None)``."""
    if resident is None:
        return None, None

    household = Household.query.filter_by(head_id=resident.id).first()
    if household:
        return household, 'head'

    membership = HouseholdMember.query.filter_by(resident_id=resident.id).first()
    if membership:
        return membership.household, 'member'

    return None, None


def clear_household_roles(household):
    """Reset the role of the head and every member of a household."""
    if household.head:
        household.head.role = None
    for member in household.members:
        member.role = None


def detach_resident(resident):
    """Take a resident out of their household before the resident is removed.

    Removing a head dissolves the household. Returns the affected household
    id and the role the resident held, or ``(None, None)``.
    """
    household, role = find_household_for(resident)
    if household is None:
        return None, None

    household_id = household.household_id
    if role == 'head':
        clear_household_roles(household)
        db.session.delete(household)
    else:
        for membership in list(household.memberships):
            if membership.resident_id == resident.id:
                household.memberships.remove(membership)
    resident.role = None
    db.session.flush()
    return household_id, role
