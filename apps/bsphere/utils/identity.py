"""Resident/household identifiers, duplicate keys and document control numbers."""
import re

from sqlalchemy import func

from apps.bsphere import db
from apps.bsphere.utils.time import utc_now


RESIDENT_ID_PREFIX = 'SF-'
HOUSEHOLD_ID_PREFIX = 'HH-'
COMPLAINT_ID_PREFIX = 'CMP-'

_WHITESPACE = re.compile(r'\s+')


def _highest_number(column, prefix: str) -> int:
    """Largest numeric suffix among ids starting with prefix (0 when none)."""
    latest = (
        db.session.query(column)
        .filter(column.like(f'{prefix}%'))
        .order_by(func.length(column).desc(), column.desc())
        .first()
    )
    if not latest or not latest[0]:
        return 0
    try:
        return int(latest[0][len(prefix):])
    except ValueError:
        return 0


def resident_id_sequence(count: int) -> list:
    """``count`` consecutive SF ids following the highest stored one."""
    from apps.bsphere.models.resident import Resident

    start = _highest_number(Resident.unique_id, RESIDENT_ID_PREFIX) + 1
    return [f'{RESIDENT_ID_PREFIX}{n:06d}' for n in range(start, start + count)]


def next_resident_id() -> str:
    return resident_id_sequence(1)[0]


def next_household_id() -> str:
    from apps.bsphere.models.household import Household

    return f'{HOUSEHOLD_ID_PREFIX}{_highest_number(Household.household_id, HOUSEHOLD_ID_PREFIX) + 1:06d}'


def next_complaint_id() -> str:
    from apps.bsphere.models.complaint import Complaint

    return f'{COMPLAINT_ID_PREFIX}{Complaint.query.count() + 1:03d}'


def _key_part(value) -> str:
    return _WHITESPACE.sub('', str(value or '').strip().upper())


def generate_identity_keys(first_name, last_name, middle_name=None, birthdate=None) -> dict:
    """Build the keys used to detect duplicate residents.

    >>> generate_identity_keys('Juan', 'Dela Cruz', 'Santos', '1990-01-02')
    {'identity_key': 'DELACRUZ_JUAN_SANTOS_1990-01-02', 'full_name_key': 'DELACRUZ_JUAN_SANTOS'}
    """
    full_name_key = f'{_key_part(last_name)}_{_key_part(first_name)}_{_key_part(middle_name)}'
    return {
        'identity_key': f'{full_name_key}_{str(birthdate or "").strip()}',
        'full_name_key': full_name_key,
    }


def check_duplicate_residents(first_name, last_name, middle_name=None, birthdate=None, exclude_id=None) -> dict:
    """Count residents sharing the identity key and the full-name key.

    ``exclude_id`` is a resident primary key skipped in both counts (used on update).
    """
    from apps.bsphere.models.resident import Resident

    keys = generate_identity_keys(first_name, last_name, middle_name, birthdate)

    exact = Resident.query.filter(Resident.identity_key == keys['identity_key'])
    names = Resident.query.filter(Resident.full_name_key == keys['full_name_key'])
    if exclude_id is not None:
        exact = exact.filter(Resident.id != exclude_id)
        names = names.filter(Resident.id != exclude_id)

    exact_count = exact.count()
    name_count = names.count()
    return {
        'hasExactDuplicate': exact_count > 0,
        'hasNameDuplicate': name_count > 0,
        'exactDuplicates': exact_count,
        'nameDuplicates': name_count,
        **keys,
    }


def validate_duplicate_check(result: dict):
    """Turn a duplicate check into ``(ok, message)``."""
    if result.get('hasExactDuplicate'):
        return False, 'A resident with the same name and birthdate already exists'
    if result.get('hasNameDuplicate'):
        return False, 'A resident with the same full name already exists'
    return True, None


# Control numbers

def format_control_number(prefix: str, sequence: int, year: int = None, business_permit: bool = False) -> str:
    """CRT-0001-0001 style numbers; Business Permits use BBP-YYYY-0001."""
    if business_permit:
        return f'{prefix}-{year or utc_now().year}-{sequence:04d}'
    part1 = (sequence - 1) // 10000 + 1
    part2 = (sequence - 1) % 10000 + 1
    return f'{prefix}-{part1:04d}-{part2:04d}'


def format_permit_number(sequence: int) -> str:
    """1234 -> '0001-234'."""
    return f'{sequence // 1000:04d}-{sequence % 1000:03d}'


def peek_sequence(document_type: str) -> int:
    """The sequence the next request of this type would get."""
    from apps.bsphere.models.document import DocumentCounter

    counter = db.session.get(DocumentCounter, document_type)
    return (counter.count if counter else 0) + 1


def peek_control_number(document_type: str) -> str:
    """The control number the next request would get, without reserving it."""
    from apps.bsphere.models.document import DOCUMENT_PREFIXES, BUSINESS_PERMIT

    sequence = peek_sequence(document_type)
    return format_control_number(DOCUMENT_PREFIXES[document_type], sequence,
                                 business_permit=document_type == BUSINESS_PERMIT)


def reserve_control_number(document_type: str):
    """Increment the type's counter in the current transaction.

    Returns ``(control_id, sequence)``. The caller commits.
    """
    from apps.bsphere.models.document import DocumentCounter, DOCUMENT_PREFIXES, BUSINESS_PERMIT

    if document_type not in DOCUMENT_PREFIXES:
        raise KeyError(document_type)

    counter = (
        DocumentCounter.query
        .filter_by(document_type=document_type)
        .with_for_update()
        .first()
    )
    if counter is None:
        counter = DocumentCounter(document_type=document_type, count=0)
        db.session.add(counter)

    counter.count = (counter.count or 0) + 1
    control_id = format_control_number(
        DOCUMENT_PREFIXES[document_type],
        counter.count,
        business_permit=document_type == BUSINESS_PERMIT,
    )
    counter.last_generated_id = control_id
    counter.last_updated = utc_now()
    return control_id, counter.count
