"""Parse a residents workbook (batch upload template) into resident rows.

Rows follow the template column order. Every data row is validated first;
the caller inserts nothing unless the whole sheet is clean.
"""
import re
from datetime import date, datetime, timedelta, timezone
from io import BytesIO

from openpyxl import load_workbook

from apps.bsphere.utils.validators import parse_bool, PH_MOBILE_RE


TEMPLATE_SHEET = 'Residents Template'
COLUMN_COUNT = 20
SAMPLE_FIRST_NAMES = {'MARIA', 'JOSE', 'JUAN'}

_YMD = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')
_DMY_DASH = re.compile(r'^(\d{1,2})-(\d{1,2})-(\d{4})$')
_DMY_SLASH = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')


class WorkbookError(Exception):
    """The upload is not a readable residents workbook."""
    pass


def _text(value, upper=False):
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text.upper() if upper else text


def clean_contact_number(value):
    """Digits only; kept when it is an 11-digit 09 mobile number."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    digits = re.sub(r'\D', '', str(value))
    # Numeric cells drop the leading zero
    if len(digits) == 10 and digits.startswith('9'):
        digits = '0' + digits
    return digits if PH_MOBILE_RE.match(digits) else None


def normalize_gender(value):
    g = (_text(value) or '').lower()
    if g in ('male', 'm'):
        return 'Male'
    if g in ('female', 'f'):
        return 'Female'
    return None


def normalize_marital_status(value):
    s = (_text(value) or '').lower()
    return {
        'single': 'Single', 's': 'Single',
        'married': 'Married', 'm': 'Married',
        'widowed': 'Widowed', 'w': 'Widowed',
        'divorced': 'Divorced', 'd': 'Divorced',
    }.get(s)


def normalize_voter_status(value):
    s = (_text(value) or '').lower()
    if s in ('registered', 'yes', 'y'):
        return 'Registered'
    if s in ('not registered', 'no', 'n'):
        return 'Not Registered'
    return None


def parse_cell_date(value):
    """YYYY-MM-DD, DD-MM-YYYY, DD/MM/YYYY, Excel serial numbers and date cells."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Excel serial: days since 1899-12-30 (25569 = 1970-01-01)
        moment = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=(value - 25569) * 86400)
        return moment.date()

    text = str(value).strip()
    try:
        m = _YMD.match(text)
        if m:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        m = _DMY_DASH.match(text) or _DMY_SLASH.match(text)
        if m:
            return date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _is_empty(values) -> bool:
    return all(v is None or str(v).strip() == '' for v in values)


def parse_row(values, row_number):
    """Validate one sheet row. Returns (resident_dict, None) or (None, error)."""
    cells = list(values) + [None] * (COLUMN_COUNT - len(values))

    first_name = _text(cells[0], upper=True)
    last_name = _text(cells[2], upper=True)
    birthdate = parse_cell_date(cells[4])
    birthplace = _text(cells[5], upper=True)
    address = _text(cells[6], upper=True)
    citizenship = _text(cells[7], upper=True)
    gender = normalize_gender(cells[8])
    marital_status = normalize_marital_status(cells[9])

    missing = [
        label for label, value in (
            ('First Name', first_name),
            ('Last Name', last_name),
            ('Birthdate', birthdate),
            ('Address', address),
            ('Citizenship', citizenship),
            ('Gender', gender),
            ('Marital Status', marital_status),
        ) if not value
    ]
    if missing:
        return None, f"Row {row_number}: Missing required fields: {', '.join(missing)}"

    if birthplace and ',' not in birthplace:
        return None, (
            f"Row {row_number}: Birthplace should include city and province separated by comma "
            "(e.g., MANILA, METRO MANILA)"
        )

    return {
        'firstName': first_name,
        'middleName': _text(cells[1], upper=True),
        'lastName': last_name,
        'suffix': _text(cells[3], upper=True),
        'birthdate': birthdate.isoformat(),
        'birthplace': birthplace,
        'address': address,
        'citizenship': citizenship,
        'gender': gender,
        'maritalStatus': marital_status,
        'voterStatus': normalize_voter_status(cells[10]),
        'educationalAttainment': _text(cells[11]),
        'employmentStatus': _text(cells[12]),
        'occupation': _text(cells[13], upper=True),
        'contactNumber': clean_contact_number(cells[14]),
        'email': _text(cells[15]),
        'isTUPAD': parse_bool(cells[16]),
        'isPWD': parse_bool(cells[17]),
        'is4Ps': parse_bool(cells[18]),
        'isSoloParent': parse_bool(cells[19]),
    }, None


def parse_resident_workbook(content: bytes):
    """Read every data row of the first worksheet.

    Returns:
        Tuple of (residents, errors)
    """
    try:
        wb = load_workbook(BytesIO(content), data_only=True, read_only=True)
    except Exception as e:
        raise WorkbookError('Invalid Excel file format') from e

    ws = wb[TEMPLATE_SHEET] if TEMPLATE_SHEET in wb.sheetnames else wb.worksheets[0]

    residents, errors = [], []
    for row_number, values in enumerate(ws.iter_rows(values_only=True, max_col=COLUMN_COUNT), start=1):
        if row_number == 1:
            continue
        values = tuple(values or ())
        first = values[0] if values else None
        if row_number <= 3 and first and str(first).strip().upper() in SAMPLE_FIRST_NAMES:
            continue
        if _is_empty(values):
            continue

        resident, error = parse_row(values, row_number)
        if error:
            errors.append(error)
        else:
            residents.append(resident)

    wb.close()
    return residents, errors
