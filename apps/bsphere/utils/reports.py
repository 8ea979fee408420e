"""Spreadsheet and PDF reports: resident/complaint exports and the batch upload template."""
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.worksheet.datavalidation import DataValidation
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from apps.bsphere.utils.time import utc_now


XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# (header, key, width)
RESIDENT_EXPORT_COLUMNS = [
    ('ID', 'uniqueId', 15),
    ('First Name', 'firstName', 20),
    ('Middle Name', 'middleName', 20),
    ('Last Name', 'lastName', 20),
    ('Suffix', 'suffix', 10),
    ('Address', 'address', 40),
    ('Birthdate', 'birthdate', 15),
    ('Birthplace', 'birthplace', 20),
    ('Citizenship', 'citizenship', 15),
    ('Gender', 'gender', 10),
    ('Voter Status', 'voterStatus', 15),
    ('Marital Status', 'maritalStatus', 15),
    ('Employment Status', 'employmentStatus', 20),
    ('Educational Attainment', 'educationalAttainment', 25),
    ('Occupation', 'occupation', 20),
    ('Contact Number', 'contactNumber', 15),
    ('Email', 'email', 30),
    ('TUPAD', 'isTUPAD', 10),
    ('PWD', 'isPWD', 10),
    ('4Ps', 'is4Ps', 10),
    ('Solo Parent', 'isSoloParent', 15),
]

COMPLAINT_EXPORT_COLUMNS = [
    ('Complaint ID', 'complaintId', 20),
    ('Type', 'type', 20),
    ('Complainant', 'complainant', 25),
    ('Respondent', 'respondent', 25),
    ('Date Filed', 'dateFiled', 20),
    ('Assigned Officer', 'assignedOfficer', 20),
    ('Status', 'status', 15),
    ('Resolution Date', 'resolutionDate', 20),
]

TEMPLATE_COLUMNS = [
    ('First Name*', 20),
    ('Middle Name', 20),
    ('Last Name*', 20),
    ('Suffix', 10),
    ('Birthdate* (YYYY-MM-DD)', 20),
    ('Birthplace (CITY, PROVINCE)', 30),
    ('Address*', 40),
    ('Citizenship*', 15),
    ('Gender* (Male/Female)', 15),
    ('Marital Status* (Single/Married/Widowed/Divorced)', 25),
    ('Voter Status (Registered/Not Registered)', 20),
    ('Educational Attainment', 25),
    ('Employment Status', 20),
    ('Occupation', 20),
    ('Contact Number (09XXXXXXXXX)', 20),
    ('Email', 30),
    ('TUPAD (Yes/No)', 15),
    ('PWD (Yes/No)', 15),
    ('4Ps (Yes/No)', 15),
    ('Solo Parent (Yes/No)', 15),
]

GENDERS = ['Male', 'Female']
MARITAL_STATUSES = ['Single', 'Married', 'Widowed', 'Divorced']
VOTER_STATUSES = ['Registered', 'Not Registered']
EDUCATION_LEVELS = [
    'No Formal Education', 'Elementary', 'Elementary Graduate', 'High School',
    'High School Graduate', 'Vocational', 'College', 'College Graduate', 'Post Graduate',
]
EMPLOYMENT_STATUSES = [
    'Employed', 'Unemployed', 'Self-Employed', 'Student', 'Retired', 'OFW', 'Housewife/Househusband',
]

SAMPLE_ROW = [
    'JUAN', 'DELA', 'CRUZ', 'JR', '1990-01-15', 'DASMARINAS, CAVITE',
    '123 MAIN STREET, BARANGAY SAMPLE', 'FILIPINO', 'Male', 'Married', 'Registered',
    'College Graduate', 'Employed', 'TEACHER', '09123456789', 'juan.delacruz@email.com',
    'No', 'No', 'No', 'No',
]

INSTRUCTIONS = [
    '',
    '1. Fill out the "Residents Template" sheet with resident data',
    '2. Required fields are marked with asterisk (*)',
    '3. Use the exact format shown in the sample row',
    '4. Date format: YYYY-MM-DD (e.g., 1990-01-15)',
    '5. Birthplace format: "MUNICIPALITY/CITY, PROVINCE" (e.g., DASMARINAS, CAVITE)',
    '6. Gender: Select from dropdown (Male or Female)',
    '7. Marital Status: Select from dropdown (Single, Married, Widowed, Divorced)',
    '8. Voter Status: Select from dropdown (Registered or Not Registered)',
    '9. Educational Attainment: Select from dropdown options',
    '10. Employment Status: Select from dropdown options',
    '11. Contact Number: 11 digits starting with 09 (e.g., 09123456789)',
    '12. Yes/No fields: Select from dropdown (Yes or No)',
    '13. Remove the sample row before uploading',
    '',
    'Required Fields: First Name, Last Name, Birthdate, Address, Citizenship, Gender, Marital Status',
    '',
    'The system generates resident IDs automatically.',
]

TEMPLATE_MAX_ROW = 1000


def _cell_value(value):
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    return value if value is not None else ''


def _workbook_bytes(wb: Workbook) -> bytes:
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_export_workbook(rows, kind: str) -> bytes:
    """Excel report for 'residents' or 'complaints' (list of camelCase dicts)."""
    columns = RESIDENT_EXPORT_COLUMNS if kind == 'residents' else COMPLAINT_EXPORT_COLUMNS

    wb = Workbook()
    ws = wb.active
    ws.title = 'Residents' if kind == 'residents' else 'Complaints'
    ws.append([header for header, _, _ in columns])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for idx, (_, _, width) in enumerate(columns, start=1):
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = width

    for entry in rows or []:
        values = []
        for _, key, _ in columns:
            value = entry.get(key)
            if value is None and key == 'uniqueId':
                value = entry.get('id')
            if value is None and key == 'complaintId':
                value = entry.get('id')
            if value is None and key == 'assignedOfficer':
                value = entry.get('officer')
            values.append(_cell_value(value))
        ws.append(values)

    return _workbook_bytes(wb)


def build_export_pdf(rows, kind: str) -> bytes:
    """PDF report: title, generation time and a summary table."""
    is_residents = kind == 'residents'
    buf = BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(A4), title=f"{kind.title()} Report")
    styles = getSampleStyleSheet()

    if is_residents:
        headers = ['ID', 'Name', 'Gender', 'Address']
        data = [
            [
                e.get('uniqueId') or e.get('id') or '',
                f"{e.get('firstName') or ''} {e.get('lastName') or ''}".strip(),
                e.get('gender') or '',
                Paragraph(str(e.get('address') or ''), styles['BodyText']),
            ]
            for e in rows or []
        ]
    else:
        headers = ['Complaint ID', 'Type', 'Complainant', 'Respondent', 'Status']
        data = [
            [
                e.get('complaintId') or e.get('id') or '',
                e.get('type') or '',
                e.get('complainant') or '',
                e.get('respondent') or '',
                e.get('status') or '',
            ]
            for e in rows or []
        ]

    table = Table([headers] + data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4472C4')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
    ]))

    elements = [
        Paragraph(f"{'Residents' if is_residents else 'Complaints'} Report", styles['Title']),
        Paragraph(f"Generated on: {utc_now().strftime('%Y-%m-%d %H:%M:%S')} UTC", styles['Normal']),
        Spacer(1, 12),
        table,
    ]
    doc.build(elements)
    return buf.getvalue()


def _list_validation(options, allow_blank: bool, title: str, message: str) -> DataValidation:
    dv = DataValidation(
        type='list',
        formula1='"' + ','.join(options) + '"',
        allow_blank=allow_blank,
        showErrorMessage=True,
        errorStyle='stop',
    )
    dv.errorTitle = title
    dv.error = message
    return dv


def build_resident_template() -> bytes:
    """Batch upload workbook: styled headers, dropdowns, sample row, instructions sheet."""
    wb = Workbook()
    ws = wb.active
    ws.title = 'Residents Template'

    ws.append([header for header, _ in TEMPLATE_COLUMNS])
    header_fill = PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid')
    for idx, cell in enumerate(ws[1]):
        cell.font = Font(bold=True, color='FFFFFF')
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', vertical='center')
        ws.column_dimensions[cell.column_letter].width = TEMPLATE_COLUMNS[idx][1]

    validations = [
        ('I', _list_validation(GENDERS, False, 'Invalid Gender', 'Please select either Male or Female')),
        ('J', _list_validation(MARITAL_STATUSES, False, 'Invalid Marital Status',
                               'Please select Single, Married, Widowed, or Divorced')),
        ('K', _list_validation(VOTER_STATUSES, True, 'Invalid Voter Status',
                               'Please select Registered or Not Registered')),
        ('L', _list_validation(EDUCATION_LEVELS, True, 'Invalid Educational Attainment',
                               'Please select a valid educational level')),
        ('M', _list_validation(EMPLOYMENT_STATUSES, True, 'Invalid Employment Status',
                               'Please select a valid employment status')),
    ]
    for column in ('Q', 'R', 'S', 'T'):
        validations.append((column, _list_validation(['Yes', 'No'], True, 'Invalid Value', 'Please select Yes or No')))

    contact = DataValidation(type='textLength', operator='equal', formula1='11', allow_blank=True, showErrorMessage=True)
    contact.errorTitle = 'Invalid Contact Number'
    contact.error = 'Contact number must be exactly 11 digits starting with 09'
    validations.append(('O', contact))

    for column, dv in validations:
        ws.add_data_validation(dv)
        dv.add(f'{column}2:{column}{TEMPLATE_MAX_ROW}')

    ws.append(SAMPLE_ROW)
    sample_fill = PatternFill(start_color='E7E6E6', end_color='E7E6E6', fill_type='solid')
    for cell in ws[2]:
        cell.fill = sample_fill

    instructions = wb.create_sheet('Instructions')
    instructions.append(['Instructions for Batch Upload'])
    instructions['A1'].font = Font(bold=True, size=14)
    instructions.column_dimensions['A'].width = 100
    for line in INSTRUCTIONS:
        instructions.append([line])

    return _workbook_bytes(wb)
