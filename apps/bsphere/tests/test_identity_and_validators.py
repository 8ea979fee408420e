"""
Identifier formats, control number reservation and input validators.
"""
from datetime import date
from io import BytesIO

import pytest

from apps.bsphere import db
from apps.bsphere.app import create_app
from apps.bsphere.config import Config
from apps.bsphere.models.resident import Resident
from apps.bsphere.utils.identity import (
    format_control_number,
    format_permit_number,
    generate_identity_keys,
    next_resident_id,
    peek_control_number,
    reserve_control_number,
)
from apps.bsphere.utils.security import ALLOWED_DOCUMENT_MIMES, detect_mime_type, validate_file_mime_type
from apps.bsphere.utils.time import ordinal_day, parse_datetime, age_on
from apps.bsphere.utils.validators import (
    ValidationError,
    parse_bool,
    sanitize_string,
    validate_minimum_age,
    validate_phone,
)


class IdentityTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False


def test_control_numbers_roll_over_every_ten_thousand():
    assert format_control_number('CRT', 1) == 'CRT-0001-0001'
    assert format_control_number('CLR', 9999) == 'CLR-0001-9999'
    assert format_control_number('IND', 10001) == 'IND-0002-0001'
    assert format_control_number('BBP', 7, year=2026, business_permit=True) == 'BBP-2026-0007'


def test_permit_number_format():
    assert format_permit_number(1) == '0000-001'
    assert format_permit_number(1234) == '0001-234'


def test_identity_keys_ignore_case_and_spacing():
    a = generate_identity_keys('Juan', 'Dela Cruz', 'Santos', '1990-01-02')
    b = generate_identity_keys(' JUAN ', 'dela  cruz', 'santos', '1990-01-02')
    assert a == b
    assert a['identity_key'] == 'DELACRUZ_JUAN_SANTOS_1990-01-02'
    assert a['full_name_key'] == 'DELACRUZ_JUAN_SANTOS'


def test_reserve_control_number_is_sequential_per_type():
    app = create_app(IdentityTestConfig)

    with app.app_context():
        db.create_all()

        assert peek_control_number('Barangay Clearance') == 'CLR-0001-0001'
        first, seq1 = reserve_control_number('Barangay Clearance')
        second, seq2 = reserve_control_number('Barangay Clearance')
        other, _ = reserve_control_number('Barangay Certificate')
        db.session.commit()

        assert (first, seq1) == ('CLR-0001-0001', 1)
        assert (second, seq2) == ('CLR-0001-0002', 2)
        assert other == 'CRT-0001-0001'
        assert peek_control_number('Barangay Clearance') == 'CLR-0001-0003'

        with pytest.raises(KeyError):
            reserve_control_number('Cedula')


def test_next_resident_id_follows_highest_stored():
    app = create_app(IdentityTestConfig)

    with app.app_context():
        db.create_all()
        assert next_resident_id() == 'SF-000001'

        db.session.add(Resident(unique_id='SF-000041', first_name='ANA', last_name='REYES', birthdate='1990-05-05'))
        db.session.commit()
        assert next_resident_id() == 'SF-000042'


def test_validators():
    assert validate_phone(' 0917 123 4567 ') == '09171234567'
    with pytest.raises(ValidationError):
        validate_phone('+639171234567')

    assert parse_bool('Yes') is True
    assert parse_bool('no') is False
    assert parse_bool(None, default=True) is True
    assert sanitize_string('  juan ', upper=True) == 'JUAN'
    assert sanitize_string('   ') is None

    with pytest.raises(ValidationError) as exc:
        validate_minimum_age(date.today().replace(year=date.today().year - 10).isoformat(), 13)
    assert 'at least 13' in str(exc.value)


def test_time_helpers():
    for day, text in [
        (1, '1st'), (2, '2nd'), (3, '3rd'), (4, '4th'),
        (11, '11th'), (12, '12th'), (13, '13th'),
        (21, '21st'), (22, '22nd'), (23, '23rd'), (31, '31st'),
    ]:
        assert ordinal_day(day) == text
    assert parse_datetime('2026-01-01T08:00:00Z').isoformat() == '2026-01-01T08:00:00'
    assert parse_datetime('') is None
    assert age_on(date(2000, 6, 15), today=date(2026, 6, 14)) == 25


def _fake_magic(monkeypatch, detected):
    monkeypatch.setattr('apps.bsphere.utils.security.magic.from_buffer', lambda header, mime=False: detected)


def test_upload_content_type_follows_libmagic(monkeypatch):
    # An OLE2 container that is not a Word file, renamed to .doc
    _fake_magic(monkeypatch, 'application/vnd.ms-excel')
    with pytest.raises(ValidationError):
        validate_file_mime_type(BytesIO(b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1' + b'\x00' * 64),
                                ALLOWED_DOCUMENT_MIMES, 'doc')

    _fake_magic(monkeypatch, 'application/msword')
    assert validate_file_mime_type(BytesIO(b'\xd0\xcf\x11\xe0'), ALLOWED_DOCUMENT_MIMES, 'doc') == 'application/msword'

    # PDF content under a .png name
    _fake_magic(monkeypatch, 'application/pdf')
    with pytest.raises(ValidationError) as exc:
        validate_file_mime_type(BytesIO(b'%PDF-1.4'), ALLOWED_DOCUMENT_MIMES, 'png')
    assert 'does not match extension .png' in str(exc.value)


def test_unidentified_and_zip_content_resolve_through_extension(monkeypatch):
    docx = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'

    _fake_magic(monkeypatch, 'application/zip')
    assert validate_file_mime_type(BytesIO(b'PK\x03\x04' + b'\x00' * 32), ALLOWED_DOCUMENT_MIMES, 'docx') == docx
    # A plain zip under a .pdf name stays a zip
    with pytest.raises(ValidationError):
        validate_file_mime_type(BytesIO(b'PK\x03\x04' + b'\x00' * 32), ALLOWED_DOCUMENT_MIMES, 'pdf')

    _fake_magic(monkeypatch, 'application/octet-stream')
    assert detect_mime_type(b'\x00\x01', 'jpg') == 'image/jpeg'
    assert detect_mime_type(b'\x00\x01', 'exe') == 'application/octet-stream'

    with pytest.raises(ValidationError):
        validate_file_mime_type(BytesIO(b''), ALLOWED_DOCUMENT_MIMES, 'pdf')


def test_libmagic_rejects_text_posing_as_pdf():
    with pytest.raises(ValidationError):
        validate_file_mime_type(BytesIO(b'just some notes\nnothing else\n'), ALLOWED_DOCUMENT_MIMES, 'pdf')
    assert validate_file_mime_type(BytesIO(b'%PDF-1.4\n%test\n'), ALLOWED_DOCUMENT_MIMES, 'pdf') == 'application/pdf'
