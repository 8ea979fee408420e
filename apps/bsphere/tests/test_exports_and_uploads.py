from io import BytesIO

from flask_jwt_extended import create_access_token
from openpyxl import load_workbook

from apps.bsphere import db
from apps.bsphere.app import create_app
from apps.bsphere.config import Config
from apps.bsphere.models.admin import AdminAccount
from apps.bsphere.models.resident import Resident
from apps.bsphere.utils.reports import XLSX_MIMETYPE


class ExportTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False


PDF_BYTES = b'%PDF-1.4\n%test\n'


def _bootstrap(tmp_path=None):
    app = create_app(ExportTestConfig)
    if tmp_path is not None:
        app.config['UPLOAD_FOLDER'] = tmp_path
    client = app.test_client()

    with app.app_context():
        db.create_all()
        admin = AdminAccount(email='records@example.com', password_hash='test',
                             first_name='RECORDS', last_name='CLERK')
        db.session.add(admin)
        db.session.add(Resident(unique_id='SF-000002', first_name='LYDIA', last_name='AQUINO', birthdate='1988-02-02'))
        db.session.add(Resident(unique_id='SF-000001', first_name='CARTER', last_name='MANZANO', birthdate='1975-04-10'))
        db.session.commit()
        token = create_access_token(
            identity=str(admin.id),
            additional_claims={'email': admin.email, 'role': 'admin', 'userType': 'admin'},
        )

    return app, client, {'Authorization': f'Bearer {token}'}


def _sheet(resp):
    wb = load_workbook(BytesIO(resp.data))
    return wb.active


def test_excel_export_from_posted_rows():
    _, client, headers = _bootstrap()

    resp = client.post('/api/export/excel', json={'residents': [
        {'uniqueId': 'SF-000009', 'firstName': 'ANA', 'lastName': 'CRUZ', 'isPWD': True, 'is4Ps': False},
    ]}, headers=headers)
    assert resp.status_code == 200
    assert resp.mimetype == XLSX_MIMETYPE
    assert 'residents-report.xlsx' in resp.headers['Content-Disposition']

    ws = _sheet(resp)
    assert ws.title == 'Residents'
    headers_row = [cell.value for cell in ws[1]]
    row = dict(zip(headers_row, [cell.value for cell in ws[2]]))
    assert row['ID'] == 'SF-000009'
    assert row['PWD'] == 'Yes'
    assert row['4Ps'] == 'No'
    assert ws.max_row == 2

    resp = client.post('/api/export/excel', json={'complaints': [
        {'id': 'CMP-001', 'type': 'Noise', 'officer': 'Kagawad Cruz', 'status': 'Pending'},
    ]}, headers=headers)
    ws = _sheet(resp)
    assert ws.title == 'Complaints'
    row = dict(zip([c.value for c in ws[1]], [c.value for c in ws[2]]))
    assert row['Complaint ID'] == 'CMP-001'
    assert row['Assigned Officer'] == 'Kagawad Cruz'


def test_export_whole_table_by_type():
    _, client, headers = _bootstrap()

    resp = client.post('/api/export/excel?type=residents', headers=headers)
    assert resp.status_code == 200
    ws = _sheet(resp)
    assert [ws.cell(row=r, column=1).value for r in (2, 3)] == ['SF-000001', 'SF-000002']

    client.post('/api/complaints', json={
        'type': 'Noise', 'nature': 'Karaoke', 'respondent': 'Ben Tan', 'complainant': 'Lydia Aquino',
        'dateFiled': '2026-10-01', 'officer': 'Kagawad Cruz', 'status': 'Pending',
    })
    resp = client.post('/api/export/pdf?type=complaints', headers=headers)
    assert resp.status_code == 200
    assert resp.mimetype == 'application/pdf'
    assert resp.data.startswith(b'%PDF')
    assert 'complaints-report.pdf' in resp.headers['Content-Disposition']

    resp = client.post('/api/export/pdf', json={}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Provide residents or complaints to export'

    assert client.post('/api/export/excel?type=residents').status_code == 401


def test_upload_saves_under_sanitized_folder(tmp_path):
    _, client, headers = _bootstrap(tmp_path)

    resp = client.post(
        '/api/upload',
        data={
            'file': (BytesIO(PDF_BYTES), 'cedula.pdf'),
            'folderPath': 'residents/../ids',
            'uniqueId': 'SF-000001',
        },
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['path'].startswith('residents/ids/SF-000001/')
    assert body['path'].endswith('.pdf')
    assert body['url'] == f"/uploads/{body['path']}"
    assert (tmp_path / body['path']).read_bytes() == PDF_BYTES

    # Only announcement, photo and official folders are public
    assert client.get(body['url']).status_code == 401
    resp = client.get(body['url'], headers=headers)
    assert resp.status_code == 200
    assert resp.data == PDF_BYTES


def test_upload_validation(tmp_path):
    _, client, headers = _bootstrap(tmp_path)

    resp = client.post(
        '/api/upload',
        data={'file': (BytesIO(PDF_BYTES), 'cedula.pdf'), 'folderPath': 'ids'},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Missing required fields'

    # Extension says PNG, content is a PDF
    resp = client.post(
        '/api/upload',
        data={'file': (BytesIO(PDF_BYTES), 'photo.png'), 'folderPath': 'ids', 'uniqueId': 'SF-000001'},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 400

    resp = client.post(
        '/api/upload',
        data={'file': (BytesIO(b'GIF89a'), 'anim.gif'), 'folderPath': 'ids', 'uniqueId': 'SF-000001'},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 400

    resp = client.post(
        '/api/upload',
        data={'file': (BytesIO(PDF_BYTES), 'cedula.pdf'), 'folderPath': 'ids', 'uniqueId': 'SF-000001'},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 401
    assert not any(tmp_path.iterdir())


def test_health_and_error_payloads():
    _, client, _ = _bootstrap()

    resp = client.get('/health')
    assert resp.get_json() == {'status': 'ok', 'service': 'B-Sphere Barangay API', 'version': '1.0.0'}
    assert resp.headers['X-Content-Type-Options'] == 'nosniff'
    assert resp.headers['X-Frame-Options'] == 'DENY'

    assert client.get('/health/db').get_json()['database'] == 'connected'
    assert client.get('/').get_json()['message'] == 'B-Sphere Barangay API'

    resp = client.get('/api/does-not-exist')
    assert resp.status_code == 404
    assert resp.get_json() == {'error': 'Resource not found'}
