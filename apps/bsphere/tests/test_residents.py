from io import BytesIO

from flask_jwt_extended import create_access_token
from openpyxl import Workbook, load_workbook

from apps.bsphere import db
from apps.bsphere.app import create_app
from apps.bsphere.config import Config
from apps.bsphere.models.admin import AdminAccount
from apps.bsphere.models.audit import AuditLog, AuditAction
from apps.bsphere.models.household import Household, HouseholdMember
from apps.bsphere.models.resident import Resident


class ResidentTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False


PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00'
    + b'\x00' * 64
)


def _bootstrap(tmp_path=None):
    app = create_app(ResidentTestConfig)
    if tmp_path is not None:
        app.config['UPLOAD_FOLDER'] = tmp_path
    client = app.test_client()

    with app.app_context():
        db.create_all()
        admin = AdminAccount(
            email='secretary@example.com',
            password_hash='test',
            first_name='ROXANNE',
            last_name='PADILLA',
            role='admin',
        )
        db.session.add(admin)
        db.session.commit()
        token = create_access_token(
            identity=str(admin.id),
            additional_claims={'email': admin.email, 'role': 'admin', 'userType': 'admin'},
        )

    return app, client, {'Authorization': f'Bearer {token}'}


def _resident_payload(**overrides):
    payload = {
        'firstName': 'Juan',
        'middleName': 'Santos',
        'lastName': 'Dela Cruz',
        'birthdate': '1990-01-02',
        'maritalStatus': 'Single',
        'gender': 'Male',
        'voterStatus': 'Registered',
        'address': {'street': '12 Mabini St', 'barangay': 'San Francisco', 'city': 'Mabalacat'},
        'birthplace': 'Mabalacat, Pampanga',
        'citizenship': 'Filipino',
        'contactNumber': '0917 123 4567',
        'email': 'juan@example.com',
        'isPWD': True,
    }
    payload.update(overrides)
    return payload


def test_residents_require_admin_token():
    app, client, _ = _bootstrap()

    resp = client.get('/api/residents')
    assert resp.status_code == 401
    assert resp.get_json()['code'] == 'NO_AUTH'

    with app.app_context():
        resident_token = create_access_token(identity='SF-000001', additional_claims={'userType': 'resident'})
    resp = client.get('/api/residents', headers={'Authorization': f'Bearer {resident_token}'})
    assert resp.status_code == 403


def test_create_resident_uppercases_and_assigns_sf_id():
    app, client, headers = _bootstrap()

    resp = client.post('/api/residents', json=_resident_payload(), headers=headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['uniqueId'] == 'SF-000001'
    assert body['firstName'] == 'JUAN'
    assert body['lastName'] == 'DELA CRUZ'
    assert body['address'] == '12 MABINI ST, SAN FRANCISCO, MABALACAT'
    assert body['contactNumber'] == '09171234567'
    assert body['email'] == 'juan@example.com'
    assert body['isPWD'] is True
    assert body['accountStatus'] == 'approved'

    with app.app_context():
        resident = Resident.query.filter_by(unique_id='SF-000001').one()
        assert resident.identity_key == 'DELACRUZ_JUAN_SANTOS_1990-01-02'
        assert AuditLog.query.filter_by(action=AuditAction.RESIDENT_CREATED).count() == 1

    resp = client.post('/api/residents', json=_resident_payload(firstName='Maria'), headers=headers)
    assert resp.get_json()['uniqueId'] == 'SF-000002'


def test_create_resident_rejects_missing_fields_and_duplicates():
    _, client, headers = _bootstrap()

    resp = client.post('/api/residents', json=_resident_payload(citizenship=''), headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Missing required fields'

    assert client.post('/api/residents', json=_resident_payload(), headers=headers).status_code == 201
    resp = client.post('/api/residents', json=_resident_payload(middleName='Reyes'), headers=headers)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body['error'] == 'Duplicate resident found'
    assert body['details']['birthdate'] == '1990-01-02'


def test_batch_create_assigns_consecutive_ids():
    _, client, headers = _bootstrap()

    resp = client.post('/api/residents', json={'batch': [
        {'firstName': 'Ana', 'lastName': 'Reyes', 'birthdate': '1985-03-04'},
        {'firstName': 'Ben', 'lastName': 'Reyes', 'birthdate': '1987-07-08'},
    ]}, headers=headers)
    assert resp.status_code == 201
    assert [r['uniqueId'] for r in resp.get_json()] == ['SF-000001', 'SF-000002']

    resp = client.post('/api/residents', json={'batch': [{'firstName': 'Cara'}]}, headers=headers)
    assert resp.status_code == 400
    assert 'Entry 1' in resp.get_json()['error']


def test_list_filters_and_pagination():
    _, client, headers = _bootstrap()

    client.post('/api/residents', json=_resident_payload(), headers=headers)
    client.post('/api/residents', json=_resident_payload(
        firstName='Lola', lastName='Basyang', birthdate='1940-02-02', gender='Female', isPWD=False, is4Ps=True,
    ), headers=headers)
    client.post('/api/residents', json=_resident_payload(
        firstName='Nene', lastName='Cruz', birthdate='2015-09-09', gender='Female', isPWD=False,
        voterStatus='Not Registered',
    ), headers=headers)

    resp = client.get('/api/residents?pageSize=2', headers=headers)
    body = resp.get_json()
    assert body['total'] == 3
    assert len(body['data']) == 2
    assert body['hasFilters'] is False

    resp = client.get('/api/residents?ageRange=60%2B', headers=headers)
    assert [r['firstName'] for r in resp.get_json()['data']] == ['LOLA']

    resp = client.get('/api/residents?ageRange=0-17', headers=headers)
    assert [r['firstName'] for r in resp.get_json()['data']] == ['NENE']

    resp = client.get('/api/residents?programs=4Ps,PWD', headers=headers)
    assert sorted(r['firstName'] for r in resp.get_json()['data']) == ['JUAN', 'LOLA']

    resp = client.get('/api/residents?programs=Unknown', headers=headers)
    assert resp.get_json()['total'] == 0

    resp = client.get('/api/residents?gender=Female&search=cruz', headers=headers)
    body = resp.get_json()
    assert body['hasFilters'] is True
    assert [r['firstName'] for r in body['data']] == ['NENE']


def test_update_resident_recomputes_keys_and_blocks_duplicates():
    app, client, headers = _bootstrap()

    client.post('/api/residents', json=_resident_payload(), headers=headers)
    client.post('/api/residents', json=_resident_payload(firstName='Pedro'), headers=headers)

    resp = client.put('/api/residents/SF-000002', json={'firstName': 'juan'}, headers=headers)
    assert resp.status_code == 409

    resp = client.put('/api/residents/SF-000002', json={
        'firstName': 'Pablo',
        'occupation': 'farmer',
        'isTUPAD': 'yes',
        'contactNumber': '09998887777',
    }, headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['firstName'] == 'PABLO'
    assert body['occupation'] == 'FARMER'
    assert body['isTUPAD'] is True

    with app.app_context():
        resident = Resident.query.filter_by(unique_id='SF-000002').one()
        assert resident.full_name_key == 'DELACRUZ_PABLO_SANTOS'

    assert client.put('/api/residents/SF-999999', json={}, headers=headers).status_code == 404


def test_delete_head_dissolves_household():
    app, client, headers = _bootstrap()

    client.post('/api/residents', json=_resident_payload(), headers=headers)
    client.post('/api/residents', json=_resident_payload(firstName='Maria', gender='Female'), headers=headers)

    with app.app_context():
        head = Resident.query.filter_by(unique_id='SF-000001').one()
        member = Resident.query.filter_by(unique_id='SF-000002').one()
        household = Household(household_id='HH-000001', head_id=head.id)
        db.session.add(household)
        db.session.flush()
        db.session.add(HouseholdMember(household_id=household.id, resident_id=member.id))
        head.role = 'head'
        member.role = 'member'
        db.session.commit()

    resp = client.get('/api/residents/household-status?uniqueId=SF-000002', headers=headers)
    body = resp.get_json()
    assert body['isInHousehold'] is True
    assert body['role'] == 'member'
    assert body['householdId'] == 'HH-000001'

    resp = client.delete('/api/residents/SF-000001', headers=headers)
    assert resp.status_code == 200

    with app.app_context():
        assert Household.query.count() == 0
        assert Resident.query.filter_by(unique_id='SF-000002').one().role is None

    resp = client.get('/api/residents/household-status?uniqueId=SF-000002', headers=headers)
    assert resp.get_json()['isInHousehold'] is False
    assert client.get('/api/residents/household-status', headers=headers).status_code == 400


def test_search_by_field_and_keyword():
    _, client, headers = _bootstrap()

    client.post('/api/residents', json=_resident_payload(), headers=headers)
    client.post('/api/residents', json=_resident_payload(firstName='Ana', lastName='Reyes'), headers=headers)

    resp = client.get('/api/residents/search?lastName=reyes', headers=headers)
    assert [r['firstName'] for r in resp.get_json()['residents']] == ['ANA']

    resp = client.get('/api/residents/search?q=SF-000001', headers=headers)
    body = resp.get_json()
    assert body['total'] == 1
    assert body['residents'][0]['lastName'] == 'DELA CRUZ'


def test_batch_upload_workbook():
    app, client, headers = _bootstrap()

    wb = Workbook()
    ws = wb.active
    ws.title = 'Residents Template'
    ws.append(['First Name'] + [''] * 19)
    ws.append(['MARIA', '', 'SAMPLE', '', '1990-01-01', '', 'SAMPLE ADDRESS', 'FILIPINO', 'Female', 'Single'])
    ws.append(['Rosa', 'Lim', 'Garcia', '', '15/08/1975', 'Angeles, Pampanga', 'Purok 1', 'Filipino',
               'F', 'Married', 'Yes', '', '', 'vendor', 9171112222, '', 'No', 'Yes', 'No', 'No'])
    buf = BytesIO()
    wb.save(buf)

    resp = client.post(
        '/api/residents/batch-upload',
        data={'file': (BytesIO(buf.getvalue()), 'residents.xlsx')},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['count'] == 1
    rosa = body['residents'][0]
    assert rosa['firstName'] == 'ROSA'
    assert rosa['birthdate'] == '1975-08-15'
    assert rosa['contactNumber'] == '09171112222'
    assert rosa['isPWD'] is True

    with app.app_context():
        assert AuditLog.query.filter_by(action=AuditAction.RESIDENTS_IMPORTED).count() == 1


def test_batch_upload_rejects_whole_file_on_bad_row():
    app, client, headers = _bootstrap()

    wb = Workbook()
    ws = wb.active
    ws.append(['First Name'] + [''] * 19)
    ws.append(['Rosa', '', 'Garcia', '', '1975-08-15', '', 'Purok 1', 'Filipino', 'Female', 'Married'])
    ws.append(['Tito', '', 'Garcia', '', '', '', 'Purok 1', 'Filipino', 'Male', 'Married'])
    buf = BytesIO()
    wb.save(buf)

    resp = client.post(
        '/api/residents/batch-upload',
        data={'file': (BytesIO(buf.getvalue()), 'residents.xlsx')},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['error'] == 'Validation errors found'
    assert body['details'] == ['Row 3: Missing required fields: Birthdate']

    with app.app_context():
        assert Resident.query.count() == 0

    resp = client.post(
        '/api/residents/batch-upload',
        data={'file': (BytesIO(b'a,b,c'), 'residents.csv')},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Please upload an Excel file (.xlsx)'


def test_template_download_is_a_workbook():
    _, client, headers = _bootstrap()

    resp = client.get('/api/residents/template', headers=headers)
    assert resp.status_code == 200
    assert 'residents-template.xlsx' in resp.headers['Content-Disposition']
    wb = load_workbook(BytesIO(resp.data))
    assert 'Residents Template' in wb.sheetnames


def test_photo_upload_sets_resident_photo(tmp_path):
    app, client, headers = _bootstrap(tmp_path)

    client.post('/api/residents', json=_resident_payload(), headers=headers)

    resp = client.post(
        '/api/residents/SF-000001/documents',
        data={'file': (BytesIO(PNG_BYTES), 'face.png'), 'type': 'photo'},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 201
    document = resp.get_json()
    assert document['url'].startswith('/uploads/photos/SF-000001/')

    resp = client.get('/api/residents/SF-000001', headers=headers)
    assert resp.get_json()['photo'] == document['url']

    resp = client.post(
        '/api/residents/SF-000001/documents',
        data={'file': (BytesIO(b'not really a png'), 'fake.png'), 'type': 'id'},
        headers=headers,
        content_type='multipart/form-data',
    )
    assert resp.status_code == 400

    resp = client.delete(f"/api/residents/SF-000001/documents/{document['id']}", headers=headers)
    assert resp.status_code == 200
    assert client.get('/api/residents/SF-000001', headers=headers).get_json()['photo'] is None
    assert client.get('/api/residents/SF-000001/documents', headers=headers).get_json()['documents'] == []
