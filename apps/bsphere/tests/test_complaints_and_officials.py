from flask_jwt_extended import create_access_token

from apps.bsphere import db
from apps.bsphere.app import create_app
from apps.bsphere.config import Config
from apps.bsphere.models.admin import AdminAccount
from apps.bsphere.models.audit import AuditLog, AuditAction
from apps.bsphere.models.notification import Notification
from apps.bsphere.models.official import Official
from apps.bsphere.models.resident import Resident


class BlotterTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False


def _bootstrap():
    app = create_app(BlotterTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        admin = AdminAccount(
            email='desk@example.com',
            password_hash='test',
            first_name='DESK',
            last_name='OFFICER',
        )
        db.session.add(admin)
        for n, (first, last) in enumerate([('CARTER', 'MANZANO'), ('LYDIA', 'AQUINO'), ('BEN', 'TAN')], start=1):
            db.session.add(Resident(unique_id=f'SF-{n:06d}', first_name=first, last_name=last, birthdate='1970-01-01'))
        db.session.commit()
        token = create_access_token(
            identity=str(admin.id),
            additional_claims={'email': admin.email, 'role': 'admin', 'userType': 'admin'},
        )

    return app, client, {'Authorization': f'Bearer {token}'}


def _complaint(**overrides):
    payload = {
        'type': 'Noise',
        'nature': 'Karaoke past midnight',
        'respondent': 'Ben Tan',
        'complainant': 'Lydia Aquino',
        'dateFiled': '2026-10-01',
        'officer': 'Kagawad Cruz',
        'status': 'Pending',
    }
    payload.update(overrides)
    return payload


def test_file_and_list_complaints():
    app, client, headers = _bootstrap()

    resp = client.post('/api/complaints', json=_complaint())
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['id'] == 'CMP-001'
    assert body['assignedOfficer'] == 'Kagawad Cruz'

    resp = client.post('/api/complaints', json=_complaint(dateFiled='2026-10-05', type='Theft'))
    assert resp.get_json()['id'] == 'CMP-002'

    resp = client.post('/api/complaints', json=_complaint(officer=''))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Missing required fields'

    assert client.get('/api/complaints').status_code == 401
    resp = client.get('/api/complaints', headers=headers)
    assert [c['id'] for c in resp.get_json()['complaints']] == ['CMP-002', 'CMP-001']

    with app.app_context():
        assert Notification.query.filter_by(type='complaint', target_role='admin').count() == 2


def test_update_complaint_by_path_or_body():
    app, client, headers = _bootstrap()
    client.post('/api/complaints', json=_complaint())

    resp = client.put('/api/complaints/CMP-001', json={'status': 'Resolved', 'resolutionDate': '2026-10-10'},
                      headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'Resolved'
    assert resp.get_json()['resolutionDate'] == '2026-10-10'

    resp = client.put('/api/complaints', json={'id': 'CMP-001', 'officer': 'Kagawad Reyes'}, headers=headers)
    assert resp.get_json()['assignedOfficer'] == 'Kagawad Reyes'

    resp = client.put('/api/complaints', json={'status': 'Closed'}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Complaint ID is required'

    resp = client.put('/api/complaints/CMP-001', json={'respondent': ''}, headers=headers)
    assert resp.status_code == 400

    assert client.put('/api/complaints/CMP-404', json={'status': 'x'}, headers=headers).status_code == 404
    assert client.put('/api/complaints/CMP-001', json={'status': 'x'}).status_code == 401

    with app.app_context():
        logs = AuditLog.query.filter_by(action=AuditAction.COMPLAINT_UPDATED).order_by(AuditLog.id).all()
        assert [log.details['changed'] for log in logs] == [['resolutionDate', 'status'], ['officer']]


def test_assign_official_and_unique_positions():
    _, client, headers = _bootstrap()

    resp = client.post('/api/officials', json={
        'residentId': 'SF-000001',
        'position': 'Barangay Captain',
        'termStart': '2023-11-30',
        'termEnd': '2026-11-30',
    }, headers=headers)
    assert resp.status_code == 201
    assert resp.get_json()['name'] == 'CARTER MANZANO'

    resp = client.post('/api/officials', json={'residentId': 'SF-000002', 'position': 'Barangay Captain'},
                       headers=headers)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body['error'] == 'Position already taken'
    assert 'CARTER MANZANO' in body['message']

    # Kagawad seats are not unique
    for uid in ('SF-000002', 'SF-000003'):
        resp = client.post('/api/officials', json={'residentId': uid, 'position': 'Kagawad'}, headers=headers)
        assert resp.status_code == 201

    resp = client.post('/api/officials', json={'residentId': 'SF-000002', 'position': 'Kagawad'}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Resident is already an official'

    assert client.post('/api/officials', json={'position': 'Kagawad'}, headers=headers).status_code == 400
    assert client.post('/api/officials', json={'residentId': 'SF-000404', 'position': 'Kagawad'},
                       headers=headers).status_code == 404
    assert client.post('/api/officials', json={'residentId': 'SF-000003', 'position': 'Kagawad'}).status_code == 401

    resp = client.get('/api/officials')
    assert resp.status_code == 200
    officials = resp.get_json()
    assert len(officials) == 3
    assert officials[0]['position'] == 'Barangay Captain'
    assert officials[0]['resident']['uniqueId'] == 'SF-000001'


def test_inactive_holder_frees_the_position():
    app, client, headers = _bootstrap()

    client.post('/api/officials', json={'residentId': 'SF-000001', 'position': 'Barangay Treasurer'}, headers=headers)

    resp = client.put('/api/officials/SF-000001', json={'status': 'inactive'}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'Inactive'

    resp = client.post('/api/officials', json={'residentId': 'SF-000002', 'position': 'Barangay Treasurer'},
                       headers=headers)
    assert resp.status_code == 201

    # Reactivating the old holder now collides
    resp = client.put('/api/officials', json={'residentId': 'SF-000001', 'status': 'Active'}, headers=headers)
    assert resp.status_code == 409

    resp = client.put('/api/officials/SF-000001', json={'status': 'retired'}, headers=headers)
    assert resp.status_code == 400

    with app.app_context():
        assert AuditLog.query.filter_by(action=AuditAction.OFFICIAL_ASSIGNED).count() == 2


def test_remove_official():
    app, client, headers = _bootstrap()
    client.post('/api/officials', json={'residentId': 'SF-000003', 'position': 'SK Chairman'}, headers=headers)

    assert client.delete('/api/officials', headers=headers).status_code == 400
    assert client.delete('/api/officials?residentId=SF-000002', headers=headers).status_code == 404

    resp = client.delete('/api/officials?residentId=SF-000003', headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['message'] == 'Official deleted successfully'

    with app.app_context():
        assert Official.query.count() == 0
        assert Resident.query.filter_by(unique_id='SF-000003').count() == 1
