"""
Three-step resident self-registration: details, email OTP, profile and files.
"""
from datetime import timedelta
from io import BytesIO

from flask_jwt_extended import create_access_token

from apps.bsphere import db
from apps.bsphere.app import create_app
from apps.bsphere.config import Config
from apps.bsphere.models.email_verification_code import EmailVerificationCode
from apps.bsphere.models.notification import Notification
from apps.bsphere.models.pending_registration import PendingRegistration
from apps.bsphere.models.resident import Resident, ResidentDocument
from apps.bsphere.utils.time import utc_now


class SignupTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False


PDF_BYTES = b'%PDF-1.4\n%test\n'


def _bootstrap(monkeypatch, tmp_path):
    app = create_app(SignupTestConfig)
    app.config['UPLOAD_FOLDER'] = tmp_path
    client = app.test_client()
    with app.app_context():
        db.create_all()

    outbox = []
    monkeypatch.setattr(
        'apps.bsphere.routes.auth.send_otp_email',
        lambda to, code, ttl, subject=None: outbox.append(('otp', to, code)),
    )
    monkeypatch.setattr(
        'apps.bsphere.routes.auth.send_registration_received_email',
        lambda to, unique_id: outbox.append(('received', to, unique_id)),
    )
    return app, client, outbox


def _step1(client, **overrides):
    payload = {
        'firstName': 'Rosa',
        'middleName': 'Lim',
        'lastName': 'Garcia',
        'email': 'Rosa@Example.com',
        'contactNumber': '09181234567',
        'birthdate': '1995-06-15',
        'password': 'secret1',
    }
    payload.update(overrides)
    return client.post('/api/auth/signup/step1', json=payload)


def _verified_unique_id(client, outbox):
    temp_id = _step1(client).get_json()['tempId']
    client.post('/api/auth/signup/step2', json={'action': 'send_otp', 'tempId': temp_id})
    code = outbox[-1][2]
    resp = client.post('/api/auth/signup/step2', json={'action': 'verify_otp', 'tempId': temp_id, 'otp': code})
    return resp.get_json()['uniqueId']


def test_full_registration(monkeypatch, tmp_path):
    app, client, outbox = _bootstrap(monkeypatch, tmp_path)

    resp = _step1(client)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['nextStep'] == 2
    temp_id = body['tempId']
    assert temp_id.startswith('temp_')

    resp = client.post('/api/auth/signup/step2', json={'action': 'send_email_otp', 'tempId': temp_id})
    assert resp.status_code == 200
    kind, to, code = outbox[-1]
    assert (kind, to) == ('otp', 'rosa@example.com')

    resp = client.post('/api/auth/signup/step2', json={'action': 'verify_email_otp', 'tempId': temp_id, 'otp': code})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['uniqueId'] == 'SF-000001'
    assert body['nextStep'] == 3

    with app.app_context():
        assert PendingRegistration.query.count() == 0
        resident = Resident.query.filter_by(unique_id='SF-000001').one()
        assert resident.account_status == 'pending_verification'
        assert resident.first_name == 'ROSA'
        assert resident.password_hash.startswith('$2')

    resp = client.post(
        '/api/auth/signup/step3',
        data={
            'uniqueId': 'SF-000001',
            'address': 'Purok 5, San Francisco',
            'gender': 'Female',
            'citizenship': 'Filipino',
            'voterStatus': 'Registered',
            'maritalStatus': 'Single',
            'occupation': 'teacher',
            'validId': (BytesIO(PDF_BYTES), 'umid.pdf'),
        },
        content_type='multipart/form-data',
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['accountStatus'] == 'for_verification'
    assert body['uploadedFiles'][0]['type'] == 'validId'
    assert body['uploadedFiles'][0]['fileName'].startswith('registrations/SF-000001/')
    assert outbox[-1] == ('received', 'rosa@example.com', 'SF-000001')

    with app.app_context():
        resident = Resident.query.filter_by(unique_id='SF-000001').one()
        assert resident.address == 'PUROK 5, SAN FRANCISCO'
        assert resident.occupation == 'TEACHER'
        assert ResidentDocument.query.filter_by(resident_id=resident.id, type='validId').count() == 1
        alert = Notification.query.filter_by(type='resident_registration').one()
        assert alert.target_role == 'admin'
        assert alert.data['residentId'] == 'SF-000001'


def test_step1_validation(monkeypatch, tmp_path):
    app, client, _ = _bootstrap(monkeypatch, tmp_path)

    resp = _step1(client, password='')
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'All fields are required'

    resp = _step1(client, birthdate='2020-01-01')
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'You must be at least 13 years old'

    resp = _step1(client, contactNumber='12345')
    assert resp.status_code == 400

    with app.app_context():
        db.session.add(Resident(
            unique_id='SF-000001',
            first_name='ROSA',
            middle_name='LIM',
            last_name='GARCIA',
            birthdate='1995-06-15',
            email='rosa@example.com',
            identity_key='GARCIA_ROSA_LIM_1995-06-15',
            full_name_key='GARCIA_ROSA_LIM',
        ))
        db.session.commit()

    resp = _step1(client)
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'An account with this email already exists'

    resp = _step1(client, email='other@example.com')
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'A resident with the same name and birthdate already exists'


def test_step2_rejects_bad_otp_and_unknown_session(monkeypatch, tmp_path):
    app, client, outbox = _bootstrap(monkeypatch, tmp_path)

    temp_id = _step1(client).get_json()['tempId']
    client.post('/api/auth/signup/step2', json={'action': 'send_otp', 'tempId': temp_id})

    resp = client.post('/api/auth/signup/step2', json={'action': 'verify_otp', 'tempId': temp_id, 'otp': 'nope'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid OTP code'

    resp = client.post('/api/auth/signup/step2', json={'action': 'send_otp', 'tempId': 'temp_missing'})
    assert resp.status_code == 404

    resp = client.post('/api/auth/signup/step2', json={'action': 'verify_otp', 'tempId': temp_id})
    assert resp.status_code == 400

    resp = client.post('/api/auth/signup/step2', json={'action': 'skip', 'tempId': temp_id})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid action'

    with app.app_context():
        assert Resident.query.count() == 0


def test_step3_requirements(monkeypatch, tmp_path):
    app, client, outbox = _bootstrap(monkeypatch, tmp_path)
    unique_id = _verified_unique_id(client, outbox)

    resp = client.post('/api/auth/signup/step3', json={'uniqueId': unique_id, 'address': 'Purok 5'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Gender is required'

    complete = {
        'address': 'Purok 5',
        'gender': 'Female',
        'citizenship': 'Filipino',
        'voterStatus': 'Registered',
        'maritalStatus': 'Single',
    }
    resp = client.post('/api/auth/signup/step3', json={'uniqueId': 'SF-000404', **complete})
    assert resp.status_code == 404

    resp = client.post(
        '/api/auth/signup/step3',
        data={'uniqueId': unique_id, **complete, 'validId': (BytesIO(b'MZ\x90\x00'), 'virus.exe')},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 400

    with app.app_context():
        resident = Resident.query.filter_by(unique_id=unique_id).one()
        assert resident.account_status == 'pending_verification'
        resident.account_status = 'approved'
        db.session.commit()

    resp = client.post('/api/auth/signup/step3', json={'uniqueId': unique_id, **complete})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Registration already completed'


def test_step2_otp_attempt_limit_and_expiry(monkeypatch, tmp_path):
    app, client, outbox = _bootstrap(monkeypatch, tmp_path)

    temp_id = _step1(client).get_json()['tempId']
    client.post('/api/auth/signup/step2', json={'action': 'send_otp', 'tempId': temp_id})
    code = outbox[-1][2]

    for _ in range(3):
        resp = client.post('/api/auth/signup/step2', json={'action': 'verify_otp', 'tempId': temp_id, 'otp': 'wrong'})
        assert resp.get_json()['error'] == 'Invalid OTP code'

    # The right code no longer helps once the attempts are spent
    resp = client.post('/api/auth/signup/step2', json={'action': 'verify_otp', 'tempId': temp_id, 'otp': code})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Too many failed attempts'
    with app.app_context():
        assert EmailVerificationCode.query.filter_by(session_id=temp_id).count() == 0
        assert Resident.query.count() == 0

    client.post('/api/auth/signup/step2', json={'action': 'send_otp', 'tempId': temp_id})
    code = outbox[-1][2]
    with app.app_context():
        otp = EmailVerificationCode.query.filter_by(session_id=temp_id).one()
        otp.expires_at = utc_now() - timedelta(minutes=1)
        db.session.commit()

    resp = client.post('/api/auth/signup/step2', json={'action': 'verify_otp', 'tempId': temp_id, 'otp': code})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'OTP has expired'
    with app.app_context():
        assert EmailVerificationCode.query.filter_by(session_id=temp_id).count() == 0

    # A fresh code still completes the registration
    client.post('/api/auth/signup/step2', json={'action': 'send_otp', 'tempId': temp_id})
    resp = client.post('/api/auth/signup/step2', json={
        'action': 'verify_otp', 'tempId': temp_id, 'otp': outbox[-1][2],
    })
    assert resp.status_code == 200
    assert resp.get_json()['uniqueId'] == 'SF-000001'


def test_registration_files_are_removed_with_their_document(monkeypatch, tmp_path):
    app, client, outbox = _bootstrap(monkeypatch, tmp_path)
    unique_id = _verified_unique_id(client, outbox)

    resp = client.post(
        '/api/auth/signup/step3',
        data={
            'uniqueId': unique_id,
            'address': 'Purok 5',
            'gender': 'Female',
            'citizenship': 'Filipino',
            'voterStatus': 'Registered',
            'maritalStatus': 'Single',
            'validId': (BytesIO(PDF_BYTES), 'umid.pdf'),
        },
        content_type='multipart/form-data',
    )
    assert resp.status_code == 200

    with app.app_context():
        document = ResidentDocument.query.filter_by(type='validId').one()
        assert document.path.startswith(f'registrations/{unique_id}/')
        stored = tmp_path.joinpath(*document.path.split('/'))
        document_id = document.id
        token = create_access_token(
            identity='1',
            additional_claims={'email': 'captain@example.com', 'role': 'admin', 'userType': 'admin'},
        )
    assert stored.exists()

    headers = {'Authorization': f'Bearer {token}'}
    listed = client.get(f'/api/residents/{unique_id}/documents', headers=headers).get_json()['documents']
    assert [d['id'] for d in listed] == [document_id]

    resp = client.delete(f'/api/residents/{unique_id}/documents/{document_id}', headers=headers)
    assert resp.status_code == 200
    assert not stored.exists()
    with app.app_context():
        assert ResidentDocument.query.count() == 0
