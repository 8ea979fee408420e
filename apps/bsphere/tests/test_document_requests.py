"""
Document request lifecycle: control numbers, status review, rendering.
"""
from io import BytesIO

from docx import Document
from flask_jwt_extended import create_access_token

from apps.bsphere import db
from apps.bsphere.app import create_app
from apps.bsphere.config import Config
from apps.bsphere.models.admin import AdminAccount
from apps.bsphere.models.audit import AuditLog, AuditAction
from apps.bsphere.models.document import DocumentRequest, DocumentCounter
from apps.bsphere.models.notification import Notification
from apps.bsphere.models.resident import Resident


class DocumentTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False
    BARANGAY_NAME = 'San Francisco'


def _bootstrap():
    app = create_app(DocumentTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        admin = AdminAccount(
            email='clerk@example.com',
            password_hash='test',
            first_name='CLERK',
            last_name='ONE',
        )
        resident = Resident(
            unique_id='SF-000001',
            first_name='JUAN',
            last_name='DELA CRUZ',
            birthdate='1990-01-02',
            email='juan@example.com',
        )
        db.session.add_all([admin, resident])
        db.session.commit()
        admin_id = admin.id
        token = create_access_token(
            identity=str(admin.id),
            additional_claims={'email': admin.email, 'role': 'admin', 'userType': 'admin'},
        )

    return app, client, {'Authorization': f'Bearer {token}'}, admin_id


def _request_payload(**overrides):
    payload = {
        'documentType': 'Barangay Clearance',
        'residentId': 'SF-000001',
        'fullName': 'Juan Dela Cruz',
        'purpose': 'employment',
        'age': 36,
        'address': 'Purok 3, San Francisco',
        'contactNumber': '09171234567',
    }
    payload.update(overrides)
    return payload


def test_resident_can_file_request_and_gets_control_number():
    app, client, _, _ = _bootstrap()

    resp = client.post('/api/document-requests', json=_request_payload())
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['success'] is True
    assert body['requestId'] == 'CLR-0001-0001'
    assert body['data']['fullName'] == 'JUAN DELA CRUZ'
    assert body['data']['purpose'] == 'EMPLOYMENT'
    assert body['data']['status'] == 'pending'

    resp = client.post('/api/document-requests', json=_request_payload())
    assert resp.get_json()['requestId'] == 'CLR-0001-0002'

    resp = client.post('/api/document-requests', json=_request_payload(documentType='Barangay Indigency'))
    assert resp.get_json()['requestId'] == 'IND-0001-0001'

    with app.app_context():
        assert db.session.get(DocumentCounter, 'Barangay Clearance').count == 2
        admin_alerts = Notification.query.filter_by(type='document_request', target_role='admin').all()
        assert len(admin_alerts) == 3
        assert admin_alerts[0].data['controlId'] == 'CLR-0001-0001'


def test_business_permit_uses_yearly_number_and_business_fields():
    _, client, _, _ = _bootstrap()

    resp = client.post('/api/document-requests', json=_request_payload(
        documentType='Business Permit',
        businessName="Aling Nena's Store",
        businessType='sari-sari',
        businessAddress='Purok 1',
        ctcNumber='CTC-123',
    ))
    assert resp.status_code == 201
    data = resp.get_json()['data']
    assert resp.get_json()['requestId'].startswith('BBP-')
    assert resp.get_json()['requestId'].endswith('-0001')
    assert data['businessName'] == "ALING NENA'S STORE"
    assert data['ctcNumber'] == 'CTC-123'


def test_request_validation():
    app, client, _, _ = _bootstrap()

    resp = client.post('/api/document-requests', json=_request_payload(purpose=''))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Missing required fields'

    resp = client.post('/api/document-requests', json=_request_payload(documentType='Cedula'))
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid document type: Cedula'

    with app.app_context():
        assert DocumentRequest.query.count() == 0
        assert DocumentCounter.query.count() == 0


def test_list_filters_by_status_and_resident():
    _, client, headers, _ = _bootstrap()

    client.post('/api/document-requests', json=_request_payload())
    client.post('/api/document-requests', json=_request_payload(residentId='SF-000002', fullName='Maria Cruz'))
    client.put('/api/document-requests/CLR-0001-0001', json={'status': 'APPROVED'}, headers=headers)

    resp = client.get('/api/document-requests')
    assert [d['controlId'] for d in resp.get_json()['data']] == ['CLR-0001-0002', 'CLR-0001-0001']

    resp = client.get('/api/document-requests?status=APPROVED')
    assert [d['controlId'] for d in resp.get_json()['data']] == ['CLR-0001-0001']

    resp = client.get('/api/document-requests?residentId=SF-000002')
    assert [d['fullName'] for d in resp.get_json()['data']] == ['MARIA CRUZ']


def test_approving_request_notifies_and_emails_resident(monkeypatch):
    app, client, headers, admin_id = _bootstrap()
    sent = []
    monkeypatch.setattr(
        'apps.bsphere.routes.documents.send_document_status_email',
        lambda to, doc_type, control_id, approved, requested_at=None: sent.append((to, control_id, approved)),
    )

    client.post('/api/document-requests', json=_request_payload())

    resp = client.put('/api/document-requests/CLR-0001-0001', json={'status': 'APPROVED'}, headers=headers)
    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert data['status'] == 'approved'
    assert data['issuedAt'] is not None
    assert data['processedBy'] == admin_id
    assert sent == [('juan@example.com', 'CLR-0001-0001', True)]

    with app.app_context():
        resident_alerts = Notification.query.filter_by(target_role='resident', target_user_id='SF-000001').all()
        assert len(resident_alerts) == 1
        audit = AuditLog.query.filter_by(action=AuditAction.DOCUMENT_STATUS_CHANGED).one()
        assert audit.details == {'from': 'pending', 'to': 'approved'}

    # Same status again: no second notification or email
    client.put('/api/document-requests/CLR-0001-0001', json={'status': 'APPROVED'}, headers=headers)
    assert len(sent) == 1

    resp = client.put('/api/document-requests/CLR-0001-0001', json={'status': 'REJECT'}, headers=headers)
    assert resp.get_json()['data']['status'] == 'rejected'
    assert sent[-1] == ('juan@example.com', 'CLR-0001-0001', False)


def test_status_update_validation_and_admin_only():
    _, client, headers, _ = _bootstrap()

    client.post('/api/document-requests', json=_request_payload())

    resp = client.put('/api/document-requests/CLR-0001-0001', json={'status': 'APPROVED'})
    assert resp.status_code == 401

    resp = client.put('/api/document-requests/CLR-0001-0001', json={}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Status is required'

    resp = client.put('/api/document-requests/CLR-0001-0001', json={'status': 'done'}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid status value'

    resp = client.put('/api/document-requests/CLR-9999-9999', json={'status': 'PENDING'}, headers=headers)
    assert resp.status_code == 404


def test_get_and_delete_by_control_number_or_id():
    app, client, headers, _ = _bootstrap()

    client.post('/api/document-requests', json=_request_payload())
    with app.app_context():
        request_pk = DocumentRequest.query.one().id

    resp = client.get(f'/api/document-requests/{request_pk}', headers=headers)
    assert resp.get_json()['data']['controlId'] == 'CLR-0001-0001'
    assert client.get('/api/document-requests/CLR-0001-0001').status_code == 401

    assert client.delete('/api/document-requests/CLR-0001-0001', headers=headers).status_code == 200
    assert client.get('/api/document-requests/CLR-0001-0001', headers=headers).status_code == 404

    with app.app_context():
        assert AuditLog.query.filter_by(action=AuditAction.DOCUMENT_DELETED).count() == 1


def test_generate_docx_and_pdf():
    app, client, headers, _ = _bootstrap()

    client.post('/api/document-requests', json=_request_payload())

    resp = client.post('/api/document-requests/CLR-0001-0001/generate', headers=headers)
    assert resp.status_code == 200
    assert 'barangay_clearance_CLR-0001-0001.docx' in resp.headers['Content-Disposition']
    text = '\n'.join(p.text for p in Document(BytesIO(resp.data)).paragraphs)
    assert 'BARANGAY CLEARANCE' in text
    assert 'JUAN DELA CRUZ' in text
    assert 'CLR-0001-0001' in text

    resp = client.get('/api/document-requests/CLR-0001-0001/generate?format=pdf', headers=headers)
    assert resp.status_code == 200
    assert resp.mimetype == 'application/pdf'
    assert resp.data.startswith(b'%PDF')

    with app.app_context():
        assert AuditLog.query.filter_by(action=AuditAction.DOCUMENT_GENERATED).count() == 2

    assert client.post('/api/document-requests/CLR-0001-0404/generate', headers=headers).status_code == 404


def test_preview_is_watermarked_and_does_not_reserve_numbers():
    app, client, headers, _ = _bootstrap()

    client.post('/api/document-requests', json=_request_payload())

    resp = client.get('/api/document-requests/CLR-0001-0001/preview', headers=headers)
    assert resp.status_code == 200
    assert 'preview_barangay_clearance' in resp.headers['Content-Disposition']
    header = Document(BytesIO(resp.data)).sections[0].header.paragraphs[0].text
    assert 'PREVIEW' in header

    resp = client.post('/api/document-requests/preview', json={
        'documentType': 'Barangay Clearance',
        'fullName': 'Maria Cruz',
        'purpose': 'scholarship',
    }, headers=headers)
    assert resp.status_code == 200
    assert 'CLR-0001-0002' in resp.headers['Content-Disposition']

    resp = client.post('/api/document-requests/preview', json={'fullName': 'Maria Cruz'}, headers=headers)
    assert resp.status_code == 400

    with app.app_context():
        assert db.session.get(DocumentCounter, 'Barangay Clearance').count == 1


def test_business_permit_preview_shows_next_permit_number():
    app, client, headers, _ = _bootstrap()

    resp = client.post('/api/document-requests/preview', json={
        'documentType': 'Business Permit',
        'fullName': 'Juan Dela Cruz',
        'businessName': 'Sari-Sari Store',
        'businessType': 'Retail',
        'businessAddress': 'Purok 2',
    }, headers=headers)
    assert resp.status_code == 200
    text = '\n'.join(p.text for p in Document(BytesIO(resp.data)).paragraphs)
    assert 'Permit No.: 0000-001' in text

    with app.app_context():
        assert db.session.get(DocumentCounter, 'Business Permit') is None
