"""
Household membership rules: one household per resident, roles mirror placement.
"""
from flask_jwt_extended import create_access_token

from apps.bsphere import db
from apps.bsphere.app import create_app
from apps.bsphere.config import Config
from apps.bsphere.models.admin import AdminAccount
from apps.bsphere.models.audit import AuditLog, AuditAction
from apps.bsphere.models.household import Household, HouseholdMember
from apps.bsphere.models.resident import Resident


class HouseholdTestConfig(Config):
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TESTING = True
    JWT_SECRET_KEY = 'test-secret'
    RATELIMIT_ENABLED = False


def _bootstrap():
    app = create_app(HouseholdTestConfig)
    client = app.test_client()

    with app.app_context():
        db.create_all()
        admin = AdminAccount(
            email='admin@example.com',
            password_hash='test',
            first_name='ADMIN',
            last_name='USER',
        )
        db.session.add(admin)
        for n, first in enumerate(['JUAN', 'MARIA', 'PEDRO', 'ROSA', 'TONY'], start=1):
            db.session.add(Resident(
                unique_id=f'SF-{n:06d}',
                first_name=first,
                last_name='DELA CRUZ',
                birthdate=f'19{70 + n}-01-01',
                address='PUROK 3, SAN FRANCISCO',
                role='resident',
            ))
        db.session.commit()
        token = create_access_token(
            identity=str(admin.id),
            additional_claims={'email': admin.email, 'role': 'admin', 'userType': 'admin'},
        )

    return app, client, {'Authorization': f'Bearer {token}'}


def _roles(app):
    with app.app_context():
        return {r.unique_id: r.role for r in Resident.query.all()}


def test_create_household_sets_roles_and_embeds_details():
    app, client, headers = _bootstrap()

    resp = client.post('/api/households', json={
        'headOfHousehold': 'SF-000001',
        'members': ['SF-000002', 'SF-000003', 'SF-000002'],
        'contactNumber': '09171234567',
    }, headers=headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['householdId'] == 'HH-000001'
    assert body['headOfHousehold'] == 'SF-000001'
    assert body['members'] == ['SF-000002', 'SF-000003']
    assert body['address'] == 'PUROK 3, SAN FRANCISCO'
    assert body['headDetails']['firstName'] == 'JUAN'
    assert [m['uniqueId'] for m in body['memberDetails']] == ['SF-000002', 'SF-000003']

    roles = _roles(app)
    assert roles['SF-000001'] == 'head'
    assert roles['SF-000002'] == 'member'
    assert roles['SF-000004'] == 'resident'

    resp = client.post('/api/households', json={'headOfHousehold': 'SF-000004'}, headers=headers)
    assert resp.get_json()['householdId'] == 'HH-000002'

    listing = client.get('/api/households', headers=headers).get_json()
    assert [h['householdId'] for h in listing] == ['HH-000002', 'HH-000001']

    with app.app_context():
        assert AuditLog.query.filter_by(action=AuditAction.HOUSEHOLD_CREATED).count() == 2


def test_create_household_validation():
    _, client, headers = _bootstrap()

    resp = client.post('/api/households', json={'members': ['SF-000002']}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Head of household is required'

    resp = client.post('/api/households', json={
        'headOfHousehold': 'SF-000001',
        'members': ['SF-000001'],
    }, headers=headers)
    assert resp.status_code == 400

    resp = client.post('/api/households', json={
        'headOfHousehold': 'SF-000001',
        'members': ['SF-000404'],
    }, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Resident SF-000404 not found'


def test_resident_cannot_join_two_households():
    app, client, headers = _bootstrap()

    client.post('/api/households', json={'headOfHousehold': 'SF-000001', 'members': ['SF-000002']}, headers=headers)

    resp = client.post('/api/households', json={'headOfHousehold': 'SF-000002'}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == (
        'This resident is already a member in household HH-000001 and cannot be added again.'
    )

    resp = client.post('/api/households', json={
        'headOfHousehold': 'SF-000003',
        'members': ['SF-000001'],
    }, headers=headers)
    assert resp.status_code == 400
    assert 'Resident SF-000001 is already a head in household HH-000001' in resp.get_json()['error']

    with app.app_context():
        assert Household.query.count() == 1
    assert _roles(app)['SF-000003'] == 'resident'


def test_update_household_swaps_head_and_members():
    app, client, headers = _bootstrap()

    client.post('/api/households', json={
        'headOfHousehold': 'SF-000001',
        'members': ['SF-000002', 'SF-000003'],
    }, headers=headers)

    resp = client.put('/api/households/HH-000001', json={
        'headOfHousehold': 'SF-000002',
        'members': ['SF-000001', 'SF-000004'],
        'notes': 'Relocated from Purok 2',
    }, headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['headOfHousehold'] == 'SF-000002'
    assert sorted(body['members']) == ['SF-000001', 'SF-000004']
    assert body['notes'] == 'Relocated from Purok 2'

    roles = _roles(app)
    assert roles['SF-000001'] == 'member'
    assert roles['SF-000002'] == 'head'
    assert roles['SF-000003'] is None
    assert roles['SF-000004'] == 'member'

    with app.app_context():
        assert HouseholdMember.query.count() == 2


def test_update_household_rejects_member_of_another_household():
    _, client, headers = _bootstrap()

    client.post('/api/households', json={'headOfHousehold': 'SF-000001'}, headers=headers)
    client.post('/api/households', json={'headOfHousehold': 'SF-000005', 'members': ['SF-000004']}, headers=headers)

    resp = client.put('/api/households/HH-000001', json={'members': ['SF-000004']}, headers=headers)
    assert resp.status_code == 400
    assert 'HH-000002' in resp.get_json()['error']

    assert client.put('/api/households/HH-000404', json={}, headers=headers).status_code == 404


def test_delete_household_clears_roles():
    app, client, headers = _bootstrap()

    client.post('/api/households', json={'headOfHousehold': 'SF-000001', 'members': ['SF-000002']}, headers=headers)

    resp = client.delete('/api/households/HH-000001', headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['message'] == 'Household deleted successfully'

    roles = _roles(app)
    assert roles['SF-000001'] is None
    assert roles['SF-000002'] is None
    assert client.get('/api/households/HH-000001', headers=headers).status_code == 404

    with app.app_context():
        assert HouseholdMember.query.count() == 0


def test_households_require_admin_token():
    _, client, _ = _bootstrap()
    assert client.get('/api/households').status_code == 401
