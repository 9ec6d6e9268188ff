"""
Integration tests for the back-office HTTP API.

These walk the account lifecycle end to end through the REST endpoints:
registration, verification, login with lockout, admin approval and the
family relationship flow, plus the patient record access rules.
"""

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from identity.models import Account, FamilyRelationship
from identity.tests.factories import PASSWORD, client_for, make_account

JANE = {
    'name': 'Jane',
    'email': 'jane@x.io',
    'password': 'secret1',
    'role': 'patient',
    'phone': '+15550001',
    'dateOfBirth': '1990-04-02',
    'gender': 'female',
    'bloodGroup': 'O+',
}

AMAR = {
    'name': 'Amar',
    'email': 'amar@x.io',
    'password': 'secret1',
    'role': 'doctor',
    'phone': '+15550002',
    'department': 'Cardiology',
    'specialization': 'Cardiology',
    'experience': '10 years',
}


class AccountLifecycleAPITests(APITestCase):
    def setUp(self) -> None:
        self.admin = make_account(Account.ROLE_ADMIN, email='admin@example.com')

    def register_and_verify(self, payload):
        r = self.client.post(reverse('register_view'), payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        token = Account.objects.get(email=payload['email']).verification_token
        r = self.client.post(reverse('verify_email_view'), {'token': token}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK, r.data)
        return r

    def login(self, email, password):
        return self.client.post(reverse('login_view'), {'email': email, 'password': password}, format='json')

    def test_patient_registration_verification_and_lockout(self):
        r = self.client.post(reverse('register_view'), JANE, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertTrue(r.data['token'])
        self.assertEqual(r.data['user']['email'], 'jane@x.io')
        self.assertFalse(r.data['user']['isVerified'])
        self.assertTrue(r.data['user']['isApproved'])
        self.assertTrue(r.data['user']['patientId'].startswith('PAT'))
        self.assertNotIn('password', r.data['user'])
        self.assertNotIn('verificationToken', r.data['user'])

        r = self.login('jane@x.io', 'secret1')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['error']['message'], 'Please verify your email address first')

        token = Account.objects.get(email='jane@x.io').verification_token
        r = self.client.post(reverse('verify_email_view'), {'token': token}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['message'], 'Email verified successfully!')
        self.assertTrue(r.data['user']['isVerified'])

        # Auto-login token works right away.
        me = APIClient()
        me.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['token']}")
        self.assertEqual(me.get(reverse('current_user_view')).data['email'], 'jane@x.io')

        r = self.client.post(reverse('verify_email_view'), {'token': token}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['error']['message'], 'Invalid verification token')

        for _ in range(5):
            r = self.login('jane@x.io', 'wrong-password')
            self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(r.data['error']['message'], 'Invalid credentials')
        r = self.login('jane@x.io', 'wrong-password')
        self.assertEqual(r.status_code, status.HTTP_423_LOCKED)
        r = self.login('jane@x.io', 'secret1')
        self.assertEqual(r.status_code, status.HTTP_423_LOCKED)
        self.assertEqual(Account.objects.get(email='jane@x.io').login_attempts, 5)

    def test_doctor_needs_admin_approval(self):
        self.register_and_verify(AMAR)

        r = self.login('amar@x.io', 'secret1')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(r.data['needsApproval'])

        admin = client_for(self.admin)
        pending = admin.get(reverse('pending_approvals_view'))
        self.assertEqual([u['email'] for u in pending.data], ['amar@x.io'])

        amar = Account.objects.get(email='amar@x.io')
        r = admin.post(reverse('approve_user_view'), {'userId': amar.id, 'approved': True}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['message'], 'User approved successfully')
        amar.refresh_from_db()
        self.assertEqual(amar.approved_by_id, self.admin.id)
        self.assertIsNotNone(amar.approved_at)

        r = self.login('amar@x.io', 'secret1')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['user']['role'], 'doctor')
        doctor = APIClient()
        doctor.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['token']}")
        self.assertEqual(doctor.get(reverse('current_user_view')).status_code, status.HTTP_200_OK)

        # Revocation takes effect on the next gated request, even with a live token.
        r = admin.post(reverse('approve_user_view'), {'userId': amar.id, 'approved': False}, format='json')
        self.assertEqual(r.data['message'], 'User approval revoked')
        r = doctor.get(reverse('current_user_view'))
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(r.data['needsApproval'])

    def test_only_admins_approve(self):
        nurse = make_account(Account.ROLE_NURSE, approver=self.admin)
        doctor = make_account(Account.ROLE_DOCTOR, approved=False)
        r = client_for(nurse).post(reverse('approve_user_view'), {'userId': doctor.id, 'approved': True},
                                   format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(r.data['error']['message'], 'Access denied. Admin only.')
        self.assertEqual(client_for(nurse).get(reverse('pending_approvals_view')).status_code, 403)

    def test_approving_a_patient_is_rejected(self):
        patient = make_account()
        r = client_for(self.admin).post(reverse('approve_user_view'), {'userId': patient.id, 'approved': False},
                                        format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approving_unknown_account_is_404(self):
        r = client_for(self.admin).post(reverse('approve_user_view'), {'userId': 999999, 'approved': True},
                                        format='json')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(r.data['error']['message'], 'User not found')


@pytest.mark.django_db
class TestRegistrationValidation:
    def post(self, payload):
        return APIClient().post(reverse('register_view'), payload, format='json')

    def test_admin_role_is_rejected(self):
        r = self.post({**JANE, 'role': 'admin'})
        assert r.status_code == 400
        assert 'role' in r.data['error']['message']
        assert not Account.objects.exists()

    def test_role_specific_fields_are_required(self):
        r = self.post({k: v for k, v in AMAR.items() if k not in ('specialization', 'experience')})
        assert r.status_code == 400
        assert set(r.data['error']['message']) == {'specialization', 'experience'}

        r = self.post({k: v for k, v in JANE.items() if k != 'bloodGroup'})
        assert r.status_code == 400
        assert set(r.data['error']['message']) == {'bloodGroup'}

    @pytest.mark.parametrize('field,value', [
        ('email', 'not-an-email'),
        ('password', '12345'),
        ('phone', 'call me'),
        ('role', 'janitor'),
        ('name', '   '),
    ])
    def test_field_validation(self, field, value):
        r = self.post({**JANE, field: value})
        assert r.status_code == 400
        assert field in r.data['error']['message']

    def test_duplicates(self):
        assert self.post(JANE).status_code == 201
        r = self.post({**JANE, 'phone': '+15550009'})
        assert r.status_code == 400
        assert r.data['error'] == {'code': 'duplicate_email', 'message': 'User already exists'}
        r = self.post({**JANE, 'email': 'other@x.io'})
        assert r.status_code == 400
        assert r.data['error']['code'] == 'duplicate_phone'


@pytest.mark.django_db
class TestFamilyAPI:
    @pytest.fixture(autouse=True)
    def _accounts(self, db):
        self.jane = make_account(email='jane@x.io', name='Jane')
        self.raj = make_account(email='raj@x.io', name='Raj')
        self.jane_client = client_for(self.jane)
        self.raj_client = client_for(self.raj)

    def request(self, client, requested_id, relationship='spouse'):
        return client.post(reverse('family_request'),
                           {'requestedId': requested_id, 'relationship': relationship}, format='json')

    def test_spouse_request_declined_then_blocked(self):
        r = self.request(self.jane_client, self.raj.id)
        assert r.status_code == 201
        edge_id = r.data['request']['id']
        assert r.data['request']['status'] == 'pending'
        assert r.data['request']['requested']['email'] == 'raj@x.io'

        r = self.request(self.raj_client, self.jane.id)
        assert r.status_code == 400
        assert r.data['error']['code'] == 'duplicate_edge'

        r = self.raj_client.post(reverse('family_respond'), {'requestId': edge_id, 'status': 'declined'},
                                 format='json')
        assert r.status_code == 200
        assert r.data['message'] == 'Family request declined successfully'
        assert r.data['request']['respondedAt'] is not None

        r = self.request(self.jane_client, self.raj.id)
        assert r.status_code == 400
        assert r.data['error']['code'] == 'duplicate_edge'

    def test_requester_cannot_respond_to_own_request(self):
        edge_id = self.request(self.jane_client, self.raj.id).data['request']['id']
        r = self.jane_client.post(reverse('family_respond'), {'requestId': edge_id, 'status': 'accepted'},
                                  format='json')
        assert r.status_code == 404

    def test_invalid_decision(self):
        edge_id = self.request(self.jane_client, self.raj.id).data['request']['id']
        r = self.raj_client.post(reverse('family_respond'), {'requestId': edge_id, 'status': 'maybe'},
                                 format='json')
        assert r.status_code == 400
        assert 'status' in r.data['error']['message']

    def test_request_to_unverified_or_missing_account(self):
        ghost = make_account(verified=False)
        r = self.request(self.jane_client, ghost.id)
        assert r.status_code == 400
        assert r.data['error']['message'] == 'User has not verified their email'
        r = self.request(self.jane_client, 999999)
        assert r.status_code == 404
        assert r.data['error']['message'] == 'User not found'

    def test_lists_and_remove(self):
        edge_id = self.request(self.jane_client, self.raj.id, 'sibling').data['request']['id']
        lists = self.raj_client.get(reverse('family_requests')).data
        assert [e['id'] for e in lists['incoming']] == [edge_id]
        assert lists['outgoing'] == [] and lists['accepted'] == []

        self.raj_client.post(reverse('family_respond'), {'requestId': edge_id, 'status': 'accepted'}, format='json')
        lists = self.jane_client.get(reverse('family_requests')).data
        assert [e['id'] for e in lists['accepted']] == [edge_id]

        r = self.jane_client.delete(f"{reverse('family_remove')}?requestId={edge_id}")
        assert r.status_code == 200
        assert r.data['message'] == 'Family member removed successfully'
        assert not FamilyRelationship.objects.exists()

        r = self.raj_client.delete(reverse('family_remove'), {'requestId': edge_id}, format='json')
        assert r.status_code == 404

    def test_search(self):
        r = self.jane_client.post(reverse('family_search'), {'searchTerm': 'raj'}, format='json')
        assert r.status_code == 200
        assert [u['email'] for u in r.data] == ['raj@x.io']
        assert 'password' not in r.data[0]

        r = self.jane_client.post(reverse('family_search'), {'searchTerm': ''}, format='json')
        assert r.status_code == 400

    def test_requires_token(self):
        r = APIClient().get(reverse('family_requests'))
        assert r.status_code == 401
        assert r.data['error']['message'] == 'No token, authorization denied'


@pytest.mark.django_db
class TestPatientRecordAccess:
    @pytest.fixture(autouse=True)
    def _accounts(self, db):
        self.alice = make_account(name='Alice')
        self.bob = make_account(name='Bob')
        self.url = reverse('patient_detail', args=[self.alice.patient_record.patient_id])

    def test_patient_reads_own_record_only(self):
        r = client_for(self.alice).get(self.url)
        assert r.status_code == 200
        assert r.data['account']['email'] == self.alice.email
        assert client_for(self.bob).get(self.url).status_code == 403

    @pytest.mark.parametrize('role', ['doctor', 'nurse', 'receptionist', 'admin'])
    def test_clinical_roles_read_any_record(self, role):
        assert client_for(make_account(role)).get(self.url).status_code == 200

    def test_pharmacy_is_denied(self):
        assert client_for(make_account('pharmacy')).get(self.url).status_code == 403

    def test_unapproved_doctor_is_stopped_by_approval_gate(self):
        r = client_for(make_account('doctor', approved=False)).get(self.url)
        assert r.status_code == 403
        assert r.data['needsApproval'] is True

    def test_unknown_record(self):
        r = client_for(self.alice).get(reverse('patient_detail', args=['PAT000000XXX']))
        assert r.status_code == 404


@pytest.mark.django_db
class TestAdminBootstrapAndDeactivation:
    def test_create_admin(self):
        payload = {'name': 'Root', 'email': 'root@x.io', 'password': 'secret1', 'phone': '+15559999',
                   'adminSecret': 'wrong'}
        client = APIClient()
        r = client.post(reverse('create_admin_view'), payload, format='json')
        assert r.status_code == 403
        assert r.data['error']['message'] == 'Invalid admin secret'

        r = client.post(reverse('create_admin_view'), {**payload, 'adminSecret': 'bootstrap-secret'}, format='json')
        assert r.status_code == 201
        assert r.data['user']['role'] == 'admin'

        r = client.post(reverse('create_admin_view'),
                        {**payload, 'email': 'root2@x.io', 'phone': '+15559998', 'adminSecret': 'bootstrap-secret'},
                        format='json')
        assert r.status_code == 400

    def test_deactivated_account_cannot_sign_in(self, admin_account, patient_account):
        r = client_for(admin_account).post(reverse('set_active_view'),
                                           {'userId': patient_account.id, 'active': False}, format='json')
        assert r.status_code == 200
        assert r.data['user']['isActive'] is False
        r = APIClient().post(reverse('login_view'), {'email': patient_account.email, 'password': PASSWORD},
                             format='json')
        assert r.status_code == 400
        assert r.data['error']['message'] == 'Invalid credentials'

    def test_deactivated_account_cannot_verify_email(self, admin_account):
        account = make_account(verified=False)
        client_for(admin_account).post(reverse('set_active_view'), {'userId': account.id, 'active': False},
                                       format='json')
        r = APIClient().post(reverse('verify_email_view'), {'token': account.verification_token}, format='json')
        assert r.status_code == 400
        assert r.data['error']['message'] == 'Invalid verification token'
        assert 'token' not in r.data


@pytest.mark.django_db
def test_healthz():
    r = APIClient().get('/healthz')
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True}


@pytest.mark.django_db
def test_metrics():
    r = APIClient().get('/metrics')
    assert r.status_code == 200
    assert b'# HELP' in r.content
