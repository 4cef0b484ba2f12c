# SPDX-License-Identifier: Apache-2.0

"""
HTTP tests for the Flask application using the test client.
"""

import json
from unittest.mock import patch


def post_json(client, url, body=None):
    return client.post(url, data=json.dumps(body or {}), content_type='application/json')


class TestHealth:
    """Test the health endpoint."""
    
    def test_healthy(self, client):
        response = client.get('/api/healthz')
        
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'healthy'
        assert data['store']['backend'] == 'memory'
        assert data['store']['durable'] is True


class TestAuthEndpoints:
    """Test register/login/logout/me."""
    
    def test_register_then_duplicate(self, client, donor_data):
        response = post_json(client, '/api/auth/register', donor_data)
        
        assert response.status_code == 201
        user = response.get_json()['user']
        assert user['email'] == 'Alex.Donor@College.edu'
        assert user['role'] == 'DONOR'
        assert user['isActiveDonor'] is True
        assert user['profile']['bloodGroup'] == 'O-'
        
        duplicate = post_json(client, '/api/auth/register', {**donor_data, 'email': 'ALEX.donor@college.edu'})
        assert duplicate.status_code == 409
        assert duplicate.get_json()['type'] == 'duplicate-email'
        assert duplicate.get_json()['detail'] == 'This email is already registered.'
    
    def test_register_donor_without_blood_group(self, client, donor_data):
        body = {k: v for k, v in donor_data.items() if k != 'bloodGroup'}
        
        response = post_json(client, '/api/auth/register', body)
        
        assert response.status_code == 400
        assert response.get_json()['type'] == 'validation-error'
    
    def test_login_unknown_email(self, client):
        response = post_json(client, '/api/auth/login', {'email': 'nobody@college.edu'})
        
        assert response.status_code == 404
        assert response.get_json()['detail'] == 'User not found. Please register first.'
    
    def test_login_me_logout(self, client, repository, donor_data):
        repository.register(donor_data)
        repository.logout()
        
        assert client.get('/api/auth/me').status_code == 401
        
        login = post_json(client, '/api/auth/login', {'email': 'ALEX.DONOR@college.edu', 'password': 'x'})
        assert login.status_code == 200
        
        me = client.get('/api/auth/me')
        assert me.status_code == 200
        assert me.get_json()['user']['name'] == 'Alex Donor'
        
        assert post_json(client, '/api/auth/logout').status_code == 200
        assert client.get('/api/auth/me').status_code == 401
    
    def test_missing_body(self, client):
        response = client.post('/api/auth/login')
        
        assert response.status_code == 400
        assert response.get_json()['errors'][0]['field'] == 'body'


class TestRequestEndpoints:
    """Test the request lifecycle over HTTP."""
    
    def _setup(self, repository, donor_data, requester_data):
        donor = repository.register(donor_data)
        requester = repository.register(requester_data)
        return donor, requester
    
    def test_create_and_list(self, client, repository, donor_data, requester_data, request_draft):
        _, requester = self._setup(repository, donor_data, requester_data)
        
        created = post_json(client, '/api/requests', request_draft)
        assert created.status_code == 201
        body = created.get_json()['request']
        assert body['requesterId'] == requester.id
        assert body['status'] == 'OPEN'
        assert body['distance'] == '0.8 km'
        
        listing = client.get('/api/requests').get_json()
        assert listing['total'] == 1
        assert listing['items'][0]['id'] == body['id']
        
        fetched = client.get(f"/api/requests/{body['id']}")
        assert fetched.status_code == 200
        assert fetched.get_json()['request']['hospitalName'] == 'City General Hospital'
    
    def test_create_invalid_units(self, client, repository, requester_data, request_draft):
        repository.register(requester_data)
        
        response = post_json(client, '/api/requests', {**request_draft, 'units': 0})
        
        assert response.status_code == 400
        assert any(e['field'] == 'units' for e in response.get_json()['errors'])
    
    def test_invalid_status_filter(self, client):
        response = client.get('/api/requests?status=DONE')
        
        assert response.status_code == 400
    
    def test_unknown_request(self, client):
        response = client.get('/api/requests/req_missing')
        
        assert response.status_code == 404
        assert response.get_json()['type'] == 'request-not-found'
    
    def test_accept_twice(self, client, repository, donor_data, requester_data, request_draft):
        donor, requester = self._setup(repository, donor_data, requester_data)
        blood_request = repository.create_request({**request_draft, 'requesterId': requester.id})
        url = f'/api/requests/{blood_request.id}/accept'
        
        first = post_json(client, url, {'donorId': donor.id})
        assert first.status_code == 200
        assert first.get_json()['changed'] is True
        assert first.get_json()['request']['status'] == 'FULFILLED'
        assert first.get_json()['historyItem']['type'] == 'Donation'
        
        second = post_json(client, url, {'donorId': donor.id})
        assert second.status_code == 200
        assert second.get_json()['changed'] is False
        assert 'historyItem' not in second.get_json()
        
        history = client.get(f'/api/users/{donor.id}/history').get_json()
        assert history['total'] == 1
    
    def test_accept_on_medical_hold(self, client, repository, donor_data, requester_data, request_draft):
        donor, requester = self._setup(repository, donor_data, requester_data)
        repository.update_user_profile(donor.id, {'hasAllergies': True})
        blood_request = repository.create_request({**request_draft, 'requesterId': requester.id})
        
        response = post_json(client, f'/api/requests/{blood_request.id}/accept', {'userId': donor.id})
        
        assert response.status_code == 409
        data = response.get_json()
        assert data['type'] == 'donor-not-eligible'
        assert data['eligibility']['reason'] == 'Medical Hold'
    
    def test_ignore_filters_viewer(self, client, repository, donor_data, requester_data, request_draft):
        donor, requester = self._setup(repository, donor_data, requester_data)
        blood_request = repository.create_request({**request_draft, 'requesterId': requester.id})
        
        response = post_json(client, f'/api/requests/{blood_request.id}/ignore', {'userId': donor.id})
        assert response.status_code == 200
        assert response.get_json()['request']['status'] == 'OPEN'
        
        assert client.get(f'/api/requests?viewer={donor.id}').get_json()['total'] == 0
        assert client.get(f'/api/requests?viewer={requester.id}').get_json()['total'] == 1
    
    def test_cancel_uses_session_user(self, client, repository, donor_data, requester_data, request_draft):
        donor, requester = self._setup(repository, donor_data, requester_data)
        blood_request = repository.create_request({**request_draft, 'requesterId': requester.id})
        
        forbidden = post_json(client, f'/api/requests/{blood_request.id}/cancel', {'userId': donor.id})
        assert forbidden.status_code == 403
        
        # requester holds the session, so no body is needed
        response = client.post(f'/api/requests/{blood_request.id}/cancel')
        assert response.status_code == 200
        assert response.get_json()['request']['status'] == 'CANCELLED'
    
    def test_persistence_warning_header(self, client, memory_store, repository, requester_data, request_draft):
        repository.register(requester_data)
        
        with patch.object(memory_store, '_write', side_effect=OSError('disk full')):
            response = post_json(client, '/api/requests', request_draft)
        
        assert response.status_code == 201
        header = response.headers['X-Persistence-Warning']
        assert header.startswith('durability-not-guaranteed')
        assert 'requests' in header
        assert client.get('/api/healthz').get_json()['status'] == 'degraded'


class TestUserEndpoints:
    """Test profile, eligibility and history endpoints."""
    
    def test_partial_update(self, client, repository, donor_data):
        donor = repository.register(donor_data)
        
        response = client.patch(
            f'/api/users/{donor.id}',
            data=json.dumps({'isAvailable': False}),
            content_type='application/json'
        )
        
        assert response.status_code == 200
        user = response.get_json()['user']
        assert user['profile']['isAvailable'] is False
        assert user['isActiveDonor'] is False
        assert user['name'] == 'Alex Donor'
    
    def test_update_rejects_null_name(self, client, repository, donor_data):
        donor = repository.register(donor_data)
        
        response = client.patch(
            f'/api/users/{donor.id}',
            data=json.dumps({'name': None}),
            content_type='application/json'
        )
        
        assert response.status_code == 400
    
    def test_unknown_user(self, client):
        assert client.get('/api/users/user_missing').status_code == 404
    
    def test_switch_role(self, client, repository, requester_data):
        requester = repository.register(requester_data)
        
        response = post_json(client, f'/api/users/{requester.id}/role', {'role': 'DONOR', 'bloodGroup': 'AB+'})
        
        assert response.status_code == 200
        assert response.get_json()['user']['role'] == 'DONOR'
        assert response.get_json()['user']['profile']['bloodGroup'] == 'AB+'
    
    def test_eligibility(self, client, repository, donor_data):
        donor = repository.register({**donor_data, 'lastDonationDate': '2024-02-20'})
        
        response = client.get(f'/api/users/{donor.id}/eligibility?on=2024-03-01')
        
        assert response.status_code == 200
        eligibility = response.get_json()['eligibility']
        assert eligibility['isEligible'] is False
        assert eligibility['daysRemaining'] == 46
        assert eligibility['reason'] == 'Eligible in 46 days'
        assert eligibility['nextEligibleDate'] == '2024-04-16'
    
    def test_eligibility_bad_date(self, client, repository, donor_data):
        donor = repository.register(donor_data)
        
        assert client.get(f'/api/users/{donor.id}/eligibility?on=tomorrow').status_code == 400
    
    def test_history_add_and_list(self, client):
        for day in ('2023-01-10', '2023-10-15'):
            response = post_json(client, '/api/users/u9/history', {
                'type': 'Donation',
                'date': day,
                'location': 'Campus Drive',
                'status': 'Completed'
            })
            assert response.status_code == 201
            assert response.get_json()['historyItem']['userId'] == 'u9'
        
        history = client.get('/api/users/u9/history').get_json()
        
        assert [h['date'] for h in history['items']] == ['2023-10-15', '2023-01-10']
    
    def test_history_invalid_type(self, client):
        response = post_json(client, '/api/users/u9/history', {'type': 'Gift', 'status': 'Completed'})
        
        assert response.status_code == 400


class TestAssistantEndpoints:
    """Test assistant endpoints with a stubbed client."""
    
    def test_compose(self, client, mock_assistant):
        response = post_json(client, '/api/assistant/compose', {
            'bloodGroup': 'O-',
            'hospitalName': 'City General',
            'urgency': 'Critical',
            'units': 2
        })
        
        assert response.status_code == 200
        assert response.get_json()['text'] == 'O- needed at City General'
        mock_assistant.compose_emergency_message.assert_called_once_with('O-', 'City General', 'Critical', 2)
    
    def test_ask(self, client, mock_assistant):
        response = post_json(client, '/api/assistant/ask', {'question': 'How often can I donate?'})
        
        assert response.status_code == 200
        assert '56 days' in response.get_json()['text']
    
    def test_ask_empty_question(self, client):
        assert post_json(client, '/api/assistant/ask', {'question': ''}).status_code == 400


class TestCenterEndpoints:
    """Test the donation center finder."""
    
    def test_list_all(self, client):
        data = client.get('/api/centers').get_json()
        
        assert data['total'] == 4
        assert data['items'][0]['openHours'] == '24/7'
    
    def test_search(self, client):
        data = client.get('/api/centers?q=Clinic').get_json()
        
        assert [c['name'] for c in data['items']] == ['Community Health Clinic']
