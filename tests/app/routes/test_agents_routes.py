"""Tests for the agent directory and per-lead assignment endpoints."""
import pytest


@pytest.fixture
def agent_id(client):
    resp = client.post('/api/agents', json={'name': 'Athar', 'service_type': 'company'})
    assert resp.status_code == 201
    return resp.get_json()['agent']['id']


class TestDirectory:

    def test_create_and_list(self, client, agent_id):
        client.post('/api/agents', json={'name': 'Priya', 'service_type': 'bank', 'bank_name': 'Mashreq'})
        rows = client.get('/api/agents?serviceType=bank').get_json()['agents']
        assert [r['name'] for r in rows] == ['Priya']

    def test_create_without_name_400(self, client):
        assert client.post('/api/agents', json={}).status_code == 400


class TestAssignments:

    def test_assign_and_list(self, client, make_lead, agent_id):
        lead = make_lead()
        resp = client.post(f'/api/leads/{lead.id}/agents', json={'agentId': agent_id})
        assert resp.status_code == 201
        assert resp.get_json()['assignment']['is_current'] is True
        rows = client.get(f'/api/leads/{lead.id}/agents').get_json()['agents']
        assert len(rows) == 1

    def test_assign_requires_agent_id(self, client, make_lead):
        lead = make_lead()
        assert client.post(f'/api/leads/{lead.id}/agents', json={}).status_code == 400

    def test_assign_unknown_agent_404(self, client, make_lead):
        lead = make_lead()
        assert client.post(f'/api/leads/{lead.id}/agents', json={'agentId': 999}).status_code == 404

    def test_status_update_with_notes(self, client, make_lead, agent_id):
        lead = make_lead()
        client.post(f'/api/leads/{lead.id}/agents', json={'agentId': agent_id})
        resp = client.patch(f'/api/leads/{lead.id}/agents/{agent_id}/status',
                            json={'status': 'Accepted', 'notes': 'Will call tomorrow'})
        data = resp.get_json()['assignment']
        assert data['status'] == 'accepted'
        assert data['notes'] == 'Will call tomorrow'
        assert data['contacted_at'] is not None

    def test_invalid_status_400(self, client, make_lead, agent_id):
        lead = make_lead()
        client.post(f'/api/leads/{lead.id}/agents', json={'agentId': agent_id})
        resp = client.patch(f'/api/leads/{lead.id}/agents/{agent_id}/status', json={'status': 'lost'})
        assert resp.status_code == 400

    def test_set_current(self, client, make_lead, agent_id):
        lead = make_lead()
        other = client.post('/api/agents', json={'name': 'Anoop', 'service_type': 'company'}).get_json()['agent']['id']
        client.post(f'/api/leads/{lead.id}/agents', json={'agentId': agent_id})
        client.post(f'/api/leads/{lead.id}/agents', json={'agentId': other})
        data = client.post(f'/api/leads/{lead.id}/agents/{other}/set-current').get_json()
        assert data['assignment']['is_current'] is True
        rows = client.get(f'/api/leads/{lead.id}/agents').get_json()['agents']
        assert [r['is_current'] for r in rows if r['agent_id'] == agent_id] == [False]
