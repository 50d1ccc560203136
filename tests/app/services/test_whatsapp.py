"""Tests for app.services.whatsapp — phone normalisation and Graph API sends."""
import pytest
import requests
from unittest.mock import patch, MagicMock

from app.services.whatsapp import WhatsAppClient, normalize_phone, is_valid_e164


def _client():
    return WhatsAppClient(phone_number_id='12345', token='tok')


def _response(status=200, payload=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = payload or {}
    resp.text = ''
    return resp


class TestPhone:

    @pytest.mark.parametrize('raw,expected', [
        ('+971 50 123 4567', '+971501234567'),
        ('00971-50-123-4567', '+971501234567'),
        ('(+44) 7700 900123', '+447700900123'),
        (None, ''),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize('phone,valid', [
        ('+971501234567', True),
        ('971501234567', False),
        ('+0123456789', False),
        ('+12', False),
    ])
    def test_e164(self, phone, valid):
        assert is_valid_e164(phone) is valid


class TestSendText:

    @patch('app.services.whatsapp.requests.post')
    def test_success(self, mock_post):
        mock_post.return_value = _response(payload={'messages': [{'id': 'wamid.ABC'}]})
        result = _client().send_text('+971 50 123 4567', 'Your quote is ready')

        assert result == {'ok': True, 'message_id': 'wamid.ABC', 'error': None}
        url = mock_post.call_args[0][0]
        payload = mock_post.call_args[1]['json']
        assert url == 'https://graph.facebook.com/v22.0/12345/messages'
        assert payload['to'] == '971501234567'
        assert payload['text']['body'] == 'Your quote is ready'
        assert mock_post.call_args[1]['headers'] == {'Authorization': 'Bearer tok'}

    @patch('app.services.whatsapp.requests.post')
    def test_api_error_returned_not_raised(self, mock_post):
        mock_post.return_value = _response(400, {'error': {'message': 'Recipient not on WhatsApp'}})
        result = _client().send_text('+971501234567', 'hi')
        assert result['ok'] is False
        assert result['error'] == 'WhatsApp API error (400): Recipient not on WhatsApp'

    @patch('app.services.whatsapp.requests.post')
    def test_network_error_returned(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('timeout')
        result = _client().send_text('+971501234567', 'hi')
        assert result['ok'] is False
        assert 'timeout' in result['error']

    @patch('app.services.whatsapp.requests.post')
    def test_invalid_number_never_calls_api(self, mock_post):
        result = _client().send_text('0501234567', 'hi')
        assert result['ok'] is False
        assert 'E.164' in result['error']
        mock_post.assert_not_called()

    def test_unconfigured(self):
        result = WhatsAppClient().send_text('+971501234567', 'hi')
        assert result == {'ok': False, 'message_id': None, 'error': 'WhatsApp API credentials not configured'}
