"""Tests for app.services.notifications — admin email + Slack mirror."""
from unittest.mock import MagicMock, patch

from app.services.mailer import MailError
from app.services.notifications import notify_admin, event_subject
from app.workflow.projects import Project


class TestEventSubject:

    def test_includes_title_name_and_amount(self, make_lead):
        lead = make_lead(full_name='Omar Haddad')
        assert event_subject('quote_approved', lead, 5000) == '[Quote Approved] Lead Omar Haddad – AED 5,000'

    def test_unknown_event_title_cased(self, make_lead):
        lead = make_lead(full_name='Omar Haddad')
        assert event_subject('agent_declined', lead) == '[Agent Declined] Lead Omar Haddad'


class TestNotifyAdmin:

    def test_sends_to_admin_inbox(self, make_lead, mailer):
        lead = make_lead()
        with patch('app.config.ADMIN_NOTIFY_EMAIL', 'ops@example.com'), \
                patch('app.config.SLACK_WEBHOOK_URL', None):
            ok = notify_admin(mailer, 'quote_viewed', lead, Project.COMPANY, lines=['opened'])
        assert ok is True
        assert mailer.sent[0]['to'] == 'ops@example.com'
        assert 'opened' in mailer.sent[0]['text']

    def test_mail_failure_returns_false(self, make_lead, mailer):
        lead = make_lead()
        mailer.fail_with = MailError('smtp down')
        with patch('app.config.SLACK_WEBHOOK_URL', None):
            assert notify_admin(mailer, 'quote_declined', lead, Project.BANK) is False

    def test_mirrors_to_slack(self, make_lead, mailer):
        lead = make_lead()
        with patch('app.config.SLACK_WEBHOOK_URL', 'https://hooks.slack.test/x'), \
                patch('app.services.notifications.requests.post') as post:
            notify_admin(mailer, 'quote_approved', lead, Project.COMPANY, lines=['approved'], amount=100)
        post.assert_called_once()
        payload = post.call_args.kwargs['json']
        assert payload['blocks'][0]['text']['text'].startswith('[Quote Approved]')

    def test_slack_failure_does_not_raise(self, make_lead, mailer):
        lead = make_lead()
        with patch('app.config.SLACK_WEBHOOK_URL', 'https://hooks.slack.test/x'), \
                patch('app.services.notifications.requests.post', side_effect=OSError('dns')):
            assert notify_admin(mailer, 'quote_approved', lead, Project.COMPANY) is True

    def test_mailer_never_called_with_bad_mailer_raises(self, make_lead):
        lead = make_lead()
        broken = MagicMock()
        broken.send.side_effect = RuntimeError('unexpected')
        with patch('app.config.SLACK_WEBHOOK_URL', None):
            assert notify_admin(broken, 'invoice_viewed', lead, Project.COMPANY) is False
