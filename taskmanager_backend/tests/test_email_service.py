"""
Unit Tests for the SMTP email service
"""

import smtplib
import unittest
from unittest import mock

from taskmanager_backend.utils.email_service import EmailService


class TestEmailService(unittest.TestCase):

    def test_disabled_without_credentials(self):
        service = EmailService(host='smtp.test', port=465, user='', password='')

        result = service.send_password_reset('a@example.com', 'http://frontend.test/reset-password/abc')

        self.assertFalse(service.enabled)
        self.assertFalse(result['success'])
        self.assertEqual(result['method'], 'disabled')
        self.assertEqual(service.get_service_status()['mode'], 'disabled')

    @mock.patch('taskmanager_backend.utils.email_service.smtplib.SMTP_SSL')
    def test_sends_reset_link(self, smtp_ssl):
        service = EmailService(host='smtp.test', port=465, user='mailer', password='pw', sender='no-reply@tm.test')

        result = service.send_password_reset(
            'a@example.com', 'http://frontend.test/reset-password/abc', user_name='Ann', expires_in_minutes=10
        )

        self.assertTrue(result['success'])
        smtp_ssl.assert_called_once_with('smtp.test', 465)
        server = smtp_ssl.return_value.__enter__.return_value
        server.login.assert_called_once_with('mailer', 'pw')
        message = server.send_message.call_args.args[0]
        self.assertEqual(message['To'], 'a@example.com')
        body = message.get_payload()[0].get_payload(decode=True).decode('utf-8')
        self.assertIn('http://frontend.test/reset-password/abc', body)
        self.assertIn('10 minutes', body)

    @mock.patch('taskmanager_backend.utils.email_service.smtplib.SMTP_SSL')
    def test_auth_failure_is_reported(self, smtp_ssl):
        smtp_ssl.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b'no')
        service = EmailService(host='smtp.test', port=465, user='mailer', password='bad')

        result = service.send_registration_email('a@example.com')

        self.assertFalse(result['success'])
        self.assertEqual(result['method'], 'smtp_auth_error')


if __name__ == '__main__':
    unittest.main()
