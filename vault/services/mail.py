from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from flask import current_app


class Mailer:
    def __init__(self, api_key, from_email, from_name=None):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name

    @classmethod
    def from_config(cls, config):
        return cls(config.get('SENDGRID_API_KEY'), config.get('MAIL_FROM'), config.get('MAIL_FROM_NAME'))

    def send(self, to_email, subject, html):
        """Send one HTML mail; returns (status_code, headers) or None when mail is not configured."""
        if not self.api_key:
            current_app.logger.warning('SENDGRID_API_KEY not set; not sending "%s" to %s', subject, to_email)
            return None
        sg = SendGridAPIClient(api_key=self.api_key)
        message = Mail(from_email=(self.from_email, self.from_name),
                       to_emails=to_email,
                       subject=subject,
                       html_content=html)
        resp = sg.send(message)
        return resp.status_code, getattr(resp, 'headers', None)
