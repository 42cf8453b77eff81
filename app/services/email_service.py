"""
AWS SES Email Service for sending verification emails.

Handles email formatting, template rendering, and AWS SES integration.
"""

import logging
from typing import Optional
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Service for sending emails via AWS SES.

    Supports both development (sandbox) and production modes.
    """

    def __init__(self, ses_client=None, code_expires_in: int = settings.EMAIL_VERIFICATION_CODE_EXPIRES_IN):
        """Initialize AWS SES client"""
        self.code_expires_in = code_expires_in

        if ses_client is not None:
            self.ses_client = ses_client
            return

        session_kwargs = {
            'region_name': settings.AWS_REGION,
        }

        # Add credentials if provided (otherwise uses IAM role)
        if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            session_kwargs['aws_access_key_id'] = settings.AWS_ACCESS_KEY_ID
            session_kwargs['aws_secret_access_key'] = settings.AWS_SECRET_ACCESS_KEY

        self.ses_client = boto3.client('ses', **session_kwargs)

    @property
    def expires_in_minutes(self) -> int:
        return max(1, self.code_expires_in // 60)

    def send_verification_email(self, to_email: str, verification_code: str) -> bool:
        """
        Send a verification code email to a prospective store owner.

        Args:
            to_email: Recipient email address
            verification_code: Numeric verification code

        Returns:
            bool: True if email sent successfully, False otherwise
        """
        if not to_email or not to_email.strip():
            logger.error("Refusing to send verification email without a recipient")
            return False
        if not verification_code or not verification_code.strip():
            logger.error("Refusing to send verification email without a code")
            return False

        subject = "[Suittrip] Email verification code"

        html_body = self._build_verification_html(verification_code)
        text_body = self._build_verification_text(verification_code)

        try:
            response = self.ses_client.send_email(
                Source=f"{settings.AWS_SES_FROM_NAME} <{settings.AWS_SES_FROM_EMAIL}>",
                Destination={'ToAddresses': [to_email]},
                Message={
                    'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                    'Body': {
                        'Html': {'Data': html_body, 'Charset': 'UTF-8'},
                        'Text': {'Data': text_body, 'Charset': 'UTF-8'}
                    }
                }
            )

            message_id = response.get('MessageId')
            logger.info(f"Verification email sent to {to_email} (MessageId: {message_id})")
            return True

        except ClientError as e:
            error_code = e.response['Error']['Code']
            error_message = e.response['Error']['Message']
            logger.error(f"AWS SES ClientError: {error_code} - {error_message}")

            if error_code == 'MessageRejected':
                logger.error(f"Email rejected: {error_message}")
            elif error_code == 'MailFromDomainNotVerified':
                logger.error("Sender email not verified in SES")

            return False

        except BotoCoreError as e:
            logger.error(f"AWS BotoCoreError: {str(e)}")
            return False

    def _build_verification_html(self, code: str) -> str:
        minutes = self.expires_in_minutes

        html = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Email Verification</title>
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f4f4f4;">
    <table role="presentation" style="width: 100%; border-collapse: collapse;">
        <tr>
            <td align="center" style="padding: 40px 0;">
                <table role="presentation" style="width: 600px; border-collapse: collapse; background-color: #ffffff; border-radius: 8px;">
                    <tr>
                        <td style="padding: 40px 40px 20px 40px; text-align: center;">
                            <div style="font-size: 28px; font-weight: 700; color: #4F46E5;">Suittrip</div>
                            <h1 style="margin: 10px 0 0 0; color: #1F2937; font-size: 24px;">Email verification code</h1>
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 0 40px 40px 40px;">
                            <p style="margin: 0 0 30px 0; color: #6B7280; font-size: 16px; line-height: 1.6;">
                                Use the code below to finish registering your store on Suittrip.
                            </p>
                            <div style="background-color: #F3F4F6; border-radius: 8px; padding: 30px; text-align: center; margin: 0 0 30px 0;">
                                <div style="font-size: 36px; font-weight: 700; letter-spacing: 8px; color: #4F46E5; font-family: 'Courier New', monospace;">
                                    {code}
                                </div>
                                <div style="margin-top: 20px; color: #EF4444; font-weight: 700;">
                                    This code is valid for {minutes} minutes
                                </div>
                            </div>
                            <p style="margin: 0; color: #9CA3AF; font-size: 13px; line-height: 1.5;">
                                Do not share this code. If you did not request it, you can ignore this email.
                                After {settings.EMAIL_VERIFICATION_MAX_ATTEMPTS} wrong attempts you will need to request a new code.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>
"""
        return html

    def _build_verification_text(self, code: str) -> str:
        return f"""Suittrip email verification code

Use the code below to finish registering your store on Suittrip.

Verification code: {code}

This code is valid for {self.expires_in_minutes} minutes.

Do not share this code. If you did not request it, you can ignore this email.
After {settings.EMAIL_VERIFICATION_MAX_ATTEMPTS} wrong attempts you will need to request a new code.
"""


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Lazily created singleton (boto3 client construction reads AWS config)."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
