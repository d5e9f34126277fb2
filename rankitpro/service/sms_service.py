"""
SMS Service.
Sends review request texts through Twilio.
"""

import logging
import threading
from typing import Optional

from twilio.rest import Client

from rankitpro.utils.constants import Settings

logger = logging.getLogger(__name__)

# Twilio accepts up to 1600 characters per message
MAX_SMS_LENGTH = 1600


class SmsServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = SmsService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


class SmsService:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.from_number = self.settings.TWILIO_PHONE_NUMBER
        self._client = None

    @property
    def enabled(self) -> bool:
        return self.settings.twilio_enabled

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.settings.TWILIO_ACCOUNT_SID, self.settings.TWILIO_AUTH_TOKEN)
        return self._client

    def send_sms(self, to_number: str, body: str) -> bool:
        if not self.enabled:
            logger.warning("Twilio is not configured; SMS not sent")
            return False
        if not to_number:
            return False

        try:
            message = self.client.messages.create(
                body=body[:MAX_SMS_LENGTH],
                from_=self.from_number,
                to=to_number,
            )
            logger.info(f"SMS sent to {to_number}: {message.sid}")
            return True
        except Exception as e:
            logger.error(f"Failed to send SMS to {to_number}: {e}")
            return False

    def send_review_request(
        self,
        to_number: str,
        customer_name: str,
        company_name: str,
        technician_name: Optional[str],
        review_url: str,
        custom_message: Optional[str] = None,
        follow_up: bool = False,
    ) -> bool:
        if follow_up:
            body = f"Hi {customer_name}, just a reminder from {company_name}: we'd love your feedback. {review_url}"
        else:
            by = f" by {technician_name}" if technician_name else ""
            body = f"Hi {customer_name}, thanks for choosing {company_name}! How was your service{by}? {review_url}"
        if custom_message:
            body = f"{custom_message}\n{body}"
        return self.send_sms(to_number, body)
