"""
SMS gateway backends.
The active backend is selected with settings.SMS_GATEWAY_BACKEND (dotted path).
"""
import logging

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class BaseSMSGateway:
    """Contract every gateway implements: deliver one text message or raise."""

    def send(self, phone_number: str, message: str) -> None:
        raise NotImplementedError


class ConsoleSMSGateway(BaseSMSGateway):
    """Development gateway: writes the message to the log instead of sending it."""

    def send(self, phone_number: str, message: str) -> None:
        masked = phone_number[:5] + '****' + phone_number[-2:]
        logger.info(f"📱 SMS to {masked}: {message}")


def get_sms_gateway() -> BaseSMSGateway:
    backend = getattr(settings, 'SMS_GATEWAY_BACKEND', 'common.services.sms.ConsoleSMSGateway')
    return import_string(backend)()
