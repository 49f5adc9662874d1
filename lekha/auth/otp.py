import structlog

from lekha.config import Config

logger = structlog.get_logger(__name__)


class LogOtpSender:
    """Writes the code to the application log.

    Stands in for the SMS gateway of an identity provider on development
    and staging deployments.
    """

    async def send(self, mobile: str, code: str):
        logger.info("otp_issued", mobile=mobile, code=code)


def get_otp_sender():
    senders = {
        "log": LogOtpSender,
    }
    return senders[Config.OTP_DELIVERY]()
