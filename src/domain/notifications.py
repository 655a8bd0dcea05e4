"""
Holder notifications - template rendering and channel selection.

Registration and verification codes reach holders by SMS when the record
carries a mobile number, otherwise by email. Delivery itself belongs to the
NotificationDispatcher port; this module only decides what is sent where.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from .exceptions import NotificationFailed
from .organization import (
    REG_CODE_TEXT_ANDROID,
    REG_CODE_TEXT_IOS,
    VERIFICATION_CODE_TEXT,
    OrganizationConfig,
)
from .ports import CodeOutcome, CodeResult, NotificationDispatcher

logger = logging.getLogger(__name__)

PHONE = "mobile"
EMAIL = "email"

REGISTRATION_CODE_TEMPLATE = "RegistrationCode"
VERIFICATION_CODE_TEMPLATE = "VerificationCode"

_UNRESOLVED = re.compile(r"\{[^{}]*\}")


def render_notification_text(template: str, entity: str | None, code: Any = None) -> str:
    """
    Fill the {ORG} and {CODE} variables of a notification template.

    Unknown variables are left in place and logged.
    """
    message = template
    if entity:
        message = message.replace("{ORG}", entity)
    if code is not None and code != "":
        message = message.replace("{CODE}", str(code))
    if _UNRESOLVED.search(message):
        logger.warning("Unresolved variable in notification text: %s", message)
    return message


@dataclass(frozen=True)
class RegistrationTexts:
    """SMS templates used to deliver registration codes."""

    android: str
    ios: str


@dataclass
class HolderNotifier:
    """Sends registration and verification codes to holders."""

    dispatcher: NotificationDispatcher

    def registration_texts(self, org: OrganizationConfig) -> CodeResult:
        """Look up the organization's registration code SMS templates."""
        for field_name in (REG_CODE_TEXT_ANDROID, REG_CODE_TEXT_IOS):
            if field_name not in org.notify_texts:
                message = (
                    f"Organization {org.entity} configuration does not include "
                    f"notification text field '{field_name}'"
                )
                logger.error(message)
                return CodeResult(CodeOutcome.INTERNAL, message)
        texts = RegistrationTexts(
            android=org.notify_texts[REG_CODE_TEXT_ANDROID],
            ios=org.notify_texts[REG_CODE_TEXT_IOS],
        )
        return CodeResult(CodeOutcome.SUCCESS, "Notification texts found", texts)

    def send_registration_code(
        self,
        org: OrganizationConfig,
        record: dict[str, Any],
        code: str,
        texts: RegistrationTexts | None,
    ) -> CodeResult:
        """
        Deliver a freshly issued registration code to its holder.

        SMS goes out twice, once per app platform template. Without a
        mobile number the organization's RegistrationCode email template
        is used.
        """
        try:
            if record.get(PHONE):
                if texts is None:
                    return CodeResult(
                        CodeOutcome.INTERNAL, "Notification text is not defined in organization"
                    )
                destination = record[PHONE]
                logger.debug("Sending registration code SMS for Android device")
                self.dispatcher.send_sms(destination, render_notification_text(texts.android, org.entity, code))
                logger.debug("Sending registration code SMS for iOS device")
                self.dispatcher.send_sms(destination, render_notification_text(texts.ios, org.entity, code))
            elif record.get(EMAIL):
                template = org.email_templates.get(REGISTRATION_CODE_TEMPLATE)
                if template is None:
                    return CodeResult(CodeOutcome.INTERNAL, "Email template is not defined in organization")
                self.dispatcher.send_email(
                    record[EMAIL],
                    template.subject,
                    render_notification_text(template.content, org.entity, code),
                )
            else:
                return CodeResult(CodeOutcome.INTERNAL, "Neither mobile nor email was input!")
        except NotificationFailed as e:
            return CodeResult(CodeOutcome.INTERNAL, str(e))
        return CodeResult(CodeOutcome.SUCCESS, "Registration code sent")

    @staticmethod
    def verification_destination(record: dict[str, Any]) -> CodeResult:
        """Pick the channel a verification code is delivered on."""
        channel = PHONE if record.get(PHONE) else EMAIL
        destination = record.get(channel)
        if not destination:
            return CodeResult(
                CodeOutcome.VALIDATION, f"User registration data must include field: {channel}"
            )
        logger.debug("Using destination data field: %s", channel)
        return CodeResult(CodeOutcome.SUCCESS, "Destination found", (channel, destination))

    def send_verification_code(
        self, org: OrganizationConfig, channel: str, destination: str, code: int
    ) -> CodeResult:
        if VERIFICATION_CODE_TEXT not in org.notify_texts:
            return CodeResult(
                CodeOutcome.INTERNAL,
                f"Unsupported config lookup for notification text: {VERIFICATION_CODE_TEXT}",
            )

        try:
            logger.info("Sending verification code to holder's destination device")
            if channel == EMAIL:
                template = org.email_templates.get(VERIFICATION_CODE_TEMPLATE)
                if template is None:
                    return CodeResult(CodeOutcome.INTERNAL, "Email template is not defined in organization")
                self.dispatcher.send_email(
                    destination,
                    template.subject,
                    render_notification_text(template.content, org.entity, code),
                )
            else:
                text = render_notification_text(org.notify_texts[VERIFICATION_CODE_TEXT], org.entity, code)
                self.dispatcher.send_sms(destination, text)
        except NotificationFailed as e:
            return CodeResult(CodeOutcome.INTERNAL, f"Please try again in few minutes: {e}")
        return CodeResult(CodeOutcome.SUCCESS, "Verification code sent")
