"""
Notification Service
Renders a template key + data into email/SMS text and delivers it.

Email goes through Resend, SMS through the Twilio REST API. Templates can be
overridden per tenant with ``template_<key>_subject`` / ``template_<key>_body`` /
``template_<key>_sms`` settings.
"""

import html
import logging
import re
from typing import Any, Optional

import httpx
import resend

from .. import config
from ..domain.settings.schemas import TenantConfig
from ..errors import ExternalDependencyError

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

DEFAULT_TEMPLATES: dict[str, dict[str, str]] = {
    "order_received": {
        "subject": "Order Received - {{order_number}}",
        "body": "Hi {{customer_name}},\n\nThanks for your {{order_type_label}} request "
        "({{order_number}}). We'll be in touch soon.\n\n{{business_name}}",
    },
    "order_confirmed": {
        "subject": "Order Confirmed - {{order_number}}",
        "body": "Hi {{customer_name}},\n\nYour payment was received and order {{order_number}} "
        "is confirmed for pickup on {{pickup_date}} at {{pickup_time}}.\n\n{{business_name}}",
        "sms": "{{business_name}}: order {{order_number}} confirmed for {{pickup_date}} {{pickup_time}}.",
    },
    "deposit_received": {
        "subject": "Deposit Received - {{order_number}}",
        "body": "Hi {{customer_name}},\n\nWe received your deposit of {{amount}} for order "
        "{{order_number}}. Your date is reserved.\n\n{{business_name}}",
    },
    "payment_received": {
        "subject": "Payment Received - {{order_number}}",
        "body": "Hi {{customer_name}},\n\nWe received your payment of {{amount}} for order "
        "{{order_number}}. Thank you!\n\n{{business_name}}",
    },
    "admin_payment_received": {
        "subject": "Payment received for {{order_number}}",
        "body": "{{customer_name}} paid {{amount}} ({{payment_kind}}) for order {{order_number}}.",
    },
    "quote_sent": {
        "subject": "Your quote {{quote_number}} is ready",
        "body": "Hi {{customer_name}},\n\n{{customer_message}}\n\nQuote total: {{total}}, deposit "
        "due: {{deposit}}.\nReview and approve it here: {{quote_url}}\n\nThis quote is valid "
        "until {{valid_until}}.\n\n{{business_name}}",
        "sms": "{{business_name}}: your quote {{quote_number}} is ready: {{quote_url}}",
    },
    "quote_approved": {
        "subject": "Quote approved - deposit invoice for {{quote_number}}",
        "body": "Hi {{customer_name}},\n\nThanks for approving your quote. Pay your deposit of "
        "{{deposit}} here: {{invoice_url}}\n\n{{business_name}}",
    },
    "contract_sent": {
        "subject": "Your contract {{contract_number}} is ready to sign",
        "body": "Hi {{customer_name}},\n\nPlease review and sign your contract here: "
        "{{contract_url}}\n\nIt is valid until {{valid_until}}.\n\n{{business_name}}",
    },
    "contract_signed": {
        "subject": "Contract {{contract_number}} signed",
        "body": "Contract {{contract_number}} was signed by {{signer_name}} on {{signed_at}}.",
    },
    "booking_confirmed": {
        "subject": "{{booking_type_name}} on {{date}} at {{time}}",
        "body": "Hi {{customer_name}},\n\nYour {{booking_type_name}} is {{booking_status}} for "
        "{{date}} at {{time}}.\n\n{{business_name}}",
    },
    "pickup_reminder": {
        "subject": "Reminder: pickup for {{order_number}} on {{pickup_date}}",
        "body": "Hi {{customer_name}},\n\nA reminder that order {{order_number}} is ready for "
        "pickup on {{pickup_date}} at {{pickup_time}}.\n\n{{business_name}}",
        "sms": "{{business_name}} reminder: pickup for {{order_number}} on {{pickup_date}} at {{pickup_time}}.",
    },
    "admin_pickup_reminder": {
        "subject": "Pickup tomorrow: {{order_number}}",
        "body": "{{customer_name}} picks up order {{order_number}} on {{pickup_date}} at {{pickup_time}}.",
    },
}


def render_template(template: str, data: dict[str, Any], escape: bool = False) -> str:
    """Replace {{name}} placeholders; unknown names render as an empty string"""

    def replace(match: re.Match) -> str:
        value = data.get(match.group(1))
        if value is None:
            return ""
        text = str(value)
        return html.escape(text) if escape else text

    return PLACEHOLDER.sub(replace, template)


class NotificationService:
    def resolve_template(self, tenant: TenantConfig, key: str) -> dict[str, str]:
        template = dict(DEFAULT_TEMPLATES.get(key, {}))
        for part in ("subject", "body", "sms"):
            override = tenant.templates.get(f"{key}_{part}")
            if override:
                template[part] = override
        if "subject" not in template or "body" not in template:
            raise ExternalDependencyError(f"Unknown notification template: {key}")
        return template

    async def send_email(self, to: str, subject: str, body: str) -> str:
        if not config.RESEND_API_KEY:
            raise ExternalDependencyError("Email provider not configured")

        resend.api_key = config.RESEND_API_KEY
        html_body = "<br>".join(html.escape(line) for line in body.split("\n"))
        try:
            response = resend.Emails.send(
                {
                    "from": config.EMAIL_FROM_ADDRESS,
                    "to": [to],
                    "subject": subject,
                    "html": html_body,
                    "text": body,
                }
            )
        except Exception as e:
            logger.error(f"❌ Resend email to {to} failed: {e}")
            raise ExternalDependencyError("Email delivery failed") from e

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.info(f"✅ Email sent to {to}: {subject} (id={message_id})")
        return message_id or ""

    async def send_sms(self, to_phone: str, body: str) -> str:
        if not (config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN and config.TWILIO_FROM_NUMBER):
            raise ExternalDependencyError("SMS provider not configured")

        account_sid = config.TWILIO_ACCOUNT_SID
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    f"https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json",
                    auth=(account_sid, config.TWILIO_AUTH_TOKEN),
                    data={"To": to_phone, "From": config.TWILIO_FROM_NUMBER, "Body": body},
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Twilio request failed: {e}")
            raise ExternalDependencyError("SMS delivery failed") from e

        if response.status_code not in (200, 201):
            logger.error(f"❌ Twilio API error {response.status_code}: {response.text[:200]}")
            raise ExternalDependencyError("SMS delivery failed")

        sid = response.json().get("sid", "")
        logger.info(f"📱 SMS sent to {to_phone} (SID: {sid})")
        return sid

    async def notify(
        self,
        tenant: TenantConfig,
        template_key: str,
        data: dict[str, Any],
        to_email: Optional[str] = None,
        to_phone: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Render ``template_key`` and deliver it.

        Email is the primary channel: its failure raises ExternalDependencyError. SMS is
        best effort and only attempted when the template has an SMS variant.
        """
        template = self.resolve_template(tenant, template_key)
        context = {"business_name": tenant.business_name, **data}
        result = {"template": template_key, "email_sent": False, "sms_sent": False}

        if to_email:
            await self.send_email(
                to_email,
                render_template(template["subject"], context),
                render_template(template["body"], context),
            )
            result["email_sent"] = True

        if to_phone and template.get("sms"):
            try:
                await self.send_sms(to_phone, render_template(template["sms"], context))
                result["sms_sent"] = True
            except ExternalDependencyError as e:
                logger.warning(f"⚠️ SMS for {template_key} not sent: {e.message}")

        return result

    async def notify_safely(self, tenant: TenantConfig, template_key: str, data: dict, **kwargs) -> bool:
        """Deliver a notification whose failure must not undo the calling operation"""
        try:
            await self.notify(tenant, template_key, data, **kwargs)
            return True
        except ExternalDependencyError as e:
            logger.warning(f"⚠️ Notification {template_key} failed (non-fatal): {e.message}")
            return False


def get_notification_service() -> NotificationService:
    return NotificationService()
