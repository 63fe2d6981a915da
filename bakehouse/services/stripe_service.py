"""
Stripe Payment Gateway
Hosted checkout sessions for fixed-price orders and emailed invoices for deposits
and balances, called directly against the Stripe REST API.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .. import config
from ..errors import ExternalDependencyError

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    id: str
    url: str


@dataclass
class GatewayInvoice:
    id: str
    hosted_url: Optional[str]


def _flatten_metadata(metadata: dict[str, Any], prefix: str = "metadata") -> dict[str, str]:
    return {f"{prefix}[{key}]": str(value) for key, value in metadata.items() if value is not None}


class StripeGateway:
    def __init__(self, api_key: Optional[str] = None, api_base: Optional[str] = None):
        self.api_key = api_key or config.STRIPE_SECRET_KEY
        self.api_base = api_base or config.STRIPE_API_BASE

    async def _post(self, path: str, data: dict[str, Any]) -> dict:
        if not self.api_key:
            raise ExternalDependencyError("Payment gateway not configured")

        try:
            async with httpx.AsyncClient(timeout=30.0) as http_client:
                response = await http_client.post(
                    f"{self.api_base}{path}", auth=(self.api_key, ""), data=data
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Stripe request {path} failed: {e}")
            raise ExternalDependencyError("Payment gateway unavailable") from e

        if response.status_code >= 400:
            message = response.json().get("error", {}).get("message", response.text[:200])
            logger.error(f"❌ Stripe {path} returned {response.status_code}: {message}")
            raise ExternalDependencyError("Payment gateway rejected the request")

        return response.json()

    async def create_checkout_session(
        self,
        amount: int,
        description: str,
        customer_email: str,
        metadata: dict[str, Any],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        data = {
            "mode": "payment",
            "customer_email": customer_email,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": config.STRIPE_CURRENCY,
            "line_items[0][price_data][unit_amount]": str(amount),
            "line_items[0][price_data][product_data][name]": description,
            **_flatten_metadata(metadata),
            **_flatten_metadata(metadata, "payment_intent_data[metadata]"),
        }
        session = await self._post("/checkout/sessions", data)
        logger.info(f"💳 Created checkout session {session['id']} for {amount} cents")
        return CheckoutSession(id=session["id"], url=session["url"])

    async def create_invoice(
        self,
        amount: int,
        description: str,
        customer_email: str,
        customer_name: str,
        metadata: dict[str, Any],
        days_until_due: int = 7,
    ) -> GatewayInvoice:
        """Create, finalize and email a one-line invoice"""
        customer = await self._post(
            "/customers",
            {"email": customer_email, "name": customer_name, **_flatten_metadata(metadata)},
        )
        invoice = await self._post(
            "/invoices",
            {
                "customer": customer["id"],
                "collection_method": "send_invoice",
                "days_until_due": str(days_until_due),
                "auto_advance": "true",
                **_flatten_metadata(metadata),
            },
        )
        await self._post(
            "/invoiceitems",
            {
                "customer": customer["id"],
                "invoice": invoice["id"],
                "amount": str(amount),
                "currency": config.STRIPE_CURRENCY,
                "description": description,
            },
        )
        finalized = await self._post(f"/invoices/{invoice['id']}/finalize", {})
        await self._post(f"/invoices/{invoice['id']}/send", {})

        logger.info(f"💰 Sent invoice {invoice['id']} for {amount} cents to {customer_email}")
        return GatewayInvoice(id=invoice["id"], hosted_url=finalized.get("hosted_invoice_url"))


def get_payment_gateway() -> StripeGateway:
    return StripeGateway()
