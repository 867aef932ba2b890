"""
Billing Service - Stripe checkout and subscription entitlement sync
"""

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import Settings
from crud.usage_record import UsageRepository
from errors import BillingUnavailable, InvalidWebhookSignature

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}
PAYMENT_FAILED_EVENT = "invoice.payment_failed"


class BillingService:
    """
    Service class for handling billing-related business logic.
    Keeps UsageRecord entitlement fields in step with Stripe.
    """

    def __init__(self, db: AsyncSession, config: Settings):
        """
        Initialize the billing service.

        Args:
            db: AsyncSession instance for database operations
            config: settings carrying the Stripe keys
        """
        self.db = db
        self.config = config
        self.repository = UsageRepository(db)

    async def create_checkout_session(self, email: str) -> str:
        """
        Create a subscription Checkout session for the user behind email.
        Reuses the stored Stripe customer, creating and storing one the first time.

        Returns:
            Checkout session id
        """
        if not self.config.stripe_secret_key or not self.config.stripe_price_id:
            logger.error("Stripe is not configured. Cannot create checkout session.")
            raise BillingUnavailable()

        api_key = self.config.stripe_secret_key
        record = await self.repository.get_or_create(email)

        try:
            if record.billing_customer_id:
                customer = await asyncio.to_thread(
                    stripe.Customer.retrieve, record.billing_customer_id, api_key=api_key
                )
            else:
                customer = await asyncio.to_thread(
                    stripe.Customer.create, email=email, api_key=api_key
                )
                await self.repository.set_billing_customer_id(record, customer.id)

            checkout_session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                customer=customer.id,
                payment_method_types=["card"],
                line_items=[{
                    "price": self.config.stripe_price_id,
                    "quantity": 1,
                }],
                mode="subscription",
                success_url=self.config.checkout_success_url,
                cancel_url=self.config.checkout_cancel_url,
                api_key=api_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session: {e}", exc_info=True)
            raise BillingUnavailable()

        logger.info(f"Created checkout session for customer {customer.id}")
        return checkout_session.id

    def verify_event(self, payload: bytes, signature: Optional[str]):
        """
        Verify the Stripe-Signature header and parse the event.

        Raises:
            InvalidWebhookSignature: missing secret or header, bad signature, bad payload
        """
        if not self.config.stripe_webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not set; rejecting webhook")
            raise InvalidWebhookSignature()
        if not signature:
            logger.error("Missing Stripe-Signature header")
            raise InvalidWebhookSignature()

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.config.stripe_webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
            # Plain dict rather than a StripeObject
            event = json.loads(body)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Stripe webhook signature verification failed: {e}")
            raise InvalidWebhookSignature()
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            raise InvalidWebhookSignature("Invalid payload format")

        if not isinstance(event, dict) or "type" not in event:
            raise InvalidWebhookSignature("Invalid payload format")
        return event

    async def process_webhook(self, event: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Apply a verified Stripe event to the matching usage record.
        Unknown customers and unhandled event types are no-ops.

        Returns:
            {"event_type": str, "handled": bool}
        """
        event_type = event["type"]
        data_object = (event.get("data") or {}).get("object") or {}
        customer_id = data_object.get("customer")

        if event_type in SUBSCRIPTION_EVENTS:
            status = data_object.get("status")
            handled = await self._apply(customer_id, status, has_paid=status == "active")
        elif event_type == PAYMENT_FAILED_EVENT:
            handled = await self._apply(customer_id, "past_due", has_paid=False)
        else:
            logger.info(f"Unhandled event type {event_type}")
            handled = False

        return {"event_type": event_type, "handled": handled}

    async def _apply(self, customer_id: Optional[str], status: Optional[str], has_paid: bool) -> bool:
        if not customer_id:
            return False
        record = await self.repository.get_by_billing_customer_id(customer_id)
        if record is None:
            logger.info(f"No usage record for billing customer {customer_id}; ignoring")
            return False
        await self.repository.update_entitlement(record, status, has_paid)
        logger.info(f"Customer {customer_id} subscription_status={status} has_paid={has_paid}")
        return True
