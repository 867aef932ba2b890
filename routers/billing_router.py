"""
Billing Router - API endpoints for Stripe billing integration
Webhook is defined FIRST so its raw body is read before anything else touches it
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from database import get_db
from deps import get_oauth_client, resolve_access_token
from services.billing_service import BillingService
from services.google_oauth_client import GoogleOAuthClient

logger = logging.getLogger(__name__)

# Create billing router
billing_router = APIRouter(tags=["billing"])


@billing_router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events with signature verification.

    Unverifiable requests get a 400 and change nothing. Verified events for
    unknown customers or unhandled types are acknowledged with 200.
    """
    # Get raw request body (required for signature verification)
    payload = await request.body()
    stripe_signature = request.headers.get("stripe-signature")

    billing_service = BillingService(db, settings)
    event = billing_service.verify_event(payload, stripe_signature)
    result = await billing_service.process_webhook(event)

    return JSONResponse(
        status_code=200,
        content={
            "ok": True,
            "received": True,
            "event_type": result["event_type"],
            "handled": result["handled"],
        }
    )


@billing_router.post("/create-checkout-session")
async def create_checkout_session(
    authorization: Optional[str] = Header(None),
    user_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
):
    """
    Create a Stripe Checkout session for the authenticated user.

    Returns:
        {"sessionId": str}
    """
    access_token = await resolve_access_token(authorization, user_id, db, oauth_client)
    email = await oauth_client.fetch_email(access_token)
    session_id = await BillingService(db, settings).create_checkout_session(email)
    return {"sessionId": session_id}
