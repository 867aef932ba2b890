"""
OAuth Router - authorization relay endpoints used by the agent
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from database import get_db
from deps import get_oauth_client, read_body_params
from services.google_oauth_client import GoogleOAuthClient
from services.oauth_service import AuthorizationRelay

logger = logging.getLogger(__name__)

oauth_router = APIRouter(prefix="/oauth", tags=["oauth"])


@oauth_router.get("/authorize")
async def authorize(
    redirect_uri: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
):
    """
    Begin the relay: validate the agent's redirect URI and send the user to
    Google's consent screen with the agent's state passed through.
    """
    relay = AuthorizationRelay(db, oauth_client, settings)
    auth_url = await relay.begin_authorization(redirect_uri, state, user_id)
    return RedirectResponse(url=auth_url, status_code=302)


@oauth_router.get("/callback")
async def callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
):
    """Forward Google's code and state to the agent's callback."""
    relay = AuthorizationRelay(db, oauth_client, settings)
    return RedirectResponse(url=relay.relay_callback(code, state), status_code=302)


@oauth_router.post("/token")
async def token(
    request: Request,
    db: AsyncSession = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
):
    """
    Exchange an authorization code for Google tokens.

    Accepts application/x-www-form-urlencoded or JSON with:
        code, grant_type, redirect_uri[, client_id, client_secret][, user_id]
    """
    params = await read_body_params(request)
    relay = AuthorizationRelay(db, oauth_client, settings)
    result = await relay.exchange_token(params)
    if result.get("status") == "stored":
        return JSONResponse(content={"ok": True, **result})
    return JSONResponse(content=result, headers={"Cache-Control": "no-store"})
