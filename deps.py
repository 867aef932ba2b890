"""
Dependencies module - reusable FastAPI dependencies for route handlers.
"""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from errors import InvalidRequest, ReauthorizationRequired
from services.google_forms_gateway import GoogleFormsGateway
from services.google_oauth_client import GoogleOAuthClient
from services.token_service import TokenService

logger = logging.getLogger(__name__)

FormsGatewayFactory = Callable[[str], GoogleFormsGateway]


def get_oauth_client() -> GoogleOAuthClient:
    """A fresh upstream client per request; only app credentials, never user tokens."""
    return GoogleOAuthClient(settings.google_client_id, settings.google_client_secret)


def get_forms_gateway_factory() -> FormsGatewayFactory:
    return GoogleFormsGateway


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def resolve_access_token(
    authorization: Optional[str],
    user_id: Optional[str],
    db: AsyncSession,
    oauth_client: GoogleOAuthClient,
) -> str:
    """
    Access token for a privileged call: the bearer header when present,
    otherwise (store-tokens deployments) the stored token for user_id.

    Raises:
        ReauthorizationRequired: no usable credentials
    """
    token = bearer_token(authorization)
    if token:
        return token
    if settings.token_delivery == "store" and user_id:
        return await TokenService(db, oauth_client).get_access_token(user_id)
    raise ReauthorizationRequired("Missing Authorization header")


async def read_body_params(request: Request) -> Dict[str, Any]:
    """Token requests arrive form-encoded or as JSON."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        return await read_json_body(request)
    form = await request.form()
    return dict(form)


async def read_json_body(request: Request) -> Dict[str, Any]:
    if not await request.body():
        return {}
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidRequest("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return payload
