"""
Forms Router - create and list Google Forms for the authenticated user
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.utils.responses import success_response
from config.settings import settings
from database import get_db
from deps import (
    FormsGatewayFactory,
    get_forms_gateway_factory,
    get_oauth_client,
    read_json_body,
    resolve_access_token,
)
from errors import RelayError
from models.forms import parse_form_schema
from services.form_builder import FormBuilder
from services.google_oauth_client import GoogleOAuthClient
from services.quota_service import QuotaGate

logger = logging.getLogger(__name__)

forms_router = APIRouter(tags=["forms"])


@forms_router.post("/create-form")
async def create_form(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
    gateway_factory: FormsGatewayFactory = Depends(get_forms_gateway_factory),
):
    """
    Build a Google Form from the agent's schema.

    Order matters: the schema is fully validated before any upstream call,
    the quota is checked before the form is built, and usage is only
    counted once the form exists.
    """
    payload = await read_json_body(request)
    user_id = payload.get("userId") or payload.get("user_id")
    access_token = await resolve_access_token(authorization, user_id, db, oauth_client)

    form = parse_form_schema(payload)

    email = await oauth_client.fetch_email(access_token)
    gate = QuotaGate(db, settings.free_quota)
    await gate.check(email)

    builder = FormBuilder(gateway_factory(access_token), settings.form_description_on_create)
    created = await builder.build(form)

    await gate.record_success(email)

    if settings.token_delivery == "store":
        return success_response(
            {"status": "success", "formUrl": created.form_link, "form_id": created.form_id},
            message="Form created successfully",
        )
    return success_response(
        {"form_link": created.form_link, "form_id": created.form_id},
        message="Form created successfully",
    )


@forms_router.get("/list-forms")
async def list_forms(
    authorization: Optional[str] = Header(None),
    user_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
    gateway_factory: FormsGatewayFactory = Depends(get_forms_gateway_factory),
):
    """List the caller's Google Forms (Drive files of the form mime type)."""
    access_token = await resolve_access_token(authorization, user_id, db, oauth_client)
    try:
        forms = await gateway_factory(access_token).list_forms()
    except Exception as e:
        logger.error(f"Error listing forms: {e}")
        raise RelayError("Failed to list forms")
    return success_response({"status": "success", "forms": forms}, message="OK")
