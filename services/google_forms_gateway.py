"""
Google Forms / Drive gateway.

Discovery clients are built per request from the caller's access token.
The client library is blocking, so every execute() runs in a worker thread.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

FORM_MIME_TYPE = "application/vnd.google-apps.form"


class GoogleFormsGateway:

    def __init__(self, access_token: str):
        self.credentials = Credentials(token=access_token)
        self._forms_service = None
        self._drive_service = None

    @property
    def forms(self):
        if self._forms_service is None:
            self._forms_service = build(
                "forms", "v1", credentials=self.credentials, cache_discovery=False
            )
        return self._forms_service

    @property
    def drive(self):
        if self._drive_service is None:
            self._drive_service = build(
                "drive", "v3", credentials=self.credentials, cache_discovery=False
            )
        return self._drive_service

    async def create_form(self, title: str, description: Optional[str] = None) -> str:
        info: Dict[str, Any] = {"title": title}
        if description:
            info["description"] = description
        created = await asyncio.to_thread(
            self.forms.forms().create(body={"info": info}).execute
        )
        form_id = created["formId"]
        logger.info(f"Form created with ID {form_id}")
        return form_id

    async def update_description(self, form_id: str, description: str) -> None:
        body = {
            "requests": [
                {
                    "updateFormInfo": {
                        "info": {"description": description},
                        "updateMask": "description",
                    }
                }
            ]
        }
        await asyncio.to_thread(
            self.forms.forms().batchUpdate(formId=form_id, body=body).execute
        )

    async def add_items(self, form_id: str, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await asyncio.to_thread(
            self.forms.forms().batchUpdate(formId=form_id, body={"requests": requests}).execute
        )

    async def get_responder_uri(self, form_id: str) -> str:
        form = await asyncio.to_thread(
            self.forms.forms().get(formId=form_id, fields="responderUri").execute
        )
        return form["responderUri"]

    async def list_forms(self) -> List[Dict[str, Any]]:
        response = await asyncio.to_thread(
            self.drive.files().list(
                q=f"mimeType='{FORM_MIME_TYPE}'",
                fields="files(id, name)",
            ).execute
        )
        return response.get("files", [])
