"""
Form Builder - turns a validated FormDefinition into a Google Form.

The remote sequence is not transactional:
    create -> update_info (when the description was not sent on create)
    -> add_items -> get_link
A failure in any phase aborts with RemoteFormCreationFailed naming the phase.
A partially created form is left in place; the caller may retry.
"""

import logging
from dataclasses import dataclass

from errors import RemoteFormCreationFailed
from models.forms import FormDefinition, build_item_requests
from services.google_forms_gateway import GoogleFormsGateway

logger = logging.getLogger(__name__)

PHASE_CREATE = "create"
PHASE_UPDATE_INFO = "update_info"
PHASE_ADD_ITEMS = "add_items"
PHASE_GET_LINK = "get_link"


@dataclass
class CreatedForm:
    form_id: str
    form_link: str


class FormBuilder:

    def __init__(self, gateway: GoogleFormsGateway, description_on_create: bool = False):
        self.gateway = gateway
        self.description_on_create = description_on_create

    def _failed(self, phase: str, form_id, error: Exception) -> RemoteFormCreationFailed:
        logger.error(f"Form creation failed in phase '{phase}' (form_id={form_id}): {error}")
        return RemoteFormCreationFailed(phase, form_id=form_id, reason=str(error))

    async def build(self, form: FormDefinition) -> CreatedForm:
        requests = build_item_requests(form.questions)
        if form.description and self.description_on_create:
            logger.warning("Description sent on create; Google Forms ignores it there")

        try:
            form_id = await self.gateway.create_form(
                form.title,
                description=form.description if self.description_on_create else None,
            )
        except Exception as e:
            raise self._failed(PHASE_CREATE, None, e) from e

        if form.description and not self.description_on_create:
            try:
                await self.gateway.update_description(form_id, form.description)
            except Exception as e:
                raise self._failed(PHASE_UPDATE_INFO, form_id, e) from e

        if requests:
            try:
                await self.gateway.add_items(form_id, requests)
            except Exception as e:
                raise self._failed(PHASE_ADD_ITEMS, form_id, e) from e

        try:
            form_link = await self.gateway.get_responder_uri(form_id)
        except Exception as e:
            raise self._failed(PHASE_GET_LINK, form_id, e) from e

        logger.info(f"Form {form_id} built with {len(requests)} item(s)")
        return CreatedForm(form_id=form_id, form_link=form_link)
