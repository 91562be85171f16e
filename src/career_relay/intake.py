# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Inbound webhook flow: sanitize, relay files, upsert the CRM contact and deal."""

from collections.abc import Mapping
from typing import Any

from loguru import logger

from career_relay.crm import BitrixClient
from career_relay.errors import CrmError
from career_relay.models.classification import ReferenceKind
from career_relay.models.crm import (
    CONTACT_AGE,
    CONTACT_ANSWER_FIELDS,
    CONTACT_CITY,
    CONTACT_DEGREE,
    CONTACT_PHONE_BACKUP,
    CONTACT_POSITION,
    CONTACT_USERNAME,
)
from career_relay.models.fields import FieldName
from career_relay.models.intake import IntakeResult
from career_relay.relay import FileRelayService
from career_relay.sanitizer import (
    extract_link_text,
    normalize_phone,
    safe_json_parse,
    sanitize_webhook_data,
    strip_invisible,
)

REQUIRED_FIELDS = ("full_name_uzbek", "phone_number_uzbek", "position_uz")

# Payload key -> logical file field
FILE_FIELDS = {
    "resume": FieldName.RESUME,
    "diploma": FieldName.DIPLOMA,
}
ANSWER_FIELDS = {
    "phase2_q_1": (FieldName.VOICE_ANSWER_1, CONTACT_ANSWER_FIELDS[0]),
    "phase2_q_2": (FieldName.VOICE_ANSWER_2, CONTACT_ANSWER_FIELDS[1]),
    "phase2_q_3": (FieldName.VOICE_ANSWER_3, CONTACT_ANSWER_FIELDS[2]),
}


class WebhookIntake:
    """Turns one chat-bot webhook payload into a CRM contact and deal.

    The contact is resolved (found by phone or created) before any file is
    relayed, so stored filenames always carry the real contact id.
    """

    def __init__(
        self,
        crm: BitrixClient,
        relay: FileRelayService,
        field_codes: dict[str, str],
        deal_category_id: str = "55",
        deal_status_id: str = "C55:NEW",
        deal_utm_source: str = "hr_telegram_bot",
    ):
        self.crm = crm
        self.relay = relay
        self.field_codes = dict(field_codes)
        self.deal_category_id = deal_category_id
        self.deal_status_id = deal_status_id
        self.deal_utm_source = deal_utm_source

    async def process(self, payload: Mapping[str, Any] | str | bytes) -> IntakeResult:
        """Process one webhook payload.

        Args:
            payload: A decoded mapping, or the raw body text.

        Returns:
            IntakeResult: ``unparsed`` when the body is not a JSON object,
            ``failed`` when a CRM call fails, ``processed`` otherwise.
        """
        raw_text: str | None = None
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        if isinstance(payload, str):
            raw_text = strip_invisible(payload).strip()
            payload = safe_json_parse(raw_text)

        if not isinstance(payload, Mapping):
            logger.warning("Webhook body could not be parsed into an object; passing it through")
            return IntakeResult(status="unparsed", message="Body is not a JSON object", raw=raw_text)

        data = sanitize_webhook_data(payload)
        missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
        if missing:
            logger.warning(f"Webhook payload is missing required fields: {missing}")

        try:
            return await self._upsert(data)
        except CrmError as e:
            logger.error(f"Webhook intake failed on {e.method or 'CRM call'}: {e}")
            return IntakeResult(status="failed", fields=data, message=str(e))

    def contact_fields(self, data: dict[str, str]) -> dict[str, Any]:
        """Map sanitized intake data to CRM contact fields, without file links."""
        phone = normalize_phone(data.get("phone_number_uzbek"))
        fields: dict[str, Any] = {
            "NAME": data.get("full_name_uzbek", ""),
            CONTACT_POSITION: data.get("position_uz", ""),
            CONTACT_CITY: data.get("city_uzbek", ""),
            CONTACT_DEGREE: data.get("degree", ""),
            CONTACT_USERNAME: extract_link_text(data.get("username")),
            CONTACT_AGE: data.get("age_uzbek", ""),
        }
        if phone:
            fields["PHONE"] = [{"VALUE": phone, "VALUE_TYPE": "MOBILE"}]
            fields[CONTACT_PHONE_BACKUP] = phone

        for key, (_, answer_code) in ANSWER_FIELDS.items():
            if data.get(key):
                fields[answer_code] = data[key]

        comments = []
        if data.get("resume"):
            comments.append(f"Resume: {data['resume']}")
        if data.get("diploma"):
            comments.append(f"Diploma: {data['diploma']}")
        if data.get("age_uzbek"):
            comments.append(f"The Age is {data['age_uzbek']}")
        if comments:
            fields["COMMENTS"] = "\n".join(comments)
        return fields

    async def file_fields(self, data: dict[str, str], contact_id: str) -> dict[str, str]:
        """Relay file references and map the results to CRM codes.

        A failed resume or diploma relay keeps the raw reference so a later
        sweep can retry it. An answer only reaches its voice field once it has
        been relayed; its text field then records the permanent URL.
        """
        fields: dict[str, str] = {}
        for key, field_name in FILE_FIELDS.items():
            value = data.get(key)
            code = self.field_codes.get(field_name.value)
            if not value or not code:
                continue
            kind = self.relay.classifier.classify(value).kind
            if kind is ReferenceKind.EPHEMERAL:
                fields[code] = await self.relay.process_file_field(value, field_name, contact_id)
            elif kind is ReferenceKind.DURABLE:
                fields[code] = value
            else:
                logger.warning(f"Contact {contact_id}: {field_name.value} value is not a file reference, skipped")

        for key, (field_name, answer_code) in ANSWER_FIELDS.items():
            value = data.get(key)
            code = self.field_codes.get(field_name.value)
            if not value or not code or not self.relay.is_ephemeral_reference(value):
                continue
            result = await self.relay.relay(value, field_name, contact_id)
            if result.ok:
                fields[code] = result.value
                fields[answer_code] = f"Voice answer: {result.value}"
            else:
                logger.info(f"Contact {contact_id}: {key} kept as a text answer")
        return fields

    async def _upsert(self, data: dict[str, str]) -> IntakeResult:
        contact = self.contact_fields(data)
        phone = normalize_phone(data.get("phone_number_uzbek"))

        contact_id = await self.crm.find_contact_by_phone(phone)
        if contact_id:
            logger.info(f"Existing contact {contact_id} found for {phone}")
        else:
            contact_id = await self.crm.add_contact(contact)
            logger.info(f"Created contact {contact_id}")
            contact = {}

        contact.update(await self.file_fields(data, contact_id))
        if contact:
            await self.crm.update_contact(contact_id, contact)

        name = data.get("full_name_uzbek", "")
        deal = {
            "TITLE": f"HR BOT - {name}".strip(),
            "CATEGORY_ID": self.deal_category_id,
            "STATUS_ID": self.deal_status_id,
            "UTM_SOURCE": self.deal_utm_source,
            "CONTACT_ID": contact_id,
            CONTACT_USERNAME: extract_link_text(data.get("username")),
        }
        params = {"REGISTER_SONET_EVENT": "Y"}

        deal_id = await self.crm.find_deal_by_contact(contact_id)
        if deal_id:
            await self.crm.update_deal(deal_id, deal, params)
            logger.info(f"Updated deal {deal_id} for contact {contact_id}")
        else:
            deal_id = await self.crm.add_deal(deal, params)
            logger.info(f"Created deal {deal_id} for contact {contact_id}")

        return IntakeResult(
            status="processed",
            contact_id=contact_id,
            deal_id=deal_id,
            fields=data,
            message="Contact and deal saved",
        )
