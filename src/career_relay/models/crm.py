# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from typing import Any

from pydantic import BaseModel, Field

from .fields import FieldName, FileFieldValue

IDENTITY_FIELDS = ["ID", "NAME", "LAST_NAME"]

# Contact user fields written by the webhook intake.
CONTACT_POSITION = "UF_CRM_1752239621"
CONTACT_CITY = "UF_CRM_1752239635"
CONTACT_DEGREE = "UF_CRM_1752239653"
CONTACT_USERNAME = "UF_CRM_CONTACT_1745579971270"
CONTACT_AGE = "UF_CRM_1752622669492"
CONTACT_PHONE_BACKUP = "UF_CRM_1747689959"
CONTACT_ANSWER_FIELDS = ("UF_CRM_1752241370", "UF_CRM_1752241378", "UF_CRM_1752241386")


class CrmRecord(BaseModel):
    """A CRM contact as returned by the list or get endpoints."""

    external_id: str
    fields: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "CrmRecord":
        return cls(external_id=str(payload.get("ID", "")), fields=dict(payload))

    @property
    def display_name(self) -> str:
        return f"{self.fields.get('NAME') or ''} {self.fields.get('LAST_NAME') or ''}".strip()

    def get(self, code: str) -> str | None:
        value = self.fields.get(code)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    def file_field(self, field_name: FieldName, code: str) -> FileFieldValue:
        """Read the current value of one file field, stored under ``code``."""
        return FileFieldValue(owner_id=self.external_id, field_name=field_name, raw_value=self.get(code))
