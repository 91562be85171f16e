# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Logical file fields tracked on candidate records."""

from enum import Enum

from pydantic import BaseModel


class FieldName(str, Enum):
    """A file-bearing field, independent of its CRM user-field code."""

    RESUME = "resume"
    DIPLOMA = "diploma"
    VOICE_ANSWER_1 = "voice_answer_1"
    VOICE_ANSWER_2 = "voice_answer_2"
    VOICE_ANSWER_3 = "voice_answer_3"
    LOGO = "logo"


# Older relays named voice answers differently; repair lookups accept both.
LEGACY_FILENAME_ALIASES: dict[FieldName, tuple[str, ...]] = {
    FieldName.VOICE_ANSWER_1: ("phase2_q1", "voice_q1"),
    FieldName.VOICE_ANSWER_2: ("phase2_q2", "voice_q2"),
    FieldName.VOICE_ANSWER_3: ("phase2_q3", "voice_q3"),
}


def filename_stems(field_name: FieldName) -> tuple[str, ...]:
    """Return every filename stem a stored file for ``field_name`` may carry."""
    return (field_name.value, *LEGACY_FILENAME_ALIASES.get(field_name, ()))


class FileFieldValue(BaseModel):
    """The raw string held in one named file field of one record."""

    owner_id: str
    field_name: FieldName
    raw_value: str | None = None
