# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from typing import Literal

from pydantic import BaseModel, Field


class IntakeResult(BaseModel):
    """What the webhook intake did with one inbound payload."""

    status: Literal["processed", "unparsed", "failed"]
    contact_id: str | None = None
    deal_id: str | None = None
    fields: dict[str, str] = Field(default_factory=dict)
    message: str = ""
    raw: str | None = None
