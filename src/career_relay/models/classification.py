# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ReferenceKind(str, Enum):
    """What a stored file-field value points at."""

    EMPTY = "empty"
    EPHEMERAL = "ephemeral"
    BROKEN = "broken"
    DURABLE = "durable"
    UNKNOWN = "unknown"


class ReferenceClassification(BaseModel):
    """Result of classifying one raw field value.

    Attributes:
        kind: The reference kind.
        value: The trimmed raw value ("" for empty values).
        marker: The bad-marker substring that matched, for broken references.
    """

    model_config = ConfigDict(frozen=True)

    kind: ReferenceKind
    value: str
    marker: str | None = None

    @property
    def needs_action(self) -> bool:
        return self.kind in (ReferenceKind.EPHEMERAL, ReferenceKind.BROKEN)
