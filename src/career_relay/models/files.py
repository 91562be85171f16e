# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from pydantic import BaseModel, ConfigDict


class PermanentFile(BaseModel):
    """A file re-hosted in durable storage.

    Attributes:
        filename: The unique stored filename.
        byte_size: Size of the stored content in bytes.
        content_type: MIME type inferred from the source path extension.
        public_url: The permanent URL the CRM record points at.
    """

    model_config = ConfigDict(frozen=True)

    filename: str
    byte_size: int
    content_type: str
    public_url: str


class RelayResult(BaseModel):
    """Outcome of one relay attempt.

    Attributes:
        ok: Whether the file now lives in durable storage.
        value: The permanent URL on success, the original reference otherwise.
        file: The stored file on success.
        error: Why the relay failed, when it did.
    """

    ok: bool
    value: str
    file: PermanentFile | None = None
    error: str | None = None
