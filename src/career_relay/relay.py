# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import hashlib
import mimetypes
import posixpath
import secrets
from collections.abc import Callable
from datetime import date

from loguru import logger

from career_relay.classifier import ReferenceClassifier, is_ephemeral_reference
from career_relay.errors import RelayError
from career_relay.models.classification import ReferenceKind
from career_relay.models.fields import FieldName
from career_relay.models.files import PermanentFile, RelayResult
from career_relay.storage import DurableStorage
from career_relay.telegram import TelegramFileClient

DEFAULT_EXTENSION = ".bin"

__all__ = ["FileRelayService", "build_filename", "is_ephemeral_reference"]


def _field_value(field_name: FieldName | str) -> str:
    return field_name.value if isinstance(field_name, FieldName) else str(field_name)


def extension_for(file_path: str) -> str:
    """Return the extension of a resolved upstream path, or ``.bin``."""
    _, ext = posixpath.splitext(file_path)
    return ext.lower() if ext else DEFAULT_EXTENSION


def build_filename(
    field_name: FieldName | str,
    extension: str,
    owner_id: str | None = None,
    on: date | None = None,
    suffix: str | None = None,
) -> str:
    """Build ``[contact-{owner}_]{field}_{YYYY-MM-DD}_{8 hex}{ext}``."""
    prefix = f"contact-{owner_id}_" if owner_id else ""
    day = (on or date.today()).isoformat()
    suffix = suffix or secrets.token_hex(4)
    return f"{prefix}{_field_value(field_name)}_{day}_{suffix}{extension}"


def build_content_filename(
    field_name: FieldName | str, extension: str, data: bytes, owner_id: str | None = None
) -> str:
    """Build a content-addressed name, ``[contact-{owner}_]{field}_{sha256[:16]}{ext}``."""
    prefix = f"contact-{owner_id}_" if owner_id else ""
    digest = hashlib.sha256(data).hexdigest()[:16]
    return f"{prefix}{_field_value(field_name)}_{digest}{extension}"


class FileRelayService:
    """Moves ephemeral Telegram files into durable storage.

    Every public method is best-effort: failures are logged and reported in the
    result, never raised, so a batch can carry on with its other fields.
    """

    def __init__(
        self,
        telegram: TelegramFileClient,
        storage: DurableStorage,
        classifier: ReferenceClassifier,
        content_addressed: bool = False,
        today: Callable[[], date] = date.today,
    ):
        """Initializes the FileRelayService.

        Args:
            telegram: Client for the upstream file API.
            storage: Durable store receiving the bytes.
            classifier: Classifier deciding which values are ephemeral.
            content_addressed: Name files by a hash of their bytes instead of date and random suffix.
            today: Clock for the date embedded in filenames.
        """
        self.telegram = telegram
        self.storage = storage
        self.classifier = classifier
        self.content_addressed = content_addressed
        self._today = today

    def is_ephemeral_reference(self, value: object) -> bool:
        return self.classifier.is_ephemeral_reference(value)

    async def relay(
        self, ephemeral_ref: str, field_name: FieldName | str, owner_id: str | None = None
    ) -> RelayResult:
        """Download an ephemeral file and store it permanently.

        Args:
            ephemeral_ref: The platform file id.
            field_name: Logical field the file belongs to; part of the filename.
            owner_id: Optional CRM id of the owning record; prefixes the filename.

        Returns:
            RelayResult: ``value`` is the permanent URL on success and
            ``ephemeral_ref`` unchanged on failure.
        """
        field = _field_value(field_name)
        try:
            permanent = await self._relay(ephemeral_ref, field, owner_id)
        except RelayError as e:
            logger.warning(f"Relay of {field} {ephemeral_ref} failed, keeping original reference: {e}")
            return RelayResult(ok=False, value=ephemeral_ref, error=f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error relaying {field} {ephemeral_ref}, keeping original reference")
            return RelayResult(ok=False, value=ephemeral_ref, error=f"{type(e).__name__}: {e}")

        logger.info(f"Relayed {field} {ephemeral_ref} -> {permanent.public_url}")
        return RelayResult(ok=True, value=permanent.public_url, file=permanent)

    async def _relay(self, file_id: str, field: str, owner_id: str | None) -> PermanentFile:
        info = await self.telegram.get_file_info(file_id)
        data = await self.telegram.download(info.file_path)

        extension = extension_for(info.file_path)
        content_type = mimetypes.guess_type(f"file{extension}")[0] or "application/octet-stream"

        if self.content_addressed:
            filename = build_content_filename(field, extension, data, owner_id)
            if await self.storage.exists(filename):
                logger.info(f"{filename} already stored, reusing it")
                return PermanentFile(
                    filename=filename,
                    byte_size=len(data),
                    content_type=content_type,
                    public_url=self.storage.public_url(filename),
                )
        else:
            filename = build_filename(field, extension, owner_id, on=self._today())

        url = await self.storage.write(filename, data, content_type)
        return PermanentFile(filename=filename, byte_size=len(data), content_type=content_type, public_url=url)

    async def process_file_field(
        self, value: str, field_name: FieldName | str, owner_id: str | None = None
    ) -> str:
        """Relay ``value`` when it is an ephemeral reference; otherwise return it unchanged."""
        if self.classifier.classify(value).kind is not ReferenceKind.EPHEMERAL:
            return value
        return (await self.relay(value.strip(), field_name, owner_id)).value
