# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Exception hierarchy for the relay and reconciliation pipeline."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from career_relay.models.report import SweepReport


class RelayError(Exception):
    """Base class for failures while moving a file into durable storage."""

    def __init__(self, message: str, reference: str | None = None):
        super().__init__(message)
        self.reference = reference


class RelayMetadataFailed(RelayError):
    """The upstream file API could not resolve the reference to a download path."""


class RelayDownloadFailed(RelayError):
    """The file bytes could not be fetched from the resolved path."""


class StorageWriteFailed(RelayError):
    """The durable store rejected the write."""


class CrmError(Exception):
    """Base class for CRM API failures."""

    def __init__(self, message: str, method: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.method = method
        self.status_code = status_code


class CrmListFailed(CrmError):
    """A list page could not be fetched. Fatal to a sweep."""

    report: "SweepReport | None" = None


class CrmUpdateFailed(CrmError):
    """A partial update was rejected. Fatal only to the record being written."""


class CrmRequestFailed(CrmError):
    """Any other CRM call (get, add, deal lookups) failed."""


class SweepAlreadyRunning(RuntimeError):
    """Raised when a sweep is started while another one is still in flight."""
