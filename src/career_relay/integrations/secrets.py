# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import os
from typing import Protocol, runtime_checkable

from loguru import logger


@runtime_checkable
class SecretClientProtocol(Protocol):
    """
    Protocol for a secret backend, to allow dependency injection and testing.
    """

    def get_secret(self, key: str) -> str | None:
        """
        Retrieve a secret by key.
        """
        ...


class SecretStore:
    """
    Resolves credentials (bot token, CRM webhook URL, storage keys).
    Uses the injected client when given, otherwise reads environment variables.
    """

    def __init__(self, client: SecretClientProtocol | None = None):
        self.client = client

    def get_secret(self, key: str) -> str | None:
        """
        Fetch a secret by key.
        Returns None if it is missing or the client fails.
        """
        if self.client:
            try:
                return self.client.get_secret(key)
            except Exception as e:
                logger.warning(f"Failed to fetch secret {key} from secret client: {e}")
                return None

        val = os.getenv(key)
        if not val:
            logger.debug(f"Secret {key} not found in environment.")
        return val or None
